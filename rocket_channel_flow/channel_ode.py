"""Quasi-1D channel flow equations in logarithmic form.

The state is y = (v, u, T) with v = 1/rho. The conservation laws for mass,
momentum and energy are written as

    J d(ln v, ln u, ln T)/dx = b(x, v, u, T)

and solved for the logarithmic derivatives at every evaluation. The real-gas
Jacobian uses the isobaric expansion coefficient alpha, the isothermal
compressibility kappa and beta = alpha/(kappa p).

Module Summary:
- Classes:
    - ``ChannelODE``: Right-hand side for ``scipy.integrate.RK45``, either in
      geometry mode (Dittus-Boelter friction, geometry collaborator) or in
      element mode (wall data interpolated over a quadratic element).

Reference:
    Messe, C. et al., AIAA 2017-4989, Eq. (17) and (20).
"""

from typing import Optional, Sequence

import numpy as np

from . import parameters as par
from .errors import InvalidInput
from .geometry import Geometry
from .segments import Element
from .thermo import Mixture


class ChannelODE:
    """Right-hand side d(v, u, T)/dx of the channel equations.

    Args:
        gas: Working fluid
        geometry: Geometry collaborator; without one the ODE runs in element
            mode and expects ``link_element`` before each integration
        reverse: Integrate against the flow direction: the geometry is
            evaluated at L - x and the sign of b flips
    """

    def __init__(self, gas: Mixture, geometry: Optional[Geometry] = None, reverse: bool = False):
        self.gas = gas
        self.element: Optional[Element] = None
        self.geometry: Optional[Geometry] = None
        self.element_mode = geometry is None
        self.reverse = reverse
        if geometry is not None:
            self.link_geometry(geometry, reverse)
        self.T_wall = 300.0
        self.dRdxR = 0.0
        self.dwdx = 0.0
        self.dYdx = np.zeros(gas.number_of_components)
        self.combust = False

    # ==================== Setup ====================

    def link_geometry(self, geometry: Geometry, reverse: bool = False) -> None:
        self.geometry = geometry
        self.reverse = reverse
        self.element_mode = False

    def link_element(self, element: Element) -> None:
        if not self.element_mode:
            raise InvalidInput("cannot link an element while the ODE is in geometry mode")
        self.element = element

    def set_wall_temperature(self, T_w: float) -> None:
        if self.element_mode:
            raise InvalidInput("the wall temperature is part of the element data in element mode")
        self.T_wall = T_w

    def set_combustion(self, dRdxR: float, dwdx: float) -> None:
        """Prescribed change of the gas constant (1/R dR/dx) and heat release dw/dx."""
        self.dRdxR = dRdxR
        self.dwdx = dwdx

    def set_composition_change(self, dRdxR: float, dYdx: Sequence[float]) -> None:
        """Gas-constant change 1/R dR/dx together with the mass-fraction slopes
        whose species enthalpies enter the energy balance."""
        dYdx = np.asarray(dYdx, dtype=float)
        if dYdx.shape != self.dYdx.shape:
            raise InvalidInput(f"expected {len(self.dYdx)} mass-fraction slopes, got {dYdx.shape}")
        self.dRdxR = dRdxR
        self.dYdx = dYdx
        self.combust = True

    # ==================== Evaluation ====================

    def _geometry(self, x: float):
        """Hydraulic diameter, cross-section and its slope at x."""
        if self.element_mode:
            N = self.element.N(x)
            A = self.element.collect_data(par.A)
            return N @ self.element.collect_data(par.DH), N @ A, self.element.B(x) @ A
        g = self.geometry
        if self.reverse:
            x = g.length - x
        return g.Dh(x), g.A(x), g.dAdx(x)

    def _friction(self, x: float, v: float, u: float, T: float, p: float, Dh: float):
        """Wall shear stress and heat flux."""
        if self.element_mode:
            N = self.element.N(x)
            tau = self.element.collect_data(par.TAUW1)
            if len(self.element.segments[0].data) >= par.N_TWO_WALLS:
                tau = 0.5 * (tau + self.element.collect_data(par.TAUW2))
            return N @ tau, N @ self.element.collect_data(par.DOTQ1)

        # Dittus-Boelter with Reynolds-Colburn analogy
        gas = self.gas
        Re = u * Dh / (v * gas.mu(T, p))
        r = gas.Pr(T, p)**(1.0 / 3.0)
        sigma = r * r
        tau_w = 0.023 * u * u / (Re**0.2 * v)
        dot_q = tau_w * (gas.h(T, p) + 0.5 * r * u * u - gas.h(self.T_wall, p)) / (sigma * u)
        return tau_w, dot_q

    def jacobian(self, v: float, u: float, T: float, p: float) -> np.ndarray:
        gas = self.gas
        if gas.is_idgas():
            return np.array([[1.0, -1.0, 0.0],
                             [-1.0, u * u / (p * v), 1.0],
                             [0.0, u * u, gas.cp(T, p) * T]])
        alpha = gas.alpha(T, p)
        kappa = gas.kappa(T, p)
        beta = gas.beta(T, p)
        return np.array([[1.0, -1.0, 0.0],
                         [-beta / alpha, u * u / (p * v), beta * T],
                         [(T * alpha - 1.0) * v / kappa, u * u, (gas.cv(T, p) + p * v * beta) * T]])

    def compute(self, x: float, y: np.ndarray) -> np.ndarray:
        """Evaluate d(v, u, T)/dx at x."""
        v, u, T = y
        gas = self.gas
        p = gas.p(T, v)
        Dh, A, dAdx = self._geometry(x)
        dot_m = A * u / v
        J = self.jacobian(v, u, T, p)
        tau_w, dot_q = self._friction(x, v, u, T, p, Dh)

        b = np.array([dAdx / A,
                      -4.0 * tau_w / (Dh * p) - self.dRdxR,
                      -4.0 * A * dot_q / (Dh * dot_m) - self.dwdx])
        # dR/R is carried by dRdxR alone; the composition slopes only move the enthalpy
        if self.combust:
            b[2] -= gas.species_h(T) @ self.dYdx
        if self.reverse:
            b *= -1.0
        return np.linalg.solve(J, b) * y

    __call__ = compute
