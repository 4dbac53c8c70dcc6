"""Axial marcher coupling the channel ODE with the boundary-layer solver.

The channel is split into quadratic elements (entry, exit, mid segment). On
every element the ODE is integrated with RK45 from the entry to the mid
segment and on to the exit, the boundary layer is re-evaluated at both new
stations with the fresh bulk state, and the loop repeats until the exit
state stops changing.

Key features:
- Static (T, p, u), static (T, p, Ma) or total (Tt, pt, mdot) inflow
- Optional equilibrium chemistry per element through
  ``Mixture.remix_to_equilibrium``
- Inverse run: find the inflow state whose exit totals match (Tt, pt)
- Energy bookkeeping: total enthalpy change and integrated wall heat

Module Summary:
- Classes:
    - ``ChannelMarcher``: Segment list, elements, ODE and BL solver.
"""

import logging
from typing import List, Sequence, Tuple

import numpy as np
from scipy.integrate import RK45

from . import parameters as par
from .boundary_layer import BoundaryLayer
from .channel_ode import ChannelODE
from .compressible_flow import static_from_total
from .errors import InvalidInput, InvalidMixture, TooManyIterations
from .segments import Element, Segment, create_segments
from .thermo import Mixture

logger = logging.getLogger(__name__)


class ChannelMarcher:
    """Quasi-1D march through a cooling channel or a hot-gas duct.

    Args:
        gas: Working fluid
        segments: 2*n+1 segments in flow order, e.g. from ``create_segments``
        boundary_layer: Solver evaluated at every segment
        n_channels: Number of identical channels in parallel; the segments
            describe one of them

    Note:
        Heat flux is positive from the fluid into the wall, so for a
        converged run ``compute_total_enthalpy_change() ≈ -compute_wall_heat()``.
    """

    tolerance = 1e-6
    max_element_iterations = 500
    max_substeps = 10000
    rtol = 1e-8
    atol = 1e-12

    def __init__(self, gas: Mixture, segments: Sequence[Segment], boundary_layer: BoundaryLayer,
                 n_channels: int = 1):
        if len(segments) < 3 or len(segments) % 2 == 0:
            raise InvalidInput(f"need an odd number (>= 3) of segments, got {len(segments)}")
        if n_channels < 1:
            raise InvalidInput(f"need at least one channel, got {n_channels}")
        self.gas = gas
        self.segments: List[Segment] = list(segments)
        self.elements = [Element(self.segments[k], self.segments[k + 2], self.segments[k + 1])
                         for k in range(0, len(self.segments) - 1, 2)]
        self.bl = boundary_layer
        self.ode = ChannelODE(gas)
        self.n_channels = n_channels
        self.reacting = False
        self._initial_molar = gas.molar_fractions
        self.y = np.full(3, np.nan)

    @classmethod
    def from_config(cls, cfg) -> "ChannelMarcher":
        """Build a marcher with its inflow applied from a ``ChannelConfig``."""
        result = cfg.validate()
        if not result.is_valid:
            raise InvalidInput("invalid channel configuration: " + "; ".join(result.errors))
        for warning in result.warnings:
            logger.warning("channel configuration: %s", warning)

        gas = cfg.gas.build()
        geometry = cfg.geometry.build()
        segments = create_segments(geometry, cfg.elements, cfg.channels, cfg.reverse)
        bl = cfg.boundary_layer.build(gas, geometry.axisymmetric)
        marcher = cls(gas, segments, bl, cfg.channels)
        marcher.set_wall_temperature(cfg.wall_temperature)
        if cfg.reacting:
            marcher.set_reacting_flag()

        inflow = cfg.inflow
        if inflow.is_total:
            marcher.set_inflow_conditions_total(inflow.Tt, inflow.pt, inflow.mdot)
        elif inflow.u is not None:
            marcher.set_inflow_velocity(inflow.T, inflow.p, inflow.u)
        else:
            marcher.set_inflow_conditions(inflow.T, inflow.p, inflow.Ma)
        return marcher

    @classmethod
    def from_geometry(cls, gas: Mixture, geometry, n_elements: int, boundary_layer: BoundaryLayer,
                      n_channels: int = 1, reverse: bool = False) -> "ChannelMarcher":
        return cls(gas, create_segments(geometry, n_elements, n_channels, reverse),
                   boundary_layer, n_channels)

    # ==================== Settings ====================

    def set_surface_roughness(self, Ra: float) -> None:
        self.bl.set_surface_roughness(Ra)

    def set_wall_temperature(self, T_w: float) -> None:
        """Uniform wall temperature on every wall of every segment."""
        if T_w <= 0.0:
            raise InvalidInput(f"wall temperature must be positive, got {T_w}")
        for segment in self.segments:
            segment.data[par.TW1] = T_w
            if segment.n_walls == 2:
                segment.data[par.TW2] = T_w

    def set_reacting_flag(self) -> None:
        """Remix to chemical equilibrium after every element."""
        if not self.gas.is_idgas():
            raise InvalidMixture("a reacting channel needs an ideal-gas mixture")
        self.reacting = True
        self._initial_molar = self.gas.molar_fractions

    def unset_reacting_flag(self) -> None:
        self.reacting = False
        self._reset_composition_change()

    def _reset_composition_change(self) -> None:
        self.ode.set_combustion(0.0, 0.0)
        self.ode.dYdx = np.zeros(self.gas.number_of_components)
        self.ode.combust = False

    # ==================== Inflow ====================

    def set_inflow_velocity(self, T: float, p: float, u: float) -> None:
        """Static inflow state with bulk velocity u (m/s)."""
        if T <= 0.0 or p <= 0.0 or u <= 0.0:
            raise InvalidInput(f"inflow needs positive T, p, u; got ({T}, {p}, {u})")
        self._prime_inflow(T, p, u)

    def set_inflow_conditions(self, T: float, p: float, Ma: float) -> None:
        """Static inflow state with Mach number Ma."""
        if Ma <= 0.0:
            raise InvalidInput(f"inflow Mach number must be positive, got {Ma}")
        self.set_inflow_velocity(T, p, Ma * self.gas.c(T, p))

    def set_inflow_conditions_total(self, Tt: float, pt: float, mdot: float) -> Tuple[float, float, float]:
        """Static inflow state from total temperature, total pressure and mass flow.

        Fixed-point iteration on T with damping 0.3: the velocity follows from
        the continuity equation, p from the isentrope through (Tt, pt) and T
        from h = ht - u^2/2.

        Args:
            Tt: Total temperature (K)
            pt: Total pressure (Pa)
            mdot: Mass flow through all channels (kg/s)

        Returns:
            Tuple of the static (T, p, u) at the inflow
        """
        if mdot <= 0.0:
            raise InvalidInput(f"mass flow must be positive, got {mdot}")
        if Tt <= 0.0 or pt <= 0.0:
            raise InvalidInput(f"total state must be positive, got ({Tt}, {pt})")
        gas = self.gas
        omega = 0.3
        A = self.segments[0].cross_section * self.n_channels
        T, p = static_from_total(Tt, pt, 0.3, gas.gamma(Tt, pt))
        ht, st = gas.h(Tt, pt), gas.s(Tt, pt)
        cp = gas.cp(Tt, pt)

        err = 1.0
        count = 0
        while err > 1e-4:
            count += 1
            if count > 100:
                raise TooManyIterations("inflow from total conditions did not converge",
                                        {"T": T, "p": p, "Tt": Tt, "pt": pt, "mdot": mdot})
            u = mdot * gas.v(T, p) / A
            h = ht - 0.5 * u * u
            err = np.hypot((gas.h(T, p) - h) / (cp * Tt), (gas.s(T, p) - st) / cp)
            logger.debug("inflow iteration %d: T=%.3f K, p=%.1f Pa, u=%.3f m/s, err=%.3e",
                         count, T, p, u, err)
            p = gas.isen_p(Tt, pt, T)
            T = (1.0 - omega) * T + omega * gas.T_from_h(h, p, T)
            if self.reacting:
                gas.remix(self._initial_molar, molar=True)
                gas.remix_to_equilibrium(T, p)

        u = mdot * gas.v(T, p) / A
        self._prime_inflow(T, p, u)
        return T, p, u

    def _prime_inflow(self, T: float, p: float, u: float) -> None:
        """Evaluate the boundary layer at the first segment and seed all segments with it."""
        first = self.segments[0]
        first.set_flow(T, p, u)
        bl = self.bl
        bl.use_input_from_parameters(False)
        try:
            bl.set_hydraulic_diameter(first.hydraulic_diameter)
            bl.set_flow_conditions(T, p, u)
            bl.set_wall_temperature(first.data[par.TW1])
            if first.n_walls == 2:
                bl.T_w2 = first.data[par.TW2]
            bl.set_center_conditions(T, u)
            bl.compute_initial_guesses()
            bl.compute(first.data)
        finally:
            bl.use_input_from_parameters(True)
        for segment in self.segments[1:]:
            self._copy_wall_loads(first, segment)
        logger.info("inflow: T=%.3f K, p=%.4g bar, u=%.3f m/s, Ma=%.4f",
                    T, p * 1e-5, u, first.data[par.MA])

    @staticmethod
    def _copy_wall_loads(source: Segment, target: Segment) -> None:
        target.data[par.TAUW1] = source.data[par.TAUW1]
        target.data[par.DOTQ1] = source.data[par.DOTQ1]
        if source.n_walls == 2 and target.n_walls == 2:
            target.data[par.TAUW2] = source.data[par.TAUW2]
            target.data[par.DOTQ2] = source.data[par.DOTQ2]

    # ==================== March ====================

    def run(self) -> List[Segment]:
        """March from the first to the last segment.

        Returns:
            The segments, with the bulk state and the wall results filled in

        Raises:
            TooManyIterations: If an element or an integration does not converge
        """
        first = self.segments[0]
        T, p, u = first.data[[par.TM, par.PM, par.UM]]
        if not np.all(np.isfinite([T, p, u])):
            raise InvalidInput("inflow conditions are not set")
        gas = self.gas
        self._reset_composition_change()
        if self.reacting:
            gas.remix(self._initial_molar, molar=True)
            gas.remix_to_equilibrium(T, p)

        self.y = np.array([gas.v(T, p), u, T])
        R = gas.R()
        first.R = R
        self._prime_inflow(T, p, u)
        if first.has_walls:
            first.push_heatloads()

        for k, element in enumerate(self.elements):
            R = self._march_element(k, element, R)
        return self.segments

    def _march_element(self, k: int, element: Element, R0: float) -> float:
        gas = self.gas
        entry, exit, mid = element.segments
        y0 = np.array(self.y)
        R = gas.R()
        for segment in (exit, mid):
            self._copy_wall_loads(entry, segment)
        exit.R = R
        mid.R = 0.5 * (R0 + R)
        self.ode.link_element(element)

        err = 1.0
        count = 0
        while err > self.tolerance:
            count += 1
            if count > self.max_element_iterations:
                raise TooManyIterations(f"element {k} did not converge",
                                        {"x0": element.x0, "x1": element.x1, "err": err,
                                         "v": self.y[0], "u": self.y[1], "T": self.y[2]})
            y1 = self.y
            y = self._integrate(element.x0, element.x2, y0)
            mid.set_flow(y[2], gas.p(y[2], y[0]), y[1])
            y = self._integrate(element.x2, element.x1, y)
            exit.set_flow(y[2], gas.p(y[2], y[0]), y[1])
            for segment in (mid, exit):
                self.bl.compute(segment.data)
                if segment.has_walls:
                    segment.push_heatloads()
            self.y = y
            err = np.linalg.norm((y - y1) / y1)
            logger.debug("element %d iteration %d: err=%.3e", k, count, err)

        # linear alpha over the element
        mid.data[par.ALPHA1] = 0.5 * (entry.data[par.ALPHA1] + exit.data[par.ALPHA1])
        if mid.n_walls == 2:
            mid.data[par.ALPHA2] = 0.5 * (entry.data[par.ALPHA2] + exit.data[par.ALPHA2])
        if mid.has_walls:
            mid.push_heatloads()

        T, p = exit.data[par.TM], exit.data[par.PM]
        if self.reacting:
            Y_old = gas.mass_fractions
            gas.remix(self._initial_molar, molar=True)
            Y_eq = gas.remix_to_equilibrium(T, p)
            dYdx = (Y_eq - Y_old) / element.length
            self.ode.set_composition_change((R - R0) / (R * element.length), dYdx)

        if entry.data[par.DOTQ1] * exit.data[par.DOTQ1] < 0.0:
            logger.warning("heat flux changes sign between x=%.4g m and x=%.4g m; "
                           "zeroing the heat load at the element exit", element.x0, element.x1)
            exit.data[par.DOTQ1] = 0.0
            exit.data[par.ALPHA1] = 0.0
            if exit.n_walls == 2:
                exit.data[par.DOTQ2] = 0.0
                exit.data[par.ALPHA2] = 0.0

        logger.info("element %d converged after %d iterations: T=%.3f K, p=%.4g bar, u=%.3f m/s",
                    k, count, T, p * 1e-5, exit.data[par.UM])
        return R

    def _integrate(self, x_a: float, x_b: float, y: np.ndarray) -> np.ndarray:
        """RK45 from x_a to x_b."""
        solver = RK45(self.ode, x_a, np.array(y, dtype=float), x_b,
                      first_step=min(1e-4, x_b - x_a), rtol=self.rtol, atol=self.atol)
        count = 0
        message = None
        while solver.status == "running":
            count += 1
            if count > self.max_substeps:
                raise TooManyIterations(f"RK45 needed more than {self.max_substeps} steps",
                                        {"x": solver.t, "v": solver.y[0], "u": solver.y[1],
                                         "T": solver.y[2]})
            message = solver.step()
        if solver.status == "failed":
            raise TooManyIterations(f"RK45 failed at x={solver.t:.6g} m: {message}",
                                    {"x": solver.t, "v": solver.y[0], "u": solver.y[1],
                                     "T": solver.y[2]})
        return np.array(solver.y)

    # ==================== Inverse run ====================

    def _inverse_residual(self, x: np.ndarray, Tt: float, pt: float) -> np.ndarray:
        self.set_inflow_conditions(x[0], x[1], 0.999)
        self.run()
        last = self.segments[-1]
        Tt_e, pt_e = self.gas.total(last.data[par.TM], last.data[par.PM], last.data[par.UM])
        return np.array([(Tt_e - Tt) / Tt, (pt_e - pt) / pt])

    def run_inverse(self, T_star: float, p_star: float, Tt: float, pt: float,
                    max_iterations: int = 10) -> Tuple[float, float]:
        """Find the near-sonic inflow state whose exit totals equal (Tt, pt).

        The inflow runs at Ma = 0.999. Newton steps use central differences of
        1 % in T and p and are damped by 0.9.

        Args:
            T_star: Initial guess for the inflow temperature (K)
            p_star: Initial guess for the inflow pressure (Pa)
            Tt: Target exit total temperature (K)
            pt: Target exit total pressure (Pa)
            max_iterations: Newton iteration cap

        Returns:
            Tuple of the inflow (T, p); the segments hold the matching run
        """
        x = np.array([T_star, p_star], dtype=float)
        for iteration in range(1, max_iterations + 1):
            F = self._inverse_residual(x, Tt, pt)
            norm = np.linalg.norm(F)
            logger.info("inverse run %d: T=%.3f K, p=%.4g bar, |F|=%.3e",
                        iteration, x[0], x[1] * 1e-5, norm)
            if norm < 1e-6:
                break
            J = np.empty((2, 2))
            for j in range(2):
                dx = np.zeros(2)
                dx[j] = 0.01 * x[j]
                J[:, j] = (self._inverse_residual(x + dx, Tt, pt)
                           - self._inverse_residual(x - dx, Tt, pt)) / (2.0 * dx[j])
            x = x - 0.9 * np.linalg.solve(J, F)
        else:
            raise TooManyIterations("inverse run did not converge",
                                    {"T": x[0], "p": x[1], "Tt": Tt, "pt": pt})
        self.push_flowdata()
        return x[0], x[1]

    # ==================== Results ====================

    def axial_profile(self, index: int) -> np.ndarray:
        """One parameter slot over all segments, e.g. ``axial_profile(par.TM)``."""
        return np.array([segment.data[index] for segment in self.segments])

    def compute_total_enthalpy_change(self) -> float:
        """mdot [(h1 + u1^2/2) - (h0 + u0^2/2)] of one channel (W)."""
        gas = self.gas
        if self.reacting:
            gas.remix(self._initial_molar, molar=True)
        first, last = self.segments[0], self.segments[-1]
        T0, p0, u0 = first.data[[par.TM, par.PM, par.UM]]
        T1, p1, u1 = last.data[[par.TM, par.PM, par.UM]]
        mdot = u0 * first.cross_section * gas.rho(T0, p0)
        return mdot * ((gas.h(T1, p1) + 0.5 * u1 * u1) - (gas.h(T0, p0) + 0.5 * u0 * u0))

    def compute_wall_heat(self) -> float:
        """Integral of the wall heat flux over the wetted surface of one channel (W)."""
        Q = 0.0
        for element in self.elements:
            entry, exit, mid = element.segments
            Q += element.length * (entry.data[par.DOTQ1] * entry.perimeter
                                   + exit.data[par.DOTQ1] * exit.perimeter
                                   + 4.0 * mid.data[par.DOTQ1] * mid.perimeter) / 6.0
        return Q

    # ==================== Wall coupling ====================

    def pull_temperatures(self) -> None:
        for segment in self.segments:
            if segment.has_walls:
                segment.pull_surface_temperatures()

    def push_heatloads(self) -> None:
        for segment in self.segments:
            if segment.has_walls:
                segment.push_heatloads()

    def push_flowdata(self) -> None:
        for segment in self.segments:
            if segment.has_walls:
                segment.push_flowdata()
