"""Isentropic hot-gas channel: combustion chamber or nozzle at fixed totals.

The bulk state of every segment follows from the total state (Tt, pt) and the
critical mass flow through the throat; no momentum or heat exchange is
integrated. With the bulk states known, the boundary layer is evaluated
segment by segment to get the wall heat loads.

Key features:
- Chamber mode: march from the throat (last segment) back to the injector
- Nozzle mode: march from the throat (first segment) to the exit
- Optional chemical equilibrium per segment
- Property tables are built once per segment and handed to the boundary layer
  as coefficient matrices, so the heat-load pass does not resample them
- Optional Mach-number distribution from a method-of-characteristics file

Module Summary:
- Classes:
    - ``ChannelType``: Chamber or nozzle.
    - ``IsotropicChannel``: Segments, boundary layer and per-segment tables.
"""

import logging
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

from . import parameters as par
from .boundary_layer import BoundaryLayer, FrictionMethod, SigmaRecoveryMode
from .compressible_flow import static_from_total
from .errors import InvalidInput, InvalidMixture, TooManyIterations
from .geometry import Geometry
from .segments import create_segments
from .thermo import Mixture

logger = logging.getLogger(__name__)


class ChannelType(Enum):
    CHAMBER = "chamber"
    NOZZLE = "nozzle"

    @classmethod
    def from_string(cls, text: str) -> "ChannelType":
        key = text.strip().lower()
        for kind in cls:
            if kind.value == key:
                return kind
        raise InvalidInput(f"unknown channel type '{text}'")


class IsotropicChannel:
    """Chamber or nozzle with an isentropic core flow.

    Args:
        kind: ``ChannelType`` or its string name
        gas: Working fluid; its composition at construction is the inflow
            composition
        geometry: Chamber contour ending in the throat, or nozzle contour
            starting in the throat
        n_elements: Number of quadratic elements along the contour
        method: Friction method of the boundary layer
        cells: Radial cells of the boundary layer
        mesh_ratio: Radial cell growth of the boundary layer
    """

    def __init__(self, kind, gas: Mixture, geometry: Geometry, n_elements: int,
                 method=FrictionMethod.MESSE, cells: int = 100, mesh_ratio: float = 1.05):
        if isinstance(kind, str):
            kind = ChannelType.from_string(kind)
        self.kind = kind
        self.gas = gas
        self.geometry = geometry
        self.segments = create_segments(geometry, n_elements)
        self.bl = BoundaryLayer(gas, method, SigmaRecoveryMode.PETUKHOV, cells, mesh_ratio,
                                geometry.axisymmetric)
        self.reacting = False
        self.reverse_order = False
        self._initial_molar = gas.molar_fractions
        n = len(self.segments)
        self._molar: List[Optional[np.ndarray]] = [None] * n
        self._spline_data: List[Optional[Tuple[np.ndarray, ...]]] = [None] * n
        self.surface_coordinates: Optional[np.ndarray] = None

    # ==================== Settings ====================

    def set_surface_roughness(self, Ra: float) -> None:
        self.bl.set_surface_roughness(Ra)

    def set_bartz_geometry_params(self, D_throat: float, r_curvature: float) -> None:
        self.bl.set_bartz_geometry_params(D_throat, r_curvature)

    def set_friction_method(self, method) -> None:
        if isinstance(method, str):
            method = FrictionMethod.from_string(method)
        self.bl.method = method

    def set_reverse_order_flag(self, flag: bool) -> None:
        """Evaluate the heat loads from the last segment to the first."""
        self.reverse_order = flag

    def set_reacting_flag(self) -> None:
        if not self.gas.is_idgas():
            raise InvalidMixture("a reacting channel needs an ideal-gas mixture")
        self.reacting = True

    def unset_reacting_flag(self) -> None:
        self.reacting = False

    def set_wall_temperature(self, T_w: float) -> None:
        for segment in self.segments:
            segment.data[par.TW1] = T_w
            if segment.n_walls == 2:
                segment.data[par.TW2] = T_w

    def _equilibrate(self, T: float, p: float) -> None:
        if self.reacting:
            self.gas.remix(self._initial_molar, molar=True)
            self.gas.remix_to_equilibrium(T, p)

    # ==================== Core flow ====================

    def compute_massflow(self, Tt: float, pt: float) -> Tuple[float, float, float]:
        """Critical state and mass flow through the throat.

        Solves h(T, p) + c(T, p)^2/2 = ht and s(T, p) = st with a damped
        Newton iteration.

        Returns:
            Tuple of the throat (T, p) and the mass flow (kg/s)
        """
        gas = self.gas
        gas.remix(self._initial_molar, molar=True)
        omega = 0.5
        ht, st = gas.h(Tt, pt), gas.s(Tt, pt)
        cp = gas.cp(Tt, pt)
        T, p = static_from_total(Tt, pt, 1.0, gas.gamma(Tt, pt))

        err = 1.0
        count = 0
        while err > 1e-6:
            count += 1
            if count > 100:
                raise TooManyIterations("critical mass flow did not converge",
                                        {"T": T, "p": p, "Tt": Tt, "pt": pt})
            u = gas.c(T, p)
            F = np.array([gas.h(T, p) + 0.5 * u * u - ht, gas.s(T, p) - st])
            err = np.hypot(F[0] / (cp * Tt), F[1] / cp)
            J = np.array([[gas.cp(T, p), gas.dhdp(T, p)],
                          [gas.dsdT(T, p), gas.dsdp(T, p)]])
            dT, dp = np.linalg.solve(J, F)
            T -= omega * dT
            p -= omega * dp
            self._equilibrate(T, p)

        throat = self.segments[0] if self.kind == ChannelType.NOZZLE else self.segments[-1]
        u = gas.c(T, p)
        mdot = u * throat.cross_section * gas.rho(T, p)
        logger.info("critical state: T=%.3f K, p=%.4g bar, u=%.3f m/s, mdot=%.5g kg/s",
                    T, p * 1e-5, u, mdot)
        return T, p, mdot

    def compute_states(self, Tt: float, pt: float) -> None:
        """Static states of all segments from the total state."""
        if self.kind == ChannelType.CHAMBER:
            self._compute_states_chamber(Tt, pt)
        else:
            self._compute_states_nozzle(Tt, pt)

    def _compute_states_chamber(self, Tt: float, pt: float) -> None:
        gas = self.gas
        T, p, mdot = self.compute_massflow(Tt, pt)
        gas.remix(self._initial_molar, molar=True)
        ht, st = gas.h(Tt, pt), gas.s(Tt, pt)
        omega = 0.3

        for k in range(len(self.segments) - 1, -1, -1):
            A = self.segments[k].cross_section
            err = 1.0
            count = 0
            while err > 1e-6:
                count += 1
                if count > 1000:
                    raise TooManyIterations(f"chamber state of segment {k + 1} did not converge",
                                            {"T": T, "p": p, "A": A})
                u = mdot / (gas.rho(T, p) * A)
                h = ht - 0.5 * u * u
                T = (1.0 - omega) * T + omega * gas.T_from_h(h, p, T)
                ds = gas.s(T, p) - st
                err = abs(ds / st)
                p -= omega * ds / gas.dsdp(T, p)
                self._equilibrate(T, p)
            self._store_state(k, T, p, u)

    def _compute_states_nozzle(self, Tt: float, pt: float) -> None:
        gas = self.gas
        T, p, mdot = self.compute_massflow(Tt, pt)
        gas.remix(self._initial_molar, molar=True)
        ht, st = gas.h(Tt, pt), gas.s(Tt, pt)
        omega = 0.3
        u = gas.c(T, p)

        for k, segment in enumerate(self.segments):
            A = segment.cross_section
            err = 1.0
            count = 0
            while err > 1e-6:
                count += 1
                if count > 1000:
                    raise TooManyIterations(f"nozzle state of segment {k + 1} did not converge",
                                            {"T": T, "p": p, "A": A})
                u = np.sqrt(max(2.0 * (ht - gas.h(T, p)), 0.0))
                v = A * u / mdot
                p = gas.p(T, v)
                T -= omega * (gas.s(T, p) - st) / gas.dsdT(T, p)
                err = abs((gas.s(T, p) - st) / st)
                self._equilibrate(T, p)
            self._store_state(k, T, p, u)

    def _store_state(self, k: int, T: float, p: float, u: float) -> None:
        """Write the bulk state and build the property tables of segment k."""
        gas = self.gas
        segment = self.segments[k]
        segment.set_flow(T, p, u)
        segment.data[par.MA] = u / gas.c(T, p)
        segment.data[par.HM] = gas.h(T, p)
        segment.data[par.SM] = gas.s(T, p)
        segment.R = gas.R()
        self._molar[k] = gas.molar_fractions
        self.bl.set_flow_conditions(T, p, u)
        self._spline_data[k] = tuple(np.array(m) for m in self.bl.lookup_matrices())
        logger.debug("segment %d: T=%.3f K, p=%.4g bar, Ma=%.4f",
                     segment.id, T, p * 1e-5, segment.data[par.MA])

    # ==================== Method of characteristics ====================

    def load_moc_data(self, path: str) -> None:
        """Map a two-column (x, Ma) text file onto the segments."""
        data = np.loadtxt(path, ndmin=2)
        if data.shape[1] < 2:
            raise InvalidInput(f"{path}: expected two columns x and Ma")
        x0, Ma0 = data[:, 0], data[:, 1]
        if np.any(np.diff(x0) <= 0.0):
            raise InvalidInput(f"{path}: x must be strictly increasing")
        x1 = np.array([s.x for s in self.segments]) - self.segments[0].x
        for segment, Ma in zip(self.segments, np.interp(x1, x0, Ma0)):
            segment.data[par.MA] = Ma
        logger.info("loaded %d characteristic points from %s", len(x0), path)

    def compute_states_from_characteristics(self, Tt: float, pt: float) -> None:
        """Static states from the mapped Mach numbers at fixed ht and st."""
        gas = self.gas
        if not np.all(np.isfinite([s.data[par.MA] for s in self.segments])):
            raise InvalidInput("no Mach number distribution loaded")
        gas.remix(self._initial_molar, molar=True)
        ht, st = gas.h(Tt, pt), gas.s(Tt, pt)
        cp = gas.cp(Tt, pt)
        omega = 0.3
        T, p = static_from_total(Tt, pt, self.segments[0].data[par.MA], gas.gamma(Tt, pt))

        for k, segment in enumerate(self.segments):
            Ma = segment.data[par.MA]
            err = 1.0
            count = 0
            while err > 1e-6:
                count += 1
                if count > 1000:
                    raise TooManyIterations(f"state of segment {k + 1} did not converge",
                                            {"T": T, "p": p, "Ma": Ma})
                u = Ma * gas.c(T, p)
                F = np.array([gas.h(T, p) + 0.5 * u * u - ht, gas.s(T, p) - st])
                err = np.hypot(F[0] / (cp * Tt), F[1] / cp)
                J = np.array([[gas.cp(T, p), gas.dhdp(T, p)],
                              [gas.dsdT(T, p), gas.dsdp(T, p)]])
                dT, dp = np.linalg.solve(J, F)
                T -= omega * dT
                p -= omega * dp
                self._equilibrate(T, p)
            self._store_state(k, T, p, Ma * gas.c(T, p))

    def compute_surface_coordinates(self) -> np.ndarray:
        """Wall arc length at every segment, starting at zero.

        The wall runs through (x, D_h/2); every element is a quadratic curve
        through its three segments and its length is integrated with
        five-point Gauss-Legendre quadrature.
        """
        x = np.array([s.x for s in self.segments]) - self.segments[0].x
        y = 0.5 * np.array([s.hydraulic_diameter for s in self.segments])
        xi, w = np.polynomial.legendre.leggauss(5)
        xi = 0.5 * (xi + 1.0)
        w = 0.5 * w
        dN = np.array([4.0 * xi - 3.0, 4.0 * xi - 1.0, 4.0 - 8.0 * xi])

        s = np.zeros(len(x))
        for o in range(0, len(x) - 1, 2):
            nodes = [o, o + 2, o + 1]
            L = np.sum(w * np.hypot(x[nodes] @ dN, y[nodes] @ dN))
            La = np.hypot(x[o + 1] - x[o], y[o + 1] - y[o])
            Lb = np.hypot(x[o + 2] - x[o + 1], y[o + 2] - y[o + 1])
            s[o + 1] = s[o] + La / (La + Lb) * L
            s[o + 2] = s[o] + L
        self.surface_coordinates = s
        return s

    # ==================== Heat loads ====================

    def compute_heatloads(self) -> None:
        """Boundary layer at every segment with the cached property tables."""
        if any(d is None for d in self._spline_data):
            raise InvalidInput("compute the segment states before the heat loads")
        n = len(self.segments)
        order = range(n - 1, -1, -1) if self.reverse_order else range(n)
        gas, bl = self.gas, self.bl

        k0 = order[0]
        first = self.segments[k0]
        T, p, u = first.data[[par.TM, par.PM, par.UM]]
        gas.remix(self._molar[k0], molar=True)
        bl.use_input_from_parameters(False)
        try:
            bl.set_hydraulic_diameter(first.hydraulic_diameter)
            bl.set_flow_conditions(T, p, u, spline_data=self._spline_data[k0])
            bl.set_center_conditions(T, u)
            bl.set_wall_temperature(first.data[par.TW1])
            bl.compute_initial_guesses()
        finally:
            bl.use_input_from_parameters(True)

        for k in order:
            segment = self.segments[k]
            gas.remix(self._molar[k], molar=True)
            T, p, u = segment.data[[par.TM, par.PM, par.UM]]
            bl.set_flow_conditions(T, p, u, spline_data=self._spline_data[k])
            bl.compute(segment.data, update_tables=False)
        logger.info("heat loads of %d segments computed (%s)",
                    n, "backward" if self.reverse_order else "forward")

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
