"""Turbulent boundary layer across a channel cross-section.

For a bulk state (T_m, p, u_m), a wall temperature T_w and a hydraulic
diameter D_h this module computes the wall shear stress, the wall heat flux,
the recovery temperature and a linearized heat transfer coefficient.

Key features:
- Messe method: full radial profile reconstruction from Spalding's law of the
  wall and a Coles wake, with a compressible (Crocco-Busemann type) velocity
  transformation. The center temperature and velocity are solved so that the
  profile integrates to the bulk mass and momentum flux.
- Algebraic alternatives: Bartz (hot gas), Eckert reference temperature,
  Pizzarelli and Lebedinsky-Kalmykov (supercritical methane)
- Property lookup tables (v, h, mu, lambda over T at fixed p); for a Helmholtz
  fluid the table is spliced into an SRK model above the validity limit.

Module Summary:
- Classes:
    - ``FrictionMethod``: Selector of the wall-friction / heat-flux method.
    - ``SigmaRecoveryMode``: Selector of the Reynolds-analogy closure.
    - ``BoundaryLayer``: Solver holding the radial grid and the profile table.

Reference:
    Messe, C. et al., "A Boundary Layer Approach for Heat Transfer in Cooling
    Channels", AIAA 2017-4743.
"""

import cmath
import logging
import math
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
from scipy.interpolate import CubicHermiteSpline

from . import parameters as par
from .errors import (CorrelationFail, InvalidGeometry, InvalidInput, InvalidMixture,
                     OutOfRange, TooManyIterations)
from .splines import PropertySpline
from .thermo import GasModel, Mixture
from .wall_functions import (cf_moody, dg_plus_deta, g_plus, kays_crawford,
                             reference_temperature, spalding, spalding_dydf)

logger = logging.getLogger(__name__)

# profile table columns
COLUMNS = ("R", "y", "y+", "u+", "u", "dudy", "rho", "T", "cp", "h", "mu", "lambda",
           "Pr", "muT", "lambdaT", "PrT", "PrM", "tau", "dtaudy", "work0", "work1", "work2")
(_R, _Y, _YP, _UP, _U, _DUDY, _RHO, _T, _CP, _H, _MU, _LAM,
 _PR, _MUT, _LAMT, _PRT, _PRM, _TAU, _DTAUDY, _W0, _W1, _W2) = range(len(COLUMNS))


class FrictionMethod(Enum):
    MESSE = "messe"
    BARTZ = "bartz"
    ECKERT = "eckert"
    PIZZARELLI = "pizzarelli"
    LEBEDINSKY_KALMYKOV = "lebedinsky-kalmykov"

    @classmethod
    def from_string(cls, text: str) -> "FrictionMethod":
        key = text.strip().lower().replace("_", "-").replace(" ", "-")
        if key in ("vandriest", "van-driest"):
            raise InvalidInput("van Driest is a sigma-recovery mode, not a friction method")
        aliases = {"messe": cls.MESSE, "bartz": cls.BARTZ, "eckert": cls.ECKERT,
                   "pizzarelli": cls.PIZZARELLI, "lebedinsky-kalmykov": cls.LEBEDINSKY_KALMYKOV,
                   "lebedinskykalmykov": cls.LEBEDINSKY_KALMYKOV, "lk": cls.LEBEDINSKY_KALMYKOV}
        if key not in aliases:
            raise InvalidInput(f"unknown friction method '{text}'")
        return aliases[key]


class SigmaRecoveryMode(Enum):
    VAN_DRIEST = "vandriest"
    PETUKHOV = "petukhov"

    @classmethod
    def from_string(cls, text: str) -> "SigmaRecoveryMode":
        key = text.strip().lower().replace("_", "").replace("-", "").replace(" ", "")
        for mode in cls:
            if mode.value == key:
                return mode
        raise InvalidInput(f"unknown sigma-recovery mode '{text}'")


def ratio_grid(cells: int, ratio: float) -> np.ndarray:
    """Normalized wall distance eta in [0, 1] on 2*cells+1 nodes.

    Cell lengths grow geometrically by ``ratio`` away from the wall; every cell
    carries its midpoint as an extra node.
    """
    if cells < 2 or ratio <= 0.0:
        raise InvalidInput(f"invalid grid: cells={cells}, ratio={ratio}")
    lengths = ratio**np.arange(cells)
    corners = np.concatenate(([0.0], np.cumsum(lengths) / lengths.sum()))
    eta = np.empty(2 * cells + 1)
    eta[0::2] = corners
    eta[1::2] = 0.5 * (corners[:-1] + corners[1:])
    eta[-1] = 1.0
    return eta


class BoundaryLayer:
    """Boundary-layer solver for one channel cross-section.

    Args:
        gas: Working fluid
        method: Friction method, ``FrictionMethod`` or its string name
        sigma_recovery: Reynolds-analogy closure used by the Messe method
        cells: Number of radial cells (the grid has 2*cells+1 nodes)
        mesh_ratio: Geometric growth of the cell length away from the wall
        axisymmetric: Integrate the balances over a circular cross-section;
            otherwise over the half gap of a planar channel per unit width

    Note:
        With ``use_parameters`` set (default), ``compute`` reads D_h, the
        bulk state and T_w from the parameter record. The marcher switches it
        off while it primes the solver from explicit setters.
    """

    kappa = 0.41
    B_plus0 = 5.0
    C_R = 3.4
    Pi = 0.0
    T_w_default = 300.0

    def __init__(self, gas: Mixture,
                 method=FrictionMethod.MESSE,
                 sigma_recovery=SigmaRecoveryMode.PETUKHOV,
                 cells: int = 100,
                 mesh_ratio: float = 1.05,
                 axisymmetric: bool = True):
        if isinstance(method, str):
            method = FrictionMethod.from_string(method)
        if isinstance(sigma_recovery, str):
            sigma_recovery = SigmaRecoveryMode.from_string(sigma_recovery)
        self.gas = gas
        self.method = method
        self.sigma_recovery = sigma_recovery
        self.axisymmetric = axisymmetric
        self.use_parameters = True
        self.alternate = gas.alternate() if gas.model == GasModel.HELMHOLTZ else None

        self.eta = ratio_grid(cells, mesh_ratio)
        self.n_nodes = len(self.eta)
        self._center = self.n_nodes - 1
        self.data = np.full((self.n_nodes, len(COLUMNS)), np.nan)

        self.k_tech = 0.0
        self.bartz_constant: Optional[float] = None
        self.sigma = np.nan
        self.recovery = np.nan
        self.Dh = np.nan
        self.area = np.nan
        self.p = np.nan
        self.Tm = np.nan
        self.um = np.nan
        self.Re_Dh = np.nan
        self.rho_max = np.nan
        self.u_tau = np.nan
        self.C_plus = np.nan
        self.B = self.B_plus0
        self.E = math.exp(-self.kappa * self.B_plus0)
        self.dot_m = self.dot_i = self.dot_h = np.nan
        self._psi = self._phi = complex(np.nan)
        self.balance = np.full(3, np.nan)

        self._init_lookup_tables()
        self.T_w2 = self.T_w_default
        self.set_wall_temperature(self.T_w_default)

    # ==================== Setters ====================

    def set_surface_roughness(self, Ra: float) -> None:
        """Arithmetic mean roughness Ra (m); the technical roughness is 4.2*Ra."""
        if Ra < 0.0:
            raise InvalidInput(f"roughness must be nonnegative, got {Ra}")
        self.k_tech = 4.2 * Ra

    def set_bartz_geometry_params(self, D_throat: float, r_curvature: float) -> None:
        """Throat correction (D_t / r_c)^0.1 of the Bartz correlation."""
        if D_throat <= 0.0 or r_curvature <= 0.0:
            raise InvalidGeometry("throat diameter and curvature radius must be positive")
        self.bartz_constant = (D_throat / r_curvature)**0.1

    def set_hydraulic_diameter(self, Dh: float) -> None:
        if not Dh > 0.0:
            raise InvalidInput(f"hydraulic diameter must be positive, got {Dh}")
        self.Dh = Dh
        if self.axisymmetric:
            y_hat = 0.5 * Dh
            self.area = 0.25 * math.pi * Dh * Dh
        else:
            y_hat = 0.25 * Dh
            self.area = y_hat
        self.data[:, _Y] = self.eta * y_hat
        self.data[:, _R] = (1.0 - self.eta) * y_hat

    def set_flow_conditions(self, T: float, p: float, u: float, update_tables: bool = True,
                            spline_data: Optional[Sequence[np.ndarray]] = None) -> None:
        """Set the bulk state.

        Args:
            T: Bulk temperature (K), clamped to the table range
            p: Pressure (Pa)
            u: Bulk velocity (m/s)
            update_tables: Resample the property tables at ``p``
            spline_data: Prebuilt (v, h, mu, lambda) coefficient matrices from
                ``lookup_matrices``; replaces the resampling
        """
        self.Tm = min(max(T, self.T_min), self.T_max)
        self.p = p
        self.um = u
        if spline_data is not None:
            v, h, mu, lam = spline_data
            self._v.matrix_data = v
            self._h.matrix_data = h
            self._mu.matrix_data = mu
            self._lambda.matrix_data = lam
            self.rho_max = self._rho_of(self.T_min)
            self.Prm = self._h.deval(self.Tm) * self._mu.eval(self.Tm) / self._lambda.eval(self.Tm)
        else:
            if update_tables:
                self.update_lookup_tables()
            self.Prm = self.gas.Pr(self.Tm, p)
        self.rho_m = self.gas.rho(self.Tm, p)
        self.hm = self.gas.h(self.Tm, p)
        self.sm = self.gas.s(self.Tm, p)

    def set_center_conditions(self, T: float, u: float) -> None:
        T = max(T, self.T_min)
        c = self._center
        self.data[c, _T] = T
        self.data[c, _U] = u
        self.data[c, _RHO] = self._rho_of(T)
        self.data[c, _H] = self._h.eval(T)

    def set_wall_temperature(self, T_w: float) -> None:
        self.data[0, _T] = min(max(T_w, self.T_min), self.T_max)

    def use_input_from_parameters(self, flag: bool) -> None:
        self.use_parameters = flag

    @property
    def T_w(self) -> float:
        return self.data[0, _T]

    @property
    def rho_w(self) -> float:
        return self.data[0, _RHO]

    @property
    def mu_w(self) -> float:
        return self.data[0, _MU]

    @property
    def tau_w(self) -> float:
        return self.data[0, _TAU]

    @tau_w.setter
    def tau_w(self, value: float) -> None:
        self.data[0, _TAU] = value

    @property
    def T_hat(self) -> float:
        return self.data[self._center, _T]

    @property
    def u_hat(self) -> float:
        return self.data[self._center, _U]

    def profile(self, column: str) -> np.ndarray:
        """Copy of one profile column, e.g. ``profile("u")``."""
        return np.array(self.data[:, COLUMNS.index(column)])

    # ==================== Lookup tables ====================

    def _init_lookup_tables(self) -> None:
        if self.gas.is_idgas():
            self.T_min, self.T_max = 200.0, 6000.0
            lo, hi, n = 0.75 * self.T_min, 1.1 * self.T_max, 201
        else:
            # the sampling starts at the lowest temperature of the equation of state
            self.T_min, self.T_max = self.gas.T_min / 0.75, 2000.0
            lo, hi, n = self.gas.T_min, 2200.0, 101
        self._v = PropertySpline(n, lo, hi)
        self._h = PropertySpline(n, lo, hi)
        self._mu = PropertySpline(n, lo, hi)
        self._lambda = PropertySpline(n, lo, hi)

    def lookup_matrices(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """Coefficient matrices of the v, h, mu and lambda tables."""
        return (self._v.matrix_data, self._h.matrix_data,
                self._mu.matrix_data, self._lambda.matrix_data)

    def update_lookup_tables(self) -> None:
        """Resample v, h, mu and lambda at the current pressure."""
        gas, p = self.gas, self.p
        T = self._v.T
        if self.alternate is None:
            v = np.array([gas.v(Tk, p) for Tk in T])
            h = np.array([gas.h(Tk, p) for Tk in T])
            mu = np.array([gas.mu(Tk, p) for Tk in T])
            lam = np.array([gas.lambda_(Tk, p) for Tk in T])
        else:
            v, h, mu, lam = self._spliced_tables(T, p)
        self._v.update_data(v)
        self._h.update_data(h)
        self._mu.update_data(mu)
        self._lambda.update_data(lam)
        self.rho_max = self._rho_of(self.T_min)

    def _spliced_tables(self, T: np.ndarray, p: float):
        """Helmholtz data up to T0, SRK data (shifted) from T1, Hermite cubics between."""
        gas, alt = self.gas, self.alternate
        T0 = gas.T_max - 50.0
        T1 = max(1000.0, T0 + 100.0)
        dT = 0.001

        dh = gas.h(T0, p) - alt.h(T0, p)
        dmu = gas.mu(T0, p) - alt.mu(T0, p)
        dlam = gas.lambda_(T0, p) - alt.lambda_(T0, p)

        def bridge(y0, dy0, y1, dy1):
            return CubicHermiteSpline([T0, T1], [y0, y1], [dy0, dy1])

        v0, v1 = gas.v(T0, p), alt.v(T1, p)
        v_mid = bridge(v0, v0 * gas.alpha(T0, p), v1, v1 * alt.alpha(T1, p))
        h_mid = bridge(gas.h(T0, p), gas.cp(T0, p), alt.h(T1, p) + dh, alt.cp(T1, p))
        mu_mid = bridge(gas.mu(T0, p), (gas.mu(T0, p) - gas.mu(T0 - dT, p)) / dT,
                        alt.mu(T1, p) + dmu, (alt.mu(T1 + dT, p) - alt.mu(T1, p)) / dT)
        lam_mid = bridge(gas.lambda_(T0, p), (gas.lambda_(T0, p) - gas.lambda_(T0 - dT, p)) / dT,
                         alt.lambda_(T1, p) + dlam,
                         (alt.lambda_(T1 + dT, p) - alt.lambda_(T1, p)) / dT)

        v = np.empty_like(T)
        h = np.empty_like(T)
        mu = np.empty_like(T)
        lam = np.empty_like(T)
        for k, Tk in enumerate(T):
            if Tk <= T0:
                v[k], h[k] = gas.v(Tk, p), gas.h(Tk, p)
                mu[k], lam[k] = gas.mu(Tk, p), gas.lambda_(Tk, p)
            elif Tk < T1:
                v[k], h[k] = v_mid(Tk), h_mid(Tk)
                mu[k], lam[k] = mu_mid(Tk), lam_mid(Tk)
            else:
                v[k], h[k] = alt.v(Tk, p), alt.h(Tk, p) + dh
                mu[k], lam[k] = alt.mu(Tk, p) + dmu, alt.lambda_(Tk, p) + dlam
        return v, h, mu, lam

    def _rho_of(self, T):
        if self.gas.is_idgas():
            return self.p / (self.gas.R() * T)
        return 1.0 / self._v.eval(T)

    def _T_from_h(self, h: float, T_guess: float) -> float:
        """Invert the enthalpy table."""
        lo, hi = self._h.T_min, self._h.T_max
        if not (self._h.eval(lo) <= h <= self._h.eval(hi)):
            raise OutOfRange(f"h={h:.6g} J/kg outside the property table at p={self.p:.1f} Pa")
        T = min(max(T_guess, lo), hi)
        for _ in range(100):
            dT = (self._h.eval(T) - h) / self._h.deval(T)
            T = min(max(T - dT, lo), hi)
            if abs(dT) < 1e-10 * T:
                return T
        raise TooManyIterations("table inversion T(h) did not converge", {"h": h, "p": self.p})

    # ==================== Driver ====================

    def compute(self, parameters: np.ndarray, update_tables: bool = True) -> np.ndarray:
        """Fill the result slots of a segment parameter record.

        Args:
            parameters: Record of 24 slots (one wall) or 32 slots (two walls);
                modified in place
            update_tables: Resample the property tables when the bulk state
                is read from the record

        Returns:
            The same record
        """
        if len(parameters) < par.N_ONE_WALL:
            raise InvalidInput(f"parameter record needs {par.N_ONE_WALL} slots, got {len(parameters)}")
        two_walls = len(parameters) >= par.N_TWO_WALLS
        if self.use_parameters:
            self.set_hydraulic_diameter(parameters[par.DH])
            self.set_flow_conditions(parameters[par.TM], parameters[par.PM], parameters[par.UM],
                                     update_tables)
            self.set_wall_temperature(parameters[par.TW1])
            if two_walls:
                self.T_w2 = parameters[par.TW2]

        self.Re_Dh = self.rho_m * self.um * self.Dh / self._mu.eval(self.Tm)
        Ma = self.um / self.gas.c(self.Tm, self.p)

        self._solve_wall(parameters, par.TW1)
        parameters[par.DH] = self.Dh
        parameters[par.TM] = self.Tm
        parameters[par.PM] = self.p
        parameters[par.UM] = self.um
        parameters[par.MA] = Ma
        parameters[par.HM] = self.hm
        parameters[par.SM] = self.sm
        parameters[par.PRM] = self.Prm
        parameters[par.REDH] = self.Re_Dh
        parameters[par.T_HAT] = self.T_hat
        parameters[par.U_HAT] = self.u_hat
        if self.method == FrictionMethod.MESSE:
            parameters[par.ERR_MASS:par.ERR_ENERGY + 1] = self.balance

        if two_walls:
            T_w1 = self.T_w
            self.set_wall_temperature(self.T_w2)
            self._solve_wall(parameters, par.TW2)
            self.set_wall_temperature(T_w1)
        return parameters

    def _solve_wall(self, parameters: np.ndarray, base: int) -> None:
        methods = {
            FrictionMethod.MESSE: self._messe,
            FrictionMethod.BARTZ: self._bartz,
            FrictionMethod.ECKERT: self._eckert,
            FrictionMethod.PIZZARELLI: self._pizzarelli,
            FrictionMethod.LEBEDINSKY_KALMYKOV: self._lebedinsky_kalmykov,
        }
        self.compute_wall_state()
        dot_q, h_r, T_r = methods[self.method]()
        T_w = self.T_w
        if self.method != FrictionMethod.MESSE:
            d = self.data
            d[1, _YP] = d[1, _Y] * math.sqrt(self.tau_w * d[0, _RHO]) / d[0, _MU]

        parameters[base] = T_w
        parameters[base + 1] = self.tau_w
        parameters[base + 2] = dot_q
        parameters[base + 3] = self.data[0, _H]
        parameters[base + 4] = self.data[1, _YP]
        parameters[base + 5] = T_r
        parameters[base + 6] = h_r
        parameters[base + 7] = dot_q / (T_r - T_w) if T_r != T_w else 0.0
        logger.debug("BL %s: Tm=%.2f K, Tw=%.2f K, tau=%.4g Pa, q=%.4g W/m2",
                     self.method.value, self.Tm, T_w, self.tau_w, dot_q)

    def compute_initial_guesses(self) -> None:
        """Eckert wall shear stress and Petukhov sigma / recovery as a starting point."""
        self.compute_wall_state()
        self._eckert()
        self._petukhov()

    # ==================== Messe method ====================

    def _messe(self) -> Tuple[float, float, float]:
        if not (self.tau_w > 0.0 and np.isfinite(self.sigma)):
            self.compute_initial_guesses()
        if not np.isfinite(self.T_hat):
            self.set_center_conditions(self.Tm, self.um)
        self.balance = self._compute_outer_step()
        u_hat = self.u_hat
        h_r = self.data[self._center, _H] + 0.5 * self.recovery * u_hat * u_hat
        dot_q = self.tau_w * (h_r - self.data[0, _H]) / (self.sigma * u_hat)
        T_r = self._T_from_h(h_r, self.Tm)
        return dot_q, h_r, T_r

    @staticmethod
    def _step_factor(value: float, step: float, omega: float,
                     upper: Optional[float] = None) -> float:
        if value < step:
            return value / step * omega
        if upper is not None and value - step > upper:
            return (value - upper) / step * omega
        if abs(step) / value > 0.25:
            return 0.25 * value / abs(step) * omega
        return omega

    def _compute_outer_step(self) -> np.ndarray:
        """Newton iteration on (T_hat, u_hat) until mass and momentum balance."""
        self.dot_m = self.rho_m * self.um * self.area
        self.dot_i = self.dot_m * self.um
        self.dot_h = (self.hm + 0.5 * self.um * self.um) * self.dot_m
        dT = 1e-4 * self.Tm
        du = 1e-4 * self.um

        omega = 0.5
        reinitialized = False
        err = math.inf
        count = 0
        while err > 1e-9:
            T_hat, u_hat = self.T_hat, self.u_hat
            b_Tm = self._inner_step(T_hat - dT, u_hat)
            b_Tp = self._inner_step(T_hat + dT, u_hat)
            b_um = self._inner_step(T_hat, u_hat - du)
            b_up = self._inner_step(T_hat, u_hat + du)
            b = self._inner_step(T_hat, u_hat)
            self.compute_sigma_recovery()

            J = np.column_stack(((b_Tp - b_Tm) / (2.0 * dT), (b_up - b_um) / (2.0 * du)))
            err = np.linalg.norm(b)
            if np.linalg.norm(J[:, 0]) > 1e-12:
                X = np.linalg.solve(J, b)
                omega_T = self._step_factor(T_hat, X[0], omega, self.T_max)
                omega_u = self._step_factor(u_hat, X[1], omega)
                alpha = min(omega_T, omega_u)
                self.set_center_conditions(T_hat - alpha * X[0], u_hat - alpha * X[1])
            elif not reinitialized:
                logger.warning("singular boundary-layer Jacobian at Tm=%.2f K, restarting from Eckert",
                               self.Tm)
                self._reinitialize()
                omega = 0.1
                reinitialized = True
            else:
                logger.warning("singular boundary-layer Jacobian at Tm=%.2f K, residual %.3g kept",
                               self.Tm, err)
                break

            count += 1
            if count == 100:
                self._reinitialize()
                omega = 0.1
            if count > 500:
                raise TooManyIterations("boundary layer did not converge", self._state())
        return self.check_balance(energy=True)

    def _reinitialize(self) -> None:
        self.set_center_conditions(self.Tm, self.um)
        self.compute_initial_guesses()

    def _state(self) -> Dict[str, float]:
        return {"Dh": self.Dh, "Tm": self.Tm, "p": self.p, "um": self.um, "Tw": self.T_w}

    def _inner_step(self, T_hat: float, u_hat: float) -> np.ndarray:
        self.set_center_conditions(T_hat, u_hat)
        self.compute_wall_state()
        self.compute_velocity_profile()
        self.compute_temperature_profile()
        self.compute_turbulence()
        return self.check_balance(energy=False)

    # ==================== Profiles ====================

    def compute_wall_state(self) -> None:
        d = self.data
        T_w = d[0, _T]
        d[0, _Y] = d[0, _YP] = d[0, _UP] = d[0, _U] = 0.0
        d[0, _RHO] = self._rho_of(T_w)
        d[0, _CP] = self._h.deval(T_w)
        d[0, _H] = self._h.eval(T_w)
        d[0, _MU] = self._mu.eval(T_w)
        d[0, _LAM] = self._lambda.eval(T_w)

    def compute_velocity_profile(self) -> None:
        d = self.data
        c = self._center
        rho_w, mu_w, lam_w, h_w, T_w = d[0, _RHO], d[0, _MU], d[0, _LAM], d[0, _H], d[0, _T]
        rho_hat, h_hat, u_hat, y_hat = d[c, _RHO], d[c, _H], d[c, _U], d[c, _Y]

        psi = complex(mu_w / (self.sigma * lam_w)
                      * (h_hat + 0.5 * self.recovery * u_hat * u_hat - h_w)
                      * self.gas.alpha(T_w, self.p))
        phi = 1.0 + psi - rho_w / rho_hat
        sq_phi = cmath.sqrt(phi)
        chi = cmath.sqrt(psi * psi + 4.0 * phi)
        if not (abs(chi) > 1e-12 and abs(sq_phi) > 1e-12):
            raise CorrelationFail(
                f"degenerate velocity transformation at Dh={self.Dh:.4g} m, T_hat={d[c, _T]:.2f} K, "
                f"p={self.p:.1f} Pa, u_hat={u_hat:.3f} m/s, Tw={T_w:.2f} K")
        beta = cmath.asin(psi / chi)
        self._psi, self._phi = psi, phi

        self.compute_shear_stress()
        alpha = sq_phi * self.u_tau / u_hat

        kappa, B, E = self.kappa, self.B, self.E
        f = np.empty(self.n_nodes)
        dfdy = np.empty(self.n_nodes)
        f_k = 0.0
        for k, y_plus in enumerate(d[:, _YP]):
            f_k = spalding(B, kappa, E, y_plus, f_k)
            f[k] = f_k
            dfdy[k] = 1.0 / spalding_dydf(B, kappa, E, f_k)

        eta = self.eta
        u_plus = f + g_plus(kappa, self.Pi, eta)
        dgdy = dg_plus_deta(kappa, self.Pi, eta) / (y_hat * self.C_plus)
        du_plus_du = np.real(2.0 * phi / (alpha * chi * u_hat * np.cos(beta - alpha * u_plus)))
        d[:, _UP] = u_plus
        d[:, _U] = np.real((np.sin(u_plus * alpha - beta) * chi + psi) / (2.0 * phi)) * u_hat
        d[:, _DUDY] = (dfdy + dgdy) / du_plus_du * self.C_plus
        d[0, _U] = 0.0
        d[c, _U] = u_hat
        d[c, _DUDY] = 0.0

    def compute_shear_stress(self) -> None:
        """Solve the center law of the wall for the friction velocity."""
        d = self.data
        c = self._center
        rho_w, mu_w = d[0, _RHO], d[0, _MU]
        y_hat, u_hat = d[c, _Y], d[c, _U]
        psi, phi = self._psi, self._phi
        kappa = self.kappa

        a = cmath.sqrt(phi)
        cA0 = 1j * cmath.log(2.0 + 1j * psi / a)
        cA1 = 1j * cmath.log(2.0 * cmath.sqrt(1.0 + psi - phi) + 1j * (psi - 2.0 * phi) / a)
        dU = ((cA1 - cA0) / a).real * u_hat
        G = g_plus(kappa, self.Pi, 1.0)

        x = 1.0 / math.sqrt(self.tau_w / rho_w)
        F = math.inf
        count = 0
        while abs(F) > 1e-12:
            u_tau = 1.0 / x
            U = dU * x
            Y = rho_w * u_tau * y_hat / mu_w
            dY = -Y / x
            K = rho_w * self.k_tech * u_tau / mu_w
            dK = -K / x
            B = self.B_plus0 - math.log(1.0 + K / self.C_R) / kappa
            dB = -dK / (kappa * (K + self.C_R))
            E = math.exp(-kappa * B)
            F = spalding(B, kappa, E, Y) + G - U
            dF = dY / (Y * kappa) + dB - dU
            dx = F / dF
            damping = x / dx * 0.9 if x < dx else 0.9
            x -= damping * dx
            count += 1
            if count > 100:
                raise TooManyIterations("friction velocity did not converge", self._state())

        self.u_tau = 1.0 / x
        self.B, self.E = B, E
        self.tau_w = self.u_tau * self.u_tau * rho_w
        self.C_plus = rho_w * self.u_tau / mu_w
        d[:, _YP] = self.C_plus * d[:, _Y]

    def compute_temperature_profile(self) -> None:
        d = self.data
        c = self._center
        rho_hat, T_hat, u_hat = d[c, _RHO], d[c, _T], d[c, _U]
        upsilon = d[1:, _U] / u_hat
        rho = d[0, _RHO] / np.real(1.0 + upsilon * (self._psi - upsilon * self._phi))
        if np.any(~(rho > 0.0)):
            raise CorrelationFail(
                f"nonphysical density profile at Tm={self.Tm:.2f} K, p={self.p:.1f} Pa")
        rho = np.minimum(rho, self.rho_max)

        if self.gas.is_idgas():
            T = self.p / (self.gas.R() * rho)
        else:
            T = self._invert_volume(1.0 / rho, d[1:, _T])

        d[1:, _RHO] = rho
        d[1:, _T] = T
        d[c, _RHO] = rho_hat
        d[c, _T] = T_hat
        T = d[1:, _T]
        d[1:, _CP] = self._h.deval(T)
        d[1:, _H] = self._h.eval(T)
        d[1:, _MU] = self._mu.eval(T)
        d[1:, _LAM] = self._lambda.eval(T)

    def _invert_volume(self, v: np.ndarray, T_seed: np.ndarray) -> np.ndarray:
        """Damped Newton on v(T) = v for all nodes at once."""
        lo, hi = self._v.T_min, self._v.T_max
        T = np.where(np.isfinite(T_seed), T_seed, self.T_hat)
        T = np.clip(T, lo, hi)
        for _ in range(100):
            F = self._v.eval(T) - v
            if np.max(np.abs(F)) < 1e-9:
                return T
            T = np.clip(T - 0.9 * F / self._v.deval(T), lo, hi)
        raise TooManyIterations("temperature profile did not converge", self._state())

    def compute_turbulence(self) -> None:
        d = self.data
        tau_w = self.tau_w
        mu, cp, lam = d[:, _MU], d[:, _CP], d[:, _LAM]
        Pr = mu * cp / lam
        mu_T = mu * self.kappa * d[:, _YP]
        Pr_T = np.array([kays_crawford(Pr[k], mu[k], mu_T[k]) for k in range(self.n_nodes)])
        lam_T = mu_T * cp / Pr_T
        d[:, _PR] = Pr
        d[:, _MUT] = mu_T
        d[:, _PRT] = Pr_T
        d[:, _LAMT] = lam_T
        d[:, _PRM] = (mu + mu_T) * cp / (lam + lam_T)
        d[:, _TAU] = (mu + mu_T) * np.abs(d[:, _DUDY])
        d[0, _TAU] = tau_w
        d[:, _DTAUDY] = self.derive(d[:, _TAU])

    # ==================== Quadrature ====================

    def derive(self, values: np.ndarray) -> np.ndarray:
        """Derivative along y from a quadratic through each three-node cell."""
        y = self.data[:, _Y]
        f0, fm, f1 = values[0:-2:2], values[1::2], values[2::2]
        L = y[2::2] - y[0:-2:2]
        out = np.zeros(self.n_nodes)
        out[0:-2:2] += (2.0 * fm - 1.5 * f0 - 0.5 * f1) / L
        out[1::2] = (f1 - f0) / L
        out[2::2] += (0.5 * f0 + 1.5 * f1 - 2.0 * fm) / L
        # boundary nodes carry one estimate, corners shared by two cells carry two;
        # the corners take the mean of the two, not their sum, which sets dtau/dy
        # and so the van Driest sigma integrand there
        out[0] *= 2.0
        out[-1] *= 2.0
        out[0::2] *= 0.5
        return out

    def integrate(self, values: np.ndarray, axisymmetric: bool = False) -> np.ndarray:
        """Cumulative Simpson integral along y, optionally weighted with R."""
        d = self.data
        f = values * d[:, _R] if axisymmetric else values
        y = d[:, _Y]
        f0, fm, f1 = f[0:-2:2], f[1::2], f[2::2]
        L = y[2::2] - y[0:-2:2]
        out = np.zeros(self.n_nodes)
        out[2::2] = np.cumsum((f0 + f1 + 4.0 * fm) * L / 6.0)
        out[1::2] = out[0:-2:2] + (5.0 * f0 - f1 + 8.0 * fm) * L / 24.0
        return out

    def check_balance(self, energy: bool = False) -> np.ndarray:
        """Relative mass and momentum (and optionally energy) residuals of the profile."""
        d = self.data
        c = self._center
        scale = 2.0 * math.pi if self.axisymmetric else 1.0
        w0 = d[:, _RHO] * d[:, _U] * scale
        d[:, _W0] = w0
        d[:, _W1] = w0 * d[:, _U]
        mass = self.integrate(w0, self.axisymmetric)[c]
        momentum = self.integrate(d[:, _W1], self.axisymmetric)[c]
        result = [(mass - self.dot_m) / self.dot_m, (momentum - self.dot_i) / self.dot_i]
        if energy:
            enthalpy = self.integrate((d[:, _H] + 0.5 * d[:, _U]**2) * w0, self.axisymmetric)[c]
            h = enthalpy / self.dot_m - 0.5 * self.um * self.um
            result.append((self._T_from_h(h, self.Tm) - self.Tm) / self.Tm)
        return np.array(result)

    # ==================== Reynolds analogy ====================

    def compute_sigma_recovery(self) -> None:
        if self.sigma_recovery == SigmaRecoveryMode.VAN_DRIEST:
            self._van_driest()
        else:
            self._petukhov()

    def _van_driest(self) -> None:
        d = self.data
        c = self._center
        u_hat = d[c, _U]
        w0 = np.empty(self.n_nodes)
        w0[:c] = (1.0 - d[:c, _PRM]) * d[:c, _DTAUDY] / d[:c, _TAU]
        y = d[:, _Y]
        w0[c] = w0[c - 1] + (w0[c - 1] - w0[c - 2]) * (y[c] - y[c - 1]) / (y[c - 1] - y[c - 2])
        w1 = self.integrate(w0)

        w0 = d[:, _PRM] * np.exp(-w1) * d[:, _DUDY]
        sigma = self.integrate(w0)[c] / u_hat
        w1 = self.integrate(np.exp(w1) * d[:, _DUDY])
        recovery = 2.0 * self.integrate(w0 * w1)[c] / (u_hat * u_hat)

        if abs(sigma) > 20.0 or abs(recovery) > 20.0:
            logger.warning("van Driest analogy out of bounds (sigma=%.3g, r=%.3g), using Pr^(1/3)",
                           sigma, recovery)
            recovery = d[0, _PR]**(1.0 / 3.0)
            sigma = recovery * recovery
        self.sigma, self.recovery = sigma, recovery

    def _petukhov(self) -> None:
        cf = 2.0 * self.tau_w / (self.rho_m * self.um * self.um)
        r = self.Prm**(1.0 / 3.0)
        self.recovery = r
        self.sigma = (1.0 + 13.6 * cf) + (11.7 + 1.8 / r) * (r * r - 1.0) * math.sqrt(0.5 * cf)

    def compute_heatflux(self) -> float:
        """Wall heat flux from the wall temperature gradient of the reconstructed profile."""
        d = self.data
        rho_w = d[0, _RHO]
        dudy = self.tau_w / d[0, _MU]
        drhody = -self._psi.real * rho_w * dudy / self.u_hat
        drhodT = -rho_w * self.gas.alpha(d[0, _T], self.p)
        return d[0, _LAM] * drhody / drhodT

    # ==================== Algebraic methods ====================

    def _eckert(self) -> Tuple[float, float, float]:
        gas, p, um = self.gas, self.p, self.um
        T_ref = reference_temperature(gas, self.Tm, p, um, self.T_w, True)
        r = gas.Pr(T_ref, p)**(1.0 / 3.0)
        self.recovery, self.sigma = r, r * r
        rho_ref = gas.rho(T_ref, p)
        Re = rho_ref * um * self.Dh / gas.mu(T_ref, p)
        cf = cf_moody(Re, self.Dh, self.k_tech) * rho_ref / self.rho_m
        self.tau_w = 0.5 * cf * self.rho_m * um * um
        h_r = self.hm + 0.5 * r * um * um
        T_r = self._T_from_h(h_r, self.Tm)
        dot_q = self.tau_w / (self.sigma * um) * (h_r - self.data[0, _H])
        return dot_q, h_r, T_r

    def _bartz(self) -> Tuple[float, float, float]:
        gas, p, Tm, um, T_w = self.gas, self.p, self.Tm, self.um, self.T_w
        if not gas.is_idgas() or gas.number_of_components < 2:
            raise InvalidMixture("Bartz needs a multi-component ideal-gas mixture")
        if self.bartz_constant is None:
            raise InvalidGeometry("Bartz constant not set, call set_bartz_geometry_params first")

        cp = gas.cp(Tm, p)
        k = gas.gamma(Tm, p)
        Ma = um / gas.c(Tm, p)
        mu = gas.mu(Tm, p)
        Pr = gas.Pr(Tm, p)
        Re = self.rho_m * um * self.Dh / mu
        if abs(Tm - T_w) > 1e-6 * Tm:
            omega = math.log(mu / gas.mu(T_w, p)) / math.log(Tm / T_w)
        else:
            omega = math.log(gas.mu(1.01 * Tm, p) / mu) / math.log(1.01)

        f = 1.0 + 0.5 * (k - 1.0) * Ma * Ma
        correction = (0.5 * T_w / Tm * f + 0.5)**(0.2 * omega - 0.8) * f**(-0.2 * omega)
        self.sigma = Pr**0.6
        self.recovery = 1.0
        alpha = 0.026 * cp / self.sigma * Re**-0.2 * self.bartz_constant \
            * self.rho_m * um * correction
        dot_q = alpha * (Tm - T_w)
        h_r = self.hm + 0.5 * um * um
        T_r = self._T_from_h(h_r, Tm)
        St = dot_q / (self.rho_m * um * (h_r - self.data[0, _H]))
        self.tau_w = St * self.sigma * self.rho_m * um * um
        return dot_q, h_r, T_r

    def _require_methane(self) -> None:
        if self.gas.species != ["CH4"]:
            raise InvalidMixture(f"{self.method.value} is only valid for pure methane")

    def _pizzarelli(self) -> Tuple[float, float, float]:
        self._require_methane()
        gas, p, Tb, um = self.gas, self.p, self.Tm, self.um
        d = self.data
        T_w, rho_w, mu_w, k_w, h_w = d[0, _T], d[0, _RHO], d[0, _MU], d[0, _LAM], d[0, _H]
        rho_b, mu_b, k_b, cp_b = self.rho_m, gas.mu(Tb, p), gas.lambda_(Tb, p), gas.cp(Tb, p)
        Re = rho_b * um * self.Dh / mu_b
        Pr = mu_b * cp_b / k_b
        cp_m = (h_w - self.hm) / (T_w - Tb) if abs(T_w - Tb) > 1e-6 else cp_b

        Nu = 0.0272 * Re**0.8 * Pr**0.353 * (T_w / Tb)**-0.607 * (rho_w / rho_b)**0.357 \
            * (mu_w / mu_b)**-0.662 * (k_w / k_b)**0.397 * (cp_m / cp_b)**0.351 \
            * (p / gas.p_crit)**0.042
        St = Nu / (Re * Pr)
        self.sigma = Pr**0.647
        self.recovery = 0.0
        h_r = self.hm
        dot_q = St * rho_b * um * (h_r - h_w)
        self.tau_w = self.sigma * St * rho_b * um * um
        return dot_q, h_r, Tb

    def _lebedinsky_kalmykov(self) -> Tuple[float, float, float]:
        self._require_methane()
        gas, p, Tm, um = self.gas, self.p, self.Tm, self.um
        Re = self.rho_m * um * self.Dh / gas.mu(Tm, p)
        Pr = self.Prm
        Nu = 0.0185 * Re**0.8 * Pr**0.4 * (Tm / self.T_w)**0.1
        St = Nu / (Re * Pr)
        dot_q = St * self.rho_m * um * (self.hm - self.data[0, _H])

        # shear stress by Reynolds analogy with the Petukhov sigma
        scale = St * self.rho_m * um * um
        tau = scale
        for _ in range(100):
            self.tau_w = tau
            self._petukhov()
            tau_new = self.sigma * scale
            if abs(tau_new - tau) <= 1e-6 * tau:
                break
            tau = 0.1 * tau + 0.9 * tau_new
        else:
            raise TooManyIterations("Lebedinsky-Kalmykov shear stress did not converge", self._state())
        self.tau_w = tau_new
        self.recovery = 0.0
        return dot_q, self.hm, Tm
