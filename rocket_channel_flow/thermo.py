"""Thermodynamic and transport properties of the working fluid.

This module wraps Cantera (ideal-gas mixtures with chemical equilibrium) and
CoolProp (real-gas Helmholtz and SRK equations of state) behind a single
``Mixture`` class that the boundary-layer solver, the channel ODE and the
reaction scheme share.

Key features:
- Caloric and transport properties at (T, p): rho, v, h, s, cp, cv, gamma,
  R, M, c, mu, lambda, Pr
- Real-gas partial derivatives alpha, kappa, beta used by the channel Jacobian
- Newton inversions ``T_from_h``, ``isen_T``, ``isen_p`` and ``total``
- Equilibrium remixing at (T, p) for ideal-gas mixtures

Module Summary:
- Classes:
    - ``GasModel``: IDGAS / HELMHOLTZ / SRK selector.
    - ``Mixture``: property evaluator for one working fluid.
- Functions:
    - ``cantera_label(name)``: Cantera species label for a CoolProp fluid name.
    - ``coolprop_name(label)``: CoolProp fluid name for a species label.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import cantera as ct
import CoolProp.CoolProp as CP

from .errors import InvalidInput, InvalidMixture, OutOfRange, TooManyIterations

logger = logging.getLogger(__name__)

# CoolProp fluid name -> Cantera species label
_CANTERA_LABELS = {
    "Methane": "CH4",
    "Ethane": "C2H6",
    "Propane": "C3H8",
    "Propylene": "C3H6",
    "Ethanol": "C2H5OH",
    "Hydrogen": "H2",
    "Oxygen": "O2",
    "Nitrogen": "N2",
    "Argon": "AR",
    "CarbonDioxide": "CO2",
    "CarbonMonoxide": "CO",
    "Water": "H2O",
}
_COOLPROP_NAMES = {v: k for k, v in _CANTERA_LABELS.items()}

# Standard molar composition of air
AIR = {"N2": 0.78084, "O2": 0.20946, "AR": 0.00934, "CO2": 0.00036}


def cantera_label(name: str) -> str:
    """Return the Cantera species label of a CoolProp fluid (or the label itself)."""
    if name in _CANTERA_LABELS:
        return _CANTERA_LABELS[name]
    return name.upper()


def coolprop_name(label: str) -> str:
    """Return the CoolProp fluid name of a species label (or the name itself)."""
    return _COOLPROP_NAMES.get(label.upper(), label)


class GasModel(Enum):
    IDGAS = "idgas"
    HELMHOLTZ = "helmholtz"
    SRK = "srk"

    @classmethod
    def from_string(cls, text: str) -> "GasModel":
        key = text.strip().lower().replace("-", "").replace("_", "")
        aliases = {"idgas": cls.IDGAS, "idealgas": cls.IDGAS, "ideal": cls.IDGAS,
                   "helmholtz": cls.HELMHOLTZ, "heos": cls.HELMHOLTZ,
                   "srk": cls.SRK, "cubic": cls.SRK}
        if key not in aliases:
            raise InvalidInput(f"unknown gas model '{text}'")
        return aliases[key]


def _cantera_species_subset(mechanism: str, labels: Sequence[str]) -> ct.Solution:
    """Build an ideal-gas solution that only holds ``labels`` (case-insensitive)."""
    pool = {s.name.upper(): s for s in ct.Species.list_from_file(mechanism)}
    missing = [k for k in labels if k.upper() not in pool]
    if missing:
        raise InvalidMixture(f"species {missing} not found in {mechanism}")
    species = [pool[k.upper()] for k in labels]
    gas = ct.Solution(thermo="ideal-gas", kinetics="gas", species=species, reactions=[])
    gas.transport_model = "mixture-averaged"
    return gas


class Mixture:
    """Property evaluator for the working fluid.

    Args:
        composition: Either a single fluid / species name, or a mapping from
            species label to fraction
        model: Gas model, ``GasModel`` or its string name
        mechanism: Cantera mechanism used for ideal-gas thermo and for transport
            of the SRK model
        molar: Whether the fractions in ``composition`` are molar (default) or mass
        species: Optional explicit species list of the ideal-gas mixture. By
            default an ideal-gas mixture carries every species of ``mechanism``
            so that equilibrium remixing can produce all of them.

    Note:
        - All properties are specific (per kg) SI values; ``M`` is in kg/mol.
        - ``alpha = (1/v)(dv/dT)_p``, ``kappa = -(1/v)(dv/dp)_T``,
          ``beta = (1/p)(dp/dT)_v``.
    """

    def __init__(
            self,
            composition: Union[str, Dict[str, float]],
            model: Union[GasModel, str] = GasModel.IDGAS,
            mechanism: str = "gri30.yaml",
            molar: bool = True,
            species: Optional[Sequence[str]] = None,
    ):
        if isinstance(model, str):
            model = GasModel.from_string(model)
        self.model = model
        self.mechanism = mechanism
        if isinstance(composition, str):
            composition = {composition: 1.0}
        if not composition:
            raise InvalidMixture("empty composition")

        if model == GasModel.IDGAS:
            if species is None:
                self._gas = ct.Solution(mechanism)
            else:
                self._gas = _cantera_species_subset(mechanism, list(species))
            self._labels = list(self._gas.species_names)
            self._Mk = self._gas.molecular_weights * 1e-3
            X = np.zeros(len(self._labels))
            for name, value in composition.items():
                X[self._index(cantera_label(name))] = value
            self.T_min = 200.0
            self.T_max = 6000.0
        else:
            names = [coolprop_name(cantera_label(k)) for k in composition]
            if model == GasModel.HELMHOLTZ and len(names) > 1:
                raise InvalidMixture(
                    "a Helmholtz mixture must consist of exactly one pure fluid")
            backend = "HEOS" if model == GasModel.HELMHOLTZ else "SRK"
            try:
                self._state = CP.AbstractState(backend, "&".join(names))
            except ValueError as e:
                raise InvalidMixture(f"CoolProp cannot build {backend} for {names}: {e}") from e
            self._labels = [cantera_label(n) for n in names]
            self._Mk = np.array([CP.PropsSI("molar_mass", n) for n in names])
            X = np.array(list(composition.values()), dtype=float)
            # transport of the cubic model comes from the ideal-gas species data
            self._gas = None if model == GasModel.HELMHOLTZ else \
                _cantera_species_subset(mechanism, self._labels)
            if model == GasModel.HELMHOLTZ:
                self.T_min = self._state.Tmin()
                self.T_max = self._state.Tmax()
            else:
                self.T_min = max(CP.PropsSI("Tmin", n) for n in names)
                self.T_max = 3000.0

        self._last = None
        self._bounds: Dict[float, Tuple[float, float]] = {}
        self.remix(X, molar=molar)

    # ==================== Composition ====================

    def _index(self, label: str) -> int:
        for k, name in enumerate(self._labels):
            if name.upper() == label.upper():
                return k
        raise InvalidMixture(f"species '{label}' is not part of this mixture")

    @property
    def species(self) -> List[str]:
        return list(self._labels)

    @property
    def number_of_components(self) -> int:
        return len(self._labels)

    def species_index(self, label: str) -> int:
        return self._index(label)

    def is_idgas(self) -> bool:
        return self.model == GasModel.IDGAS

    @property
    def molecular_weights(self) -> np.ndarray:
        """Species molar masses (kg/mol)."""
        return np.array(self._Mk)

    @property
    def mass_fractions(self) -> np.ndarray:
        return np.array(self._Y)

    @property
    def molar_fractions(self) -> np.ndarray:
        n = self._Y / self._Mk
        return n / n.sum()

    def remix(self, fractions: Sequence[float], molar: bool = False) -> None:
        """Reset the composition.

        Args:
            fractions: Mass fractions (or molar fractions when ``molar``), one
                per species in ``self.species`` order
            molar: Interpret ``fractions`` as molar fractions
        """
        F = np.array(fractions, dtype=float)
        if F.shape != (len(self._labels),):
            raise InvalidMixture(
                f"expected {len(self._labels)} fractions, got {F.shape}")
        if np.any(F < 0.0) or F.sum() <= 0.0:
            raise InvalidMixture("fractions must be nonnegative and not all zero")
        if molar:
            F = F * self._Mk
            F = F / F.sum()
        elif abs(F.sum() - 1.0) > 1e-12:
            F = F / F.sum()
        self._Y = F
        self._last = None
        self._bounds.clear()
        if self.model == GasModel.SRK and len(F) > 1:
            self._state.set_mass_fractions(list(F))

    def remix_to_equilibrium(self, T: float, p: float,
                             update_composition: bool = True) -> np.ndarray:
        """Chemical-equilibrium mass fractions at (T, p).

        Args:
            T: Temperature (K)
            p: Pressure (Pa)
            update_composition: Store the result as the new composition

        Returns:
            Equilibrium mass fractions
        """
        if not self.is_idgas():
            raise InvalidMixture("equilibrium remixing needs an ideal-gas mixture")
        self._gas.TPY = T, p, self._Y
        self._gas.equilibrate("TP")
        Y = np.clip(self._gas.Y, 0.0, None)
        Y = Y / Y.sum()
        if update_composition:
            self._Y = Y
            self._last = None
            self._bounds.clear()
        return np.array(Y)

    # ==================== State evaluation ====================

    def _set(self, T: float, p: float) -> None:
        if self._last == (T, p):
            return
        try:
            if self.model == GasModel.IDGAS:
                self._gas.TPY = T, p, self._Y
            else:
                self._state.update(CP.PT_INPUTS, p, T)
                if self._gas is not None:
                    self._gas.TPY = T, p, self._Y
        except (ValueError, ct.CanteraError) as e:
            self._last = None
            raise OutOfRange(f"cannot evaluate state T={T:.3f} K, p={p:.1f} Pa: {e}") from e
        self._last = (T, p)

    def rho(self, T: float, p: float) -> float:
        self._set(T, p)
        return self._gas.density if self.is_idgas() else self._state.rhomass()

    def v(self, T: float, p: float) -> float:
        return 1.0 / self.rho(T, p)

    def h(self, T: float, p: float) -> float:
        self._set(T, p)
        return self._gas.enthalpy_mass if self.is_idgas() else self._state.hmass()

    def s(self, T: float, p: float) -> float:
        self._set(T, p)
        return self._gas.entropy_mass if self.is_idgas() else self._state.smass()

    def cp(self, T: float, p: float) -> float:
        self._set(T, p)
        return self._gas.cp_mass if self.is_idgas() else self._state.cpmass()

    def cv(self, T: float, p: float) -> float:
        self._set(T, p)
        return self._gas.cv_mass if self.is_idgas() else self._state.cvmass()

    def dcpdT(self, T: float, p: float) -> float:
        dT = 1e-3 * T
        return (self.cp(T + dT, p) - self.cp(T - dT, p)) / (2.0 * dT)

    def gamma(self, T: float, p: float) -> float:
        return self.cp(T, p) / self.cv(T, p)

    def M(self, T: float = 300.0, p: float = ct.one_atm) -> float:
        """Mean molar mass (kg/mol)."""
        return 1.0 / np.sum(self._Y / self._Mk)

    def R(self, T: float = 300.0, p: float = ct.one_atm) -> float:
        """Specific gas constant (J/kg/K)."""
        return ct.gas_constant * 1e-3 / self.M(T, p)

    def c(self, T: float, p: float) -> float:
        """Speed of sound (m/s); frozen for ideal-gas mixtures."""
        if self.is_idgas():
            return np.sqrt(self.gamma(T, p) * self.R() * T)
        self._set(T, p)
        return self._state.speed_sound()

    def alpha(self, T: float, p: float) -> float:
        """Isobaric expansion coefficient (1/K)."""
        if self.is_idgas():
            return 1.0 / T
        self._set(T, p)
        return self._state.isobaric_expansion_coefficient()

    def kappa(self, T: float, p: float) -> float:
        """Isothermal compressibility (1/Pa)."""
        if self.is_idgas():
            return 1.0 / p
        self._set(T, p)
        return self._state.isothermal_compressibility()

    def beta(self, T: float, p: float) -> float:
        """Isochoric pressure coefficient (1/K)."""
        return self.alpha(T, p) / (self.kappa(T, p) * p)

    def mu(self, T: float, p: float) -> float:
        self._set(T, p)
        if self.model == GasModel.HELMHOLTZ:
            return self._state.viscosity()
        return self._gas.viscosity

    def lambda_(self, T: float, p: float) -> float:
        self._set(T, p)
        if self.model == GasModel.HELMHOLTZ:
            return self._state.conductivity()
        return self._gas.thermal_conductivity

    def Pr(self, T: float, p: float) -> float:
        return self.mu(T, p) * self.cp(T, p) / self.lambda_(T, p)

    def dsdT(self, T: float, p: float) -> float:
        return self.cp(T, p) / T

    def dsdp(self, T: float, p: float) -> float:
        return -self.v(T, p) * self.alpha(T, p)

    def dhdp(self, T: float, p: float) -> float:
        return self.v(T, p) * (1.0 - T * self.alpha(T, p))

    def p(self, T: float, v: float) -> float:
        """Pressure from temperature and specific volume."""
        if self.is_idgas():
            return self.R() * T / v
        try:
            self._state.update(CP.DmassT_INPUTS, 1.0 / v, T)
        except ValueError as e:
            raise OutOfRange(f"cannot evaluate p at T={T:.3f} K, v={v:.6g} m3/kg: {e}") from e
        self._last = None
        return self._state.p()

    @property
    def p_crit(self) -> float:
        if self.model == GasModel.IDGAS:
            raise InvalidMixture("no critical point for an ideal-gas mixture")
        return self._state.p_critical()

    # ==================== Inversions ====================

    def T_from_h(self, h: float, p: float, T_guess: Optional[float] = None) -> float:
        """Invert h(T, p) by Newton with cp slope.

        Raises:
            OutOfRange: If ``h`` is outside [h(T_min, p), h(T_max, p)]
        """
        if p not in self._bounds:
            self._bounds[p] = (self.h(self.T_min, p), self.h(self.T_max, p))
        h_lo, h_hi = self._bounds[p]
        if not (h_lo <= h <= h_hi):
            raise OutOfRange(
                f"h={h:.6g} J/kg outside [{h_lo:.6g}, {h_hi:.6g}] at p={p:.1f} Pa")

        T = T_guess if T_guess is not None else \
            self.T_min + (h - h_lo) / (h_hi - h_lo) * (self.T_max - self.T_min)
        for _ in range(100):
            dT = (self.h(T, p) - h) / self.cp(T, p)
            T_new = min(max(T - dT, self.T_min), self.T_max)
            if abs(T_new - T) < 1e-10 * T:
                return T_new
            T = T_new
        raise TooManyIterations("T_from_h did not converge", {"h": h, "p": p, "T": T})

    def isen_T(self, T0: float, p0: float, p: float) -> float:
        """Temperature reached along s = s(T0, p0) at pressure p."""
        s0 = self.s(T0, p0)
        T = T0 * (p / p0)**(self.R() / self.cp(T0, p0))
        for _ in range(100):
            dT = (self.s(T, p) - s0) / self.dsdT(T, p)
            T -= dT
            if abs(dT) < 1e-12 * T:
                return T
        raise TooManyIterations("isen_T did not converge", {"T0": T0, "p0": p0, "p": p})

    def isen_p(self, T0: float, p0: float, T: float) -> float:
        """Pressure reached along s = s(T0, p0) at temperature T."""
        s0 = self.s(T0, p0)
        p = p0 * (T / T0)**(self.cp(T0, p0) / self.R())
        for _ in range(100):
            dp = (self.s(T, p) - s0) / self.dsdp(T, p)
            # keep p positive on a poor initial guess
            p = 0.5 * p if dp >= p else p - dp
            if abs(dp) < 1e-12 * p:
                return p
        raise TooManyIterations("isen_p did not converge", {"T0": T0, "p0": p0, "T": T})

    def total(self, T: float, p: float, u: float) -> Tuple[float, float]:
        """Total temperature and pressure of the static state (T, p) moving at u."""
        ht = self.h(T, p) + 0.5 * u * u
        Tt = T + 0.5 * u * u / self.cp(T, p)
        pt = self.isen_p(T, p, Tt)
        for _ in range(100):
            Tt_new = self.T_from_h(ht, pt, Tt)
            pt = self.isen_p(T, p, Tt_new)
            if abs(Tt_new - Tt) < 1e-10 * Tt:
                return Tt_new, pt
            Tt = Tt_new
        raise TooManyIterations("total state did not converge", {"T": T, "p": p, "u": u})

    # ==================== Species data (ideal gas) ====================

    @property
    def reference_pressure(self) -> float:
        return ct.one_atm

    def _species_state(self, T: float) -> ct.Solution:
        if not self.is_idgas():
            raise InvalidMixture("species data needs an ideal-gas mixture")
        self._gas.TP = T, ct.one_atm
        self._last = None
        return self._gas

    def gibbs(self, T: float) -> np.ndarray:
        """Standard-state molar Gibbs energies (J/mol)."""
        return self._species_state(T).standard_gibbs_RT * ct.gas_constant * 1e-3 * T

    def dgibbs_dT(self, T: float) -> np.ndarray:
        """Temperature derivative of the standard molar Gibbs energies (J/mol/K)."""
        return -self._species_state(T).standard_entropies_R * ct.gas_constant * 1e-3

    def species_h(self, T: float) -> np.ndarray:
        """Species enthalpies including formation (J/kg)."""
        gas = self._species_state(T)
        return gas.standard_enthalpies_RT * ct.gas_constant * T / gas.molecular_weights

    def species_cp(self, T: float) -> np.ndarray:
        """Species specific heats (J/kg/K)."""
        gas = self._species_state(T)
        return gas.standard_cp_R * ct.gas_constant / gas.molecular_weights

    def species_dcpdT(self, T: float) -> np.ndarray:
        dT = 1e-3 * T
        return (self.species_cp(T + dT) - self.species_cp(T - dT)) / (2.0 * dT)

    def alternate(self) -> "Mixture":
        """SRK copy of a pure fluid, used above the Helmholtz validity range."""
        if self.model != GasModel.HELMHOLTZ:
            raise InvalidMixture("only Helmholtz mixtures carry an alternate model")
        return Mixture(self._labels[0], GasModel.SRK, self.mechanism)
