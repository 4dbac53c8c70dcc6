"""Implicit finite-rate chemistry step for a Chemkin mechanism.

One call to ``ReactionScheme.compute`` advances the mass fractions of the
reacting species and the temperature over the residence time of one axial
step at constant pressure:

    (I - C1 J) dY = C1 dY/dt + C2 dY_prev

with C1 = dx/u, C2 = 0 on the first step and C1 = 2/3 dx/u, C2 = 1/3 after.
Reductions are clipped so that no mass fraction becomes negative.

Module Summary:
- Classes:
    - ``Fuel``: Fuel selector.
    - ``Oxidizer``: Oxidizer selector.
    - ``ReactionScheme``: Combustion gas, reactions and the implicit step.
"""

import logging
from enum import Enum
from typing import List

import numpy as np

from .chemkin import ChemkinFile
from .reactions import Reaction, create_reaction
from ..errors import InvalidInput, InvalidMixture
from ..thermo import AIR, Mixture

logger = logging.getLogger(__name__)


class Fuel(Enum):
    LH2 = "H2"
    LCH4 = "CH4"
    LNG = "LNG"
    LC3H6 = "C3H6"
    C2H5OH = "C2H5OH"

    @classmethod
    def from_string(cls, text: str) -> "Fuel":
        key = text.strip().upper()
        aliases = {"H2": cls.LH2, "LH2": cls.LH2, "HYDROGEN": cls.LH2,
                   "CH4": cls.LCH4, "LCH4": cls.LCH4, "METHANE": cls.LCH4,
                   "C3H6": cls.LC3H6, "LC3H6": cls.LC3H6, "PROPENE": cls.LC3H6,
                   "LNG": cls.LNG, "C2H5OH": cls.C2H5OH, "ETHANOL": cls.C2H5OH}
        if key not in aliases:
            raise InvalidInput(f"unknown fuel '{text}'")
        return aliases[key]


class Oxidizer(Enum):
    LOX = "O2"
    H2O2 = "H2O2"
    AIR = "AIR"

    @classmethod
    def from_string(cls, text: str) -> "Oxidizer":
        key = text.strip().upper()
        aliases = {"O2": cls.LOX, "LOX": cls.LOX, "LO2": cls.LOX, "OXYGEN": cls.LOX,
                   "H2O2": cls.H2O2, "HTP": cls.H2O2, "AIR": cls.AIR}
        if key not in aliases:
            raise InvalidInput(f"unknown oxidizer '{text}'")
        return aliases[key]


class ReactionScheme:
    """Finite-rate chemistry of one mechanism.

    The combustion gas holds the reacting species of the mechanism first,
    followed by inert air components that the mechanism does not contain.
    Its initial composition is the pure oxidizer.

    Args:
        path: Chemkin mechanism file
        fuel: ``Fuel`` or its name; must be a species of the mechanism
        oxidizer: ``Oxidizer`` or its name; only O2-based oxidizers are supported
        mechanism: Cantera file that supplies the species thermo data

    Raises:
        InvalidMixture: If the fuel or O2 is missing, or for an H2O2 oxidizer
    """

    def __init__(self, path: str, fuel=Fuel.LH2, oxidizer=Oxidizer.LOX,
                 mechanism: str = "gri30.yaml"):
        if isinstance(fuel, str):
            fuel = Fuel.from_string(fuel)
        if isinstance(oxidizer, str):
            oxidizer = Oxidizer.from_string(oxidizer)
        self.fuel = fuel
        self.oxidizer = oxidizer

        chemkin = ChemkinFile(path)
        species = chemkin.species()
        self.n_reacting = len(species)
        if fuel.value not in species:
            raise InvalidMixture(f"fuel {fuel.value} is not part of {path}")

        if oxidizer == Oxidizer.AIR:
            species += [label for label in AIR if label not in species]
            composition = dict(AIR)
        elif oxidizer == Oxidizer.LOX:
            composition = {"O2": 1.0}
        else:
            raise InvalidMixture(f"oxidizer {oxidizer.value} is not supported, only O2 based ones")
        if "O2" not in species:
            raise InvalidMixture(f"could not find O2 in {path}")

        self.combgas = Mixture(composition, "idgas", mechanism, molar=True, species=species)
        self.initial_molar = self.combgas.molar_fractions
        self.fuel_index = species.index(fuel.value)
        self.oxidizer_index = species.index("O2")

        index = {label: k for k, label in enumerate(species)}
        self.reactions: List[Reaction] = [
            create_reaction(entry, index, self.n_reacting, len(species))
            for entry in chemkin.reactions]

        n = self.n_reacting
        self.M = self.combgas.molecular_weights
        self.Y = self.combgas.mass_fractions
        self.Y0 = np.array(self.Y)
        self.h = np.zeros(n)
        self.dYdt = np.zeros(n)
        self.dTdt = 0.0
        self.jacobian = np.zeros((n + 1, n + 1))
        self.lhs = np.zeros(n + 1)
        self.count = 0
        logger.info("reaction scheme %s: %d reacting species, %d reactions",
                    path, n, len(self.reactions))

    @property
    def species(self) -> List[str]:
        return self.combgas.species

    def reset_combgas_mixture(self) -> None:
        """Back to the pure oxidizer; the next step is a first step again."""
        self.combgas.remix(self.initial_molar, molar=True)
        self.Y = self.combgas.mass_fractions
        self.count = 0
        self.lhs[:] = 0.0

    def set_Y0(self, Y) -> None:
        """Reference composition of ``delta_w`` and ``delta_R``."""
        self.Y0 = np.array(Y, dtype=float)

    # ==================== Step ====================

    def _preprocess(self, T: float, p: float) -> None:
        gas = self.combgas
        n = self.n_reacting
        self.Y = gas.mass_fractions
        # specific volume in cm^3/kg
        self.V = gas.v(T, p) * 1e6
        self.c = self.Y / self.M / self.V
        self.alpha = gas.alpha(T, p)
        self.h = gas.species_h(T)[:n]
        self.cp = gas.species_cp(T)
        self.dcpdT = gas.species_dcpdT(T)
        self.G = gas.gibbs(T)
        self.dGdT = gas.dgibbs_dT(T)

    def _compute_jacobian(self, T: float) -> None:
        n = self.n_reacting
        S = np.zeros(n)
        J = np.zeros((n + 1, n + 1))
        p_ref = self.combgas.reference_pressure
        for reaction in self.reactions:
            reaction.eval(T, self.c, self.Y, self.alpha, self.G, self.dGdT, p_ref, S, J)

        M = self.M[:n]
        self.dYdt = S * M * self.V
        J[:n, :n] *= M[:, None]
        J[:n, n] *= M
        J *= self.V

        cp = self.cp @ self.Y
        dcp = self.dcpdT @ self.Y
        dHdt = self.h @ self.dYdt
        J[n, :n] = -(self.h @ J[:n, :n]) / cp + dHdt * self.cp[:n] / (cp * cp)
        J[n, n] = -(self.h @ J[:n, n] + self.cp[:n] @ self.dYdt) / cp + dHdt * dcp / (cp * cp)
        self.jacobian = J
        self.dTdt = -dHdt / cp

    def compute(self, T: float, p: float, u: float, dx: float) -> float:
        """Advance the composition over dx at velocity u.

        The new mass fractions are written to the combustion gas.

        Args:
            T: Temperature (K)
            p: Pressure (Pa)
            u: Velocity (m/s)
            dx: Step length (m)

        Returns:
            Temperature change over the step (K)
        """
        if u <= 0.0 or dx <= 0.0:
            raise InvalidInput(f"step needs positive u and dx, got u={u}, dx={dx}")
        n = self.n_reacting
        self._preprocess(T, p)
        self._compute_jacobian(T)

        if self.count == 0:
            C1, C2 = dx / u, 0.0
        else:
            C1, C2 = 2.0 / 3.0 * dx / u, 1.0 / 3.0
        rhs = np.empty(n + 1)
        rhs[:n] = C1 * self.dYdt + C2 * self.lhs[:n]
        rhs[n] = C1 * self.dTdt + C2 * self.lhs[n]

        A = np.eye(n + 1) - C1 * self.jacobian
        dY = np.linalg.solve(A, rhs)
        # no species may drop below zero
        dY[:n] = np.maximum(dY[:n], -self.Y[:n])
        self.lhs = dY
        self.Y = np.array(self.Y)
        self.Y[:n] += dY[:n]
        self.combgas.remix(self.Y)
        self.count += 1
        logger.debug("chemistry step %d: dT=%.4g K, Y_fuel=%.6g",
                     self.count, dY[n], self.Y[self.fuel_index])
        return dY[n]

    # ==================== Balances ====================

    def delta_w(self) -> float:
        """Chemical enthalpy change sum((Y - Y0) h) of the reacting species (J/kg)."""
        n = self.n_reacting
        return float((self.Y[:n] - self.Y0[:n]) @ self.h)

    def delta_R(self) -> float:
        """Change sum((Y - Y0)/M) of the molar amount per mass (mol/kg)."""
        n = self.n_reacting
        return float((self.Y[:n] - self.Y0[:n]) @ (1.0 / self.M[:n]))
