"""Elementary reactions with analytic temperature and composition derivatives.

Every reaction contributes

    S_i  += dnu_i (k1 Psi1 - k2 Psi2)
    J_ij += dnu_i (k1 dPsi1/dY_j - k2 dPsi2/dY_j)
    J_iT += dnu_i (dk1/dT Psi1 + k1 dPsi1/dT - dk2/dT Psi2 - k2 dPsi2/dT)

to the molar source term and its Jacobian. Psi are the concentration products
of the educts and products, k1 the forward rate and k2 the backward rate from
the equilibrium constant.

Module Summary:
- Constants: ``RM`` (J/mol/K), ``RM_CAL`` (cal/mol/K).
- Functions:
    - ``arrhenius(coefficients, T)``: Rate and its temperature derivative.
    - ``create_reaction(entry, species_index, n_reacting, n_species)``: Factory.
- Classes:
    - ``Reaction``: Common stoichiometry, Psi terms and backward rate.
    - ``ArrheniusReaction``, ``LindemannReaction``, ``TroeReaction``,
      ``DuplicateReaction``: Forward-rate variants.

Reference:
    Gerlinger, P., "Numerische Verbrennungssimulation", Springer 2005,
    Eq. (2.44), (2.59), (3.9).
"""

import math
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from .chemkin import ReactionEntry, parse_stoichiometry
from ..errors import InvalidMixture, ParseError

RM = 8.314462618
RM_CAL = 1.987204258640832

# concentrations below this count as absent in dPsi/dY
_EPSILON_Y = 1e-12


def arrhenius(coefficients: Sequence[float], T: float) -> Tuple[float, float]:
    """A T^b exp(-E_a/(R T)) with E_a in cal/mol.

    Returns:
        Tuple of (k, dk/dT)
    """
    A, b, Ea = coefficients
    if b == 0.0:
        k = A * math.exp(-Ea / (RM_CAL * T))
    else:
        k = A * T**b * math.exp(-Ea / (RM_CAL * T))
    return k, k * (Ea + b * RM_CAL * T) / (RM_CAL * T * T)


class Reaction:
    """Stoichiometry and rate terms shared by all variants.

    Args:
        educts: (species index, nu) pairs
        products: (species index, nu) pairs
        n_reacting: Number of reacting species; they come first in the mixture
        third_body_weights: Enhancement factor per mixture species, or None
            for a reaction without third body

    Note:
        For falloff reactions the third-body concentration enters through the
        reduced pressure only, so ``Psi`` does not carry it.
    """

    third_body_in_psi = True

    def __init__(self, educts: Sequence[Tuple[int, float]], products: Sequence[Tuple[int, float]],
                 n_reacting: int, third_body_weights: Optional[np.ndarray] = None):
        self.educt_index = np.array([k for k, _ in educts], dtype=int)
        self.educt_nu = np.array([nu for _, nu in educts], dtype=float)
        self.product_index = np.array([k for k, _ in products], dtype=int)
        self.product_nu = np.array([nu for _, nu in products], dtype=float)
        self.weights = third_body_weights
        self.sum_nu = self.educt_nu.sum() - self.product_nu.sum()

        self.delta_nu = np.zeros(n_reacting)
        np.subtract.at(self.delta_nu, self.educt_index, self.educt_nu)
        np.add.at(self.delta_nu, self.product_index, self.product_nu)

        self.Cm = 1.0
        self.dCmdT = 0.0

    @property
    def has_third_body(self) -> bool:
        return self.weights is not None

    def forward_rate(self, T: float) -> Tuple[float, float]:
        raise NotImplementedError

    def _third_body(self, c: np.ndarray, alpha: float) -> None:
        if self.has_third_body:
            self.Cm = float(self.weights @ c)
            self.dCmdT = -self.Cm * alpha
        else:
            self.Cm = 1.0
            self.dCmdT = 0.0

    def _psi(self, c, Y, alpha, index, nu, n):
        """Concentration product with its Y and T derivatives."""
        with_cm = self.has_third_body and self.third_body_in_psi
        psi = (self.Cm if with_cm else 1.0) * np.prod(c[index]**nu)
        dpsi_dY = np.zeros(n)
        present = Y[index] > _EPSILON_Y
        dpsi_dY[index[present]] = psi * nu[present] / Y[index[present]]
        phi = -nu.sum() - (1.0 if with_cm else 0.0)
        return psi, dpsi_dY, alpha * phi * psi

    def _backward_rate(self, T: float, k1: float, dk1dT: float, G: np.ndarray,
                       dGdT: np.ndarray, p_ref: float) -> Tuple[float, float]:
        # reference concentration in mol/cm^3
        A = (p_ref * 1e-6 / (RM * T))**self.sum_nu
        dAdT = -self.sum_nu * A / T
        dG = self.product_nu @ G[self.product_index] - self.educt_nu @ G[self.educt_index]
        ddGdT = self.product_nu @ dGdT[self.product_index] - self.educt_nu @ dGdT[self.educt_index]
        B = math.exp(dG / (RM * T))
        dBdT = B * (T * ddGdT - dG) / (RM * T * T)
        return k1 * A * B, dk1dT * A * B + k1 * (dAdT * B + A * dBdT)

    def eval(self, T: float, c: np.ndarray, Y: np.ndarray, alpha: float, G: np.ndarray,
             dGdT: np.ndarray, p_ref: float, S: np.ndarray, J: np.ndarray) -> None:
        """Add this reaction to the source term S and the Jacobian J.

        Args:
            T: Temperature (K)
            c: Molar concentrations of all species (mol/cm^3)
            Y: Mass fractions of all species
            alpha: Isobaric expansion coefficient (1/K)
            G: Standard molar Gibbs energies (J/mol)
            dGdT: Their temperature derivatives (J/mol/K)
            p_ref: Reference pressure of G (Pa)
            S: Molar source term of the reacting species, modified in place
            J: (n+1, n+1) Jacobian, modified in place; last column is T
        """
        n = len(self.delta_nu)
        self._third_body(c, alpha)
        psi1, dpsi1_dY, dpsi1_dT = self._psi(c, Y, alpha, self.educt_index, self.educt_nu, n)
        psi2, dpsi2_dY, dpsi2_dT = self._psi(c, Y, alpha, self.product_index, self.product_nu, n)
        k1, dk1dT = self.forward_rate(T)
        k2, dk2dT = self._backward_rate(T, k1, dk1dT, G, dGdT, p_ref)

        S += self.delta_nu * (k1 * psi1 - k2 * psi2)
        J[:n, :n] += np.outer(self.delta_nu, k1 * dpsi1_dY - k2 * dpsi2_dY)
        J[:n, n] += self.delta_nu * (dk1dT * psi1 + k1 * dpsi1_dT - dk2dT * psi2 - k2 * dpsi2_dT)


class ArrheniusReaction(Reaction):

    def __init__(self, educts, products, n_reacting, third_body_weights=None,
                 coefficients: Sequence[float] = (0.0, 0.0, 0.0)):
        super().__init__(educts, products, n_reacting, third_body_weights)
        self.coefficients = tuple(coefficients)

    def forward_rate(self, T: float) -> Tuple[float, float]:
        return arrhenius(self.coefficients, T)


class DuplicateReaction(Reaction):
    """Sum of two Arrhenius expressions for the same reaction."""

    def __init__(self, educts, products, n_reacting, third_body_weights=None,
                 coefficients: Sequence[float] = (0.0, 0.0, 0.0),
                 duplicate: Sequence[float] = (0.0, 0.0, 0.0)):
        super().__init__(educts, products, n_reacting, third_body_weights)
        self.coefficients = tuple(coefficients)
        self.duplicate = tuple(duplicate)

    def forward_rate(self, T: float) -> Tuple[float, float]:
        k1, dk1 = arrhenius(self.coefficients, T)
        k2, dk2 = arrhenius(self.duplicate, T)
        return k1 + k2, dk1 + dk2


class LindemannReaction(Reaction):
    """Falloff between a low-pressure and a high-pressure Arrhenius limit.

    k = k_inf X/(1 + X) with the reduced pressure X = k_0 C_m / k_inf.
    """

    third_body_in_psi = False

    def __init__(self, educts, products, n_reacting, third_body_weights=None,
                 low: Sequence[float] = (0.0, 0.0, 0.0), high: Sequence[float] = (0.0, 0.0, 0.0)):
        if third_body_weights is None:
            raise InvalidMixture("a falloff reaction needs a third body")
        super().__init__(educts, products, n_reacting, third_body_weights)
        self.low = tuple(low)
        self.high = tuple(high)

    def _reduced_pressure(self, T: float):
        k0, dk0 = arrhenius(self.low, T)
        kinf, dkinf = arrhenius(self.high, T)
        X = k0 * self.Cm / kinf
        dXdT = (k0 * kinf * self.dCmdT + self.Cm * kinf * dk0 - self.Cm * k0 * dkinf) / (kinf * kinf)
        L = kinf * X / (1.0 + X)
        dLdT = (X * (1.0 + X) * dkinf + kinf * dXdT) / ((1.0 + X) * (1.0 + X))
        return X, dXdT, L, dLdT

    def forward_rate(self, T: float) -> Tuple[float, float]:
        _, _, L, dLdT = self._reduced_pressure(T)
        return L, dLdT


class TroeReaction(LindemannReaction):
    """Lindemann falloff times the Troe broadening factor F.

    Args:
        troe: (a, T***, T*, T**); T** may be None
    """

    def __init__(self, educts, products, n_reacting, third_body_weights=None,
                 low=(0.0, 0.0, 0.0), high=(0.0, 0.0, 0.0),
                 troe: Sequence[Optional[float]] = (0.0, 1.0, 1.0, None)):
        super().__init__(educts, products, n_reacting, third_body_weights, low, high)
        a, T3, T1, T2 = troe
        self.a = a
        self.tau3 = -1.0 / T3
        self.tau1 = -1.0 / T1
        self.tau2 = None if T2 is None else -T2

    def F_cent(self, T: float) -> Tuple[float, float]:
        e3 = math.exp(self.tau3 * T)
        e1 = math.exp(self.tau1 * T)
        F = (1.0 - self.a) * e3 + self.a * e1
        dF = (1.0 - self.a) * e3 * self.tau3 + self.a * e1 * self.tau1
        if self.tau2 is not None:
            e2 = math.exp(self.tau2 / T)
            F += e2
            dF -= e2 * self.tau2 / (T * T)
        return F, dF

    def forward_rate(self, T: float) -> Tuple[float, float]:
        X, dXdT, L, dLdT = self._reduced_pressure(T)
        if X <= 0.0:
            return 0.0, 0.0
        ln10 = math.log(10.0)
        y = math.log10(X)
        dy = dXdT / (X * ln10)

        Fc, dFc = self.F_cent(T)
        g = math.log10(Fc)
        dg = dFc / (Fc * ln10)

        N = 0.75 - 1.27 * g
        dN = -1.27 * dg
        C = -0.4 - 0.67 * g
        dC = -0.67 * dg
        D = 0.14

        H = (y + C) / (N - D * (y + C))
        dH = (N * (dC + dy) - (C + y) * dN) / (N - D * (C + y))**2
        I = 1.0 + H * H
        Jv = g / I
        dJ = (I * dg - 2.0 * g * H * dH) / (I * I)
        F = 10.0**Jv
        dF = ln10 * F * dJ
        return L * F, dLdT * F + L * dF


def create_reaction(entry: ReactionEntry, species_index: Dict[str, int], n_reacting: int,
                    n_species: int) -> Reaction:
    """Reaction object for an active Chemkin entry.

    Args:
        entry: Parsed reaction
        species_index: Species label -> index in the mixture
        n_reacting: Number of reacting species
        n_species: Number of species in the mixture

    Note:
        A '+M' reaction without enhancement line weighs every species with 1;
        listed species override their weight. A '(+X)' falloff without
        enhancement line counts species X only. Enhancement factors of species
        that are not part of the mixture are dropped.
    """
    if not entry.active:
        raise ParseError(f"{entry.reaction} was merged into its duplicate", entry.line_number)
    educts, products, has_third_body = parse_stoichiometry(entry.reaction)

    def indexed(side):
        try:
            return [(species_index[label], nu) for label, nu in side.items()]
        except KeyError as e:
            raise ParseError(f"unknown species {e.args[0]} in {entry.reaction}",
                             entry.line_number) from e

    weights = None
    if has_third_body:
        if entry.falloff_partner is not None and not entry.third_body:
            weights = np.zeros(n_species)
            overrides = {entry.falloff_partner: 1.0}
        else:
            weights = np.ones(n_species)
            overrides = entry.third_body
        for label, w in overrides.items():
            # species outside the mixture have zero concentration
            if label in species_index:
                weights[species_index[label]] = w

    args = (indexed(educts), indexed(products), n_reacting, weights)
    if entry.duplicate_flag and entry.duplicate is not None:
        return DuplicateReaction(*args, coefficients=entry.coefficients, duplicate=entry.duplicate)
    if entry.troe is not None:
        if entry.low is None:
            raise ParseError(f"{entry.reaction} has a TROE line but no LOW line", entry.line_number)
        if not has_third_body:
            raise ParseError(f"falloff reaction {entry.reaction} has no third body",
                             entry.line_number)
        return TroeReaction(*args, low=entry.low, high=entry.coefficients, troe=entry.troe)
    if entry.low is not None:
        if not has_third_body:
            raise ParseError(f"falloff reaction {entry.reaction} has no third body",
                             entry.line_number)
        return LindemannReaction(*args, low=entry.low, high=entry.coefficients)
    return ArrheniusReaction(*args, coefficients=entry.coefficients)
