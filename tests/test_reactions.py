"""
Unit tests for the elementary reaction rates and their derivatives.
"""

import math
import os
import unittest

import numpy as np

from rocket_channel_flow.chemistry.chemkin import ChemkinFile
from rocket_channel_flow.chemistry.reactions import (ArrheniusReaction, DuplicateReaction,
                                                     LindemannReaction, TroeReaction, arrhenius,
                                                     create_reaction)
from rocket_channel_flow.errors import InvalidMixture

MECHANISM = os.path.join(os.path.dirname(__file__), "data", "h2o2.inp")

# A + B = C + D
EDUCTS = [(0, 1.0), (1, 1.0)]
PRODUCTS = [(2, 1.0), (3, 1.0)]


def evaluate(reaction, T, c, Y, G, alpha=0.0):
    n = len(reaction.delta_nu)
    S = np.zeros(n)
    J = np.zeros((n + 1, n + 1))
    reaction.eval(T, c, Y, alpha, G, np.zeros_like(G), 101325.0, S, J)
    return S, J


class TestArrhenius(unittest.TestCase):

    def test_value(self):
        k, _ = arrhenius((1e10, 0.5, 2000.0), 1000.0)
        self.assertAlmostEqual(k / (1e10 * 1000.0**0.5 * math.exp(-2000.0 / (1.987204258640832e3))),
                               1.0, places=12)

    def test_derivative(self):
        for coefficients in ((1e10, 0.0, 5000.0), (3.5e15, -0.4, 16599.0), (5e4, 2.67, 6290.0)):
            T, dT = 1200.0, 1e-3
            _, dk = arrhenius(coefficients, T)
            fd = (arrhenius(coefficients, T + dT)[0] - arrhenius(coefficients, T - dT)[0]) / (2.0 * dT)
            self.assertAlmostEqual(dk / fd, 1.0, places=6)


class TestMassAction(unittest.TestCase):

    def setUp(self):
        self.reaction = ArrheniusReaction(EDUCTS, PRODUCTS, 4, coefficients=(1e10, 0.0, 0.0))

    def test_equilibrium_at_equal_concentrations(self):
        c = np.full(4, 2e-6)
        S, _ = evaluate(self.reaction, 1000.0, c, c, np.zeros(4))
        np.testing.assert_allclose(S, 0.0, atol=1e-20)

    def test_forward_only(self):
        c = np.array([2e-6, 3e-6, 0.0, 0.0])
        S, _ = evaluate(self.reaction, 1000.0, c, c, np.zeros(4))
        rate = 1e10 * 2e-6 * 3e-6
        np.testing.assert_allclose(S, [-rate, -rate, rate, rate])

    def test_backward_rate_from_gibbs_energy(self):
        # products more stable by 10 kJ/mol
        G = np.array([0.0, 0.0, -1e4, 0.0])
        c = np.full(4, 2e-6)
        S, _ = evaluate(self.reaction, 1000.0, c, c, G)
        k1 = 1e10
        k2 = k1 * math.exp(-1e4 / (8.314462618 * 1000.0))
        self.assertAlmostEqual(S[0] / (-(k1 - k2) * 4e-12), 1.0, places=10)

    def test_composition_jacobian(self):
        G = np.array([0.0, 0.0, -1e4, 0.0])
        Y = np.array([0.2, 0.3, 0.1, 0.4])
        T = 1000.0
        S, J = evaluate(self.reaction, T, Y, Y, G)
        for j in range(4):
            h = 1e-7
            Yp, Ym = np.array(Y), np.array(Y)
            Yp[j] += h
            Ym[j] -= h
            fd = (evaluate(self.reaction, T, Yp, Yp, G)[0] - evaluate(self.reaction, T, Ym, Ym, G)[0]) \
                / (2.0 * h)
            np.testing.assert_allclose(J[:4, j], fd, rtol=1e-6, atol=1e-3)

    def test_temperature_jacobian(self):
        reaction = ArrheniusReaction(EDUCTS, PRODUCTS, 4, coefficients=(1e10, 0.7, 3000.0))
        Y = np.array([0.2, 0.3, 0.1, 0.4])
        G = np.array([0.0, 0.0, -1e4, 0.0])
        T, dT = 1000.0, 1e-3
        _, J = evaluate(reaction, T, Y, Y, G)
        fd = (evaluate(reaction, T + dT, Y, Y, G)[0] - evaluate(reaction, T - dT, Y, Y, G)[0]) \
            / (2.0 * dT)
        np.testing.assert_allclose(J[:4, 4], fd, rtol=1e-6)

    def test_third_body_scales_the_rate(self):
        weights = np.array([1.0, 1.0, 2.0, 0.5])
        with_m = ArrheniusReaction(EDUCTS, PRODUCTS, 4, weights, coefficients=(1e10, 0.0, 0.0))
        c = np.array([2e-6, 3e-6, 1e-6, 0.0])
        S_plain, _ = evaluate(self.reaction, 1000.0, c, c, np.zeros(4))
        S_m, _ = evaluate(with_m, 1000.0, c, c, np.zeros(4))
        np.testing.assert_allclose(S_m, S_plain * (weights @ c))


class TestFalloff(unittest.TestCase):

    def test_lindemann_limits(self):
        reaction = LindemannReaction([(0, 1.0), (1, 1.0)], [(2, 1.0)], 3, np.ones(3),
                                     low=(1e16, 0.0, 0.0), high=(1e12, 0.0, 0.0))
        reaction.Cm = 1e3
        self.assertAlmostEqual(reaction.forward_rate(1000.0)[0] / 1e12, 1.0, places=6)
        reaction.Cm = 1e-10
        self.assertAlmostEqual(reaction.forward_rate(1000.0)[0] / (1e16 * 1e-10), 1.0, places=5)

    def test_lindemann_needs_third_body(self):
        with self.assertRaises(InvalidMixture):
            LindemannReaction([(0, 1.0), (1, 1.0)], [(2, 1.0)], 3, None,
                              low=(1e16, 0.0, 0.0), high=(1e12, 0.0, 0.0))

    def test_F_cent(self):
        reaction = TroeReaction([(0, 1.0), (1, 1.0)], [(2, 1.0)], 3, np.ones(3),
                                troe=(0.7, 100.0, 2000.0, None))
        T = 1500.0
        F, _ = reaction.F_cent(T)
        self.assertAlmostEqual(F, 0.3 * math.exp(-T / 100.0) + 0.7 * math.exp(-T / 2000.0))

    def test_troe_derivative(self):
        reaction = TroeReaction([(0, 1.0), (1, 1.0)], [(2, 1.0)], 3, np.ones(3),
                                low=(6.366e20, -1.72, 524.8), high=(1.475e12, 0.6, 0.0),
                                troe=(0.7346, 94.0, 1756.0, 5182.0))
        reaction.Cm = 1e-5
        reaction.dCmdT = 0.0
        T, dT = 1300.0, 1e-3
        k, dk = reaction.forward_rate(T)
        fd = (reaction.forward_rate(T + dT)[0] - reaction.forward_rate(T - dT)[0]) / (2.0 * dT)
        self.assertAlmostEqual(dk / fd, 1.0, places=5)
        # broadening lowers the Lindemann rate
        lindemann = LindemannReaction([(0, 1.0), (1, 1.0)], [(2, 1.0)], 3, np.ones(3),
                                      low=reaction.low, high=reaction.high)
        lindemann.Cm = 1e-5
        self.assertLess(k, lindemann.forward_rate(T)[0])


class TestCreateReaction(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.chemkin = ChemkinFile(MECHANISM)
        cls.species = cls.chemkin.species()
        cls.index = {label: k for k, label in enumerate(cls.species)}

    def create(self, k):
        n = len(self.species)
        return create_reaction(self.chemkin.entries[k], self.index, n, n)

    def test_types(self):
        self.assertIsInstance(self.create(0), ArrheniusReaction)
        self.assertIsInstance(self.create(7), TroeReaction)
        self.assertIsInstance(self.create(11), DuplicateReaction)
        self.assertIsInstance(self.create(13), LindemannReaction)
        self.assertNotIsInstance(self.create(13), TroeReaction)

    def test_stoichiometry(self):
        reaction = self.create(13)
        expected = np.zeros(len(self.species))
        expected[self.index["H2O2"]] = -1.0
        expected[self.index["OH"]] = 2.0
        np.testing.assert_array_equal(reaction.delta_nu, expected)

    def test_third_body_weights(self):
        reaction = self.create(4)
        self.assertEqual(reaction.weights[self.index["H2"]], 2.5)
        self.assertEqual(reaction.weights[self.index["H2O"]], 12.0)
        self.assertEqual(reaction.weights[self.index["O2"]], 1.0)
        self.assertIsNone(self.create(0).weights)

    def test_species_outside_the_mixture_are_dropped(self):
        # AR/0.83/ does not belong to the mixture
        reaction = self.create(5)
        self.assertEqual(len(reaction.weights), len(self.species))

    def test_duplicate_rate_is_the_sum(self):
        reaction = self.create(11)
        k, _ = reaction.forward_rate(1000.0)
        expected = arrhenius((4.2e14, 0.0, 11982.0), 1000.0)[0] \
            + arrhenius((1.3e11, 0.0, -1629.3), 1000.0)[0]
        self.assertAlmostEqual(k / expected, 1.0, places=12)


if __name__ == '__main__':
    unittest.main()
