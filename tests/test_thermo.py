"""
Unit tests for the Mixture property evaluator.
"""

import unittest

import numpy as np
import CoolProp.CoolProp as CP

from rocket_channel_flow.errors import InvalidInput, InvalidMixture, OutOfRange
from rocket_channel_flow.thermo import AIR, GasModel, Mixture, cantera_label, coolprop_name


class TestLabels(unittest.TestCase):

    def test_cantera_label(self):
        self.assertEqual(cantera_label("Methane"), "CH4")
        self.assertEqual(cantera_label("h2o"), "H2O")

    def test_coolprop_name(self):
        self.assertEqual(coolprop_name("ch4"), "Methane")
        self.assertEqual(coolprop_name("Krypton"), "Krypton")

    def test_gas_model_strings(self):
        self.assertEqual(GasModel.from_string("IdGas"), GasModel.IDGAS)
        self.assertEqual(GasModel.from_string("HEOS"), GasModel.HELMHOLTZ)
        self.assertEqual(GasModel.from_string("srk"), GasModel.SRK)
        with self.assertRaises(InvalidInput):
            GasModel.from_string("peng-robinson")


class TestIdealGas(unittest.TestCase):
    """Ideal-gas mixture on Cantera."""

    @classmethod
    def setUpClass(cls):
        cls.gas = Mixture("N2")

    def test_molar_mass(self):
        self.assertAlmostEqual(self.gas.M(), 0.0280134, delta=1e-6)

    def test_equation_of_state(self):
        T, p = 600.0, 3e5
        self.assertAlmostEqual(self.gas.rho(T, p) * self.gas.R() * T / p, 1.0, places=10)

    def test_derivatives(self):
        T, p = 600.0, 3e5
        self.assertAlmostEqual(self.gas.alpha(T, p), 1.0 / T)
        self.assertAlmostEqual(self.gas.kappa(T, p) * p, 1.0)
        self.assertAlmostEqual(self.gas.dhdp(T, p), 0.0, places=10)
        self.assertAlmostEqual(self.gas.gamma(T, p), self.gas.cp(T, p) / self.gas.cv(T, p))

    def test_T_from_h(self):
        p = 2e5
        h = self.gas.h(900.0, p)
        self.assertAlmostEqual(self.gas.T_from_h(h, p), 900.0, places=6)
        self.assertAlmostEqual(self.gas.T_from_h(h, p, T_guess=300.0), 900.0, places=6)

    def test_T_from_h_out_of_range(self):
        with self.assertRaises(OutOfRange):
            self.gas.T_from_h(1e9, 1e5)

    def test_isentrope(self):
        T0, p0 = 1000.0, 1e6
        T = self.gas.isen_T(T0, p0, 2e5)
        self.assertLess(T, T0)
        self.assertAlmostEqual(self.gas.isen_p(T0, p0, T) / 2e5, 1.0, places=8)
        self.assertAlmostEqual(self.gas.s(T, 2e5), self.gas.s(T0, p0), places=4)

    def test_total_state(self):
        T, p = 500.0, 1e5
        Tt, pt = self.gas.total(T, p, 0.0)
        self.assertAlmostEqual(Tt, T, places=6)
        self.assertAlmostEqual(pt / p, 1.0, places=8)

        u = 300.0
        Tt, pt = self.gas.total(T, p, u)
        self.assertAlmostEqual(self.gas.h(Tt, pt) - self.gas.h(T, p), 0.5 * u * u, places=2)
        self.assertGreater(pt, p)

    def test_p_from_v(self):
        T = 700.0
        v = self.gas.v(T, 4e5)
        self.assertAlmostEqual(self.gas.p(T, v) / 4e5, 1.0, places=10)


class TestIdealGasMixture(unittest.TestCase):

    def test_air(self):
        gas = Mixture(AIR)
        self.assertAlmostEqual(gas.M(), 0.028965, delta=1e-5)
        self.assertAlmostEqual(gas.molar_fractions.sum(), 1.0, places=12)
        self.assertAlmostEqual(gas.molar_fractions[gas.species_index("O2")], 0.20946, places=8)

    def test_explicit_species_list(self):
        gas = Mixture({"H2": 2.0, "O2": 1.0}, species=["H2", "O2", "H2O"])
        self.assertEqual(gas.species, ["H2", "O2", "H2O"])
        X = gas.molar_fractions
        self.assertAlmostEqual(X[0], 2.0 / 3.0, places=12)
        self.assertEqual(X[2], 0.0)

    def test_remix_mass_fractions(self):
        gas = Mixture({"H2": 1.0, "O2": 1.0}, species=["H2", "O2"])
        gas.remix([0.2, 0.8])
        np.testing.assert_allclose(gas.mass_fractions, [0.2, 0.8])
        with self.assertRaises(InvalidMixture):
            gas.remix([0.5, 0.5, 0.0])
        with self.assertRaises(InvalidMixture):
            gas.remix([-0.1, 1.1])

    def test_equilibrium(self):
        gas = Mixture({"H2": 2.0, "O2": 1.0}, species=["H2", "O2", "H2O", "OH", "H", "O"])
        Y = gas.remix_to_equilibrium(1500.0, 1e6)
        self.assertAlmostEqual(Y.sum(), 1.0, places=12)
        self.assertGreater(Y[gas.species_index("H2O")], 0.9)
        np.testing.assert_allclose(gas.mass_fractions, Y)

    def test_unknown_species(self):
        with self.assertRaises(InvalidMixture):
            Mixture({"XYZ": 1.0})

    def test_species_data(self):
        gas = Mixture({"H2": 1.0, "O2": 1.0}, species=["H2", "O2", "H2O"])
        T, dT = 1200.0, 0.01
        g = gas.gibbs(T)
        self.assertEqual(g.shape, (3,))
        fd = (gas.gibbs(T + dT) - gas.gibbs(T - dT)) / (2.0 * dT)
        np.testing.assert_allclose(gas.dgibbs_dT(T), fd, rtol=1e-6)
        # formation enthalpy of water vapor
        self.assertLess(gas.species_h(298.15)[2], -1.3e7)
        self.assertTrue(np.all(gas.species_cp(T) > 0.0))


class TestRealGas(unittest.TestCase):
    """CoolProp equations of state."""

    @classmethod
    def setUpClass(cls):
        cls.gas = Mixture("Methane", "helmholtz")

    def test_density_matches_coolprop(self):
        T, p = 160.0, 1.2e7
        rho = CP.PropsSI("D", "T", T, "P", p, "Methane")
        self.assertAlmostEqual(self.gas.rho(T, p) / rho, 1.0, places=10)

    def test_species(self):
        self.assertEqual(self.gas.species, ["CH4"])
        self.assertFalse(self.gas.is_idgas())
        self.assertGreater(self.gas.p_crit, 4.5e6)

    def test_compressibility(self):
        T, p = 300.0, 1.2e7
        self.assertNotAlmostEqual(self.gas.alpha(T, p), 1.0 / T, places=4)
        self.assertAlmostEqual(self.gas.beta(T, p),
                               self.gas.alpha(T, p) / (self.gas.kappa(T, p) * p))

    def test_p_from_v(self):
        T, p = 200.0, 1.2e7
        v = self.gas.v(T, p)
        self.assertAlmostEqual(self.gas.p(T, v) / p, 1.0, places=6)

    def test_no_equilibrium(self):
        with self.assertRaises(InvalidMixture):
            self.gas.remix_to_equilibrium(300.0, 1e6)

    def test_alternate(self):
        alt = self.gas.alternate()
        self.assertEqual(alt.model, GasModel.SRK)
        self.assertAlmostEqual(alt.rho(800.0, 1.2e7) / self.gas.rho(600.0, 1.2e7), 0.7, delta=0.15)

    def test_helmholtz_mixture_rejected(self):
        with self.assertRaises(InvalidMixture):
            Mixture({"CH4": 0.5, "C2H6": 0.5}, "helmholtz")


if __name__ == '__main__':
    unittest.main()
