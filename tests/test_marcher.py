"""
Unit tests for the axial marcher.
"""

import unittest

import numpy as np

from rocket_channel_flow import parameters as par
from rocket_channel_flow.boundary_layer import BoundaryLayer, FrictionMethod
from rocket_channel_flow.config import ChannelConfig
from rocket_channel_flow.errors import InvalidInput, InvalidMixture
from rocket_channel_flow.geometry import Duct
from rocket_channel_flow.marcher import ChannelMarcher
from rocket_channel_flow.segments import WallFields, attach_walls, create_segments
from rocket_channel_flow.thermo import Mixture


class TestMethaneCoolingChannel(unittest.TestCase):
    """Supercritical methane heated by a 600 K wall."""

    @classmethod
    def setUpClass(cls):
        gas = Mixture("Methane", "helmholtz")
        bl = BoundaryLayer(gas, FrictionMethod.ECKERT, cells=10)
        bl.set_surface_roughness(3.2e-6)
        cls.marcher = ChannelMarcher.from_geometry(gas, Duct(0.5, 0.002), 4, bl)
        cls.marcher.set_wall_temperature(600.0)
        cls.marcher.set_inflow_velocity(160.0, 1.2e7, 30.0)
        cls.marcher.run()

    def test_energy_balance(self):
        dH = self.marcher.compute_total_enthalpy_change()
        Q = self.marcher.compute_wall_heat()
        # heat flux is counted positive into the wall
        self.assertLess(Q, 0.0)
        self.assertLess(abs(dH + Q) / abs(Q), 0.01)

    def test_coolant_heats_up(self):
        T = self.marcher.axial_profile(par.TM)
        self.assertTrue(np.all(np.diff(T) > 0.0))

    def test_exit_state(self):
        first, last = self.marcher.segments[0], self.marcher.segments[-1]
        self.assertGreater(last.data[par.TM], 160.0)
        self.assertLess(last.data[par.TM], 600.0)
        self.assertLess(last.data[par.PM], first.data[par.PM])
        self.assertGreater(last.data[par.UM], 30.0)

    def test_pressure_drops(self):
        p = self.marcher.axial_profile(par.PM)
        self.assertTrue(np.all(np.diff(p) < 0.0))

    def test_all_segments_filled(self):
        for index in (par.TM, par.PM, par.UM, par.MA, par.DOTQ1, par.TAUW1):
            self.assertTrue(np.all(np.isfinite(self.marcher.axial_profile(index))))


class TestInflow(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.gas = Mixture("N2")

    def make_marcher(self, n_elements=1, **kwargs):
        bl = BoundaryLayer(self.gas, FrictionMethod.ECKERT, cells=10)
        return ChannelMarcher.from_geometry(self.gas, Duct(0.2, 0.01), n_elements, bl, **kwargs)

    def test_total_inflow(self):
        marcher = self.make_marcher()
        Tt, pt, mdot = 600.0, 5e5, 0.05
        T, p, u = marcher.set_inflow_conditions_total(Tt, pt, mdot)
        self.assertLess(T, Tt)
        self.assertLess(p, pt)
        Tt_c, pt_c = self.gas.total(T, p, u)
        self.assertAlmostEqual(Tt_c / Tt, 1.0, delta=1e-3)
        self.assertAlmostEqual(pt_c / pt, 1.0, delta=2e-3)
        first = marcher.segments[0]
        self.assertAlmostEqual(u * first.cross_section * self.gas.rho(T, p) / mdot, 1.0, places=10)
        self.assertEqual(first.data[par.TM], T)

    def test_total_inflow_splits_over_channels(self):
        single = self.make_marcher()
        many = self.make_marcher(n_channels=4)
        u1 = single.set_inflow_conditions_total(600.0, 5e5, 0.05)[2]
        u4 = many.set_inflow_conditions_total(600.0, 5e5, 0.05)[2]
        self.assertAlmostEqual(u1 / u4, 1.0, places=8)

    def test_mach_inflow(self):
        marcher = self.make_marcher()
        marcher.set_inflow_conditions(500.0, 2e5, 0.2)
        self.assertAlmostEqual(marcher.segments[0].data[par.MA], 0.2, places=10)

    def test_inflow_seeds_wall_loads(self):
        marcher = self.make_marcher(n_elements=2)
        marcher.set_inflow_velocity(500.0, 2e5, 40.0)
        q = marcher.axial_profile(par.DOTQ1)
        self.assertTrue(np.all(q == q[0]))

    def test_invalid_inflow(self):
        marcher = self.make_marcher()
        with self.assertRaises(InvalidInput):
            marcher.set_inflow_velocity(500.0, 2e5, 0.0)
        with self.assertRaises(InvalidInput):
            marcher.set_inflow_conditions_total(600.0, 5e5, -1.0)
        with self.assertRaises(InvalidInput):
            marcher.run()


class TestConstruction(unittest.TestCase):

    def test_even_segment_count(self):
        gas = Mixture("N2")
        segments = create_segments(Duct(0.2, 0.01), 2)
        with self.assertRaises(InvalidInput):
            ChannelMarcher(gas, segments[:4], BoundaryLayer(gas, "eckert", cells=10))

    def test_reacting_needs_ideal_gas(self):
        gas = Mixture("Methane", "helmholtz")
        marcher = ChannelMarcher.from_geometry(gas, Duct(0.2, 0.002), 1,
                                               BoundaryLayer(gas, "eckert", cells=10))
        with self.assertRaises(InvalidMixture):
            marcher.set_reacting_flag()

    def test_wall_temperature(self):
        gas = Mixture("N2")
        marcher = ChannelMarcher.from_geometry(gas, Duct(0.2, 0.01), 1,
                                               BoundaryLayer(gas, "eckert", cells=10))
        marcher.set_wall_temperature(450.0)
        np.testing.assert_allclose(marcher.axial_profile(par.TW1), 450.0)
        with self.assertRaises(InvalidInput):
            marcher.set_wall_temperature(-1.0)


class TestWallCoupling(unittest.TestCase):
    """Hot nitrogen in a duct with a structural wall attached."""

    @classmethod
    def setUpClass(cls):
        cls.gas = Mixture("N2")
        bl = BoundaryLayer(cls.gas, FrictionMethod.ECKERT, cells=10)
        cls.marcher = ChannelMarcher.from_geometry(cls.gas, Duct(0.2, 0.01), 1, bl)
        x = np.linspace(0.0, 0.2, 7)
        cls.fields = WallFields(x, np.full(7, 0.01), T=400.0)
        attach_walls(cls.marcher.segments, cls.fields, [[0, 1, 2], [2, 3, 4], [4, 5, 6]])
        cls.marcher.pull_temperatures()
        cls.marcher.set_inflow_velocity(900.0, 3e5, 60.0)
        cls.marcher.run()
        cls.marcher.push_flowdata()

    def test_wall_temperature_pulled(self):
        np.testing.assert_allclose(self.marcher.axial_profile(par.TW1), 400.0)

    def test_heat_loads_pushed(self):
        self.assertTrue(np.all(self.fields["dotQ"] > 0.0))
        self.assertTrue(np.all(self.fields["alpha"] > 0.0))

    def test_flowdata_pushed(self):
        self.assertTrue(np.all(self.fields["T_fluid"] > 800.0))
        self.assertTrue(np.all(self.fields["Ma_fluid"] > 0.0))

    def test_gas_cools_down(self):
        T = self.marcher.axial_profile(par.TM)
        self.assertLess(T[-1], T[0])


class TestFromConfig(unittest.TestCase):

    def config(self, **inflow):
        return ChannelConfig.from_dict({
            "gas": {"fluid": "N2"},
            "geometry": {"kind": "duct", "length": 0.2, "radius": 0.01},
            "boundary_layer": {"method": "eckert", "cells": 10},
            "inflow": inflow or {"Tt": 900.0, "pt": 3e5, "mdot": 0.05},
            "channel": {"elements": 1, "wall_temperature": 400.0},
        })

    def test_run_from_config(self):
        marcher = ChannelMarcher.from_config(self.config())
        marcher.run()
        self.assertEqual(len(marcher.segments), 3)
        self.assertTrue(np.all(marcher.axial_profile(par.DOTQ1) > 0.0))
        self.assertEqual(marcher.segments[0].data[par.TW1], 400.0)

    def test_static_inflow(self):
        marcher = ChannelMarcher.from_config(self.config(T=900.0, p=3e5, Ma=0.1))
        self.assertAlmostEqual(marcher.segments[0].data[par.MA], 0.1, places=10)

    def test_invalid_config(self):
        with self.assertRaises(InvalidInput):
            ChannelMarcher.from_config(self.config(T=900.0, p=3e5))


if __name__ == '__main__':
    unittest.main()
