"""
Unit tests for the channel configuration.
"""

import os
import tempfile
import unittest

from rocket_channel_flow.boundary_layer import BoundaryLayer, FrictionMethod
from rocket_channel_flow.config import (BoundaryLayerConfig, ChannelConfig, GasConfig,
                                        GeometryConfig, InflowConfig, ValidationResult)
from rocket_channel_flow.errors import InvalidInput
from rocket_channel_flow.geometry import ConicalNozzle, CylinderCombustor, Duct
from rocket_channel_flow.thermo import GasModel, Mixture

METHANE_CHANNEL = {
    "gas": {"model": "helmholtz", "fluid": "Methane"},
    "geometry": {"kind": "duct", "length": 0.5, "radius": 0.002},
    "boundary_layer": {"method": "messe", "roughness": "3.2e-6"},
    "inflow": {"T": 160.0, "p": "1.2e7", "u": 30.0},
    "channel": {"elements": 10, "wall_temperature": 600.0},
}


class TestValidationResult(unittest.TestCase):

    def test_merge(self):
        inner = ValidationResult()
        inner.add_error("bad")
        inner.add_warning("odd")
        outer = ValidationResult()
        outer.merge(inner, "gas: ")
        self.assertFalse(outer.is_valid)
        self.assertEqual(outer.errors, ["gas: bad"])
        self.assertEqual(outer.warnings, ["gas: odd"])


class TestChannelConfig(unittest.TestCase):

    def test_default_is_incomplete(self):
        result = ChannelConfig().validate()
        self.assertFalse(result.is_valid)
        self.assertTrue(any(e.startswith("gas: ") for e in result.errors))
        self.assertTrue(any(e.startswith("inflow: ") for e in result.errors))

    def test_from_dict(self):
        cfg = ChannelConfig.from_dict(METHANE_CHANNEL)
        self.assertEqual(cfg.inflow.p, 1.2e7)
        self.assertEqual(cfg.boundary_layer.roughness, 3.2e-6)
        self.assertEqual(cfg.elements, 10)
        self.assertEqual(cfg.wall_temperature, 600.0)
        result = cfg.validate()
        self.assertTrue(result.is_valid, result.errors)

    def test_top_level_channel_keys(self):
        data = dict(METHANE_CHANNEL)
        del data["channel"]
        data["elements"] = 4
        self.assertEqual(ChannelConfig.from_dict(data).elements, 4)

    def test_yaml_round_trip(self):
        cfg = ChannelConfig.from_dict(METHANE_CHANNEL)
        fd, path = tempfile.mkstemp(suffix=".yaml")
        os.close(fd)
        try:
            cfg.to_yaml(path)
            loaded = ChannelConfig.from_yaml(path)
        finally:
            os.remove(path)
        self.assertEqual(loaded, cfg)

    def test_unknown_key(self):
        data = dict(METHANE_CHANNEL)
        data["geometry"] = {"kind": "duct", "length": 0.5, "radius": 0.002, "diameter": 0.004}
        with self.assertRaises(InvalidInput):
            ChannelConfig.from_dict(data)

    def test_bad_number(self):
        with self.assertRaises(InvalidInput):
            InflowConfig.from_dict({"T": "hot"})

    def test_reacting_needs_ideal_gas(self):
        cfg = ChannelConfig.from_dict(METHANE_CHANNEL)
        cfg.reacting = True
        result = cfg.validate()
        self.assertIn("a reacting channel needs the idgas model", result.errors)

    def test_discretization(self):
        cfg = ChannelConfig.from_dict(METHANE_CHANNEL)
        cfg.elements = 0
        cfg.wall_temperature = -1.0
        self.assertEqual(len(cfg.validate().errors), 2)


class TestGasConfig(unittest.TestCase):

    def test_fluid_or_composition(self):
        self.assertFalse(GasConfig().validate().is_valid)
        both = GasConfig(fluid="N2", composition={"N2": 1.0})
        self.assertFalse(both.validate().is_valid)
        self.assertTrue(GasConfig(fluid="N2").validate().is_valid)

    def test_model(self):
        self.assertEqual(GasConfig(model="HEOS").model_name, GasModel.HELMHOLTZ)
        self.assertIsNone(GasConfig(model="pr").model_name)
        self.assertFalse(GasConfig(model="pr", fluid="N2").validate().is_valid)

    def test_negative_fraction(self):
        cfg = GasConfig(composition={"N2": 1.0, "O2": -0.1})
        self.assertFalse(cfg.validate().is_valid)

    def test_build(self):
        gas = GasConfig(composition={"N2": 0.79, "O2": 0.21}).build()
        self.assertIsInstance(gas, Mixture)
        self.assertAlmostEqual(gas.molar_fractions[gas.species_index("O2")], 0.21, places=10)


class TestBoundaryLayerConfig(unittest.TestCase):

    def test_van_driest_is_not_a_method(self):
        result = BoundaryLayerConfig(method="vandriest").validate()
        self.assertFalse(result.is_valid)

    def test_bartz_needs_throat(self):
        self.assertFalse(BoundaryLayerConfig(method="bartz").validate().is_valid)
        cfg = BoundaryLayerConfig(method="bartz", throat_diameter=0.05, curvature_radius=0.03)
        self.assertTrue(cfg.validate().is_valid)

    def test_grid(self):
        coarse = BoundaryLayerConfig(cells=20).validate()
        self.assertTrue(coarse.is_valid)
        self.assertEqual(len(coarse.warnings), 1)
        self.assertFalse(BoundaryLayerConfig(cells=5).validate().is_valid)
        self.assertFalse(BoundaryLayerConfig(mesh_ratio=0.9).validate().is_valid)

    def test_build(self):
        cfg = BoundaryLayerConfig(method="bartz", cells=10, roughness=1e-6,
                                  throat_diameter=0.05, curvature_radius=0.03)
        bl = cfg.build(Mixture("N2"))
        self.assertIsInstance(bl, BoundaryLayer)
        self.assertEqual(bl.method, FrictionMethod.BARTZ)
        self.assertAlmostEqual(bl.k_tech, 4.2e-6)
        self.assertAlmostEqual(bl.bartz_constant, (0.05 / 0.03)**0.1)


class TestGeometryConfig(unittest.TestCase):

    def test_duct(self):
        cfg = GeometryConfig(kind="duct", length=0.5, radius=0.002)
        self.assertTrue(cfg.validate().is_valid)
        self.assertIsInstance(cfg.build(), Duct)

    def test_planar_duct_needs_width(self):
        cfg = GeometryConfig(kind="duct", length=0.5, radius=0.002, axisymmetric=False)
        self.assertFalse(cfg.validate().is_valid)
        cfg.width = 0.01
        self.assertTrue(cfg.validate().is_valid)
        self.assertFalse(cfg.build().axisymmetric)

    def test_nozzle_and_combustor(self):
        nozzle = GeometryConfig(kind="conical_nozzle", r_t=0.02, expansion_ratio=4.0, length=0.1)
        self.assertIsInstance(nozzle.build(), ConicalNozzle)
        combustor = GeometryConfig(kind="cylinder_combustor", D_t=0.05, D_c=0.1, L_cyl=0.1,
                                   L_chamber=0.2, r_k=0.02, r_c=0.03)
        self.assertTrue(combustor.validate().is_valid)
        self.assertIsInstance(combustor.build(), CylinderCombustor)

    def test_missing_and_unknown(self):
        result = GeometryConfig(kind="conical_nozzle", r_t=0.02).validate()
        self.assertEqual(len(result.errors), 2)
        self.assertFalse(GeometryConfig(kind="bell").validate().is_valid)


class TestInflowConfig(unittest.TestCase):

    def test_static_or_total(self):
        self.assertTrue(InflowConfig(T=300.0, p=1e5, u=10.0).validate().is_valid)
        self.assertTrue(InflowConfig(Tt=300.0, pt=1e5, mdot=0.1).validate().is_valid)
        self.assertFalse(InflowConfig(T=300.0, p=1e5, u=10.0, Tt=310.0).validate().is_valid)
        self.assertFalse(InflowConfig(Tt=300.0, pt=1e5).validate().is_valid)
        self.assertFalse(InflowConfig(T=300.0, p=1e5, u=10.0, Ma=0.1).validate().is_valid)

    def test_positive_values(self):
        self.assertFalse(InflowConfig(T=300.0, p=-1e5, u=10.0).validate().is_valid)

    def test_supersonic_warning(self):
        result = InflowConfig(T=300.0, p=1e5, Ma=1.5).validate()
        self.assertTrue(result.is_valid)
        self.assertEqual(len(result.warnings), 1)


if __name__ == '__main__':
    unittest.main()
