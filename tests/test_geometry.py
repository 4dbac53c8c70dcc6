"""
Unit tests for the channel geometries.
"""

import math
import unittest

from rocket_channel_flow.errors import InvalidGeometry
from rocket_channel_flow.geometry import ConicalNozzle, CylinderCombustor, Duct


class TestDuct(unittest.TestCase):

    def test_axisymmetric(self):
        duct = Duct(0.5, 0.002)
        self.assertAlmostEqual(duct.A(0.1), math.pi * 0.002**2)
        self.assertAlmostEqual(duct.Dh(0.1), 0.004)
        self.assertEqual(duct.dDhdx(0.3), 0.0)
        self.assertFalse(duct.has_second_wall)
        with self.assertRaises(InvalidGeometry):
            duct.width

    def test_planar(self):
        duct = Duct(0.2, 0.001, axisymmetric=False, width=0.01)
        self.assertTrue(duct.has_second_wall)
        self.assertAlmostEqual(duct.A(0.0), 0.01 * 0.002)
        # 4 A / (2 w) = 2 * height
        self.assertAlmostEqual(duct.Dh(0.0), 0.004)

    def test_planar_needs_width(self):
        with self.assertRaises(InvalidGeometry):
            Duct(0.2, 0.001, axisymmetric=False)

    def test_invalid(self):
        with self.assertRaises(InvalidGeometry):
            Duct(0.0, 0.001)
        with self.assertRaises(InvalidGeometry):
            Duct(0.1, -0.001)


class TestConicalNozzle(unittest.TestCase):

    def setUp(self):
        self.nozzle = ConicalNozzle(0.02, 4.0, 0.1)

    def test_area_ratio(self):
        self.assertAlmostEqual(self.nozzle.A(0.1) / self.nozzle.A(0.0), 4.0)
        self.assertAlmostEqual(self.nozzle.A(0.0), self.nozzle.A_t)

    def test_slope(self):
        h = 1e-6
        fd = (self.nozzle.A(0.05 + h) - self.nozzle.A(0.05 - h)) / (2.0 * h)
        self.assertAlmostEqual(self.nozzle.dAdx(0.05) / fd, 1.0, places=6)

    def test_sample(self):
        x, R, A = self.nozzle.sample(11)
        self.assertEqual(len(x), 11)
        self.assertAlmostEqual(R[-1], 0.04)

    def test_invalid(self):
        with self.assertRaises(InvalidGeometry):
            ConicalNozzle(0.02, 0.5, 0.1)


class TestCylinderCombustor(unittest.TestCase):
    """Cylinder, kink arc, contraction line and throat arc."""

    def setUp(self):
        self.chamber = CylinderCombustor(D_t=0.05, D_c=0.1, L_cyl=0.1, L_chamber=0.2,
                                         r_k=0.02, r_c=0.03)

    def test_end_radii(self):
        self.assertAlmostEqual(self.chamber.R(0.0), 0.05)
        self.assertAlmostEqual(self.chamber.R(0.2), 0.025)

    def test_contour_is_continuous(self):
        c = self.chamber
        eps = 1e-9
        for x in (c.Kx, c.Px, c.Qx, c.Mx):
            self.assertAlmostEqual(c.R(x - eps), c.R(x + eps), places=7)

    def test_slope_is_continuous(self):
        c = self.chamber
        eps = 1e-9
        for x in (c.Px, c.Qx):
            self.assertAlmostEqual(c.dRdx(x - eps), c.dRdx(x + eps), places=5)
        self.assertAlmostEqual(c.slope, -math.tan(c.alpha), places=10)

    def test_contracting(self):
        x, R, _ = self.chamber.sample(101)
        self.assertTrue(all(R[k + 1] <= R[k] + 1e-15 for k in range(len(R) - 1)))

    def test_invalid(self):
        with self.assertRaises(InvalidGeometry):
            CylinderCombustor(D_t=0.1, D_c=0.05, L_cyl=0.1, L_chamber=0.2, r_k=0.02, r_c=0.03)


if __name__ == '__main__':
    unittest.main()
