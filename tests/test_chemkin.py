"""
Unit tests for the Chemkin reader.
"""

import os
import tempfile
import unittest

from rocket_channel_flow.chemistry.chemkin import ChemkinFile, parse_stoichiometry
from rocket_channel_flow.errors import ParseError

MECHANISM = os.path.join(os.path.dirname(__file__), "data", "h2o2.inp")


def write_mechanism(text):
    fd, path = tempfile.mkstemp(suffix=".inp")
    with os.fdopen(fd, "w") as f:
        f.write(text)
    return path


class TestStoichiometry(unittest.TestCase):

    def test_simple(self):
        educts, products, third_body = parse_stoichiometry("H+O2<=>O+OH")
        self.assertEqual(educts, {"H": 1.0, "O2": 1.0})
        self.assertEqual(products, {"O": 1.0, "OH": 1.0})
        self.assertFalse(third_body)

    def test_repeated_species_are_summed(self):
        educts, products, third_body = parse_stoichiometry("OH+OH=H2O2+M")
        self.assertEqual(educts, {"OH": 2.0})
        self.assertEqual(products, {"H2O2": 1.0})
        self.assertTrue(third_body)

    def test_coefficients(self):
        educts, products, _ = parse_stoichiometry("2H2+O2=2H2O")
        self.assertEqual(educts, {"H2": 2.0, "O2": 1.0})
        self.assertEqual(products, {"H2O": 2.0})

    def test_malformed(self):
        with self.assertRaises(ValueError):
            parse_stoichiometry("H+O2")
        with self.assertRaises(ValueError):
            parse_stoichiometry("=OH")


class TestChemkinFile(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.chemkin = ChemkinFile(MECHANISM)

    def test_counts(self):
        self.assertEqual(len(self.chemkin.entries), 15)
        self.assertEqual(self.chemkin.number_of_reactions, 14)
        self.assertEqual(len(self.chemkin.reactions), 14)

    def test_species_in_order_of_appearance(self):
        self.assertEqual(self.chemkin.species(),
                         ["H", "O2", "O", "OH", "H2", "H2O", "HO2", "H2O2"])

    def test_arrhenius_coefficients(self):
        entry = self.chemkin.entries[0]
        self.assertEqual(entry.reaction, "H+O2=O+OH")
        self.assertEqual(entry.coefficients, (3.547e15, -0.406, 16599.0))
        self.assertEqual(entry.line_number, 9)

    def test_third_body(self):
        entry = self.chemkin.entries[4]
        self.assertTrue(entry.has_third_body)
        self.assertEqual(entry.third_body, {"H2": 2.5, "H2O": 12.0})
        self.assertEqual(self.chemkin.entries[5].third_body["AR"], 0.83)

    def test_troe_falloff(self):
        entry = self.chemkin.entries[7]
        self.assertEqual(entry.reaction, "H+O2+M=HO2+M")
        self.assertEqual(entry.low, (6.366e20, -1.72, 524.8))
        self.assertEqual(entry.troe, (0.8, 1e-30, 1e30, None))
        self.assertEqual(entry.third_body, {"H2": 2.0, "H2O": 11.0, "O2": 0.78})
        self.assertIsNone(entry.falloff_partner)

    def test_lindemann_falloff(self):
        entry = self.chemkin.entries[13]
        self.assertEqual(entry.reaction, "H2O2+M=2OH+M")
        self.assertEqual(entry.low, (1.202e17, 0.0, 45500.0))
        self.assertIsNone(entry.troe)

    def test_duplicates_are_merged(self):
        first, second = self.chemkin.entries[11], self.chemkin.entries[12]
        self.assertTrue(first.active)
        self.assertFalse(second.active)
        self.assertEqual(first.coefficients, (4.2e14, 0.0, 11982.0))
        self.assertEqual(first.duplicate, (1.3e11, 0.0, -1629.3))
        self.assertNotIn(second, self.chemkin.reactions)


class TestMalformedFiles(unittest.TestCase):

    def setUp(self):
        self.paths = []

    def tearDown(self):
        for path in self.paths:
            os.remove(path)

    def mechanism(self, text):
        path = write_mechanism(text)
        self.paths.append(path)
        return path

    def test_missing_reactions_block(self):
        with self.assertRaises(ParseError):
            ChemkinFile(self.mechanism("ELEMENTS\nH O\nEND\n"))

    def test_unsupported_keyword(self):
        path = self.mechanism("REACTIONS\n"
                              "H+O2<=>O+OH  3.5E+15 -0.4 16599.0\n"
                              "   PLOG/ 1.0 3.5E+15 -0.4 16599.0/\n"
                              "END\n")
        with self.assertRaises(ParseError) as context:
            ChemkinFile(path)
        self.assertEqual(context.exception.line_number, 3)

    def test_bad_number(self):
        path = self.mechanism("REACTIONS\nH+O2<=>O+OH  3.5E+15 -0.4 abc\nEND\n")
        with self.assertRaises(ParseError) as context:
            ChemkinFile(path)
        self.assertEqual(context.exception.line_number, 2)

    def test_auxiliary_line_first(self):
        with self.assertRaises(ParseError):
            ChemkinFile(self.mechanism("REACTIONS\n   H2/2.5/\nEND\n"))

    def test_falloff_partner(self):
        path = self.mechanism("REACTIONS\n"
                              "H+O2(+AR)<=>HO2(+AR)  1.475E+12 0.60 0.0\n"
                              "   LOW/6.366E+20 -1.72 524.8/\n"
                              "END\n")
        entry = ChemkinFile(path).entries[0]
        self.assertEqual(entry.reaction, "H+O2+M=HO2+M")
        self.assertEqual(entry.falloff_partner, "AR")

    def test_comments_are_ignored(self):
        path = self.mechanism("! header\nREACTIONS  CAL/MOLE\n"
                              "H+O2<=>O+OH  3.5E+15 -0.4 16599.0  ! chain branching\n"
                              "END\n")
        self.assertEqual(ChemkinFile(path).number_of_reactions, 1)


if __name__ == '__main__':
    unittest.main()
