"""
Unit Tests for TLE Validation and Parsing

Run with:
    python -m pytest tests/test_tle_parser.py -v
"""

import unittest
from datetime import datetime, timezone

from orbit_tracker.errors import InvalidElementsError
from orbit_tracker.tle_parser import (
    OrbitalElements,
    parse_tle,
    parse_tle_text,
    slugify,
    tle_checksum,
    validate_tle_lines,
)

ISS_LINE1 = "1 25544U 98067A   25214.09653981  .00010888  00000+0  19653-3 0  9996"
ISS_LINE2 = "2 25544  51.6345  79.5266 0001736 142.9190 217.1919 15.50282964522285"

VANGUARD_LINE1 = "1 00005U 58002B   00179.78495062  .00000023  00000-0  28098-4 0  4753"
VANGUARD_LINE2 = "2 00005  34.2682 348.7242 1859667 331.7664  19.3264 10.82419157413667"


class TestTLEValidation(unittest.TestCase):
    """Test suite for the fixed-format TLE checks."""

    def test_checksum(self):
        """Checksums of known-good lines match their last column."""
        self.assertEqual(tle_checksum(ISS_LINE1), 6)
        self.assertEqual(tle_checksum(ISS_LINE2), 5)
        self.assertEqual(tle_checksum(VANGUARD_LINE1), 3)

    def test_valid_lines_pass(self):
        line1, line2 = validate_tle_lines(ISS_LINE1, ISS_LINE2)
        self.assertEqual(line1, ISS_LINE1)
        self.assertEqual(line2, ISS_LINE2)

    def test_trailing_newlines_are_stripped(self):
        line1, line2 = validate_tle_lines(ISS_LINE1 + "\r\n", ISS_LINE2 + "\n")
        self.assertEqual(len(line1), 69)
        self.assertEqual(len(line2), 69)

    def test_wrong_length_rejected(self):
        with self.assertRaises(InvalidElementsError):
            validate_tle_lines(ISS_LINE1[:-1], ISS_LINE2)

    def test_wrong_line_number_rejected(self):
        with self.assertRaises(InvalidElementsError):
            validate_tle_lines(ISS_LINE2, ISS_LINE1)

    def test_mismatched_catalog_numbers_rejected(self):
        with self.assertRaises(InvalidElementsError):
            validate_tle_lines(ISS_LINE1, VANGUARD_LINE2)

    def test_bad_checksum_rejected(self):
        corrupted = ISS_LINE1[:-1] + "0"
        with self.assertRaises(InvalidElementsError):
            validate_tle_lines(corrupted, ISS_LINE2)

        # Accepted when checksum verification is disabled
        line1, _ = validate_tle_lines(corrupted, ISS_LINE2, verify_checksum=False)
        self.assertEqual(line1, corrupted)

    def test_non_string_rejected(self):
        with self.assertRaises(InvalidElementsError):
            validate_tle_lines(None, ISS_LINE2)

    def test_invalid_elements_error_is_value_error(self):
        with self.assertRaises(ValueError):
            validate_tle_lines("garbage", ISS_LINE2)


class TestOrbitalElements(unittest.TestCase):
    """Test suite for the immutable element pair."""

    def test_key_is_stable_and_content_based(self):
        a = OrbitalElements.from_lines(ISS_LINE1, ISS_LINE2)
        b = OrbitalElements.from_lines(ISS_LINE1 + "\n", ISS_LINE2)
        c = OrbitalElements.from_lines(VANGUARD_LINE1, VANGUARD_LINE2)

        self.assertEqual(a.key, b.key)
        self.assertNotEqual(a.key, c.key)
        self.assertEqual(len(a.key), 40)

    def test_key_distinguishes_non_ascii_content(self):
        a = OrbitalElements(ISS_LINE1[:-2] + "é6", ISS_LINE2)
        b = OrbitalElements(ISS_LINE1[:-2] + "ü6", ISS_LINE2)

        self.assertNotEqual(a.key, b.key)

    def test_norad_id(self):
        self.assertEqual(OrbitalElements.from_lines(ISS_LINE1, ISS_LINE2).norad_id, "25544")
        self.assertEqual(OrbitalElements.from_lines(VANGUARD_LINE1, VANGUARD_LINE2).norad_id, "00005")


class TestParsing(unittest.TestCase):
    """Test suite for element parsing."""

    def test_parse_tle_fields(self):
        data = parse_tle(ISS_LINE1, ISS_LINE2, "ISS (ZARYA)")

        self.assertEqual(data["name"], "ISS (ZARYA)")
        self.assertEqual(int(data["norad_id"]), 25544)
        self.assertAlmostEqual(data["inclination_deg"], 51.6345, places=4)
        self.assertAlmostEqual(data["eccentricity"], 0.0001736, places=7)
        self.assertAlmostEqual(data["mean_motion_rev_per_day"], 15.50282964, places=6)
        self.assertAlmostEqual(data["orbital_period_minutes"], 92.886, places=2)

        epoch = data["epoch_datetime"]
        self.assertEqual(epoch.date(), datetime(2025, 8, 2, tzinfo=timezone.utc).date())
        self.assertEqual(epoch.hour, 2)
        self.assertEqual(epoch.minute, 19)

    def test_parse_tle_rejects_invalid(self):
        with self.assertRaises(InvalidElementsError):
            parse_tle(ISS_LINE1[:-1] + "0", ISS_LINE2)

    def test_parse_three_line_text(self):
        text = "\n".join([
            "0 ISS (ZARYA)", ISS_LINE1, ISS_LINE2,
            "VANGUARD 1", VANGUARD_LINE1, VANGUARD_LINE2,
        ])
        blocks = parse_tle_text(text)

        self.assertEqual(len(blocks), 2)
        self.assertEqual(blocks[0].name, "ISS (ZARYA)")
        self.assertEqual(blocks[0].line1, ISS_LINE1)
        self.assertEqual(blocks[1].name, "VANGUARD 1")
        self.assertEqual(blocks[1].line2, VANGUARD_LINE2)

    def test_parse_two_line_text(self):
        blocks = parse_tle_text(f"{ISS_LINE1}\n\n{ISS_LINE2}\n")
        self.assertEqual(len(blocks), 1)
        self.assertIsNone(blocks[0].name)

    def test_unpaired_lines_skipped(self):
        blocks = parse_tle_text(f"{ISS_LINE1}\n{VANGUARD_LINE1}\n{VANGUARD_LINE2}\n")
        self.assertEqual(len(blocks), 1)
        self.assertEqual(blocks[0].line1, VANGUARD_LINE1)

    def test_slugify(self):
        self.assertEqual(slugify("ISS (ZARYA)"), "iss-zarya")
        self.assertEqual(slugify("***"), "satellite")


if __name__ == "__main__":
    unittest.main()
