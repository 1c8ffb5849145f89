"""
Unit Tests for the Orbital Interpolator

Run with:
    python -m pytest tests/test_interpolator.py -v
"""

import unittest

from orbit_tracker.interpolator import (
    InterpolatedPosition,
    OrbitalInterpolator,
    PositionSample,
    interpolate_samples,
)


class TestInterpolateSamples(unittest.TestCase):
    """Test suite for blending two samples."""

    def test_midpoint(self):
        first = PositionSample(10.0, 20.0, 400.0, 7.6, 0)
        second = PositionSample(12.0, 22.0, 402.0, 7.8, 1000)

        mid = interpolate_samples(first, second, 500)

        self.assertAlmostEqual(mid.longitude, 11.0)
        self.assertAlmostEqual(mid.latitude, 21.0)
        self.assertAlmostEqual(mid.altitude_km, 401.0)
        self.assertAlmostEqual(mid.speed_km_s, 7.7)

    def test_crosses_antimeridian(self):
        first = PositionSample(179.0, 0.0, 400.0, 7.6, 0)
        second = PositionSample(-179.0, 0.0, 400.0, 7.6, 1000)

        self.assertAlmostEqual(interpolate_samples(first, second, 750).longitude, -179.5)

    def test_progress_clamped(self):
        first = PositionSample(10.0, 0.0, 400.0, 7.6, 0)
        second = PositionSample(12.0, 0.0, 400.0, 7.6, 1000)

        self.assertAlmostEqual(interpolate_samples(first, second, 5000).longitude, 12.0)
        self.assertAlmostEqual(interpolate_samples(first, second, -5000).longitude, 10.0)

    def test_zero_span(self):
        sample = PositionSample(10.0, 0.0, 400.0, 7.6, 0)
        self.assertAlmostEqual(interpolate_samples(sample, sample, 100).longitude, 10.0)


class TestOrbitalInterpolator(unittest.TestCase):
    """Test suite for per-satellite history."""

    def setUp(self):
        """Set up test fixtures."""
        self.interpolator = OrbitalInterpolator()

    def add(self, lon, timestamp_ms, satellite_id="sat"):
        self.interpolator.add_position(satellite_id, PositionSample(lon, 0.0, 400.0, 7.6, timestamp_ms))

    def test_empty_history(self):
        self.assertIsNone(self.interpolator.get_interpolated_position("sat", 0))
        self.assertIsNone(self.interpolator.get_predicted_position("sat", 0))
        self.assertFalse(self.interpolator.can_interpolate("sat"))

    def test_single_sample(self):
        self.add(5.0, 1000)

        self.assertEqual(
            self.interpolator.get_interpolated_position("sat", 2000),
            InterpolatedPosition(5.0, 0.0, 400.0, 7.6),
        )
        self.assertIsNone(self.interpolator.get_predicted_position("sat", 2000))
        self.assertFalse(self.interpolator.can_interpolate("sat"))

    def test_bracketing_pair(self):
        self.add(0.0, 0)
        self.add(1.0, 1000)
        self.add(3.0, 2000)

        self.assertAlmostEqual(self.interpolator.get_interpolated_position("sat", 500).longitude, 0.5)
        self.assertAlmostEqual(self.interpolator.get_interpolated_position("sat", 1500).longitude, 2.0)
        self.assertAlmostEqual(self.interpolator.get_interpolated_position("sat", -100).longitude, 0.0)
        self.assertAlmostEqual(self.interpolator.get_interpolated_position("sat", 9000).longitude, 3.0)

    def test_history_limited_to_three(self):
        for i in range(5):
            self.add(float(i), i * 1000)

        # Oldest samples dropped; queries before the window get the oldest kept
        self.assertAlmostEqual(self.interpolator.get_interpolated_position("sat", 0).longitude, 2.0)

    def test_predicted_position(self):
        self.add(0.0, 0)
        self.add(1.0, 1000)

        self.assertTrue(self.interpolator.can_interpolate("sat"))
        self.assertAlmostEqual(self.interpolator.get_predicted_position("sat", 500).longitude, 0.5)
        self.assertAlmostEqual(self.interpolator.get_predicted_position("sat", 3000).longitude, 1.0)
        self.assertAlmostEqual(self.interpolator.get_predicted_position("sat", 60_000).longitude, 1.0)

    def test_forget(self):
        self.add(0.0, 0)
        self.interpolator.forget("sat")
        self.interpolator.forget("sat")
        self.assertEqual(self.interpolator.tracked_count, 0)

    def test_cleanup(self):
        self.add(0.0, 0, "old")
        self.add(0.0, 0, "mixed")
        self.add(1.0, 200_000, "mixed")
        self.add(0.0, 250_000, "recent")

        removed = self.interpolator.cleanup(310_000)

        self.assertEqual(removed, 1)
        self.assertEqual(self.interpolator.tracked_count, 2)
        self.assertFalse(self.interpolator.can_interpolate("mixed"))
        self.assertAlmostEqual(self.interpolator.get_interpolated_position("mixed", 0).longitude, 1.0)


if __name__ == "__main__":
    unittest.main()
