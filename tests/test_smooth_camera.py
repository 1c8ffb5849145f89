"""
Unit Tests for the Smooth Camera Controller

The camera runs against a HeadlessMapView and a FrameLoop pumped by hand.

Run with:
    python -m pytest tests/test_smooth_camera.py -v
"""

import unittest

from orbit_tracker.predictive_tracker import PredictedPosition
from orbit_tracker.scheduling import FrameLoop, ManualClock
from orbit_tracker.smooth_camera import (
    SmoothCamera,
    ease_in_out_cubic,
    interpolate_center,
    lead_target,
)
from orbit_tracker.viewport import CameraTarget, HeadlessMapView


def make_position(lon, lat, speed=0.0, bearing=None, timestamp_ms=0):
    return PredictedPosition(lon, lat, 400.0, speed, bearing, timestamp_ms, 1.0)


class TestCameraMath(unittest.TestCase):
    """Test suite for interpolation helpers."""

    def test_ease_in_out_cubic(self):
        self.assertEqual(ease_in_out_cubic(0.0), 0.0)
        self.assertAlmostEqual(ease_in_out_cubic(0.5), 0.5)
        self.assertEqual(ease_in_out_cubic(1.0), 1.0)
        self.assertEqual(ease_in_out_cubic(2.0), 1.0)
        self.assertLess(ease_in_out_cubic(0.25), 0.25)
        self.assertGreater(ease_in_out_cubic(0.75), 0.75)

    def test_interpolate_center_crosses_antimeridian(self):
        lon, lat = interpolate_center((179.0, 0.0), (-179.0, 10.0), 0.5)
        self.assertEqual(lon, 180.0)
        self.assertAlmostEqual(lat, 5.0)

        lon, _ = interpolate_center((-179.0, 0.0), (179.0, 0.0), 0.75)
        self.assertAlmostEqual(lon, 179.5)

    def test_lead_target_follows_bearing(self):
        east = lead_target(make_position(0.0, 0.0, speed=7.5, bearing=90.0), 100)
        self.assertAlmostEqual(east[0], 0.75 / 111.0)
        self.assertAlmostEqual(east[1], 0.0)

        north = lead_target(make_position(0.0, 0.0, speed=7.5, bearing=0.0), 100)
        self.assertAlmostEqual(north[0], 0.0)
        self.assertAlmostEqual(north[1], 0.75 / 111.0)

    def test_no_lead_without_bearing(self):
        self.assertEqual(lead_target(make_position(10.0, 20.0, speed=7.5), 100), (10.0, 20.0))

    def test_lead_target_wraps(self):
        lon, _ = lead_target(make_position(179.999, 0.0, speed=7.5, bearing=90.0), 100)
        self.assertLess(lon, -179.0)


class TestSmoothCamera(unittest.TestCase):
    """Test suite for frame-driven camera following."""

    def setUp(self):
        """Set up test fixtures."""
        self.clock = ManualClock(1_000_000)
        self.view = HeadlessMapView(center=(0.0, 0.0), zoom=4.0, pitch=60.0, bearing=10.0)
        self.frames = FrameLoop(self.clock)
        self.camera = SmoothCamera(self.view, self.frames, clock=self.clock)

    def run_frames(self, count, step_ms=16):
        for _ in range(count):
            self.frames.run_frame(self.clock.advance(step_ms))

    def test_not_tracking_by_default(self):
        self.assertFalse(self.camera.is_tracking())
        self.run_frames(3)
        self.assertEqual(self.view.jump_count, 0)

    def test_moves_toward_target(self):
        self.camera.start_smooth_tracking(make_position(10.0, 5.0))
        self.run_frames(1)

        self.assertAlmostEqual(self.view.center[0], 0.8)
        self.assertAlmostEqual(self.view.center[1], 0.4)

        self.run_frames(200)
        self.assertAlmostEqual(self.view.center[0], 10.0, places=3)
        self.assertAlmostEqual(self.view.center[1], 5.0, places=3)

    def test_zoom_pitch_bearing_held(self):
        self.camera.start_smooth_tracking(make_position(10.0, 5.0, speed=7.6, bearing=45.0))
        self.run_frames(20)

        self.assertEqual(self.view.zoom, 4.0)
        self.assertEqual(self.view.pitch, 60.0)
        self.assertEqual(self.view.bearing, 10.0)

    def test_wraparound_takes_short_path(self):
        """From +179° toward -179° the camera crosses ±180°, never 0°."""
        self.view.jump_to((179.0, 0.0), 4.0, 60.0, 0.0)
        self.camera.start_smooth_tracking(make_position(-179.0, 0.0))

        for _ in range(300):
            self.run_frames(1)
            lon = self.view.center[0]
            self.assertGreater(lon, -180.0)
            self.assertLessEqual(lon, 180.0)
            self.assertTrue(lon >= 179.0 or lon <= -179.0, f"camera swept through {lon}")

        self.assertAlmostEqual(self.view.center[0], -179.0, places=3)

    def test_adaptive_smoothing_factor(self):
        self.camera.start_smooth_tracking(make_position(0.0, 0.0, speed=4.0))
        self.assertAlmostEqual(self.camera.current_smoothing_factor(), 0.13)

        self.camera.update_target_position(make_position(0.0, 0.0, speed=16.0))
        self.assertAlmostEqual(self.camera.current_smoothing_factor(), 0.18)

        self.camera.set_adaptive_smoothing(False)
        self.assertAlmostEqual(self.camera.current_smoothing_factor(), 0.08)

    def test_smoothing_factor_capped(self):
        camera = SmoothCamera(self.view, self.frames, clock=self.clock, smoothing_factor=0.25)
        camera.start_smooth_tracking(make_position(0.0, 0.0, speed=8.0))
        self.assertAlmostEqual(camera.current_smoothing_factor(), 0.3)
        camera.stop_smooth_tracking()

    def test_zero_smoothing_factor_kept(self):
        camera = SmoothCamera(self.view, self.frames, clock=self.clock, smoothing_factor=0.0)
        camera.set_adaptive_smoothing(False)
        camera.start_smooth_tracking(make_position(10.0, 0.0))

        self.assertEqual(camera.current_smoothing_factor(), 0.0)
        camera.stop_smooth_tracking()

    def test_small_movement_skipped(self):
        self.camera.start_smooth_tracking(make_position(0.000001, 0.0))
        self.run_frames(5)

        self.assertEqual(self.view.jump_count, 0)
        self.assertEqual(self.camera.get_performance_stats()["skipped_frames"], 5)

    def test_lead_applied_only_when_enabled(self):
        self.camera.start_smooth_tracking(make_position(1.0, 0.0, speed=8.0, bearing=90.0))
        self.run_frames(1)
        with_lead = self.view.center[0]

        self.view.jump_to((0.0, 0.0), 4.0, 60.0, 10.0)
        self.camera.set_velocity_based_smoothing(False)
        self.run_frames(1)
        without_lead = self.view.center[0]

        self.assertAlmostEqual(without_lead, 0.18)
        self.assertGreater(with_lead, without_lead)

    def test_updates_coalesce_to_latest(self):
        self.camera.start_smooth_tracking(make_position(1.0, 0.0, timestamp_ms=0))
        self.camera.update_target_position(make_position(2.0, 0.0, timestamp_ms=33))
        self.camera.update_target_position(make_position(4.0, 0.0, timestamp_ms=66))
        self.run_frames(1)

        self.assertAlmostEqual(self.view.center[0], 0.32)

    def test_out_of_order_update_dropped(self):
        self.camera.start_smooth_tracking(make_position(1.0, 0.0, timestamp_ms=100))
        self.camera.update_target_position(make_position(5.0, 0.0, timestamp_ms=50))

        self.assertEqual(self.camera.target_position.longitude, 1.0)
        self.assertEqual(self.camera.get_performance_stats()["dropped_updates"], 1)

    def test_stop_cancels_pending_frame(self):
        self.camera.start_smooth_tracking(make_position(10.0, 0.0))
        self.camera.stop_smooth_tracking()

        self.assertEqual(self.frames.pending, 0)
        self.run_frames(3)
        self.assertEqual(self.view.jump_count, 0)
        self.assertFalse(self.camera.is_tracking())

    def test_stop_from_earlier_frame_callback(self):
        """Stopping inside the same frame prevents the camera's own callback."""
        self.frames.request_frame(lambda ts: self.camera.stop_smooth_tracking())
        self.camera.start_smooth_tracking(make_position(10.0, 0.0))

        self.run_frames(1)

        self.assertEqual(self.view.jump_count, 0)
        self.assertEqual(self.frames.pending, 0)

    def test_restart_replaces_frame_request(self):
        self.camera.start_smooth_tracking(make_position(10.0, 0.0))
        self.camera.start_smooth_tracking(make_position(20.0, 0.0))

        self.assertEqual(self.frames.pending, 1)

    def test_performance_stats(self):
        self.camera.start_smooth_tracking(make_position(10.0, 0.0))
        self.run_frames(4)

        stats = self.camera.get_performance_stats()
        self.assertTrue(stats["tracking"])
        self.assertEqual(stats["frames"], 4)
        self.assertEqual(stats["moves"], 4)
        self.assertEqual(stats["camera_state"].center, self.view.center)
        self.assertFalse(stats["flying"])


class TestFlyTo(unittest.TestCase):
    """Test suite for eased pose transitions."""

    def setUp(self):
        """Set up test fixtures."""
        self.clock = ManualClock(0)
        self.view = HeadlessMapView(center=(0.0, 0.0), zoom=2.0, pitch=0.0, bearing=0.0)
        self.frames = FrameLoop(self.clock)
        self.camera = SmoothCamera(self.view, self.frames, clock=self.clock)

    def test_fly_to_reaches_pose_after_duration(self):
        future = self.camera.fly_to_target(CameraTarget((10.0, 20.0), zoom=4.0, pitch=60.0), duration_ms=2000)
        self.assertFalse(future.done())

        self.frames.run_frame(self.clock.advance(1000))
        self.assertFalse(future.done())
        self.assertAlmostEqual(self.view.center[0], 5.0)
        self.assertAlmostEqual(self.view.center[1], 10.0)
        self.assertAlmostEqual(self.view.zoom, 3.0)

        self.frames.run_frame(self.clock.advance(1000))
        self.assertTrue(future.done())
        pose = future.result()
        self.assertEqual(pose.center, (10.0, 20.0))
        self.assertAlmostEqual(self.view.zoom, 4.0)
        self.assertAlmostEqual(self.view.pitch, 60.0)
        self.assertEqual(self.view.bearing, 0.0)
        self.assertEqual(self.frames.pending, 0)

    def test_fly_to_keeps_unset_fields(self):
        self.view.jump_to((0.0, 0.0), 5.0, 30.0, 90.0)
        future = self.camera.fly_to_target(CameraTarget((1.0, 1.0)), duration_ms=0)

        self.assertTrue(future.done())
        self.assertEqual(self.view.zoom, 5.0)
        self.assertEqual(self.view.pitch, 30.0)
        self.assertEqual(self.view.bearing, 90.0)

    def test_fly_to_across_antimeridian(self):
        self.view.jump_to((170.0, 0.0), 2.0, 0.0, 0.0)
        self.camera.fly_to_target(CameraTarget((-170.0, 0.0)), duration_ms=1000)

        self.frames.run_frame(self.clock.advance(500))
        self.assertEqual(self.view.center[0], 180.0)

    def test_stop_cancels_fly_to(self):
        future = self.camera.fly_to_target(CameraTarget((10.0, 0.0)), duration_ms=2000)
        self.camera.stop_smooth_tracking()

        self.assertTrue(future.cancelled())
        self.assertEqual(self.frames.pending, 0)

    def test_new_fly_to_cancels_previous(self):
        first = self.camera.fly_to_target(CameraTarget((10.0, 0.0)), duration_ms=2000)
        second = self.camera.fly_to_target(CameraTarget((20.0, 0.0)), duration_ms=2000)

        self.assertTrue(first.cancelled())
        self.assertFalse(second.done())
        self.assertEqual(self.frames.pending, 1)


if __name__ == "__main__":
    unittest.main()
