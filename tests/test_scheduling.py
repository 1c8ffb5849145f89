"""
Unit Tests for Clocks, Schedulers and the Frame Loop

Run with:
    python -m pytest tests/test_scheduling.py -v
"""

import threading
import unittest

from orbit_tracker.scheduling import FrameLoop, ManualClock, ManualScheduler, SystemClock, ThreadScheduler


class TestClocks(unittest.TestCase):
    """Test suite for time sources."""

    def test_manual_clock(self):
        clock = ManualClock(1000)
        self.assertEqual(clock.now_ms(), 1000)
        self.assertEqual(clock.advance(16), 1016)
        clock.set(5)
        self.assertEqual(clock.now_ms(), 5)

    def test_system_clock_is_unix_ms(self):
        now = SystemClock().now_ms()
        # After 2020-01-01
        self.assertGreater(now, 1_577_836_800_000)


class TestManualScheduler(unittest.TestCase):
    """Test suite for deterministic periodic tasks."""

    def setUp(self):
        """Set up test fixtures."""
        self.clock = ManualClock(0)
        self.scheduler = ManualScheduler(self.clock)

    def test_fires_at_each_period(self):
        fired = []
        self.scheduler.call_every(33, lambda: fired.append(self.clock.now_ms()))

        self.scheduler.advance(100)

        self.assertEqual(fired, [33, 66, 99])
        self.assertEqual(self.clock.now_ms(), 100)
        self.assertEqual(self.scheduler.pending, 1)

    def test_tasks_interleave_in_time_order(self):
        fired = []
        self.scheduler.call_every(30, lambda: fired.append(("a", self.clock.now_ms())))
        self.scheduler.call_every(20, lambda: fired.append(("b", self.clock.now_ms())))

        self.scheduler.advance(60)

        self.assertEqual(fired, [("b", 20), ("a", 30), ("b", 40), ("a", 60), ("b", 60)])

    def test_cancel_from_inside_callback(self):
        fired = []

        def callback():
            fired.append(self.clock.now_ms())
            handle.cancel()

        handle = self.scheduler.call_every(10, callback)
        self.scheduler.advance(100)

        self.assertEqual(fired, [10])
        self.assertFalse(handle.active)
        self.assertEqual(self.scheduler.pending, 0)

    def test_failing_callback_stays_scheduled(self):
        fired = []

        def callback():
            fired.append(self.clock.now_ms())
            if len(fired) == 1:
                raise ValueError("first run fails")

        self.scheduler.call_every(10, callback)

        with self.assertRaises(ValueError):
            self.scheduler.advance(10)
        self.assertEqual(self.scheduler.pending, 1)

        self.scheduler.advance(20)
        self.assertEqual(fired, [10, 20, 30])

    def test_rejects_non_positive_interval(self):
        with self.assertRaises(ValueError):
            self.scheduler.call_every(0, lambda: None)


class TestFrameLoop(unittest.TestCase):
    """Test suite for one-shot frame callbacks."""

    def setUp(self):
        """Set up test fixtures."""
        self.clock = ManualClock(0)
        self.frames = FrameLoop(self.clock)

    def test_callbacks_run_once_with_timestamp(self):
        seen = []
        self.frames.request_frame(seen.append)

        self.assertEqual(self.frames.run_frame(16), 1)
        self.assertEqual(self.frames.run_frame(32), 0)
        self.assertEqual(seen, [16])
        self.assertEqual(self.frames.frame_count, 2)

    def test_default_timestamp_from_clock(self):
        seen = []
        self.clock.set(500)
        self.frames.request_frame(seen.append)
        self.frames.run_frame()
        self.assertEqual(seen, [500])

    def test_request_during_frame_deferred(self):
        seen = []

        def again(timestamp_ms):
            seen.append(timestamp_ms)
            self.frames.request_frame(again)

        self.frames.request_frame(again)
        self.frames.run_frame(16)
        self.frames.run_frame(32)

        self.assertEqual(seen, [16, 32])
        self.assertEqual(self.frames.pending, 1)

    def test_cancel_frame(self):
        seen = []
        frame_id = self.frames.request_frame(seen.append)
        self.frames.cancel_frame(frame_id)
        self.frames.cancel_frame(frame_id)
        self.frames.cancel_frame(None)

        self.frames.run_frame(16)

        self.assertEqual(seen, [])
        self.assertEqual(self.frames.pending, 0)

    def test_cancel_by_earlier_callback(self):
        seen = []
        self.frames.request_frame(lambda ts: self.frames.cancel_frame(second))
        second = self.frames.request_frame(seen.append)

        self.assertEqual(self.frames.run_frame(16), 1)
        self.assertEqual(seen, [])


class TestThreadScheduler(unittest.TestCase):
    """Test suite for wall-clock periodic tasks."""

    def test_runs_until_cancelled(self):
        ticked = threading.Event()
        handle = ThreadScheduler().call_every(10, ticked.set)

        self.assertTrue(ticked.wait(1.0))
        handle.cancel()
        self.assertFalse(handle.active)

    def test_failing_callback_keeps_running(self):
        calls = []
        ran_again = threading.Event()

        def explode():
            calls.append(1)
            if len(calls) >= 3:
                ran_again.set()
            raise RuntimeError("boom")

        with self.assertLogs("orbit_tracker.scheduling", level="ERROR"):
            handle = ThreadScheduler().call_every(10, explode)
            self.assertTrue(ran_again.wait(1.0))
        handle.cancel()

        self.assertFalse(handle.active)


if __name__ == "__main__":
    unittest.main()
