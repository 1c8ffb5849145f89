"""
Clocks and scheduled tasks.

Two kinds of recurring work drive the tracker:

- fixed-period tasks (the predictive tracker's 30 Hz tick), created through a
  scheduler's ``call_every``
- frame-synchronized tasks (the smooth camera), requested one frame at a time
  from a FrameLoop that the host's render loop pumps

Cancelling either kind is synchronous and allowed from inside the task's own
callback: once ``cancel()`` / ``cancel_frame()`` returns, that callback will
not be invoked again.
"""

import heapq
import itertools
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


class SystemClock:
    """Wall-clock time in Unix milliseconds."""

    def now_ms(self) -> int:
        return int(datetime.now(timezone.utc).timestamp() * 1000)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start_ms: int = 0):
        self._now = int(start_ms)

    def now_ms(self) -> int:
        return self._now

    def set(self, now_ms: int) -> None:
        self._now = int(now_ms)

    def advance(self, delta_ms: int) -> int:
        self._now += int(delta_ms)
        return self._now


class TaskHandle:
    """Handle of a fixed-period task."""

    def __init__(self, interval_ms: int, callback: Callable[[], None]):
        self.interval_ms = interval_ms
        self.callback = callback
        self._cancelled = threading.Event()

    @property
    def active(self) -> bool:
        return not self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def wait(self, timeout_s: float) -> bool:
        """Sleep up to timeout_s; True if the task was cancelled meanwhile."""
        return self._cancelled.wait(timeout_s)


class ThreadScheduler:
    """Runs each periodic task on its own daemon thread."""

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> TaskHandle:
        handle = TaskHandle(interval_ms, callback)
        thread = threading.Thread(
            target=self._run,
            args=(handle,),
            name=f"periodic-{interval_ms}ms",
            daemon=True,
        )
        thread.start()
        return handle

    @staticmethod
    def _run(handle: TaskHandle) -> None:
        interval_s = handle.interval_ms / 1000.0
        # wait() returns True as soon as the handle is cancelled
        while not handle.wait(interval_s):
            try:
                handle.callback()
            except Exception:
                logger.exception(f"Periodic task failed; next run in {handle.interval_ms} ms")


class ManualScheduler:
    """
    Deterministic scheduler driven by a ManualClock.

    ``advance(ms)`` moves the clock forward, firing every due task in time
    order with the clock set to that task's due time.
    A callback that raises stays scheduled; the exception propagates out of
    ``advance()``.
    """

    def __init__(self, clock: ManualClock):
        self.clock = clock
        self._queue = []
        self._sequence = itertools.count()

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> TaskHandle:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        handle = TaskHandle(interval_ms, callback)
        heapq.heappush(self._queue, (self.clock.now_ms() + interval_ms, next(self._sequence), handle))
        return handle

    def advance(self, delta_ms: int) -> None:
        target = self.clock.now_ms() + int(delta_ms)

        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            if not handle.active:
                continue
            self.clock.set(due)
            try:
                handle.callback()
            finally:
                if handle.active:
                    heapq.heappush(self._queue, (due + handle.interval_ms, next(self._sequence), handle))

        self.clock.set(target)

    @property
    def pending(self) -> int:
        return sum(1 for _, _, handle in self._queue if handle.active)


class FrameLoop:
    """
    One-shot per-frame callbacks, in the style of requestAnimationFrame.

    The host calls ``run_frame()`` once per rendered frame. Callbacks requested
    while a frame runs are deferred to the next frame.
    """

    def __init__(self, clock=None):
        self.clock = clock or SystemClock()
        self._callbacks: Dict[int, Callable[[int], None]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self.frame_count = 0

    def request_frame(self, callback: Callable[[int], None]) -> int:
        with self._lock:
            frame_id = next(self._ids)
            self._callbacks[frame_id] = callback
            return frame_id

    def cancel_frame(self, frame_id: Optional[int]) -> None:
        if frame_id is None:
            return
        with self._lock:
            self._callbacks.pop(frame_id, None)

    def run_frame(self, timestamp_ms: Optional[int] = None) -> int:
        """Run the callbacks pending at frame start; returns how many ran."""
        if timestamp_ms is None:
            timestamp_ms = self.clock.now_ms()

        with self._lock:
            frame_ids = sorted(self._callbacks)

        ran = 0
        for frame_id in frame_ids:
            with self._lock:
                # Cancelled by an earlier callback in this frame
                callback = self._callbacks.pop(frame_id, None)
            if callback is None:
                continue
            callback(timestamp_ms)
            ran += 1

        self.frame_count += 1
        return ran

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._callbacks)
