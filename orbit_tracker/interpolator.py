"""
Position history for background satellites.

The batch calculator refreshes the background mass about once a second. The
renderer can ask this interpolator for in-between positions so that icons
glide instead of stepping. Only the last three samples per satellite are kept.
"""

import logging
from collections import deque
from typing import Deque, Dict, NamedTuple, Optional

from orbit_tracker.geo import longitude_delta, normalize_longitude

logger = logging.getLogger(__name__)

MAX_HISTORY = 3
MAX_EXTRAPOLATION_MS = 5000
MAX_SAMPLE_AGE_MS = 300_000


class PositionSample(NamedTuple):
    longitude: float
    latitude: float
    altitude_km: float
    speed_km_s: float
    timestamp_ms: int


class InterpolatedPosition(NamedTuple):
    longitude: float
    latitude: float
    altitude_km: float
    speed_km_s: float


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * max(0.0, min(1.0, t))


def _as_interpolated(sample: PositionSample) -> InterpolatedPosition:
    return InterpolatedPosition(sample.longitude, sample.latitude, sample.altitude_km, sample.speed_km_s)


def interpolate_samples(first: PositionSample, second: PositionSample, timestamp_ms: int) -> InterpolatedPosition:
    """
    Blend two samples at a timestamp, crossing the antimeridian the short way.

    Progress is clamped to [0, 1], so a timestamp outside the pair yields the
    nearer sample.
    """
    span = second.timestamp_ms - first.timestamp_ms
    progress = (timestamp_ms - first.timestamp_ms) / span if span > 0 else 0.0
    t = max(0.0, min(1.0, progress))

    return InterpolatedPosition(
        longitude=normalize_longitude(first.longitude + longitude_delta(first.longitude, second.longitude) * t),
        latitude=_lerp(first.latitude, second.latitude, t),
        altitude_km=_lerp(first.altitude_km, second.altitude_km, t),
        speed_km_s=_lerp(first.speed_km_s, second.speed_km_s, t),
    )


class OrbitalInterpolator:
    """Short per-satellite history of computed positions."""

    def __init__(self):
        self._history: Dict[str, Deque[PositionSample]] = {}

    def add_position(self, satellite_id: str, sample: PositionSample) -> None:
        history = self._history.get(satellite_id)
        if history is None:
            history = deque(maxlen=MAX_HISTORY)
            self._history[satellite_id] = history
        history.append(sample)

    def get_interpolated_position(self, satellite_id: str, timestamp_ms: int) -> Optional[InterpolatedPosition]:
        """
        Position at a timestamp from the stored samples.

        Returns:
            None without samples; the only sample when there is one; otherwise
            a blend of the bracketing pair, or of the last two samples when the
            timestamp is past the newest one.
        """
        history = self._history.get(satellite_id)
        if not history:
            return None
        if len(history) < 2:
            return _as_interpolated(history[0])

        samples = list(history)
        if timestamp_ms < samples[0].timestamp_ms:
            return _as_interpolated(samples[0])

        for before, after in zip(samples, samples[1:]):
            if before.timestamp_ms <= timestamp_ms <= after.timestamp_ms:
                return interpolate_samples(before, after, timestamp_ms)

        return interpolate_samples(samples[-2], samples[-1], timestamp_ms)

    def get_predicted_position(self, satellite_id: str, timestamp_ms: int) -> Optional[InterpolatedPosition]:
        """Position near the newest sample; held at it beyond five seconds."""
        history = self._history.get(satellite_id)
        if not history or len(history) < 2:
            return None

        previous, last = history[-2], history[-1]
        if timestamp_ms - last.timestamp_ms > MAX_EXTRAPOLATION_MS:
            return _as_interpolated(last)
        return interpolate_samples(previous, last, timestamp_ms)

    def can_interpolate(self, satellite_id: str) -> bool:
        history = self._history.get(satellite_id)
        return history is not None and len(history) >= 2

    def forget(self, satellite_id: str) -> None:
        self._history.pop(satellite_id, None)

    def cleanup(self, now_ms: int) -> int:
        """Drop samples older than five minutes; returns how many satellites were forgotten."""
        removed = 0
        for satellite_id in list(self._history):
            kept = [s for s in self._history[satellite_id] if now_ms - s.timestamp_ms < MAX_SAMPLE_AGE_MS]
            if kept:
                self._history[satellite_id] = deque(kept, maxlen=MAX_HISTORY)
            else:
                del self._history[satellite_id]
                removed += 1
        if removed:
            logger.debug(f"Interpolator forgot {removed} satellites")
        return removed

    @property
    def tracked_count(self) -> int:
        return len(self._history)
