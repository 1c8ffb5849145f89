"""
Predictive Tracker

Serves high-rate positions for the one satellite being followed while only
calling the propagator every few seconds.

How it works:
    1. On start, two exact fixes 100 ms apart give a linear velocity in
       longitude/latitude/altitude per millisecond.
    2. Between exact fixes, positions are extrapolated linearly from the last
       fix. Over seconds-scale windows this stays within a fraction of a
       kilometre for near-circular orbits.
    3. Every 15 s (or on demand) a new exact fix replaces the state; the
       velocity is re-derived from the delta against the previous fix, which
       removes the drift linear extrapolation accumulates along the orbit.
    4. A periodic 30 Hz task pushes the prediction for "now" to subscribers.

Bearing is not re-derived between exact fixes; the last exact bearing is
carried forward until the next refresh.

Confidence expresses staleness: 1 at an exact fix, falling linearly to 0 at
the prediction horizon (5 s) after it.
"""

import logging
import math
import threading
from collections import OrderedDict
from typing import Callable, List, NamedTuple, Optional

from orbit_tracker.config import config
from orbit_tracker.errors import PropagationError
from orbit_tracker.geo import clamp_latitude, longitude_delta, normalize_longitude
from orbit_tracker.propagator import GeoPosition, HandleCache
from orbit_tracker.scheduling import SystemClock, ThreadScheduler
from orbit_tracker.tle_parser import OrbitalElements

logger = logging.getLogger(__name__)


class PredictedPosition(NamedTuple):
    longitude: float
    latitude: float
    altitude_km: float
    speed_km_s: float
    bearing_deg: Optional[float]
    timestamp_ms: int
    confidence: float

    @classmethod
    def from_geo(cls, position: GeoPosition, timestamp_ms: int, confidence: float = 1.0) -> "PredictedPosition":
        return cls(
            longitude=position.longitude,
            latitude=position.latitude,
            altitude_km=position.altitude_km,
            speed_km_s=position.speed_km_s,
            bearing_deg=position.bearing_deg,
            timestamp_ms=int(timestamp_ms),
            confidence=confidence,
        )

    def to_geo(self) -> GeoPosition:
        return GeoPosition(self.longitude, self.latitude, self.altitude_km, self.speed_km_s, self.bearing_deg)


class VelocityVector(NamedTuple):
    lon_per_ms: float
    lat_per_ms: float
    alt_per_ms: float


class TrackingState(NamedTuple):
    satellite_id: str
    elements: OrbitalElements
    last_exact: PredictedPosition
    velocity: VelocityVector
    orbital_period_ms: float
    next_refresh_at_ms: int
    refresh_failures: int = 0


def velocity_between(earlier: PredictedPosition, later: PredictedPosition) -> Optional[VelocityVector]:
    """Per-millisecond rates between two exact fixes, taking longitude the short way."""
    delta_ms = later.timestamp_ms - earlier.timestamp_ms
    if delta_ms <= 0:
        return None
    return VelocityVector(
        longitude_delta(earlier.longitude, later.longitude) / delta_ms,
        (later.latitude - earlier.latitude) / delta_ms,
        (later.altitude_km - earlier.altitude_km) / delta_ms,
    )


class PredictiveTracker:
    """
    Follows one satellite at a time.

    Args:
        handle_cache: Shared compiled-handle cache
        clock: Time source (default: system clock)
        scheduler: Periodic task scheduler (default: ThreadScheduler)
        on_position_update: Optional first subscriber
        update_interval_ms: Tick period and prediction cache step
        prediction_horizon_ms: Staleness at which confidence reaches 0
        refresh_interval_ms: Time between exact fixes
        cache_size: Number of pre-computed predictions
    """

    def __init__(
        self,
        handle_cache: HandleCache,
        clock=None,
        scheduler=None,
        on_position_update: Optional[Callable[[PredictedPosition], None]] = None,
        update_interval_ms: Optional[int] = None,
        prediction_horizon_ms: Optional[int] = None,
        refresh_interval_ms: Optional[int] = None,
        cache_size: Optional[int] = None,
    ):
        self.handle_cache = handle_cache
        self.clock = clock or SystemClock()
        self.scheduler = scheduler or ThreadScheduler()
        self.update_interval_ms = config.TRACKER_UPDATE_INTERVAL_MS if update_interval_ms is None else update_interval_ms
        self.prediction_horizon_ms = (
            config.TRACKER_PREDICTION_HORIZON_MS if prediction_horizon_ms is None else prediction_horizon_ms
        )
        self.refresh_interval_ms = config.TRACKER_REFRESH_INTERVAL_MS if refresh_interval_ms is None else refresh_interval_ms
        self.refresh_retry_ms = config.TRACKER_REFRESH_RETRY_MS
        self.cache_size = config.TRACKER_PREDICTION_CACHE_SIZE if cache_size is None else cache_size

        self._lock = threading.RLock()
        self._state: Optional[TrackingState] = None
        self._timer = None
        self._generation = 0
        self._prediction_cache: "OrderedDict[int, PredictedPosition]" = OrderedDict()
        self._subscribers: List[Callable[[PredictedPosition], None]] = []

        if on_position_update is not None:
            self.subscribe(on_position_update)

    # -- subscriptions -----------------------------------------------------

    def subscribe(self, callback: Callable[[PredictedPosition], None]) -> Callable[[], None]:
        """Register a tick listener; returns a function that unregisters it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    # -- lifecycle ---------------------------------------------------------

    def start_tracking(self, satellite_id: str, elements: OrbitalElements) -> TrackingState:
        """
        Replace any current tracking with a new satellite.

        Raises:
            InvalidElementsError: If the elements cannot be compiled
            PropagationError: If no initial exact fix can be computed; the
                tracker is left idle
        """
        with self._lock:
            self.stop_tracking()

            now = self.clock.now_ms()
            handle = self.handle_cache.get(elements)
            propagator = self.handle_cache.propagator

            first = PredictedPosition.from_geo(propagator.evaluate(handle, now), now)
            sample_ms = config.TRACKER_VELOCITY_SAMPLE_MS
            second = PredictedPosition.from_geo(
                propagator.evaluate(handle, now + sample_ms), now + sample_ms
            )
            velocity = velocity_between(first, second)

            period_ms = handle.orbital_period_ms
            self._state = TrackingState(
                satellite_id=satellite_id,
                elements=elements,
                last_exact=first,
                velocity=velocity,
                orbital_period_ms=period_ms,
                next_refresh_at_ms=now + self._refresh_interval_for(period_ms),
            )
            self._generation += 1

            self._populate_prediction_cache(now)
            self._timer = self.scheduler.call_every(self.update_interval_ms, self._tick)

            logger.info(
                f"Tracking {satellite_id} (NORAD {elements.norad_id}), "
                f"period {period_ms / 60000.0:.1f} min"
            )
            return self._state

    def stop_tracking(self) -> None:
        """Stop tracking; safe to call at any time, including from a subscriber."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if self._state is not None:
                logger.info(f"Stopped tracking {self._state.satellite_id}")
                self._generation += 1
            self._state = None
            self._prediction_cache.clear()

    def is_tracking(self) -> bool:
        return self._state is not None

    @property
    def tracking_state(self) -> Optional[TrackingState]:
        return self._state

    @property
    def satellite_id(self) -> Optional[str]:
        state = self._state
        return state.satellite_id if state is not None else None

    # -- predictions -------------------------------------------------------

    def get_predicted_position(self, timestamp_ms: Optional[int] = None) -> Optional[PredictedPosition]:
        """
        Predicted position at a timestamp (default: now).

        Returns None when idle.
        """
        with self._lock:
            if self._state is None:
                return None

            now = self.clock.now_ms() if timestamp_ms is None else int(timestamp_ms)

            step = self.update_interval_ms
            cached = self._prediction_cache.get((now // step) * step)
            if cached is not None and abs(cached.timestamp_ms - now) < step:
                return cached

            return self._extrapolate(self._state, now)

    def get_tracking_quality(self, now_ms: Optional[int] = None) -> float:
        with self._lock:
            if self._state is None:
                return 0.0
            now = self.clock.now_ms() if now_ms is None else now_ms
            return self._confidence(now - self._state.last_exact.timestamp_ms)

    def refresh(self, now_ms: Optional[int] = None) -> bool:
        """
        Take a new exact fix now.

        Returns:
            True on success; False when idle or when propagation failed, in
            which case the previous state is kept and a retry is scheduled.
        """
        with self._lock:
            state = self._state
            if state is None:
                return False

            now = self.clock.now_ms() if now_ms is None else int(now_ms)
            try:
                handle = self.handle_cache.get(state.elements)
                exact = PredictedPosition.from_geo(self.handle_cache.propagator.evaluate(handle, now), now)
            except PropagationError as e:
                self._state = state._replace(
                    next_refresh_at_ms=now + self.refresh_retry_ms,
                    refresh_failures=state.refresh_failures + 1,
                )
                logger.warning(
                    f"Refresh failed for {state.satellite_id} ({e.kind.value}): {e}; "
                    f"extrapolating from fix at {state.last_exact.timestamp_ms}"
                )
                return False

            velocity = velocity_between(state.last_exact, exact) or state.velocity
            self._state = state._replace(
                last_exact=exact,
                velocity=velocity,
                next_refresh_at_ms=now + self._refresh_interval_for(state.orbital_period_ms),
                refresh_failures=0,
            )
            self._populate_prediction_cache(now)
            logger.debug(f"Refreshed exact position for {state.satellite_id}")
            return True

    # -- internals ---------------------------------------------------------

    def _refresh_interval_for(self, period_ms: float) -> int:
        # Very short periods need more frequent exact fixes
        if math.isfinite(period_ms):
            return int(min(self.refresh_interval_ms, max(1000.0, period_ms / 64.0)))
        return self.refresh_interval_ms

    def _confidence(self, elapsed_ms: float) -> float:
        return max(0.0, min(1.0, 1.0 - elapsed_ms / self.prediction_horizon_ms))

    def _extrapolate(self, state: TrackingState, timestamp_ms: int) -> PredictedPosition:
        last = state.last_exact
        velocity = state.velocity
        elapsed = timestamp_ms - last.timestamp_ms

        return PredictedPosition(
            longitude=normalize_longitude(last.longitude + velocity.lon_per_ms * elapsed),
            latitude=clamp_latitude(last.latitude + velocity.lat_per_ms * elapsed),
            altitude_km=max(0.0, last.altitude_km + velocity.alt_per_ms * elapsed),
            speed_km_s=last.speed_km_s,
            bearing_deg=last.bearing_deg,
            timestamp_ms=timestamp_ms,
            confidence=self._confidence(elapsed),
        )

    def _populate_prediction_cache(self, now: int) -> None:
        state = self._state
        step = self.update_interval_ms
        self._prediction_cache.clear()
        for i in range(self.cache_size):
            future = now + i * step
            self._prediction_cache[(future // step) * step] = self._extrapolate(state, future)

    def _tick(self) -> None:
        with self._lock:
            if self._state is None:
                return

            generation = self._generation
            now = self.clock.now_ms()

            if now >= self._state.next_refresh_at_ms:
                self.refresh(now)

            position = self.get_predicted_position(now)
            satellite_id = self._state.satellite_id

            for callback in list(self._subscribers):
                # A subscriber may stop or switch tracking mid-notification
                if self._generation != generation or self._state is None:
                    break
                try:
                    callback(position)
                except Exception:
                    logger.exception(f"Position subscriber failed for {satellite_id}")
