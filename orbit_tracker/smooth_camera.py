"""
Smooth Camera Controller

Moves the map camera toward the followed satellite a little every frame
instead of snapping to each new prediction.

Per frame:
    1. Skip when the camera is already within 1e-5° of the target.
    2. Pick a smoothing factor: 0.08 for a stationary target, rising with
       speed (normalized to 8 km/s) by up to 0.1, capped at 0.3.
    3. Lead the target by 100 ms of travel along its bearing.
    4. Move the camera center that fraction of the way, crossing the
       antimeridian the short way.

Only the center moves during tracking. Zoom, pitch and bearing change through
fly_to_target(), which animates a full pose change with ease-in-out cubic
easing and completes a Future when done.

The controller runs off a FrameLoop, one frame request at a time; stopping
cancels the pending request, so no frame callback runs after
stop_smooth_tracking() returns.
"""

import logging
import math
import threading
from concurrent.futures import Future
from typing import Any, Dict, Optional

from orbit_tracker.config import KM_PER_DEGREE, config
from orbit_tracker.geo import (
    clamp_latitude,
    km_per_degree_longitude,
    longitude_delta,
    normalize_bearing,
    normalize_longitude,
    planar_distance_deg,
)
from orbit_tracker.predictive_tracker import PredictedPosition
from orbit_tracker.scheduling import SystemClock
from orbit_tracker.viewport import CameraState, CameraTarget, LonLat

logger = logging.getLogger(__name__)


def ease_in_out_cubic(t: float) -> float:
    t = max(0.0, min(1.0, t))
    if t < 0.5:
        return 4.0 * t * t * t
    return 1.0 - ((-2.0 * t + 2.0) ** 3) / 2.0


def interpolate_center(current: LonLat, target: LonLat, factor: float) -> LonLat:
    """Move ``factor`` of the way from current to target, wrap-corrected."""
    lon = normalize_longitude(current[0] + longitude_delta(current[0], target[0]) * factor)
    lat = clamp_latitude(current[1] + (target[1] - current[1]) * factor)
    return lon, lat


def lead_target(position: PredictedPosition, lead_time_ms: float) -> LonLat:
    """
    Offset a position along its bearing by the distance covered in lead_time_ms.

    Positions without a bearing are returned unchanged.
    """
    center = (position.longitude, position.latitude)
    if position.bearing_deg is None or position.speed_km_s <= 0.0:
        return center

    distance_km = position.speed_km_s * lead_time_ms / 1000.0
    bearing = math.radians(position.bearing_deg)
    d_lat = distance_km * math.cos(bearing) / KM_PER_DEGREE
    d_lon = distance_km * math.sin(bearing) / km_per_degree_longitude(position.latitude)

    return normalize_longitude(center[0] + d_lon), clamp_latitude(center[1] + d_lat)


class _FlyTo:
    def __init__(self, start: CameraState, target: CameraState, start_ms: int, duration_ms: int):
        self.start = start
        self.target = target
        self.start_ms = start_ms
        self.duration_ms = duration_ms
        self.future: Future = Future()
        self.frame_id: Optional[int] = None

    def pose_at(self, progress: float) -> CameraState:
        eased = ease_in_out_cubic(progress)
        start, target = self.start, self.target

        center = interpolate_center(start.center, target.center, eased)
        bearing_delta = (target.bearing - start.bearing + 180.0) % 360.0 - 180.0

        return CameraState(
            center=center,
            zoom=start.zoom + (target.zoom - start.zoom) * eased,
            pitch=start.pitch + (target.pitch - start.pitch) * eased,
            bearing=normalize_bearing(start.bearing + bearing_delta * eased),
            timestamp_ms=target.timestamp_ms,
        )


class SmoothCamera:
    """
    Frame-driven camera follower.

    Args:
        view: Host map view (get_camera_state / jump_to)
        frame_loop: FrameLoop pumped by the host's render loop
        clock: Time source (default: system clock)
        smoothing_factor: Base smoothing factor
        lead_time_ms: Lead compensation horizon
        min_movement_deg: Distance below which a frame is skipped
    """

    def __init__(
        self,
        view,
        frame_loop,
        clock=None,
        smoothing_factor: Optional[float] = None,
        lead_time_ms: Optional[float] = None,
        min_movement_deg: Optional[float] = None,
    ):
        self.view = view
        self.frame_loop = frame_loop
        self.clock = clock or SystemClock()
        self.smoothing_factor = config.CAMERA_SMOOTHING_FACTOR if smoothing_factor is None else smoothing_factor
        self.max_smoothing_factor = config.CAMERA_MAX_SMOOTHING_FACTOR
        self.velocity_boost = config.CAMERA_VELOCITY_BOOST
        self.max_speed_km_s = config.CAMERA_MAX_SATELLITE_SPEED_KMS
        self.lead_time_ms = config.CAMERA_LEAD_TIME_MS if lead_time_ms is None else lead_time_ms
        self.min_movement_deg = config.CAMERA_MIN_MOVEMENT_DEG if min_movement_deg is None else min_movement_deg

        self.adaptive_smoothing_enabled = True
        self.velocity_based_smoothing = True

        self._lock = threading.RLock()
        self._smoothing = False
        self._target: Optional[PredictedPosition] = None
        self._frame_id: Optional[int] = None
        self._fly: Optional[_FlyTo] = None
        self._last_state = view.get_camera_state(self.clock.now_ms())

        self._frames = 0
        self._moves = 0
        self._skipped = 0
        self._dropped_updates = 0

    # -- tracking ----------------------------------------------------------

    def start_smooth_tracking(self, initial_position: PredictedPosition) -> None:
        with self._lock:
            self.frame_loop.cancel_frame(self._frame_id)
            self._target = initial_position
            self._smoothing = True
            self._frame_id = self.frame_loop.request_frame(self._on_frame)
        logger.info(
            f"Smooth camera tracking started at "
            f"({initial_position.longitude:.3f}, {initial_position.latitude:.3f})"
        )

    def update_target_position(self, position: PredictedPosition) -> None:
        """
        Replace the target with a newer prediction.

        Updates older than the current target are dropped; several updates
        between two frames simply leave the latest one in place.
        """
        with self._lock:
            current = self._target
            if current is not None and position.timestamp_ms < current.timestamp_ms:
                self._dropped_updates += 1
                return
            self._target = position

    def stop_smooth_tracking(self) -> None:
        """Stop following and abort any fly-to; no frame work runs after this returns."""
        with self._lock:
            was_tracking = self._smoothing
            self._smoothing = False
            self._target = None
            self.frame_loop.cancel_frame(self._frame_id)
            self._frame_id = None

            fly, self._fly = self._fly, None
            if fly is not None:
                self.frame_loop.cancel_frame(fly.frame_id)

        if fly is not None:
            fly.future.cancel()
        if was_tracking:
            logger.info("Smooth camera tracking stopped")

    def is_tracking(self) -> bool:
        return self._smoothing and self._target is not None

    @property
    def target_position(self) -> Optional[PredictedPosition]:
        return self._target

    def set_adaptive_smoothing(self, enabled: bool) -> None:
        self.adaptive_smoothing_enabled = enabled
        logger.info(f"Adaptive smoothing {'enabled' if enabled else 'disabled'}")

    def set_velocity_based_smoothing(self, enabled: bool) -> None:
        self.velocity_based_smoothing = enabled
        logger.info(f"Velocity-based lead {'enabled' if enabled else 'disabled'}")

    def current_smoothing_factor(self) -> float:
        target = self._target
        if not self.adaptive_smoothing_enabled or target is None:
            return self.smoothing_factor

        velocity_factor = min(target.speed_km_s / self.max_speed_km_s, 1.0)
        return min(self.smoothing_factor + velocity_factor * self.velocity_boost, self.max_smoothing_factor)

    def get_performance_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "tracking": self.is_tracking(),
                "smoothing_factor": self.current_smoothing_factor(),
                "target_position": self._target,
                "camera_state": self._last_state,
                "frames": self._frames,
                "moves": self._moves,
                "skipped_frames": self._skipped,
                "dropped_updates": self._dropped_updates,
                "flying": self._fly is not None,
            }

    def _on_frame(self, timestamp_ms: int) -> None:
        with self._lock:
            self._frame_id = None
            if not self._smoothing or self._target is None:
                return

            self._frames += 1
            self._apply_smooth_movement(timestamp_ms)
            self._frame_id = self.frame_loop.request_frame(self._on_frame)

    def _apply_smooth_movement(self, timestamp_ms: int) -> None:
        target = self._target
        state = self.view.get_camera_state(timestamp_ms)
        target_center = (target.longitude, target.latitude)

        if planar_distance_deg(state.center, target_center) < self.min_movement_deg:
            self._skipped += 1
            return

        factor = self.current_smoothing_factor()
        if self.velocity_based_smoothing:
            aim = lead_target(target, self.lead_time_ms)
        else:
            aim = target_center

        new_center = interpolate_center(state.center, aim, factor)
        self.view.jump_to(new_center, state.zoom, state.pitch, state.bearing)

        self._moves += 1
        self._last_state = CameraState(new_center, state.zoom, state.pitch, state.bearing, timestamp_ms)

    # -- fly-to ------------------------------------------------------------

    def fly_to_target(self, target: CameraTarget, duration_ms: Optional[int] = None) -> Future:
        """
        Animate to an explicit pose.

        Unset zoom/pitch/bearing keep their current value. Returns a Future
        that completes once the pose is reached, or is cancelled when
        tracking stops or another fly-to replaces this one.
        """
        if duration_ms is None:
            duration_ms = config.CAMERA_FLY_TO_DURATION_MS

        now = self.clock.now_ms()
        with self._lock:
            previous, self._fly = self._fly, None
            if previous is not None:
                self.frame_loop.cancel_frame(previous.frame_id)

            start = self.view.get_camera_state(now)
            end = CameraState(
                center=(normalize_longitude(target.center[0]), clamp_latitude(target.center[1])),
                zoom=start.zoom if target.zoom is None else target.zoom,
                pitch=start.pitch if target.pitch is None else target.pitch,
                bearing=start.bearing if target.bearing is None else normalize_bearing(target.bearing),
                timestamp_ms=now + max(int(duration_ms), 0),
            )
            fly = _FlyTo(start, end, now, max(int(duration_ms), 0))

            if fly.duration_ms == 0:
                self._jump(end)
            else:
                self._fly = fly
                fly.frame_id = self.frame_loop.request_frame(self._on_fly_frame)

        if previous is not None:
            previous.future.cancel()
        if fly.duration_ms == 0:
            fly.future.set_result(end)

        logger.debug(f"Fly-to ({end.center[0]:.3f}, {end.center[1]:.3f}) zoom {end.zoom} over {duration_ms} ms")
        return fly.future

    def _on_fly_frame(self, timestamp_ms: int) -> None:
        with self._lock:
            fly = self._fly
            if fly is None:
                return

            progress = (timestamp_ms - fly.start_ms) / fly.duration_ms
            pose = fly.pose_at(progress)
            self._jump(pose._replace(timestamp_ms=timestamp_ms))

            done = progress >= 1.0
            if done:
                self._fly = None
                fly.frame_id = None
            else:
                fly.frame_id = self.frame_loop.request_frame(self._on_fly_frame)

        if done and not fly.future.cancelled():
            fly.future.set_result(fly.target)

    def _jump(self, pose: CameraState) -> None:
        self.view.jump_to(pose.center, pose.zoom, pose.pitch, pose.bearing)
        self._last_state = pose
