"""
Tracking Session

One session owns every cache and component of a tracking view:

- handle and position caches shared by the batch calculator and tracker
- the predictive tracker for the followed satellite
- the smooth camera, subscribed to the tracker
- LOD, performance and interpolation state for the background mass

The host drives the session by calling on_frame() from its render loop and
select_satellite() / deselect() on user selection.
"""

import logging
import math
from concurrent.futures import Executor, Future
from functools import partial
from typing import Dict, List, Optional, Set, Tuple

from orbit_tracker.batch_calculator import BatchCalculator, BatchPositionRequest
from orbit_tracker.catalog import SatelliteCatalog, default_catalog
from orbit_tracker.config import KM_PER_DEGREE, config
from orbit_tracker.errors import InvalidElementsError, PropagationError
from orbit_tracker.geo import clamp_latitude
from orbit_tracker.interpolator import InterpolatedPosition, OrbitalInterpolator, PositionSample
from orbit_tracker.lod import LODManager, LODSelection, SatelliteForLOD
from orbit_tracker.performance import PerformanceMonitor
from orbit_tracker.position_cache import PositionCache
from orbit_tracker.predictive_tracker import PredictedPosition, PredictiveTracker
from orbit_tracker.propagator import GeoPosition, HandleCache
from orbit_tracker.scheduling import FrameLoop, SystemClock
from orbit_tracker.smooth_camera import SmoothCamera
from orbit_tracker.viewport import CameraTarget, HeadlessMapView

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_MS = 60_000


def zoom_for_altitude(altitude_km: float) -> float:
    """Map zoom used when acquiring a satellite at the given altitude."""
    if altitude_km > 700:
        return 3.5
    if altitude_km > 600:
        return 3.0
    if altitude_km > 500:
        return 3.5
    if altitude_km > 400:
        return 4.0
    return 5.5


def acquisition_center(position: PredictedPosition, pitch_deg: float) -> Tuple[float, float]:
    """
    Camera center that puts a satellite in view at the given pitch.

    The camera sits south of the sub-satellite point by altitude / tan(pitch),
    looking north toward the satellite.
    """
    offset_km = position.altitude_km / math.tan(math.radians(pitch_deg))
    return position.longitude, clamp_latitude(position.latitude - offset_km / KM_PER_DEGREE)


class TrackingSession:
    """
    Args:
        catalog: Trackable satellites (default: built-in catalog)
        view: Host map view (default: HeadlessMapView)
        clock: Time source shared by every component
        scheduler: Scheduler for the tracker's periodic tick
        frame_loop: Frame loop the camera animates on
        executor: Optional executor for large background batches
    """

    def __init__(
        self,
        catalog: Optional[SatelliteCatalog] = None,
        view=None,
        clock=None,
        scheduler=None,
        frame_loop: Optional[FrameLoop] = None,
        executor: Optional[Executor] = None,
    ):
        self.catalog = catalog if catalog is not None else default_catalog()
        self.clock = clock or SystemClock()
        self.view = view or HeadlessMapView()
        self.frame_loop = frame_loop or FrameLoop(self.clock)

        self.handle_cache = HandleCache()
        self.position_cache = PositionCache()
        self.batch = BatchCalculator(self.handle_cache, self.position_cache, clock=self.clock, executor=executor)
        self.tracker = PredictiveTracker(self.handle_cache, clock=self.clock, scheduler=scheduler)
        self.camera = SmoothCamera(self.view, self.frame_loop, clock=self.clock)
        self.lod = LODManager()
        self.performance = PerformanceMonitor(self.clock)
        self.interpolator = OrbitalInterpolator()

        self.following: Optional[str] = None
        self.positions: Dict[str, GeoPosition] = {}
        self._reported: Set[Tuple[str, str]] = set()
        self._last_update_ms: Optional[int] = None
        self._last_full_update_ms: Optional[int] = None
        self._last_cleanup_ms = self.clock.now_ms()
        self._last_selection: List[LODSelection] = []

        self._unsubscribe = self.tracker.subscribe(self._on_prediction)

    # -- selection ---------------------------------------------------------

    def select_satellite(self, satellite_id: str) -> Future:
        """
        Follow a satellite: fly the camera to it, then track it smoothly.

        Returns:
            The fly-to Future; smooth tracking starts when it completes.

        Raises:
            KeyError: Unknown satellite ID
            InvalidElementsError: sgp4 rejects the satellite's elements
            PropagationError: The satellite has no position right now
        """
        record = self.catalog.get(satellite_id)
        if record is None:
            raise KeyError(f"Unknown satellite: {satellite_id}")

        self.camera.stop_smooth_tracking()
        self.position_cache.invalidate(satellite_id)
        try:
            state = self.tracker.start_tracking(satellite_id, record.elements)
        except (InvalidElementsError, PropagationError):
            self.following = None
            raise
        self.following = satellite_id

        exact = state.last_exact
        pitch = config.CAMERA_TRACKING_PITCH
        target = CameraTarget(
            center=acquisition_center(exact, pitch),
            zoom=zoom_for_altitude(exact.altitude_km),
            pitch=pitch,
            bearing=0.0,
        )
        logger.info(f"Following {record.name} at {exact.altitude_km:.0f} km, zoom {target.zoom}")

        future = self.camera.fly_to_target(target)
        future.add_done_callback(partial(self._on_acquired, satellite_id))
        return future

    def deselect(self) -> None:
        self.camera.stop_smooth_tracking()
        self.tracker.stop_tracking()
        if self.following is not None:
            logger.info(f"No longer following {self.following}")
        self.following = None

    def _on_acquired(self, satellite_id: str, future: Future) -> None:
        if future.cancelled() or self.following != satellite_id:
            return
        position = self.tracker.get_predicted_position()
        if position is not None:
            self.camera.start_smooth_tracking(position)

    def _on_prediction(self, position: PredictedPosition) -> None:
        if self.camera.is_tracking():
            self.camera.update_target_position(position)

    def on_position(self, callback):
        """Subscribe to the followed satellite's predicted positions; returns an unsubscribe function."""
        return self.tracker.subscribe(callback)

    # -- frame driving -----------------------------------------------------

    def on_frame(self, timestamp_ms: Optional[int] = None) -> List[LODSelection]:
        """
        One host render frame: animate the camera and, when due, refresh the
        background positions.

        Returns:
            The latest LOD selection
        """
        now = self.clock.now_ms() if timestamp_ms is None else int(timestamp_ms)

        self.performance.record_frame(now)
        self.frame_loop.run_frame(now)

        if self._last_update_ms is None or now - self._last_update_ms >= self.performance.get_update_interval():
            self._last_selection = self.update_positions(now)

        if now - self._last_cleanup_ms >= CLEANUP_INTERVAL_MS:
            self.position_cache.cleanup(now)
            self.interpolator.cleanup(now)
            self._last_cleanup_ms = now

        return self._last_selection

    def update_positions(self, now_ms: Optional[int] = None) -> List[LODSelection]:
        """
        Recompute background positions and select what to render.

        A full update covers the whole catalog once per FULL_UPDATE_INTERVAL_MS;
        in between, only satellites the LOD currently selects are refreshed.
        The followed satellite is never part of the batch; its position comes
        from the tracker.
        """
        now = self.clock.now_ms() if now_ms is None else int(now_ms)
        full = (
            self._last_full_update_ms is None
            or now - self._last_full_update_ms >= config.FULL_UPDATE_INTERVAL_MS
        )

        if full:
            candidates = [record for record in self.catalog if record.id != self.following]
            self._last_full_update_ms = now
        else:
            visible = {selection.satellite.id for selection in self._last_selection}
            candidates = [
                record for record in self.catalog
                if record.id in visible and record.id != self.following
            ]

        requests = [BatchPositionRequest(record.id, record.elements) for record in candidates]
        for result in self.batch.calculate_batch(requests, now):
            self.positions[result.satellite_id] = result.position
            self.interpolator.add_position(result.satellite_id, PositionSample(
                result.position.longitude,
                result.position.latitude,
                result.position.altitude_km,
                result.position.speed_km_s,
                result.timestamp_ms,
            ))
        self._report_failures()

        if self.following is not None:
            predicted = self.tracker.get_predicted_position(now)
            if predicted is not None:
                self.positions[self.following] = predicted.to_geo()

        self._last_update_ms = now
        self._last_selection = self._select(now)
        return self._last_selection

    def _select(self, now: int) -> List[LODSelection]:
        viewport = self.view.get_viewport()
        satellites = []
        for record in self.catalog:
            position = self.positions.get(record.id)
            if position is None:
                continue
            satellites.append(SatelliteForLOD(
                id=record.id,
                longitude=position.longitude,
                latitude=position.latitude,
                type=record.category,
                is_followed=record.id == self.following,
            ))

        selection = self.lod.select(
            satellites,
            viewport,
            performance_skip=self.performance.get_lod_skip(viewport.zoom),
            max_satellites=min(self.performance.get_max_satellites(), config.LOD_MAX_SATELLITES),
            render_icons=self.performance.should_render_icons(),
        )
        self.performance.satellite_count = len(selection)
        return selection

    def _report_failures(self) -> None:
        for satellite_id, error in self.batch.last_failures:
            kind = getattr(error, "kind", None)
            reason = kind.value if kind is not None else type(error).__name__
            if (satellite_id, reason) in self._reported:
                logger.debug(f"Still no position for {satellite_id} ({reason})")
                continue
            self._reported.add((satellite_id, reason))
            logger.warning(f"No position for {satellite_id} ({reason}): {error}")

    # -- queries -----------------------------------------------------------

    def position_of(self, satellite_id: str, now_ms: Optional[int] = None) -> Optional[GeoPosition]:
        """Current position of any catalog satellite, or None if it cannot be computed."""
        now = self.clock.now_ms() if now_ms is None else int(now_ms)

        if satellite_id == self.following and self.tracker.is_tracking():
            predicted = self.tracker.get_predicted_position(now)
            if predicted is not None:
                return predicted.to_geo()

        record = self.catalog.get(satellite_id)
        if record is None:
            return None

        results = self.batch.calculate_batch([BatchPositionRequest(record.id, record.elements)], now)
        self._report_failures()
        return results[0].position if results else None

    def interpolated_position(self, satellite_id: str, now_ms: Optional[int] = None) -> Optional[InterpolatedPosition]:
        now = self.clock.now_ms() if now_ms is None else int(now_ms)
        return self.interpolator.get_interpolated_position(satellite_id, now)

    def orbit_path(self, satellite_id: str, now_ms: Optional[int] = None, num_points: int = 64) -> List[Tuple[float, float]]:
        """Ground track over one orbital period starting now."""
        record = self.catalog.get(satellite_id)
        if record is None:
            return []
        now = self.clock.now_ms() if now_ms is None else int(now_ms)
        handle = self.handle_cache.get(record.elements)
        return self.handle_cache.propagator.ground_track(handle, now, num_points=num_points)

    def close(self) -> None:
        self.deselect()
        self._unsubscribe()
        logger.debug("Tracking session closed")
