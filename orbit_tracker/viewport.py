"""
Viewport and camera types, plus a headless map view.

A host map engine is anything with ``get_camera_state(timestamp_ms)`` and
``jump_to(center, zoom, pitch, bearing)``; the LOD manager additionally reads
``get_viewport()``. HeadlessMapView implements all three in memory for tests,
the demo, and hosts that render elsewhere.

Bounds may cross the antimeridian, in which case ``west > east``.
"""

import logging
from typing import NamedTuple, Optional, Tuple

from orbit_tracker.geo import clamp_latitude, normalize_bearing, normalize_longitude

logger = logging.getLogger(__name__)

LonLat = Tuple[float, float]


class Bounds(NamedTuple):
    west: float
    east: float
    south: float
    north: float

    @property
    def crosses_antimeridian(self) -> bool:
        return self.west > self.east

    @property
    def width(self) -> float:
        if self.west <= self.east:
            return self.east - self.west
        return self.east - self.west + 360.0

    @property
    def center(self) -> LonLat:
        return (
            normalize_longitude(self.west + self.width / 2.0),
            (self.south + self.north) / 2.0,
        )

    def contains(self, longitude: float, latitude: float) -> bool:
        if not self.south <= latitude <= self.north:
            return False
        if self.west <= self.east:
            return self.west <= longitude <= self.east
        return longitude >= self.west or longitude <= self.east

    def expanded(self, lon_margin: float, lat_margin: float) -> "Bounds":
        """Grow by margins in degrees; covers every longitude once the width reaches 360."""
        south = clamp_latitude(self.south - lat_margin)
        north = clamp_latitude(self.north + lat_margin)
        if self.width + 2.0 * lon_margin >= 360.0:
            return Bounds(-180.0, 180.0, south, north)
        return Bounds(
            normalize_longitude(self.west - lon_margin),
            normalize_longitude(self.east + lon_margin),
            south,
            north,
        )


WORLD_BOUNDS = Bounds(-180.0, 180.0, -90.0, 90.0)


class Viewport(NamedTuple):
    zoom: float
    bounds: Bounds
    center: LonLat


class CameraState(NamedTuple):
    center: LonLat
    zoom: float
    pitch: float
    bearing: float
    timestamp_ms: int


class CameraTarget(NamedTuple):
    center: LonLat
    zoom: Optional[float] = None
    pitch: Optional[float] = None
    bearing: Optional[float] = None


class HeadlessMapView:
    """
    In-memory map camera.

    The visible area follows web-map tiling: at zoom z the view spans
    ``360 / 2**z`` degrees of longitude and half that of latitude.

    Args:
        center: Initial (lon, lat)
        zoom: Initial zoom
        pitch: Initial pitch in degrees
        bearing: Initial bearing in degrees
    """

    def __init__(self, center: LonLat = (0.0, 0.0), zoom: float = 2.0, pitch: float = 0.0, bearing: float = 0.0):
        self.center = (normalize_longitude(center[0]), clamp_latitude(center[1]))
        self.zoom = zoom
        self.pitch = pitch
        self.bearing = normalize_bearing(bearing)
        self.jump_count = 0

    def get_camera_state(self, timestamp_ms: int = 0) -> CameraState:
        return CameraState(self.center, self.zoom, self.pitch, self.bearing, int(timestamp_ms))

    def jump_to(self, center: LonLat, zoom: float, pitch: float, bearing: float) -> None:
        self.center = (normalize_longitude(center[0]), clamp_latitude(center[1]))
        self.zoom = zoom
        self.pitch = pitch
        self.bearing = normalize_bearing(bearing)
        self.jump_count += 1

    def get_viewport(self) -> Viewport:
        half_width = 180.0 / (2.0 ** max(self.zoom, 0.0))
        half_height = half_width / 2.0
        lon, lat = self.center

        if half_width >= 180.0:
            west, east = -180.0, 180.0
        else:
            west = normalize_longitude(lon - half_width)
            east = normalize_longitude(lon + half_width)

        bounds = Bounds(west, east, clamp_latitude(lat - half_height), clamp_latitude(lat + half_height))
        return Viewport(self.zoom, bounds, self.center)
