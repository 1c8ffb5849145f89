"""
Geographic helpers shared by the tracker, camera and culler.

Longitudes are kept in (-180, 180] and every difference between two
longitudes is taken the short way around the antimeridian.
"""

import math
from typing import Tuple

from orbit_tracker.config import KM_PER_DEGREE


def normalize_longitude(longitude: float) -> float:
    """Wrap a longitude into (-180, 180]."""
    wrapped = math.fmod(longitude + 180.0, 360.0)
    if wrapped <= 0.0:
        wrapped += 360.0
    return wrapped - 180.0


def longitude_delta(from_lon: float, to_lon: float) -> float:
    """Signed shortest difference to_lon - from_lon, in [-180, 180]."""
    delta = to_lon - from_lon
    if delta > 180.0:
        delta -= 360.0
    elif delta < -180.0:
        delta += 360.0
    return delta


def clamp_latitude(latitude: float) -> float:
    return max(-90.0, min(90.0, latitude))


def normalize_bearing(bearing: float) -> float:
    """Wrap a bearing into [0, 360)."""
    wrapped = bearing % 360.0
    # float modulo of a tiny negative value rounds up to 360.0
    if wrapped >= 360.0:
        wrapped = 0.0
    return wrapped


def planar_distance_deg(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    """
    Flat lon/lat distance in degrees, wrap-aware in longitude.

    Good enough for movement thresholds and culling; not a great-circle distance.
    """
    d_lon = abs(longitude_delta(a[0], b[0]))
    d_lat = b[1] - a[1]
    return math.sqrt(d_lon * d_lon + d_lat * d_lat)


def km_per_degree_longitude(latitude: float) -> float:
    # Floor keeps polar lead offsets finite
    return KM_PER_DEGREE * max(math.cos(math.radians(latitude)), 0.01)


def surface_distance_km(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    """Haversine distance between two (lon, lat) points on a sphere of 6371 km."""
    lon1, lat1 = math.radians(a[0]), math.radians(a[1])
    lon2, lat2 = math.radians(b[0]), math.radians(b[1])
    h = (
        math.sin((lat2 - lat1) / 2.0) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin((lon2 - lon1) / 2.0) ** 2
    )
    return 2.0 * 6371.0 * math.asin(min(1.0, math.sqrt(h)))
