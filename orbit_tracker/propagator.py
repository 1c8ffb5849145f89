"""
Orbital Propagator Adapter

Wraps the sgp4 library behind two operations:

- compile(elements) turns a validated TLE pair into a reusable handle
- evaluate(handle, timestamp_ms) produces a geographic position

Coordinate pipeline:
    SGP4 produces position/velocity in the TEME (true equator, mean equinox)
    inertial frame. Both vectors are rotated into the Earth-fixed frame by the
    Greenwich mean sidereal angle at the evaluation instant. The position is
    converted to WGS-84 geodetic coordinates; the rotated velocity is projected
    onto the local East-North-Up plane to obtain the compass bearing.

Evaluation never reads the wall clock, so a fixed handle and timestamp always
give the same result.
"""

import logging
import math
from typing import List, NamedTuple, Optional, Tuple

import numpy as np
from sgp4.api import Satrec

from orbit_tracker.config import (
    JULIAN_DATE_UNIX_EPOCH,
    MS_PER_DAY,
    WGS84_A_KM,
    WGS84_F,
)
from orbit_tracker.errors import (
    InvalidElementsError,
    PropagationError,
    PropagationErrorKind,
)
from orbit_tracker.geo import normalize_bearing, normalize_longitude
from orbit_tracker.tle_parser import OrbitalElements

logger = logging.getLogger(__name__)


# SGP4 error code meanings
SGP4_ERROR_CODES = {
    0: "No error",
    1: "Mean eccentricity < 0.0 or > 1.0",
    2: "Mean motion < 0.0",
    3: "Perturbed eccentricity < 0.0 or > 1.0",
    4: "Semi-latus rectum < 0.0",
    5: "Satellite has decayed",
    6: "Satellite has decayed (low altitude)",
}

DECAY_ERROR_CODES = (5, 6)


def error_kind_for_code(error_code: int) -> PropagationErrorKind:
    if error_code in DECAY_ERROR_CODES:
        return PropagationErrorKind.DECAYED
    return PropagationErrorKind.NUMERICAL_ERROR


class GeoPosition(NamedTuple):
    longitude: float
    latitude: float
    altitude_km: float
    speed_km_s: float
    bearing_deg: Optional[float] = None


class PropagatorHandle:
    """Compiled, reusable representation of one TLE pair."""

    def __init__(self, elements: OrbitalElements, satrec: Satrec):
        self.elements = elements
        self.satrec = satrec
        self.key = elements.key

    @property
    def norad_id(self) -> str:
        return self.elements.norad_id

    @property
    def orbital_period_ms(self) -> float:
        """Orbital period from mean motion (rad/min), in milliseconds."""
        mean_motion = self.satrec.no_kozai
        if mean_motion <= 0:
            return math.inf
        return (2.0 * math.pi / mean_motion) * 60_000.0

    def __repr__(self):
        return f"PropagatorHandle(norad_id={self.norad_id!r}, key={self.key[:12]!r})"


def timestamp_to_jd(timestamp_ms: int) -> Tuple[float, float]:
    """
    Split a Unix timestamp in milliseconds into Julian day and fraction.

    Keeping whole days and the day fraction apart preserves sub-millisecond
    precision in the sgp4 call.
    """
    days, remainder = divmod(int(timestamp_ms), MS_PER_DAY)
    return JULIAN_DATE_UNIX_EPOCH + days, remainder / MS_PER_DAY


def gmst_radians(jd: float, fr: float) -> float:
    """
    Greenwich mean sidereal time (IAU-82) for a split Julian date.

    Args:
        jd: Julian day
        fr: Day fraction

    Returns:
        GMST angle in radians, in [0, 2π)
    """
    # Julian centuries from J2000
    T = (jd - 2451545.0 + fr) / 36525.0

    gmst_sec = (
        67310.54841 +
        (876600.0 * 3600.0 + 8640184.812866) * T +
        0.093104 * T * T -
        6.2e-6 * T * T * T
    )

    return (gmst_sec % 86400.0) * (2.0 * math.pi / 86400.0)


def teme_to_ecef(r_teme: np.ndarray, v_teme: np.ndarray, gmst: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Rotate TEME position and velocity into the Earth-fixed frame.

    The velocity is rotated only; it stays the inertial velocity expressed in
    Earth-fixed axes, which is what the bearing is derived from.
    """
    cos_g = math.cos(gmst)
    sin_g = math.sin(gmst)

    rotation = np.array([
        [cos_g, sin_g, 0.0],
        [-sin_g, cos_g, 0.0],
        [0.0, 0.0, 1.0],
    ])

    return rotation @ r_teme, rotation @ v_teme


def ecef_to_geodetic(r_ecef: np.ndarray) -> Tuple[float, float, float]:
    """
    ECEF to geodetic conversion using Bowring's method.

    Args:
        r_ecef: Position vector in ECEF coordinates [x, y, z] (km)

    Returns:
        Tuple of (latitude_rad, longitude_rad, altitude_km)
    """
    a = WGS84_A_KM
    f = WGS84_F
    b = a * (1.0 - f)
    e2 = 2.0 * f - f * f
    ep2 = e2 / (1.0 - e2)

    x, y, z = float(r_ecef[0]), float(r_ecef[1]), float(r_ecef[2])

    lon = math.atan2(y, x)
    p = math.sqrt(x * x + y * y)

    # Handle pole cases
    if p < 1e-10:
        lat = math.pi / 2.0 if z > 0 else -math.pi / 2.0
        return lat, lon, abs(z) - b

    # Initial estimate using Bowring's formula
    theta = math.atan2(z * a, p * b)
    lat = theta

    # Usually converges in 2-3 iterations
    for _ in range(5):
        sin_theta = math.sin(theta)
        cos_theta = math.cos(theta)

        lat = math.atan2(
            z + ep2 * b * sin_theta * sin_theta * sin_theta,
            p - e2 * a * cos_theta * cos_theta * cos_theta
        )

        new_theta = math.atan2((1.0 - f) * math.sin(lat), math.cos(lat))
        if abs(new_theta - theta) < 1e-12:
            break
        theta = new_theta

    sin_lat = math.sin(lat)
    cos_lat = math.cos(lat)
    N = a / math.sqrt(1.0 - e2 * sin_lat * sin_lat)

    if cos_lat > 1e-10:
        alt = p / cos_lat - N
    else:
        alt = z / sin_lat - N * (1.0 - e2)

    return lat, lon, alt


def bearing_from_velocity(v_ecef: np.ndarray, lat_rad: float, lon_rad: float) -> float:
    """
    Compass bearing of a velocity vector at a geodetic point.

    Projects the Earth-fixed velocity onto the local East-North-Up plane;
    0° is north, 90° is east.
    """
    sin_lat = math.sin(lat_rad)
    cos_lat = math.cos(lat_rad)
    sin_lon = math.sin(lon_rad)
    cos_lon = math.cos(lon_rad)

    vx, vy, vz = float(v_ecef[0]), float(v_ecef[1]), float(v_ecef[2])

    v_east = -sin_lon * vx + cos_lon * vy
    v_north = -sin_lat * cos_lon * vx - sin_lat * sin_lon * vy + cos_lat * vz

    return normalize_bearing(math.degrees(math.atan2(v_east, v_north)))


class PropagatorAdapter:
    """
    Stateless bridge between TLE handles and geographic positions.

    Compilation is the expensive step; callers keep handles in a HandleCache
    and call evaluate() as often as they need.
    """

    def compile(self, elements: OrbitalElements) -> PropagatorHandle:
        """
        Compile elements into a reusable handle.

        Raises:
            InvalidElementsError: If sgp4 cannot initialise from the lines
        """
        try:
            satrec = Satrec.twoline2rv(elements.line1, elements.line2)
        except (ValueError, IndexError) as e:
            raise InvalidElementsError(f"sgp4 rejected elements for {elements.norad_id}: {e}") from e

        if satrec.error != 0:
            raise InvalidElementsError(
                f"sgp4 initialisation error {satrec.error} for {elements.norad_id}: "
                f"{SGP4_ERROR_CODES.get(satrec.error, 'Unknown error')}"
            )

        return PropagatorHandle(elements, satrec)

    def evaluate_state(self, handle: PropagatorHandle, timestamp_ms: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        Raw TEME state at a timestamp.

        Returns:
            Tuple of (position_km, velocity_km_s) numpy arrays

        Raises:
            PropagationError: On any SGP4 error code or non-finite output
        """
        jd, fr = timestamp_to_jd(timestamp_ms)
        error, position, velocity = handle.satrec.sgp4(jd, fr)

        if error != 0:
            raise PropagationError(
                error_kind_for_code(error),
                f"SGP4 error {error} for {handle.norad_id}: "
                f"{SGP4_ERROR_CODES.get(error, f'Unknown error code {error}')}",
                error_code=error,
            )

        r = np.array(position, dtype=float)
        v = np.array(velocity, dtype=float)

        if not (np.all(np.isfinite(r)) and np.all(np.isfinite(v))):
            raise PropagationError(
                PropagationErrorKind.NUMERICAL_ERROR,
                f"Non-finite SGP4 state for {handle.norad_id}",
            )

        return r, v

    def evaluate(self, handle: PropagatorHandle, timestamp_ms: int) -> GeoPosition:
        """
        Geographic position, speed and bearing at a timestamp.

        Args:
            handle: Compiled handle
            timestamp_ms: Unix time in milliseconds

        Returns:
            GeoPosition with longitude in (-180, 180] and bearing in [0, 360)

        Raises:
            PropagationError: When no valid position exists at this instant
        """
        r_teme, v_teme = self.evaluate_state(handle, timestamp_ms)

        jd, fr = timestamp_to_jd(timestamp_ms)
        r_ecef, v_ecef = teme_to_ecef(r_teme, v_teme, gmst_radians(jd, fr))
        lat, lon, alt = ecef_to_geodetic(r_ecef)

        if not all(math.isfinite(value) for value in (lat, lon, alt)):
            raise PropagationError(
                PropagationErrorKind.NUMERICAL_ERROR,
                f"Non-finite geodetic position for {handle.norad_id}",
            )

        if alt < 0.0:
            raise PropagationError(
                PropagationErrorKind.DECAYED,
                f"Satellite {handle.norad_id} is below the surface ({alt:.1f} km)",
            )

        return GeoPosition(
            longitude=normalize_longitude(math.degrees(lon)),
            latitude=math.degrees(lat),
            altitude_km=alt,
            speed_km_s=float(np.linalg.norm(v_teme)),
            bearing_deg=bearing_from_velocity(v_ecef, lat, lon),
        )

    def ground_track(
        self,
        handle: PropagatorHandle,
        start_ms: int,
        duration_ms: Optional[float] = None,
        num_points: int = 64,
    ) -> List[Tuple[float, float]]:
        """
        Sample the sub-satellite point over one orbit (or a given duration).

        Samples that fail to propagate are skipped.
        """
        if duration_ms is None:
            duration_ms = handle.orbital_period_ms
        if not math.isfinite(duration_ms) or num_points <= 0:
            return []

        points = []
        for i in range(num_points):
            t = start_ms + int(round(i * duration_ms / num_points))
            try:
                position = self.evaluate(handle, t)
            except PropagationError as e:
                logger.debug(f"Ground track sample skipped for {handle.norad_id}: {e}")
                continue
            points.append((position.longitude, position.latitude))

        return points


class HandleCache:
    """
    Compiled handles keyed by the content hash of their elements.

    Two satellites with identical lines share one handle; a satellite whose
    lines change gets a new handle under the new key.
    """

    def __init__(self, propagator: Optional[PropagatorAdapter] = None):
        self.propagator = propagator or PropagatorAdapter()
        self._handles = {}

    def get(self, elements: OrbitalElements) -> PropagatorHandle:
        key = elements.key
        handle = self._handles.get(key)
        if handle is None:
            handle = self.propagator.compile(elements)
            # Concurrent writers store equivalent handles; last one wins
            self._handles[key] = handle
        return handle

    def __contains__(self, elements: OrbitalElements) -> bool:
        return elements.key in self._handles

    def __len__(self):
        return len(self._handles)

    def clear(self):
        self._handles.clear()
