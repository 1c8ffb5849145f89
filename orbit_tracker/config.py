"""
Tracker Configuration and Constants

This module contains physical constants, tuning parameters and fallback TLE
data used throughout the package.

Constants:
    The WGS-84 ellipsoid used for the geodetic conversion of propagated
    positions, plus time and distance conversions.

Tuning parameters:
    TrackerConfig reads every tunable from the environment so that a host
    application can adjust cache lifetimes, update rates and camera smoothing
    without code changes. The camera constants (8 km/s speed normalization and
    100 ms lead time) are empirical, not physical invariants.

Fallback TLE Data:
    ISS TLE used for demonstrations and tests.

    IMPORTANT: Update this TLE data periodically for accuracy.
    - Low Earth Orbit (LEO) satellites: Update weekly
    - Medium Earth Orbit (MEO): Update monthly
    - Geostationary (GEO): Update quarterly

    Current TLE epoch: 2025-08-02
"""

import os
from typing import Dict, Any, Tuple

# WGS-84 ellipsoid for geodetic conversion
WGS84_A_KM: float = 6378.137
WGS84_F: float = 1.0 / 298.257223563

KM_PER_DEGREE: float = 111.0  # Approximate km per degree of latitude

MS_PER_DAY: int = 86_400_000
JULIAN_DATE_UNIX_EPOCH: float = 2440587.5

# Fallback ISS TLE for demonstrations and testing
FALLBACK_ISS_TLE: Dict[str, Any] = {
    'id': 'iss',
    'name': 'International Space Station',
    'norad_id': 25544,
    'category': 'scientific',
    'line1': '1 25544U 98067A   25214.09653981  .00010888  00000+0  19653-3 0  9996',
    'line2': '2 25544  51.6345  79.5266 0001736 142.9190 217.1919 15.50282964522285',
    'epoch': '2025-08-02T02:19:01Z',
    'mean_motion': 15.50282964,
    'inclination': 51.6345,
    'eccentricity': 0.0001736,
}


def _id_list(value: str) -> Tuple[str, ...]:
    return tuple(item.strip() for item in value.split(',') if item.strip())


class TrackerConfig:
    # Position cache
    POSITION_CACHE_TTL_MS = int(os.getenv('POSITION_CACHE_TTL_MS', '2000'))
    BATCH_CHUNK_SIZE = int(os.getenv('BATCH_CHUNK_SIZE', '100'))

    # Predictive tracker
    TRACKER_UPDATE_INTERVAL_MS = int(os.getenv('TRACKER_UPDATE_INTERVAL_MS', '33'))  # 30 Hz
    TRACKER_PREDICTION_HORIZON_MS = int(os.getenv('TRACKER_PREDICTION_HORIZON_MS', '5000'))
    TRACKER_REFRESH_INTERVAL_MS = int(os.getenv('TRACKER_REFRESH_INTERVAL_MS', '15000'))
    TRACKER_REFRESH_RETRY_MS = int(os.getenv('TRACKER_REFRESH_RETRY_MS', '1000'))
    TRACKER_PREDICTION_CACHE_SIZE = int(os.getenv('TRACKER_PREDICTION_CACHE_SIZE', '500'))
    TRACKER_VELOCITY_SAMPLE_MS = 100

    # Smooth camera
    CAMERA_SMOOTHING_FACTOR = float(os.getenv('CAMERA_SMOOTHING_FACTOR', '0.08'))
    CAMERA_MAX_SMOOTHING_FACTOR = float(os.getenv('CAMERA_MAX_SMOOTHING_FACTOR', '0.3'))
    CAMERA_VELOCITY_BOOST = float(os.getenv('CAMERA_VELOCITY_BOOST', '0.1'))
    CAMERA_MAX_SATELLITE_SPEED_KMS = float(os.getenv('CAMERA_MAX_SATELLITE_SPEED_KMS', '8.0'))
    CAMERA_LEAD_TIME_MS = float(os.getenv('CAMERA_LEAD_TIME_MS', '100'))
    CAMERA_MIN_MOVEMENT_DEG = float(os.getenv('CAMERA_MIN_MOVEMENT_DEG', '0.00001'))
    CAMERA_FLY_TO_DURATION_MS = int(os.getenv('CAMERA_FLY_TO_DURATION_MS', '2000'))
    CAMERA_TRACKING_PITCH = float(os.getenv('CAMERA_TRACKING_PITCH', '60'))

    # Level of detail
    LOD_MAX_SATELLITES = int(os.getenv('LOD_MAX_SATELLITES', '1000'))
    FLAGSHIP_SATELLITE_IDS = _id_list(os.getenv('FLAGSHIP_SATELLITE_IDS', 'iss,iss-zarya-25544'))

    # Background updates
    FULL_UPDATE_INTERVAL_MS = int(os.getenv('FULL_UPDATE_INTERVAL_MS', '1000'))


config = TrackerConfig()
