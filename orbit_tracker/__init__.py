"""
Real-time Satellite Tracking Package

This package turns Two-Line Element sets into geographic positions fast enough
to drive an interactive map: a propagator adapter around the sgp4 library,
a TTL position cache for the background satellite mass, a predictive tracker
for the one followed satellite, a smoothing camera controller and a
level-of-detail culler.

Modules:
    tle_parser: TLE validation and parsing
    propagator: SGP4 evaluation and TEME to geodetic conversion
    position_cache: Short-lived per-satellite position cache
    batch_calculator: Batched, cache-aware position calculation
    predictive_tracker: High-rate predicted positions for a followed satellite
    smooth_camera: Jitter-free camera following
    lod: Level-of-detail and viewport culling
    session: Wires the components into one tracking session

References:
    Vallado, D. A., Crawford, P., Hujsak, R., & Kelso, T. S. (2006).
    Revisiting Spacetrack Report #3. AIAA 2006-6753.
"""

__version__ = "1.0.0"
