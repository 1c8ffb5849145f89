"""
Satellite Tracking Demonstration

Runs a headless tracking session on simulated time:
- compiles the built-in catalog and computes background positions
- selects the ISS, flies the camera to it and follows it smoothly
- compares the tracker's predictions against exact SGP4 positions
- optionally plots the ground track and the camera path

Usage:
    python demo.py [--seconds N] [--plot] [--verbose]

Arguments:
    --seconds: Simulated tracking time (default: 30)
    --plot: Save a ground track / camera path plot
    --verbose: Enable debug logging

References:
    Vallado, D. A., Crawford, P., Hujsak, R., & Kelso, T. S. (2006).
    Revisiting Spacetrack Report #3. AIAA 2006-6753.
"""

import argparse
import logging
from datetime import datetime, timezone
from typing import List, Tuple

import matplotlib.pyplot as plt
import numpy as np

from orbit_tracker.geo import surface_distance_km
from orbit_tracker.logging_config import configure_logging
from orbit_tracker.scheduling import ManualClock, ManualScheduler
from orbit_tracker.session import TrackingSession

logger = logging.getLogger("orbit_tracker.demo")

# Shortly after the epoch of the built-in ISS elements
SIMULATION_START = datetime(2025, 8, 2, 3, 0, tzinfo=timezone.utc)
FRAME_MS = 16


def run_simulation(seconds: float) -> Tuple[TrackingSession, List[Tuple[float, float]], List[float]]:
    """
    Track the ISS for a number of simulated seconds.

    Returns:
        The session, the camera centers per frame and the prediction
        errors (km) sampled once per simulated second
    """
    clock = ManualClock(int(SIMULATION_START.timestamp() * 1000))
    scheduler = ManualScheduler(clock)
    session = TrackingSession(clock=clock, scheduler=scheduler)

    logger.info(f"Catalog: {len(session.catalog)} satellites")
    selection = session.update_positions()
    logger.info(f"Initial LOD selection: {[s.satellite.id for s in selection]}")

    session.select_satellite("iss")

    record = session.catalog["iss"]
    handle = session.handle_cache.get(record.elements)
    propagator = session.handle_cache.propagator

    camera_path = []
    errors = []
    frames = int(seconds * 1000 / FRAME_MS)

    for frame in range(frames):
        scheduler.advance(FRAME_MS)
        now = clock.now_ms()
        session.on_frame(now)
        camera_path.append(session.view.center)

        if frame % (1000 // FRAME_MS) == 0:
            predicted = session.tracker.get_predicted_position(now)
            exact = propagator.evaluate(handle, now)
            error_km = surface_distance_km(
                (predicted.longitude, predicted.latitude),
                (exact.longitude, exact.latitude),
            )
            errors.append(error_km)
            logger.debug(
                f"t={frame * FRAME_MS / 1000.0:5.1f}s "
                f"predicted=({predicted.longitude:8.3f}, {predicted.latitude:7.3f}) "
                f"error={error_km:.3f} km confidence={predicted.confidence:.2f}"
            )

    return session, camera_path, errors


def plot_tracking(session: TrackingSession, camera_path: List[Tuple[float, float]]) -> None:
    """Save the ISS ground track and the camera path to a PNG file."""
    track = np.array(session.orbit_path("iss", num_points=256))
    camera = np.array(camera_path)

    fig, ax = plt.subplots(figsize=(14, 7))
    ax.scatter(track[:, 0], track[:, 1], s=3, color="steelblue", label="ISS ground track (one orbit)")
    if len(camera):
        ax.plot(camera[:, 0], camera[:, 1], color="darkorange", linewidth=2, label="Camera center")

    for satellite_id, position in session.positions.items():
        ax.scatter(position.longitude, position.latitude, s=30, marker="^")
        ax.annotate(satellite_id, (position.longitude, position.latitude), fontsize=8)

    ax.set_xlim(-180, 180)
    ax.set_ylim(-90, 90)
    ax.set_xlabel("Longitude (deg)")
    ax.set_ylabel("Latitude (deg)")
    ax.set_title("Satellite Tracking Session")
    ax.legend(loc="lower left")
    ax.grid(True, alpha=0.3)

    output_file = "tracking_session.png"
    plt.savefig(output_file, dpi=150, bbox_inches="tight")
    logger.info(f"Saved tracking plot to {output_file}")
    plt.close(fig)


def main() -> None:
    """Main demonstration entry point."""
    parser = argparse.ArgumentParser(description="Satellite Tracking Demonstration")
    parser.add_argument("--seconds", type=float, default=30.0, help="Simulated tracking time")
    parser.add_argument("--plot", action="store_true", help="Save a ground track plot")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    configure_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    logger.info("Satellite Tracking Demonstration")
    logger.info("=" * 60)

    session, camera_path, errors = run_simulation(args.seconds)

    if errors:
        logger.info(f"Prediction error: mean {np.mean(errors):.3f} km, max {np.max(errors):.3f} km")
    logger.info(f"Camera stats: {session.camera.get_performance_stats()['moves']} moves")
    logger.info(f"Position cache: {session.position_cache.stats()}")

    if args.plot:
        plot_tracking(session, camera_path)

    session.close()

    logger.info("=" * 60)
    logger.info("Demonstration complete")


if __name__ == "__main__":
    main()
