"""
Adaptive render quality.

Frame times feed a 60-frame FPS window. Every 60 frames the average and
minimum FPS pick one of five quality levels, which in turn bound how many
satellites are drawn, how often background positions are recomputed, how
aggressively the LOD culler samples, and whether icons are drawn at all.
"""

import logging
from collections import deque
from typing import Dict, NamedTuple, Optional

from orbit_tracker.scheduling import SystemClock

logger = logging.getLogger(__name__)

FPS_WINDOW = 60


class QualitySettings(NamedTuple):
    max_satellites: int
    update_interval_ms: int
    lod_skip_factor: int
    icon_quality: str


QUALITY_SETTINGS = {
    'ultra': QualitySettings(3000, 100, 1, 'high'),
    'high': QualitySettings(2000, 150, 2, 'high'),
    'medium': QualitySettings(1000, 200, 5, 'medium'),
    'low': QualitySettings(500, 300, 10, 'low'),
    'potato': QualitySettings(200, 500, 20, 'none'),
}


def quality_for_fps(avg_fps: float, min_fps: float) -> str:
    if min_fps < 15 or avg_fps < 20:
        return 'potato'
    if min_fps < 20 or avg_fps < 25:
        return 'low'
    if min_fps < 25 or avg_fps < 30:
        return 'medium'
    if min_fps < 30 or avg_fps < 40:
        return 'high'
    return 'ultra'


class PerformanceMonitor:
    """Tracks frame rate and adapts quality."""

    def __init__(self, clock=None, initial_quality: str = 'high'):
        if initial_quality not in QUALITY_SETTINGS:
            raise ValueError(f"Unknown quality level: {initial_quality}")
        self.clock = clock or SystemClock()
        self.quality = initial_quality
        self._frame_rates = deque(maxlen=FPS_WINDOW)
        self._last_frame_ms: Optional[int] = None
        self._frame_count = 0
        self.avg_fps = 60.0
        self.min_fps = 60.0
        self.satellite_count = 0
        self.render_time_ms = 0.0

    def record_frame(self, timestamp_ms: Optional[int] = None) -> None:
        now = self.clock.now_ms() if timestamp_ms is None else timestamp_ms

        if self._last_frame_ms is not None:
            delta = now - self._last_frame_ms
            if delta > 0:
                self._frame_rates.append(1000.0 / delta)
                self._frame_count += 1
                if self._frame_count % FPS_WINDOW == 0:
                    self._update_metrics()
                    self._adapt_quality()

        self._last_frame_ms = now

    def _update_metrics(self) -> None:
        if not self._frame_rates:
            return
        self.avg_fps = sum(self._frame_rates) / len(self._frame_rates)
        self.min_fps = min(self._frame_rates)

    def _adapt_quality(self) -> None:
        quality = quality_for_fps(self.avg_fps, self.min_fps)
        if quality != self.quality:
            logger.info(
                f"Performance: {self.avg_fps:.1f} fps avg, {self.min_fps:.1f} fps min, "
                f"quality {self.quality} -> {quality}"
            )
        self.quality = quality

    @property
    def settings(self) -> QualitySettings:
        return QUALITY_SETTINGS[self.quality]

    def get_lod_skip(self, zoom: float) -> int:
        """Performance multiplier for the LOD skip factor; harsher at low zoom."""
        base = self.settings.lod_skip_factor
        if zoom <= 1:
            return max(base * 10, 50)
        if zoom <= 2:
            return max(base * 5, 25)
        if zoom <= 3:
            return max(base * 3, 10)
        if zoom <= 4:
            return max(base * 2, 5)
        return base

    def get_update_interval(self) -> float:
        """Background update interval in ms, stretched when FPS is low."""
        interval = self.settings.update_interval_ms
        if self.avg_fps < 20:
            return interval * 2
        if self.avg_fps < 30:
            return interval * 1.5
        return interval

    def should_render_icons(self) -> bool:
        return self.settings.icon_quality != 'none'

    def get_max_satellites(self) -> int:
        return self.settings.max_satellites

    def metrics(self) -> Dict[str, float]:
        return {
            'avg_fps': self.avg_fps,
            'min_fps': self.min_fps,
            'satellite_count': self.satellite_count,
            'render_time_ms': self.render_time_ms,
            'quality': self.quality,
        }
