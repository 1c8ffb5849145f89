"""
Level-of-Detail / Viewport Culler

Decides which satellites are worth drawing and updating for the current view.

Filtering order:
    1. Priority satellites (the followed one and flagship IDs) always pass.
    2. Everything else outside the visible bounds, grown by a zoom-dependent
       margin, is dropped.
    3. At coarse zooms only a fixed subset is kept: a satellite passes when
       the hash of its ID is divisible by the skip factor. The hash depends
       only on the ID, so the subset is identical from frame to frame.
    4. At zoom 2 and below, satellites far from the view center are dropped.
    5. The result is capped at the maximum satellite count.

Every step is a pure function of its inputs.
"""

import logging
from enum import Enum
from typing import Iterable, List, NamedTuple, Optional, Sequence

from orbit_tracker.config import config
from orbit_tracker.geo import planar_distance_deg
from orbit_tracker.viewport import Viewport

logger = logging.getLogger(__name__)


class LODLevel(Enum):
    ULTRA_LOW = "ultra-low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    ULTRA_HIGH = "ultra-high"


class UpdatePriority(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


BASE_SKIP_FACTORS = {
    LODLevel.ULTRA_LOW: 100,
    LODLevel.LOW: 50,
    LODLevel.MEDIUM: 20,
    LODLevel.HIGH: 5,
    LODLevel.ULTRA_HIGH: 1,
}

ICON_SIZE_MULTIPLIERS = {
    LODLevel.ULTRA_LOW: 0.3,
    LODLevel.LOW: 0.5,
    LODLevel.MEDIUM: 0.7,
    LODLevel.HIGH: 1.0,
    LODLevel.ULTRA_HIGH: 1.2,
}

CIRCLE_SIZE_MULTIPLIERS = {
    LODLevel.ULTRA_LOW: 0.1,
    LODLevel.LOW: 0.2,
    LODLevel.MEDIUM: 0.4,
    LODLevel.HIGH: 0.6,
    LODLevel.ULTRA_HIGH: 1.0,
}


def lod_level_for_zoom(zoom: float) -> LODLevel:
    if zoom <= 1:
        return LODLevel.ULTRA_LOW
    if zoom <= 2:
        return LODLevel.LOW
    if zoom <= 4:
        return LODLevel.MEDIUM
    if zoom <= 6:
        return LODLevel.HIGH
    return LODLevel.ULTRA_HIGH


def culling_margin(zoom: float) -> float:
    """Longitude margin in degrees; latitude uses half of it."""
    if zoom <= 1:
        return 120.0
    if zoom <= 2:
        return 80.0
    if zoom <= 3:
        return 50.0
    if zoom <= 4:
        return 30.0
    return 15.0


def hash_string(value: str) -> int:
    """
    31-multiplier string hash over UTF-16 code units, wrapped to a signed
    32-bit integer, returned as its absolute value.

    Matches Java's String.hashCode() before the abs(), so IDs sample the same
    way as in browser and JVM front ends.
    """
    data = value.encode("utf-16-le")
    h = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


class SatelliteForLOD(NamedTuple):
    id: str
    longitude: float
    latitude: float
    type: str = "unknown"
    width_m: float = 1.0
    is_followed: bool = False
    has_image: bool = False


class LODHints(NamedTuple):
    show_icon: bool
    icon_size: float
    circle_size: float
    update_priority: UpdatePriority


class LODSelection(NamedTuple):
    satellite: SatelliteForLOD
    hints: LODHints


class LODManager:
    """
    Viewport culling and deterministic sampling.

    Args:
        flagship_ids: IDs that are always kept, like the followed satellite
        frustum_culling: Drop satellites outside the expanded bounds
        distance_culling: Drop far-from-center satellites at coarse zoom
        base_icon_size: Icon size in pixels at the high LOD level
        base_circle_size: Dot size in pixels at the ultra-high LOD level
    """

    def __init__(
        self,
        flagship_ids: Optional[Iterable[str]] = None,
        frustum_culling: bool = True,
        distance_culling: bool = True,
        base_icon_size: float = 24.0,
        base_circle_size: float = 2.0,
    ):
        self.flagship_ids = frozenset(config.FLAGSHIP_SATELLITE_IDS if flagship_ids is None else flagship_ids)
        self.frustum_culling = frustum_culling
        self.distance_culling = distance_culling
        self.base_icon_size = base_icon_size
        self.base_circle_size = base_circle_size

    def is_flagship(self, satellite: SatelliteForLOD) -> bool:
        return satellite.id in self.flagship_ids

    def is_priority(self, satellite: SatelliteForLOD) -> bool:
        return satellite.is_followed or self.is_flagship(satellite)

    def get_skip_factor(self, zoom: float, performance_skip: int = 1) -> int:
        return BASE_SKIP_FACTORS[lod_level_for_zoom(zoom)] * max(int(performance_skip), 1)

    def filter_satellites_for_lod(
        self,
        satellites: Sequence[SatelliteForLOD],
        viewport: Viewport,
        performance_skip: int = 1,
        max_satellites: Optional[int] = None,
    ) -> List[SatelliteForLOD]:
        """
        Satellites to render for this viewport.

        Returns:
            Priority satellites first, then the sampled regular satellites,
            each group in input order, capped at max_satellites.
        """
        if max_satellites is None:
            max_satellites = config.LOD_MAX_SATELLITES

        zoom = viewport.zoom
        priority = [sat for sat in satellites if self.is_priority(sat)]
        regular = [sat for sat in satellites if not self.is_priority(sat)]

        if self.frustum_culling:
            regular = self._apply_culling(regular, viewport)

        skip = self.get_skip_factor(zoom, performance_skip)
        if skip > 1:
            regular = [sat for sat in regular if hash_string(sat.id) % skip == 0]

        if self.distance_culling and zoom <= 2:
            regular = self._apply_distance_culling(regular, viewport)

        return (priority + regular)[:max(max_satellites, 0)]

    def select(
        self,
        satellites: Sequence[SatelliteForLOD],
        viewport: Viewport,
        performance_skip: int = 1,
        max_satellites: Optional[int] = None,
        render_icons: bool = True,
    ) -> List[LODSelection]:
        """Filtered satellites annotated with their render hints."""
        selected = self.filter_satellites_for_lod(satellites, viewport, performance_skip, max_satellites)
        return [LODSelection(sat, self.hints_for(sat, viewport.zoom, render_icons)) for sat in selected]

    def hints_for(self, satellite: SatelliteForLOD, zoom: float, render_icons: bool = True) -> LODHints:
        show_icon = self.should_show_icon(satellite, zoom)
        if not render_icons and not self.is_priority(satellite):
            show_icon = False
        return LODHints(
            show_icon=show_icon,
            icon_size=self.get_icon_size(satellite, zoom),
            circle_size=self.get_circle_size(satellite, zoom),
            update_priority=self.get_update_priority(satellite, zoom),
        )

    def should_show_icon(self, satellite: SatelliteForLOD, zoom: float) -> bool:
        if self.is_flagship(satellite):
            return zoom >= 2
        if satellite.is_followed:
            return zoom >= 3

        level = lod_level_for_zoom(zoom)
        if level in (LODLevel.ULTRA_LOW, LODLevel.LOW):
            return False
        if level is LODLevel.ULTRA_HIGH:
            return True
        return zoom >= 3

    def get_icon_size(self, satellite: SatelliteForLOD, zoom: float, base_size: Optional[float] = None) -> float:
        base = self.base_icon_size if base_size is None else base_size
        multiplier = ICON_SIZE_MULTIPLIERS[lod_level_for_zoom(zoom)]
        if self.is_priority(satellite):
            return max(base * multiplier * 1.5, 12.0)
        return max(base * multiplier, 4.0)

    def get_circle_size(self, satellite: SatelliteForLOD, zoom: float, base_size: Optional[float] = None) -> float:
        base = self.base_circle_size if base_size is None else base_size
        multiplier = CIRCLE_SIZE_MULTIPLIERS[lod_level_for_zoom(zoom)]
        if self.is_priority(satellite):
            return max(base * multiplier * 2.0, 3.0)
        return max(base * multiplier, 1.0)

    def get_update_priority(self, satellite: SatelliteForLOD, zoom: float) -> UpdatePriority:
        if self.is_priority(satellite):
            return UpdatePriority.HIGH
        if lod_level_for_zoom(zoom) in (LODLevel.HIGH, LODLevel.ULTRA_HIGH):
            return UpdatePriority.MEDIUM
        return UpdatePriority.LOW

    def _apply_culling(self, satellites: List[SatelliteForLOD], viewport: Viewport) -> List[SatelliteForLOD]:
        margin = culling_margin(viewport.zoom)
        expanded = viewport.bounds.expanded(margin, margin / 2.0)
        return [sat for sat in satellites if expanded.contains(sat.longitude, sat.latitude)]

    @staticmethod
    def _apply_distance_culling(satellites: List[SatelliteForLOD], viewport: Viewport) -> List[SatelliteForLOD]:
        max_distance = 60.0 if viewport.zoom <= 1 else 40.0
        return [
            sat for sat in satellites
            if planar_distance_deg(viewport.center, (sat.longitude, sat.latitude)) <= max_distance
        ]
