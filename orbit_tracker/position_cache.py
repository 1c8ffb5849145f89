"""
Short-lived position cache for background satellites.

Entries are fresh while ``now - computed_at_ms < ttl_ms``. The cache is a
plain mapping owned by a session; recomputations are idempotent, so
concurrent writers can only replace an entry with an equivalent or fresher
value.
"""

import logging
from typing import Dict, NamedTuple, Optional

from orbit_tracker.config import config
from orbit_tracker.errors import StaleCacheMiss
from orbit_tracker.propagator import GeoPosition

logger = logging.getLogger(__name__)


class CachedPosition(NamedTuple):
    position: GeoPosition
    computed_at_ms: int


class PositionCache:
    """TTL cache of the last computed position per satellite ID."""

    def __init__(self, ttl_ms: Optional[int] = None):
        self.ttl_ms = config.POSITION_CACHE_TTL_MS if ttl_ms is None else ttl_ms
        self._entries: Dict[str, CachedPosition] = {}
        self._hits = 0
        self._requests = 0

    def lookup(self, satellite_id: str, now_ms: int) -> CachedPosition:
        """
        Return the fresh entry for a satellite.

        Raises:
            StaleCacheMiss: If there is no entry or it is older than the TTL
        """
        self._requests += 1
        entry = self._entries.get(satellite_id)
        if entry is None:
            raise StaleCacheMiss(satellite_id)
        if now_ms - entry.computed_at_ms >= self.ttl_ms:
            raise StaleCacheMiss(satellite_id)
        self._hits += 1
        return entry

    def get(self, satellite_id: str, now_ms: int) -> Optional[CachedPosition]:
        try:
            return self.lookup(satellite_id, now_ms)
        except StaleCacheMiss:
            return None

    def store(self, satellite_id: str, position: GeoPosition, now_ms: int) -> CachedPosition:
        entry = CachedPosition(position, int(now_ms))
        self._entries[satellite_id] = entry
        return entry

    def invalidate(self, satellite_id: str) -> None:
        self._entries.pop(satellite_id, None)

    def cleanup(self, now_ms: int) -> int:
        """Drop entries older than twice the TTL; returns how many were removed."""
        expired = [
            key for key, entry in self._entries.items()
            if now_ms - entry.computed_at_ms > self.ttl_ms * 2
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Position cache cleanup removed {len(expired)} entries")
        return len(expired)

    def stats(self) -> Dict[str, float]:
        return {
            "size": len(self._entries),
            "hits": self._hits,
            "requests": self._requests,
            "hit_ratio": self._hits / self._requests if self._requests else 0.0,
        }

    def __contains__(self, satellite_id: str) -> bool:
        return satellite_id in self._entries

    def __len__(self):
        return len(self._entries)
