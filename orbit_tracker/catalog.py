"""
Satellite catalog.

Holds the trackable satellites of a session as ``{id, name, elements,
category}`` records. Records are validated on load; a record with invalid
elements is skipped with one warning and never reaches the propagator.
"""

import logging
from typing import Any, Dict, Iterable, Iterator, List, NamedTuple, Optional

from orbit_tracker.config import FALLBACK_ISS_TLE
from orbit_tracker.errors import InvalidElementsError
from orbit_tracker.tle_parser import OrbitalElements, parse_tle_text, slugify

logger = logging.getLogger(__name__)


class SatelliteRecord(NamedTuple):
    id: str
    name: str
    elements: OrbitalElements
    category: str = "unknown"


DEFAULT_SATELLITES: List[Dict[str, Any]] = [
    FALLBACK_ISS_TLE,
    {
        'id': 'vanguard-1-00005',
        'name': 'Vanguard 1',
        'category': 'scientific',
        'line1': '1 00005U 58002B   00179.78495062  .00000023  00000-0  28098-4 0  4753',
        'line2': '2 00005  34.2682 348.7242 1859667 331.7664  19.3264 10.82419157413667',
    },
    {
        'id': 'molniya-1-29-08195',
        'name': 'Molniya 1-29',
        'category': 'communication',
        'line1': '1 08195U 75081A   06176.33215444  .00000099  00000-0  11873-3 0   813',
        'line2': '2 08195  64.1586 279.0717 6877146 264.7651  20.2257  2.00491383225656',
    },
]


class SatelliteCatalog:
    """ID-keyed, insertion-ordered set of satellite records."""

    def __init__(self, records: Optional[Iterable[Dict[str, Any]]] = None):
        self._records: Dict[str, SatelliteRecord] = {}
        if records is not None:
            self.load_records(records)

    def load_records(self, records: Iterable[Dict[str, Any]]) -> int:
        """
        Add provider records (dicts with id, name, line1, line2, category).

        Returns:
            Number of records accepted
        """
        accepted = 0
        for raw in records:
            record_id = raw.get('id') or slugify(raw.get('name', ''))
            try:
                elements = OrbitalElements.from_lines(raw['line1'], raw['line2'])
            except (KeyError, InvalidElementsError) as e:
                logger.warning(f"Skipping satellite {record_id!r}: invalid elements ({e})")
                continue

            self.add(SatelliteRecord(
                id=record_id,
                name=raw.get('name', record_id),
                elements=elements,
                category=raw.get('category', 'unknown'),
            ))
            accepted += 1

        return accepted

    def load_tle_text(self, text: str, category: str = "unknown") -> int:
        """Add satellites from 2-line or 3-line TLE text; returns how many were accepted."""
        records = []
        for block in parse_tle_text(text):
            norad_id = block.line1[2:7].strip()
            name = block.name or f"NORAD {norad_id}"
            records.append({
                'id': f"{slugify(name)}-{norad_id}" if block.name else norad_id,
                'name': name,
                'line1': block.line1,
                'line2': block.line2,
                'category': category,
            })
        return self.load_records(records)

    def add(self, record: SatelliteRecord) -> None:
        if record.id in self._records:
            logger.debug(f"Replacing catalog entry {record.id}")
        self._records[record.id] = record

    def remove(self, satellite_id: str) -> None:
        self._records.pop(satellite_id, None)

    def get(self, satellite_id: str) -> Optional[SatelliteRecord]:
        return self._records.get(satellite_id)

    def __getitem__(self, satellite_id: str) -> SatelliteRecord:
        return self._records[satellite_id]

    def __contains__(self, satellite_id: str) -> bool:
        return satellite_id in self._records

    def __iter__(self) -> Iterator[SatelliteRecord]:
        return iter(list(self._records.values()))

    def __len__(self):
        return len(self._records)


def default_catalog() -> SatelliteCatalog:
    return SatelliteCatalog(DEFAULT_SATELLITES)
