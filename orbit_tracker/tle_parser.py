"""
TLE Parser Module

Provides validation and parsing of Two-Line Element (TLE) sets before they are
handed to the propagator.

The NORAD format is consumed as an opaque fixed-width input: each line is
69 characters, starts with its line number, and ends with a modulo-10
checksum. Only these minimal invariants are checked here; the orbital
content itself is interpreted by the sgp4 library.
"""

import hashlib
import logging
import math
import re
from datetime import datetime, timezone, timedelta
from typing import Dict, Any, List, NamedTuple, Optional, Tuple

from sgp4.api import Satrec

from orbit_tracker.errors import InvalidElementsError

logger = logging.getLogger(__name__)

TLE_LINE_LENGTH = 69


def tle_checksum(line: str) -> int:
    """Calculate the modulo-10 TLE checksum of the first 68 columns."""
    checksum = 0
    for char in line[:68]:
        if char.isdigit():
            checksum += int(char)
        elif char == "-":
            checksum += 1
    return checksum % 10


def _clean_line(line: str) -> str:
    if not isinstance(line, str):
        raise InvalidElementsError(f"TLE line must be a string, got {type(line).__name__}")
    return line.rstrip("\r\n")


def validate_tle_lines(line1: str, line2: str, verify_checksum: bool = True) -> Tuple[str, str]:
    """
    Check the fixed-format invariants of a TLE pair.

    Args:
        line1: First line of TLE
        line2: Second line of TLE
        verify_checksum: Also verify the column-69 checksum of both lines

    Returns:
        Tuple of the cleaned (line1, line2)

    Raises:
        InvalidElementsError: If either line violates the format
    """
    line1 = _clean_line(line1)
    line2 = _clean_line(line2)

    for number, line in ((1, line1), (2, line2)):
        if len(line) != TLE_LINE_LENGTH:
            raise InvalidElementsError(
                f"TLE line {number} must be {TLE_LINE_LENGTH} characters, got {len(line)}"
            )
        if line[0] != str(number) or line[1] != " ":
            raise InvalidElementsError(
                f"TLE line {number} must start with '{number} ', got {line[:2]!r}"
            )

    if line1[2:7] != line2[2:7]:
        raise InvalidElementsError(
            f"Catalog numbers differ between lines: {line1[2:7]!r} vs {line2[2:7]!r}"
        )

    if verify_checksum:
        for number, line in ((1, line1), (2, line2)):
            if not line[68].isdigit():
                raise InvalidElementsError(f"TLE line {number} has no checksum digit")
            expected = tle_checksum(line)
            if int(line[68]) != expected:
                raise InvalidElementsError(
                    f"TLE line {number} checksum mismatch: "
                    f"found {line[68]}, computed {expected}"
                )

    return line1, line2


class OrbitalElements(NamedTuple):
    """Immutable, validated TLE pair."""

    line1: str
    line2: str

    @classmethod
    def from_lines(cls, line1: str, line2: str, verify_checksum: bool = True) -> "OrbitalElements":
        line1, line2 = validate_tle_lines(line1, line2, verify_checksum=verify_checksum)
        return cls(line1, line2)

    @property
    def key(self) -> str:
        """Stable content hash of both lines, used to key compiled handles."""
        digest = hashlib.sha1()
        digest.update(self.line1.encode("utf-8"))
        digest.update(b"\n")
        digest.update(self.line2.encode("utf-8"))
        return digest.hexdigest()

    @property
    def norad_id(self) -> str:
        return self.line1[2:7].strip()


def epoch_to_datetime(epoch_year: int, epoch_days: float) -> datetime:
    """
    Convert TLE epoch to datetime.

    Args:
        epoch_year: Two-digit year
        epoch_days: Day of year with fractional part

    Returns:
        Datetime object in UTC
    """
    year = 1900 + epoch_year if epoch_year >= 57 else 2000 + epoch_year
    # -1 because day 1 is Jan 1
    return datetime(year, 1, 1, tzinfo=timezone.utc) + timedelta(days=epoch_days - 1.0)


def parse_tle(line1: str, line2: str, name: str = "") -> Dict[str, Any]:
    """
    Parse TLE lines into structured data.

    Args:
        line1: First line of TLE
        line2: Second line of TLE
        name: Optional satellite name

    Returns:
        Dictionary containing parsed TLE data

    Raises:
        InvalidElementsError: If the lines fail validation or sgp4 rejects them
    """
    elements = OrbitalElements.from_lines(line1, line2)

    try:
        satellite = Satrec.twoline2rv(elements.line1, elements.line2)
    except (ValueError, IndexError) as e:
        raise InvalidElementsError(f"sgp4 rejected TLE: {e}") from e

    # Convert mean motion from rad/min to rev/day
    mean_motion_rev_day = satellite.no_kozai * 1440.0 / (2.0 * math.pi)

    return {
        "name": name,
        "norad_id": satellite.satnum,
        "classification": getattr(satellite, "classification", "U"),
        "epoch_year": satellite.epochyr,
        "epoch_days": satellite.epochdays,
        "epoch_datetime": epoch_to_datetime(satellite.epochyr, satellite.epochdays),
        "bstar_drag": satellite.bstar,
        "inclination_deg": math.degrees(satellite.inclo),
        "raan_deg": math.degrees(satellite.nodeo),
        "eccentricity": satellite.ecco,
        "arg_perigee_deg": math.degrees(satellite.argpo),
        "mean_anomaly_deg": math.degrees(satellite.mo),
        "mean_motion_rev_per_day": mean_motion_rev_day,
        "orbital_period_minutes": 1440.0 / mean_motion_rev_day if mean_motion_rev_day > 0 else math.inf,
        "line1": elements.line1,
        "line2": elements.line2,
    }


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "satellite"


class TLEBlock(NamedTuple):
    name: Optional[str]
    line1: str
    line2: str


def parse_tle_text(text: str) -> List[TLEBlock]:
    """
    Split a TLE text file into blocks.

    Accepts both the two-line format and the common three-line format where
    a name line precedes each pair. Lines that cannot be paired are skipped
    with a warning; validation of each pair is left to the caller.
    """
    lines = [line.rstrip() for line in text.splitlines() if line.strip()]
    blocks = []
    pending_name = None
    i = 0

    while i < len(lines):
        line = lines[i]
        if line.startswith("1 ") and i + 1 < len(lines) and lines[i + 1].startswith("2 "):
            blocks.append(TLEBlock(pending_name, line, lines[i + 1]))
            pending_name = None
            i += 2
            continue

        if line.startswith(("1 ", "2 ")):
            logger.warning(f"Skipping unpaired TLE line: {line[:20]!r}")
        else:
            # Three-line format: "0 NAME" or plain name
            pending_name = line[2:].strip() if line.startswith("0 ") else line.strip()
        i += 1

    return blocks
