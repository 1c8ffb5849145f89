"""
Error taxonomy for the orbit tracker.

None of these errors is fatal to a tracking session: invalid elements remove
one satellite from the trackable set, propagation errors drop one position,
and StaleCacheMiss only tells the batch calculator to recompute.
"""

from enum import Enum
from typing import Optional


class OrbitTrackerError(Exception):
    """Base class for orbit tracker errors"""


class InvalidElementsError(OrbitTrackerError, ValueError):
    """Malformed or inconsistent Two-Line Element set"""


class PropagationErrorKind(Enum):
    """Why the propagator could not produce a position"""

    DECAYED = "decayed"
    NUMERICAL_ERROR = "numerical_error"


class PropagationError(OrbitTrackerError, RuntimeError):
    """The propagator produced no valid position for valid elements."""

    def __init__(
        self,
        kind: PropagationErrorKind,
        message: str,
        error_code: Optional[int] = None,
        satellite_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.error_code = error_code
        self.satellite_id = satellite_id


class StaleCacheMiss(OrbitTrackerError):
    """Cached position missing or older than its TTL; recompute now."""
