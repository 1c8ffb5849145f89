"""
Batch Position Calculator

Computes positions for many satellites at one instant, reusing compiled
handles and short-lived cached positions.

Every request in a batch is evaluated at the same timestamp. Requests whose
propagation fails are left out of the result and reported through
``last_failures`` so that the caller decides how loudly to log them.

An optional ``concurrent.futures`` executor spreads the uncached evaluations
across workers in chunks. Cache writes always happen on the calling thread and
results keep request order, so the executor changes throughput only, never
the result.
"""

import logging
from concurrent.futures import Executor
from typing import List, NamedTuple, Optional, Sequence, Tuple

from orbit_tracker.config import config
from orbit_tracker.errors import InvalidElementsError, PropagationError, StaleCacheMiss
from orbit_tracker.position_cache import PositionCache
from orbit_tracker.propagator import GeoPosition, HandleCache, PropagatorHandle
from orbit_tracker.scheduling import SystemClock
from orbit_tracker.tle_parser import OrbitalElements

logger = logging.getLogger(__name__)


class BatchPositionRequest(NamedTuple):
    satellite_id: str
    elements: OrbitalElements
    # Set for satellites that must never be served from the cache
    skip_cache: bool = False


class BatchPositionResult(NamedTuple):
    satellite_id: str
    position: GeoPosition
    timestamp_ms: int


def _evaluate_chunk(handle_cache: HandleCache, jobs, timestamp_ms: int):
    """Evaluate (index, handle) pairs; returns (index, position or error) pairs."""
    propagator = handle_cache.propagator
    results = []
    for index, handle in jobs:
        try:
            results.append((index, propagator.evaluate(handle, timestamp_ms)))
        except PropagationError as e:
            results.append((index, e))
    return results


class BatchCalculator:
    """
    Cache-aware position calculation for the background satellite mass.

    Args:
        handle_cache: Shared compiled-handle cache
        position_cache: Shared TTL position cache
        clock: Time source (default: system clock)
        executor: Optional executor for uncached evaluations
        chunk_size: Evaluations per executor task
    """

    def __init__(
        self,
        handle_cache: HandleCache,
        position_cache: PositionCache,
        clock=None,
        executor: Optional[Executor] = None,
        chunk_size: Optional[int] = None,
    ):
        self.handle_cache = handle_cache
        self.position_cache = position_cache
        self.clock = clock or SystemClock()
        self.executor = executor
        self.chunk_size = chunk_size or config.BATCH_CHUNK_SIZE
        self.last_failures: List[Tuple[str, Exception]] = []

    def calculate_batch(
        self,
        requests: Sequence[BatchPositionRequest],
        timestamp_ms: Optional[int] = None,
    ) -> List[BatchPositionResult]:
        """
        Positions for all requests at one instant.

        Args:
            requests: Satellites to compute
            timestamp_ms: Evaluation time (default: clock now)

        Returns:
            One result per successful request, in request order. Cached
            results carry the timestamp they were computed at.
        """
        now = self.clock.now_ms() if timestamp_ms is None else int(timestamp_ms)
        self.last_failures = []

        slots: List[Optional[BatchPositionResult]] = [None] * len(requests)
        jobs: List[Tuple[int, PropagatorHandle]] = []

        for index, request in enumerate(requests):
            if not request.skip_cache:
                try:
                    cached = self.position_cache.lookup(request.satellite_id, now)
                    slots[index] = BatchPositionResult(
                        request.satellite_id, cached.position, cached.computed_at_ms
                    )
                    continue
                except StaleCacheMiss:
                    pass

            try:
                handle = self.handle_cache.get(request.elements)
            except InvalidElementsError as e:
                self.last_failures.append((request.satellite_id, e))
                continue
            jobs.append((index, handle))

        for index, outcome in self._evaluate(jobs, now):
            request = requests[index]
            if isinstance(outcome, PropagationError):
                outcome.satellite_id = request.satellite_id
                self.last_failures.append((request.satellite_id, outcome))
                continue
            entry = self.position_cache.store(request.satellite_id, outcome, now)
            slots[index] = BatchPositionResult(request.satellite_id, entry.position, entry.computed_at_ms)

        if self.last_failures:
            logger.debug(f"Batch dropped {len(self.last_failures)} of {len(requests)} satellites")

        return [result for result in slots if result is not None]

    def _evaluate(self, jobs, timestamp_ms: int):
        if not jobs:
            return []

        if self.executor is None or len(jobs) <= self.chunk_size:
            return _evaluate_chunk(self.handle_cache, jobs, timestamp_ms)

        futures = [
            self.executor.submit(
                _evaluate_chunk, self.handle_cache, jobs[start:start + self.chunk_size], timestamp_ms
            )
            for start in range(0, len(jobs), self.chunk_size)
        ]

        outcomes = []
        for future in futures:
            outcomes.extend(future.result())
        return outcomes
