"""Throttled sampling of raw CPU tick counters."""

import threading
import time
from collections.abc import Callable
from enum import Enum

from loguru import logger

from cpuload.models import (
    TICK_TYPE_COUNT,
    TickMatrix,
    TickSnapshot,
    TickVector,
    is_all_zero,
    is_all_zero_matrix,
    zero_matrix,
    zero_ticks,
)
from cpuload.sources import TickSource

DEFAULT_TICK_INTERVAL_MS = 950


class SampleKind(Enum):
    """Which tick counters a refresh applies to."""

    SYSTEM = "system"
    PROCESSOR = "processor"


def monotonic_ms() -> float:
    """Milliseconds on a monotonic clock."""
    return time.monotonic() * 1000.0


def _fit_vector(ticks: TickVector) -> TickVector:
    """Pad or trim a vector to one entry per TickType."""
    values = tuple(int(t) for t in ticks[:TICK_TYPE_COUNT])
    return values + (0,) * (TICK_TYPE_COUNT - len(values))


def _fit_matrix(matrix: TickMatrix, rows: int) -> TickMatrix:
    """Pad or trim a matrix to one row per logical processor."""
    fitted = [_fit_vector(row) for row in matrix[:rows]]
    fitted.extend(zero_ticks() for _ in range(rows - len(fitted)))
    return tuple(fitted)


class TickSampler:
    """
    Owner of the previous/current tick pairs for one processor.

    Refreshes copy current into previous and install the fetched ticks as
    current. An all-zero fetch means the source is not ready and leaves the
    state untouched. Every mutation happens under the lock shared with the
    owning processor.
    """

    def __init__(
        self,
        tick_source: TickSource,
        logical_processor_count: int,
        lock: "threading.RLock | None" = None,
        clock: Callable[[], float] = monotonic_ms,
    ) -> None:
        """
        Initialize the TickSampler.

        Args:
            tick_source: Supplier of raw tick counters.
            logical_processor_count: Rows in every per-processor matrix.
            lock: Lock guarding the tick state. A new one if omitted.
            clock: Returns the current time in milliseconds.
        """
        self._source = tick_source
        self._rows = max(1, logical_processor_count)
        self._lock = lock if lock is not None else threading.RLock()
        self._clock = clock

        self._prev_ticks: TickVector = zero_ticks()
        self._cur_ticks: TickVector = zero_ticks()
        self._tick_time = 0.0

        self._prev_proc_ticks: TickMatrix = zero_matrix(self._rows)
        self._cur_proc_ticks: TickMatrix = zero_matrix(self._rows)
        self._proc_tick_time = 0.0

    @property
    def logical_processor_count(self) -> int:
        """Number of rows in the per-processor matrices."""
        return self._rows

    def bootstrap(self) -> None:
        """Populate previous and current from a single capture."""
        with self._lock:
            proc_ticks = _fit_matrix(self._source.processor_ticks(), self._rows)
            self._prev_proc_ticks = proc_ticks
            self._cur_proc_ticks = proc_ticks
            # A source that is not ready yet leaves the capture time at zero
            # so the next throttled query retries immediately
            if not is_all_zero_matrix(proc_ticks):
                self._proc_tick_time = self._clock()

            ticks = _fit_vector(self._source.system_ticks())
            self._prev_ticks = ticks
            self._cur_ticks = ticks
            if not is_all_zero(ticks):
                self._tick_time = self._clock()

    def refresh_system_ticks(self) -> bool:
        """
        Fetch fresh system ticks and rotate them into the pair.

        Returns:
            True if the state changed, False if the fetch carried no data.
        """
        logger.trace("Updating system ticks")
        with self._lock:
            ticks = _fit_vector(self._source.system_ticks())
            if is_all_zero(ticks):
                return False
            self._tick_time = self._clock()
            self._prev_ticks = self._cur_ticks
            self._cur_ticks = ticks
            return True

    def refresh_processor_ticks(self) -> bool:
        """
        Fetch fresh per-processor ticks and rotate them into the pair.

        The whole matrix is swapped in as soon as any entry is nonzero; rows
        that happen to read all zero are installed as well.

        Returns:
            True if the state changed, False if the fetch carried no data.
        """
        logger.trace("Updating processor ticks")
        with self._lock:
            ticks = _fit_matrix(self._source.processor_ticks(), self._rows)
            if is_all_zero_matrix(ticks):
                return False
            self._proc_tick_time = self._clock()
            self._prev_proc_ticks = self._cur_proc_ticks
            self._cur_proc_ticks = ticks
            return True

    def last_capture(self, kind: SampleKind) -> float:
        """Capture time (ms) of the current ticks of the given kind."""
        with self._lock:
            if kind is SampleKind.SYSTEM:
                return self._tick_time
            return self._proc_tick_time

    def maybe_refresh(
        self, kind: SampleKind, min_interval_ms: float = DEFAULT_TICK_INTERVAL_MS
    ) -> bool:
        """
        Refresh the given kind only if more than min_interval_ms has elapsed.

        Returns:
            True if a refresh changed the state.
        """
        with self._lock:
            now = self._clock()
            last = self.last_capture(kind)
            logger.trace("Current time: {}  Last tick time: {}", now, last)
            if now - last <= min_interval_ms:
                return False
            if kind is SampleKind.SYSTEM:
                return self.refresh_system_ticks()
            return self.refresh_processor_ticks()

    def system_snapshot(self) -> TickSnapshot[TickVector]:
        """Current consistent pair of system tick vectors."""
        with self._lock:
            return TickSnapshot(self._prev_ticks, self._cur_ticks, self._tick_time)

    def processor_snapshot(self) -> TickSnapshot[TickMatrix]:
        """Current consistent pair of per-processor tick matrices."""
        with self._lock:
            return TickSnapshot(
                self._prev_proc_ticks, self._cur_proc_ticks, self._proc_tick_time
            )
