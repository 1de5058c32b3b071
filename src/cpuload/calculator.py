"""Utilization ratios from pairs of tick snapshots."""

from loguru import logger

from cpuload.models import TickMatrix, TickSnapshot, TickType, TickVector


def _idle(ticks: TickVector) -> int:
    return ticks[TickType.IDLE.index] + ticks[TickType.IOWAIT.index]


def tick_load(previous: TickVector, current: TickVector) -> float:
    """
    Compute the non-idle fraction of the ticks elapsed between two vectors.

    Idle time is IDLE plus IOWAIT. Returns 0.0 when no ticks elapsed or when
    the idle delta is negative (counter rollback or an inconsistent source).
    """
    total = sum(cur - prev for prev, cur in zip(previous, current))
    idle = _idle(current) - _idle(previous)
    logger.trace("Total ticks: {}  Idle ticks: {}", total, idle)
    if total > 0 and idle >= 0:
        return (total - idle) / total
    return 0.0


def processor_tick_loads(previous: TickMatrix, current: TickMatrix) -> list[float]:
    """Compute tick_load for each logical processor, aligned by index."""
    return [tick_load(prev, cur) for prev, cur in zip(previous, current)]


def snapshot_load(snapshot: TickSnapshot[TickVector]) -> float:
    """System load over a captured snapshot pair."""
    return tick_load(snapshot.previous, snapshot.current)


def snapshot_processor_loads(snapshot: TickSnapshot[TickMatrix]) -> list[float]:
    """Per-processor loads over a captured snapshot pair."""
    return processor_tick_loads(snapshot.previous, snapshot.current)
