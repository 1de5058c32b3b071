"""Data models for cpuload."""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Generic, TypeVar


class TickType(IntEnum):
    """CPU tick categories, in the order tick vectors are laid out."""

    USER = 0
    NICE = 1
    SYSTEM = 2
    IDLE = 3
    IOWAIT = 4
    IRQ = 5
    SOFTIRQ = 6

    @property
    def index(self) -> int:
        """Position of this category in a tick vector."""
        return int(self)


TICK_TYPE_COUNT = len(TickType)

# Cumulative ticks (or milliseconds) per TickType, since boot or process start
TickVector = tuple[int, ...]

# One TickVector per logical processor
TickMatrix = tuple[TickVector, ...]


def zero_ticks() -> TickVector:
    """Return the all-zero tick vector."""
    return (0,) * TICK_TYPE_COUNT


def zero_matrix(rows: int) -> TickMatrix:
    """Return an all-zero tick matrix with one row per processor."""
    return tuple(zero_ticks() for _ in range(rows))


def is_all_zero(ticks: TickVector) -> bool:
    """Check whether a tick vector carries no data."""
    return not any(ticks)


def is_all_zero_matrix(matrix: TickMatrix) -> bool:
    """Check whether every entry of a tick matrix is zero."""
    return all(is_all_zero(row) for row in matrix)


T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class TickSnapshot(Generic[T]):
    """Consistent previous/current tick pair and its capture time (ms)."""

    previous: T
    current: T
    captured_at: float


class LoadStrategy(Enum):
    """Source used for the instant system load query."""

    NATIVE_AVAILABLE = "native"
    TICK_FALLBACK = "ticks"


@dataclass(slots=True)
class NativeLoadCache:
    """Last ratio read from the native load source."""

    load: float
    captured_at: float


@dataclass(slots=True)
class LoadSnapshot:
    """Snapshot of CPU load published by the monitor."""

    system_load: float
    tick_load: float
    processor_loads: list[float]
    load_average: tuple[float, float, float]
    strategy: LoadStrategy
    processor_count: int = field(default=0)
