"""
Platform collaborators feeding the load engine.

Tick sources return the all-zero vector, and the native load source returns
None, instead of raising: read failures are logged here and never reach the
sampler.
"""

import math
import sys
from pathlib import Path
from typing import Protocol

import psutil
from loguru import logger

from cpuload.models import TICK_TYPE_COUNT, TickMatrix, TickType, TickVector, zero_ticks
from cpuload.procfs import read_lines

PROC_STAT = Path("/proc/stat")

# psutil field names per TickType, first match wins (Windows reports
# interrupt/dpc in place of irq/softirq)
_PSUTIL_FIELDS: dict[TickType, tuple[str, ...]] = {
    TickType.USER: ("user",),
    TickType.NICE: ("nice",),
    TickType.SYSTEM: ("system",),
    TickType.IDLE: ("idle",),
    TickType.IOWAIT: ("iowait",),
    TickType.IRQ: ("irq", "interrupt"),
    TickType.SOFTIRQ: ("softirq", "dpc"),
}


class TickSource(Protocol):
    """Supplier of cumulative tick counters in TickType order."""

    def system_ticks(self) -> TickVector:
        """System-wide ticks; the zero vector means no fresh data."""
        ...

    def processor_ticks(self) -> TickMatrix:
        """Ticks per logical processor; all zero means no fresh data."""
        ...


class NativeLoadSource(Protocol):
    """Platform API reporting an instantaneous system load ratio."""

    def instant_load(self) -> float | None:
        """Load ratio in [0.0, 1.0], or None when unavailable."""
        ...


class ProcessorCountProvider(Protocol):
    """Reports processor counts, queried once per processor object."""

    def logical_count(self) -> int: ...

    def physical_count(self) -> int: ...


def parse_stat_line(line: str) -> tuple[str, TickVector]:
    """
    Parse one `cpu`/`cpuN` line of /proc/stat.

    Returns:
        The label and the first seven counters; missing columns read as 0.
    """
    parts = line.split()
    values = [int(p) for p in parts[1 : TICK_TYPE_COUNT + 1]]
    values.extend([0] * (TICK_TYPE_COUNT - len(values)))
    return parts[0], tuple(values)


class ProcStatTickSource:
    """Tick source reading jiffies from the Linux /proc/stat pseudo-file."""

    def __init__(self, path: str | Path = PROC_STAT) -> None:
        self._path = Path(path)

    def _cpu_lines(self) -> list[str]:
        return [line for line in read_lines(self._path) if line.startswith("cpu")]

    def system_ticks(self) -> TickVector:
        for line in self._cpu_lines():
            if line.startswith("cpu "):
                try:
                    return parse_stat_line(line)[1]
                except ValueError:
                    logger.error("Unable to parse system ticks from {}", self._path)
                    break
        return zero_ticks()

    def processor_ticks(self) -> TickMatrix:
        rows: dict[int, TickVector] = {}
        for line in self._cpu_lines():
            if line.startswith("cpu "):
                continue
            try:
                label, ticks = parse_stat_line(line)
                rows[int(label[3:])] = ticks
            except ValueError:
                logger.error("Unable to parse processor ticks: {}", line)
        if not rows:
            return ()
        return tuple(rows.get(cpu, zero_ticks()) for cpu in range(max(rows) + 1))


def _psutil_ticks(times) -> TickVector:
    """Convert psutil cpu times (seconds) to integer milliseconds."""
    values = []
    for tick_type in TickType:
        seconds = 0.0
        for name in _PSUTIL_FIELDS[tick_type]:
            if hasattr(times, name):
                seconds = getattr(times, name)
                break
        values.append(int(round(seconds * 1000)))
    return tuple(values)


class PsutilTickSource:
    """Portable tick source built on psutil.cpu_times(), in milliseconds."""

    def system_ticks(self) -> TickVector:
        try:
            return _psutil_ticks(psutil.cpu_times())
        except (psutil.Error, OSError) as e:
            logger.error("Unable to read system cpu times. {}", e)
            return zero_ticks()

    def processor_ticks(self) -> TickMatrix:
        try:
            return tuple(_psutil_ticks(t) for t in psutil.cpu_times(percpu=True))
        except (psutil.Error, OSError) as e:
            logger.error("Unable to read per-processor cpu times. {}", e)
            return ()


def default_tick_source() -> TickSource:
    """Select /proc/stat on Linux when readable, psutil otherwise."""
    if sys.platform.startswith("linux") and read_lines(PROC_STAT, report_error=False):
        logger.debug("Using {} for cpu ticks", PROC_STAT)
        return ProcStatTickSource()
    logger.debug("Using psutil for cpu ticks")
    return PsutilTickSource()


class PsutilNativeLoadSource:
    """Instant system load from psutil.cpu_percent()."""

    def instant_load(self) -> float | None:
        try:
            percent = psutil.cpu_percent(interval=None)
        except (psutil.Error, OSError, NotImplementedError) as e:
            logger.debug("Native cpu load not available. {}", e)
            return None
        if percent is None or math.isnan(percent):
            return None
        return min(max(percent / 100.0, 0.0), 1.0)


class PsutilProcessorCounts:
    """Processor counts from psutil.cpu_count()."""

    def logical_count(self) -> int:
        count = psutil.cpu_count(logical=True)
        if not count:
            logger.warning("Unable to determine logical processor count")
            return 1
        return count

    def physical_count(self) -> int:
        count = psutil.cpu_count(logical=False)
        if not count:
            logger.debug("Physical processor count unknown, using logical count")
            return self.logical_count()
        return count
