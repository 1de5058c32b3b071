"""Central processor abstraction: the single entry point for CPU load."""

import math
import threading
from collections.abc import Callable

import psutil
from loguru import logger

from cpuload.calculator import snapshot_load, snapshot_processor_loads
from cpuload.config import LoadConfig
from cpuload.identity import ProcessorIdentity, read_processor_identity
from cpuload.models import LoadStrategy, NativeLoadCache
from cpuload.sampler import SampleKind, TickSampler, monotonic_ms
from cpuload.sources import (
    NativeLoadSource,
    ProcessorCountProvider,
    PsutilNativeLoadSource,
    PsutilProcessorCounts,
    TickSource,
    default_tick_source,
)


class CentralProcessor:
    """
    CPU load for the running machine.

    The instant system load comes from a native load source when one was
    detected at construction, and from tick deltas otherwise. The between-ticks
    queries always use tick deltas. Detection happens once; the strategy never
    changes afterwards.

    Load queries never raise: unreadable counters, throttled calls and
    degenerate tick deltas all produce a number (0.0 when nothing is usable).
    All state changes happen under one lock per instance, so the object may be
    shared between threads.
    """

    def __init__(
        self,
        tick_source: TickSource | None = None,
        native_source: NativeLoadSource | None = None,
        counts: ProcessorCountProvider | None = None,
        config: LoadConfig | None = None,
        identity: ProcessorIdentity | None = None,
        clock: Callable[[], float] = monotonic_ms,
    ) -> None:
        """
        Initialize the CentralProcessor.

        Args:
            tick_source: Raw tick counters. Platform default if omitted.
            native_source: Native load API. psutil if omitted; ignored when
                the config disables native load.
            counts: Processor count provider. psutil if omitted.
            config: Throttle intervals. Defaults if omitted.
            identity: Processor identification. Read lazily if omitted.
            clock: Returns the current time in milliseconds.
        """
        self._config = config or LoadConfig()
        self._clock = clock
        self._lock = threading.RLock()
        self._identity = identity

        counts = counts or PsutilProcessorCounts()
        self._logical_count = max(1, counts.logical_count())
        self._physical_count = max(1, counts.physical_count())

        if not self._config.use_native:
            native_source = None
        elif native_source is None:
            native_source = PsutilNativeLoadSource()
        self._native = native_source
        self._native_cache: NativeLoadCache | None = None
        self._strategy = self._probe_native()

        self._sampler = TickSampler(
            tick_source or default_tick_source(),
            self._logical_count,
            lock=self._lock,
            clock=clock,
        )
        self._sampler.bootstrap()

    def _probe_native(self) -> LoadStrategy:
        """Detect the native load source once and prime its cache."""
        if self._native is None:
            logger.debug("Native cpu load disabled.")
            return LoadStrategy.TICK_FALLBACK
        load = self._native.instant_load()
        if load is None:
            logger.debug("Native cpu load not detected.")
            return LoadStrategy.TICK_FALLBACK
        self._native_cache = NativeLoadCache(load=load, captured_at=self._clock())
        logger.debug("Native cpu load detected.")
        return LoadStrategy.NATIVE_AVAILABLE

    @property
    def strategy(self) -> LoadStrategy:
        """Source of the instant system load, fixed at construction."""
        return self._strategy

    @property
    def logical_processor_count(self) -> int:
        return self._logical_count

    @property
    def physical_processor_count(self) -> int:
        return self._physical_count

    @property
    def identity(self) -> ProcessorIdentity:
        """Vendor, name and family/model/stepping of this processor."""
        if self._identity is None:
            self._identity = read_processor_identity()
        return self._identity

    @property
    def sampler(self) -> TickSampler:
        return self._sampler

    def get_system_cpu_load(self) -> float:
        """
        Instant system load in [0.0, 1.0].

        With a native source the result is rate limited: calls within the
        native interval return the cached ratio.
        """
        if self._strategy is LoadStrategy.NATIVE_AVAILABLE:
            return self._native_load()
        return self.get_system_cpu_load_between_ticks()

    def _native_load(self) -> float:
        with self._lock:
            cache = self._native_cache
            now = self._clock()
            # Called too recently, return latest value
            if now - cache.captured_at < self._config.native_interval_ms:
                return cache.load
            load = self._native.instant_load()
            if load is not None and not math.isnan(load):
                cache.load = load
            cache.captured_at = now
            return cache.load

    def get_system_cpu_load_between_ticks(self) -> float:
        """System load over the interval between the last two tick samples."""
        self._sampler.maybe_refresh(SampleKind.SYSTEM, self._config.tick_interval_ms)
        return snapshot_load(self._sampler.system_snapshot())

    def get_processor_cpu_load_between_ticks(self) -> list[float]:
        """Load of each logical processor between the last two tick samples."""
        self._sampler.maybe_refresh(SampleKind.PROCESSOR, self._config.tick_interval_ms)
        return snapshot_processor_loads(self._sampler.processor_snapshot())

    def get_system_load_average(self, n: int = 1) -> list[float]:
        """
        The 1, 5 and 15 minute system load averages, first n of them.

        Elements are -1.0 when the platform does not report load averages.

        Raises:
            ValueError: If n is not between 1 and 3.
        """
        if n < 1 or n > 3:
            raise ValueError("Must include from one to three elements.")
        try:
            averages = list(psutil.getloadavg())
        except (OSError, AttributeError) as e:
            logger.warning("Load average not available. {}", e)
            averages = [-1.0, -1.0, -1.0]
        return averages[:n]

    def get_system_load_average_1m(self) -> float:
        return self.get_system_load_average(1)[0]

    def __str__(self) -> str:
        return self.identity.name
