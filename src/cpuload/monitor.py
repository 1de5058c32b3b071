"""Background CPU load monitor for cpuload."""

import threading
import time
from collections import deque
from queue import Queue

from loguru import logger

from cpuload.models import LoadSnapshot
from cpuload.processor import CentralProcessor

MIN_POLL_RATE = 0.1


class LoadMonitor:
    """
    Load monitor that polls a CentralProcessor on a daemon thread.

    Each poll pushes a LoadSnapshot to a thread-safe Queue and records the
    per-processor loads in a bounded history.
    """

    def __init__(
        self,
        update_queue: Queue[LoadSnapshot],
        processor: CentralProcessor | None = None,
        poll_rate: float = 1.0,
        history_size: int = 60,
    ) -> None:
        """
        Initialize the LoadMonitor.

        Args:
            update_queue: Thread-safe queue to push updates to.
            processor: Processor to poll. A default CentralProcessor if omitted.
            poll_rate: How often to poll (in seconds). Default 1.0s.
            history_size: Number of per-processor samples kept for display.
        """
        self._queue = update_queue
        self._processor = processor or CentralProcessor()
        self._poll_rate = max(MIN_POLL_RATE, poll_rate)
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._history: deque[list[float]] = deque(maxlen=max(1, history_size))

    @property
    def processor(self) -> CentralProcessor:
        return self._processor

    @property
    def poll_rate(self) -> float:
        """Seconds between polls, never below MIN_POLL_RATE."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        # Picked up by the running loop at its next wait
        self._poll_rate = max(MIN_POLL_RATE, value)

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self) -> bool:
        """
        Start polling on a daemon thread.

        Returns:
            False if the monitor was already polling.
        """
        with self._lock:
            if self.is_running:
                return False
            # A fresh event per run so a late stop() cannot cancel a restart
            stop = threading.Event()
            thread = threading.Thread(
                target=self._run, args=(stop,), name="LoadMonitor", daemon=True
            )
            self._stop_event = stop
            self._thread = thread
        logger.debug("Starting load monitor, polling every {}s", self._poll_rate)
        thread.start()
        return True

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Ask the polling thread to finish and wait up to timeout seconds for it.
        """
        with self._lock:
            thread, self._thread = self._thread, None
            self._stop_event.set()
        if thread is None or thread is threading.current_thread():
            return
        thread.join(timeout=timeout)
        if thread.is_alive():
            logger.warning("Load monitor did not stop within {}s", timeout)

    def poll_once(self) -> bool:
        """
        Collect one snapshot and queue it.

        Returns:
            True if a snapshot was queued, False if collection failed.
        """
        try:
            snapshot = self.collect_snapshot()
        except Exception:
            logger.exception("Load collection failed")
            return False
        self._queue.put(snapshot)
        return True

    def _run(self, stop: threading.Event) -> None:
        while not stop.is_set():
            started = time.monotonic()
            self.poll_once()
            # Time spent collecting counts against the interval
            elapsed = time.monotonic() - started
            stop.wait(max(0.0, self._poll_rate - elapsed))

    def collect_snapshot(self) -> LoadSnapshot:
        """Collect a snapshot of the current CPU load."""
        processor = self._processor
        processor_loads = processor.get_processor_cpu_load_between_ticks()
        self._history.append(processor_loads)

        averages = processor.get_system_load_average(3)
        return LoadSnapshot(
            system_load=processor.get_system_cpu_load(),
            tick_load=processor.get_system_cpu_load_between_ticks(),
            processor_loads=processor_loads,
            load_average=(averages[0], averages[1], averages[2]),
            strategy=processor.strategy,
            processor_count=processor.logical_processor_count,
        )

    def get_history(self) -> list[list[float]]:
        """Return the recorded per-processor loads, oldest first."""
        return list(self._history)
