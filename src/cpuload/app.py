"""cpuload - Textual CPU load viewer."""

import sys
from queue import Empty, Queue

from loguru import logger
from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal, VerticalScroll
from textual.widgets import DataTable, Footer, Label, Sparkline, Static

from cpuload.config import LoadConfig
from cpuload.models import LoadSnapshot, LoadStrategy
from cpuload.monitor import LoadMonitor
from cpuload.processor import CentralProcessor

BAR_WIDTH = 20


def configure_logging(level: str = "WARNING") -> None:
    """Replace loguru's default sink with a stderr sink at the given level."""
    logger.remove()
    logger.add(sys.stderr, level=level)


def load_bar(ratio: float, color: str = "green") -> str:
    """Render a load ratio as a fixed-width bar."""
    filled = min(max(int(ratio * BAR_WIDTH), 0), BAR_WIDTH)
    return f"[{color}]█[/{color}]" * filled + "[dim]░[/dim]" * (BAR_WIDTH - filled)


def format_load(ratio: float) -> str:
    """Format a load ratio as a percentage."""
    return f"{ratio * 100:5.1f}%"


class LoadStats(Static):
    """Header widget showing system-wide load."""

    DEFAULT_CSS = """
    LoadStats {
        height: auto;
        min-height: 4;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize LoadStats."""
        super().__init__(*args, **kwargs)
        self._system_load: float = 0.0
        self._tick_load: float = 0.0
        self._load_average: tuple[float, float, float] = (0.0, 0.0, 0.0)
        self._strategy: LoadStrategy | None = None

    def compose(self) -> ComposeResult:
        """Compose the load stats layout."""
        yield Static(self._get_load_info(), id="load-info")

    def update_stats(self, snapshot: LoadSnapshot) -> None:
        """Update the statistics from a load snapshot."""
        self._system_load = snapshot.system_load
        self._tick_load = snapshot.tick_load
        self._load_average = snapshot.load_average
        self._strategy = snapshot.strategy
        try:
            self.query_one("#load-info", Static).update(self._get_load_info())
        except Exception:
            pass  # Widget not mounted yet

    def _get_load_info(self) -> str:
        """Get system load display."""
        if self._strategy is None:
            return "Loading CPU load..."
        avg = self._load_average
        avg_str = (
            "n/a"
            if avg[0] < 0
            else f"{avg[0]:.2f} {avg[1]:.2f} {avg[2]:.2f}"
        )
        return (
            f"Load  \\[{load_bar(self._system_load)}] {format_load(self._system_load)}"
            f" ({self._strategy.value})\n"
            f"Ticks \\[{load_bar(self._tick_load, 'cyan')}] {format_load(self._tick_load)}\n"
            f"Load average: {avg_str}"
        )


class ProcessorTable(Container):
    """Container for the per-processor load table."""

    DEFAULT_CSS = """
    ProcessorTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessorTable."""
        super().__init__(*args, **kwargs)
        self._row_count = 0

    @property
    def row_count(self) -> int:
        return self._row_count

    def compose(self) -> ComposeResult:
        """Compose the processor table."""
        yield DataTable(id="processor-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#processor-table", DataTable)
        table.cursor_type = "row"
        table.add_column("CPU", key="cpu", width=5)
        table.add_column("Load", key="bar", width=BAR_WIDTH + 2)
        table.add_column("%", key="pct", width=8)

    def update_loads(self, loads: list[float]) -> None:
        """
        Update the table with per-processor loads.

        Uses update_cell for existing rows to avoid re-rendering the whole table.
        """
        table = self.query_one("#processor-table", DataTable)
        for cpu, load in enumerate(loads):
            row_key = str(cpu)
            try:
                if cpu < self._row_count:
                    table.update_cell(row_key, "bar", load_bar(load))
                    table.update_cell(row_key, "pct", format_load(load))
                else:
                    table.add_row(str(cpu), load_bar(load), format_load(load), key=row_key)
            except Exception:
                pass  # Row may have been removed
        self._row_count = max(self._row_count, len(loads))


def history_series(history: list[list[float]]) -> list[list[float]]:
    """Turn a history of per-poll load rows into one series per processor."""
    width = max((len(row) for row in history), default=0)
    return [[row[cpu] if cpu < len(row) else 0.0 for row in history] for cpu in range(width)]


class ProcessorHistory(VerticalScroll):
    """One sparkline per processor showing its recent load."""

    DEFAULT_CSS = """
    ProcessorHistory {
        height: 1fr;
        border: solid $secondary;
    }

    ProcessorHistory Horizontal {
        height: 1;
    }

    ProcessorHistory Label {
        width: 6;
    }

    ProcessorHistory Sparkline {
        width: 1fr;
        height: 1;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._sparklines: list[Sparkline] = []

    @property
    def sparkline_count(self) -> int:
        return len(self._sparklines)

    def update_history(self, history: list[list[float]]) -> None:
        """Feed each processor's sparkline, adding sparklines for new processors."""
        series = history_series(history)
        for cpu in range(len(self._sparklines), len(series)):
            sparkline = Sparkline([], summary_function=max, id=f"history-{cpu}")
            self._sparklines.append(sparkline)
            self.mount(Horizontal(Label(f"cpu{cpu}"), sparkline))
        for sparkline, data in zip(self._sparklines, series):
            sparkline.data = data


class CpuLoadApp(App):
    """Main cpuload application."""

    TITLE = "cpuload"
    SUB_TITLE = "CPU Load Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #load-stats {
        dock: top;
        height: auto;
        min-height: 5;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
    ]

    def __init__(
        self,
        config: LoadConfig | None = None,
        processor: CentralProcessor | None = None,
    ) -> None:
        """Initialize the CpuLoadApp."""
        super().__init__()
        self._config = config or LoadConfig()
        self._update_queue: Queue[LoadSnapshot] = Queue()
        self._monitor = LoadMonitor(
            self._update_queue,
            processor=processor or CentralProcessor(config=self._config),
            poll_rate=self._config.poll_rate,
            history_size=self._config.history_size,
        )

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield LoadStats(id="load-stats")
        yield ProcessorTable()
        yield ProcessorHistory(id="processor-history")
        yield Footer()

    def on_mount(self) -> None:
        """Start the load monitor when the app is mounted."""
        name = str(self._monitor.processor)
        if name:
            self.sub_title = f"{self.SUB_TITLE} - {name}"
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Check the queue for load updates and refresh the UI."""
        # Drain the queue to get the most recent snapshot
        snapshot = None
        while True:
            try:
                snapshot = self._update_queue.get_nowait()
            except Empty:
                break

        if snapshot is not None:
            self._update_ui(snapshot)

    def _update_ui(self, snapshot: LoadSnapshot) -> None:
        """Update the UI with the new load snapshot."""
        try:
            self.query_one("#load-stats", LoadStats).update_stats(snapshot)
            self.query_one(ProcessorTable).update_loads(snapshot.processor_loads)
            self.query_one(ProcessorHistory).update_history(self._monitor.get_history())
        except Exception:
            logger.exception("Unable to update display")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


def main() -> None:
    """Entry point for the cpuload application."""
    config = LoadConfig.from_env()
    configure_logging(config.log_level)
    app = CpuLoadApp(config)
    app.run()


if __name__ == "__main__":
    main()
