"""schedtop - Main Textual application."""

from enum import Enum
from queue import Empty, Queue

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Footer, Static

from schedtop import logging as schedtop_logging
from schedtop.engine import PollResult
from schedtop.models import ProcessMetricsRecord
from schedtop.monitor import SchedulerMonitor

TOP_CPU_COUNT = 10
BAR_WIDTH = 20
PROGRESS_WIDTH = 10


class SortKey(Enum):
    """Sort keys for the process table."""

    CPU = "cpu"
    PROGRESS = "progress"
    REMAINING = "remaining"
    PID = "pid"


def format_memory(size_kb: int) -> str:
    """Format a KB amount as human-readable string."""
    size: float = size_kb
    for unit in ["K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "K" else f"{int(size):5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def format_seconds(seconds: float) -> str:
    """Format a duration in seconds for a table cell."""
    return f"{seconds:5.1f}s"


def progress_bar(progress: float) -> str:
    """Render a progress percentage as a fixed-width text bar."""
    filled = min(int(progress / (100 / PROGRESS_WIDTH)), PROGRESS_WIDTH)
    return "█" * filled + "░" * (PROGRESS_WIDTH - filled) + f" {progress:5.1f}%"


class TopCpuPanel(Static):
    """Header widget showing the busiest processes and the poll status."""

    DEFAULT_CSS = """
    TopCpuPanel {
        height: auto;
        min-height: 5;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize TopCpuPanel."""
        super().__init__(*args, **kwargs)
        self._top: list[ProcessMetricsRecord] = []
        self._total: int = 0
        self._error: str | None = None
        self._polled: bool = False

    @property
    def error(self) -> str | None:
        """Get the error of the latest poll, if it failed."""
        return self._error

    def update_result(self, result: PollResult) -> None:
        """Update the panel from a poll result.

        A failed poll keeps the previous process list on screen and only
        shows the error.
        """
        self._polled = True
        self._error = result.error
        if result.ok:
            self._total = len(result.records)
            self._top = result.records[:TOP_CPU_COUNT]
        self.update(self.render_text())

    def render_text(self) -> str:
        """Build the panel text."""
        if not self._polled:
            return "Sampling processes..."

        lines = [f"Total processes: {self._total}"]
        if self._error is not None:
            lines.append(f"[bold red]Error:[/bold red] {escape(self._error)}")
        for record in self._top:
            bar_len = min(int(record.cpu_percent / (100 / BAR_WIDTH)), BAR_WIDTH)
            bar = "[green]█[/green]" * bar_len + "[dim]░[/dim]" * (BAR_WIDTH - bar_len)
            name = escape(record.name[:16].ljust(16))
            # Use escaped brackets for the bar container
            lines.append(f"{name} \\[{bar}] {record.cpu_percent:5.1f}%")
        return "\n".join(lines)


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._current_pids: set[str] = set()
        self._sort_key: SortKey = SortKey.CPU

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        keys = list(SortKey)
        current_index = keys.index(self._sort_key)
        self._sort_key = keys[(current_index + 1) % len(keys)]
        return self._sort_key

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("Name", key="name", width=20)
        table.add_column("PRI", key="priority", width=4)
        table.add_column("Interactivity", key="interactivity", width=13)
        table.add_column("CPU%", key="cpu", width=7)
        table.add_column("RES", key="mem", width=7)
        table.add_column("State", key="status", width=9)
        table.add_column("Progress", key="progress", width=18)
        table.add_column("Wakes", key="wakes", width=6)
        table.add_column("Total", key="total", width=7)
        table.add_column("Left", key="remaining", width=7)

    def update_records(self, records: list[ProcessMetricsRecord]) -> None:
        """
        Update the process table with new records.

        Uses update_cell for existing rows to avoid re-rendering the whole table.
        Rows are then re-ordered by the current sort key.
        """
        table = self.query_one("#process-table", DataTable)
        new_pids = {record.pid for record in records}

        for pid in self._current_pids - new_pids:
            table.remove_row(pid)

        for record in records:
            if record.pid in self._current_pids:
                self._update_row(table, record)
            else:
                table.add_row(*self._cells(record), key=record.pid)

        self._current_pids = new_pids
        self._sort_rows(table, records)

    def _sort_rows(self, table: DataTable, records: list[ProcessMetricsRecord]) -> None:
        """Order table rows by the current sort key."""
        key_func = {
            SortKey.CPU: lambda r: -r.cpu_percent,
            SortKey.PROGRESS: lambda r: -r.progress,
            SortKey.REMAINING: lambda r: r.remaining,
            SortKey.PID: lambda r: int(r.pid),
        }[self._sort_key]
        by_pid = {record.pid: record for record in records}
        table.sort("pid", key=lambda pid: key_func(by_pid[pid]))

    @staticmethod
    def _cells(record: ProcessMetricsRecord) -> tuple[str, ...]:
        """Format a record as table cells, in column order."""
        return (
            record.pid,
            record.name[:20],
            str(record.priority),
            record.interactivity,
            f"{record.cpu_percent:5.1f}",
            format_memory(record.memory_kb),
            record.status,
            progress_bar(record.progress),
            str(record.wake_count),
            format_seconds(record.total_runtime),
            format_seconds(record.remaining),
        )

    def _update_row(self, table: DataTable, record: ProcessMetricsRecord) -> None:
        """Update an existing row using update_cell for performance."""
        columns = (
            "pid",
            "name",
            "priority",
            "interactivity",
            "cpu",
            "mem",
            "status",
            "progress",
            "wakes",
            "total",
            "remaining",
        )
        for column, value in zip(columns, self._cells(record)):
            table.update_cell(record.pid, column, value)


class SchedtopApp(App):
    """Main schedtop application."""

    TITLE = "schedtop"
    SUB_TITLE = "Synthetic Scheduler Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #top-cpu {
        dock: top;
        height: auto;
        min-height: 6;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
        ("r", "refresh", "Refresh"),
    ]

    def __init__(self, monitor: SchedulerMonitor | None = None, poll_rate: float = 2.0) -> None:
        """
        Initialize the SchedtopApp.

        Args:
            monitor: Monitor feeding the UI. A psutil-backed one is created if omitted.
            poll_rate: Poll interval (seconds) for the default monitor.
        """
        super().__init__()
        if monitor is None:
            self._update_queue: Queue[PollResult] = Queue()
            monitor = SchedulerMonitor(self._update_queue, poll_rate=poll_rate)
        else:
            self._update_queue = monitor.queue
        self._monitor = monitor

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield TopCpuPanel("Sampling processes...", id="top-cpu")
        yield ProcessTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the monitor when the app is mounted."""
        self._monitor.start()
        # Set up a timer to poll the queue for updates
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain the queue and render the most recent result."""
        result = None
        while True:
            try:
                result = self._update_queue.get_nowait()
            except Empty:
                break

        if result is not None:
            self._update_ui(result)

    def _update_ui(self, result: PollResult) -> None:
        """Update the UI with a poll result."""
        self.query_one(TopCpuPanel).update_result(result)
        if result.ok:
            self.query_one(ProcessTable).update_records(result.records)

    def action_sort(self) -> None:
        """Handle sort action - cycle through sort keys."""
        new_sort_key = self.query_one(ProcessTable).cycle_sort()
        self.notify(f"Sort: {new_sort_key.value.upper()}")

    def action_refresh(self) -> None:
        """Poll immediately instead of waiting for the next tick."""
        self.run_worker(self._monitor.poll_now, thread=True, group="refresh")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


def main() -> None:
    """Entry point for schedtop application."""
    schedtop_logging.configure()
    app = SchedtopApp()
    app.run()


if __name__ == "__main__":
    main()
