"""portsentinel - terminal front end."""

from enum import Enum

from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Footer, Static

from portsentinel.errors import PortSentinelError
from portsentinel.manager import ProcessManager
from portsentinel.models import Protocol, ProcessRecord


class SortKey(Enum):
    """Sort keys for the port table."""

    PORT = "port"
    PID = "pid"
    CPU = "cpu"
    MEM = "mem"


def format_protocol(protocol: Protocol | str) -> str:
    """Protocol column text."""
    return protocol.value if isinstance(protocol, Protocol) else str(protocol)


class PortTable(Container):
    """Container for the listening port table."""

    DEFAULT_CSS = """
    PortTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize PortTable."""
        super().__init__(*args, **kwargs)
        self._records: list[ProcessRecord] = []
        self._sort_key: SortKey = SortKey.PORT
        self._sort_reverse: bool = False

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    @property
    def records(self) -> list[ProcessRecord]:
        """Records currently shown, in display order."""
        return list(self._records)

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        keys = list(SortKey)
        self._sort_key = keys[(keys.index(self._sort_key) + 1) % len(keys)]
        # Usage columns read best highest first
        self._sort_reverse = self._sort_key in (SortKey.CPU, SortKey.MEM)
        self.update_processes(self._records)
        return self._sort_key

    def compose(self) -> ComposeResult:
        """Compose the port table."""
        yield DataTable(id="port-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#port-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("PROTO", key="protocol", width=6)
        table.add_column("PORT", key="port", width=7)
        table.add_column("ADDRESS", key="address", width=16)
        table.add_column("NAME", key="name", width=20)
        table.add_column("CPU%", key="cpu", width=7)
        table.add_column("MEM%", key="mem", width=7)
        table.add_column("Command", key="command")

    def update_processes(self, records: list[ProcessRecord]) -> None:
        """Replace the table contents with ``records``."""
        key_func = {
            SortKey.PORT: lambda r: r.port,
            SortKey.PID: lambda r: r.pid,
            SortKey.CPU: lambda r: r.cpu_percent,
            SortKey.MEM: lambda r: r.memory_percent,
        }
        self._records = sorted(records, key=key_func[self._sort_key], reverse=self._sort_reverse)

        table = self.query_one("#port-table", DataTable)
        table.clear()
        for record in self._records:
            table.add_row(
                str(record.pid),
                format_protocol(record.protocol),
                str(record.port),
                record.local_address,
                record.name[:20],
                f"{record.cpu_percent:5.1f}",
                f"{record.memory_percent:5.1f}",
                record.command_path[:60],
                key=f"{record.pid}:{record.port}",
            )

    @property
    def selected(self) -> ProcessRecord | None:
        """Record under the cursor, if any."""
        table = self.query_one("#port-table", DataTable)
        if not self._records or table.cursor_row is None:
            return None
        if not 0 <= table.cursor_row < len(self._records):
            return None
        return self._records[table.cursor_row]


class PortSentinelApp(App):
    """Main portsentinel application."""

    TITLE = "portsentinel"
    SUB_TITLE = "Listening ports"

    CSS = """
    Screen {
        layout: vertical;
    }

    #status {
        dock: top;
        height: 1;
        padding: 0 1;
        background: $surface;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("k", "kill", "Kill"),
        ("r", "restart", "Restart last"),
        ("f5", "refresh", "Refresh"),
        ("f6", "sort", "Sort"),
    ]

    def __init__(self, manager: ProcessManager | None = None, refresh_interval: float = 2.0) -> None:
        """Initialize the PortSentinelApp."""
        super().__init__()
        self._manager = manager or ProcessManager()
        self._refresh_interval = max(0.5, refresh_interval)
        self._last_killed: int | None = None

    @property
    def last_killed(self) -> int | None:
        """PID of the most recent kill from this session."""
        return self._last_killed

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield Static("Scanning...", id="status")
        yield PortTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start background work and the refresh timer."""
        self._manager.start()
        self.set_interval(self._refresh_interval, self.action_refresh)
        self.action_refresh()

    def action_refresh(self) -> None:
        """Rescan in a worker; a running scan is replaced."""
        self.run_worker(self.refresh_processes(), exclusive=True, group="scan")

    async def refresh_processes(self) -> None:
        """Scan once and update the table."""
        try:
            records = await self._manager.list_processes()
        except PortSentinelError as exc:
            self.notify(str(exc), severity="error")
            return
        self.query_one(PortTable).update_processes(records)
        self.query_one("#status", Static).update(f"{len(records)} listening sockets")

    async def action_kill(self) -> None:
        """Kill the process under the cursor."""
        record = self.query_one(PortTable).selected
        if record is None:
            self.notify("Nothing selected")
            return
        try:
            message = await self._manager.kill_one(record.pid)
        except PortSentinelError as exc:
            self.notify(str(exc), severity="error")
            return
        self._last_killed = record.pid
        self.notify(message)
        self.action_refresh()

    async def action_restart(self) -> None:
        """Re-launch the process killed last."""
        if self._last_killed is None:
            self.notify("Nothing to restart")
            return
        try:
            message = await self._manager.restart(self._last_killed)
        except PortSentinelError as exc:
            self.notify(str(exc), severity="error")
            return
        self._last_killed = None
        self.notify(message)

    def action_sort(self) -> None:
        """Cycle the sort key."""
        key = self.query_one(PortTable).cycle_sort()
        self.notify(f"Sort: {key.value.upper()}")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._manager.stop()
        self.exit()
