"""pyrtop - Textual dashboard for a remote host."""

from collections.abc import Callable
from queue import Empty, Queue

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import VerticalScroll
from textual.widgets import Footer, Static

from pyrtop.models import Snapshot
from pyrtop.monitor import PollResult, RemoteMonitor


def format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    if size < 1024:
        return f"{size} bytes"
    for unit in ["KiB", "MiB"]:
        size = size / 1024
        if size < 1024:
            return f"{size:6.2f} {unit}"
    return f"{size / 1024:6.2f} GiB"


def format_uptime(seconds: float) -> str:
    """Format uptime like ``3d 4h 5m 6s``."""
    total = int(seconds)
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        text = f"{hours}h {minutes}m {secs}s"
    elif minutes:
        text = f"{minutes}m {secs}s"
    else:
        text = f"{secs}s"
    return f"{days}d {text}" if days else text


def _b(value: object) -> str:
    return f"[b]{escape(str(value))}[/b]"


def render_snapshot(snapshot: Snapshot) -> str:
    """Render a snapshot as marked-up text."""
    loads = snapshot.loads
    cpu = snapshot.cpu
    mem = snapshot.memory

    lines = [
        f"{_b(snapshot.hostname)} up {_b(format_uptime(snapshot.uptime_seconds))}",
        "",
        "Load:",
        f"    {_b(loads.load1)} {_b(loads.load5)} {_b(loads.load15)}",
        "",
        "CPU:",
        f"    {_b(f'{cpu.user:.2f}')} user, {_b(f'{cpu.system:.2f}')} sys, "
        f"{_b(f'{cpu.nice:.2f}')} nice, {_b(f'{cpu.idle:.2f}')} idle, "
        f"{_b(f'{cpu.iowait:.2f}')} iowait, {_b(f'{cpu.irq:.2f}')} hardirq, "
        f"{_b(f'{cpu.softirq:.2f}')} softirq, {_b(f'{cpu.steal:.2f}')} steal, "
        f"{_b(f'{cpu.guest:.2f}')} guest",
        "",
        "Processes:",
        f"    {_b(loads.running_procs)} running of {_b(loads.total_procs)} total",
        "",
        "Memory:",
        f"    total   = {_b(format_bytes(mem.total))}",
        f"    free    = {_b(format_bytes(mem.free))}",
        f"    used    = {_b(format_bytes(max(mem.used, 0)))}",
        f"    buffers = {_b(format_bytes(mem.buffers))}",
        f"    cached  = {_b(format_bytes(mem.cached))}",
        f"    swap    = {_b(format_bytes(mem.swap_free))} free of {_b(format_bytes(mem.swap_total))}",
        "",
    ]

    if snapshot.filesystems:
        lines.append("Filesystems:")
        for fs in snapshot.filesystems:
            lines.append(
                f"    {_b(fs.mount_point)}: {_b(format_bytes(fs.free))} free of "
                f"{_b(format_bytes(fs.total))}"
            )
        lines.append("")

    if snapshot.interfaces:
        lines.append("Network Interfaces:")
        for name in sorted(snapshot.interfaces):
            info = snapshot.interfaces[name]
            address = f"    {_b(name)} - {_b(info.ipv4)}"
            if info.ipv6:
                address += f", {_b(info.ipv6)}"
            lines.append(address)
            lines.append(f"      rx = {_b(format_bytes(info.rx))}, tx = {_b(format_bytes(info.tx))}")
            lines.append("")

    return "\n".join(lines)


class StatsView(Static):
    """Panel showing the last good snapshot."""

    DEFAULT_CSS = """
    StatsView {
        height: auto;
        padding: 1 2;
    }
    """

    def __init__(self, snapshot: Snapshot, *args, **kwargs) -> None:
        super().__init__(render_snapshot(snapshot), *args, **kwargs)
        self._snapshot = snapshot

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    def show(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        self.update(render_snapshot(snapshot))


class RtopApp(App):
    """Main pyrtop application."""

    TITLE = "pyrtop"
    SUB_TITLE = "Remote System Monitor"

    CSS = """
    #status {
        dock: bottom;
        height: 1;
        background: $error;
        color: $text;
        display: none;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("escape", "quit", "Quit"),
        Binding("ctrl+c", "quit", "Quit", show=False, priority=True),
    ]

    def __init__(
        self,
        snapshot: Snapshot,
        collect: Callable[[], Snapshot] | None = None,
        interval: float = 5.0,
        target: str = "",
    ) -> None:
        """
        Initialize the RtopApp.

        Args:
            snapshot: Initial snapshot to display.
            collect: Harvest callable polled in the background; None disables polling.
            interval: Refresh period in seconds.
            target: Shown as the sub title, e.g. ``user@host``.
        """
        super().__init__()
        self._initial = snapshot
        self._last_error: Exception | None = None
        self._update_queue: Queue[PollResult] = Queue()
        self._monitor = (
            RemoteMonitor(collect, self._update_queue, poll_rate=interval) if collect else None
        )
        if target:
            self.sub_title = target

    @property
    def last_error(self) -> Exception | None:
        return self._last_error

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield VerticalScroll(StatsView(self._initial, id="stats"))
        yield Static("", id="status")
        yield Footer()

    def on_mount(self) -> None:
        """Start polling once the app is mounted."""
        if self._monitor is not None:
            self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Apply the most recent poll result, if any."""
        result = None
        while True:
            try:
                result = self._update_queue.get_nowait()
            except Empty:
                break
        if result is not None:
            self.apply_result(result)

    def apply_result(self, result: PollResult) -> None:
        """
        Show a poll result.

        A failed poll keeps the previous snapshot on screen and reports the
        error in the status line.
        """
        status = self.query_one("#status", Static)
        if result.ok and result.snapshot is not None:
            self._last_error = None
            self.query_one("#stats", StatsView).show(result.snapshot)
            status.display = False
            return

        self._last_error = result.error
        status.update(f"update failed: {escape(str(result.error))}")
        status.display = True

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        if self._monitor is not None:
            self._monitor.stop(timeout=1.0)
        self.exit()
