"""Live fleet dashboard over the telemetry snapshot."""

from typing import Any

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import DataTable, Footer, Header, Static

from ..config import load_config
from ..log import get_logger
from ..routing import RoutingRecord
from ..snapshot import as_dict, build_fleet_snapshot
from .utils import activity_cell, context_cell, fish_path

_log = get_logger("top")


def _field(instance: dict[str, Any], section: str, key: str) -> str:
    """A string field of a nested section, or "" when either is malformed."""
    value = as_dict(instance.get(section)).get(key)
    return value if isinstance(value, str) else ""


def routing_label(instance: dict[str, Any]) -> str:
    """``tmux work:1.0``, ``zellij dev#2``, or just the terminal app."""
    routing = as_dict(instance.get("routing"))
    if not routing:
        return ""
    try:
        record = RoutingRecord.from_dict(routing)
    except (AttributeError, KeyError, TypeError):
        _log.info("unreadable routing for pid %s", as_dict(instance.get("process")).get("pid"))
        return ""
    parts = [p for p in (record.mux, record.target) if isinstance(p, str) and p]
    if not parts and isinstance(record.terminal_app, str):
        parts.append(record.terminal_app)
    return " ".join(parts)


def format_status(snapshot: dict[str, Any]) -> str:
    counts = snapshot["counts"]
    context = snapshot["context"]
    status = (
        f"{snapshot['aggregate']} | {counts['total']} live: "
        f"{counts['working']} working, {counts['waiting_input']} waiting, "
        f"{counts['unknown']} unknown"
    )
    if context["reporting"]:
        status += f" | max context {context['maxPercent']:.0f}%"
    if context["nearLimit"]:
        status += f" | {context['nearLimit']} near limit"
    return status


class FleetApp(App):
    """pi-telemetry top - every running agent at a glance."""

    CSS = """
    #instances {
        height: 1fr;
    }

    #status {
        height: 1;
        background: $surface;
        color: $text-muted;
        padding: 0 1;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("escape", "quit", "Quit", show=False),
        Binding("g", "refresh", "Refresh"),
    ]

    def __init__(self, stale_ms: str | None = None) -> None:
        super().__init__()
        self.config = load_config()
        self.stale_ms = self.config.stale_ms(stale_ms)

    def compose(self) -> ComposeResult:
        yield Header()
        yield DataTable(id="instances")
        yield Static("", id="status")
        yield Footer()

    def on_mount(self) -> None:
        self.title = "pi-telemetry"
        self.sub_title = str(self.config.telemetry_dir)

        table = self.query_one("#instances", DataTable)
        table.cursor_type = "row"
        table.add_column("PID", width=8)
        table.add_column("Activity", width=9)
        table.add_column("Ctx", width=5)
        table.add_column("Session", width=16)
        table.add_column("Model", width=18)
        table.add_column("CWD", width=28)
        table.add_column("Where", width=24)

        self._refresh_instances()
        self.set_interval(1.0, self._refresh_instances)

    def action_refresh(self) -> None:
        self._refresh_instances()

    def _refresh_instances(self) -> None:
        table = self.query_one("#instances", DataTable)
        status = self.query_one("#status", Static)

        snapshot = build_fleet_snapshot(self.config.telemetry_dir, stale_ms=self.stale_ms)

        # keep the cursor on the same pid across refreshes
        selected = None
        if table.row_count:
            row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
            selected = row_key.value

        table.clear()
        for instance in snapshot["instances"]:
            pid = str(instance["process"]["pid"])
            table.add_row(
                pid,
                activity_cell(_field(instance, "state", "activity") or None),
                context_cell(instance.get("context")),
                _field(instance, "session", "name") or _field(instance, "session", "id")[:8],
                _field(instance, "model", "id"),
                fish_path(_field(instance, "workspace", "cwd")),
                routing_label(instance),
                key=pid,
            )

        if selected is not None and selected in snapshot["instancesByPid"]:
            table.move_cursor(row=table.get_row_index(selected))

        status.update(Text(format_status(snapshot), style="dim"))
