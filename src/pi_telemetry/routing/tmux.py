"""Locate our tmux pane by controlling terminal."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..log import get_logger
from .proc import run_quiet

_log = get_logger("routing.tmux")

LIST_PANES_FORMAT = "#{pane_tty} #{session_name}:#{window_index}.#{pane_index} #{window_name}"


@dataclass(frozen=True)
class TmuxPaneInfo:
    pane_tty: str
    pane_target: str
    window_name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "paneTTY": self.pane_tty,
            "paneTarget": self.pane_target,
            "windowName": self.window_name,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TmuxPaneInfo:
        return cls(
            pane_tty=data.get("paneTTY", ""),
            pane_target=data.get("paneTarget", ""),
            window_name=data.get("windowName", ""),
        )


def qualify_tty(tty: str) -> str:
    """ps reports ``ttys003``/``pts/3``; tmux reports ``/dev/ttys003``."""
    return tty if tty.startswith("/dev/") else f"/dev/{tty}"


def find_pane_for_tty(listing: str, tty: str) -> TmuxPaneInfo | None:
    """Pick the row of a ``list-panes`` listing whose tty is ours.

    A terminal device belongs to exactly one pane, so the first hit is the
    only one.
    """
    tty_path = qualify_tty(tty)
    for raw in listing.splitlines():
        line = raw.strip()
        if not line:
            continue
        parts = line.split(" ", 2)
        if len(parts) < 2:
            continue
        if parts[0] == tty_path:
            return TmuxPaneInfo(
                pane_tty=parts[0],
                pane_target=parts[1],
                window_name=parts[2] if len(parts) > 2 else "",
            )
    return None


def get_pane_for_tty(tty: str) -> TmuxPaneInfo | None:
    """Query tmux for every pane on the server and match our tty."""
    output = run_quiet("tmux", ["list-panes", "-a", "-F", LIST_PANES_FORMAT], timeout=0.35)
    if not output:
        return None

    pane = find_pane_for_tty(output, tty)
    if pane is None:
        _log.debug("no tmux pane for %s", tty)
    return pane
