"""Terminal routing: which terminal, multiplexer and pane/tab a process runs in.

Evidence comes from two independent places, the process ancestry (ps) and
the multiplexer environment variables. They are merged by
``reconcile.reconcile``; the merged multiplexer kind then selects a pane
matcher that asks the multiplexer itself where we are.
"""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from ..log import get_logger
from .ancestry import (
    MuxKind,
    RoutingEvidence,
    detect_mux_from_ancestry,
    detect_terminal_from_ancestry,
)
from .env import EnvSnapshot, env_evidence, read_env_snapshot
from .ps import ProcessRow, index_by_pid, read_process_table
from .reconcile import EvidenceSource, reconcile
from .tmux import TmuxPaneInfo, get_pane_for_tty
from .zellij import TabCandidate, ZellijRouting, get_zellij_routing, match_tab

_log = get_logger("routing")


@dataclass(frozen=True)
class RoutingRecord:
    """Where an instance is displayed. Recomputed from scratch on every publish."""

    source: EvidenceSource = "none"
    tty: str | None = None
    mux: MuxKind | None = None
    mux_session: str | None = None
    mux_pid: int | None = None
    terminal_app: str | None = None
    terminal_pid: int | None = None
    env: EnvSnapshot = dataclasses.field(default_factory=EnvSnapshot)
    tmux: TmuxPaneInfo | None = None
    zellij: ZellijRouting | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "tty": self.tty,
            "mux": self.mux,
            "muxSession": self.mux_session,
            "muxPid": self.mux_pid,
            "terminalApp": self.terminal_app,
            "terminalPid": self.terminal_pid,
            "source": self.source,
            "env": self.env.to_dict(),
        }
        if self.tmux is not None:
            data["tmux"] = self.tmux.to_dict()
        if self.zellij is not None:
            data["zellij"] = self.zellij.to_dict()
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RoutingRecord:
        tmux = data.get("tmux")
        zellij = data.get("zellij")
        return cls(
            source=data.get("source", "none"),
            tty=data.get("tty"),
            mux=data.get("mux"),
            mux_session=data.get("muxSession"),
            mux_pid=data.get("muxPid"),
            terminal_app=data.get("terminalApp"),
            terminal_pid=data.get("terminalPid"),
            env=EnvSnapshot.from_dict(data.get("env") or {}),
            tmux=TmuxPaneInfo.from_dict(tmux) if tmux else None,
            zellij=ZellijRouting.from_dict(zellij) if zellij else None,
        )

    @property
    def target(self) -> str | None:
        """Short human-readable location, e.g. ``work:1.0`` or ``dev#2``."""
        if self.tmux is not None:
            return self.tmux.pane_target
        if self.zellij is not None and self.zellij.matched_tab is not None:
            tab = self.zellij.matched_tab.candidate
            return f"{self.mux_session or '?'}#{tab.index}"
        return self.mux_session


PaneMatcher = Callable[[RoutingRecord, str, str], RoutingRecord]


def _match_tmux_pane(record: RoutingRecord, cwd: str, pane_command: str) -> RoutingRecord:
    if not record.tty:
        return record
    pane = get_pane_for_tty(record.tty)
    return dataclasses.replace(record, tmux=pane) if pane else record


def _match_zellij_tab(record: RoutingRecord, cwd: str, pane_command: str) -> RoutingRecord:
    if not record.mux_session:
        return record
    zellij = get_zellij_routing(record.mux_session, cwd, pane_command)
    return dataclasses.replace(record, zellij=zellij) if zellij else record


# screen has no pane introspection worth doing
PANE_MATCHERS: dict[MuxKind, PaneMatcher] = {
    "tmux": _match_tmux_pane,
    "zellij": _match_zellij_tab,
}


def resolve_routing(
    cwd: str,
    pid: int | None = None,
    rows: list[ProcessRow] | None = None,
    environ: Mapping[str, str] | None = None,
    pane_command: str = "pi",
) -> RoutingRecord:
    """Resolve routing for ``pid`` (default: this process).

    ``rows`` and ``environ`` default to a fresh ps snapshot and os.environ.
    Every external query is best-effort: missing tools give less
    information, never an exception.
    """
    if pid is None:
        pid = os.getpid()
    if rows is None:
        rows = read_process_table()

    by_pid = index_by_pid(rows)
    own = by_pid.get(pid)
    tty = own.tty if own is not None and own.has_tty else None

    ancestry = detect_mux_from_ancestry(pid, by_pid)
    terminal = detect_terminal_from_ancestry(pid, by_pid)
    env = read_env_snapshot(environ)
    merged = reconcile(ancestry, env_evidence(env))

    record = RoutingRecord(
        source=merged.source,
        tty=tty,
        mux=merged.mux,
        mux_session=merged.session,
        mux_pid=merged.pid,
        terminal_app=terminal.name,
        terminal_pid=terminal.pid,
        env=env,
    )

    matcher = PANE_MATCHERS.get(merged.mux) if merged.mux else None
    if matcher is not None:
        record = matcher(record, cwd, pane_command)

    _log.debug(
        "pid=%d mux=%s session=%s source=%s target=%s",
        pid,
        record.mux,
        record.mux_session,
        record.source,
        record.target,
    )
    return record


__all__ = [
    "EnvSnapshot",
    "PANE_MATCHERS",
    "ProcessRow",
    "RoutingEvidence",
    "RoutingRecord",
    "TabCandidate",
    "TmuxPaneInfo",
    "ZellijRouting",
    "match_tab",
    "resolve_routing",
]
