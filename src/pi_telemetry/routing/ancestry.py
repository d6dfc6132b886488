"""Multiplexer and terminal detection by walking process ancestry.

Each multiplexer family is described by a MuxSignature: how to recognise its
process and how to pull a session name out of its command line. The
signatures form a small closed set, tried in priority order at every
ancestor.
"""

from __future__ import annotations

import os
import re
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import Literal

from .ps import ProcessRow

MuxKind = Literal["tmux", "zellij", "screen"]


@dataclass(frozen=True)
class RoutingEvidence:
    """What one evidence source says about the multiplexer we're in."""

    mux: MuxKind | None = None
    session: str | None = None
    pid: int | None = None


NO_EVIDENCE = RoutingEvidence()


def _flag_value(args: str, flags: tuple[str, ...]) -> Iterator[tuple[str, str]]:
    """Yield (flag, value) for every ``--flag value`` pair in ``args``."""
    parts = args.split()
    for i, part in enumerate(parts[:-1]):
        if part in flags:
            yield part, parts[i + 1]


def extract_zellij_session(args: str) -> str | None:
    """``-s NAME`` / ``--session NAME``, or the basename of ``--server PATH``.

    The zellij server process is started as ``zellij --server
    /run/.../zellij/0.40.1/<session>``, so its socket name is the session.
    """
    for flag, value in _flag_value(args, ("-s", "--session", "--server")):
        if flag == "--server":
            return os.path.basename(value.rstrip("/")) or None
        return value
    return None


def extract_tmux_session(args: str) -> str | None:
    """Session from ``-t target``, ``--target target`` or ``-ttarget``."""
    parts = args.split()
    for i, part in enumerate(parts):
        target = None
        if part in ("-t", "--target") and i + 1 < len(parts):
            target = parts[i + 1]
        elif part.startswith("-t") and len(part) > 2:
            target = part[2:]

        target = (target or "").strip()
        if target:
            return target.split(":", 1)[0]
    return None


def _no_session(args: str) -> str | None:
    return None


@dataclass(frozen=True)
class MuxSignature:
    """How to recognise one multiplexer family in the process table."""

    kind: MuxKind
    name: str
    extract_session: Callable[[str], str | None]

    @property
    def pattern(self) -> re.Pattern[str]:
        return re.compile(rf"(^|\s|/){re.escape(self.name)}(\s|$)")

    def matches(self, row: ProcessRow) -> bool:
        return self.name in row.comm.lower() or bool(self.pattern.search(row.args.lower()))


# priority order: tab/pane managers first, plain screen last
MUX_SIGNATURES: tuple[MuxSignature, ...] = (
    MuxSignature("zellij", "zellij", extract_zellij_session),
    MuxSignature("tmux", "tmux", extract_tmux_session),
    MuxSignature("screen", "screen", _no_session),
)

SIGNATURES_BY_KIND: dict[MuxKind, MuxSignature] = {s.kind: s for s in MUX_SIGNATURES}


def iter_ancestors(start: int | None, by_pid: Mapping[int, ProcessRow]) -> Iterator[ProcessRow]:
    """Yield rows from ``start`` upward through parent links.

    Stops at a pid missing from the table, at pid 0, or when a pid repeats.
    Parent links can't legitimately cycle, but a table read from ps is not
    consistent (pids get reused while ps is running).
    """
    seen: set[int] = set()
    current = start
    while current and current not in seen:
        seen.add(current)
        row = by_pid.get(current)
        if row is None:
            return
        yield row
        current = row.ppid


def classify_mux(row: ProcessRow) -> MuxSignature | None:
    for signature in MUX_SIGNATURES:
        if signature.matches(row):
            return signature
    return None


def detect_mux_from_ancestry(pid: int, by_pid: Mapping[int, ProcessRow]) -> RoutingEvidence:
    """Find the nearest multiplexer ancestor of ``pid``.

    The walk begins at the parent: a process is never its own multiplexer.
    """
    own = by_pid.get(pid)
    if own is None:
        return NO_EVIDENCE

    for row in iter_ancestors(own.ppid, by_pid):
        signature = classify_mux(row)
        if signature is not None:
            return RoutingEvidence(
                mux=signature.kind,
                session=signature.extract_session(row.args),
                pid=row.pid,
            )
    return NO_EVIDENCE


@dataclass(frozen=True)
class TerminalApp:
    """The terminal emulator hosting a process, if we recognised one."""

    name: str | None = None
    pid: int | None = None


def _terminal_name(row: ProcessRow) -> str | None:
    comm = row.comm.lower()
    args = row.args.lower()

    if "ghostty" in comm or "ghostty" in args:
        return "Ghostty"
    if "iterm" in comm or "iterm" in args:
        return "iTerm2"
    if "wezterm" in comm or "wezterm-gui" in args:
        return "WezTerm"
    if comm == "kitty" or args.endswith("/kitty") or "kitty.app" in args:
        return "kitty"
    if comm == "terminal" or "terminal.app" in args:
        return "Terminal"
    return None


def detect_terminal_from_ancestry(pid: int, by_pid: Mapping[int, ProcessRow]) -> TerminalApp:
    """Find the nearest terminal emulator in the chain, starting at ``pid`` itself."""
    for row in iter_ancestors(pid, by_pid):
        name = _terminal_name(row)
        if name:
            return TerminalApp(name=name, pid=row.pid)
    return TerminalApp()
