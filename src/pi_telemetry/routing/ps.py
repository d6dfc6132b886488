"""Point-in-time process table snapshot via ps."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from .proc import run_quiet

PS_COMMAND = "/bin/ps"
# tty before comm: comm may contain spaces, the three leading columns never do
PS_ARGS = ["-axo", "pid=,ppid=,tty=,comm=,args="]
NO_TTY = "??"

_WS = re.compile(r"\s+")


@dataclass(frozen=True)
class ProcessRow:
    """One row of the process table."""

    pid: int
    ppid: int
    comm: str
    tty: str
    args: str

    @property
    def has_tty(self) -> bool:
        return bool(self.tty) and self.tty not in (NO_TTY, "?", "-")


def parse_ps_output(output: str) -> Iterator[ProcessRow]:
    """Parse ``ps -axo pid=,ppid=,tty=,comm=,args=`` output.

    Lines with fewer than four columns or non-numeric pids are skipped.
    A Linux thread name such as ``tmux: server`` contains spaces, and
    nothing separates it from the args column. Only its first word becomes
    ``comm`` and the rest runs into ``args``, which keeps the name
    visible to the multiplexer and terminal matchers.
    """
    for raw in output.splitlines():
        line = raw.strip()
        if not line:
            continue

        parts = _WS.split(line, maxsplit=4)
        if len(parts) < 4:
            continue

        try:
            pid = int(parts[0])
            ppid = int(parts[1])
        except ValueError:
            continue

        tty = parts[2] or NO_TTY
        comm = parts[3]
        args = parts[4] if len(parts) > 4 else comm
        yield ProcessRow(pid=pid, ppid=ppid, comm=comm, tty=tty, args=args)


def read_process_table() -> list[ProcessRow]:
    """Enumerate all processes. Empty list if ps is unavailable."""
    output = run_quiet(PS_COMMAND, PS_ARGS, timeout=0.4)
    if not output:
        return []
    return list(parse_ps_output(output))


def index_by_pid(rows: Iterable[ProcessRow]) -> dict[int, ProcessRow]:
    return {row.pid: row for row in rows}
