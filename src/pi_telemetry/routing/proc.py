"""Best-effort external command invocation."""

from __future__ import annotations

import subprocess

from ..log import get_logger

_log = get_logger("routing.proc")


def run_quiet(cmd: str, args: list[str], timeout: float = 0.3) -> str | None:
    """Run ``cmd args`` and return its stdout, or None on any failure.

    A missing binary, a timeout and a non-zero exit all look the same to
    callers: no evidence. stderr is discarded. ``timeout`` is in seconds.
    """
    try:
        result = subprocess.run(
            [cmd, *args],
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        _log.debug("%s failed: %s", cmd, e)
        return None

    if result.returncode != 0:
        _log.debug("%s exited %d: %s", cmd, result.returncode, result.stderr.strip()[:200])
        return None
    return result.stdout
