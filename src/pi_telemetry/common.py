"""Workspace and host details for the telemetry record."""

import getpass
import os
import platform
import socket

from .routing.proc import run_quiet


def _git(cwd: str, flag: str) -> str:
    return (run_quiet("git", ["-C", cwd, "rev-parse", flag, "HEAD"], 0.25) or "").strip()


def get_git_info(cwd: str) -> dict[str, str] | None:
    """Branch and short commit for ``cwd``, or None outside a git repo."""
    if not cwd:
        return None

    branch = _git(cwd, "--abbrev-ref")
    commit = _git(cwd, "--short")
    if not branch and not commit:
        return None

    info = {}
    if branch:
        info["branch"] = branch
    if commit:
        info["commit"] = commit
    return info


def get_user() -> str:
    try:
        return getpass.getuser()
    except (OSError, KeyError):
        # no passwd entry (containers), no LOGNAME
        return str(os.getuid()) if hasattr(os, "getuid") else "unknown"


def get_system_info() -> dict[str, str]:
    return {
        "host": socket.gethostname(),
        "user": get_user(),
        "platform": platform.system().lower(),
        "arch": platform.machine(),
        "pythonVersion": platform.python_version(),
    }
