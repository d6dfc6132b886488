"""Path utilities for pi-telemetry."""

import os
from pathlib import Path

TELEMETRY_DIR_ENV = "PI_TELEMETRY_DIR"


def get_default_telemetry_dir() -> Path:
    """Default directory for per-instance telemetry files.

    ~/.pi/agent/telemetry/instances/
    """
    return Path.home() / ".pi" / "agent" / "telemetry" / "instances"


def get_telemetry_dir(configured: str | None = None) -> Path:
    """Resolve the telemetry directory.

    Precedence: PI_TELEMETRY_DIR, then the configured value, then the default.
    Blank values are ignored.
    """
    from_env = os.environ.get(TELEMETRY_DIR_ENV, "").strip()
    if from_env:
        return Path(from_env)
    if configured and configured.strip():
        return Path(configured.strip()).expanduser()
    return get_default_telemetry_dir()


def get_instance_path(telemetry_dir: Path, pid: int) -> Path:
    """Path of the telemetry file owned by ``pid``."""
    return telemetry_dir / f"{pid}.json"
