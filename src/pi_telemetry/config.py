"""Configuration management for pi-telemetry.

Settings come from ~/.config/pi-telemetry/config.toml. The PI_TELEMETRY_*
environment variables override the file, so a single agent process can be
pointed somewhere else without touching the shared config.
"""

import math
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .log import get_logger
from .paths import get_telemetry_dir

_log = get_logger("config")

DEFAULT_HEARTBEAT_MS = 1500
MIN_HEARTBEAT_MS = 250
DEFAULT_CLOSE_PERCENT = 85.0
DEFAULT_NEAR_PERCENT = 95.0
DEFAULT_STALE_MS = 10_000


def get_config_path() -> Path:
    """Get the path to the pi-telemetry config file."""
    xdg_config = Path.home() / ".config"
    return xdg_config / "pi-telemetry" / "config.toml"


def get_default_config() -> str:
    """Return the default config file contents."""
    return """\
# pi-telemetry configuration
# Every value can be overridden by the matching PI_TELEMETRY_* env var.

[publisher]
# Directory holding one <pid>.json file per running agent.
# Empty means ~/.pi/agent/telemetry/instances (PI_TELEMETRY_DIR)
telemetry_dir = ""
# How often a running agent refreshes its file (PI_TELEMETRY_HEARTBEAT_MS)
heartbeat_ms = 1500
# Context usage thresholds, in percent of the context window
close_percent = 85  # PI_TELEMETRY_CLOSE_PERCENT
near_percent = 95  # PI_TELEMETRY_NEAR_PERCENT

[snapshot]
# Files not updated within this window are ignored (PI_TELEMETRY_STALE_MS)
stale_ms = 10000

[routing]
# Binary name searched for in zellij layout dumps
pane_command = "pi"
"""


@dataclass
class PublisherConfig:
    """Configuration for the per-instance publisher."""

    telemetry_dir: str = ""
    heartbeat_ms: int = DEFAULT_HEARTBEAT_MS
    close_percent: float = DEFAULT_CLOSE_PERCENT
    near_percent: float = DEFAULT_NEAR_PERCENT


@dataclass
class SnapshotConfig:
    """Configuration for the fleet snapshot reader."""

    stale_ms: int = DEFAULT_STALE_MS


@dataclass
class RoutingConfig:
    """Configuration for terminal routing resolution."""

    pane_command: str = "pi"


@dataclass
class Config:
    """pi-telemetry configuration."""

    publisher: PublisherConfig = field(default_factory=PublisherConfig)
    snapshot: SnapshotConfig = field(default_factory=SnapshotConfig)
    routing: RoutingConfig = field(default_factory=RoutingConfig)

    @property
    def telemetry_dir(self) -> Path:
        return get_telemetry_dir(self.publisher.telemetry_dir)

    @property
    def heartbeat_ms(self) -> int:
        configured = _number(os.environ.get("PI_TELEMETRY_HEARTBEAT_MS"))
        if configured is None or configured <= 0:
            configured = self.publisher.heartbeat_ms
        return max(MIN_HEARTBEAT_MS, math.floor(configured))

    @property
    def thresholds(self) -> tuple[float, float]:
        """(close, near) context thresholds in percent."""
        close = _number(os.environ.get("PI_TELEMETRY_CLOSE_PERCENT"))
        near = _number(os.environ.get("PI_TELEMETRY_NEAR_PERCENT"))
        return (
            close if close is not None else self.publisher.close_percent,
            near if near is not None else self.publisher.near_percent,
        )

    def stale_ms(self, override: str | None = None) -> int:
        """Staleness threshold: flag, then PI_TELEMETRY_STALE_MS, then the file.

        Anything that is not a finite positive number falls back to the
        default rather than erroring, the snapshot reader must always answer.
        """
        raw = override if override is not None else os.environ.get("PI_TELEMETRY_STALE_MS")
        value = _number(raw)
        if value is None and raw is None:
            value = float(self.snapshot.stale_ms)
        if value is None or value <= 0:
            value = DEFAULT_STALE_MS
        return math.floor(value)


def _number(value: Any) -> float | None:
    """Parse a finite number, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from file, or return defaults."""
    if config_path is None:
        config_path = get_config_path()

    if not config_path.exists():
        return Config()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        # never let a broken config file break the agent it's observing
        _log.warning("could not load config from %s: %s", config_path, e)
        return Config()

    return _parse_config(data)


def _parse_config(data: dict[str, Any]) -> Config:
    """Parse config dict into Config object."""
    publisher_data = _section(data, "publisher")
    defaults = PublisherConfig()
    publisher = PublisherConfig(
        telemetry_dir=_or_default_str(publisher_data.get("telemetry_dir"), defaults.telemetry_dir),
        heartbeat_ms=_number(publisher_data.get("heartbeat_ms")) or defaults.heartbeat_ms,
        close_percent=_or_default(publisher_data.get("close_percent"), defaults.close_percent),
        near_percent=_or_default(publisher_data.get("near_percent"), defaults.near_percent),
    )

    snapshot_data = _section(data, "snapshot")
    snapshot = SnapshotConfig(
        stale_ms=_number(snapshot_data.get("stale_ms")) or DEFAULT_STALE_MS,
    )

    routing_data = _section(data, "routing")
    pane_command = routing_data.get("pane_command")
    routing = RoutingConfig(
        pane_command=pane_command if isinstance(pane_command, str) and pane_command else "pi",
    )

    return Config(publisher=publisher, snapshot=snapshot, routing=routing)


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    """A top-level table, or {} if it is missing or not a table."""
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        _log.warning("config: [%s] is not a table, ignoring it", name)
        return {}
    return section


def _or_default_str(value: Any, default: str) -> str:
    return value if isinstance(value, str) else default


def _or_default(value: Any, default: float) -> float:
    parsed = _number(value)
    return parsed if parsed is not None else default


def ensure_config_exists() -> Path:
    """Ensure the config file exists, creating with defaults if needed."""
    config_path = get_config_path()

    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(get_default_config())

    return config_path
