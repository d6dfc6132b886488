"""pi-telemetry: per-instance liveness telemetry for pi agents.

Each running agent publishes ``<telemetry_dir>/<pid>.json`` describing its
activity, context pressure and the terminal/multiplexer pane it lives in.
``pi-telemetry snapshot`` aggregates the live ones for dashboards.
"""

from .publisher import TelemetryPublisher, install
from .snapshot import build_fleet_snapshot

__all__ = ["TelemetryPublisher", "build_fleet_snapshot", "install"]
