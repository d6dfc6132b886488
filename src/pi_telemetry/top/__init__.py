"""pi-telemetry fleet dashboard."""

from .app import FleetApp

__all__ = ["FleetApp"]
