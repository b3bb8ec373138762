"""Connect flow telemetry."""

from bankconnect.core.metrics.telemetry import (
    EventType,
    TelemetryLogger,
    TelemetryTracker,
)

__all__ = [
    "EventType",
    "TelemetryLogger",
    "TelemetryTracker",
]
