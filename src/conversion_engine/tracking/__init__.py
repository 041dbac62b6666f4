"""Page attribution and analytics telemetry."""

from .attribution import PageContext, capture_attribution, parse_source, parse_medium
from .telemetry import TelemetryEmitter

__all__ = [
    "PageContext",
    "capture_attribution",
    "parse_source",
    "parse_medium",
    "TelemetryEmitter",
]
