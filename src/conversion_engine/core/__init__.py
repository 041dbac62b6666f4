"""Scoring catalog, status policy and errors for lead conversion."""

from .errors import (
    ConversionEngineError,
    UnknownTrigger,
    StorageError,
    StorageQuotaExceeded,
    TelemetryTransportFailure,
)
from .catalog import TriggerKind, Category, EngagementAction, ENGAGEMENT_ACTIONS, points_for
from .metadata import TriggerMetadata, parse_metadata
from .status import VisitorStatus, STATUS_FLOW, STATUS_THRESHOLDS, derive_status

__all__ = [
    "ConversionEngineError",
    "UnknownTrigger",
    "StorageError",
    "StorageQuotaExceeded",
    "TelemetryTransportFailure",
    "TriggerKind",
    "Category",
    "EngagementAction",
    "ENGAGEMENT_ACTIONS",
    "points_for",
    "TriggerMetadata",
    "parse_metadata",
    "VisitorStatus",
    "STATUS_FLOW",
    "STATUS_THRESHOLDS",
    "derive_status",
]
