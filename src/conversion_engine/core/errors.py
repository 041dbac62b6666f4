"""Exceptions raised by the conversion engine."""


class ConversionEngineError(Exception):
    """Base class for conversion engine errors."""
    pass


class UnknownTrigger(ConversionEngineError, LookupError):
    """Raised when a trigger is not part of the engagement catalog.

    This is a caller bug: every trigger kind has a catalog entry.
    """

    def __init__(self, trigger):
        self.trigger = trigger
        super().__init__(f"Unknown engagement trigger: {trigger!r}")


class StorageError(ConversionEngineError):
    """Raised when the durable key/value area rejects an operation."""
    pass


class StorageQuotaExceeded(StorageError):
    """Raised when a write would exceed the storage area's capacity."""
    pass


class TelemetryTransportFailure(ConversionEngineError):
    """A telemetry event could not be delivered. Logged, never propagated."""
    pass
