"""
Custom exceptions for the telemetry delivery engine.

None of these ever propagate back into instrumentation producers; they
cross component boundaries only where a caller catches and converts them
into retry or drop decisions.
"""

from typing import Optional


class RelayError(Exception):
    """Base error for the delivery engine."""

    pass


class ConfigurationError(RelayError):
    """Invalid or missing delivery settings. Logged, feature disabled."""

    pass


class SerializationError(RelayError):
    """A value graph could not be encoded or decoded."""

    pass


class TransportError(RelayError):
    """Non-success response from the collector endpoint."""

    def __init__(self, status_code: int, status_text: str = ""):
        self.status_code = status_code
        self.status_text = status_text
        super().__init__(f"HTTP {status_code}: {status_text}")


class StoreUnavailableError(RelayError):
    """The host has no usable persistent storage, or it was closed."""

    pass


class StoreOperationError(RelayError):
    """A durable store read or write failed."""

    pass


class RetryExhaustedError(RelayError):
    """A batch ran out of delivery attempts and was dropped."""

    def __init__(self, attempts: int, cause: Optional[BaseException] = None):
        self.attempts = attempts
        self.cause = cause
        message = f"delivery abandoned after {attempts} attempts"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
