"""Central error types used across the application."""

from __future__ import annotations


class PermissionDeniedError(RuntimeError):
    """Raised when location access is refused and tracking cannot start."""


class SessionStateError(RuntimeError):
    """Raised when a workout command is not valid in the current state."""


class ServiceError(RuntimeError):
    """Base error for failures of external services."""


class NetworkFailureError(ServiceError):
    """Raised when an external call fails or returns an error status."""


class StorageFailureError(ServiceError):
    """Raised when the record store rejects or cannot accept a write."""


class ParseFailureError(ServiceError):
    """Raised when a provider response does not contain the expected data."""


__all__ = [
    "PermissionDeniedError",
    "SessionStateError",
    "ServiceError",
    "NetworkFailureError",
    "StorageFailureError",
    "ParseFailureError",
]
