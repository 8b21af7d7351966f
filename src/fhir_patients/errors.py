"""Error taxonomy for local-first patient synchronization."""

from __future__ import annotations


class PatientSyncError(Exception):
    """Base class for every error raised or reported by this package."""


class ValidationError(PatientSyncError):
    """A local precondition is not met (not saveable, uploadable or downloadable)."""


class OperationError(ValidationError):
    """Raised synchronously when a remote operation cannot be dispatched."""

    def __init__(self, message: str, error: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.error = error


class RemoteError(PatientSyncError):
    """The FHIR server answered with a non-success status or an unusable body."""

    def __init__(self, status_code: int, body: str, message: str | None = None) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"FHIR server returned HTTP {status_code}: {body[:200]}")


class TransportError(PatientSyncError):
    """The request never produced a response (DNS, timeout, connection reset)."""


class PersistenceError(PatientSyncError):
    """Writing to or reading from the local store failed."""
