"""Exception hierarchy shared by the permutation service components."""

from __future__ import annotations

__all__ = [
    "PillPermutationError",
    "ValidationError",
    "ConfigurationError",
    "ServiceError",
    "RetrievalError",
    "PersistenceError",
    "SubmissionError",
]


class PillPermutationError(RuntimeError):
    """Base class for every error raised by this package."""


class ValidationError(PillPermutationError):
    """Raised when the caller supplied a missing or unusable ``pills`` value.

    The message is safe to return to the caller verbatim.
    """


class ConfigurationError(PillPermutationError):
    """Raised when a required collaborator endpoint is not configured."""


class ServiceError(PillPermutationError):
    """Raised when an external collaborator cannot complete a call."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RetrievalError(ServiceError):
    """Raised when reading from the cache service fails."""


class PersistenceError(ServiceError):
    """Raised when writing to the cache service fails."""


class SubmissionError(ServiceError):
    """Raised when the deferred-task service rejects or misses a submission."""
