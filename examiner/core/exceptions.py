"""Exception hierarchy for the examination pipeline.

All errors raised by examiner derive from ExaminerError, which carries a
human-readable message plus an optional ``details`` dictionary for
structured context.

## Taxonomy:

- **NotFoundError**: question or canonical answer is missing
- **InsufficientCreditError**: admission control rejected the request
- **BackendError**: any failure from a language-model backend
- **ConfigurationError**: wiring defect (e.g. unknown business key)
- **ValidationError**: request input is unusable
- **StorageError**: persistence failures (connection, save, retrieval)

Use :func:`error_code` to map an exception onto the stable, user-facing
code that the web layer returns to clients.
"""

from typing import Any, Dict, Optional

__all__ = [
    "ExaminerError",
    "NotFoundError",
    "InsufficientCreditError",
    "BackendError",
    "ConfigurationError",
    "UnknownBusinessError",
    "ValidationError",
    "StorageError",
    "ConnectionError",
    "SaveError",
    "RetrievalError",
    "ERROR_INSUFFICIENT_CREDIT",
    "ERROR_NOT_FOUND",
    "ERROR_INVALID_INPUT",
    "ERROR_SYSTEM",
    "error_code",
]

ERROR_INSUFFICIENT_CREDIT = "INSUFFICIENT_CREDIT"
ERROR_NOT_FOUND = "NOT_FOUND"
ERROR_INVALID_INPUT = "INVALID_INPUT"
ERROR_SYSTEM = "SYSTEM_ERROR"


class ExaminerError(Exception):
    """Base exception for all examiner errors.

    Args:
        message: Human-readable error message
        details: Optional structured context (ids, amounts, causes)
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details or {}

    def __str__(self) -> str:
        return self.message


class NotFoundError(ExaminerError):
    """Requested question (or its canonical answer) does not exist."""


class InsufficientCreditError(ExaminerError):
    """The caller's balance cannot cover the request.

    Raised by the credit stage before any billable work happens, so the
    caller can show a dedicated "top up" message.
    """

    code = ERROR_INSUFFICIENT_CREDIT


class BackendError(ExaminerError):
    """A language-model backend failed (network, provider, bad payload).

    Args:
        message: Human-readable error message
        details: Optional structured context
        retryable: False for failures a retry cannot fix (e.g. bad credentials)
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        retryable: bool = True,
    ):
        super().__init__(message, details)
        self.retryable = retryable


class ConfigurationError(ExaminerError):
    """Deployment or wiring defect, never caused by user input."""


class UnknownBusinessError(ConfigurationError):
    """No pipeline is registered for the requested business key."""


class ValidationError(ExaminerError):
    """Request input failed validation."""


class StorageError(ExaminerError):
    """Base class for persistence failures."""


class ConnectionError(StorageError):
    """Could not connect to (or is not connected to) the storage backend."""


class SaveError(StorageError):
    """Writing to the storage backend failed."""


class RetrievalError(StorageError):
    """Reading from the storage backend failed."""


def error_code(exc: BaseException) -> str:
    """Map an exception to the stable code exposed to clients.

    Only insufficient credit, missing questions and invalid input get a
    dedicated code; everything else collapses into a generic system error
    so internal details never leak.
    """
    if isinstance(exc, InsufficientCreditError):
        return ERROR_INSUFFICIENT_CREDIT
    if isinstance(exc, NotFoundError):
        return ERROR_NOT_FOUND
    if isinstance(exc, ValidationError):
        return ERROR_INVALID_INPUT
    return ERROR_SYSTEM
