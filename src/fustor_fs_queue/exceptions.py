"""
Fustor FS Queue Exceptions.

Per-path failures never leave the scheduler except as a write rejection
(the backend's own exception) or, when a read attempt cap is configured,
as ReadRetriesExhaustedError.
"""
from typing import Optional, Any, Dict


class FustorException(Exception):
    """Base exception for all Fustor errors."""

    def __init__(self, detail: str = "An error occurred", context: Optional[Dict[str, Any]] = None):
        self.detail = detail
        self.context = context or {}
        super().__init__(detail)


class ConfigError(FustorException):
    """Raised when the scheduler configuration cannot be loaded or is invalid."""

    def __init__(self, detail: str = "Configuration error", context: Optional[Dict[str, Any]] = None):
        super().__init__(detail=detail, context=context)


class ValidationError(FustorException):
    """Raised when a request argument is rejected before it is queued."""

    def __init__(self, detail: str = "Validation error", context: Optional[Dict[str, Any]] = None):
        super().__init__(detail=detail, context=context)


class StateConflictError(FustorException):
    """Raised when an operation is attempted in an invalid state (e.g. after close)."""

    def __init__(self, detail: str = "Operation not allowed in current state", context: Optional[Dict[str, Any]] = None):
        super().__init__(detail=detail, context=context)


class BackendError(FustorException):
    """Raised by a file backend for a failure it wants to describe itself."""

    def __init__(self, detail: str = "Backend error", context: Optional[Dict[str, Any]] = None):
        super().__init__(detail=detail, context=context)


class SystemicBackendFault(BackendError):
    """
    A backend fault that is not attributable to a single path.

    Never absorbed by per-item handling: it aborts the current pass and the
    whole pass is retried after the configured backoff delay.
    """

    def __init__(self, detail: str = "Systemic backend fault", context: Optional[Dict[str, Any]] = None):
        super().__init__(detail=detail, context=context)


class ReadRetriesExhaustedError(BackendError):
    """Raised into a read handle once max_read_attempts is reached."""

    def __init__(self, path: str, attempts: int, last_error: Optional[BaseException] = None):
        self.path = path
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            detail=f"Read of {path} failed after {attempts} attempts: {last_error}",
            context={"path": path, "attempts": attempts},
        )
