"""Application-specific exceptions.

All errors raised by the tutor inherit from ``HanbotError`` so the chat
surface can catch them in one place and map them to a reply.
"""
from typing import Any, Dict, Optional


class HanbotError(Exception):
    """Base exception for all tutor errors.

    Attributes:
        message: Human-readable error message
        details: Additional error details
        status_code: HTTP-style status code for the caller
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
    ):
        self.message = message
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a response body."""
        return {"error": self.message}


class InputValidationError(HanbotError):
    """Raised when a turn request is empty or malformed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, details=details, status_code=400)


class ConfigurationError(HanbotError):
    """Raised when a required credential or setting is missing.

    The message is meant to be shown to the caller as a configuration hint.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, details=details, status_code=500)


class RemoteServiceError(HanbotError):
    """Raised when a remote service answers with a non-success status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            details={"status_code": status_code, "body": body, **(details or {})},
            status_code=502,
        )
        self.remote_status = status_code
        self.body = body

    @property
    def is_transient(self) -> bool:
        """Whether a retry by the caller could succeed."""
        return self.remote_status is None or self.remote_status == 429 or self.remote_status >= 500


class DictionaryLookupError(RemoteServiceError):
    """Raised when the remote CC-CEDICT download fails."""
