"""
Shared error handling for the Homi journal gateway.

Every error maps onto one HTTP status; the service exception handler reads
``status_code`` off the exception class.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    error: str
    details: Dict[str, Any] = {}


class JournalError(Exception):
    """Base exception for the journal gateway."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(code=self.code, error=self.message, details=self.details)


class AuthenticationError(JournalError):
    """Missing or unverifiable credential."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)

    def to_response(self) -> ErrorResponse:
        # Never tell the caller why verification failed.
        return ErrorResponse(code=self.code, error="Unauthorized")


class ValidationError(JournalError):
    """Request payload violates the schema."""

    status_code = 400

    def __init__(self, message: str = "Invalid request", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class RateLimitError(JournalError):
    """Rate limiting errors."""

    status_code = 429

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: int = 1,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.retry_after = max(1, int(retry_after))
        self.headers = dict(headers or {})
        self.headers["Retry-After"] = str(self.retry_after)
        super().__init__("RATE_LIMIT_ERROR", message)


class NotFoundError(JournalError):
    """Record is missing or owned by someone else."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class UpstreamError(JournalError):
    """Completion oracle failure."""

    status_code = 502

    def __init__(
        self,
        message: str = "Upstream AI error",
        upstream_status: Optional[int] = None,
        body: Optional[str] = None,
    ):
        self.upstream_status = upstream_status
        self.body = body
        details: Dict[str, Any] = {}
        if upstream_status is not None:
            details["status"] = upstream_status
        if body is not None:
            details["body"] = body
        super().__init__("UPSTREAM_ERROR", message, details)


class StoreUnavailableError(JournalError):
    """Persistent store could not be reached or is not configured."""

    status_code = 500

    def __init__(self, message: str = "Store unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("STORE_UNAVAILABLE", message, details)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(code=self.code, error="Server error")
