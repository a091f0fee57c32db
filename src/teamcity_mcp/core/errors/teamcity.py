"""TeamCity REST error classes.

Every failure produced by the transport adapter is one of these classes, so
the retry policy and the circuit breaker can classify errors by type and
``kind`` rather than by parsing messages.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Classification carried by every TeamCity API error."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"


class TeamCityAPIError(Exception):
    """Base exception for TeamCity REST failures.

    Attributes:
        message: Human-readable error description
        kind: Error classification
        status_code: HTTP status code when the server responded
        retry_after: Server-supplied wait hint in seconds, if any
        details: Parsed response body or extra context
        request_id: Correlation id of the request that failed
        attempts: Attempts made before giving up (set by the transport invoker)
        elapsed_seconds: Wall time spent across those attempts
    """

    kind: ErrorKind = ErrorKind.SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
        details: Any = None,
        request_id: Optional[str] = None,
        kind: Optional[ErrorKind] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.retry_after = retry_after
        self.details = details
        self.request_id = request_id
        if kind is not None:
            self.kind = kind
        self.attempts: Optional[int] = None
        self.elapsed_seconds: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "error": type(self).__name__,
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.status_code is not None:
            result["status_code"] = self.status_code
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        if self.request_id:
            result["request_id"] = self.request_id
        if self.attempts is not None:
            result["attempts"] = self.attempts
        if self.elapsed_seconds is not None:
            result["elapsed_seconds"] = round(self.elapsed_seconds, 3)
        return result


class TransientNetworkError(TeamCityAPIError):
    """The request never produced a response (DNS, refused, reset)."""

    kind = ErrorKind.NETWORK

    def __init__(self, message: str = "Network error", **kwargs: Any):
        super().__init__(message, **kwargs)


class TeamCityTimeoutError(TeamCityAPIError):
    """The request did not complete within the configured timeout."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, timeout_seconds: Optional[float] = None, **kwargs: Any):
        self.timeout_seconds = timeout_seconds
        message = (
            f"Request timed out after {timeout_seconds}s"
            if timeout_seconds is not None
            else "Request timed out"
        )
        super().__init__(message, **kwargs)


class RateLimitedError(TeamCityAPIError):
    """HTTP 429. Always retryable; ``retry_after`` overrides the backoff."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(self, retry_after: Optional[float] = None, **kwargs: Any):
        message = "Rate limit exceeded"
        if retry_after is not None:
            message += f". Retry after {retry_after:g} seconds"
        kwargs.setdefault("status_code", 429)
        super().__init__(message, retry_after=retry_after, **kwargs)


class ClientError(TeamCityAPIError):
    """HTTP 4xx other than 429. Not retryable."""

    kind = ErrorKind.CLIENT_ERROR


class NotFoundError(ClientError):
    """HTTP 404 for a single entity or collection."""

    def __init__(
        self,
        resource: str,
        identifier: Optional[str] = None,
        **kwargs: Any,
    ):
        self.resource = resource
        self.identifier = identifier
        message = (
            f"{resource} with identifier '{identifier}' not found"
            if identifier is not None
            else f"{resource} not found"
        )
        kwargs.setdefault("status_code", 404)
        super().__init__(message, **kwargs)


class ServerError(TeamCityAPIError):
    """HTTP 5xx. Retryable."""

    kind = ErrorKind.SERVER_ERROR
