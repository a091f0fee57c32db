"""Deterministic retry policy with exponential backoff.

No randomness lives here: jitter, if wanted, is applied by the caller
around ``RetryDecision.delay_ms``. Delays are integer milliseconds.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from teamcity_mcp.core.errors.teamcity import (
    ClientError,
    RateLimitedError,
    ServerError,
    TeamCityAPIError,
    TeamCityTimeoutError,
    TransientNetworkError,
)
from teamcity_mcp.core.resilience.models import ErrorClassification, RetryDecision

ShouldRetry = Callable[[BaseException], bool]

_RETRYABLE_TYPES = (
    ServerError,
    TransientNetworkError,
    TeamCityTimeoutError,
    RateLimitedError,
    httpx.TimeoutException,
    httpx.TransportError,
    asyncio.TimeoutError,
    TimeoutError,
    ConnectionError,
)


def next_delay(
    attempt_index: int,
    base_delay_ms: int,
    max_delay_ms: int,
    exponential: bool = True,
    server_hint_seconds: Optional[float] = None,
    max_retries: Optional[int] = None,
) -> RetryDecision:
    """Compute whether and how long to wait after a failed attempt.

    Args:
        attempt_index: Zero-based index of the attempt that just failed
        base_delay_ms: Delay for the first retry
        max_delay_ms: Upper bound for computed delays
        exponential: Double the delay per attempt when True
        server_hint_seconds: Server-supplied wait (e.g. ``Retry-After``).
            Replaces the computed delay wholesale and is not clamped.
        max_retries: Retry budget; None means unlimited

    Returns:
        RetryDecision for this attempt
    """
    if server_hint_seconds is not None:
        delay_ms = int(round(max(server_hint_seconds, 0.0) * 1000))
    else:
        delay = base_delay_ms * (2**attempt_index) if exponential else base_delay_ms
        delay_ms = int(min(max(delay, 0), max_delay_ms))

    should_retry = max_retries is None or attempt_index < max_retries
    return RetryDecision(should_retry=should_retry, delay_ms=delay_ms, attempt_index=attempt_index)


def default_should_retry(error: BaseException) -> bool:
    """Retry 5xx, 429, network-level and timeout errors; never other 4xx."""
    if isinstance(error, ClientError) and not isinstance(error, RateLimitedError):
        return False
    if isinstance(error, _RETRYABLE_TYPES):
        return True
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status == 429 or status >= 500
    return False


def classify_error(error: BaseException) -> ErrorClassification:
    """Classify an error for the invoker.

    Only errors that indicate an unhealthy upstream trip the breaker.
    Client errors (a 404 on a bad id) say nothing about service health.
    """
    retryable = default_should_retry(error)
    backoff = None
    if isinstance(error, TeamCityAPIError):
        backoff = error.retry_after
        error_type = error.kind.value
    elif isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        error_type = "timeout"
    elif isinstance(error, (httpx.TransportError, ConnectionError)):
        error_type = "network"
    else:
        error_type = "unknown"

    is_client_error = isinstance(error, ClientError) and not isinstance(error, RateLimitedError)
    return ErrorClassification(
        retryable=retryable,
        trips_breaker=not is_client_error,
        backoff_seconds=backoff,
        error_type=error_type,
    )


@dataclass
class RetryPolicy:
    """Retry budget and backoff settings.

    Attributes:
        enabled: When False no attempt is retried
        max_retries: Retries after the first attempt
        base_delay_ms: Delay before the first retry
        max_delay_ms: Cap for computed delays (server hints are not capped)
        exponential: Exponential when True, constant when False
        should_retry_error: Error predicate; defaults to ``default_should_retry``
    """

    enabled: bool = True
    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 30000
    exponential: bool = True
    should_retry_error: ShouldRetry = default_should_retry

    @property
    def budget(self) -> int:
        return max(self.max_retries, 0) if self.enabled else 0

    def next_delay(
        self, attempt_index: int, server_hint_seconds: Optional[float] = None
    ) -> RetryDecision:
        return next_delay(
            attempt_index,
            self.base_delay_ms,
            self.max_delay_ms,
            exponential=self.exponential,
            server_hint_seconds=server_hint_seconds,
            max_retries=self.budget,
        )

    def should_retry(self, error: BaseException) -> bool:
        return self.enabled and self.should_retry_error(error)

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        """Build from a ``RetrySettings`` config section."""
        return cls(
            enabled=settings.enabled,
            max_retries=settings.max_retries,
            base_delay_ms=settings.base_delay_ms,
            max_delay_ms=settings.max_delay_ms,
            exponential=settings.exponential,
        )
