"""Resilience primitives for TeamCity REST calls.

- ``RetryPolicy`` / ``next_delay``: deterministic exponential backoff
- ``CircuitBreaker``: three-state breaker with an injectable clock
- ``TransportInvoker``: breaker gating plus retry around one logical call
"""

from teamcity_mcp.core.resilience.circuit_breaker import CircuitBreaker
from teamcity_mcp.core.resilience.invoker import TransportInvoker
from teamcity_mcp.core.resilience.models import (
    BreakerStats,
    CircuitState,
    ErrorClassification,
    Permit,
    RetryDecision,
    SleepFunc,
)
from teamcity_mcp.core.resilience.retry import (
    RetryPolicy,
    classify_error,
    default_should_retry,
    next_delay,
)

__all__ = [
    "BreakerStats",
    "CircuitBreaker",
    "CircuitState",
    "ErrorClassification",
    "Permit",
    "RetryDecision",
    "RetryPolicy",
    "SleepFunc",
    "TransportInvoker",
    "classify_error",
    "default_should_retry",
    "next_delay",
]
