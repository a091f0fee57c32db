"""Resilience data models, enums, and protocols.

Defines the core types used across the resilience sub-package:
- CircuitState enum for breaker states
- RetryDecision for the retry policy's verdict on one failed attempt
- ErrorClassification for retry/circuit-breaker decisions
- Permit for tying a reported outcome to the admission it came from
- BreakerStats for observability
- SleepFunc and Clock for injectable time
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol


class CircuitState(str, Enum):
    """State of a circuit breaker."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class RetryDecision:
    """Outcome of asking the retry policy about one failed attempt.

    ``delay_ms`` is only meaningful when ``should_retry`` is true.
    ``attempt_index`` is zero-based: the first failed attempt is 0.
    """

    should_retry: bool
    delay_ms: int
    attempt_index: int


@dataclass
class ErrorClassification:
    """Classification result for an error.

    Determines how the transport invoker handles a specific error.
    """

    retryable: bool
    trips_breaker: bool
    backoff_seconds: Optional[float] = None
    error_type: str = "unknown"


@dataclass(frozen=True)
class Permit:
    """Admission ticket handed out by ``CircuitBreaker.acquire``.

    ``generation`` identifies the breaker state the call was admitted
    under; outcomes reported with an older generation are ignored.
    ``probe`` marks the call admitted in HALF_OPEN.
    """

    generation: int
    probe: bool = False


@dataclass(frozen=True)
class BreakerStats:
    """Point-in-time snapshot of a circuit breaker."""

    name: str
    state: CircuitState
    failure_count: int
    success_count: int
    opened_at: Optional[float]
    next_attempt_in: Optional[float]
    probe_in_flight: bool
    total_rejections: int

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "success_count": self.success_count,
            "next_attempt_in_seconds": (
                round(self.next_attempt_in, 3) if self.next_attempt_in is not None else None
            ),
            "probe_in_flight": self.probe_in_flight,
            "total_rejections": self.total_rejections,
        }


class SleepFunc(Protocol):
    """Protocol for injectable sleep function."""

    async def __call__(self, seconds: float) -> None: ...


Clock = Callable[[], float]
