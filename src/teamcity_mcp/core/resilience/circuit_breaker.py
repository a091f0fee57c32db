"""Circuit breaker guarding the TeamCity transport.

States:
- CLOSED: normal operation, consecutive failures counted; a success
  clears the count
- OPEN: reject every call until the reset timeout elapses
- HALF_OPEN: one probe at a time; ``success_threshold`` consecutive
  successes close the circuit, any failure re-opens it

Every state transition starts a new generation. ``acquire()`` stamps the
admitted call with the current generation, and an outcome reported with a
stale permit (a slow call admitted before the breaker tripped) is ignored,
so only the probe can move the breaker out of HALF_OPEN.

The breaker is an explicit object. Whoever builds the transport invoker
owns it and passes it by reference; there is no module-level instance.

Usage:
    breaker = CircuitBreaker(failure_threshold=5, reset_timeout_ms=60000)

    permit = breaker.acquire()
    if permit is None:
        raise CircuitOpenError(...)
    try:
        result = await do_request()
    except Exception:
        breaker.record_failure(permit)
        raise
    breaker.record_success(permit)
"""

import logging
import threading
import time
from typing import Optional

from teamcity_mcp.core.observability import audit_log
from teamcity_mcp.core.resilience.models import BreakerStats, CircuitState, Clock, Permit

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """Thread-safe three-state circuit breaker with an injectable clock.

    Every read-modify-write of state and counters happens under one lock,
    and ``stats()`` returns a consistent snapshot.
    """

    def __init__(
        self,
        name: str = "teamcity",
        *,
        failure_threshold: int = 5,
        reset_timeout_ms: int = 60000,
        success_threshold: int = 2,
        clock: Optional[Clock] = None,
    ):
        """Initialize circuit breaker.

        Args:
            name: Label used in logs, audit events, and errors
            failure_threshold: Failures in CLOSED that trip the breaker
            reset_timeout_ms: Time in OPEN before a probe is admitted
            success_threshold: Probe successes in HALF_OPEN that close it
            clock: Monotonic clock returning seconds (``time.monotonic``)
        """
        self.name = name
        self.failure_threshold = max(1, failure_threshold)
        self.reset_timeout_ms = max(0, reset_timeout_ms)
        self.success_threshold = max(1, success_threshold)
        self._clock: Clock = clock or time.monotonic
        self._lock = threading.Lock()

        self._state = CircuitState.CLOSED
        self._generation = 0
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: Optional[float] = None
        self._probe_in_flight = False
        self._total_rejections = 0

    @classmethod
    def from_settings(cls, settings, *, name: str = "teamcity", clock: Optional[Clock] = None):
        """Build from a ``CircuitBreakerSettings`` config section."""
        return cls(
            name,
            failure_threshold=settings.failure_threshold,
            reset_timeout_ms=settings.reset_timeout_ms,
            success_threshold=settings.success_threshold,
            clock=clock,
        )

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    def acquire(self) -> Optional[Permit]:
        """Admit a call, returning its permit, or None when rejected.

        In OPEN, once the reset timeout has elapsed the caller becomes the
        probe and the breaker moves to HALF_OPEN before the call executes.
        While a probe is in flight every other caller is rejected.
        """
        with self._lock:
            if self._state == CircuitState.CLOSED:
                return Permit(self._generation)

            if self._state == CircuitState.OPEN:
                if self._reset_timeout_elapsed():
                    self._transition(CircuitState.HALF_OPEN)
                    self._probe_in_flight = True
                    return Permit(self._generation, probe=True)
                self._total_rejections += 1
                return None

            if self._probe_in_flight:
                self._total_rejections += 1
                return None
            self._probe_in_flight = True
            return Permit(self._generation, probe=True)

    def allow_request(self) -> bool:
        """Decide whether a call may proceed, discarding the permit.

        Outcomes for calls admitted this way are reported without a permit
        and are applied to the current state.
        """
        return self.acquire() is not None

    def record_success(self, permit: Optional[Permit] = None) -> None:
        """Report a successful logical call.

        In CLOSED a success clears the consecutive failure count.
        """
        with self._lock:
            if self._is_stale(permit, "success"):
                return
            if self._state == CircuitState.CLOSED:
                self._failure_count = 0
            elif self._state == CircuitState.HALF_OPEN:
                self._probe_in_flight = False
                self._success_count += 1
                if self._success_count >= self.success_threshold:
                    self._transition(CircuitState.CLOSED)

    def record_failure(self, permit: Optional[Permit] = None) -> None:
        """Report a failed logical call."""
        with self._lock:
            if self._is_stale(permit, "failure"):
                return
            if self._state == CircuitState.HALF_OPEN:
                self._probe_in_flight = False
                self._transition(CircuitState.OPEN)
            elif self._state == CircuitState.CLOSED:
                self._failure_count += 1
                if self._failure_count >= self.failure_threshold:
                    self._transition(CircuitState.OPEN)

    def release(self, permit: Optional[Permit] = None) -> None:
        """Free the probe slot without counting an outcome.

        Used when an admitted call ended for reasons that say nothing about
        upstream health (a 404, a cancellation). A stale or non-probe permit
        leaves the slot alone.
        """
        with self._lock:
            if permit is None or (permit.probe and permit.generation == self._generation):
                self._probe_in_flight = False

    def retry_after(self) -> Optional[float]:
        """Seconds until a probe would be admitted, or None if not OPEN."""
        with self._lock:
            return self._retry_after_locked()

    def reset(self) -> None:
        """Force the breaker back to CLOSED."""
        with self._lock:
            self._probe_in_flight = False
            if self._state != CircuitState.CLOSED:
                self._transition(CircuitState.CLOSED, reason="manual_reset")

    def stats(self) -> BreakerStats:
        with self._lock:
            return BreakerStats(
                name=self.name,
                state=self._state,
                failure_count=self._failure_count,
                success_count=self._success_count,
                opened_at=self._opened_at,
                next_attempt_in=self._retry_after_locked(),
                probe_in_flight=self._probe_in_flight,
                total_rejections=self._total_rejections,
            )

    def _is_stale(self, permit: Optional[Permit], outcome: str) -> bool:
        if permit is None or permit.generation == self._generation:
            return False
        logger.debug(
            "Circuit breaker '%s' ignoring %s from generation %d (current %d)",
            self.name,
            outcome,
            permit.generation,
            self._generation,
        )
        return True

    def _reset_timeout_elapsed(self) -> bool:
        if self._opened_at is None:
            return True
        return (self._clock() - self._opened_at) * 1000 >= self.reset_timeout_ms

    def _retry_after_locked(self) -> Optional[float]:
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return None
        remaining = self.reset_timeout_ms / 1000 - (self._clock() - self._opened_at)
        return max(0.0, remaining)

    def _transition(self, new_state: CircuitState, reason: Optional[str] = None) -> None:
        old_state = self._state
        self._state = new_state
        self._generation += 1
        self._failure_count = 0
        self._success_count = 0
        if new_state == CircuitState.OPEN:
            self._opened_at = self._clock()
        elif new_state == CircuitState.CLOSED:
            self._opened_at = None

        log = logger.warning if new_state == CircuitState.OPEN else logger.info
        log(
            "Circuit breaker '%s' %s -> %s",
            self.name,
            old_state.value,
            new_state.value,
        )
        audit_log(
            "circuit_state_change",
            breaker=self.name,
            old_state=old_state.value,
            new_state=new_state.value,
            reason=reason or new_state.value,
        )
