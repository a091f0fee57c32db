"""Tests for the three-state circuit breaker."""

import logging

from teamcity_mcp.core.resilience import CircuitBreaker, CircuitState


def _tripped(clock, **kwargs) -> CircuitBreaker:
    breaker = CircuitBreaker(
        failure_threshold=kwargs.pop("failure_threshold", 2),
        reset_timeout_ms=kwargs.pop("reset_timeout_ms", 1000),
        success_threshold=kwargs.pop("success_threshold", 2),
        clock=clock,
    )
    for _ in range(breaker.failure_threshold):
        assert breaker.allow_request()
        breaker.record_failure()
    assert breaker.state == CircuitState.OPEN
    return breaker


class TestClosedState:
    """Tests for CLOSED behaviour."""

    def test_starts_closed_and_admits(self, clock):
        breaker = CircuitBreaker(clock=clock)
        assert breaker.state == CircuitState.CLOSED
        assert breaker.allow_request()

    def test_trips_at_threshold(self, clock):
        breaker = CircuitBreaker(failure_threshold=3, clock=clock)
        breaker.record_failure()
        breaker.record_failure()
        assert breaker.state == CircuitState.CLOSED
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN

    def test_success_in_closed_clears_failures(self, clock):
        """Only consecutive failures trip the breaker."""
        breaker = CircuitBreaker(failure_threshold=5, clock=clock)
        for _ in range(4):
            breaker.record_failure()
        breaker.record_success()
        assert breaker.failure_count == 0
        breaker.record_failure()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 1


class TestOpenState:
    def test_rejects_until_timeout(self, clock):
        breaker = _tripped(clock)
        assert not breaker.allow_request()
        clock.advance(0.5)
        assert not breaker.allow_request()
        assert breaker.stats().total_rejections == 2

    def test_retry_after_counts_down(self, clock):
        breaker = _tripped(clock, reset_timeout_ms=2000)
        clock.advance(0.5)
        assert breaker.retry_after() == 1.5
        clock.advance(5)
        assert breaker.retry_after() == 0.0

    def test_retry_after_none_when_closed(self, clock):
        assert CircuitBreaker(clock=clock).retry_after() is None

    def test_admits_probe_after_timeout(self, clock):
        breaker = _tripped(clock)
        clock.advance(1.0)
        assert breaker.allow_request()
        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.stats().probe_in_flight


class TestHalfOpenState:
    """Tests for probe handling in HALF_OPEN."""

    def test_single_probe_in_flight(self, clock):
        breaker = _tripped(clock)
        clock.advance(1.0)
        assert breaker.allow_request()
        assert not breaker.allow_request()

    def test_closes_after_success_threshold(self, clock):
        breaker = _tripped(clock, success_threshold=2)
        clock.advance(1.0)
        assert breaker.allow_request()
        breaker.record_success()
        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.allow_request()
        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    def test_failure_reopens_with_fresh_timer(self, clock):
        breaker = _tripped(clock)
        clock.advance(1.0)
        assert breaker.allow_request()
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN
        assert breaker.retry_after() == 1.0
        assert not breaker.allow_request()

    def test_release_frees_probe_slot(self, clock):
        breaker = _tripped(clock)
        clock.advance(1.0)
        assert breaker.allow_request()
        breaker.release()
        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.allow_request()


class TestPermits:
    """Outcomes are tied to the generation that admitted the call."""

    def test_stale_success_ignored_in_half_open(self, clock):
        breaker = CircuitBreaker(failure_threshold=1, reset_timeout_ms=1000, clock=clock)
        slow = breaker.acquire()
        breaker.record_failure(breaker.acquire())
        clock.advance(1.0)
        probe = breaker.acquire()
        assert probe.probe
        assert probe.generation > slow.generation

        breaker.record_success(slow)
        breaker.release(slow)
        assert breaker.stats().probe_in_flight
        assert breaker.stats().success_count == 0
        assert breaker.acquire() is None

    def test_stale_failure_does_not_reopen(self, clock):
        breaker = CircuitBreaker(failure_threshold=1, reset_timeout_ms=1000, clock=clock)
        slow = breaker.acquire()
        breaker.record_failure(breaker.acquire())
        clock.advance(1.0)
        breaker.acquire()
        breaker.record_failure(slow)
        assert breaker.state == CircuitState.HALF_OPEN

    def test_closed_permit_not_a_probe(self, clock):
        permit = CircuitBreaker(clock=clock).acquire()
        assert permit is not None
        assert not permit.probe


class TestManagement:
    def test_reset(self, clock):
        breaker = _tripped(clock)
        breaker.reset()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.allow_request()

    def test_stats_to_dict(self, clock):
        breaker = _tripped(clock, reset_timeout_ms=3000)
        data = breaker.stats().to_dict()
        assert data["state"] == "open"
        assert data["name"] == "teamcity"
        assert data["next_attempt_in_seconds"] == 3.0

    def test_transition_emits_audit_event(self, clock, caplog):
        caplog.set_level(logging.INFO, logger="teamcity_mcp.core.observability.audit")
        _tripped(clock)
        events = [r.audit for r in caplog.records if hasattr(r, "audit")]
        changes = [e for e in events if e["event_type"] == "circuit_state_change"]
        assert changes
        assert changes[-1]["details"]["new_state"] == "open"
