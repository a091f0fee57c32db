"""Tests for the retry policy and error classification."""

import httpx
import pytest

from teamcity_mcp.core.errors import (
    ClientError,
    NotFoundError,
    RateLimitedError,
    ServerError,
    TeamCityTimeoutError,
    TransientNetworkError,
)
from teamcity_mcp.core.resilience import RetryPolicy, classify_error, next_delay
from teamcity_mcp.core.resilience.retry import default_should_retry


class TestNextDelay:
    """Tests for next_delay."""

    def test_exponential_growth(self):
        delays = [next_delay(i, 100, 10_000).delay_ms for i in range(4)]
        assert delays == [100, 200, 400, 800]

    def test_capped_at_max_delay(self):
        assert next_delay(10, 1000, 5000).delay_ms == 5000

    def test_constant_when_not_exponential(self):
        delays = [next_delay(i, 250, 10_000, exponential=False).delay_ms for i in range(3)]
        assert delays == [250, 250, 250]

    def test_server_hint_replaces_delay_and_is_not_clamped(self):
        decision = next_delay(0, 100, 1000, server_hint_seconds=7)
        assert decision.delay_ms == 7000

    def test_budget(self):
        assert next_delay(2, 100, 1000, max_retries=3).should_retry
        assert not next_delay(3, 100, 1000, max_retries=3).should_retry

    def test_unlimited_budget(self):
        assert next_delay(100, 1, 10, max_retries=None).should_retry

    def test_attempt_index_echoed(self):
        assert next_delay(2, 100, 1000).attempt_index == 2


class TestRetryPolicy:
    def test_disabled_policy_never_retries(self):
        policy = RetryPolicy(enabled=False, max_retries=5)
        assert policy.budget == 0
        assert not policy.next_delay(0).should_retry
        assert not policy.should_retry(ServerError("boom", status_code=500))

    def test_custom_predicate(self):
        policy = RetryPolicy(should_retry_error=lambda exc: isinstance(exc, KeyError))
        assert policy.should_retry(KeyError("x"))
        assert not policy.should_retry(ServerError("boom"))

    def test_from_settings(self):
        from teamcity_mcp.config import RetrySettings

        policy = RetryPolicy.from_settings(
            RetrySettings(max_retries=1, base_delay_ms=5, max_delay_ms=50, exponential=False)
        )
        assert policy.max_retries == 1
        assert policy.next_delay(3).delay_ms == 5


class TestDefaultShouldRetry:
    """Which errors are retryable."""

    @pytest.mark.parametrize(
        "error",
        [
            ServerError("boom", status_code=503),
            TransientNetworkError(),
            TeamCityTimeoutError(30),
            RateLimitedError(retry_after=2),
            httpx.ConnectTimeout("slow"),
            ConnectionError("reset"),
            TimeoutError(),
        ],
    )
    def test_retryable(self, error):
        assert default_should_retry(error)

    @pytest.mark.parametrize(
        "error",
        [
            ClientError("bad", status_code=400),
            NotFoundError("Project", "Missing"),
            ValueError("nope"),
        ],
    )
    def test_not_retryable(self, error):
        assert not default_should_retry(error)


class TestClassifyError:
    def test_client_error_does_not_trip(self):
        classification = classify_error(NotFoundError("Project", "X"))
        assert not classification.retryable
        assert not classification.trips_breaker
        assert classification.error_type == "client_error"

    def test_rate_limit_carries_backoff(self):
        classification = classify_error(RateLimitedError(retry_after=3))
        assert classification.retryable
        assert classification.trips_breaker
        assert classification.backoff_seconds == 3

    def test_unknown_error_trips(self):
        classification = classify_error(RuntimeError("x"))
        assert not classification.retryable
        assert classification.trips_breaker
        assert classification.error_type == "unknown"
