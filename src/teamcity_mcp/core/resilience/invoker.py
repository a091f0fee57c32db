"""Transport invoker: circuit breaker gating plus retry around one logical call.

Execution order:
1. Check the circuit breaker once (fail fast with CircuitOpenError)
2. Run the operation
3. On a retryable failure, wait the policy's delay and run it again
4. Report exactly one outcome to the breaker for the whole logical call

Reporting once per logical call keeps the breaker's counters meaningful per
caller request. One caller's retries cannot trip the breaker on their own.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from teamcity_mcp.core.errors.resilience import CircuitOpenError
from teamcity_mcp.core.observability import audit_log, get_metrics
from teamcity_mcp.core.resilience.circuit_breaker import CircuitBreaker
from teamcity_mcp.core.resilience.models import Clock, ErrorClassification, Permit, SleepFunc
from teamcity_mcp.core.resilience.retry import RetryPolicy, classify_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TransportInvoker:
    """Wraps remote calls with circuit breaker gating and retry.

    The invoker owns its breaker. Engines that share an invoker share the
    breaker, which is the only state shared across concurrent calls.

    Example:
        >>> invoker = TransportInvoker(RetryPolicy(), CircuitBreaker())
        >>> payload = await invoker.invoke(lambda: client.get_json("/app/rest/projects"))

    Testing example:
        >>> delays = []
        >>> async def fake_sleep(s): delays.append(s)
        >>> invoker = TransportInvoker(RetryPolicy(), CircuitBreaker(), sleep=fake_sleep)
    """

    def __init__(
        self,
        retry_policy: Optional[RetryPolicy] = None,
        breaker: Optional[CircuitBreaker] = None,
        *,
        sleep: Optional[SleepFunc] = None,
        classify: Optional[Callable[[BaseException], ErrorClassification]] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize the invoker.

        Args:
            retry_policy: Retry settings (defaults to ``RetryPolicy()``)
            breaker: Circuit breaker; None disables gating
            sleep: Async sleep used between attempts (``asyncio.sleep``)
            classify: Error classifier deciding which failures trip the breaker
            clock: Clock used for elapsed-time metadata (``time.monotonic``)
        """
        self.retry_policy = retry_policy or RetryPolicy()
        self.breaker = breaker
        self._sleep = sleep or asyncio.sleep
        self._classify = classify or classify_error
        self._clock: Clock = clock or time.monotonic

    async def invoke(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        operation_name: str = "request",
    ) -> T:
        """Run ``operation`` with breaker gating and retry.

        Args:
            operation: Zero-argument coroutine factory, called once per attempt
            operation_name: Label for logs and audit events

        Returns:
            The operation's result

        Raises:
            CircuitOpenError: The breaker rejected the call; ``operation``
                was not run and no retry was consumed.
            Exception: The last error, unchanged, once retries are exhausted
                or the error is not retryable. It is stamped with ``attempts``
                and ``elapsed_seconds`` before being raised.
        """
        permit = self._check_gate(operation_name)

        start = self._clock()
        attempt = 0
        last_error: Optional[Exception] = None
        last_classification: Optional[ErrorClassification] = None

        while True:
            try:
                result = await operation()
            except Exception as exc:
                last_error = exc
                last_classification = self._classify(exc)
            except BaseException:
                self._release(permit)
                raise
            else:
                if self.breaker is not None:
                    self.breaker.record_success(permit)
                if attempt:
                    logger.info("%s succeeded after %d attempts", operation_name, attempt + 1)
                return result

            retryable = self.retry_policy.should_retry(last_error)
            decision = self.retry_policy.next_delay(attempt, last_classification.backoff_seconds)
            if not retryable or not decision.should_retry:
                break

            logger.warning(
                "%s attempt %d failed (%s); retrying in %dms",
                operation_name,
                attempt + 1,
                last_classification.error_type,
                decision.delay_ms,
            )
            audit_log(
                "retry_attempt",
                operation=operation_name,
                attempt=attempt + 1,
                max_attempts=self.retry_policy.budget + 1,
                delay_ms=decision.delay_ms,
                error_type=last_classification.error_type,
                error_message=str(last_error)[:200],
            )
            get_metrics().counter("retry.attempts", labels={"operation": operation_name})

            try:
                await self._sleep(decision.delay_ms / 1000)
            except BaseException:
                self._report_failure(last_classification, permit)
                raise
            attempt += 1

        attempts = attempt + 1
        elapsed = self._clock() - start
        self._report_failure(last_classification, permit)

        last_error.attempts = attempts
        last_error.elapsed_seconds = elapsed

        if retryable and attempts > 1:
            logger.error(
                "%s failed after %d attempts in %.2fs: %s",
                operation_name,
                attempts,
                elapsed,
                last_error,
            )
            audit_log(
                "retry_exhausted",
                operation=operation_name,
                attempts=attempts,
                elapsed_ms=int(elapsed * 1000),
                error_type=last_classification.error_type,
            )
        else:
            logger.warning("%s failed: %s", operation_name, last_error)

        raise last_error

    def _check_gate(self, operation_name: str) -> Optional[Permit]:
        if self.breaker is None:
            return None
        permit = self.breaker.acquire()
        if permit is not None:
            return permit

        retry_after = self.breaker.retry_after()
        audit_log(
            "circuit_rejected",
            breaker=self.breaker.name,
            operation=operation_name,
            retry_after=retry_after,
        )
        get_metrics().counter("circuit.rejections", labels={"breaker": self.breaker.name})
        raise CircuitOpenError(
            f"Circuit breaker '{self.breaker.name}' is open",
            breaker_name=self.breaker.name,
            state=self.breaker.state,
            retry_after=retry_after,
        )

    def _report_failure(self, classification: ErrorClassification, permit: Optional[Permit]) -> None:
        if self.breaker is None:
            return
        if classification.trips_breaker:
            self.breaker.record_failure(permit)
        else:
            self.breaker.release(permit)

    def _release(self, permit: Optional[Permit]) -> None:
        if self.breaker is not None:
            self.breaker.release(permit)
