"""Service for executing lookup calls with automatic retries.

Implements exponential backoff with jitter for transient errors such as rate
limits (429), server errors (5xx), timeouts and connection failures. Rate
limits back off from a larger base delay than other retryable errors.
Classified terminal failures are returned as an error outcome; anything
outside the lookup error taxonomy propagates to the caller untouched.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from namesweep.domain.exceptions import LookupFailure, RateLimitedError
from namesweep.domain.models.common import BackoffPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BACKOFF_POLICY = BackoffPolicy(
    max_retries=5,
    rate_limit_base=1.0,
    base=0.3,
    jitter=0.5,
    max_delay=60.0,
)


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    """Result of a retried operation: either a value or the last error description."""
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    attempts: int = 0


class RetryController:
    """Wraps one fallible async operation with bounded exponential-backoff retry."""

    def __init__(
        self,
        policy: BackoffPolicy = DEFAULT_BACKOFF_POLICY,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
        label: str = "lookup",
    ):
        """Initializes the RetryController.

        Args:
            policy: Retry limit and backoff parameters.
            sleep: Awaitable used to wait between attempts (injectable for tests).
            rng: Random source for jitter.
            label: Name used in log messages (e.g., the worker id).
        """
        self.policy = policy
        self._sleep = sleep
        self._rng = rng or random.Random()
        self.label = label

    def backoff_delay(self, error: LookupFailure, attempt: int) -> float:
        """Computes the delay before retry number ``attempt + 1``.

        Args:
            error: The failure that triggered the retry.
            attempt: Zero-based index of the attempt that just failed.
        """
        is_rate_limit = isinstance(error, RateLimitedError)
        base = self.policy["rate_limit_base"] if is_rate_limit else self.policy["base"]
        delay = base * (2 ** attempt) + self._rng.uniform(0, self.policy["jitter"])
        if is_rate_limit and error.retry_after:
            delay = max(delay, error.retry_after)
        return min(delay, self.policy["max_delay"])

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        description: str = "",
    ) -> RetryOutcome[T]:
        """Executes ``operation`` with up to ``max_retries`` additional attempts.

        Args:
            operation: Zero-argument coroutine factory performing one attempt.
            description: What is being attempted, for logging.

        Returns:
            RetryOutcome with the value on success, or the last error description.

        Raises:
            Exception: Anything that is not a LookupFailure (unexpected fault).
        """
        max_retries = self.policy["max_retries"]
        last_error: Optional[LookupFailure] = None

        for attempt in range(max_retries + 1):
            try:
                value = await operation()
                if attempt:
                    logger.debug(f"[{self.label}] {description} succeeded on attempt {attempt + 1}")
                return RetryOutcome(ok=True, value=value, attempts=attempt + 1)
            except LookupFailure as e:
                last_error = e
                if not e.retryable:
                    logger.debug(f"[{self.label}] {description} failed with non-retryable error: {e}")
                    return RetryOutcome(ok=False, error=str(e), attempts=attempt + 1)
                if attempt == max_retries:
                    break
                delay = self.backoff_delay(e, attempt)
                logger.warning(
                    f"[{self.label}] Retryable error for {description} on attempt "
                    f"{attempt + 1}/{max_retries + 1}: {e}. Waiting {delay:.2f}s..."
                )
                await self._sleep(delay)

        logger.info(f"[{self.label}] Max retries ({max_retries}) reached for {description}. Last error: {last_error}")
        return RetryOutcome(
            ok=False,
            error=str(last_error) if last_error else "Max retries",
            attempts=max_retries + 1,
        )
