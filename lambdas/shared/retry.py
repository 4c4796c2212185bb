"""Retry with capped exponential backoff and jitter."""

import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from aws_lambda_powertools import Logger

logger = Logger(child=True)

T = TypeVar("T")


def jitter_factor(rng: random.Random, spread: float) -> float:
    """Uniform multiplier in [1 - spread, 1 + spread]."""
    return 1 - spread + rng.random() * (2 * spread)


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how long to wait when retrying a fallible call."""

    max_attempts: int = 4
    base_delay: float = 0.6
    multiplier: float = 2.0
    max_delay: float = 15.0
    jitter: float = 0.3

    def backoff(self, attempt: int, rng: random.Random) -> float:
        """Delay in seconds after the given failed attempt (1-based)."""
        delay = self.base_delay * (self.multiplier ** (attempt - 1))
        return min(self.max_delay, delay * jitter_factor(rng, self.jitter))


PROVIDER_RETRY_POLICY = RetryPolicy()


def call_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    is_retryable: Callable[[Exception], bool],
    sleep: Callable[[float], None] = time.sleep,
    rng: random.Random | None = None,
    on_retry: Callable[[int, Exception, float], None] | None = None,
) -> T:
    """Run operation, retrying retryable failures.

    Args:
        operation: Zero-argument callable to run
        policy: Attempt ceiling and backoff shape
        is_retryable: Classifies a raised exception
        sleep: Called with the backoff delay in seconds
        rng: Random source for jitter
        on_retry: Called with (attempt, error, delay) before each wait

    Returns:
        The operation's result

    Raises:
        Exception: The first non-retryable error, or the last error once
            attempts are exhausted
    """
    rng = rng or random.Random()
    attempt = 1
    while True:
        try:
            return operation()
        except Exception as e:
            if not is_retryable(e):
                raise
            if attempt >= policy.max_attempts:
                logger.warning(
                    "Retries exhausted",
                    extra={"attempts": attempt, "error": str(e)},
                )
                raise
            delay = policy.backoff(attempt, rng)
            logger.warning(
                "Retrying after transient failure",
                extra={
                    "attempt": attempt,
                    "max_attempts": policy.max_attempts,
                    "delay_seconds": round(delay, 3),
                    "error": str(e),
                },
            )
            if on_retry is not None:
                on_retry(attempt, e, delay)
            sleep(delay)
            attempt += 1
