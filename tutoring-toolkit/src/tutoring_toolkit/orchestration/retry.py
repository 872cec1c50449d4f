"""
Exponential backoff for transient provider failures.

Only errors whose 'ErrorKind' is retryable (rate limited, overloaded) are
retried; everything else propagates on the first attempt. The sleep function
is injectable so callers (and tests) control how backoff suspends.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from loguru import logger
from pydantic import BaseModel, Field

from tutoring_toolkit.errors import classify_error

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


class RetryPolicy(BaseModel):
    """
    Attributes:
        max_attempts: Total number of attempts, including the first one.
        initial_delay: Seconds to wait before the second attempt.
        multiplier: Factor applied to the delay after every failed retry.
    """

    max_attempts: int = Field(default=4, ge=1)
    initial_delay: float = Field(default=2.0, gt=0)
    multiplier: float = Field(default=1.5, gt=1)

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number 'attempt' (1-based)."""
        return self.initial_delay * self.multiplier ** (attempt - 1)

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        return attempt < self.max_attempts and classify_error(error).retryable


DEFAULT_RETRY_POLICY = RetryPolicy()


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    sleep: Sleep = asyncio.sleep,
    label: str = "request",
) -> T:
    """Await 'operation()' until it succeeds, a non-transient error occurs, or attempts run out."""
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as e:
            if not policy.should_retry(e, attempt):
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                f"{label} failed with {classify_error(e)} (attempt {attempt}/{policy.max_attempts}), "
                f"retrying in {delay:.2f}s"
            )
            await sleep(delay)
            attempt += 1
