"""
Retry Backoff
=============
Bounded exponential backoff for operations that lose races or time out.
"""

import asyncio
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, FrozenSet, Optional, Type, TypeVar

import structlog

from .exceptions import RetryExhausted

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to retry which errors, and how long to wait between."""
    max_attempts: int = 3
    base_delay: float = 0.01
    max_delay: float = 0.5
    exponential_base: float = 2.0
    jitter: bool = True
    retry_on: FrozenSet[Type[BaseException]] = field(default_factory=lambda: frozenset({Exception}))

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        delay = min(self.base_delay * self.exponential_base ** (attempt - 1), self.max_delay)
        if self.jitter:
            delay *= 0.5 + random.random()
        return delay


async def retry_with_backoff(
    func: Callable[..., Awaitable[T]],
    *args,
    policy: Optional[RetryPolicy] = None,
    **kwargs,
) -> T:
    """
    Await ``func(*args, **kwargs)`` until it succeeds or the policy gives up.

    Only exceptions listed in ``policy.retry_on`` are retried; anything else
    propagates immediately.

    Raises:
        RetryExhausted: The last allowed attempt failed with a retryable error
    """
    policy = policy or RetryPolicy()
    retryable = tuple(policy.retry_on)
    attempt = 0

    while True:
        attempt += 1
        try:
            return await func(*args, **kwargs)
        except retryable as e:
            if attempt >= policy.max_attempts:
                logger.error(
                    "retry_exhausted",
                    operation=func.__name__,
                    attempts=attempt,
                    error=str(e),
                )
                raise RetryExhausted(
                    f"{func.__name__} gave up after {attempt} attempts: {e}",
                    attempts=attempt,
                    last_exception=e,
                ) from e

            delay = policy.delay_for(attempt)
            logger.warning(
                "retrying_after_failure",
                operation=func.__name__,
                attempt=attempt,
                delay=round(delay, 4),
                error_type=type(e).__name__,
            )
            await asyncio.sleep(delay)
