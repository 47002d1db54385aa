"""Retry policy for model calls.

Only rate-limit failures are retried. The policy walks an explicit state
machine (ATTEMPT -> BACKOFF -> ATTEMPT ... -> EXHAUSTED) and takes its sleep
and jitter functions as arguments so tests can drive it deterministically.
"""

import asyncio
import logging
import random
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar
from .base import is_rate_limit_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryState(str, Enum):
    """States of a retried call."""
    ATTEMPT = "attempt"
    BACKOFF = "backoff"
    EXHAUSTED = "exhausted"


class RetryExhaustedError(Exception):
    """Raised when every allowed attempt hit a rate limit."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Max retries exceeded for API call after {attempts} attempts: {last_error}")


class RetryPolicy:
    """Exponential backoff with jitter for rate-limited calls."""

    def __init__(
        self,
        max_retries: int = 5,
        base_delay: float = 1.0,
        max_jitter: float = 1.0,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        jitter: Optional[Callable[[], float]] = None,
        is_retryable: Callable[[BaseException], bool] = is_rate_limit_error,
        on_retry: Optional[Callable[[int, int, float, BaseException], None]] = None,
    ):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_jitter = max_jitter
        self.sleep = sleep or asyncio.sleep
        self.jitter = jitter or (lambda: random.uniform(0, self.max_jitter))
        self.is_retryable = is_retryable
        self.on_retry = on_retry

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number ``attempt + 1`` (attempt is zero-based)."""
        return self.base_delay * (2 ** attempt) + self.jitter()

    async def run(self, operation: Callable[[], Awaitable[T]], verbose: bool = True) -> T:
        """Run ``operation`` until it succeeds, fails hard, or retries run out.

        Args:
            operation: Zero-argument coroutine factory, called once per attempt
            verbose: Report each backoff through ``on_retry``

        Returns:
            The operation's result

        Raises:
            RetryExhaustedError: Every attempt was rate limited
            Exception: Any non-retryable error, unchanged
        """
        state = RetryState.ATTEMPT
        attempt = 0
        last_error: Optional[BaseException] = None

        while True:
            if state is RetryState.ATTEMPT:
                try:
                    return await operation()
                except Exception as e:
                    if not self.is_retryable(e):
                        raise
                    last_error = e
                    state = RetryState.BACKOFF if attempt < self.max_retries else RetryState.EXHAUSTED

            elif state is RetryState.BACKOFF:
                delay = self.delay_for(attempt)
                if verbose and self.on_retry:
                    self.on_retry(attempt + 1, self.max_retries, delay, last_error)
                else:
                    logger.debug(
                        "Rate limited, retrying in %.1fs (attempt %d/%d)",
                        delay, attempt + 1, self.max_retries,
                    )
                await self.sleep(delay)
                attempt += 1
                state = RetryState.ATTEMPT

            else:
                raise RetryExhaustedError(attempt + 1, last_error) from last_error
