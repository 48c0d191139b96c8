"""
Bounded retry policy for backend calls.

A RetryPolicy is built once from configuration and injected into each
store adapter, which routes every backend call through execute().
Only failures accepted by the retryable predicate are retried; everything
else (validation, not found, programming errors) propagates immediately.
asyncio.CancelledError is a BaseException and is never intercepted.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from docgraph.utils.exceptions import TransientError
from docgraph.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def is_transient(error: BaseException) -> bool:
    """
    Default retryable-error predicate.

    Args:
        error: Exception raised by the operation

    Returns:
        True for TransientError subclasses, timeouts and connection errors
    """
    return isinstance(error, (TransientError, TimeoutError, asyncio.TimeoutError, ConnectionError))


class RetryPolicy:
    """
    Exponential backoff with optional jitter and a fixed attempt budget.

    Usage:
        policy = RetryPolicy(max_attempts=3, initial_delay=0.2)
        result = await policy.execute(lambda: client.search(...), "search")
    """

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 0.2,
        max_delay: float = 5.0,
        multiplier: float = 2.0,
        jitter: bool = True,
        retry_on: Callable[[BaseException], bool] | None = None,
    ):
        """
        Initialize retry policy.

        Args:
            max_attempts: Total attempts including the first call (>= 1)
            initial_delay: Delay in seconds before the first retry
            max_delay: Upper bound for any single delay
            multiplier: Backoff growth factor per attempt
            jitter: Randomize each delay within [delay / 2, delay]
            retry_on: Predicate deciding whether an error is retryable
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.multiplier = multiplier
        self.jitter = jitter
        self.retry_on = retry_on or is_transient

    @classmethod
    def from_config(cls, config) -> "RetryPolicy":
        """Build a policy from a RetryConfig section."""
        return cls(
            max_attempts=config.max_attempts,
            initial_delay=config.initial_delay,
            max_delay=config.max_delay,
            multiplier=config.multiplier,
            jitter=config.jitter,
        )

    @classmethod
    def no_retry(cls) -> "RetryPolicy":
        """Policy that makes a single attempt."""
        return cls(max_attempts=1, jitter=False)

    def compute_delay(self, attempt: int) -> float:
        """
        Delay before the retry following a failed attempt.

        Args:
            attempt: Zero-based index of the attempt that just failed

        Returns:
            Delay in seconds
        """
        delay = min(self.max_delay, self.initial_delay * (self.multiplier**attempt))
        if self.jitter:
            delay = random.uniform(delay / 2, delay)
        return delay

    async def execute(self, operation: Callable[[], Awaitable[T]], operation_name: str) -> T:
        """
        Run an async operation under this policy.

        Args:
            operation: Zero-argument callable returning an awaitable
            operation_name: Name for logging

        Returns:
            Result of the operation

        Raises:
            The last error once attempts are exhausted, or any
            non-retryable error immediately
        """
        for attempt in range(self.max_attempts):
            try:
                return await operation()
            except Exception as e:
                if not self.retry_on(e):
                    raise

                if attempt >= self.max_attempts - 1:
                    logger.bind(
                        operation=operation_name, error=str(e), error_type=type(e).__name__
                    ).error(f"{operation_name} failed after {self.max_attempts} attempts")
                    raise

                delay = self.compute_delay(attempt)
                logger.bind(
                    operation=operation_name, attempt=attempt + 1, error_type=type(e).__name__
                ).warning(
                    f"{operation_name} failed (attempt {attempt + 1}/{self.max_attempts}): {e}. "
                    f"Retrying in {delay:.2f}s..."
                )
                await asyncio.sleep(delay)

        raise RuntimeError("unreachable")  # pragma: no cover
