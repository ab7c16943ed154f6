"""Retry strategies for resilient delivery.

Telemetry delivery uses a constant delay between a bounded number of
attempts: one initial try plus ``max_retries`` retries.

Example:
    >>> from studio.core.retry import ConstantBackoff, RetryContext
    >>>
    >>> ctx = RetryContext(ConstantBackoff(max_retries=2, delay=3.0))
    >>> response = await ctx.run_async(post_snapshot)
    >>> ctx.attempts
    1
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, TypeVar

from studio.core.timestamps import utc_now

T = TypeVar("T")


class RetryStrategy(ABC):
    """Abstract base for retry strategies."""

    @abstractmethod
    def next_delay(self, retry: int) -> float:
        """Calculate delay before the given retry.

        Args:
            retry: Zero-based retry number (0 = first retry)

        Returns:
            Delay in seconds before next attempt
        """
        ...

    @abstractmethod
    def should_retry(self, retries_done: int, error: Exception | None = None) -> bool:
        """Determine if another retry should be attempted.

        Args:
            retries_done: Retries already performed (0 after the first attempt)
            error: The exception that caused the failure

        Returns:
            True if should retry, False otherwise
        """
        ...


@dataclass
class ConstantBackoff(RetryStrategy):
    """Constant delay between retries.

    Attributes:
        max_retries: Retries after the initial attempt
        delay: Seconds to wait before each retry
        retryable_errors: Exception types that are retryable (None = all)
    """

    max_retries: int = 2
    delay: float = 3.0
    retryable_errors: tuple[type[BaseException], ...] | None = None

    def next_delay(self, retry: int) -> float:
        """Return constant delay."""
        return self.delay

    def should_retry(self, retries_done: int, error: Exception | None = None) -> bool:
        """Check if retry should be attempted."""
        if retries_done >= self.max_retries:
            return False
        if error is not None and self.retryable_errors is not None:
            return isinstance(error, self.retryable_errors)
        return True


@dataclass
class NoRetry(RetryStrategy):
    """No retry - fail immediately."""

    def next_delay(self, retry: int) -> float:
        return 0.0

    def should_retry(self, retries_done: int, error: Exception | None = None) -> bool:
        return False


@dataclass
class RetryContext:
    """Context tracking retry state for one delivery.

    ``sleep`` is the awaitable used between attempts; tests substitute a
    recorder to observe delays without waiting.

    Example:
        >>> ctx = RetryContext(ConstantBackoff(max_retries=2, delay=0.5))
        >>> result = await ctx.run_async(send)
    """

    strategy: RetryStrategy
    on_retry: Callable[[int, Exception, float], None] | None = None
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    attempt: int = field(default=0, init=False)
    last_error: Exception | None = field(default=None, init=False)
    started_at: datetime = field(default_factory=utc_now, init=False)
    errors: list[tuple[int, Exception, datetime]] = field(default_factory=list, init=False)

    @property
    def attempts(self) -> int:
        """Number of attempts made."""
        return self.attempt

    @property
    def elapsed_seconds(self) -> float:
        """Total elapsed time since the context was created."""
        return (utc_now() - self.started_at).total_seconds()

    async def run_async(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Execute an async function with retry logic.

        Returns:
            Result from the first successful call

        Raises:
            Last exception if all retries are exhausted
        """
        while True:
            self.attempt += 1
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                self.last_error = e
                self.errors.append((self.attempt, e, utc_now()))

                retries_done = self.attempt - 1
                if not self.strategy.should_retry(retries_done, e):
                    raise

                delay = self.strategy.next_delay(retries_done)

                if self.on_retry:
                    self.on_retry(self.attempt, e, delay)

                await self.sleep(delay)
