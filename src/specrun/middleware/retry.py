"""Retry middleware with pluggable backoff between attempts.

A Failed result is retried; Passed, Pending and Skipped results return
immediately.  ``RetryMiddleware(n)`` allows one initial attempt plus up to
``n`` retries.  Exceptions from ``next_`` (hook failures, cancellation) are
never retried.

Example:
    >>> from specrun.middleware.retry import RetryMiddleware, ExponentialBackoff
    >>>
    >>> retry = RetryMiddleware(3, backoff=ExponentialBackoff(base_delay=0.1))
    >>> for attempt in range(3):
    ...     print(f"Retry {attempt}: wait ~{retry.backoff.next_delay(attempt):.2f}s")
"""

from __future__ import annotations

import asyncio
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass

from specrun.core.errors import ConfigurationError
from specrun.core.logging import get_logger
from specrun.execution.result import SpecResult, SpecStatus
from specrun.middleware.base import Next, SpecExecutionContext, SpecMiddleware

logger = get_logger(__name__)


class BackoffStrategy(ABC):
    """Abstract base for delays between retry attempts."""

    @abstractmethod
    def next_delay(self, attempt: int) -> float:
        """Calculate delay before the next attempt.

        Args:
            attempt: Zero-based retry number (0 = first retry)

        Returns:
            Delay in seconds before next attempt
        """
        ...


@dataclass
class ExponentialBackoff(BackoffStrategy):
    """Exponential backoff with optional jitter.

    Delay = min(base_delay * (multiplier ** attempt), max_delay) + jitter

    Attributes:
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap in seconds
        multiplier: Exponential multiplier (default: 2)
        jitter: Add randomness so retried specs don't wake in lockstep
        jitter_range: Range of jitter as fraction of delay (0.0-1.0)
    """

    base_delay: float = 0.1
    max_delay: float = 5.0
    multiplier: float = 2.0
    jitter: bool = True
    jitter_range: float = 0.25

    def next_delay(self, attempt: int) -> float:
        delay = min(self.base_delay * (self.multiplier**attempt), self.max_delay)
        if self.jitter:
            jitter_amount = delay * self.jitter_range
            delay += random.uniform(-jitter_amount, jitter_amount)
            delay = max(0, delay)
        return delay


@dataclass
class LinearBackoff(BackoffStrategy):
    """Delay = base_delay + (increment * attempt), capped at max_delay."""

    base_delay: float = 0.1
    increment: float = 0.1
    max_delay: float = 5.0

    def next_delay(self, attempt: int) -> float:
        return min(self.base_delay + (self.increment * attempt), self.max_delay)


@dataclass
class ConstantBackoff(BackoffStrategy):
    """Constant delay between attempts."""

    delay: float = 0.1

    def next_delay(self, attempt: int) -> float:
        return self.delay


@dataclass
class NoDelay(BackoffStrategy):
    """Retry immediately."""

    def next_delay(self, attempt: int) -> float:
        return 0.0


class RetryMiddleware(SpecMiddleware):
    """Re-run failed specs.

    Args:
        max_retries: Extra attempts after the first (must be >= 0)
        backoff: Delay policy between attempts (default: no delay)
        retry_on: Only retry when the failure is one of these exception
            types (default: any failure)

    Shared state read by the spec body (e.g. an attempt counter) is seen
    across attempts because the same body is invoked each time.  When more
    than one attempt ran, the returned result carries ``RetryInfo``.
    """

    def __init__(
        self,
        max_retries: int,
        backoff: BackoffStrategy | None = None,
        retry_on: tuple[type[BaseException], ...] | None = None,
    ):
        if max_retries < 0:
            raise ConfigurationError(f"max_retries must be >= 0, got {max_retries}")
        self._max_retries = max_retries
        self._backoff = backoff or NoDelay()
        self._retry_on = retry_on

    @property
    def max_retries(self) -> int:
        return self._max_retries

    @property
    def backoff(self) -> BackoffStrategy:
        return self._backoff

    def _should_retry(self, result: SpecResult, attempts: int) -> bool:
        if result.status is not SpecStatus.FAILED or attempts > self._max_retries:
            return False
        if self._retry_on is not None and result.error is not None:
            return isinstance(result.error, self._retry_on)
        return True

    async def execute(self, ctx: SpecExecutionContext, next_: Next) -> SpecResult:
        attempts = 0
        while True:
            attempts += 1
            result = await next_(ctx)
            if not self._should_retry(result, attempts):
                break

            delay = self._backoff.next_delay(attempts - 1)
            logger.info(
                "middleware.retry.attempt",
                spec=ctx.full_description,
                attempt=attempts,
                max_retries=self._max_retries,
                delay=round(delay, 3),
                error=str(result.error),
            )
            if delay > 0:
                await asyncio.sleep(delay)
            ctx.token.raise_if_cancelled()

        if attempts > 1:
            if result.status is SpecStatus.FAILED:
                logger.warning(
                    "middleware.retry.exhausted",
                    spec=ctx.full_description,
                    attempts=attempts,
                )
            result = result.with_retry_info(attempts, self._max_retries)
        return result

    def __repr__(self) -> str:
        return f"RetryMiddleware(max_retries={self._max_retries}, backoff={self._backoff!r})"


__all__ = [
    "BackoffStrategy",
    "ConstantBackoff",
    "ExponentialBackoff",
    "LinearBackoff",
    "NoDelay",
    "RetryMiddleware",
]
