"""Per-spec timeout enforcement.

Architecture:
    ::

        TimeoutMiddleware(timeout_ms)
          │
          ├── child = ctx.token.linked(), cancelled at the deadline
          ├── async with asyncio.timeout(seconds):
          │       await next_(ctx.with_token(child))
          │
          ├── in time   → result returned untouched
          └── expired   → child.cancel()
                          run token cancelled?  → RunCancelledError
                          otherwise             → Failed(SpecTimeoutError)

    The inner unit is abandoned, not killed.  An async body is cancelled at
    its next await; a synchronous body keeps running in its worker thread
    and can notice ``current_token().cancelled`` to stop early.  The
    after-each cascade still runs as the cancellation unwinds, and sees the
    child token already cancelled.

Example:
    >>> runner = SpecRunnerBuilder().with_timeout(500).build()
"""

from __future__ import annotations

import asyncio
import time

from specrun.core.cancellation import RunCancelledError
from specrun.core.errors import ConfigurationError, SpecTimeoutError
from specrun.core.logging import get_logger
from specrun.execution.result import SpecResult
from specrun.middleware.base import Next, SpecExecutionContext, SpecMiddleware

logger = get_logger(__name__)


class TimeoutMiddleware(SpecMiddleware):
    """Fail specs that run longer than ``timeout_ms`` milliseconds.

    Args:
        timeout_ms: Deadline in milliseconds; must be > 0
    """

    def __init__(self, timeout_ms: float):
        if timeout_ms <= 0:
            raise ConfigurationError(f"timeout_ms must be > 0, got {timeout_ms}")
        self._timeout_ms = timeout_ms

    @property
    def timeout_ms(self) -> float:
        return self._timeout_ms

    @property
    def seconds(self) -> float:
        return self._timeout_ms / 1000

    async def execute(self, ctx: SpecExecutionContext, next_: Next) -> SpecResult:
        child = ctx.token.linked()
        signal = asyncio.get_running_loop().call_later(self.seconds, child.cancel)
        started = time.perf_counter()
        try:
            try:
                async with asyncio.timeout(self.seconds) as deadline:
                    return await next_(ctx.with_token(child))
            except TimeoutError:
                if not deadline.expired():
                    raise
        finally:
            signal.cancel()
            child.detach()

        child.cancel()
        if ctx.token.cancelled:
            raise RunCancelledError()

        elapsed = time.perf_counter() - started
        logger.warning(
            "middleware.timeout.expired",
            spec=ctx.full_description,
            timeout_ms=self._timeout_ms,
            elapsed_ms=round(elapsed * 1000, 1),
        )
        error = SpecTimeoutError(
            timeout=self.seconds, elapsed=elapsed, operation=ctx.spec.description
        )
        error.with_context(context_path=" > ".join(ctx.context_path))
        return SpecResult.failed(ctx.spec, ctx.context_path, error, elapsed)

    def __repr__(self) -> str:
        return f"TimeoutMiddleware(timeout_ms={self._timeout_ms})"


__all__ = ["TimeoutMiddleware"]
