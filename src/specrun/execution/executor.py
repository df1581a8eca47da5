"""Run-one-spec delegate: middleware pipeline around hook cascade and body.

The innermost step of every pipeline is ``SpecExecutor.core``:

    1. focus mode and spec not focused → Skipped("focus")
    2. spec marked skipped             → Skipped("skipped")
    3. no body                         → Pending (no hooks run)
    4. BeforeEach cascade (outer→inner)
    5. body, timed; ``Exception`` → Failed
    6. AfterEach cascade (inner→outer), in a ``finally`` around the body so
       it also runs when the body is cancelled by a timeout

A failing BeforeEach skips the body and the AfterEach cascade.

Hook exceptions propagate unmodified.  ``asyncio.CancelledError`` (and so
``RunCancelledError``) is not an ``Exception`` and is never converted.

Coroutine functions are awaited on the event loop.  Plain callables run
through ``asyncio.to_thread`` with the current context copied, so
``current_token()`` inside a synchronous body sees the spec's token.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any

from specrun.core.cancellation import CancellationToken, reset_current_token, set_current_token
from specrun.core.logging import LogContext, get_logger
from specrun.execution.result import SkipReason, SpecResult
from specrun.execution.strategy import RunSpecDelegate
from specrun.middleware.base import MiddlewarePipeline, SpecExecutionContext
from specrun.tree.hooks import get_hook_cascade
from specrun.tree.nodes import Hook, SpecContext, SpecDefinition

logger = get_logger(__name__)


async def invoke(fn: Hook) -> Any:
    """Call a hook or body, awaiting it if it is asynchronous."""
    if inspect.iscoroutinefunction(fn):
        return await fn()
    result = await asyncio.to_thread(fn)
    if inspect.isawaitable(result):
        # e.g. a lambda returning a coroutine
        return await result
    return result


class SpecExecutor:
    """Executes single specs through a fixed middleware pipeline.

    Args:
        pipeline: Middleware to wrap around the core invocation
    """

    def __init__(self, pipeline: MiddlewarePipeline | None = None):
        self._pipeline = pipeline or MiddlewarePipeline()
        self._handler = self._pipeline.build(self.core)

    @property
    def pipeline(self) -> MiddlewarePipeline:
        return self._pipeline

    async def run(
        self,
        spec: SpecDefinition,
        context: SpecContext,
        context_path: tuple[str, ...],
        token: CancellationToken,
        has_focused_specs: bool = False,
    ) -> SpecResult:
        ctx = SpecExecutionContext(
            spec=spec,
            context=context,
            context_path=context_path,
            token=token,
            has_focused_specs=has_focused_specs,
        )
        return await self._handler(ctx)

    def delegate(
        self,
        context: SpecContext,
        context_path: tuple[str, ...],
        has_focused_specs: bool = False,
    ) -> RunSpecDelegate:
        """Bind the per-context arguments for a ``StrategyContext.run_spec``."""

        async def run_spec(spec: SpecDefinition, token: CancellationToken) -> SpecResult:
            return await self.run(spec, context, context_path, token, has_focused_specs)

        return run_spec

    @staticmethod
    async def core(ctx: SpecExecutionContext) -> SpecResult:
        spec = ctx.spec
        path = ctx.context_path

        if ctx.has_focused_specs and not spec.is_focused:
            return SpecResult.skipped(spec, path, SkipReason.FOCUS)
        if spec.is_skipped:
            return SpecResult.skipped(spec, path, SkipReason.SKIPPED)
        if spec.is_pending:
            return SpecResult.pending(spec, path)

        ctx.token.raise_if_cancelled()
        cascade = get_hook_cascade(ctx.context)
        error: Exception | None = None

        handle = set_current_token(ctx.token)
        started = time.perf_counter()
        try:
            with LogContext(spec=spec.description):
                for hook in cascade.before_each:
                    await invoke(hook)
                try:
                    await invoke(spec.body)
                except Exception as exc:
                    error = exc
                finally:
                    # also on cancellation: a timed-out spec still tears down
                    for hook in cascade.after_each:
                        await invoke(hook)
        finally:
            reset_current_token(handle)
        duration = time.perf_counter() - started

        if error is None:
            return SpecResult.passed(spec, path, duration)

        logger.debug(
            "spec.failed",
            spec=spec.description,
            context=" > ".join(path),
            error_type=type(error).__name__,
            error=str(error),
        )
        return SpecResult.failed(spec, path, error, duration)


__all__ = ["SpecExecutor", "invoke"]
