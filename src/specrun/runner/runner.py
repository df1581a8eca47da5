"""Spec Runner - walks the spec tree and drives the configured strategy.

The SpecRunner takes a root :class:`~specrun.tree.nodes.SpecContext` and
runs every spec under it.  For each context, depth first and in declared
order, it:

- fires **BeforeAll** once (if any spec in the subtree will run)
- hands the context's own specs to the configured
  :class:`~specrun.execution.strategy.ExecutionStrategy`
- recurses into child contexts, one at a time
- fires **AfterAll** once, after the children have finished

Parallelism applies to sibling specs within one context only; sibling
contexts never overlap.

Failure handling:

- a failing spec body is a Failed result; the run continues
- a failing hook aborts the run: its exception propagates unmodified
- cancellation (token or task) propagates as ``RunCancelledError`` /
  ``asyncio.CancelledError``; no partial results are returned
- bail skips every spec not yet started, in this context and later ones;
  contexts entered after bail do not fire BeforeAll/AfterAll

Example::

    from specrun import SpecContext, SpecRunnerBuilder

    root = SpecContext("Calculator")
    root.it("adds", lambda: None)

    runner = SpecRunnerBuilder().with_parallel_execution(4).with_bail().build()
    results = runner.run(root)

    report = runner.run_report(root)
    print(report.summary.to_dict())
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence

from specrun.core.cancellation import (
    CancellationToken,
    reset_current_token,
    set_current_token,
)
from specrun.core.logging import LogContext, get_logger
from specrun.execution.executor import SpecExecutor, invoke
from specrun.execution.result import SpecResult
from specrun.execution.sequential import SequentialExecutionStrategy
from specrun.execution.strategy import BailFlag, ExecutionStrategy, StrategyContext
from specrun.middleware.base import MiddlewarePipeline, SpecExecutionContext
from specrun.middleware.filter import SpecPredicate
from specrun.reporting.report import SpecReport, build_report
from specrun.reporting.reporter import Reporter, ReporterDispatcher, RunStarting
from specrun.tree.nodes import Hook, SpecContext, SpecDefinition, child_path

logger = get_logger(__name__)


class _Run:
    """Per-run state shared by the recursive walk."""

    __slots__ = ("token", "has_focused_specs", "bail", "dispatcher", "results")

    def __init__(
        self,
        token: CancellationToken,
        has_focused_specs: bool,
        bail: BailFlag,
        dispatcher: ReporterDispatcher,
    ):
        self.token = token
        self.has_focused_specs = has_focused_specs
        self.bail = bail
        self.dispatcher = dispatcher
        self.results: list[SpecResult] = []


class SpecRunner:
    """Immutable runner produced by ``SpecRunnerBuilder.build()``.

    Args:
        strategy: Scheduling policy for sibling specs (default: sequential)
        pipeline: Middleware wrapped around every spec
        filters: Predicates also registered as filter middleware; used to
            decide whether a context has runnable specs
        reporters: Receive run/spec events in registration order
        bail: Skip specs not yet started after the first failure
        isolate_reporter_errors: Log reporter exceptions instead of raising
    """

    def __init__(
        self,
        strategy: ExecutionStrategy | None = None,
        pipeline: MiddlewarePipeline | None = None,
        filters: Sequence[SpecPredicate] = (),
        reporters: Sequence[Reporter] = (),
        bail: bool = False,
        isolate_reporter_errors: bool = True,
    ):
        self._strategy = strategy or SequentialExecutionStrategy.instance
        self._executor = SpecExecutor(pipeline)
        self._filters = tuple(filters)
        self._reporters = tuple(reporters)
        self._bail = bail
        self._isolate_reporter_errors = isolate_reporter_errors

    # ── Configuration (read-only) ────────────────────────────────────

    @property
    def strategy(self) -> ExecutionStrategy:
        return self._strategy

    @property
    def pipeline(self) -> MiddlewarePipeline:
        return self._executor.pipeline

    @property
    def reporters(self) -> tuple[Reporter, ...]:
        return self._reporters

    @property
    def bail_enabled(self) -> bool:
        return self._bail

    # ── Entry points ─────────────────────────────────────────────────

    def run(self, root: SpecContext, token: CancellationToken | None = None) -> list[SpecResult]:
        """Synchronous wrapper around :meth:`run_async`."""
        return asyncio.run(self.run_async(root, token))

    def run_report(self, root: SpecContext, token: CancellationToken | None = None) -> SpecReport:
        """Synchronous wrapper around :meth:`run_report_async`."""
        return asyncio.run(self.run_report_async(root, token))

    async def run_async(
        self, root: SpecContext, token: CancellationToken | None = None
    ) -> list[SpecResult]:
        """Run every spec under ``root``.

        Returns:
            Results in depth-first declaration order.

        Raises:
            RunCancelledError: if ``token`` is cancelled
            Exception: whatever a hook raised, unmodified
        """
        report = await self.run_report_async(root, token)
        return report.results

    async def run_report_async(
        self, root: SpecContext, token: CancellationToken | None = None
    ) -> SpecReport:
        """Run every spec under ``root`` and return the aggregated report."""
        caller_token = token or CancellationToken()
        caller_token.raise_if_cancelled()
        run_token = caller_token.linked()
        try:
            return await self._execute(root, run_token)
        except asyncio.CancelledError:
            # Workers polling the token stop early when the hosting task is cancelled.
            run_token.cancel()
            raise
        finally:
            run_token.detach()

    # ── Walk ─────────────────────────────────────────────────────────

    async def _execute(self, root: SpecContext, token: CancellationToken) -> SpecReport:
        state = _Run(
            token=token,
            has_focused_specs=root.has_focused_specs(),
            bail=BailFlag(self._bail),
            dispatcher=ReporterDispatcher(self._reporters, self._isolate_reporter_errors),
        )
        total = root.total_spec_count

        logger.info(
            "runner.run.start",
            specs=total,
            strategy=self._strategy.name,
            middleware=self.pipeline.names,
            bail=self._bail,
            focused=state.has_focused_specs,
        )
        started = time.perf_counter()
        await state.dispatcher.run_starting(RunStarting(total, state.has_focused_specs))

        await self._run_context(root, (), state)

        duration = time.perf_counter() - started
        report = build_report(root, state.results, duration)
        logger.info(
            "runner.run.complete",
            wall_ms=round(duration * 1000, 1),
            **report.summary.to_dict(),
        )
        await state.dispatcher.run_completed(report)
        return report

    async def _run_context(
        self, context: SpecContext, parent_path: tuple[str, ...], state: _Run
    ) -> None:
        state.token.raise_if_cancelled()
        path = child_path(parent_path, context)
        run_hooks = not state.bail.triggered and self._has_runnable(context, path, state)

        with LogContext(context_path=" > ".join(path)):
            logger.debug(
                "runner.context.start",
                specs=len(context.specs),
                children=len(context.children),
                run_hooks=run_hooks,
            )

            if run_hooks and context.before_all is not None:
                await self._run_hook(context.before_all, state.token)

            if context.specs:
                strategy_ctx = StrategyContext(
                    specs=context.specs,
                    context=context,
                    context_path=path,
                    run_spec=self._executor.delegate(context, path, state.has_focused_specs),
                    has_focused_specs=state.has_focused_specs,
                    bail=state.bail,
                    notify_completed=state.dispatcher.spec_completed,
                    notify_batch_completed=state.dispatcher.batch_completed,
                )
                state.results.extend(await self._strategy.execute(strategy_ctx, state.token))

            for child in context.children:
                await self._run_context(child, path, state)

            if run_hooks and context.after_all is not None:
                await self._run_hook(context.after_all, state.token)

            logger.debug("runner.context.complete", bail_triggered=state.bail.triggered)

    @staticmethod
    async def _run_hook(hook: Hook, token: CancellationToken) -> None:
        handle = set_current_token(token)
        try:
            await invoke(hook)
        finally:
            reset_current_token(handle)

    # ── Runnable-spec analysis ───────────────────────────────────────

    def _is_runnable(
        self, spec: SpecDefinition, context: SpecContext, path: tuple[str, ...], state: _Run
    ) -> bool:
        if spec.is_pending or spec.is_skipped:
            return False
        if state.has_focused_specs and not spec.is_focused:
            return False
        if not self._filters:
            return True
        candidate = SpecExecutionContext(
            spec=spec,
            context=context,
            context_path=path,
            token=state.token,
            has_focused_specs=state.has_focused_specs,
        )
        return all(predicate(candidate) for predicate in self._filters)

    def _has_runnable(self, context: SpecContext, path: tuple[str, ...], state: _Run) -> bool:
        if any(self._is_runnable(spec, context, path, state) for spec in context.specs):
            return True
        return any(
            self._has_runnable(child, child_path(path, child), state)
            for child in context.children
        )

    def __repr__(self) -> str:
        return (
            f"SpecRunner(strategy={self._strategy!r}, middleware={self.pipeline.names}, "
            f"bail={self._bail}, reporters={len(self._reporters)})"
        )


__all__ = ["SpecRunner"]
