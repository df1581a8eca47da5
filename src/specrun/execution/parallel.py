"""Bounded-parallel execution of sibling specs.

Manifesto:
    Specs in one context are independent units.  Running them
    concurrently must not change what a reader of the results sees: slot
    ``i`` always holds the result of the ``i``-th declared spec, and
    reporters hear about them in declaration order, once, after the whole
    batch has resolved.

ARCHITECTURE
────────────
::

    execute(ctx, token)
      │
      ├── Semaphore(max_degree)
      │
      ├── unit(0) ─┐
      ├── unit(1) ─┼── asyncio.gather(..., return_exceptions=True)
      ├── ...     ─┤       each unit writes ctx.results[i] only
      └── unit(n) ─┘
      │
      ├── token cancelled?      → RunCancelledError (partial results dropped)
      ├── a unit raised?        → re-raise (hook failure)
      └── notify_batch_completed(results)    exactly once

    unit(i):  acquire slot → cancelled/aborted? stop
                           → bail triggered?    Skipped("bail")
                           → run_spec           results[i] = result
                           → Failed + bail      signal bail

Each unit owns exactly one slot, so the result array needs no lock.  The
bail flag is read before a unit starts; in-flight units finish naturally,
so more specs than strictly necessary may start after a failure.

Example::

    strategy = ParallelExecutionStrategy(max_degree=4)
    runner = SpecRunnerBuilder().with_strategy(strategy).build()

Tags:
    specrun, execution, parallel, asyncio, semaphore
"""

from __future__ import annotations

import asyncio
import os

from specrun.core.cancellation import CancellationToken
from specrun.core.logging import get_logger
from specrun.execution.result import SpecResult, SpecStatus
from specrun.execution.strategy import ExecutionStrategy, StrategyContext
from specrun.tree.nodes import SpecDefinition

logger = get_logger(__name__)


def logical_processor_count() -> int:
    return os.cpu_count() or 1


class ParallelExecutionStrategy(ExecutionStrategy):
    """Runs up to ``max_degree`` sibling specs at once.

    Args:
        max_degree: Maximum concurrent specs.  Values <= 0 use the logical
            processor count; construction never fails.
    """

    def __init__(self, max_degree: int = 0):
        self._max_degree = max_degree if max_degree > 0 else logical_processor_count()

    @property
    def max_degree(self) -> int:
        """Effective degree of parallelism after clamping."""
        return self._max_degree

    async def execute(self, ctx: StrategyContext, token: CancellationToken) -> list[SpecResult]:
        token.raise_if_cancelled()
        semaphore = asyncio.Semaphore(self._max_degree)
        aborted = False

        async def unit(index: int, spec: SpecDefinition) -> None:
            nonlocal aborted
            async with semaphore:
                if token.cancelled or aborted:
                    return
                if ctx.is_bail_triggered():
                    ctx.skip_for_bail(index)
                    return
                try:
                    result = await ctx.run_spec(spec, token)
                except BaseException:
                    aborted = True
                    raise
                ctx.results[index] = result
                if ctx.bail_enabled and result.status is SpecStatus.FAILED:
                    ctx.signal_bail()

        logger.debug(
            "strategy.parallel.start",
            context=" > ".join(ctx.context_path),
            specs=len(ctx.specs),
            max_degree=self._max_degree,
        )

        outcomes = await asyncio.gather(
            *(unit(i, spec) for i, spec in enumerate(ctx.specs)),
            return_exceptions=True,
        )

        token.raise_if_cancelled()
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

        results = ctx.completed_results()
        await ctx.notify_batch_completed(results)
        return results

    def __repr__(self) -> str:
        return f"ParallelExecutionStrategy(max_degree={self._max_degree})"


__all__ = ["ParallelExecutionStrategy", "logical_processor_count"]
