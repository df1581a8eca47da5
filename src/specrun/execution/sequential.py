"""Sequential execution: one spec at a time, in declaration order."""

from __future__ import annotations

from typing import ClassVar

from specrun.core.cancellation import CancellationToken
from specrun.core.logging import get_logger
from specrun.execution.result import SpecResult, SpecStatus
from specrun.execution.strategy import ExecutionStrategy, StrategyContext

logger = get_logger(__name__)


class SequentialExecutionStrategy(ExecutionStrategy):
    """Runs sibling specs strictly in order.

    Stateless; ``SequentialExecutionStrategy.instance`` is shared by every
    runner that does not configure another strategy.

    Per spec:
        1. cancellation check (propagates ``RunCancelledError``)
        2. bail already signalled → Skipped, run delegate not invoked
        3. otherwise run, store in its slot, notify completion
        4. Failed with bail enabled → signal bail for the rest of the pass

    After the loop one batch notification carries every result in order.
    """

    instance: ClassVar[SequentialExecutionStrategy]

    async def execute(self, ctx: StrategyContext, token: CancellationToken) -> list[SpecResult]:
        for index, spec in enumerate(ctx.specs):
            token.raise_if_cancelled()

            if ctx.is_bail_triggered():
                ctx.skip_for_bail(index)
                continue

            result = await ctx.run_spec(spec, token)
            ctx.results[index] = result
            await ctx.notify_completed(result)

            if ctx.bail_enabled and result.status is SpecStatus.FAILED:
                logger.debug(
                    "strategy.bail.signalled",
                    spec=spec.description,
                    remaining=len(ctx.specs) - index - 1,
                )
                ctx.signal_bail()

        results = ctx.completed_results()
        await ctx.notify_batch_completed(results)
        return results

    def __repr__(self) -> str:
        return "SequentialExecutionStrategy()"


SequentialExecutionStrategy.instance = SequentialExecutionStrategy()
INSTANCE = SequentialExecutionStrategy.instance

__all__ = ["INSTANCE", "SequentialExecutionStrategy"]
