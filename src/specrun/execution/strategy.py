"""Execution strategy contract and the per-context state it operates on.

A strategy decides *how* the direct specs of one context are scheduled.  It
never decides *what* a spec does: the runner hands it a ``StrategyContext``
holding a run-one-spec delegate (hook cascade + middleware + body) and the
callbacks for bail and reporter notification.

ARCHITECTURE
────────────
::

    SpecRunner ── builds ──► StrategyContext
                               ├── specs          (declaration order)
                               ├── results        [None] * len(specs)
                               ├── bail           BailFlag
                               ├── run_spec       async (spec, token) → SpecResult
                               ├── notify_completed(result)
                               └── notify_batch_completed(results)
                                         │
               ExecutionStrategy.execute(ctx, token)
                 ├── SequentialExecutionStrategy
                 └── ParallelExecutionStrategy(max_degree)

Invariants every strategy keeps:
    - ``results[i]`` is the result of ``specs[i]`` when ``execute`` returns
    - ``notify_batch_completed`` fires exactly once, after every slot is set
    - once bail is signalled no further spec is started
    - cancellation propagates as ``RunCancelledError``, never as a result

Tags:
    specrun, execution, strategy, scheduling
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

from specrun.core.cancellation import CancellationToken
from specrun.execution.result import SkipReason, SpecResult
from specrun.tree.nodes import SpecContext, SpecDefinition

RunSpecDelegate = Callable[[SpecDefinition, CancellationToken], Awaitable[SpecResult]]
CompletionCallback = Callable[[SpecResult], Awaitable[None]]
BatchCompletionCallback = Callable[[Sequence[SpecResult]], Awaitable[None]]


class BailFlag:
    """Shared fail-fast flag for one run.

    A plain boolean read and written without a lock: a check-then-signal
    race can let a few extra specs start after a failure, which is accepted.
    """

    __slots__ = ("enabled", "_triggered")

    def __init__(self, enabled: bool = False):
        self.enabled = enabled
        self._triggered = False

    @property
    def triggered(self) -> bool:
        return self._triggered

    def signal(self) -> None:
        if self.enabled:
            self._triggered = True

    def __repr__(self) -> str:
        return f"BailFlag(enabled={self.enabled}, triggered={self._triggered})"


async def _noop_completed(result: SpecResult) -> None:
    return None


async def _noop_batch(results: Sequence[SpecResult]) -> None:
    return None


@dataclass
class StrategyContext:
    """Everything a strategy needs to run the direct specs of one context.

    Attributes:
        specs: Sibling specs in declaration order
        context: The context that owns ``specs``
        context_path: Descriptions from the root, blanks omitted
        run_spec: Delegate running one spec through hooks, middleware and body
        has_focused_specs: True when any spec in the whole tree is focused
        bail: Shared bail flag for the run
        notify_completed: Per-spec completion callback
        notify_batch_completed: Called once with the ordered result list
        results: Pre-sized, index-addressed result slots
    """

    specs: Sequence[SpecDefinition]
    context: SpecContext
    context_path: tuple[str, ...]
    run_spec: RunSpecDelegate
    has_focused_specs: bool = False
    bail: BailFlag = field(default_factory=BailFlag)
    notify_completed: CompletionCallback = _noop_completed
    notify_batch_completed: BatchCompletionCallback = _noop_batch
    results: list[SpecResult | None] = field(init=False, default_factory=list)

    def __post_init__(self) -> None:
        self.specs = tuple(self.specs)
        self.results = [None] * len(self.specs)

    @property
    def bail_enabled(self) -> bool:
        return self.bail.enabled

    def is_bail_triggered(self) -> bool:
        return self.bail.triggered

    def signal_bail(self) -> None:
        self.bail.signal()

    def skip_for_bail(self, index: int) -> SpecResult:
        """Record ``specs[index]`` as Skipped because bail was signalled."""
        result = SpecResult.skipped(self.specs[index], self.context_path, SkipReason.BAIL)
        self.results[index] = result
        return result

    def completed_results(self) -> list[SpecResult]:
        """Slots in declaration order; raises if any slot is still empty."""
        missing = [i for i, r in enumerate(self.results) if r is None]
        if missing:
            raise RuntimeError(f"Result slots {missing} were never filled")
        return list(self.results)  # type: ignore[arg-type]


class ExecutionStrategy(ABC):
    """Scheduling policy for the sibling specs of one context."""

    @abstractmethod
    async def execute(self, ctx: StrategyContext, token: CancellationToken) -> list[SpecResult]:
        """Run every spec in ``ctx`` and fill ``ctx.results``.

        Returns:
            The ordered result list (same objects as ``ctx.results``).

        Raises:
            RunCancelledError: if ``token`` is cancelled before all specs resolve.
        """

    @property
    def name(self) -> str:
        return type(self).__name__


__all__ = [
    "BailFlag",
    "BatchCompletionCallback",
    "CompletionCallback",
    "ExecutionStrategy",
    "RunSpecDelegate",
    "StrategyContext",
]
