"""specrun: the execution core of a BDD-style spec framework.

Declare a tree of contexts and specs, then run it with a configurable
strategy, middleware pipeline and reporters::

    from specrun import SpecContext, SpecRunnerBuilder

    root = SpecContext("Stack")
    root.before_each = lambda: stack.clear()
    root.it("starts empty", lambda: assert_equal(len(stack), 0))

    report = SpecRunnerBuilder().with_parallel_execution().build().run_report(root)
    assert report.summary.success

Subpackages:
    core        errors, cancellation, logging, settings
    tree        SpecContext, SpecDefinition, hook cascade
    execution   results, sequential/parallel strategies, spec executor
    middleware  pipeline, retry, timeout, filters
    runner      SpecRunner, SpecRunnerBuilder
    reporting   SpecReport, summaries, reporters
"""

from specrun.core.cancellation import CancellationToken, RunCancelledError, current_token
from specrun.core.errors import ConfigurationError, SpecRunError, SpecTimeoutError
from specrun.core.logging import configure_logging, get_logger
from specrun.core.settings import RunnerSettings
from specrun.execution import (
    ExecutionStrategy,
    ParallelExecutionStrategy,
    RetryInfo,
    SequentialExecutionStrategy,
    SpecResult,
    SpecStatus,
    StrategyContext,
)
from specrun.middleware import (
    FilterMiddleware,
    MiddlewarePipeline,
    RetryMiddleware,
    SpecExecutionContext,
    SpecMiddleware,
    TimeoutMiddleware,
)
from specrun.reporting import (
    CollectingReporter,
    ContextReport,
    LoggingReporter,
    Reporter,
    SpecReport,
    SpecSummary,
    StreamingStats,
    build_report,
)
from specrun.runner import SpecRunner, SpecRunnerBuilder
from specrun.tree import HookCascade, SpecContext, SpecDefinition, get_hook_cascade

__version__ = "0.1.0"

__all__ = [
    "CancellationToken",
    "CollectingReporter",
    "ConfigurationError",
    "ContextReport",
    "ExecutionStrategy",
    "FilterMiddleware",
    "HookCascade",
    "LoggingReporter",
    "MiddlewarePipeline",
    "ParallelExecutionStrategy",
    "Reporter",
    "RetryInfo",
    "RetryMiddleware",
    "RunCancelledError",
    "RunnerSettings",
    "SequentialExecutionStrategy",
    "SpecContext",
    "SpecDefinition",
    "SpecExecutionContext",
    "SpecMiddleware",
    "SpecReport",
    "SpecResult",
    "SpecRunError",
    "SpecRunner",
    "SpecRunnerBuilder",
    "SpecStatus",
    "SpecSummary",
    "SpecTimeoutError",
    "StrategyContext",
    "StreamingStats",
    "TimeoutMiddleware",
    "build_report",
    "configure_logging",
    "current_token",
    "get_hook_cascade",
    "get_logger",
]
