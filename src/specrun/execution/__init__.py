"""Spec execution: results, scheduling strategies and the run-one-spec executor."""

from specrun.execution.result import RetryInfo, SkipReason, SpecResult, SpecStatus
from specrun.execution.strategy import BailFlag, ExecutionStrategy, StrategyContext
from specrun.execution.sequential import SequentialExecutionStrategy
from specrun.execution.parallel import ParallelExecutionStrategy
from specrun.execution.executor import SpecExecutor, invoke

__all__ = [
    "BailFlag",
    "ExecutionStrategy",
    "ParallelExecutionStrategy",
    "RetryInfo",
    "SequentialExecutionStrategy",
    "SkipReason",
    "SpecExecutor",
    "SpecResult",
    "SpecStatus",
    "StrategyContext",
    "invoke",
]
