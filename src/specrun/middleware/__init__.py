"""Spec middleware: pipeline composition plus retry, timeout and filtering."""

from specrun.middleware.base import (
    Middleware,
    MiddlewarePipeline,
    Next,
    SpecExecutionContext,
    SpecMiddleware,
)
from specrun.middleware.filter import (
    FilterMiddleware,
    context_exclude_predicate,
    context_predicate,
    exclude_tags_predicate,
    name_exclude_predicate,
    name_predicate,
    tag_predicate,
)
from specrun.middleware.retry import (
    BackoffStrategy,
    ConstantBackoff,
    ExponentialBackoff,
    LinearBackoff,
    NoDelay,
    RetryMiddleware,
)
from specrun.middleware.timeout import TimeoutMiddleware

__all__ = [
    "BackoffStrategy",
    "ConstantBackoff",
    "ExponentialBackoff",
    "FilterMiddleware",
    "LinearBackoff",
    "Middleware",
    "MiddlewarePipeline",
    "Next",
    "NoDelay",
    "RetryMiddleware",
    "SpecExecutionContext",
    "SpecMiddleware",
    "TimeoutMiddleware",
    "context_exclude_predicate",
    "context_predicate",
    "exclude_tags_predicate",
    "name_exclude_predicate",
    "name_predicate",
    "tag_predicate",
]
