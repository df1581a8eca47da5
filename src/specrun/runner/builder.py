"""Fluent configuration for ``SpecRunner``.

Every ``with_*`` / ``use`` / ``add_*`` call validates its arguments
immediately (raising ``ConfigurationError``) and returns the builder, so a
bad configuration never reaches run time.  ``build()`` snapshots the
configuration into an immutable runner; the builder can keep being used.

Middleware nest in call order: the first registered is outermost.  For
example ``with_retry(2).with_timeout(100)`` gives every attempt its own
100ms deadline, while ``with_timeout(100).with_retry(2)`` shares one
deadline across all attempts.

Strategy selection is last-write-wins: ``with_parallel_execution`` and
``with_strategy`` both replace whatever was configured before.

Example::

    runner = (
        SpecRunnerBuilder()
        .with_parallel_execution(max_degree=4)
        .with_bail()
        .with_retry(2, backoff=ConstantBackoff(0.05))
        .with_timeout(2_000)
        .with_tag_filter("fast")
        .add_reporter(LoggingReporter())
        .build()
    )

From environment::

    settings = RunnerSettings()          # SPECRUN_PARALLEL, SPECRUN_RETRY, ...
    settings.apply_logging()
    runner = SpecRunnerBuilder.from_settings(settings).build()
"""

from __future__ import annotations

from specrun.core.errors import ConfigurationError
from specrun.core.logging import get_logger
from specrun.core.settings import RunnerSettings
from specrun.execution.parallel import ParallelExecutionStrategy
from specrun.execution.result import SkipReason
from specrun.execution.strategy import ExecutionStrategy
from specrun.middleware.base import Middleware, MiddlewarePipeline
from specrun.middleware.filter import (
    FilterMiddleware,
    SpecPredicate,
    context_exclude_predicate,
    context_predicate,
    exclude_tags_predicate,
    name_exclude_predicate,
    name_predicate,
    tag_predicate,
)
from specrun.middleware.retry import BackoffStrategy, RetryMiddleware
from specrun.middleware.timeout import TimeoutMiddleware
from specrun.reporting.reporter import Reporter
from specrun.runner.runner import SpecRunner

logger = get_logger(__name__)


class SpecRunnerBuilder:
    """Builder for :class:`~specrun.runner.runner.SpecRunner`."""

    def __init__(self) -> None:
        self._strategy: ExecutionStrategy | None = None
        self._pipeline = MiddlewarePipeline()
        self._filters: list[SpecPredicate] = []
        self._reporters: list[Reporter] = []
        self._bail = False
        self._isolate_reporter_errors = True

    @classmethod
    def from_settings(cls, settings: RunnerSettings | None = None) -> SpecRunnerBuilder:
        """Create a builder seeded from ``settings`` (loaded from the environment if omitted)."""
        return cls().with_settings(settings or RunnerSettings())

    # ── Scheduling ───────────────────────────────────────────────────

    def with_parallel_execution(self, max_degree: int = 0) -> SpecRunnerBuilder:
        """Run sibling specs concurrently; ``max_degree <= 0`` uses the CPU count."""
        self._strategy = ParallelExecutionStrategy(max_degree)
        return self

    def with_strategy(self, strategy: ExecutionStrategy) -> SpecRunnerBuilder:
        """Use a custom strategy, replacing any earlier strategy or parallel degree."""
        if strategy is None:
            raise ConfigurationError("strategy must not be None")
        if not isinstance(strategy, ExecutionStrategy):
            raise ConfigurationError(
                f"strategy must be an ExecutionStrategy, got {type(strategy).__name__}"
            )
        self._strategy = strategy
        return self

    def with_bail(self, enabled: bool = True) -> SpecRunnerBuilder:
        self._bail = enabled
        return self

    # ── Middleware ───────────────────────────────────────────────────

    def use(self, middleware: Middleware) -> SpecRunnerBuilder:
        """Register middleware; the first registered wraps all later ones."""
        self._pipeline = self._pipeline.use(middleware)
        return self

    def with_retry(
        self, max_retries: int, backoff: BackoffStrategy | None = None
    ) -> SpecRunnerBuilder:
        return self.use(RetryMiddleware(max_retries, backoff))

    def with_timeout(self, timeout_ms: float) -> SpecRunnerBuilder:
        return self.use(TimeoutMiddleware(timeout_ms))

    def with_filter(
        self, predicate: SpecPredicate, reason: str = SkipReason.FILTERED
    ) -> SpecRunnerBuilder:
        """Skip specs for which ``predicate(ctx)`` is False."""
        middleware = FilterMiddleware(predicate, reason)
        self._filters.append(middleware.predicate)
        return self.use(middleware)

    def with_tag_filter(self, *tags: str) -> SpecRunnerBuilder:
        return self.with_filter(tag_predicate(*tags))

    def without_tags(self, *tags: str) -> SpecRunnerBuilder:
        return self.with_filter(exclude_tags_predicate(*tags))

    def with_name_filter(self, pattern: str) -> SpecRunnerBuilder:
        return self.with_filter(name_predicate(pattern))

    def with_name_exclude_filter(self, pattern: str) -> SpecRunnerBuilder:
        return self.with_filter(name_exclude_predicate(pattern))

    def with_context_filter(self, *patterns: str) -> SpecRunnerBuilder:
        return self.with_filter(context_predicate(*patterns))

    def with_context_exclude_filter(self, *patterns: str) -> SpecRunnerBuilder:
        return self.with_filter(context_exclude_predicate(*patterns))

    # ── Reporting ────────────────────────────────────────────────────

    def add_reporter(self, reporter: Reporter) -> SpecRunnerBuilder:
        if reporter is None:
            raise ConfigurationError("reporter must not be None")
        self._reporters.append(reporter)
        return self

    def isolate_reporter_errors(self, enabled: bool = True) -> SpecRunnerBuilder:
        """Log reporter exceptions (True, default) or raise them to the caller."""
        self._isolate_reporter_errors = enabled
        return self

    # ── Settings ─────────────────────────────────────────────────────

    def with_settings(self, settings: RunnerSettings) -> SpecRunnerBuilder:
        """Apply ``RunnerSettings`` on top of the current configuration."""
        if settings.parallel:
            self.with_parallel_execution(settings.max_degree)
        if settings.bail:
            self.with_bail()
        if settings.retry > 0:
            self.with_retry(settings.retry)
        if settings.timeout_ms > 0:
            self.with_timeout(settings.timeout_ms)
        if settings.tags:
            self.with_tag_filter(*settings.tags)
        if settings.exclude_tags:
            self.without_tags(*settings.exclude_tags)
        self.isolate_reporter_errors(settings.isolate_reporter_errors)
        return self

    # ── Build ────────────────────────────────────────────────────────

    def build(self) -> SpecRunner:
        runner = SpecRunner(
            strategy=self._strategy,
            pipeline=self._pipeline,
            filters=tuple(self._filters),
            reporters=tuple(self._reporters),
            bail=self._bail,
            isolate_reporter_errors=self._isolate_reporter_errors,
        )
        logger.debug("runner.built", runner=repr(runner))
        return runner


__all__ = ["SpecRunnerBuilder"]
