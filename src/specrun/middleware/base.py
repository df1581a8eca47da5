"""Middleware contract and pipeline composition.

Manifesto:
    Cross-cutting behaviour (retry, timeouts, filtering, result rewriting)
    wraps "execute one spec" without the engine knowing about any of it.
    A middleware is anything shaped ``async (ctx, next_) -> SpecResult``.

ARCHITECTURE
────────────
::

    MiddlewarePipeline().use(A).use(B).build(core)

        A.execute(ctx, next_=B')
          │ before
          ├── B.execute(ctx, next_=core)
          │     │ before
          │     ├── core(ctx)   ← focus/skip/pending, hook cascade, body
          │     │ after
          │ after

    First registered is outermost.  ``next_`` may be awaited zero times
    (short-circuit, e.g. a filter producing Skipped) or once.  Retry is
    the exception: it awaits ``next_`` once per attempt.

Rules:
    - Pipelines are immutable; ``use`` returns a new pipeline.
    - Middleware keep no state between specs or runs.
    - Exceptions raised by ``next_`` (hook failures, cancellation) must be
      allowed to propagate.

Example::

    async def mark_flaky_as_passed(ctx, next_):
        result = await next_(ctx)
        if "flaky" in ctx.spec.tags and result.status is SpecStatus.FAILED:
            return result.with_status(SpecStatus.PASSED)
        return result

    pipeline = MiddlewarePipeline().use(RetryMiddleware(2)).use(mark_flaky_as_passed)

Tags:
    specrun, middleware, chain-of-responsibility, pipeline
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Union

from specrun.core.cancellation import CancellationToken
from specrun.core.errors import ConfigurationError
from specrun.tree.nodes import SpecContext, SpecDefinition

if TYPE_CHECKING:
    from specrun.execution.result import SpecResult


@dataclass
class SpecExecutionContext:
    """What a middleware sees about the spec it wraps.

    Attributes:
        spec: The spec being executed
        context: Its owning context (hook cascade source)
        context_path: Descriptions from the root, blanks omitted
        token: Cancellation token for this spec; timeout middleware swaps
            in a linked child token for the inner pipeline
        has_focused_specs: Focus mode is active for this run
        items: Scratch space shared by middleware for this one spec
    """

    spec: SpecDefinition
    context: SpecContext
    context_path: tuple[str, ...]
    token: CancellationToken = field(default_factory=CancellationToken)
    has_focused_specs: bool = False
    items: dict[str, Any] = field(default_factory=dict)

    @property
    def full_description(self) -> str:
        return " ".join((*self.context_path, self.spec.description))

    def with_token(self, token: CancellationToken) -> SpecExecutionContext:
        """Copy sharing ``items`` but carrying a different token."""
        return replace(self, token=token)


Next = Callable[[SpecExecutionContext], Awaitable["SpecResult"]]
MiddlewareFunc = Callable[[SpecExecutionContext, Next], Awaitable["SpecResult"]]


class SpecMiddleware(ABC):
    """Base class for object-style middleware."""

    @abstractmethod
    async def execute(self, ctx: SpecExecutionContext, next_: Next) -> SpecResult:
        """Run before/after logic around ``next_``."""

    async def __call__(self, ctx: SpecExecutionContext, next_: Next) -> SpecResult:
        return await self.execute(ctx, next_)

    @property
    def name(self) -> str:
        return type(self).__name__

    def __repr__(self) -> str:
        return f"{self.name}()"


Middleware = Union[SpecMiddleware, MiddlewareFunc]


def _middleware_name(middleware: Middleware) -> str:
    if isinstance(middleware, SpecMiddleware):
        return middleware.name
    return getattr(middleware, "__name__", type(middleware).__name__)


class MiddlewarePipeline:
    """Immutable, ordered list of middleware."""

    __slots__ = ("_middleware",)

    def __init__(self, middleware: tuple[Middleware, ...] = ()):
        self._middleware = tuple(middleware)

    def use(self, middleware: Middleware) -> MiddlewarePipeline:
        """Return a new pipeline with ``middleware`` appended (innermost so far).

        Raises:
            ConfigurationError: if ``middleware`` is not callable
        """
        if middleware is None or not callable(middleware):
            raise ConfigurationError(
                f"Middleware must be callable as (ctx, next_), got {middleware!r}"
            )
        return MiddlewarePipeline(self._middleware + (middleware,))

    def build(self, core: Next) -> Next:
        """Fold the middleware around ``core``; the first registered is outermost."""
        handler = core
        for middleware in reversed(self._middleware):
            handler = _bind(middleware, handler)
        return handler

    @property
    def names(self) -> list[str]:
        return [_middleware_name(m) for m in self._middleware]

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(self._middleware)

    def __repr__(self) -> str:
        return f"MiddlewarePipeline({self.names})"


def _bind(middleware: Middleware, next_: Next) -> Next:
    async def handler(ctx: SpecExecutionContext) -> SpecResult:
        return await middleware(ctx, next_)

    return handler


__all__ = [
    "Middleware",
    "MiddlewareFunc",
    "MiddlewarePipeline",
    "Next",
    "SpecExecutionContext",
    "SpecMiddleware",
]
