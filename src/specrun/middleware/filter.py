"""Filter middleware and predicate factories.

A filter decides before ``next_`` is called: a rejected spec becomes
Skipped("filtered") and neither its hooks nor its body run.

Predicates take the ``SpecExecutionContext`` of the spec.  The runner also
evaluates the same predicates ahead of time to decide whether a context has
any runnable spec (and so whether its BeforeAll/AfterAll fire).

Factories:
    tag_predicate("fast", "smoke")          any of the tags (case-insensitive)
    exclude_tags_predicate("slow")          none of the tags
    name_predicate(r"adds|subtracts")       regex search on full description
    name_exclude_predicate(r"flaky")
    context_predicate("Calculator/**")      glob over context path segments
    context_exclude_predicate("*/legacy")

Context globs split on ``/``: ``*`` matches exactly one segment, ``**``
matches any number of segments (including none); other segments are
matched case-insensitively with ``fnmatch`` wildcards.
"""

from __future__ import annotations

import fnmatch
import re
from collections.abc import Callable, Sequence

from specrun.core.errors import ConfigurationError
from specrun.core.logging import get_logger
from specrun.execution.result import SkipReason, SpecResult
from specrun.middleware.base import Next, SpecExecutionContext, SpecMiddleware

logger = get_logger(__name__)

SpecPredicate = Callable[[SpecExecutionContext], bool]


class FilterMiddleware(SpecMiddleware):
    """Skip specs for which ``predicate`` returns False.

    Args:
        predicate: ``(ctx) -> bool``; True keeps the spec
        reason: ``SpecResult.reason`` recorded on filtered specs
    """

    def __init__(self, predicate: SpecPredicate, reason: str = SkipReason.FILTERED):
        if predicate is None or not callable(predicate):
            raise ConfigurationError("Filter predicate must be a callable (ctx) -> bool")
        self._predicate = predicate
        self._reason = reason

    @property
    def predicate(self) -> SpecPredicate:
        return self._predicate

    def accepts(self, ctx: SpecExecutionContext) -> bool:
        return bool(self._predicate(ctx))

    async def execute(self, ctx: SpecExecutionContext, next_: Next) -> SpecResult:
        if not self.accepts(ctx):
            logger.debug("middleware.filter.skipped", spec=ctx.full_description, reason=self._reason)
            return SpecResult.skipped(ctx.spec, ctx.context_path, self._reason)
        return await next_(ctx)


# =============================================================================
# Predicate factories
# =============================================================================


def _require(values: Sequence[str], what: str) -> tuple[str, ...]:
    cleaned = tuple(v for v in values if v and v.strip())
    if not cleaned:
        raise ConfigurationError(f"At least one {what} is required")
    return cleaned


def tag_predicate(*tags: str) -> SpecPredicate:
    """Keep specs carrying any of ``tags``."""
    wanted = _require(tags, "tag")

    def has_any_tag(ctx: SpecExecutionContext) -> bool:
        return any(ctx.spec.has_tag(t) for t in wanted)

    return has_any_tag


def exclude_tags_predicate(*tags: str) -> SpecPredicate:
    """Keep specs carrying none of ``tags``."""
    unwanted = _require(tags, "tag")

    def has_no_excluded_tag(ctx: SpecExecutionContext) -> bool:
        return not any(ctx.spec.has_tag(t) for t in unwanted)

    return has_no_excluded_tag


def _compile(pattern: str) -> re.Pattern[str]:
    if not pattern:
        raise ConfigurationError("Name pattern must not be empty")
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as exc:
        raise ConfigurationError(f"Invalid name pattern {pattern!r}: {exc}", cause=exc) from exc


def name_predicate(pattern: str) -> SpecPredicate:
    """Keep specs whose full description matches the regex ``pattern``."""
    regex = _compile(pattern)

    def name_matches(ctx: SpecExecutionContext) -> bool:
        return regex.search(ctx.full_description) is not None

    return name_matches


def name_exclude_predicate(pattern: str) -> SpecPredicate:
    """Keep specs whose full description does not match ``pattern``."""
    regex = _compile(pattern)

    def name_does_not_match(ctx: SpecExecutionContext) -> bool:
        return regex.search(ctx.full_description) is None

    return name_does_not_match


def match_context_glob(pattern: str, path: Sequence[str]) -> bool:
    """Match a ``/``-separated glob against context path segments."""
    parts = [p for p in pattern.strip("/").split("/") if p]
    return _match_segments(parts, [s.casefold() for s in path])


def _match_segments(parts: list[str], segments: list[str]) -> bool:
    if not parts:
        return not segments
    head, rest = parts[0], parts[1:]
    if head == "**":
        return any(_match_segments(rest, segments[i:]) for i in range(len(segments) + 1))
    if not segments:
        return False
    if head == "*" or fnmatch.fnmatchcase(segments[0], head.casefold()):
        return _match_segments(rest, segments[1:])
    return False


def context_predicate(*patterns: str) -> SpecPredicate:
    """Keep specs whose context path matches any of ``patterns``."""
    globs = _require(patterns, "context pattern")

    def context_matches(ctx: SpecExecutionContext) -> bool:
        return any(match_context_glob(g, ctx.context_path) for g in globs)

    return context_matches


def context_exclude_predicate(*patterns: str) -> SpecPredicate:
    """Keep specs whose context path matches none of ``patterns``."""
    globs = _require(patterns, "context pattern")

    def context_does_not_match(ctx: SpecExecutionContext) -> bool:
        return not any(match_context_glob(g, ctx.context_path) for g in globs)

    return context_does_not_match


__all__ = [
    "FilterMiddleware",
    "SpecPredicate",
    "context_exclude_predicate",
    "context_predicate",
    "exclude_tags_predicate",
    "match_context_glob",
    "name_exclude_predicate",
    "name_predicate",
    "tag_predicate",
]
