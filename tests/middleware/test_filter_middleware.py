"""Tests for FilterMiddleware and predicate factories."""

from __future__ import annotations

import pytest

from specrun.core.errors import ConfigurationError
from specrun.execution import SkipReason, SpecResult, SpecStatus
from specrun.middleware import (
    FilterMiddleware,
    SpecExecutionContext,
    context_exclude_predicate,
    context_predicate,
    exclude_tags_predicate,
    name_exclude_predicate,
    name_predicate,
    tag_predicate,
)
from specrun.middleware.filter import match_context_glob
from specrun.tree import SpecContext


def _ctx(description="spec", tags=(), path=("Calculator",)) -> SpecExecutionContext:
    root = SpecContext(path[0] if path else "")
    spec = root.it(description, lambda: None, tags=tags)
    return SpecExecutionContext(spec=spec, context=root, context_path=tuple(path))


class TestFilterMiddleware:
    def test_none_predicate_rejected(self):
        with pytest.raises(ConfigurationError):
            FilterMiddleware(None)

    @pytest.mark.asyncio
    async def test_rejected_spec_is_skipped_without_calling_next(self, trace):
        async def next_(ctx):
            trace.record("next")
            return SpecResult.passed(ctx.spec, ctx.context_path)

        result = await FilterMiddleware(lambda ctx: False).execute(_ctx(), next_)

        assert result.status is SpecStatus.SKIPPED
        assert result.reason == SkipReason.FILTERED
        assert trace.events == []

    @pytest.mark.asyncio
    async def test_accepted_spec_continues(self):
        async def next_(ctx):
            return SpecResult.passed(ctx.spec, ctx.context_path)

        result = await FilterMiddleware(lambda ctx: True).execute(_ctx(), next_)
        assert result.status is SpecStatus.PASSED

    @pytest.mark.asyncio
    async def test_custom_reason(self):
        async def next_(ctx):
            raise AssertionError("unreachable")

        result = await FilterMiddleware(lambda ctx: False, reason="quarantined").execute(_ctx(), next_)
        assert result.reason == "quarantined"


class TestTagPredicates:
    def test_any_of_tags_case_insensitive(self):
        keep = tag_predicate("fast", "smoke")
        assert keep(_ctx(tags=("FAST",)))
        assert keep(_ctx(tags=("smoke", "db")))
        assert not keep(_ctx(tags=("slow",)))
        assert not keep(_ctx())

    def test_exclude(self):
        keep = exclude_tags_predicate("slow")
        assert keep(_ctx(tags=("fast",)))
        assert not keep(_ctx(tags=("Slow",)))

    def test_empty_tag_list_rejected(self):
        with pytest.raises(ConfigurationError):
            tag_predicate()
        with pytest.raises(ConfigurationError):
            exclude_tags_predicate("", "  ")


class TestNamePredicates:
    def test_matches_full_description_case_insensitive(self):
        keep = name_predicate(r"calculator ADDS")
        assert keep(_ctx("adds numbers"))
        assert not keep(_ctx("subtracts"))

    def test_exclude(self):
        keep = name_exclude_predicate("flaky")
        assert keep(_ctx("stable"))
        assert not keep(_ctx("flaky network call"))

    def test_invalid_regex_rejected(self):
        with pytest.raises(ConfigurationError):
            name_predicate("(unclosed")

    def test_empty_pattern_rejected(self):
        with pytest.raises(ConfigurationError):
            name_predicate("")


class TestContextGlobs:
    @pytest.mark.parametrize(
        "pattern, path, expected",
        [
            ("Calculator", ("Calculator",), True),
            ("calculator", ("Calculator",), True),
            ("Calculator", ("Calculator", "add"), False),
            ("Calculator/*", ("Calculator", "add"), True),
            ("Calculator/*", ("Calculator", "add", "negatives"), False),
            ("Calculator/**", ("Calculator",), True),
            ("Calculator/**", ("Calculator", "add", "negatives"), True),
            ("**/negatives", ("Calculator", "add", "negatives"), True),
            ("*/add", ("Calculator", "add"), True),
            ("Calc*/add", ("Calculator", "add"), True),
            ("Parser/**", ("Calculator", "add"), False),
        ],
    )
    def test_match_context_glob(self, pattern, path, expected):
        assert match_context_glob(pattern, path) is expected

    def test_include_any_pattern(self):
        keep = context_predicate("Parser/**", "Calculator/**")
        assert keep(_ctx(path=("Calculator", "add")))
        assert not keep(_ctx(path=("Lexer",)))

    def test_exclude(self):
        keep = context_exclude_predicate("**/legacy")
        assert keep(_ctx(path=("Calculator",)))
        assert not keep(_ctx(path=("Calculator", "legacy")))

    def test_empty_patterns_rejected(self):
        with pytest.raises(ConfigurationError):
            context_predicate()
