"""
Shared pytest fixtures and configuration for specrun tests.

This module provides:
- Marker auto-tagging by test location
- A thread-safe trace recorder for hook/body ordering assertions
- Small spec-tree builders (flat, nested, pass/fail mixes)

Usage:
    Fixtures are auto-discovered by pytest; request them by name.

    def test_something(trace, nested_tree):
        ...
"""

import sys
import threading
from pathlib import Path

import pytest

# Ensure specrun package is importable without an install
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from specrun.tree import SpecContext


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        # The runner suite drives whole trees end to end
        if test_path.parts and test_path.parts[0] == "runner":
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Trace Recording
# =============================================================================


class Trace:
    """Append-only event log safe to write from worker threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.events: list[str] = []

    def record(self, event: str) -> None:
        with self._lock:
            self.events.append(event)

    def hook(self, event: str):
        """Return a zero-arg callable that records ``event``."""
        return lambda: self.record(event)

    def count(self, event: str) -> int:
        with self._lock:
            return self.events.count(event)

    def __contains__(self, event: str) -> bool:
        with self._lock:
            return event in self.events


@pytest.fixture
def trace() -> Trace:
    return Trace()


# =============================================================================
# Tree Builders
# =============================================================================


def passing():
    return None


def failing():
    raise AssertionError("expected failure")


@pytest.fixture
def flat_tree(trace):
    """Root with five passing specs that record their own names."""
    root = SpecContext("root")
    for i in range(5):
        root.it(f"spec {i}", trace.hook(f"spec {i}"))
    return root


@pytest.fixture
def nested_tree(trace):
    """root > outer > inner with every hook slot recording, one spec in inner."""
    root = SpecContext("root")
    outer = root.describe("outer")
    inner = outer.describe("inner")
    for ctx, name in ((root, "root"), (outer, "outer"), (inner, "inner")):
        ctx.hooks(
            before_all=trace.hook(f"BeforeAll({name})"),
            after_all=trace.hook(f"AfterAll({name})"),
            before_each=trace.hook(f"BeforeEach({name})"),
            after_each=trace.hook(f"AfterEach({name})"),
        )
    inner.it("spec", trace.hook("spec"))
    return root


@pytest.fixture
def pass_fail_pass():
    """Root with [pass, fail, pass]."""
    root = SpecContext("bail")
    root.it("first passes", passing)
    root.it("second fails", failing)
    root.it("third passes", passing)
    return root
