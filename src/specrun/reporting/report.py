"""Result aggregation: flat results → nested report with derived summaries.

Manifesto:
    A summary is never set, only computed.  Every count comes from the
    results it wraps, so ``total == passed + failed + pending + skipped``
    holds for every report, every context, and the empty run.

ARCHITECTURE
────────────
::

    build_report(root, results)
      │
      ├── index results by (spec identity, context path)
      └── mirror the tree, dropping contexts with nothing to show

    SpecReport
      ├── timestamp          UTC, when the report was built
      ├── duration           wall-clock seconds for the run
      ├── results            flat, declaration order
      ├── contexts           [ContextReport]
      │     ├── description / path
      │     ├── results      this context's own specs
      │     ├── contexts     nested ContextReports
      │     └── summary      derived over the subtree
      └── summary            derived over ``results``

Example::

    results = await runner.run_async(root)
    report = build_report(root, results, duration=1.2)
    report.summary.success        # False if anything failed
    report.to_dict()              # for formatters and history tooling

Tags:
    specrun, reporting, aggregation, summary
"""

from __future__ import annotations

from collections import defaultdict, deque
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from specrun.execution.result import SpecResult, SpecStatus
from specrun.tree.nodes import SpecContext, child_path


@dataclass(frozen=True)
class SpecSummary:
    """Counts derived from a fixed set of results."""

    results: tuple[SpecResult, ...] = ()

    @classmethod
    def of(cls, results: Iterable[SpecResult]) -> SpecSummary:
        return cls(tuple(results))

    def _count(self, status: SpecStatus) -> int:
        return sum(1 for r in self.results if r.status is status)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def passed(self) -> int:
        return self._count(SpecStatus.PASSED)

    @property
    def failed(self) -> int:
        return self._count(SpecStatus.FAILED)

    @property
    def pending(self) -> int:
        return self._count(SpecStatus.PENDING)

    @property
    def skipped(self) -> int:
        return self._count(SpecStatus.SKIPPED)

    @property
    def duration(self) -> float:
        """Sum of spec durations in seconds (exceeds wall time when parallel)."""
        return sum(r.duration for r in self.results)

    @property
    def duration_ms(self) -> float:
        return self.duration * 1000

    @property
    def success(self) -> bool:
        """True when no spec failed."""
        return self.failed == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "pending": self.pending,
            "skipped": self.skipped,
            "duration_ms": round(self.duration_ms, 3),
            "success": self.success,
        }


@dataclass
class ContextReport:
    """Report node mirroring one context that has something to show."""

    description: str
    path: tuple[str, ...]
    results: list[SpecResult] = field(default_factory=list)
    contexts: list[ContextReport] = field(default_factory=list)

    def all_results(self) -> Iterator[SpecResult]:
        yield from self.results
        for child in self.contexts:
            yield from child.all_results()

    @property
    def summary(self) -> SpecSummary:
        return SpecSummary.of(self.all_results())

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "path": list(self.path),
            "summary": self.summary.to_dict(),
            "specs": [r.to_dict() for r in self.results],
            "contexts": [c.to_dict() for c in self.contexts],
        }


@dataclass
class SpecReport:
    """Complete output of one run."""

    results: list[SpecResult]
    contexts: list[ContextReport] = field(default_factory=list)
    duration: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def summary(self) -> SpecSummary:
        return SpecSummary.of(self.results)

    @property
    def success(self) -> bool:
        return self.summary.success

    def failures(self) -> list[SpecResult]:
        return [r for r in self.results if r.status is SpecStatus.FAILED]

    def to_dict(self) -> dict[str, Any]:
        """Serialise for formatters, history and coverage tooling."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "duration_ms": round(self.duration * 1000, 3),
            "summary": self.summary.to_dict(),
            "contexts": [c.to_dict() for c in self.contexts],
        }


def build_report(
    root: SpecContext,
    results: Sequence[SpecResult],
    duration: float = 0.0,
    timestamp: datetime | None = None,
) -> SpecReport:
    """Aggregate ``results`` into a report shaped like the tree under ``root``.

    Args:
        root: The tree the results came from
        results: Flat results, in any order
        duration: Wall-clock duration of the run in seconds
        timestamp: Report time (defaults to now, UTC)

    Returns:
        SpecReport whose contexts omit any context with no results and no
        non-empty child contexts.
    """
    # A spec declared twice in one context has one result per occurrence,
    # handed out in order.
    lookup: dict[tuple[int, tuple[str, ...]], deque[SpecResult]] = defaultdict(deque)
    for r in results:
        lookup[(id(r.spec), tuple(r.context_path))].append(r)

    def build(context: SpecContext, parent_path: tuple[str, ...]) -> ContextReport | None:
        path = child_path(parent_path, context)
        node = ContextReport(description=context.description, path=path)
        for spec in context.specs:
            queued = lookup.get((id(spec), path))
            if queued:
                node.results.append(queued.popleft())
        for child in context.children:
            child_report = build(child, path)
            if child_report is not None:
                node.contexts.append(child_report)
        if not node.results and not node.contexts:
            return None
        return node

    root_report = build(root, ())
    return SpecReport(
        results=list(results),
        contexts=[root_report] if root_report is not None else [],
        duration=duration,
        timestamp=timestamp or datetime.now(UTC),
    )


__all__ = ["ContextReport", "SpecReport", "SpecSummary", "build_report"]
