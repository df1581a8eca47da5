"""Reporter interface, dispatch, and built-in reporters.

Reporters hear three kinds of events, in registration order:

    on_run_starting(RunStarting)    once, before any hook or spec
    on_spec_completed(SpecResult)   once per result, in declaration order
    on_run_completed(SpecReport)    once, with the final report

Methods may be plain or ``async``.  ``ReporterDispatcher`` fans each event
out to every reporter.  With ``isolate=True`` (the default) a reporter that
raises is logged with ``reporter.error`` and the run continues; with
``isolate=False`` the remaining reporters still get the event and then the
first exception is raised to the caller.
"""

from __future__ import annotations

import inspect
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from specrun.core.logging import get_logger
from specrun.execution.result import SpecResult, SpecStatus
from specrun.reporting.report import SpecReport

logger = get_logger(__name__)


@dataclass(frozen=True)
class RunStarting:
    """Payload of ``on_run_starting``."""

    total_specs: int
    has_focused_specs: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class Reporter:
    """Base reporter; every hook is a no-op so subclasses override what they need."""

    @property
    def name(self) -> str:
        return type(self).__name__

    def on_run_starting(self, info: RunStarting) -> Any:
        return None

    def on_spec_completed(self, result: SpecResult) -> Any:
        return None

    def on_run_completed(self, report: SpecReport) -> Any:
        return None


class ReporterDispatcher:
    """Deliver reporter events for one run.

    Tracks which results were already delivered so a strategy's per-spec
    notifications and its batch notification never double-report.
    """

    def __init__(self, reporters: Sequence[Reporter], isolate: bool = True):
        self._reporters = tuple(reporters)
        self._isolate = isolate
        self._delivered: set[int] = set()

    @property
    def reporters(self) -> tuple[Reporter, ...]:
        return self._reporters

    async def run_starting(self, info: RunStarting) -> None:
        await self._dispatch("on_run_starting", info)

    async def spec_completed(self, result: SpecResult) -> None:
        if id(result) in self._delivered:
            return
        self._delivered.add(id(result))
        await self._dispatch("on_spec_completed", result)

    async def batch_completed(self, results: Sequence[SpecResult]) -> None:
        """Deliver every not-yet-delivered result, in the given order."""
        for result in results:
            await self.spec_completed(result)

    async def run_completed(self, report: SpecReport) -> None:
        await self._dispatch("on_run_completed", report)

    async def _dispatch(self, event: str, payload: Any) -> None:
        first_error: Exception | None = None
        for reporter in self._reporters:
            try:
                outcome = getattr(reporter, event)(payload)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as exc:
                if self._isolate:
                    logger.error(
                        "reporter.error",
                        reporter=getattr(reporter, "name", type(reporter).__name__),
                        event_name=event,
                        error_type=type(exc).__name__,
                        error=str(exc),
                    )
                elif first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error


# =============================================================================
# Built-in reporters
# =============================================================================


class LoggingReporter(Reporter):
    """Emit structlog events for run start, each spec and run completion."""

    def __init__(self, logger_name: str = "specrun.report"):
        self._log = get_logger(logger_name)

    def on_run_starting(self, info: RunStarting) -> None:
        self._log.info(
            "run.starting",
            total_specs=info.total_specs,
            focused=info.has_focused_specs,
        )

    def on_spec_completed(self, result: SpecResult) -> None:
        fields: dict[str, Any] = {
            "spec": result.full_description,
            "status": result.status.value,
            "duration_ms": round(result.duration_ms, 1),
        }
        if result.retry_info is not None:
            fields["attempts"] = result.retry_info.attempts
        if result.reason is not None:
            fields["reason"] = result.reason
        if result.status is SpecStatus.FAILED:
            self._log.warning("spec.completed", error=str(result.error), **fields)
        else:
            self._log.info("spec.completed", **fields)

    def on_run_completed(self, report: SpecReport) -> None:
        self._log.info(
            "run.completed",
            wall_ms=round(report.duration * 1000, 1),
            **report.summary.to_dict(),
        )


class CollectingReporter(Reporter):
    """Keep every event in memory."""

    def __init__(self) -> None:
        self.started: list[RunStarting] = []
        self.results: list[SpecResult] = []
        self.reports: list[SpecReport] = []

    def on_run_starting(self, info: RunStarting) -> None:
        self.started.append(info)

    def on_spec_completed(self, result: SpecResult) -> None:
        self.results.append(result)

    def on_run_completed(self, report: SpecReport) -> None:
        self.reports.append(report)

    @property
    def last_report(self) -> SpecReport | None:
        return self.reports[-1] if self.reports else None


class StreamingStats(Reporter):
    """Running counters updated as specs complete; safe to read from any thread."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts = {status: 0 for status in SpecStatus}
        self._duration = 0.0
        self._expected = 0

    def on_run_starting(self, info: RunStarting) -> None:
        with self._lock:
            self._counts = {status: 0 for status in SpecStatus}
            self._duration = 0.0
            self._expected = info.total_specs

    def on_spec_completed(self, result: SpecResult) -> None:
        with self._lock:
            self._counts[result.status] += 1
            self._duration += result.duration

    @property
    def completed(self) -> int:
        with self._lock:
            return sum(self._counts.values())

    @property
    def expected(self) -> int:
        return self._expected

    def count(self, status: SpecStatus) -> int:
        with self._lock:
            return self._counts[status]

    def to_dict(self) -> dict[str, Any]:
        """Snapshot shaped like ``SpecSummary.to_dict()``."""
        with self._lock:
            counts = dict(self._counts)
            duration = self._duration
        return {
            "total": sum(counts.values()),
            "passed": counts[SpecStatus.PASSED],
            "failed": counts[SpecStatus.FAILED],
            "pending": counts[SpecStatus.PENDING],
            "skipped": counts[SpecStatus.SKIPPED],
            "duration_ms": round(duration * 1000, 3),
            "success": counts[SpecStatus.FAILED] == 0,
        }


__all__ = [
    "CollectingReporter",
    "LoggingReporter",
    "Reporter",
    "ReporterDispatcher",
    "RunStarting",
    "StreamingStats",
]
