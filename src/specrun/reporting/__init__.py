"""Result aggregation and reporter dispatch."""

from specrun.reporting.report import ContextReport, SpecReport, SpecSummary, build_report
from specrun.reporting.reporter import (
    CollectingReporter,
    LoggingReporter,
    Reporter,
    ReporterDispatcher,
    RunStarting,
    StreamingStats,
)

__all__ = [
    "CollectingReporter",
    "ContextReport",
    "LoggingReporter",
    "Reporter",
    "ReporterDispatcher",
    "RunStarting",
    "SpecReport",
    "SpecSummary",
    "StreamingStats",
    "build_report",
]
