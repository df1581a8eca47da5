"""Spec Result - the immutable outcome of one spec execution.

Manifesto:
    Every spec produces exactly one result, whatever happened to it: it
    ran and passed, it ran and failed, it had no body, or something (a
    filter, focus mode, bail) decided it should not run.  Middleware never
    mutates a result; it returns a modified copy.

ARCHITECTURE
────────────
::

    SpecResult (frozen)
      ├── .passed(spec, path, duration)          → body returned normally
      ├── .failed(spec, path, error, duration)   → body raised
      ├── .pending(spec, path)                   → no body
      ├── .skipped(spec, path, reason)           → never invoked
      ├── .with_status(status)                   → copy
      └── .with_retry_info(attempts, max)        → copy

    SpecStatus ── PASSED, FAILED, PENDING, SKIPPED
    RetryInfo  ── attempts, max_retries

Example::

    result = SpecResult.failed(spec, ("Calculator",), AssertionError("1 != 2"))
    result.status                       # SpecStatus.FAILED
    result.with_status(SpecStatus.PASSED).error   # original error kept

Tags:
    specrun, result, envelope, immutable
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from specrun.tree.nodes import SpecDefinition


class SpecStatus(str, Enum):
    """Outcome of a single spec."""

    PASSED = "passed"
    FAILED = "failed"
    PENDING = "pending"
    SKIPPED = "skipped"


class SkipReason:
    """Well-known ``SpecResult.reason`` values for Skipped results."""

    SKIPPED = "skipped"  # marked with xit
    FOCUS = "focus"  # another spec in the tree is focused
    FILTERED = "filtered"
    BAIL = "bail"


@dataclass(frozen=True)
class RetryInfo:
    """How many attempts a retried spec took."""

    attempts: int
    max_retries: int

    def to_dict(self) -> dict[str, int]:
        return {"attempts": self.attempts, "max_retries": self.max_retries}


@dataclass(frozen=True, eq=False)
class SpecResult:
    """Outcome of executing (or declining to execute) one spec.

    Attributes:
        spec: The exact definition this result belongs to
        status: Passed, Failed, Pending or Skipped
        context_path: Context descriptions from the root, blanks omitted
        duration: Wall-clock seconds spent in hooks and body
        error: The exception for Failed results
        retry_info: Set by retry middleware when more than one attempt ran
        reason: Free text explaining a Skipped result
    """

    spec: SpecDefinition
    status: SpecStatus
    context_path: tuple[str, ...] = ()
    duration: float = 0.0
    error: BaseException | None = None
    retry_info: RetryInfo | None = None
    reason: str | None = None

    # ── Factories ────────────────────────────────────────────────────

    @classmethod
    def passed(
        cls, spec: SpecDefinition, context_path: tuple[str, ...], duration: float = 0.0
    ) -> SpecResult:
        return cls(spec, SpecStatus.PASSED, tuple(context_path), duration)

    @classmethod
    def failed(
        cls,
        spec: SpecDefinition,
        context_path: tuple[str, ...],
        error: BaseException,
        duration: float = 0.0,
    ) -> SpecResult:
        return cls(spec, SpecStatus.FAILED, tuple(context_path), duration, error)

    @classmethod
    def pending(cls, spec: SpecDefinition, context_path: tuple[str, ...]) -> SpecResult:
        return cls(spec, SpecStatus.PENDING, tuple(context_path))

    @classmethod
    def skipped(
        cls,
        spec: SpecDefinition,
        context_path: tuple[str, ...],
        reason: str = SkipReason.SKIPPED,
    ) -> SpecResult:
        return cls(spec, SpecStatus.SKIPPED, tuple(context_path), reason=reason)

    # ── Copies ───────────────────────────────────────────────────────

    def with_status(self, status: SpecStatus) -> SpecResult:
        return replace(self, status=status)

    def with_retry_info(self, attempts: int, max_retries: int) -> SpecResult:
        return replace(self, retry_info=RetryInfo(attempts, max_retries))

    def with_duration(self, duration: float) -> SpecResult:
        return replace(self, duration=duration)

    # ── Queries ──────────────────────────────────────────────────────

    @property
    def is_failure(self) -> bool:
        return self.status is SpecStatus.FAILED

    @property
    def full_description(self) -> str:
        """Context path and spec description joined with spaces."""
        return " ".join((*self.context_path, self.spec.description))

    @property
    def duration_ms(self) -> float:
        return self.duration * 1000

    def to_dict(self) -> dict[str, Any]:
        """Serialise for logging and hosting layers."""
        data: dict[str, Any] = {
            "description": self.spec.description,
            "full_description": self.full_description,
            "status": self.status.value,
            "context_path": list(self.context_path),
            "duration_ms": round(self.duration_ms, 3),
            "tags": list(self.spec.tags),
        }
        if self.error is not None:
            data["error"] = {"type": type(self.error).__name__, "message": str(self.error)}
        if self.retry_info is not None:
            data["retry"] = self.retry_info.to_dict()
        if self.reason is not None:
            data["reason"] = self.reason
        return data

    def __repr__(self) -> str:
        return f"SpecResult({self.spec.description!r}, {self.status.value})"


__all__ = ["RetryInfo", "SkipReason", "SpecResult", "SpecStatus"]
