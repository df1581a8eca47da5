"""
Structured error types for the specrun engine.

The engine recovers exactly one kind of failure locally: an exception raised
by a spec body becomes a Failed ``SpecResult``.  Everything else reaches the
caller, and the types here make those paths distinguishable.

Architecture:
    ::

        ┌───────────────────────────────────────────────────────────────┐
        │                        SpecRunError                           │
        │           (category, context, cause, to_dict())               │
        ├───────────────────────────────────────────────────────────────┤
        │                                                               │
        │  ConfigurationError            ExecutionError                 │
        │  (CONFIG, ValueError)          (EXECUTION)                    │
        │                                     │                         │
        │                              SpecTimeoutError                 │
        │                              (TIMEOUT, TimeoutError)          │
        └───────────────────────────────────────────────────────────────┘

        Not in this tree on purpose:
          - hook failures   → the hook's own exception, unmodified
          - cancellation    → RunCancelledError (asyncio.CancelledError)

Propagation policy:
    - **Spec failure:** recovered into a Failed result by the executor
    - **Hook failure:** propagates unmodified out of ``SpecRunner.run``
    - **Cancellation:** propagates, never converted to a result
    - **Configuration error:** raised synchronously at configuration time
    - **Bail:** not an error; skipped specs are a normal outcome

Examples:
    >>> err = ConfigurationError("max_retries must be >= 0")
    >>> err.category
    <ErrorCategory.CONFIG: 'CONFIG'>
    >>> isinstance(err, ValueError)
    True

    >>> err = SpecTimeoutError(timeout=0.05, elapsed=0.051, operation="adds numbers")
    >>> isinstance(err, TimeoutError)
    True

Tags:
    error-handling, exception-hierarchy, specrun
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and reporting."""

    CONFIG = "CONFIG"  # Invalid builder/middleware/settings values
    EXECUTION = "EXECUTION"  # Engine-level execution problems
    TIMEOUT = "TIMEOUT"  # A spec exceeded its deadline
    INTERNAL = "INTERNAL"  # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """Structured metadata attached to a ``SpecRunError``.

    Attributes:
        spec: Description of the spec involved, if any
        context_path: Context path of the spec, joined with ``" > "``
        middleware: Name of the middleware that produced the error
        metadata: Additional key-value pairs
    """

    spec: str | None = None
    context_path: str | None = None
    middleware: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["spec", "context_path", "middleware"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class SpecRunError(Exception):
    """
    Base exception for errors raised by specrun itself.

    Subclasses set ``default_category``.  Errors raised by user code (spec
    bodies, hooks, reporters) are never re-typed into this
    hierarchy.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> SpecRunError:
        """Add context fields fluently; unknown keys go into ``metadata``."""
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


class ConfigurationError(SpecRunError, ValueError):
    """Invalid configuration, raised at configuration time, never at run time."""

    default_category = ErrorCategory.CONFIG


class ExecutionError(SpecRunError):
    """Engine-level execution problem."""

    default_category = ErrorCategory.EXECUTION


class SpecTimeoutError(ExecutionError, TimeoutError):
    """A spec exceeded the deadline enforced by ``TimeoutMiddleware``.

    Inherits from built-in ``TimeoutError`` so hosts can handle it broadly.

    Attributes:
        timeout: The timeout value that was exceeded, in seconds
        elapsed: How long the spec ran before it was abandoned
        operation: Description of the spec that timed out
    """

    default_category = ErrorCategory.TIMEOUT

    def __init__(
        self,
        timeout: float,
        elapsed: float | None = None,
        operation: str = "spec",
    ):
        self.timeout = timeout
        self.elapsed = elapsed
        self.operation = operation

        msg = f"Spec '{operation}' timed out after {timeout * 1000:.0f}ms"
        if elapsed is not None:
            msg += f" (ran for {elapsed * 1000:.0f}ms)"

        super().__init__(msg, context=ErrorContext(spec=operation, middleware="timeout"))


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "SpecRunError",
    "ConfigurationError",
    "ExecutionError",
    "SpecTimeoutError",
]
