"""Specrun Core -- ambient primitives shared by every engine layer.

Architecture::

    errors.py          Structured error hierarchy (SpecRunError, ConfigurationError)
    cancellation.py    CancellationToken, RunCancelledError, current_token()
    logging.py         structlog configuration + get_logger()
    settings.py        RunnerSettings (pydantic-settings, SPECRUN_ prefix)
"""

from specrun.core.cancellation import (
    CancellationToken,
    RunCancelledError,
    current_token,
)
from specrun.core.errors import (
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    ExecutionError,
    SpecRunError,
    SpecTimeoutError,
)
from specrun.core.logging import configure_logging, get_logger

__all__ = [
    "CancellationToken",
    "RunCancelledError",
    "current_token",
    "ConfigurationError",
    "ErrorCategory",
    "ErrorContext",
    "ExecutionError",
    "SpecRunError",
    "SpecTimeoutError",
    "configure_logging",
    "get_logger",
]
