"""
Specrun Logging - structured logging for the execution engine.

Every module in specrun logs through ``get_logger(__name__)`` and emits
dotted event names with keyword fields (``runner.context.start``,
``middleware.retry.attempt``).  This module owns the structlog processor
chain so hosts configure output once at startup.

Architecture:
    ::

        configure_logging(level="INFO", json_format=None, service="specrun")
              │
              ▼
        structlog processor chain:
          1. TimeStamper (iso)
          2. merge_contextvars   ← bind_context()/LogContext values
          3. add_log_level       (logger name is bound by get_logger)
          4. add_service_metadata
          5. ecs field names (JSON only)
          6. JSONRenderer  |  ConsoleRenderer

Examples:
    >>> from specrun.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> logger = get_logger(__name__)
    >>> logger.info("runner.run.start", specs=12)

Guardrails:
    - Auto-detects JSON vs console based on TTY
    - Service name stored globally (set once at startup)
    - Loggers are not cached: module-level loggers pick up a later
      ``configure_logging`` call and the current ``sys.stdout``
    - ``LogContext`` restores the previous values on exit, so the runner can
      bind ``context_path`` per context and ``spec`` per spec without leaks

Tags:
    logging, structlog, observability, specrun
"""

from __future__ import annotations

import contextvars
import logging
import sys
from collections.abc import Mapping
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

_SERVICE_NAME = "specrun"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service.name", _SERVICE_NAME)
    return event_dict


def _ecs_field_names(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Rename timestamp, level and logger to their ECS names."""
    if "timestamp" in event_dict:
        event_dict["@timestamp"] = event_dict.pop("timestamp")
    if "level" in event_dict:
        event_dict["log.level"] = event_dict.pop("level")
    if "logger" in event_dict:
        event_dict["log.logger"] = event_dict.pop("logger")
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "specrun",
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name to include in logs
        add_timestamp: Include ISO timestamp in logs
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    if json_format is None:
        json_format = not sys.stdout.isatty()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]

    if add_timestamp:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        shared_processors.append(_ecs_field_names)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger.

    Args:
        name: Logger name (usually __name__), emitted as the ``logger`` field

    Returns:
        structlog BoundLogger
    """
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(logger=name)


def bind_context(**kwargs: Any) -> Mapping[str, contextvars.Token]:
    """Bind context to include in all subsequent logs.

    Returns:
        Reset tokens; pass them to ``reset_context`` to restore the previous values.
    """
    return structlog.contextvars.bind_contextvars(**kwargs)


def reset_context(tokens: Mapping[str, contextvars.Token]) -> None:
    """Restore the values that were bound before ``bind_context`` returned ``tokens``."""
    structlog.contextvars.reset_contextvars(**tokens)


class LogContext:
    """Context manager for scoped logging context.

    Values are restored on exit rather than removed, so nested scopes that
    bind the same key (a child context's ``context_path``) hand the outer
    value back when they finish.

    Example:
        async with LogContext(context_path="Calculator > add"):
            logger.info("runner.context.start")
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs
        self._tokens: Mapping[str, contextvars.Token] = {}

    def __enter__(self) -> LogContext:
        self._tokens = bind_context(**self._context)
        return self

    def __exit__(self, *args) -> None:
        reset_context(self._tokens)

    async def __aenter__(self) -> LogContext:
        return self.__enter__()

    async def __aexit__(self, *args) -> None:
        self.__exit__(*args)


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "reset_context",
    "LogContext",
]
