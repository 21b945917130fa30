"""
Structured logging for fresh-spine.

Every scheduler, request and client event is a structlog record: a dotted
event name (``request.sent``, ``scheduler.resending``) plus key/value fields
such as ``key``, ``operation`` and ``delay_seconds``.

Architecture:
    ::

        configure_logging(level, json_format, service)

            ↓

        processor chain:
          1. merge_contextvars      (client / operation bound by callers)
          2. add_log_level, TimeStamper
          3. _add_service           service.name
          4. _normalize_values      datetimes → ISO, *_seconds rounded
          5. _ecs_field_names       (JSON only) @timestamp, log.level
          6. JSONRenderer | ConsoleRenderer

Usage:
    >>> from fresh_spine.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> logger = get_logger(__name__)
    >>> logger.debug("request.scheduled", key="thing:1", delay_seconds=0.0)

Tags:
    logging, structlog, observability, fresh-spine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

_service_name = "fresh-spine"

# Delays and ages are floats computed from datetimes; six decimals is noise.
_SECONDS_PRECISION = 3


def _add_service(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service.name", _service_name)
    return event_dict


def _normalize_values(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Render datetimes as ISO strings and round ``*_seconds`` fields."""
    for name, value in event_dict.items():
        if isinstance(value, datetime):
            event_dict[name] = value.isoformat()
        elif name.endswith("_seconds") and isinstance(value, float):
            event_dict[name] = round(value, _SECONDS_PRECISION)
    return event_dict


def _ecs_field_names(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    for source, target in (("timestamp", "@timestamp"), ("level", "log.level")):
        if source in event_dict:
            event_dict[target] = event_dict.pop(source)
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "fresh-spine",
) -> None:
    """Configure structlog for fresh-spine events.

    Args:
        level: Minimum level to emit (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON lines, False for console output,
            None to pick JSON when stdout is not a terminal
        service: Value of the ``service.name`` field
    """
    global _service_name
    _service_name = service

    if json_format is None:
        json_format = not sys.stdout.isatty()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _add_service,
        _normalize_values,
    ]

    if json_format:
        processors += [
            _ecs_field_names,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(default=str),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> Any:
    """Return a structlog logger, usually ``get_logger(__name__)``."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind fields to every following log record in this context.

    Example:
        bind_context(client="github")
        logger.info("scheduler.tick")  # carries client="github"
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind fields for the duration of a ``with`` (or ``async with``) block.

    Example:
        async with LogContext(client="github", operation="read"):
            await scheduler.send_requests(requests)
    """

    def __init__(self, **fields: Any):
        self._fields = fields

    def __enter__(self) -> LogContext:
        bind_context(**self._fields)
        return self

    def __exit__(self, *exc_info) -> None:
        unbind_context(*self._fields)

    async def __aenter__(self) -> LogContext:
        return self.__enter__()

    async def __aexit__(self, *exc_info) -> None:
        self.__exit__(*exc_info)


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
