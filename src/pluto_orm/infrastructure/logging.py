"""Structured logging configuration.

Log lines go to stderr; stdout belongs to the CLI tables. Besides the usual
level and timestamp, every event carries:

- store_version: the snapshot version a write started from, bound for the
  duration of the write by bind_store_version()
- trace_id / span_id: ids of the active OpenTelemetry span, if any
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import Any, Generator

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from pluto_orm.infrastructure.tracing import current_trace_ids


def add_trace_context(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Processor adding the ids of the active span, so logs line up with traces."""
    for key, value in current_trace_ids().items():
        event_dict.setdefault(key, value)
    return event_dict


@contextmanager
def bind_store_version(version: int) -> Generator[None, None, None]:
    """Tag every event logged inside the block with the store version."""
    with structlog.contextvars.bound_contextvars(store_version=int(version)):
        yield


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    trace_ids: bool = True,
) -> None:
    """
    Set up structured logging with structlog.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format ('json' or 'console')
        trace_ids: Add trace_id/span_id of the active span to each event
    """
    numeric_level = getattr(logging, level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric_level)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if trace_ids:
        processors.append(add_trace_context)
    processors += [
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """Get a bound logger, optionally with initial context."""
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger
