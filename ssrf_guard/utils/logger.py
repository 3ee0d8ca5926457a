"""Structured logging utilities for ssrf-guard.

This module provides structured logging using structlog. The package logs
every pre-DNS and post-DNS decision through ``get_logger()``; applications
that want the block/report callback routed to structlog as well can pass
``structlog_callback()`` as ``Options.logger``.

ssrf-guard is a library: it does not configure structlog on import. Call
``configure_logging()`` from the application entry point if the default
structlog output is not what you want.
"""

import logging
import sys
import time
from typing import Optional

import structlog
from structlog.types import EventDict, Processor

from ssrf_guard.models.events import BlockEvent, LoggerCallback, LogLevel


def add_timestamp(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add epoch timestamp to log entries."""
    event_dict["timestamp"] = time.time()
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = True
) -> None:
    """Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON format. If False, use console format.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_timestamp,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.extend([
            structlog.dev.ConsoleRenderer(colors=True),
        ])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "ssrf_guard") -> structlog.stdlib.BoundLogger:
    """Get a logger instance.

    Args:
        name: Logger name (typically module name)

    Returns:
        structlog logger
    """
    return structlog.get_logger(name)


# Callback level → structlog method name
_LEVEL_METHODS: dict[str, str] = {
    "info": "info",
    "warn": "warning",
    "error": "error",
}


def structlog_callback(name: str = "ssrf_guard.events") -> LoggerCallback:
    """Build an ``Options.logger`` callback that forwards to structlog.

    The BlockEvent fields are bound as key/value pairs so JSON output carries
    ``reason``, ``url``, ``ip``, ``hostname`` and ``event_id``.

    Example::

        options = Options(mode=Mode.REPORT, logger=structlog_callback())
    """
    log = get_logger(name)

    def _callback(level: LogLevel, message: str, event: Optional[BlockEvent] = None) -> None:
        method = getattr(log, _LEVEL_METHODS.get(level, "info"))
        if event is None:
            method(message)
        else:
            method(message, **event.to_dict())

    return _callback
