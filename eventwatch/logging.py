"""Structured logging for the engine, built on structlog.

Every record carries the service name and the emitting module, and any
context bound with ``structlog.contextvars`` (the dispatcher binds
``pass_at`` for the duration of a pass).
"""

from __future__ import annotations

import logging
import sys

import structlog

SERVICE_NAME = "eventwatch"


def add_service(service: str):
    """Processor factory that stamps *service* on every event dict."""

    def processor(logger, method_name, event_dict):
        event_dict.setdefault("service", service)
        return event_dict

    return processor


def setup_logging(
    json_output: bool = False, log_level: str = "INFO", service: str = SERVICE_NAME
) -> None:
    """Configure structlog and route stdlib records (uvicorn, httpx) to stdout.

    Args:
        json_output: Render JSON lines when True, console output otherwise.
        log_level: Level name; unknown names fall back to INFO.
        service: Value of the ``service`` key on every record.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    processors = [
        structlog.contextvars.merge_contextvars,
        add_service(service),
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a logger whose records carry ``module=name``."""
    return structlog.get_logger().bind(module=name)
