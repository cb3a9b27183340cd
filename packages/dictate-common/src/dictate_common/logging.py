"""
Structured logging setup for the Dictate services.

Configures structlog for JSON-formatted structured logging. Every log
line includes timestamp, level, service name, and event. Per-recording
context (recording_id, sample_rate) is bound at processing time.
"""

from __future__ import annotations

import logging
import sys

import structlog


def configure_logging(
    level: str = "INFO",
    *,
    json: bool = True,
    service: str = "vad",
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Logging level name (``DEBUG``, ``INFO``, ...).
        json: Render JSON lines when ``True``, coloured console output otherwise.
        service: Service name bound to every log line.
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level)

    renderer: structlog.types.Processor
    if json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service)
