from __future__ import annotations

import logging
import os
import sys

import structlog
from structlog.types import FilteringBoundLogger, Processor


def configure_logging() -> None:
    """Configure structlog with JSON or console output.

    STOREFRONT_LOG_FORMAT selects the renderer (json | console) and
    STOREFRONT_LOG_LEVEL the minimum level.
    """

    log_format = os.getenv("STOREFRONT_LOG_FORMAT", "json").strip().lower()
    log_level = os.getenv("STOREFRONT_LOG_LEVEL", "INFO").strip().upper()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "console":
        processors = shared_processors + [structlog.dev.ConsoleRenderer(colors=False)]
    else:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level, logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    return structlog.get_logger(name)
