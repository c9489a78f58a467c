"""Structured logging configuration using structlog.

Logs render as coloured console output in development and as JSON elsewhere.

Example:
    >>> from admissions.app.core.logging import setup_logging, get_logger
    >>> setup_logging(get_settings())
    >>> logger = get_logger(__name__)
    >>> logger.info("tour_booked", entry_id=12, slot_id=3)
"""

import logging
import sys

import structlog
from structlog.types import Processor


def setup_logging(settings) -> None:
    """Configure structlog and the stdlib root logger from settings."""
    log_level = getattr(logging, str(settings.log_level).upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.is_development:
        processors: list[Processor] = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    for logger_name in ["uvicorn", "uvicorn.access", "uvicorn.error", "httpx", "sqlalchemy"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger("admissions").setLevel(log_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger for the given module name."""
    return structlog.get_logger(name)


def bind_context(**kwargs: object) -> None:
    """Bind request-scoped values (tenant_id, actor_id) to subsequent log calls."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
