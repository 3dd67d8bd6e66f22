"""Structured logging configuration using structlog.

JSON output outside development, coloured console output in development.
Every entry carries the request_id bound by the HTTP middleware, so a single
command can be followed from the route through the orchestrator to the
notification dispatcher.

Usage:
    from auction_settlement.logging_config import setup_logging, get_logger
    setup_logging(log_level="DEBUG", json_logs=False)
    logger = get_logger(__name__)
    logger.info("invoice.created", invoice_id="abc-123", total="10500.00")
"""

from __future__ import annotations

import enum
import logging
import sys
import uuid
from decimal import Decimal

import structlog

_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore", "aiosqlite")


def _plain_values(_logger, _method_name, event_dict):
    """Render money, ids and statuses the way the API does: "10500.00", not Decimal(...)."""
    for key, value in event_dict.items():
        if isinstance(value, enum.Enum):
            event_dict[key] = value.value
        elif isinstance(value, Decimal | uuid.UUID):
            event_dict[key] = str(value)
    return event_dict


def setup_logging(log_level: str = "DEBUG", json_logs: bool = False) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Standard Python log level string (DEBUG, INFO, WARNING, etc.)
        json_logs: If True, output JSON lines. If False, coloured console.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _plain_values,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_logs:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.DEBUG))

    for noisy_logger in _NOISY_LOGGERS:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)


def invoice_log_context(invoice_id: str, actor_id: str | None = None):
    """Context manager binding the invoice (and acting party) to log entries.

    Usage:
        with invoice_log_context(str(invoice_id), actor_id):
            logger.info("fees.submitted")
    """
    context = {"invoice_id": invoice_id}
    if actor_id is not None:
        context["actor_id"] = actor_id
    return structlog.contextvars.bound_contextvars(**context)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Optional logger name. If None, uses the calling module's name.
    """
    return structlog.get_logger(name)
