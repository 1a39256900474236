"""
Logging setup for the carbon scheme engine.

Everything, including records from uvicorn, httpx and SQLAlchemy, goes
through one structlog chain and is rendered by a single root handler:
JSON lines outside development, coloured console output locally.
"""

import logging
import sys
from decimal import Decimal
from enum import Enum
from typing import cast
from uuid import UUID

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from carbonscheme.core.config import Settings, get_settings

# Loggers that emit per-query or per-request chatter at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine")


def _plain_values(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Render ids, enums and decimals as JSON-friendly scalars."""
    for key, value in event_dict.items():
        if isinstance(value, UUID):
            event_dict[key] = str(value)
        elif isinstance(value, Enum):
            event_dict[key] = value.value
        elif isinstance(value, Decimal):
            event_dict[key] = float(value)
    return event_dict


def _service_fields(settings: Settings) -> Processor:
    def add_service(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", settings.project_name)
        event_dict.setdefault("environment", settings.environment)
        return event_dict

    return add_service


def build_processors(settings: Settings) -> tuple[list[Processor], Processor]:
    """Return the shared pre-chain and the final renderer for ``settings``."""
    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _plain_values,
    ]
    if settings.environment == "development":
        return shared, structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    shared += [
        _service_fields(settings),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    return shared, structlog.processors.JSONRenderer()


def configure_logging(settings: Settings | None = None) -> None:
    """Install the structlog chain and route the standard library through it.

    Request-scoped fields bound with ``structlog.contextvars`` (``request_id``
    and friends, see :mod:`carbonscheme.core.middleware`) appear on every line.
    """
    settings = settings or get_settings()
    shared, renderer = build_processors(settings)

    structlog.configure(
        processors=shared + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level)

    quiet_level = logging.DEBUG if settings.debug else logging.WARNING
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance with the given name."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
