"""Structured logging setup.

Modules keep using ``logging.getLogger(__name__)``; the web layer and the
request middleware log through ``structlog``. Both end up on the same stdlib
handlers, rendered as JSON lines (``LOG_FORMAT=json``) or for the console.
"""

import logging
import sys
from pathlib import Path
from typing import Any

import structlog

from cardiva.config import AppConfig, get_config

LOG_FILE = Path("logs/cardiva.log")

# Chatty third-party loggers kept at WARNING unless running at DEBUG
QUIET_LOGGERS = ("httpx", "httpcore", "asyncpg", "multipart")


def build_processors(log_format: str) -> list[Any]:
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return processors


def configure_logging(config: AppConfig | None = None) -> None:
    """Configure structlog and the stdlib root logger from the app config."""
    config = config or get_config()
    level = config.log_level.upper()

    structlog.configure(
        processors=build_processors(config.log_format),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if LOG_FILE.parent.is_dir():
        handlers.append(logging.FileHandler(LOG_FILE))

    logging.basicConfig(format="%(message)s", handlers=handlers, level=level, force=True)

    if level != "DEBUG":
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
