"""Configuración de logging estructurado (structlog).

Reglas:
- Los logs van a stderr: stdout queda reservado para los documentos que
  imprime la CLI.
- `configure_logging` es idempotente; los módulos solo llaman a `get_logger`.
"""

from __future__ import annotations

import logging.config
import sys
from typing import Any

import structlog
from structlog.types import Processor

from core.config import AppSettings

_configured = False


def get_logging_config(settings: AppSettings) -> dict[str, Any]:
    """Diccionario para `logging.config.dictConfig`."""

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": settings.log_level.upper(),
                "formatter": "standard",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            "": {
                "level": settings.log_level.upper(),
                "handlers": ["console"],
                "propagate": False,
            },
            "httpx": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }


def configure_logging(settings: AppSettings | None = None, *, force: bool = False) -> None:
    """Configura structlog + logging estándar una sola vez por proceso."""

    global _configured
    if _configured and not force:
        return

    settings = settings or AppSettings()

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if settings.log_json:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.config.dictConfig(get_logging_config(settings))
    _configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Logger estructurado con nombre."""

    return structlog.get_logger(name)
