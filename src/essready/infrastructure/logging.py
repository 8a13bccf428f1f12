from __future__ import annotations

import logging
import sys
import uuid
from logging.handlers import RotatingFileHandler
from typing import Any

import structlog
from structlog.typing import Processor

from essready.config.settings import LOG_FORMAT_JSON, LoggingSettings

BoundLogger = structlog.stdlib.BoundLogger

_configured_settings: LoggingSettings | None = None


def _build_processors(json_logs: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]
    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


def _build_handler(level: int, handler: logging.Handler) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def configure_logging(settings: LoggingSettings) -> None:
    global _configured_settings

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(settings.level)
    root_logger.addHandler(_build_handler(settings.level, logging.StreamHandler(sys.stderr)))

    if settings.file_path:
        root_logger.addHandler(
            _build_handler(
                settings.level,
                RotatingFileHandler(
                    settings.file_path,
                    maxBytes=settings.max_bytes,
                    backupCount=settings.backup_count,
                ),
            )
        )

    structlog.configure(
        processors=_build_processors(settings.format == LOG_FORMAT_JSON),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
    _configured_settings = settings


def get_logger(name: str) -> BoundLogger:
    return structlog.get_logger(name)


def new_run_id() -> str:
    return f"run-{uuid.uuid4().hex[:12]}"


def attach_run_context(
    logger: BoundLogger,
    *,
    run_id: str | None = None,
    routine: str | None = None,
    instance: str | None = None,
    **base_fields: Any,
) -> BoundLogger:
    """Bind run-scoped fields, skipping the ones that are unset."""

    fields: dict[str, Any] = {
        "run_id": run_id,
        "routine": routine,
        "instance": instance,
        **base_fields,
    }
    extras = {key: value for key, value in fields.items() if value is not None}
    if not extras:
        return logger
    return logger.bind(**extras)


def log_event(
    logger: BoundLogger,
    event: str,
    *,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    event_fields = {key: value for key, value in fields.items() if value is not None}
    logger.log(level, event, **event_fields)


__all__ = [
    "BoundLogger",
    "configure_logging",
    "get_logger",
    "new_run_id",
    "attach_run_context",
    "log_event",
]
