"""Structured logging setup.

All records, from structlog and from the standard library (uvicorn,
redis), go through the same processor chain and end up in three places:

- stdout, rendered for humans (``console``) or as JSON (``json``)
- ``<app>.log``, rotating JSON at the configured level
- ``<app>.error.log``, rotating JSON with errors only

Every event carries the app name, version and stage plus the request
identifiers bound by the request middleware. Values under keys that look
like credentials are masked.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor

from comment_api.core.context import get_context


if TYPE_CHECKING:
    from comment_api.config.settings import Settings


SENSITIVE_KEYS = frozenset(
    {"password", "passwd", "secret", "token", "api_key", "authorization", "credentials"}
)

# Values this short are hidden completely; longer ones keep 2 chars at each end
_MIN_MASK_LENGTH = 4

NOISY_LOGGERS = ("uvicorn.access", "uvicorn.error")


def add_context_processor(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Merge request_id/trace_id/correlation_id of the current request."""
    event_dict.update(get_context())
    return event_dict


def add_app_info_processor(app_name: str, app_version: str, stage: str) -> Processor:
    """Processor stamping every event with the deployment identity."""
    app_info = {"app": app_name, "version": app_version, "stage": stage}

    def processor(
        logger: logging.Logger,
        method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        event_dict.update(app_info)
        return event_dict

    return processor


def mask_value(key: str, value: Any) -> Any:
    lowered = key.lower()
    if isinstance(value, str) and any(s in lowered for s in SENSITIVE_KEYS):
        if len(value) <= _MIN_MASK_LENGTH:
            return "***"
        return f"{value[:2]}{'*' * (len(value) - _MIN_MASK_LENGTH)}{value[-2:]}"
    if isinstance(value, dict):
        return {k: mask_value(k, v) for k, v in value.items()}
    return value


def filter_sensitive_data(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Mask admin tokens, passwords and similar fields in log events."""
    return {k: mask_value(k, v) for k, v in event_dict.items()}


def build_shared_processors(settings: "Settings") -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_context_processor,
        add_app_info_processor(settings.app_name, settings.version, settings.stage),
        filter_sensitive_data,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if settings.log_include_caller_info:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                ]
            )
        )
    return processors


def _formatter(
    renderer: Processor, shared_processors: list[Processor]
) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )


def setup_file_handler(
    log_dir: Path,
    log_file: str,
    max_bytes: int,
    backup_count: int,
    log_level: str,
) -> RotatingFileHandler:
    """Rotating UTF-8 file handler under ``log_dir`` (created if missing)."""
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        filename=str(log_dir / log_file),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(log_level.upper())
    return handler


def configure_structlog(
    settings: "Settings",
    log_dir: Path | str | None = None,
) -> None:
    """Route structlog and stdlib logging through one processor chain.

    Safe to call more than once; root handlers are replaced each time.

    Args:
        settings: Application settings.
        log_dir: Directory for log files. Defaults to ``settings.log_dir``.
    """
    level = settings.log_level
    log_dir = Path(log_dir or settings.log_dir)
    shared_processors = build_shared_processors(settings)

    if settings.log_format == "json":
        console_renderer: Processor = structlog.processors.JSONRenderer()
    else:
        console_renderer = structlog.dev.ConsoleRenderer(
            colors=sys.stdout.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(_formatter(console_renderer, shared_processors))
    root_logger.addHandler(console_handler)

    # Files are always JSON
    for suffix, file_level in (("log", level), ("error.log", "ERROR")):
        file_handler = setup_file_handler(
            log_dir=log_dir,
            log_file=f"{settings.app_name}.{suffix}",
            max_bytes=settings.log_file_max_bytes,
            backup_count=settings.log_file_backup_count,
            log_level=file_level,
        )
        file_handler.setFormatter(
            _formatter(structlog.processors.JSONRenderer(), shared_processors)
        )
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance."""
    return structlog.get_logger(name)
