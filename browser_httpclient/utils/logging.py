"""
Structured logging for browser-httpclient.

Every event is a structlog key/value record. Navigations bind a
``navigation_id`` through LogContext so that the interception, ledger and
answer events of one page load can be grouped after the fact.
"""

import logging
import sys
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from browser_httpclient.utils.config import GeneralConfig, get_project_root, get_settings

_TRUNCATION_MARK = "...[truncated]"


def _add_timestamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["timestamp"] = datetime.now(UTC).isoformat().replace("+00:00", "Z")
    return event_dict


def _add_log_level(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["level"] = method_name.upper()
    return event_dict


def _truncate_values(limit: int) -> Processor:
    """Build a processor that shortens long string values.

    Ledger dumps carry header maps and POST bodies; a limit of 0 disables
    truncation.
    """

    def processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        if limit <= 0:
            return event_dict
        for key, value in event_dict.items():
            if key != "event" and isinstance(value, str) and len(value) > limit:
                event_dict[key] = value[:limit] + _TRUNCATION_MARK
        return event_dict

    return processor


def configure_logging(
    log_level: str | None = None,
    log_file: str | Path | None = None,
    json_format: bool | None = None,
    general: GeneralConfig | None = None,
) -> None:
    """Configure structlog and the stdlib root handlers.

    Meant for application entry points. Root handlers that are already
    installed are left in place.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR. Uses settings if None.
        log_file: Extra file handler target. Defaults to a dated file under
            settings.general.logs_dir; stderr only when that is unset.
        json_format: JSON lines (True) or console rendering (False).
            Uses settings if None.
        general: General settings to read defaults from. Uses
            get_settings().general if None.
    """
    general = general or get_settings().general

    log_level = log_level or general.log_level
    if json_format is None:
        json_format = general.json_logs
    if log_file is None and general.logs_dir:
        log_dir = get_project_root() / general.logs_dir
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"browser_httpclient_{datetime.now():%Y%m%d}.log"

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper(), logging.INFO),
        handlers=handlers,
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        _add_timestamp,
        _add_log_level,
        _truncate_values(general.log_value_limit),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if json_format:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance (usually ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context variables to all subsequent log calls."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


class LogContext:
    """Scoped logging context.

    Example:
        with LogContext(navigation_id=new_navigation_id()):
            logger.info("Navigation started", url=url)
    """

    def __init__(self, **kwargs: Any):
        self.context = kwargs

    def __enter__(self) -> "LogContext":
        bind_context(**self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        unbind_context(*self.context)


def new_navigation_id() -> str:
    """Short random id correlating the log events of one navigation."""
    return uuid.uuid4().hex[:12]


_logging_configured = False


def ensure_logging_configured(general: GeneralConfig | None = None) -> None:
    """Configure logging once per process."""
    global _logging_configured
    if not _logging_configured:
        configure_logging(general=general)
        _logging_configured = True
