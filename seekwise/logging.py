"""Structured logging for the Seekwise service.

JSON lines in production, a compact human-readable line in tests and local
runs. Every record is reshaped into ``message``/``context``/``extra`` with the
request ``correlation_id`` carried through structlog context variables.
"""

import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

import structlog
from structlog.types import EventDict, WrappedLogger

PACKAGE_PREFIX = "seekwise"


class LogKeys(str, Enum):
    """Field names used in rendered records."""

    CORRELATION_ID = "correlation_id"
    CONTEXT = "context"
    TIMESTAMP = "timestamp"
    LOGGER = "logger"
    MESSAGE = "message"
    LEVEL = "level"
    EXTRA = "extra"


STANDARD_FIELDS = frozenset(
    {
        LogKeys.TIMESTAMP.value,
        LogKeys.LOGGER.value,
        LogKeys.MESSAGE.value,
        LogKeys.CONTEXT.value,
        LogKeys.LEVEL.value,
    }
)


@dataclass(frozen=True)
class LogDefaults:
    """Default values for logging configuration."""

    context: str = "default"
    correlation_id: str = "unknown"
    log_level: str = "INFO"
    max_value_length: int = 50
    correlation_id_display_length: int = 8


DEFAULTS = LogDefaults()


def _context_value(key: str, default: str) -> str:
    return str(structlog.contextvars.get_contextvars().get(key, default))


def get_correlation_id() -> str:
    """Get current correlation ID from context."""
    return _context_value(LogKeys.CORRELATION_ID.value, DEFAULTS.correlation_id)


def _restructure_fields(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Move the structlog event into ``message`` and everything non-standard into ``extra``."""
    event_dict[LogKeys.MESSAGE.value] = event_dict.pop("event", "")
    event_dict[LogKeys.CONTEXT.value] = _context_value(LogKeys.CONTEXT.value, DEFAULTS.context)

    extra = {key: event_dict.pop(key) for key in list(event_dict) if key not in STANDARD_FIELDS}
    correlation_id = get_correlation_id()
    if correlation_id != DEFAULTS.correlation_id:
        extra[LogKeys.CORRELATION_ID.value] = correlation_id
    if extra:
        event_dict[LogKeys.EXTRA.value] = extra
    return event_dict


class HumanReadableFormatter:
    """Final structlog processor rendering ``HH:MM:SS [LEVEL] logger: message [k=v] [id:xxxx]``."""

    def __init__(self, defaults: LogDefaults = DEFAULTS):
        self.defaults = defaults

    def __call__(self, _: WrappedLogger, __: str, event_dict: EventDict) -> str:
        level = str(event_dict.get(LogKeys.LEVEL.value, "info")).upper()
        logger_name = self.format_logger_name(event_dict.get(LogKeys.LOGGER.value, ""))
        message = event_dict.get(LogKeys.MESSAGE.value, "")
        extra = dict(event_dict.get(LogKeys.EXTRA.value, {}))
        correlation_id = extra.pop(LogKeys.CORRELATION_ID.value, "")

        time_str = self.format_timestamp(event_dict.get(LogKeys.TIMESTAMP.value, ""))
        return (
            f"{time_str} [{level}] {logger_name}: {message}"
            f"{self.format_extra_fields(extra)}{self.format_correlation_id(correlation_id)}"
        )

    def format_field_value(self, value: Any) -> str:
        text = str(value)
        limit = self.defaults.max_value_length
        return f"{text[: limit - 3]}..." if len(text) > limit else text

    def format_timestamp(self, timestamp: str) -> str:
        if not timestamp:
            return ""
        try:
            return datetime.fromisoformat(timestamp.replace("Z", "+00:00")).strftime("%H:%M:%S")
        except (ValueError, AttributeError):
            return timestamp.split("T")[1][:8] if "T" in timestamp else ""

    def format_correlation_id(self, correlation_id: str) -> str:
        if not correlation_id:
            return ""
        return f" [id:{correlation_id[: self.defaults.correlation_id_display_length]}]"

    def format_logger_name(self, logger_name: str) -> str:
        """Drop the package prefix and keep the last two dotted parts."""
        if not logger_name.startswith(PACKAGE_PREFIX):
            return logger_name
        parts = logger_name.removeprefix(f"{PACKAGE_PREFIX}.").split(".")
        return ".".join(parts[-2:])

    def format_extra_fields(self, extra: dict[str, Any]) -> str:
        if not extra:
            return ""
        return " [" + ", ".join(f"{key}={self.format_field_value(value)}" for key, value in extra.items()) + "]"


def configure_structlog(testing: bool = False) -> None:
    """Configure structured logging with JSON or human-readable output format."""
    level_name = os.environ.get("LOGGING_LEVEL", DEFAULTS.log_level).upper()
    level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(format="%(message)s", level=level, stream=sys.stdout)
    logging.getLogger().setLevel(level)

    processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.contextvars.merge_contextvars,
        _restructure_fields,
        structlog.processors.TimeStamper(fmt="iso"),
        HumanReadableFormatter() if testing else structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,  # type: ignore[arg-type]
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )


def new_correlation_id() -> str:
    """Short random id used to tie together one request's log lines."""
    return uuid4().hex[:8]


def clear_context_fields() -> None:
    """Clear all context variables."""
    structlog.contextvars.clear_contextvars()


def bind_context_vars(**kwargs: Any) -> None:
    """Bind context variables for logging."""
    structlog.contextvars.bind_contextvars(**kwargs)


def get_context_vars() -> dict[str, Any]:
    return structlog.contextvars.get_contextvars()


def get_logger(name: str = "") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name or __name__)  # type: ignore
