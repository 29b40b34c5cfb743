# backend/market_sync/utils/logging.py
"""
Logging configuration for the market sync service.

Every log line carries a correlation ID:
- HTTP requests get one from CorrelationIdMiddleware
- Orchestrated and scheduled sync runs get a generated "sync-..." ID,
  so all lines of one run (retries, rejected records, task summary)
  can be filtered together

Environment Configuration:
    LOG_LEVEL=DEBUG|INFO|WARNING|ERROR
    LOG_FORMAT=text   # human-readable (default)
    LOG_FORMAT=json   # one JSON object per line for log aggregation

Usage:
    from market_sync.utils import setup_logging

    setup_logging()
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from market_sync.config import settings
from market_sync.utils.context import get_correlation_id

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(correlation_id)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NO_CORRELATION_ID = "-"

# Chatty third-party loggers kept at WARNING
NOISY_LOGGERS = [
    "httpx",
    "httpcore",
    "urllib3",
    "apscheduler",
    "apscheduler.scheduler",
    "apscheduler.executors.default",
    "asyncio",
]

# LogRecord attributes that are not user-supplied "extra" fields
_RESERVED_RECORD_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "correlation_id", "message", "taskName",
})

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


class CorrelationIdFilter(logging.Filter):
    """Attach the current correlation ID to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return True


class JsonFormatter(logging.Formatter):
    """
    Render records as single-line JSON.

    Output format:
    {
        "timestamp": "2026-02-06T01:00:00.123456+00:00",
        "level": "INFO",
        "logger": "market_sync.services.market_data.ledger",
        "correlation_id": "sync-3f2a...",
        "message": "NASDAQ sync finished: total=3, success=2, failed=1",
        "extra": {"source": "NASDAQ"}
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "correlation_id": getattr(record, "correlation_id", NO_CORRELATION_ID),
            "message": record.getMessage(),
        }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {}
        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_ATTRS:
                continue
            try:
                json.dumps(value)
                extra[key] = value
            except (TypeError, ValueError):
                extra[key] = str(value)
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, ensure_ascii=False)


def setup_logging(
        level: str | None = None,
        log_format: str | None = None,
        suppress_noisy_loggers: bool = True,
) -> None:
    """
    Configure the root logger once at startup.

    Args:
        level: Log level name; defaults to settings.log_level
        log_format: 'text' or 'json'; defaults to settings.log_format
        suppress_noisy_loggers: Raise third-party loggers to WARNING
    """
    level_name = level or settings.log_level
    log_level = _get_log_level(level_name)
    format_type = (log_format or settings.log_format).lower()

    if format_type == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(CorrelationIdFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    if suppress_noisy_loggers:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging configured: level={level_name}, format={format_type}"
    )


def _get_log_level(level_str: str) -> int:
    """
    Convert a level name to its logging constant.

    Raises:
        ValueError: If the name is not a known level
    """
    key = level_str.upper().strip()
    if key not in _LEVELS:
        raise ValueError(
            f"Invalid log level: '{level_str}'. "
            f"Valid levels are: {', '.join(_LEVELS)}"
        )
    return _LEVELS[key]


def get_logger(name: str) -> logging.Logger:
    """Return a standard logger; correlation IDs come from the handler filter."""
    return logging.getLogger(name)
