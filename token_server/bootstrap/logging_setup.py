"""Logging configuration for the token server."""

import json
import logging
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from token_server.domain.correlation_id import CorrelationLoggerAdapter

LOGGER_NAME = "token_server"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s :: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5

# Extra record attributes copied into JSON output, in addition to the basics.
EXTRA_KEYS = (
    "client",
    "method",
    "route",
    "content_type",
    "app_id",
    "project_id",
    "expected_project_id",
    "status_code",
    "reason",
    "detail",
    "token",
    "ttl_millis",
    "forced",
    "bytes_in",
    "bytes_out",
    "limit",
    "duration_ms",
    "error",
    "error_type",
    "host",
    "port",
    "log_destination",
    "log_level",
    "use_json",
    "socket_timeout",
    "shutdown_grace_seconds",
    "grace_seconds",
    "remaining_workers",
    "signal",
)

SENSITIVE_KEYS = {"token"}

SENSITIVE_PATTERNS = [
    re.compile(r"(?i)\b(authorization|bearer|private[_-]?key|secret|password)\b"),
    re.compile(r"\beyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*"),
]


def redact_sensitive(value: str) -> str:
    """Redact credentials and JWTs from log values."""
    if not value:
        return value

    for pattern in SENSITIVE_PATTERNS:
        if pattern.search(value):
            return "[REDACTED]"

    return value


def mask_token(token: str) -> str:
    """Keep only enough of a token to tell two of them apart in logs."""
    if len(token) <= 8:
        return "***"
    return f"{token[:4]}...{token[-4:]}"


class CorrelationIdFilter(logging.Filter):  # pylint: disable=too-few-public-methods
    """Ensure correlation_id field exists in log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        return True


def structured_fields(record: logging.LogRecord) -> dict:
    """Return the whitelisted extras of ``record`` with secrets masked."""
    fields = {}
    if hasattr(record, "event"):
        fields["event"] = record.event
    for key in EXTRA_KEYS:
        if not hasattr(record, key):
            continue
        value = getattr(record, key)
        if isinstance(value, str):
            value = mask_token(value) if key in SENSITIVE_KEYS else redact_sensitive(value)
        fields[key] = value
    return fields


class JsonFormatter(logging.Formatter):
    """JSON formatter with stable key ordering for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "correlation_id": getattr(record, "correlation_id", "-"),
            "component": getattr(record, "component", "unknown"),
            "message": record.getMessage(),
        }
        log_data.update(structured_fields(record))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, sort_keys=True, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines followed by the structured fields as ``key=value``."""

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        fields = structured_fields(record)
        if not fields:
            return line
        pairs = " ".join(
            f"{key}={json.dumps(fields[key], default=str)}" for key in sorted(fields)
        )
        return f"{line} {pairs}"


def _resolve_level(level_name: str) -> int:
    level = getattr(logging, level_name.upper(), None)
    if isinstance(level, int):
        return level
    return logging.INFO


def _build_handler(
    destination: Optional[str], level: int, use_json: bool = True
) -> logging.Handler:
    """Create a stdout or rotating file handler for the configured logger."""
    if destination and destination.lower() != "stdout":
        target_path = Path(destination)
        target_path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            target_path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT
        )
    else:
        handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if use_json:
        handler.setFormatter(JsonFormatter(datefmt=DATE_FORMAT))
    else:
        handler.setFormatter(TextFormatter(LOG_FORMAT, DATE_FORMAT))

    handler.addFilter(CorrelationIdFilter())
    return handler


def configure_logging(
    level: str = "INFO", destination: Optional[str] = None, use_json: bool = True
) -> CorrelationLoggerAdapter:
    """Configure the project logger and return an adapter for it."""
    logger = logging.getLogger(LOGGER_NAME)
    numeric_level = _resolve_level(level)
    logger.setLevel(numeric_level)
    logger.propagate = False

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    logger.addHandler(_build_handler(destination, numeric_level, use_json))
    adapter = CorrelationLoggerAdapter(logger, {})
    adapter.info(
        "Logging configured",
        extra={
            "event": "logging_configured",
            "log_level": logging.getLevelName(numeric_level),
            "log_destination": destination or "stdout",
            "use_json": use_json,
        },
    )
    return adapter
