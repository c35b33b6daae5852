"""Logging configuration shared by the file server and the proxy.

Both services log through one ``rawhttp`` logger. Records are stamped with
the connection correlation id and the name of the service that emitted
them, then rendered as one JSON object per line (or a plain text line)
on stdout or a size-rotated file.
"""

import json
import logging
import re
import sys
import urllib.parse
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterator, Optional

from rawhttp.domain.correlation_id import CorrelationLoggerAdapter

LOGGER_NAME = "rawhttp"
TEXT_FORMAT = (
    "%(asctime)s %(levelname)s %(service)s [%(correlation_id)s] %(name)s :: %(message)s"
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5
REDACTED = "[REDACTED]"

_SENSITIVE_WORDS = re.compile(
    r"(?i)(authorization|token|key|signature|password|secret|api[_-]?key)"
)
_OPAQUE_BLOBS = (
    re.compile(r"\b[A-Fa-f0-9]{32,}\b"),
    re.compile(r"\b[A-Za-z0-9+/]{32,}={0,2}\b"),
)

# Structured fields copied from ``extra`` into JSON output, in addition to
# ``event``. Anything else a caller passes is left out.
EXTRA_KEYS = (
    "service",
    "client",
    "method",
    "target",
    "path",
    "status_code",
    "status_line",
    "bytes",
    "bytes_out",
    "content_length",
    "active",
    "max_clients",
    "error_type",
    "error",
    "host",
    "port",
    "directory",
    "log_destination",
    "log_level",
    "destination",
    "use_json",
    "socket_timeout",
    "request_timeout",
    "upstream_timeout",
    "shutdown_grace_seconds",
    "remaining_workers",
    "signal",
)


def _looks_sensitive(value: str) -> bool:
    if _SENSITIVE_WORDS.search(value):
        return True
    return any(pattern.search(value) for pattern in _OPAQUE_BLOBS)


def redact_sensitive(value: str) -> str:
    """Hide credentials and opaque tokens in a log value.

    Absolute URLs (proxy targets) keep their scheme, host and path; only a
    suspicious query string is replaced. Other values are replaced whole.
    """
    if not value:
        return value

    if value.startswith(("http://", "https://")):
        parts = urllib.parse.urlsplit(value)
        if _looks_sensitive(parts.path) or (parts.username or parts.password):
            return REDACTED
        if parts.query and _looks_sensitive(parts.query):
            return urllib.parse.urlunsplit(parts._replace(query=REDACTED, fragment=""))
        return value

    return REDACTED if _looks_sensitive(value) else value


class CorrelationIdFilter(logging.Filter):  # pylint: disable=too-few-public-methods
    """Ensure correlation_id field exists in log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        return True


class ServiceNameFilter(logging.Filter):  # pylint: disable=too-few-public-methods
    """Stamp records with the service that owns the handler."""

    def __init__(self, service: Optional[str]) -> None:
        super().__init__()
        self._service = service or "-"

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "service"):
            record.service = self._service
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record with sorted keys."""

    @staticmethod
    def _extras(record: logging.LogRecord) -> Iterator[tuple[str, Any]]:
        for key in EXTRA_KEYS:
            if not hasattr(record, key):
                continue
            value = getattr(record, key)
            yield key, redact_sensitive(value) if isinstance(value, str) else value

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "correlation_id": getattr(record, "correlation_id", "-"),
            "component": getattr(record, "component", "unknown"),
            "message": record.getMessage(),
        }
        if hasattr(record, "event"):
            log_data["event"] = record.event
        log_data.update(self._extras(record))
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, sort_keys=True, default=str)


def _resolve_level(level_name: str) -> int:
    """Translate text level names into logging module numeric levels."""
    level = getattr(logging, level_name.upper(), None)
    return level if isinstance(level, int) else logging.INFO


def _build_handler(
    destination: Optional[str],
    level: int,
    use_json: bool = True,
    service: Optional[str] = None,
) -> logging.Handler:
    """Create a stdout or rotating file handler for the project logger."""
    if destination and destination.lower() != "stdout":
        target_path = Path(destination)
        target_path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = RotatingFileHandler(
            target_path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT
        )
    else:
        handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        JsonFormatter(datefmt=DATE_FORMAT)
        if use_json
        else logging.Formatter(TEXT_FORMAT, DATE_FORMAT)
    )
    handler.addFilter(CorrelationIdFilter())
    handler.addFilter(ServiceNameFilter(service))
    return handler


def configure_logging(
    level: str = "INFO",
    destination: Optional[str] = None,
    use_json: bool = True,
    service: Optional[str] = None,
) -> CorrelationLoggerAdapter:
    """Install the single handler of the ``rawhttp`` logger and return an adapter."""
    logger = logging.getLogger(LOGGER_NAME)
    numeric_level = _resolve_level(level)
    logger.setLevel(numeric_level)
    logger.propagate = False

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.addHandler(_build_handler(destination, numeric_level, use_json, service))

    adapter = CorrelationLoggerAdapter(logger, {})
    adapter.info(
        "Logging configured",
        extra={
            "event": "logging_configured",
            "destination": destination or "stdout",
            "use_json": use_json,
        },
    )
    return adapter
