"""Per-connection correlation ids carried into every log record.

Each accepted connection runs in its own thread and gets a fresh id for
the lifetime of that connection, so all records about one request can be
grouped even when many connections are interleaved in the log.
"""

import contextlib
import contextvars
import logging
import uuid
from typing import Any, Iterator, MutableMapping, Optional

ROOT_LOGGER_PREFIX = "rawhttp."
NO_CORRELATION_ID = "-"

_correlation_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def get_correlation_id() -> Optional[str]:
    return _correlation_id_var.get()


@contextlib.contextmanager
def correlation_scope(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Bind a correlation id for the duration of one connection."""
    token = _correlation_id_var.set(correlation_id or generate_correlation_id())
    try:
        yield _correlation_id_var.get()
    finally:
        _correlation_id_var.reset(token)


def component_for(logger_name: str) -> str:
    """Return the logger name relative to the project root logger."""
    if logger_name.startswith(ROOT_LOGGER_PREFIX):
        return logger_name[len(ROOT_LOGGER_PREFIX) :]
    return logger_name


class CorrelationLoggerAdapter(logging.LoggerAdapter):
    """Adds ``correlation_id`` and ``component`` to the caller's ``extra``."""

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        correlation_id = get_correlation_id()
        extra["correlation_id"] = (
            correlation_id if correlation_id is not None else NO_CORRELATION_ID
        )
        extra["component"] = component_for(self.logger.name)
        kwargs["extra"] = extra
        return msg, kwargs
