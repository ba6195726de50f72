"""Per-request correlation IDs carried in a context variable."""

import contextvars
import logging
import uuid
from typing import Any, MutableMapping, Optional

LOGGER_PREFIX = "token_server."

_correlation_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def get_correlation_id() -> Optional[str]:
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    _correlation_id_var.set(None)


class CorrelationLoggerAdapter(logging.LoggerAdapter):
    """Tag every record with the active correlation ID and emitting component.

    The component is the logger name relative to the project root logger, so
    ``token_server.pipeline.dispatcher`` is reported as ``pipeline.dispatcher``.
    """

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra["correlation_id"] = get_correlation_id() or "-"
        name = self.logger.name
        extra["component"] = (
            name[len(LOGGER_PREFIX) :] if name.startswith(LOGGER_PREFIX) else name
        )
        kwargs["extra"] = extra
        return msg, kwargs
