"""Logging configuration for the application.

Every log line carries the request id and the acting principal
(``doctor:D0001``, ``patient:P0009``) so that access decisions can be traced
back to the caller that made them.
"""

from __future__ import annotations

import contextvars
import logging

from safemed.config import settings

LOG_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s %(message)s "
    "request_id=%(request_id)s actor=%(actor)s"
)

request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id",
    default=None,
)
actor_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "actor",
    default=None,
)


class RequestContextFilter(logging.Filter):
    """Attach request_id and actor from contextvars to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = getattr(record, "request_id", None) or request_id_var.get() or "-"
        record.actor = getattr(record, "actor", None) or actor_var.get() or "-"
        return True


def configure_logging() -> None:
    """Configure service logging. Safe to call more than once."""
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(format=LOG_FORMAT)
    root_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    for handler in root_logger.handlers:
        if not any(isinstance(f, RequestContextFilter) for f in handler.filters):
            handler.addFilter(RequestContextFilter())

    # SQL echo is controlled by DATABASE_ECHO; keep the engine quiet otherwise.
    if not settings.database_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
