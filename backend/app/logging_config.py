"""Process-wide logging setup with per-request context."""

from __future__ import annotations

import logging
import os
import sys
from contextvars import ContextVar
from typing import Optional

# purpose: stamp every log record with the request correlation id and tenant workspace
# status: active

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
workspace_id_var: ContextVar[Optional[str]] = ContextVar("workspace_id", default=None)

LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | cid=%(correlation_id)s | ws=%(workspace_id)s | "
    "%(message)s"
)


class RequestContextFilter(logging.Filter):
    """Copy correlation and workspace ids from contextvars onto the record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get() or "-"
        record.workspace_id = workspace_id_var.get() or "-"
        return True


def configure_logging(level: int | str | None = None) -> None:
    """Install a single stdout handler on the root logger."""
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO").upper()
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT))
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)
