"""Logging for bucketview.

Records are stamped with the HTTP request they were emitted under
(correlation id, method, path) once the middleware has called
``bind_request``. ``setup_logging`` renders them as text or JSON lines.
"""

from __future__ import annotations

import json
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from bucketview.config import Config

correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")
request_line: ContextVar[tuple[str, str] | None] = ContextVar("request_line", default=None)

# boto3 logs every retry and credential lookup at INFO
QUIET_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3", "httpx", "httpcore")

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s%(request_suffix)s"


def bind_request(cid: str, method: str, path: str) -> None:
    """Attach the current request to every record logged in this context."""
    correlation_id.set(cid)
    request_line.set((method, path))


class _RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        cid = correlation_id.get()
        method, path = request_line.get() or ("", "")
        record.correlation_id = cid  # type: ignore[attr-defined]
        record.http_method = method  # type: ignore[attr-defined]
        record.http_path = path  # type: ignore[attr-defined]
        parts = [p for p in (cid, method, path) if p]
        record.request_suffix = f" [{' '.join(parts)}]" if parts else ""  # type: ignore[attr-defined]
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per record; request fields only when bound."""

    _REQUEST_FIELDS = (("correlation_id", "correlation_id"), ("http_method", "method"), ("http_path", "path"))

    def format(self, record: logging.LogRecord) -> str:
        payload: dict = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for attr, field in self._REQUEST_FIELDS:
            value = getattr(record, attr, "")
            if value:
                payload[field] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(config: "Config") -> None:
    """Send every record to stderr in the format named by ``config.logging.format``.

    Safe to call twice (the CLI bootstraps logging, then ``serve`` calls it
    again): the root handlers are replaced, not appended to.
    """
    level = logging.getLevelName(config.logging.level.upper())
    if not isinstance(level, int):
        level = logging.WARNING

    handler = logging.StreamHandler()
    handler.addFilter(_RequestContextFilter())
    if config.logging.format.lower() == "json":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def redact(token: str | None) -> str:
    """Short, log-safe prefix of a secret token."""
    if not token:
        return "-"
    return token[:8] + "…"
