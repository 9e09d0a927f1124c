"""JSON logging, correlation ids and log redaction for the Closet pipeline."""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import os
import re
import uuid
from typing import Any, Dict, Iterator, Optional

CORRELATION_ID: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("correlation_id", default=None)

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RECORD_ATTRIBUTES = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message"}
_SENSITIVE_KEYS = frozenset(
    {
        "user_id",
        "owner_id",
        "email",
        "access_token",
        "image_path",
        "public_url",
        "image_base64",
        "imageBase64",
        "description",
    }
)
_EMAIL_PATTERN = re.compile(r"[\w.\-]+@[\w.\-]+")


class JsonFormatter(logging.Formatter):
    """One JSON object per record, extras included and scrubbed."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
            "event": getattr(record, "event", message),
            "correlation_id": getattr(record, "correlation_id", None) or CORRELATION_ID.get(),
        }
        extras = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and key not in payload
        }
        payload.update(redact_for_log(extras))
        return json.dumps(payload)


def configure_logging(level: int | str | None = None) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    logging.basicConfig(level=level or os.getenv("LOG_LEVEL", "INFO"), handlers=[handler], force=True)


def get_logger(name: str) -> logging.Logger:
    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)


def redact_for_log(payload: Any) -> Any:
    """Scrub owner ids, tokens, emails, URLs and raw image bytes."""

    if isinstance(payload, str):
        if _EMAIL_PATTERN.search(payload):
            return _EMAIL_PATTERN.sub("[redacted-email]", payload)
        if payload.lower().startswith("http") or payload.startswith("data:"):
            return "[redacted-url]"
        return payload
    if payload is None or isinstance(payload, (int, float, bool)):
        return payload
    if isinstance(payload, (bytes, bytearray)):
        return f"<{len(payload)} bytes>"
    if isinstance(payload, dict):
        return {
            key: "[redacted]" if key in _SENSITIVE_KEYS else redact_for_log(value)
            for key, value in payload.items()
        }
    if isinstance(payload, (list, tuple, set, frozenset)):
        return [redact_for_log(item) for item in payload]
    return str(payload)


def ensure_correlation_id(correlation_id: str | None = None) -> str:
    """Adopt ``correlation_id``, else keep the current one, else mint one."""

    resolved = correlation_id or CORRELATION_ID.get() or uuid.uuid4().hex
    CORRELATION_ID.set(resolved)
    return resolved


@contextlib.contextmanager
def correlation_context(correlation_id: str | None = None) -> Iterator[str]:
    token = CORRELATION_ID.set(correlation_id or CORRELATION_ID.get() or uuid.uuid4().hex)
    try:
        yield CORRELATION_ID.get()
    finally:
        CORRELATION_ID.reset(token)


def log_event(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    """Log ``event`` with redacted ``fields`` attached as record extras."""

    correlation_id = ensure_correlation_id(fields.pop("correlation_id", None))
    exc_info = fields.pop("exc_info", None)
    logger.log(
        level,
        event,
        exc_info=exc_info,
        extra={"event": event, "correlation_id": correlation_id, **redact_for_log(fields)},
    )


@contextlib.contextmanager
def operation_context(name: str) -> Iterator[str]:
    """Run one pipeline operation under a single correlation id."""

    with correlation_context() as correlation_id:
        logging.getLogger(__name__).debug("operation started", extra={"operation": name})
        yield correlation_id


__all__ = [
    "JsonFormatter",
    "configure_logging",
    "correlation_context",
    "ensure_correlation_id",
    "get_logger",
    "log_event",
    "operation_context",
    "redact_for_log",
]
