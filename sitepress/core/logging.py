"""
Structured logging for sitepress.

- `sitepress` logger: JSON lines in production, one-line pretty output elsewhere.
- request_id and the acting user live in context vars so every record
  emitted while serving a request can be correlated without threading
  them through call signatures.
- log_event() attaches tenant fields (user/site/plan) and truncates
  free-form values.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Dict, Optional

LOGGER_NAME = "sitepress"

request_id_ctx_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_ctx_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)

# Record attributes copied into JSON output when present
CONTEXT_FIELDS = (
    "request_id",
    "user_id",
    "site_id",
    "plan_id",
    "hostname",
    "event_type",
    "error_code",
    "status",
    "method",
    "path",
    "latency_bucket",
)

# (upper bound in ms, label); the last label covers everything slower
_LATENCY_BUCKETS = (
    (10, "<10ms"),
    (100, "10-100ms"),
    (500, "100-500ms"),
    (1000, "500-1000ms"),
)

MAX_FIELD_LENGTH = 500


def get_request_id(default: Optional[str] = None) -> Optional[str]:
    rid = request_id_ctx_var.get()
    return rid if rid is not None else default


def bind_user_id(user_id: Optional[str]) -> None:
    """Mark the rest of the current request as acting on behalf of user_id."""
    user_id_ctx_var.set(user_id)


def latency_bucket_ms(latency_ms: Optional[float]) -> str:
    if latency_ms is None:
        return "unknown"
    for upper, label in _LATENCY_BUCKETS:
        if latency_ms < upper:
            return label
    return ">=1000ms"


class ContextFilter(logging.Filter):
    """Fill request_id / user_id from context when the call site did not."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_ctx_var.get()
        if getattr(record, "user_id", None) is None:
            record.user_id = user_id_ctx_var.get()
        return True


def _timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": _timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (field, getattr(record, field))
            for field in CONTEXT_FIELDS
            if getattr(record, field, None) is not None
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class PrettyFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        tags = [
            f"{key}={getattr(record, field)}"
            for key, field in (("rid", "request_id"), ("user", "user_id"), ("plan", "plan_id"))
            if getattr(record, field, None)
        ]
        tag_part = f" [{' '.join(tags)}]" if tags else ""
        line = f"{_timestamp(record)} {record.levelname:<7} {LOGGER_NAME}{tag_part} {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(env: str = "development") -> logging.Logger:
    """Install a single stdout handler on the sitepress logger."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if env.lower() == "production" else PrettyFormatter())
    handler.addFilter(ContextFilter())

    logger.handlers = [handler]
    logger.propagate = True

    # uvicorn keeps its own handlers
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.error").propagate = False
    return logger


def _truncate(value, limit: int = MAX_FIELD_LENGTH) -> str:
    try:
        text = str(value)
    except Exception:
        return "<unserializable>"
    return text if len(text) <= limit else text[:limit] + "...<truncated>"


def log_event(
    level: str,
    msg: str,
    *,
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
    site_id: Optional[str] = None,
    plan_id: Optional[str] = None,
    event_type: Optional[str] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, object]] = None,
    exc_info: bool = False,
) -> None:
    """Emit one structured record on the sitepress logger."""
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        configure_logging(os.getenv("ENV", "development"))

    fields: Dict[str, object] = {
        "request_id": request_id or request_id_ctx_var.get(),
        "user_id": user_id or user_id_ctx_var.get(),
        "site_id": site_id,
        "plan_id": plan_id,
        "event_type": event_type,
        "error_code": error_code,
    }
    for key, value in (extra or {}).items():
        fields[key] = _truncate(value)

    logger.log(logging.getLevelName(level.upper()), msg, extra=fields, exc_info=exc_info)
