from __future__ import annotations

import json
import logging
import sys
from typing import Any

from alertproc.core.config import settings

# LogRecord attributes that are not user-supplied ``extra`` fields.
_RESERVED_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}

# Alert context passed via ``extra=`` is promoted to top-level keys so the log
# sink can index on it; anything else lands under ``extra``.
_CONTEXT_FIELDS = ("alert_id", "source_type", "driver_id", "task")

# Beat fires every few seconds; at INFO it would drown the worker log.
_QUIET_LOGGERS = {
    "celery.beat": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "redis": logging.WARNING,
}


class JsonFormatter(logging.Formatter):
    """One JSON object per line, stamped with the service and environment."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "service": settings.APP_NAME,
            "env": settings.ENV,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        for key, value in record.__dict__.items():
            if key.startswith("_") or key in _RESERVED_ATTRS:
                continue
            if key in _CONTEXT_FIELDS:
                payload[key] = value
            elif key not in payload:
                payload.setdefault("extra", {})[key] = value
        return json.dumps(payload, default=str)


def init_logging(level: int | None = None) -> None:
    """Configure the root logger once per process (API or worker)."""
    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)
    if logging.getLogger().handlers:
        return
    handler = logging.StreamHandler(sys.stdout)
    if settings.LOG_FORMAT.lower() == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
    root = logging.getLogger()
    root.setLevel(level or getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    root.addHandler(handler)
