from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

_EXTRA_FIELDS = ("document_id", "stage", "profile", "latency_ms", "outcome", "violation_count")

# HTTP client libraries log every request at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "urllib3")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update({name: getattr(record, name) for name in _EXTRA_FIELDS if hasattr(record, name)})
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(level.upper())
    if not root.handlers:
        root.addHandler(logging.StreamHandler())
    for handler in root.handlers:
        handler.setFormatter(JsonFormatter())
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def log_document_event(
    logger: logging.Logger,
    level: int,
    message: str,
    *,
    document_id: str,
    stage: str | None = None,
    profile: str | None = None,
    latency_ms: int | None = None,
    outcome: str | None = None,
    violation_count: int | None = None,
) -> None:
    fields = {
        "stage": stage,
        "profile": profile,
        "latency_ms": latency_ms,
        "outcome": outcome,
        "violation_count": violation_count,
    }
    extra = {"document_id": document_id, **{key: value for key, value in fields.items() if value is not None}}
    logger.log(level, message, extra=extra)
