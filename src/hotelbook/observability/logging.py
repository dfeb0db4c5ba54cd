"""Structured JSON logging with correlation ID support.

Every hotelbook logger writes one JSON object per line to stdout. Callers attach
structured fields through ``extra={"extra_fields": safe_log_context(...)}`` so
that nothing reaches the log stream without passing through redaction.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from .correlation import get_correlation_id

_ROOT_LOGGER = "hotelbook"


class JsonFormatter(logging.Formatter):
    """Render a log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = get_correlation_id()
        if correlation_id:
            log_obj["correlationId"] = correlation_id

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            log_obj.update(extra_fields)

        return json.dumps(log_obj, default=str)


def configure_logging(level: str | None = None) -> logging.Logger:
    """Attach the JSON handler to the package root logger (idempotent).

    Module loggers created with ``logging.getLogger(__name__)`` under the
    ``hotelbook`` namespace propagate here.
    """
    root = logging.getLogger(_ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonFormatter())
        root.addHandler(handler)
        root.propagate = False
    root.setLevel((level or os.environ.get("LOG_LEVEL", "INFO")).upper())
    return root


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the configured JSON root."""
    configure_logging()
    return logging.getLogger(name)
