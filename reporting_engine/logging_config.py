"""Logging setup for processes embedding the reporting engine.

Two layouts are supported:

* plain text lines (the default), and
* single-line JSON objects for log aggregators, enabled with
  ``REPORTING_STRUCTURED_LOGGING=true``.

Output schema per JSON line::

    {
        "timestamp": "2025-05-15T12:34:56.789012+00:00",
        "level": "INFO",
        "logger": "reporting_engine.scheduler.scheduler",
        "message": "Dispatched report request ...",
        "request_uuid": "...",        // present when passed via ``extra``
        "exc_info": "Traceback ..."   // present only on exceptions
    }
"""

from __future__ import annotations

import json
import logging
import traceback
from datetime import UTC, datetime
from typing import Any

from reporting_engine.config import Settings

_TEXT_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        """Render *record* as a single JSON line."""
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }

        request_uuid = getattr(record, "request_uuid", None)
        if request_uuid:
            payload["request_uuid"] = request_uuid

        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_info"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(payload, default=str, ensure_ascii=False)


def configure_logging(settings: Settings) -> None:
    """Replace the root logger's handlers according to *settings*."""
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    handler = logging.StreamHandler()
    if settings.structured_logging:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    root_logger.addHandler(handler)
    root_logger.setLevel(settings.log_level.upper())
    if settings.structured_logging:
        root_logger.info("Structured JSON logging enabled")
