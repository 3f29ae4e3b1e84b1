"""Structured JSON logging configuration.

Provides centralized logging setup with request ID correlation and JSON
formatting. Relay code attaches `user_id`, `application_id` and
`confidence` through `extra=` and they are emitted as top-level fields.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from .request_id import NO_REQUEST_ID, get_request_id

# Extra fields copied from log records into the JSON document
CONTEXT_FIELDS = (
    "user_id",
    "application_id",
    "confidence",
    "reason",
    "method",
    "path",
    "status_code",
    "duration_ms",
)


class RequestIDFilter(logging.Filter):
    """Add request_id to all log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        return True


class JSONFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", NO_REQUEST_ID),
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["error"] = str(record.exc_info[1])
            log_data["traceback"] = self.formatException(record.exc_info)

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is None:
                continue
            # UUIDs and enums are not JSON serializable
            if not isinstance(value, (int, float, bool)):
                value = getattr(value, "value", value)
                value = str(value)
            log_data[field] = value

        return json.dumps(log_data)


def configure_logging(level: str = "INFO", json_format: bool = True) -> None:
    """Configure application-wide logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: If True, use JSON formatter; otherwise use simple format
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(request_id)s - %(name)s - %(message)s'
        )

    handler.setFormatter(formatter)
    handler.addFilter(RequestIDFilter())
    root_logger.addHandler(handler)

    # Suppress noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
