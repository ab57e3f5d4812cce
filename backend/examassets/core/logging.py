from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from typing import Any

import orjson

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RESERVED_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime", "taskName"}

_SCALAR_TYPES = (str, int, float, bool, type(None))

_QUIET_LOGGERS: dict[str, int] = {
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "motor": logging.WARNING,
    "pymongo": logging.WARNING,
    "redis": logging.WARNING,
    "botocore": logging.WARNING,
    "boto3": logging.WARNING,
    "s3transfer": logging.WARNING,
    "PIL": logging.WARNING,
}


class JSONFormatter(logging.Formatter):
    """Produce structured JSON log lines suitable for log aggregators."""

    def __init__(self, service: str = "exam-assets") -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.name == "uvicorn.access":
            log_entry["logger"] = "access"

        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in log_entry:
                continue
            if isinstance(value, _SCALAR_TYPES):
                log_entry[key] = value
            elif isinstance(value, list | tuple) and all(
                isinstance(item, _SCALAR_TYPES) for item in value
            ):
                log_entry[key] = list(value)

        return orjson.dumps(log_entry).decode("utf-8")


def setup_logging(level: str = "INFO", service: str = "exam-assets") -> None:
    """Configure the root logger with structured JSON output.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        service: Value of the ``service`` field stamped on every line.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Remove any existing handlers to avoid duplicate output
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(numeric_level)
    stream_handler.setFormatter(JSONFormatter(service=service))

    root_logger.addHandler(stream_handler)

    for name, floor in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(max(numeric_level, floor))
