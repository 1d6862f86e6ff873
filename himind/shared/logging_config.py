"""
Structured logging configuration for the knowledge service.

JSON lines in production, a readable single-line format in development.
Every record carries the correlation id of the HTTP request or processing
job that produced it; JSON records also carry the OpenTelemetry trace id
when a span is active.

Usage:
    from himind.shared.logging_config import setup_logging

    setup_logging(service_name="himind-knowledge-service")

    logger = logging.getLogger("HiMind.Ingestion")
    logger.info("Source stored", extra={"source_id": source_id})
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional

from himind.core.tracing import get_current_trace_id
from himind.shared.correlation import get_correlation_id

# LogRecord attributes that are not user-supplied extras
_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "correlation_id", "message", "taskName",
}

_NOISY_LOGGERS = [
    "httpx",
    "httpcore",
    "hpack",
    "urllib3",
    "asyncio",
    "openai",
    "anthropic",
    "postgrest",
]


def _extra_fields(record: logging.LogRecord) -> dict:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_ATTRS and not key.startswith("_")
    }


class CorrelationIdFilter(logging.Filter):
    """Injects the current correlation id into every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = get_correlation_id() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """Formats log records as one JSON object per line."""

    def __init__(self, service_name: str = "himind"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }

        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id and correlation_id != "-":
            log_entry["correlation_id"] = correlation_id

        trace_id = get_current_trace_id()
        if trace_id:
            log_entry["trace_id"] = trace_id

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key, value in _extra_fields(record).items():
            try:
                json.dumps(value)
                log_entry[key] = value
            except (TypeError, ValueError):
                log_entry[key] = str(value)

        return json.dumps(log_entry)


class HumanReadableFormatter(logging.Formatter):
    """Development formatter: timestamp, level, correlation id, extras inline."""

    def format(self, record: logging.LogRecord) -> str:
        correlation_id = getattr(record, "correlation_id", "-")
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        prefix = f"{timestamp} [{record.levelname}] [{correlation_id}]"

        extras = _extra_fields(record)
        suffix = " | " + ", ".join(f"{k}={v}" for k, v in extras.items()) if extras else ""

        formatted = f"{prefix} {record.name}: {record.getMessage()}{suffix}"
        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)
        return formatted


def setup_logging(
    service_name: str,
    level: Optional[str] = None,
    json_output: Optional[bool] = None,
) -> None:
    """
    Configure root logging for the service.

    Args:
        service_name: Name stamped on every JSON record
        level: Log level; defaults to LOG_LEVEL or INFO
        json_output: JSON lines when True; defaults to True unless
                     ENVIRONMENT=development
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, level, logging.INFO)

    if json_output is None:
        environment = os.getenv("ENVIRONMENT", "production").lower()
        json_output = environment != "development"

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(
        JSONFormatter(service_name=service_name) if json_output else HumanReadableFormatter()
    )
    handler.addFilter(CorrelationIdFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger("HiMind.Startup").info(
        "Logging configured",
        extra={
            "log_level": level,
            "json_output": json_output,
            "environment": os.getenv("ENVIRONMENT", "production"),
        },
    )
