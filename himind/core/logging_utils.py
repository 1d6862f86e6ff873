"""
Logging utilities for safe logging of ingested content.

Includes:
- Secret/PII redaction for job payloads and error context
- Structured usage logging for embedding and Claude calls
"""
import json
import logging
import re
from typing import Any, Optional


# Payload keys that never reach the logs verbatim
SENSITIVE_KEYS = [
    "api_key", "token", "password", "secret", "auth",
    "email", "phone", "authorization", "cookie",
]

_EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')
_CONTROL_CHARS = re.compile(r'[\x00-\x1F\x7F]')


def sanitize_for_logging(data: Any, max_len: int = 100) -> Any:
    """
    Sanitize data for safe logging - redacts secrets and truncates bodies.

    Message bodies can be arbitrarily long, so strings are cut to
    ``max_len`` characters.

    Args:
        data: dict, list, str or scalar to sanitize
        max_len: Maximum length for string values before truncation

    Returns:
        Sanitized copy of the data
    """
    if data is None:
        return "None"

    if isinstance(data, dict):
        sanitized = {}
        for k, v in data.items():
            if any(sensitive in str(k).lower() for sensitive in SENSITIVE_KEYS):
                sanitized[k] = "***REDACTED***"
            else:
                sanitized[k] = sanitize_for_logging(v, max_len)
        return sanitized

    if isinstance(data, (list, tuple)):
        return [sanitize_for_logging(item, max_len) for item in data]

    if isinstance(data, (int, float, bool)):
        return data

    if isinstance(data, str):
        cleaned = _CONTROL_CHARS.sub('', redact_emails(data))
        if len(cleaned) > max_len:
            return cleaned[:max_len] + "..."
        return cleaned

    return sanitize_for_logging(str(data), max_len)


def redact_emails(text: str) -> str:
    """Replace email addresses with [EMAIL_REDACTED]."""
    return _EMAIL_PATTERN.sub('[EMAIL_REDACTED]', text)


def sanitize_log_message(message: str, max_len: int = 500) -> str:
    """
    Sanitize an exception or log message before it is persisted.

    Args:
        message: Raw message text
        max_len: Maximum length kept

    Returns:
        Single-line message with emails redacted
    """
    message = redact_emails(message)
    message = _CONTROL_CHARS.sub(' ', message).strip()
    if len(message) > max_len:
        message = message[:max_len] + "..."
    return message


# =============================================================================
# STRUCTURED USAGE LOGGING
# =============================================================================

_usage_logger = logging.getLogger("HiMind.Usage")


def log_model_usage(
    model: str,
    operation: str,
    input_tokens: int = 0,
    output_tokens: int = 0,
    duration_ms: Optional[int] = None,
) -> None:
    """
    Log one structured usage event for an embedding or Claude call.

    Args:
        model: Model identifier
        operation: 'embedding' or 'extraction'
        input_tokens: Prompt tokens reported by the provider
        output_tokens: Completion tokens reported by the provider
        duration_ms: Request duration in milliseconds
    """
    event = {
        "event": "model_usage",
        "model": model,
        "operation": operation,
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "total_tokens": input_tokens + output_tokens,
    }
    if duration_ms is not None:
        event["duration_ms"] = duration_ms

    _usage_logger.info("MODEL_USAGE %s", json.dumps(event))
