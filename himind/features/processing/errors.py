"""
Processing error handler - classify, escalate, persist and summarize.

Errors are classified from their message (plus a few exception types whose
messages are not descriptive, such as a bare TimeoutError). Repeats of the
same (content type, error type, message) within this process escalate the
severity one step once they pass ESCALATION_THRESHOLD.
"""

import asyncio
import logging
import threading
import traceback
import uuid
from collections import Counter, OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from himind.core.logging_utils import sanitize_for_logging, sanitize_log_message
from himind.shared.errors import ContentValidationError, EmbeddingServiceError

logger = logging.getLogger("HiMind.Processing.Errors")

SEVERITIES = ["low", "medium", "high", "critical"]
ESCALATION_THRESHOLD = 5
CACHE_MAX_ENTRIES = 1000
CACHE_KEEP_ENTRIES = 500

TIMEFRAME_HOURS = {"hour": 1, "day": 24, "week": 168}

# First matching rule wins
_MESSAGE_RULES = [
    ("timeout", ("timeout", "timed out", "abort")),
    ("validation", ("validation", "invalid")),
    ("database", ("database", "supabase", "sql", "postgrest")),
    ("api", ("api", "fetch", "network", "connection")),
    ("processing", ("processing", "extraction", "nlp", "clustering")),
]


def categorize_error(error: Union[BaseException, str]) -> str:
    """Map an error onto validation/processing/database/api/timeout/unknown."""
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return "timeout"
    if isinstance(error, (ContentValidationError, ValidationError)):
        return "validation"
    if isinstance(error, EmbeddingServiceError):
        return "api"

    message = str(error).lower()
    for error_type, needles in _MESSAGE_RULES:
        if any(needle in message for needle in needles):
            return error_type
    return "unknown"


def escalate(severity: str) -> str:
    index = SEVERITIES.index(severity)
    return SEVERITIES[min(index + 1, len(SEVERITIES) - 1)]


class ProcessingErrorHandler:
    """
    Logs processing errors to the store and the application log.

    Persistence is best-effort: a failing store never turns an error report
    into a second error.
    """

    def __init__(self, db):
        self.db = db
        self._frequency: "OrderedDict[str, int]" = OrderedDict()
        self._lock = threading.Lock()

    def log_error(
        self,
        job_id: Optional[str],
        content_type: str,
        error: Union[BaseException, str],
        context: Optional[Dict[str, Any]] = None,
        severity: str = "medium",
    ) -> str:
        """
        Record one processing error.

        Args:
            job_id: Job the error belongs to (None for enqueue-time errors)
            content_type: Content type being processed
            error: Exception or message
            context: Extra context; sanitized before it is stored
            severity: Starting severity before frequency escalation

        Returns:
            The error id
        """
        message = sanitize_log_message(str(error) or type(error).__name__)
        error_type = categorize_error(error)
        error_stack = None
        if isinstance(error, BaseException) and error.__traceback__ is not None:
            error_stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))[-4000:]

        frequency = self._track(f"{content_type}:{error_type}:{message}")
        if frequency > ESCALATION_THRESHOLD:
            severity = escalate(severity)

        error_id = f"error_{uuid.uuid4().hex[:12]}"
        row = {
            "id": error_id,
            "job_id": job_id,
            "content_type": content_type,
            "error_type": error_type,
            "error_message": message,
            "error_stack": error_stack,
            "context": {**sanitize_for_logging(context or {}), "frequency": frequency},
            "severity": severity,
            "resolved": False,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }

        try:
            self.db.errors.insert(row)
        except Exception as e:
            logger.error(f"Failed to store processing error {error_id}: {e}")

        log_level = logging.ERROR if severity in ("high", "critical") else logging.WARNING
        logger.log(
            log_level,
            f"{severity.upper()} {error_type} error on {content_type}: {message}",
            extra={"job_id": job_id, "error_id": error_id, "frequency": frequency},
        )
        if severity == "critical":
            logger.critical(
                f"Critical processing error needs attention: {message}",
                extra={"job_id": job_id, "error_id": error_id},
            )
        return error_id

    def mark_resolved(self, error_id: str, resolution: str) -> bool:
        try:
            return self.db.errors.mark_resolved(error_id, resolution)
        except Exception as e:
            logger.error(f"Failed to mark error {error_id} resolved: {e}")
            return False

    def get_error_summary(self, timeframe: str = "day") -> Dict[str, Any]:
        """
        Aggregate persisted errors over the last hour, day or week.

        Returns:
            total_errors, errors_by_type, errors_by_content,
            severity_distribution and the ten most frequent messages
        """
        hours = TIMEFRAME_HOURS.get(timeframe)
        if hours is None:
            raise ValueError(f"Unknown timeframe: {timeframe}")
        since = datetime.now(timezone.utc) - timedelta(hours=hours)

        errors = self.db.errors.list_since(since)

        messages: Dict[str, Dict[str, Any]] = {}
        for err in errors:
            key = (err.get("error_message") or "")[:100]
            entry = messages.setdefault(key, {"message": key, "count": 0, "last_seen": err["created_at"]})
            entry["count"] += 1
            if str(err["created_at"]) > str(entry["last_seen"]):
                entry["last_seen"] = err["created_at"]

        top_errors = sorted(messages.values(), key=lambda e: e["count"], reverse=True)[:10]
        return {
            "timeframe": timeframe,
            "total_errors": len(errors),
            "errors_by_type": dict(Counter(e["error_type"] for e in errors)),
            "errors_by_content": dict(Counter(e["content_type"] for e in errors)),
            "severity_distribution": dict(Counter(e["severity"] for e in errors)),
            "top_errors": top_errors,
        }

    def cleanup_cache(self) -> None:
        """Keep the most recent entries once the frequency cache grows too large."""
        with self._lock:
            if len(self._frequency) <= CACHE_MAX_ENTRIES:
                return
            while len(self._frequency) > CACHE_KEEP_ENTRIES:
                self._frequency.popitem(last=False)

    def frequency(self, content_type: str, error_type: str, message: str) -> int:
        with self._lock:
            return self._frequency.get(f"{content_type}:{error_type}:{message}", 0)

    def _track(self, key: str) -> int:
        with self._lock:
            count = self._frequency.pop(key, 0) + 1
            self._frequency[key] = count
        self.cleanup_cache()
        return count
