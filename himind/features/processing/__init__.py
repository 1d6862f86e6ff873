"""
Processing - durable job queue, retry policy, error tracking and stats.

Usage:
    from himind.features.processing import ProcessingOrchestrator

    orchestrator = ProcessingOrchestrator(db, ingestion)
    await orchestrator.start()
    job_id = await orchestrator.enqueue(payload, priority="high")
"""

from himind.features.processing.errors import ProcessingErrorHandler, categorize_error
from himind.features.processing.models import (
    CONTENT_TYPES,
    ContentSource,
    HealthCheck,
    HealthStatus,
    IngestionResult,
    IngestionTopic,
    JobStatus,
    Priority,
    ProcessingJob,
    ProcessingStats,
    parse_content,
)
from himind.features.processing.orchestrator import ProcessingOrchestrator
from himind.features.processing.stats import ProcessingStatsCollector

__all__ = [
    "CONTENT_TYPES",
    "ContentSource",
    "HealthCheck",
    "HealthStatus",
    "IngestionResult",
    "IngestionTopic",
    "JobStatus",
    "Priority",
    "ProcessingErrorHandler",
    "ProcessingJob",
    "ProcessingOrchestrator",
    "ProcessingStats",
    "ProcessingStatsCollector",
    "categorize_error",
    "parse_content",
]
