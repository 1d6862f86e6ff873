"""
Processing orchestrator - durable job queue driving ingestion.

Jobs live in the store (processing_jobs). One scheduler loop claims
eligible jobs atomically and runs up to ``concurrency`` of them as asyncio
tasks. A failed job is rescheduled with exponential backoff until its retry
budget is spent, then marked failed for good.

Job lifecycle:
    pending → processing → completed
                         ↘ retrying (scheduled_for in the future) → processing …
                         ↘ failed (retry budget spent, or invalid payload)

Only one scheduler per process is expected; several processes can share a
store because claiming is a conditional update in the database.
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union

from pydantic import ValidationError

from himind.core.config import settings
from himind.core.tracing import get_tracer
from himind.features.processing.errors import ProcessingErrorHandler
from himind.features.processing.models import (
    ContentSource,
    HealthCheck,
    HealthStatus,
    JobStatus,
    Priority,
    ProcessingJob,
    ProcessingStats,
    parse_content,
)
from himind.features.processing.stats import ProcessingStatsCollector
from himind.shared.correlation import CorrelationContext
from himind.shared.errors import ContentValidationError, JobNotFoundError

logger = logging.getLogger("HiMind.Orchestrator")
tracer = get_tracer(__name__)

ContentInput = Union[Dict[str, Any], ContentSource]

MIN_SUCCESS_RATE = 0.8


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProcessingOrchestrator:
    """
    Schedules ingestion jobs at bounded concurrency.

    Usage:
        orchestrator = ProcessingOrchestrator(db, ingestion)
        await orchestrator.start()
        job_id = await orchestrator.enqueue(payload, priority="high")
        ...
        await orchestrator.stop()
    """

    def __init__(
        self,
        db,
        ingestion,
        stats: Optional[ProcessingStatsCollector] = None,
        error_handler: Optional[ProcessingErrorHandler] = None,
        concurrency: Optional[int] = None,
        poll_interval: Optional[float] = None,
        error_backoff: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
        job_timeout: Optional[float] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.db = db
        self.ingestion = ingestion
        self.stats = stats or ProcessingStatsCollector()
        self.error_handler = error_handler or ProcessingErrorHandler(db)

        self.concurrency = concurrency or settings.ORCHESTRATOR_CONCURRENCY
        self.poll_interval = settings.ORCHESTRATOR_POLL_INTERVAL if poll_interval is None else poll_interval
        self.error_backoff = settings.ORCHESTRATOR_ERROR_BACKOFF if error_backoff is None else error_backoff
        self.max_retries = settings.JOB_MAX_RETRIES if max_retries is None else max_retries
        self.retry_base_delay = settings.JOB_RETRY_BASE_DELAY if retry_base_delay is None else retry_base_delay
        self.job_timeout = job_timeout or settings.JOB_TIMEOUT_SECONDS
        self._now = clock

        self.running = False
        self._stopping = False
        self._wake = asyncio.Event()
        self._loop_task: Optional[asyncio.Task] = None
        self._in_flight: Set[asyncio.Task] = set()

    # ===================== Public API =====================

    async def enqueue(
        self,
        content: ContentInput,
        priority: Union[Priority, str] = Priority.NORMAL,
        organization_id: Optional[str] = None,
    ) -> str:
        """
        Validate a payload and store it as a pending job.

        Returns:
            The new job id

        Raises:
            ContentValidationError: unknown type or missing required fields
        """
        try:
            source = parse_content(content)
            priority = Priority(priority)
        except (ValidationError, ValueError) as e:
            raise ContentValidationError(
                f"Invalid content payload: {e}",
                details={"errors": _validation_details(e)},
            ) from e

        now = self._now()
        job_id = f"{source.type}_{source.external_id}_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:6]}"
        row = {
            "id": job_id,
            "content_type": source.type,
            "content_data": source.model_dump(mode="json"),
            "priority": priority.value,
            "priority_weight": priority.weight,
            "status": JobStatus.PENDING.value,
            "retry_count": 0,
            "max_retries": self.max_retries,
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
            "scheduled_for": None,
            "processing_metadata": {"organization_id": organization_id} if organization_id else {},
        }
        await asyncio.to_thread(self.db.jobs.insert, row)
        logger.info(f"Enqueued job {job_id} ({priority.value})")
        return job_id

    async def enqueue_batch(
        self,
        contents: Iterable[ContentInput],
        priority: Union[Priority, str] = Priority.NORMAL,
        organization_id: Optional[str] = None,
    ) -> List[Optional[str]]:
        """
        Enqueue items one by one; a rejected item yields None in its slot.
        """
        job_ids: List[Optional[str]] = []
        for index, content in enumerate(contents):
            try:
                job_ids.append(await self.enqueue(content, priority, organization_id))
            except Exception as e:
                content_type = content.get("type", "unknown") if isinstance(content, dict) else getattr(content, "type", "unknown")
                await asyncio.to_thread(
                    self.error_handler.log_error,
                    None,
                    str(content_type),
                    e,
                    {"batch_index": index},
                    "low",
                )
                job_ids.append(None)

        accepted = sum(1 for job_id in job_ids if job_id)
        logger.info(f"Batch enqueue: {accepted}/{len(job_ids)} accepted")
        return job_ids

    async def get_job(self, job_id: str) -> ProcessingJob:
        row = await asyncio.to_thread(self.db.jobs.get, job_id)
        if row is None:
            raise JobNotFoundError(job_id)
        return ProcessingJob.model_validate(row)

    async def get_stats(self) -> ProcessingStats:
        counts = await asyncio.to_thread(self.db.jobs.count_by_status)
        return ProcessingStats(
            total=sum(counts.values()),
            pending=counts.get(JobStatus.PENDING.value, 0),
            processing=counts.get(JobStatus.PROCESSING.value, 0),
            completed=counts.get(JobStatus.COMPLETED.value, 0),
            failed=counts.get(JobStatus.FAILED.value, 0),
            retrying=counts.get(JobStatus.RETRYING.value, 0),
            avg_processing_time_ms=round(self.stats.avg_processing_time_ms, 2),
            throughput_per_hour=round(self.stats.throughput_per_hour, 2),
        )

    async def get_health(self) -> HealthStatus:
        """
        Pipeline health from four checks: scheduler running, ingestion wired,
        store reachable and success rate above MIN_SUCCESS_RATE.

        No failed check is healthy, one is degraded, more is unhealthy.
        """
        checks = [
            HealthCheck(
                name="pipeline_running",
                status="pass" if self.running else "fail",
                details="Scheduler is active" if self.running else "Scheduler is stopped",
            ),
            HealthCheck(
                name="ingestion",
                status="pass" if self.ingestion is not None else "fail",
                details="Ingestion service configured" if self.ingestion is not None else "No ingestion service",
            ),
        ]

        try:
            await asyncio.to_thread(self.db.jobs.count_by_status)
            checks.append(HealthCheck(name="database", status="pass", details="Store accessible"))
        except Exception as e:
            logger.error(f"Health check could not reach the store: {e}")
            checks.append(HealthCheck(name="database", status="fail", details=f"Store error: {e}"))

        rate = self.stats.success_rate
        finished = self.stats.completed + self.stats.failed
        checks.append(HealthCheck(
            name="success_rate",
            status="pass" if rate > MIN_SUCCESS_RATE else "fail",
            details=f"{round(rate * 100)}% success rate ({finished} finished)",
        ))

        failed = sum(1 for check in checks if check.status == "fail")
        if failed == 0:
            status = "healthy"
        elif failed == 1:
            status = "degraded"
        else:
            status = "unhealthy"
        return HealthStatus(status=status, checks=checks)

    async def retry_failed_jobs(self, max_age_ms: Optional[int] = None) -> int:
        """
        Requeue failed jobs that still have retry budget.

        Args:
            max_age_ms: Only jobs created within this many milliseconds

        Returns:
            Number of jobs moved back to pending
        """
        created_after = None
        if max_age_ms is not None:
            created_after = self._now() - timedelta(milliseconds=max_age_ms)

        candidates = await asyncio.to_thread(self.db.jobs.list_retryable_failed, created_after)
        retried = 0
        for job in candidates:
            if await asyncio.to_thread(self.db.jobs.reset_for_retry, job["id"], job["retry_count"] + 1):
                retried += 1

        logger.info(f"Requeued {retried} failed jobs")
        return retried

    # ===================== Scheduler =====================

    async def start(self) -> None:
        if self.running:
            return
        requeued = await asyncio.to_thread(
            self.db.jobs.requeue_stale, self._now() - timedelta(seconds=self.job_timeout)
        )
        if requeued:
            logger.warning(f"Requeued {requeued} jobs left in processing by an earlier run")

        self.running = True
        self._stopping = False
        self._wake = asyncio.Event()
        self._loop_task = asyncio.create_task(self._run_loop(), name="processing-scheduler")
        logger.info(f"Orchestrator started (concurrency={self.concurrency})")

    async def stop(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """
        Stop dispatching new jobs.

        The scheduler finishes its current scan, so a job it has already
        claimed is still dispatched. In-flight jobs are never cancelled; with
        ``wait`` they are awaited (up to ``timeout`` seconds).
        """
        self.running = False
        self._stopping = True
        self._wake.set()
        if self._loop_task is not None:
            await self._loop_task
            self._loop_task = None

        if wait and self._in_flight:
            await asyncio.wait(set(self._in_flight), timeout=timeout)

        logger.info(
            f"Orchestrator stopped. Completed: {self.stats.completed}, Failed: {self.stats.failed}, "
            f"In flight: {len(self._in_flight)}"
        )

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def wait_idle(self) -> None:
        """Wait for every in-flight job to finish."""
        while self._in_flight:
            await asyncio.wait(set(self._in_flight))

    async def run_once(self) -> int:
        """
        Claim and dispatch jobs until the concurrency limit is reached or
        nothing is eligible.

        Returns:
            Number of jobs dispatched
        """
        dispatched = 0
        while len(self._in_flight) < self.concurrency and not self._stopping:
            row = await asyncio.to_thread(self.db.jobs.claim_next, self._now())
            if row is None:
                break
            self._dispatch(ProcessingJob.model_validate(row))
            dispatched += 1
        return dispatched

    def _dispatch(self, job: ProcessingJob) -> None:
        task = asyncio.create_task(self.execute_job(job), name=f"job-{job.id}")
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _run_loop(self) -> None:
        while self.running:
            try:
                await self.run_once()
                await self._sleep(self.poll_interval)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Scheduler loop error: {e}", exc_info=True)
                await self._sleep(self.error_backoff)

    async def _sleep(self, seconds: float) -> None:
        """Sleep between scans; returns early once stop() is called."""
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    # ===================== Job execution =====================

    async def execute_job(self, job: ProcessingJob) -> None:
        """Run one claimed job and record its outcome. Never raises."""
        with CorrelationContext(job.id), tracer.start_as_current_span("processing.job") as span:
            span.set_attribute("job.id", job.id)
            span.set_attribute("job.content_type", job.content_type)
            span.set_attribute("job.retry_count", job.retry_count)

            started = time.monotonic()
            try:
                organization_id = job.processing_metadata.get("organization_id")
                result = await asyncio.wait_for(
                    self.ingestion.ingest(job.content, organization_id),
                    timeout=self.job_timeout,
                )
                elapsed_ms = int((time.monotonic() - started) * 1000)

                await asyncio.to_thread(self.db.jobs.update, job.id, {
                    "status": JobStatus.COMPLETED.value,
                    "completed_at": self._now().isoformat(),
                    "processing_time_ms": elapsed_ms,
                    "error": None,
                    "processing_metadata": {
                        **job.processing_metadata,
                        "statements_created": len(result.statements),
                        "topics_created": len(result.topics),
                        "content_artifact_id": result.content_artifact_id,
                        "processing_time_ms": elapsed_ms,
                    },
                })
                self.stats.record_completed(elapsed_ms)
                span.set_attribute("job.status", JobStatus.COMPLETED.value)
                logger.info(f"Job {job.id} completed in {elapsed_ms}ms")

            except Exception as e:
                status = await self._handle_failure(job, e)
                span.set_attribute("job.status", status)
                span.record_exception(e)

    async def _handle_failure(self, job: ProcessingJob, error: Exception) -> str:
        try:
            await asyncio.to_thread(
                self.error_handler.log_error,
                job.id,
                job.content_type,
                error,
                {"retry_count": job.retry_count, "max_retries": job.max_retries},
            )
        except Exception as e:
            logger.error(f"Error handler failed for job {job.id}: {e}")

        message = str(error) or type(error).__name__
        now = self._now()
        # Invalid payloads cannot succeed on retry
        retryable = not isinstance(error, (ContentValidationError, ValidationError))

        try:
            if retryable and job.retry_count < job.max_retries:
                delay = self.retry_base_delay * (2 ** job.retry_count)
                scheduled_for = now + timedelta(seconds=delay)
                await asyncio.to_thread(self.db.jobs.update, job.id, {
                    "status": JobStatus.RETRYING.value,
                    "retry_count": job.retry_count + 1,
                    "scheduled_for": scheduled_for.isoformat(),
                    "error": message,
                })
                logger.warning(
                    f"Job {job.id} failed (attempt {job.retry_count + 1}), "
                    f"retrying at {scheduled_for.isoformat()}: {message}"
                )
                return JobStatus.RETRYING.value

            await asyncio.to_thread(self.db.jobs.update, job.id, {
                "status": JobStatus.FAILED.value,
                "completed_at": now.isoformat(),
                "error": message,
            })
            self.stats.record_failed()
            logger.error(f"Job {job.id} failed permanently: {message}")
        except Exception as e:
            logger.error(f"Could not record failure of job {job.id}: {e}", exc_info=True)
        return JobStatus.FAILED.value


def _validation_details(error: Exception) -> List[Dict[str, Any]]:
    if isinstance(error, ValidationError):
        return [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in error.errors()
        ]
    return [{"message": str(error)}]
