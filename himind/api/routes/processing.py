"""
Processing API endpoints.

Enqueue content for ingestion, inspect jobs and queue statistics, requeue
failed jobs and summarize recent processing errors.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from himind.api.dependencies import get_error_handler, get_orchestrator
from himind.features.processing import (
    Priority,
    ProcessingErrorHandler,
    ProcessingJob,
    ProcessingOrchestrator,
    ProcessingStats,
)

logger = logging.getLogger("HiMind.API.Processing")
router = APIRouter(prefix="/processing", tags=["Processing"])


# ===================== Request/Response Models =====================

class EnqueueRequest(BaseModel):
    """One content payload to ingest."""
    content: Dict[str, Any] = Field(..., description="Content payload; 'type' selects the variant")
    priority: Priority = Priority.NORMAL
    organization_id: Optional[str] = None


class EnqueueResponse(BaseModel):
    job_id: str
    status: str = "pending"


class BatchEnqueueRequest(BaseModel):
    contents: List[Dict[str, Any]] = Field(..., min_length=1)
    priority: Priority = Priority.NORMAL
    organization_id: Optional[str] = None


class BatchEnqueueResponse(BaseModel):
    job_ids: List[Optional[str]]
    accepted: int
    rejected: int


class RetryRequest(BaseModel):
    max_age_ms: Optional[int] = Field(None, ge=0, description="Only jobs created within this window")


class RetryResponse(BaseModel):
    retried: int


# ===================== Endpoints =====================

@router.post("/jobs", response_model=EnqueueResponse, status_code=202)
async def enqueue_job(
    request: EnqueueRequest,
    orchestrator: ProcessingOrchestrator = Depends(get_orchestrator),
):
    """Validate a content payload and queue it for ingestion."""
    job_id = await orchestrator.enqueue(request.content, request.priority, request.organization_id)
    return EnqueueResponse(job_id=job_id)


@router.post("/jobs/batch", response_model=BatchEnqueueResponse, status_code=202)
async def enqueue_batch(
    request: BatchEnqueueRequest,
    orchestrator: ProcessingOrchestrator = Depends(get_orchestrator),
):
    """
    Queue several payloads. Items are validated independently; a rejected
    item gets ``null`` in its slot of ``job_ids``.
    """
    job_ids = await orchestrator.enqueue_batch(request.contents, request.priority, request.organization_id)
    accepted = sum(1 for job_id in job_ids if job_id)
    return BatchEnqueueResponse(job_ids=job_ids, accepted=accepted, rejected=len(job_ids) - accepted)


@router.get("/jobs/{job_id}", response_model=ProcessingJob)
async def get_job(
    job_id: str,
    orchestrator: ProcessingOrchestrator = Depends(get_orchestrator),
):
    """Job status lookup; 404 for unknown ids."""
    return await orchestrator.get_job(job_id)


@router.get("/stats", response_model=ProcessingStats)
async def get_stats(orchestrator: ProcessingOrchestrator = Depends(get_orchestrator)):
    return await orchestrator.get_stats()


@router.post("/retry", response_model=RetryResponse)
async def retry_failed(
    request: RetryRequest,
    orchestrator: ProcessingOrchestrator = Depends(get_orchestrator),
):
    """Move failed jobs that still have retry budget back to pending."""
    retried = await orchestrator.retry_failed_jobs(request.max_age_ms)
    return RetryResponse(retried=retried)


@router.get("/errors/summary")
async def error_summary(
    timeframe: str = Query("day", pattern="^(hour|day|week)$"),
    error_handler: ProcessingErrorHandler = Depends(get_error_handler),
):
    """Counts of processing errors by type, content type and severity."""
    return await asyncio.to_thread(error_handler.get_error_summary, timeframe)
