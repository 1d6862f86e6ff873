"""
Topics API endpoints - discovery runs and topic listings.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from himind.api.dependencies import get_database, get_discovery_engine, get_expertise_service
from himind.features.database import StoreClient, resolve_organization_id
from himind.features.expertise import ExpertiseService
from himind.features.topics import DiscoveryOptions, DiscoveryResult, TopicDiscoveryEngine

logger = logging.getLogger("HiMind.API.Topics")
router = APIRouter(prefix="/topics", tags=["Topics"])


class DiscoverRequest(BaseModel):
    organization_id: Optional[str] = None
    options: DiscoveryOptions = Field(default_factory=DiscoveryOptions)


class TopicSummary(BaseModel):
    id: str
    name: str
    canonical_name: str
    description: Optional[str] = None
    keyword_signatures: List[str] = Field(default_factory=list)
    member_count: int = 0
    confidence_score: Optional[float] = None
    is_approved: bool = False


class TopicExpert(BaseModel):
    person_id: str
    display_name: Optional[str] = None
    expertise_score: float
    contribution_count: int
    last_contribution_at: Optional[str] = None
    is_active: bool


@router.post("/discover", response_model=DiscoveryResult)
async def discover_topics(
    request: DiscoverRequest,
    engine: TopicDiscoveryEngine = Depends(get_discovery_engine),
):
    """
    Cluster the organization's knowledge points and create or update topics.

    Runs for the same organization are serialized.
    """
    return await engine.discover(request.organization_id, request.options)


@router.get("", response_model=List[TopicSummary])
async def list_topics(
    organization_id: Optional[str] = Query(None),
    approved_only: bool = Query(False),
    db: StoreClient = Depends(get_database),
):
    org_id = await asyncio.to_thread(resolve_organization_id, db, organization_id)
    topics = await asyncio.to_thread(db.topics.list, org_id, approved_only)
    return [TopicSummary(**_summary_fields(t)) for t in topics]


@router.get("/{topic_id}/experts", response_model=List[TopicExpert])
async def topic_experts(
    topic_id: str,
    limit: int = Query(5, ge=1, le=50),
    db: StoreClient = Depends(get_database),
    expertise: ExpertiseService = Depends(get_expertise_service),
):
    """Active experts of a topic, best first."""
    topic = await asyncio.to_thread(db.topics.get, topic_id)
    if not topic:
        raise HTTPException(status_code=404, detail=f"Topic {topic_id} not found")
    experts = await asyncio.to_thread(expertise.topic_experts, topic_id, limit)
    return [TopicExpert(**e) for e in experts]


def _summary_fields(topic: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": topic["id"],
        "name": topic["name"],
        "canonical_name": topic["canonical_name"],
        "description": topic.get("description"),
        "keyword_signatures": topic.get("keyword_signatures") or [],
        "member_count": topic.get("member_count") or 0,
        "confidence_score": topic.get("confidence_score"),
        "is_approved": bool(topic.get("is_approved")),
    }
