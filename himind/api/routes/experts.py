import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from himind.api.dependencies import get_database, get_expertise_service
from himind.features.database import StoreClient, resolve_organization_id
from himind.features.expertise import ExpertiseService

logger = logging.getLogger("HiMind.API.Experts")
router = APIRouter(prefix="/experts", tags=["Experts"])


class RecomputeRequest(BaseModel):
    organization_id: Optional[str] = None
    topic_ids: Optional[List[str]] = None


class RecomputeResponse(BaseModel):
    organization_id: str
    experts_written: int


@router.post("/recompute", response_model=RecomputeResponse)
async def recompute_experts(
    request: RecomputeRequest,
    db: StoreClient = Depends(get_database),
    expertise: ExpertiseService = Depends(get_expertise_service),
):
    """Rebuild topic experts from signals and cluster memberships."""
    org_id = await asyncio.to_thread(resolve_organization_id, db, request.organization_id)
    written = await asyncio.to_thread(expertise.recompute_topic_experts, org_id, request.topic_ids)
    return RecomputeResponse(organization_id=org_id, experts_written=written)
