"""
Search API endpoints.

Semantic search over knowledge points, with suggested experts and related
topics. Read-only apart from the query log.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from himind.api.dependencies import get_search_service
from himind.features.search import SearchResult, SearchService

logger = logging.getLogger("HiMind.API.Search")
router = APIRouter(tags=["Search"])


class SearchRequest(BaseModel):
    """Search request for the knowledge base."""
    query: str = Field(..., min_length=1, description="Search query text")
    organization_id: Optional[str] = Field(None, description="Defaults to the store's default organization")


@router.post("/search", response_model=SearchResult)
async def search_knowledge(
    request: SearchRequest,
    search: SearchService = Depends(get_search_service),
):
    """
    Semantic search across the knowledge base.

    Results are ranked by similarity; experts need at least two relevant
    contributions to be suggested.
    """
    return await search.search(request.query, request.organization_id)


@router.get("/search", response_model=SearchResult)
async def search_knowledge_get(
    q: str = Query(..., min_length=1, description="Search query"),
    organization_id: Optional[str] = Query(None),
    search: SearchService = Depends(get_search_service),
):
    """
    GET version of search for simple queries.

    Example: /search?q=how do we deploy to kubernetes
    """
    return await search_knowledge(SearchRequest(query=q, organization_id=organization_id), search)
