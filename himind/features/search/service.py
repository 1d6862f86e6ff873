"""
Search service - semantic knowledge search and expert suggestions.

Given a query, returns:
- knowledge matches above the similarity floor, most similar first
- potential direct answers (stricter threshold)
- suggested experts: authors with at least two relevant matches, scored by
  (relevant / total contributions) * best similarity
- approved topics whose centroid is close to the query
"""

import asyncio
import logging
from collections import defaultdict
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from himind.core.config import settings
from himind.features.database import resolve_organization_id
from himind.features.knowledge.embedder import validate_dimension
from himind.features.knowledge.similarity import cosine_similarity
from himind.shared.errors import ContentValidationError

logger = logging.getLogger("HiMind.Search")

MAX_POTENTIAL_ANSWERS = 5
MAX_EXPERTS = 5
CONTRIBUTIONS_PER_EXPERT = 3
MIN_RELEVANT_CONTRIBUTIONS = 2
MAX_TOPIC_MATCHES = 3


# ===================== Models =====================

class KnowledgeMatch(BaseModel):
    knowledge_point_id: str
    source_id: str
    author_person_id: Optional[str] = None
    summary: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    source_title: Optional[str] = None
    source_url: Optional[str] = None
    similarity: float


class SuggestedExpert(BaseModel):
    person_id: str
    display_name: Optional[str] = None
    score: float
    relevant_contributions: int
    total_contributions: int
    best_similarity: float
    contributions: List[KnowledgeMatch] = Field(default_factory=list)


class TopicMatch(BaseModel):
    id: str
    name: str
    similarity: float


class SearchResult(BaseModel):
    query: str
    knowledge_matches: List[KnowledgeMatch] = Field(default_factory=list)
    suggested_experts: List[SuggestedExpert] = Field(default_factory=list)
    topic_matches: List[TopicMatch] = Field(default_factory=list)
    potential_answers: List[KnowledgeMatch] = Field(default_factory=list)
    has_direct_answers: bool = False


# ===================== Service =====================

class SearchService:
    """Read-only query path over knowledge points, topics and authors."""

    def __init__(
        self,
        db,
        embedder,
        embedding_dimension: Optional[int] = None,
        similarity_floor: Optional[float] = None,
        result_limit: Optional[int] = None,
    ):
        self.db = db
        self.embedder = embedder
        self.embedding_dimension = embedding_dimension or getattr(
            embedder, "dimension", settings.EMBEDDING_DIMENSION
        )
        self.similarity_floor = settings.SEARCH_SIMILARITY_FLOOR if similarity_floor is None else similarity_floor
        self.result_limit = result_limit or settings.SEARCH_RESULT_LIMIT

    async def search(self, query: str, organization_id: Optional[str] = None) -> SearchResult:
        """
        Search an organization's knowledge.

        Raises:
            ContentValidationError: empty query
            OrganizationNotFoundError: no org could be resolved
            EmbeddingServiceError: the query could not be embedded
        """
        query = (query or "").strip()
        if not query:
            raise ContentValidationError("Search query must not be empty")

        org_id = await asyncio.to_thread(resolve_organization_id, self.db, organization_id)
        embedding = await self.embedder.embed(query)
        validate_dimension(embedding, self.embedding_dimension)

        result = await asyncio.to_thread(self._search, query, org_id, embedding)
        logger.info(
            f"Search '{query[:50]}': {len(result.knowledge_matches)} matches, "
            f"{len(result.suggested_experts)} experts, {len(result.topic_matches)} topics"
        )
        return result

    def _search(self, query: str, org_id: str, embedding: List[float]) -> SearchResult:
        rows = self.db.knowledge.match_points(org_id, embedding, self.similarity_floor, self.result_limit)
        matches = [
            KnowledgeMatch(**row) for row in rows
            if row.get("similarity") is not None and row["similarity"] >= self.similarity_floor
        ]
        matches.sort(key=lambda m: m.similarity, reverse=True)

        potential_answers = [
            m for m in matches if m.similarity > settings.POTENTIAL_ANSWER_THRESHOLD
        ][:MAX_POTENTIAL_ANSWERS]

        self.db.knowledge.log_search(org_id, query, len(matches))

        return SearchResult(
            query=query,
            knowledge_matches=matches,
            suggested_experts=self.rank_experts(org_id, matches),
            topic_matches=self._topic_matches(org_id, embedding),
            potential_answers=potential_answers,
            has_direct_answers=bool(potential_answers)
            and potential_answers[0].similarity > settings.DIRECT_ANSWER_THRESHOLD,
        )

    def rank_experts(self, org_id: str, matches: List[KnowledgeMatch]) -> List[SuggestedExpert]:
        """Authors with enough relevant matches, best first."""
        by_author: Dict[str, List[KnowledgeMatch]] = defaultdict(list)
        for match in matches:
            if match.author_person_id:
                by_author[match.author_person_id].append(match)

        qualified = {
            person_id: contributions for person_id, contributions in by_author.items()
            if len(contributions) >= MIN_RELEVANT_CONTRIBUTIONS
        }
        if not qualified:
            return []

        totals = self.db.knowledge.count_by_author(org_id, qualified)
        people = self.db.experts.get_people(qualified)

        experts = []
        for person_id, contributions in qualified.items():
            contributions = sorted(contributions, key=lambda m: m.similarity, reverse=True)
            relevant = len(contributions)
            total = max(totals.get(person_id, 0), relevant)
            best = contributions[0].similarity
            experts.append(SuggestedExpert(
                person_id=person_id,
                display_name=people.get(person_id, {}).get("display_name"),
                score=round(relevant / total * best, 4),
                relevant_contributions=relevant,
                total_contributions=total,
                best_similarity=best,
                contributions=contributions[:CONTRIBUTIONS_PER_EXPERT],
            ))

        experts.sort(key=lambda e: e.score, reverse=True)
        return experts[:MAX_EXPERTS]

    def _topic_matches(self, org_id: str, embedding: List[float]) -> List[TopicMatch]:
        matches = []
        for topic in self.db.topics.list(org_id, approved_only=True):
            centroid = topic.get("centroid")
            if not centroid or len(centroid) != len(embedding):
                continue
            similarity = cosine_similarity(embedding, centroid)
            if similarity > settings.TOPIC_MATCH_THRESHOLD:
                matches.append(TopicMatch(id=topic["id"], name=topic["name"], similarity=similarity))

        matches.sort(key=lambda t: t.similarity, reverse=True)
        return matches[:MAX_TOPIC_MATCHES]
