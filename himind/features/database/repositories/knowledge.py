"""
Knowledge Repository - knowledge points, vector search and query log.

Vector search goes through the ``match_knowledge_points`` SQL function
(see scripts/setup_db_functions.py). When the function is missing, points
are scored in-process with numpy instead.
"""

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

import numpy as np

from himind.features.knowledge.similarity import parse_embedding

logger = logging.getLogger("HiMind.Database.Knowledge")

PAGE_SIZE = 1000
POINT_COLUMNS = "id, source_id, organization_id, author_person_id, summary, keywords, embedding, quality_score, relevance_score, processed_at"


class KnowledgeRepository:
    """Repository for knowledge_points and search_queries."""

    def __init__(self, client):
        self.client = client

    def upsert_point(self, row: Dict) -> Dict:
        """Insert or replace the knowledge point of a source."""
        result = self.client.table("knowledge_points").upsert(
            row, on_conflict="source_id"
        ).execute()
        return result.data[0]

    def get_point_by_source(self, source_id: str) -> Optional[Dict]:
        result = self.client.table("knowledge_points").select(POINT_COLUMNS).eq(
            "source_id", source_id
        ).limit(1).execute()
        if not result.data:
            return None
        return self._decode(result.data[0])

    def list_points(self, organization_id: str) -> List[Dict]:
        """All points of an org that carry an embedding."""
        points: List[Dict] = []
        offset = 0
        while True:
            result = self.client.table("knowledge_points").select(POINT_COLUMNS).eq(
                "organization_id", organization_id
            ).not_.is_("embedding", "null").order("id").range(
                offset, offset + PAGE_SIZE - 1
            ).execute()
            batch = result.data or []
            points.extend(self._decode(row) for row in batch)
            if len(batch) < PAGE_SIZE:
                return points
            offset += PAGE_SIZE

    def get_points(self, point_ids: Iterable[str]) -> List[Dict]:
        ids = list(point_ids)
        if not ids:
            return []
        result = self.client.table("knowledge_points").select(POINT_COLUMNS).in_("id", ids).execute()
        return [self._decode(row) for row in result.data or []]

    def count_by_author(self, organization_id: str, person_ids: Iterable[str]) -> Dict[str, int]:
        ids = list(person_ids)
        if not ids:
            return {}
        result = self.client.table("knowledge_points").select("author_person_id").eq(
            "organization_id", organization_id
        ).in_("author_person_id", ids).execute()
        return dict(Counter(row["author_person_id"] for row in result.data or []))

    def match_points(
        self,
        organization_id: str,
        query_embedding: List[float],
        threshold: float,
        limit: int,
    ) -> List[Dict]:
        """
        Nearest knowledge points above ``threshold``, most similar first.

        Returns:
            Rows with knowledge_point_id, source_id, author_person_id,
            summary, keywords, source_title, source_url and similarity.
        """
        try:
            result = self.client.rpc("match_knowledge_points", {
                "query_embedding": query_embedding,
                "org_id": organization_id,
                "match_threshold": threshold,
                "match_count": limit,
            }).execute()
            return result.data or []
        except Exception as e:
            logger.warning(f"RPC search failed, falling back to manual: {e}")

        return self._manual_match(organization_id, query_embedding, threshold, limit)

    def _manual_match(
        self,
        organization_id: str,
        query_embedding: List[float],
        threshold: float,
        limit: int,
    ) -> List[Dict]:
        query_vec = np.asarray(query_embedding, dtype=float)
        query_norm = np.linalg.norm(query_vec)
        if query_norm == 0:
            return []

        matches = []
        for point in self.list_points(organization_id):
            embedding = point.get("embedding")
            if not embedding or len(embedding) != len(query_vec):
                continue
            point_vec = np.asarray(embedding, dtype=float)
            norm = np.linalg.norm(point_vec)
            if norm == 0:
                continue
            similarity = float(np.dot(query_vec, point_vec) / (query_norm * norm))
            if similarity >= threshold:
                matches.append({
                    "knowledge_point_id": point["id"],
                    "source_id": point["source_id"],
                    "author_person_id": point.get("author_person_id"),
                    "summary": point.get("summary"),
                    "keywords": point.get("keywords") or [],
                    "similarity": similarity,
                })

        matches.sort(key=lambda m: m["similarity"], reverse=True)
        matches = matches[:limit]

        # Attach source title/url for the survivors only
        source_ids = [m["source_id"] for m in matches]
        if source_ids:
            sources = self.client.table("knowledge_sources").select(
                "id, title, external_url"
            ).in_("id", source_ids).execute()
            by_id = {s["id"]: s for s in sources.data or []}
            for match in matches:
                source = by_id.get(match["source_id"], {})
                match["source_title"] = source.get("title")
                match["source_url"] = source.get("external_url")
        return matches

    def log_search(self, organization_id: str, query_text: str, match_count: int) -> None:
        """Record a search query. Best-effort."""
        try:
            self.client.table("search_queries").insert({
                "organization_id": organization_id,
                "query_text": query_text,
                "matched_knowledge_points": match_count,
                "created_at": datetime.now(timezone.utc).isoformat(),
            }).execute()
        except Exception as e:
            logger.warning(f"Failed to log search query: {e}")

    @staticmethod
    def _decode(row: Dict) -> Dict:
        row = dict(row)
        row["embedding"] = parse_embedding(row.get("embedding"))
        return row
