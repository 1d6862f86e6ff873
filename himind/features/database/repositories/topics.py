"""
Topics Repository - topics, statement links and cluster memberships.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from himind.features.knowledge.similarity import parse_embedding

logger = logging.getLogger("HiMind.Database.Topics")


class TopicsRepository:
    """Repository for topics, statement_topics and knowledge_topic_memberships."""

    def __init__(self, client):
        self.client = client

    def get(self, topic_id: str) -> Optional[Dict]:
        result = self.client.table("topics").select("*").eq("id", topic_id).execute()
        return self._decode(result.data[0]) if result.data else None

    def find_by_canonical(self, organization_id: str, canonical_name: str) -> Optional[Dict]:
        result = self.client.table("topics").select("*").eq(
            "organization_id", organization_id
        ).eq("canonical_name", canonical_name).limit(1).execute()
        return self._decode(result.data[0]) if result.data else None

    def get_or_create(self, row: Dict) -> Tuple[Dict, bool]:
        """
        Return the topic with row's canonical name, creating it if absent.

        Returns:
            (topic, created)
        """
        existing = self.find_by_canonical(row["organization_id"], row["canonical_name"])
        if existing:
            return existing, False

        now = datetime.now(timezone.utc).isoformat()
        payload = {"created_at": now, "updated_at": now, **row}
        # A concurrent insert of the same canonical name leaves the first row in place
        self.client.table("topics").upsert(
            payload,
            on_conflict="organization_id,canonical_name",
            ignore_duplicates=True,
        ).execute()
        created = self.find_by_canonical(row["organization_id"], row["canonical_name"])
        logger.info(f"Created topic: {row['name']}")
        return created, True

    def update(self, topic_id: str, fields: Dict) -> Dict:
        payload = {**fields, "updated_at": datetime.now(timezone.utc).isoformat()}
        result = self.client.table("topics").update(payload).eq("id", topic_id).execute()
        return self._decode(result.data[0]) if result.data else {}

    def list(self, organization_id: str, approved_only: bool = False) -> List[Dict]:
        query = self.client.table("topics").select("*").eq("organization_id", organization_id)
        if approved_only:
            query = query.eq("is_approved", True)
        result = query.order("member_count", desc=True).execute()
        return [self._decode(row) for row in result.data or []]

    # ===================== Statement links =====================

    def link_statement(self, statement_id: str, topic_id: str, relevance_score: float) -> None:
        self.client.table("statement_topics").upsert({
            "statement_id": statement_id,
            "topic_id": topic_id,
            "relevance_score": relevance_score,
        }, on_conflict="statement_id,topic_id").execute()

    # ===================== Memberships =====================

    def upsert_membership(self, knowledge_point_id: str, topic_id: str, similarity_score: float) -> None:
        self.client.table("knowledge_topic_memberships").upsert({
            "knowledge_point_id": knowledge_point_id,
            "topic_id": topic_id,
            "similarity_score": similarity_score,
        }, on_conflict="knowledge_point_id,topic_id").execute()

    def list_memberships(self, topic_id: str) -> List[Dict]:
        result = self.client.table("knowledge_topic_memberships").select(
            "knowledge_point_id, topic_id, similarity_score"
        ).eq("topic_id", topic_id).execute()
        return result.data or []

    @staticmethod
    def _decode(row: Dict) -> Dict:
        row = dict(row)
        row["centroid"] = parse_embedding(row.get("centroid"))
        return row
