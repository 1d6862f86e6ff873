"""
Experts Repository - identity resolution, expertise signals, topic experts.
"""

import logging
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger("HiMind.Database.Experts")


class ExpertsRepository:
    """Repository for external_identities, people, expertise_signals and topic_experts."""

    def __init__(self, client):
        self.client = client

    def resolve_identity(self, platform: str, external_id: str) -> Optional[str]:
        """Person id behind a platform account, or None."""
        result = self.client.table("external_identities").select("person_id").eq(
            "platform", platform
        ).eq("external_id", external_id).limit(1).execute()
        return result.data[0]["person_id"] if result.data else None

    def get_people(self, person_ids: Iterable[str]) -> Dict[str, Dict]:
        ids = list(person_ids)
        if not ids:
            return {}
        result = self.client.table("people").select("id, display_name").in_("id", ids).execute()
        return {row["id"]: row for row in result.data or []}

    # ===================== Signals =====================

    def add_signal(self, row: Dict) -> bool:
        """
        Record a signal once per (person, topic, source, signal type).

        Returns:
            True if the signal is new, False if it was already recorded
        """
        result = self.client.table("expertise_signals").upsert(
            row,
            on_conflict="person_id,topic_id,source_id,signal_type",
            ignore_duplicates=True,
        ).execute()
        return bool(result.data)

    def list_signals(self, topic_ids: Iterable[str]) -> List[Dict]:
        ids = list(topic_ids)
        if not ids:
            return []
        result = self.client.table("expertise_signals").select(
            "person_id, topic_id, strength, confidence, occurred_at"
        ).in_("topic_id", ids).execute()
        return result.data or []

    # ===================== Topic experts =====================

    def get_topic_expert(self, person_id: str, topic_id: str) -> Optional[Dict]:
        result = self.client.table("topic_experts").select("*").eq(
            "person_id", person_id
        ).eq("topic_id", topic_id).limit(1).execute()
        return result.data[0] if result.data else None

    def upsert_topic_expert(self, row: Dict) -> None:
        self.client.table("topic_experts").upsert(row, on_conflict="person_id,topic_id").execute()

    def replace_topic_experts(self, topic_id: str, rows: List[Dict]) -> None:
        """Swap the expert set of a topic for ``rows``."""
        self.client.table("topic_experts").delete().eq("topic_id", topic_id).execute()
        if rows:
            self.client.table("topic_experts").insert(rows).execute()

    def list_topic_experts(self, topic_id: str, limit: int = 10, active_only: bool = True) -> List[Dict]:
        query = self.client.table("topic_experts").select("*").eq("topic_id", topic_id)
        if active_only:
            query = query.eq("is_active", True)
        result = query.order("expertise_score", desc=True).limit(limit).execute()
        return result.data or []
