"""
Sources Repository - content sources and their knowledge statements.

Handles:
- Upserting sources on (organization_id, source_type, external_id)
- Flipping the processed flag once ingestion completes
- Idempotent statement writes keyed on (source_id, content_hash)
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

logger = logging.getLogger("HiMind.Database.Sources")

SOURCE_CONFLICT_KEY = "organization_id,source_type,external_id"
STATEMENT_CONFLICT_KEY = "source_id,content_hash"


class SourcesRepository:
    """Repository for knowledge_sources and knowledge_statements."""

    def __init__(self, client):
        self.client = client

    def find(self, organization_id: str, source_type: str, external_id: str) -> Optional[Dict]:
        result = self.client.table("knowledge_sources").select("*").eq(
            "organization_id", organization_id
        ).eq("source_type", source_type).eq("external_id", external_id).limit(1).execute()
        return result.data[0] if result.data else None

    def find_id(self, organization_id: str, external_id: str) -> Optional[str]:
        """Resolve a parent reference by external id, whatever its type."""
        result = self.client.table("knowledge_sources").select("id").eq(
            "organization_id", organization_id
        ).eq("external_id", external_id).limit(1).execute()
        return result.data[0]["id"] if result.data else None

    def get(self, source_id: str) -> Optional[Dict]:
        result = self.client.table("knowledge_sources").select("*").eq("id", source_id).execute()
        return result.data[0] if result.data else None

    def upsert(self, row: Dict) -> Dict:
        """
        Insert or update a source.

        The processed flag is always reset so an interrupted ingestion is
        picked up again on retry.
        """
        payload = {k: v for k, v in row.items() if v is not None}
        payload["is_processed"] = False
        payload["updated_at"] = datetime.now(timezone.utc).isoformat()

        result = self.client.table("knowledge_sources").upsert(
            payload, on_conflict=SOURCE_CONFLICT_KEY
        ).execute()
        return result.data[0]

    def mark_processed(self, source_id: str, metadata: Dict) -> None:
        self.client.table("knowledge_sources").update({
            "is_processed": True,
            "processing_metadata": metadata,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }).eq("id", source_id).execute()
        logger.debug(f"Source {source_id} marked processed")

    # ===================== Statements =====================

    def upsert_statement(self, row: Dict) -> Dict:
        result = self.client.table("knowledge_statements").upsert(
            row, on_conflict=STATEMENT_CONFLICT_KEY
        ).execute()
        return result.data[0]

    def list_statements(self, source_id: str) -> List[Dict]:
        result = self.client.table("knowledge_statements").select("*").eq(
            "source_id", source_id
        ).order("created_at", desc=False).execute()
        return result.data or []
