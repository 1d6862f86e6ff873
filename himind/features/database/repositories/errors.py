"""
Errors Repository - persisted processing errors.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List

logger = logging.getLogger("HiMind.Database.Errors")


class ErrorsRepository:
    """Repository for processing_errors."""

    def __init__(self, client):
        self.client = client

    def insert(self, row: Dict) -> Dict:
        result = self.client.table("processing_errors").insert(row).execute()
        return result.data[0]

    def mark_resolved(self, error_id: str, resolution: str) -> bool:
        result = self.client.table("processing_errors").update({
            "resolved": True,
            "resolution": resolution,
            "resolved_at": datetime.now(timezone.utc).isoformat(),
        }).eq("id", error_id).execute()
        return bool(result.data)

    def list_since(self, since: datetime) -> List[Dict]:
        result = self.client.table("processing_errors").select(
            "id, job_id, content_type, error_type, error_message, severity, resolved, created_at"
        ).gte("created_at", since.isoformat()).execute()
        return result.data or []
