"""
Jobs Repository - durable processing queue.

Claiming is atomic: the ``claim_next_processing_job`` SQL function locks the
next eligible row with FOR UPDATE SKIP LOCKED. Without the function, a
conditional update (status still pending/retrying) decides which of several
racing schedulers wins a row.
"""

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, List, Optional

logger = logging.getLogger("HiMind.Database.Jobs")

CLAIMABLE_STATUSES = ["pending", "retrying"]
CLAIM_CANDIDATES = 5


class JobsRepository:
    """Repository for processing_jobs."""

    def __init__(self, client):
        self.client = client

    def insert(self, row: Dict) -> Dict:
        result = self.client.table("processing_jobs").insert(row).execute()
        return result.data[0]

    def get(self, job_id: str) -> Optional[Dict]:
        result = self.client.table("processing_jobs").select("*").eq("id", job_id).execute()
        return result.data[0] if result.data else None

    def update(self, job_id: str, fields: Dict) -> None:
        payload = {**fields, "updated_at": datetime.now(timezone.utc).isoformat()}
        self.client.table("processing_jobs").update(payload).eq("id", job_id).execute()

    def claim_next(self, now: datetime) -> Optional[Dict]:
        """
        Atomically move the next eligible job to ``processing``.

        Eligible: status pending or retrying, scheduled_for null or past.
        Order: priority weight descending, then oldest first.
        """
        now_iso = now.isoformat()
        try:
            result = self.client.rpc("claim_next_processing_job", {"claim_time": now_iso}).execute()
            return result.data[0] if result.data else None
        except Exception as e:
            logger.debug(f"claim RPC unavailable, using conditional update: {e}")

        candidates = self.client.table("processing_jobs").select("id").in_(
            "status", CLAIMABLE_STATUSES
        ).or_(
            f"scheduled_for.is.null,scheduled_for.lte.{now_iso}"
        ).order("priority_weight", desc=True).order(
            "created_at", desc=False
        ).limit(CLAIM_CANDIDATES).execute()

        for candidate in candidates.data or []:
            claimed = self.client.table("processing_jobs").update({
                "status": "processing",
                "started_at": now_iso,
                "updated_at": now_iso,
            }).eq("id", candidate["id"]).in_("status", CLAIMABLE_STATUSES).execute()
            if claimed.data:
                return claimed.data[0]
        return None

    def requeue_stale(self, started_before: datetime) -> int:
        """
        Move jobs stuck in ``processing`` since before ``started_before`` back
        to pending. A scheduler that died mid-job leaves such rows behind.
        """
        result = self.client.table("processing_jobs").update({
            "status": "pending",
            "started_at": None,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }).eq("status", "processing").lt("started_at", started_before.isoformat()).execute()
        return len(result.data or [])

    def count_by_status(self) -> Dict[str, int]:
        result = self.client.table("processing_jobs").select("status").execute()
        return dict(Counter(row["status"] for row in result.data or []))

    def list_retryable_failed(self, created_after: Optional[datetime] = None) -> List[Dict]:
        """Failed jobs with retry budget left, optionally only recent ones."""
        query = self.client.table("processing_jobs").select(
            "id, retry_count, max_retries, created_at"
        ).eq("status", "failed")
        if created_after is not None:
            query = query.gte("created_at", created_after.isoformat())
        result = query.execute()
        return [
            row for row in result.data or []
            if row["retry_count"] < row["max_retries"]
        ]

    def reset_for_retry(self, job_id: str, retry_count: int) -> bool:
        """Move a failed job back to pending; False if it is no longer failed."""
        result = self.client.table("processing_jobs").update({
            "status": "pending",
            "retry_count": retry_count,
            "error": None,
            "scheduled_for": None,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }).eq("id", job_id).eq("status", "failed").execute()
        return bool(result.data)
