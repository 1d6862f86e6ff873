"""
Organizations Repository - organization lookups.

Organizations are managed outside this service; ingestion only needs to
resolve the org a piece of content belongs to.
"""

import logging
from typing import Dict, Optional

logger = logging.getLogger("HiMind.Database.Organizations")


class OrganizationsRepository:
    """Repository for organization lookups."""

    def __init__(self, client):
        self.client = client

    def get(self, organization_id: str) -> Optional[Dict]:
        result = self.client.table("organizations").select("id, name").eq(
            "id", organization_id
        ).limit(1).execute()
        return result.data[0] if result.data else None

    def get_default(self) -> Optional[Dict]:
        """The oldest organization, used when a caller gives no org id."""
        result = self.client.table("organizations").select("id, name").order(
            "created_at", desc=False
        ).limit(1).execute()
        return result.data[0] if result.data else None
