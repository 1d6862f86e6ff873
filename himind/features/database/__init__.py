"""
Database Feature Module - the knowledge store adapter.

Usage:
    from himind.features.database import get_database_client

    db = get_database_client()
    source = db.sources.find(org_id, "slack_message", "C123-1700000000.1")
    job = db.jobs.claim_next(now)
"""

from himind.features.database.client import (
    DatabaseClient,
    StoreClient,
    get_database_client,
    resolve_organization_id,
)
from himind.features.database.memory import InMemoryDatabaseClient, InMemoryStore

__all__ = [
    "DatabaseClient",
    "InMemoryDatabaseClient",
    "InMemoryStore",
    "StoreClient",
    "get_database_client",
    "resolve_organization_id",
]
