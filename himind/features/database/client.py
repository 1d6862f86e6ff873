"""
Database Client - Unified Access to All Data Repositories

Every service talks to the store through these repositories; nothing else
writes persisted state. Without Supabase credentials the in-memory store
is used instead (local development only: nothing survives a restart).
"""

import logging
from functools import lru_cache
from typing import Optional, Union

from himind.core.config import settings
from himind.core.database import get_supabase, is_supabase_configured
from himind.features.database.memory import InMemoryDatabaseClient
from himind.features.database.repositories import (
    ErrorsRepository,
    ExpertsRepository,
    JobsRepository,
    KnowledgeRepository,
    OrganizationsRepository,
    SourcesRepository,
    TopicsRepository,
)
from himind.shared.errors import OrganizationNotFoundError

logger = logging.getLogger("HiMind.Database")


class DatabaseClient:
    """
    Supabase-backed client exposing one repository per concern.

    Usage:
        db = get_database_client()
        job = db.jobs.claim_next(now)
        matches = db.knowledge.match_points(org_id, embedding, 0.7, 10)
    """

    def __init__(self, client=None):
        self._client = client or get_supabase()

        self.organizations = OrganizationsRepository(self._client)
        self.sources = SourcesRepository(self._client)
        self.knowledge = KnowledgeRepository(self._client)
        self.topics = TopicsRepository(self._client)
        self.experts = ExpertsRepository(self._client)
        self.jobs = JobsRepository(self._client)
        self.errors = ErrorsRepository(self._client)

        logger.info("Database client initialized with all repositories")

    @property
    def client(self):
        """Direct access to Supabase client for advanced queries."""
        return self._client


StoreClient = Union[DatabaseClient, InMemoryDatabaseClient]


@lru_cache(maxsize=1)
def get_database_client() -> StoreClient:
    """Get the singleton store client."""
    if is_supabase_configured():
        return DatabaseClient()
    logger.warning("Supabase not configured, using in-memory store (data is not persisted)")
    return InMemoryDatabaseClient()


def resolve_organization_id(db: StoreClient, organization_id: Optional[str] = None) -> str:
    """
    Id of the given organization, or of the store's default one.

    Raises:
        OrganizationNotFoundError: unknown id, or no organization at all
    """
    organization_id = organization_id or settings.DEFAULT_ORGANIZATION_ID
    if organization_id:
        org = db.organizations.get(organization_id)
    else:
        org = db.organizations.get_default()
    if not org:
        raise OrganizationNotFoundError(organization_id)
    return org["id"]
