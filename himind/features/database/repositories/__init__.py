"""Database Repositories - Supabase-backed data access."""

from himind.features.database.repositories.errors import ErrorsRepository
from himind.features.database.repositories.experts import ExpertsRepository
from himind.features.database.repositories.jobs import JobsRepository
from himind.features.database.repositories.knowledge import KnowledgeRepository
from himind.features.database.repositories.organizations import OrganizationsRepository
from himind.features.database.repositories.sources import SourcesRepository
from himind.features.database.repositories.topics import TopicsRepository

__all__ = [
    "ErrorsRepository",
    "ExpertsRepository",
    "JobsRepository",
    "KnowledgeRepository",
    "OrganizationsRepository",
    "SourcesRepository",
    "TopicsRepository",
]
