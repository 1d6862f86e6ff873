"""
Features Module - Self-contained feature units.

Each feature is a modular unit with its own logic:
- database: knowledge store repositories (Supabase or in-memory)
- extraction: statements and topic candidates from text
- knowledge: embeddings, similarity and scoring
- ingestion: one content source end to end
- processing: job queue, retries, error tracking
- topics: clustering into discovered topics
- expertise: who knows what
- search: semantic search and expert suggestions
"""

# Core services that other features depend on
from himind.features.database import DatabaseClient, get_database_client

__all__ = [
    "DatabaseClient",
    "get_database_client",
]
