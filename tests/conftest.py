"""
Pytest configuration and shared fixtures for HiMind tests.

Everything runs against the in-memory store with a deterministic fake
embedder, so no Supabase, OpenAI or Anthropic access is needed.
"""

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

from himind.features.database import InMemoryDatabaseClient
from himind.features.expertise import ExpertiseService
from himind.features.extraction import PatternContentExtractor
from himind.features.ingestion import IngestionService
from himind.features.processing import IngestionResult

DIMENSION = 8

# One embedding axis per vocabulary group; the last axis is a constant so
# no text embeds to the zero vector
VOCABULARY = [
    ("docker", "kubernetes", "deploy", "helm", "container"),
    ("react", "component", "hook", "frontend", "css"),
    ("sql", "database", "query", "postgres", "migration"),
    ("auth", "token", "oauth", "login", "jwt"),
    ("test", "pytest", "jest", "coverage"),
    ("cache", "performance", "latency", "memory"),
    ("error", "bug", "fix", "debug", "incident"),
]


class FakeEmbedder:
    """Keyword-count embeddings, or fixed vectors for known texts."""

    def __init__(self, dimension: int = DIMENSION, vectors: Optional[Dict[str, List[float]]] = None):
        self.dimension = dimension
        self.vectors = vectors or {}
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if text in self.vectors:
            return list(self.vectors[text])
        lower = text.lower()
        vector = [float(sum(lower.count(word) for word in group)) for group in VOCABULARY]
        vector.append(0.1)
        return vector[:self.dimension] + [0.0] * (self.dimension - len(vector))


class FakeIngestion:
    """Records ingested content; fails while ``failures`` is positive."""

    def __init__(self, failures: int = 0, error: Optional[Exception] = None, delay: float = 0.0):
        self.failures = failures
        self.error = error or RuntimeError("network connection reset")
        self.delay = delay
        self.calls: List[str] = []

    async def ingest(self, content, organization_id=None) -> IngestionResult:
        self.calls.append(content.external_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failures:
            self.failures -= 1
            raise self.error
        return IngestionResult(content_artifact_id=f"source-{content.external_id}")


def unit_vector(axis: int, dimension: int = DIMENSION, scale: float = 1.0) -> List[float]:
    vector = [0.0] * dimension
    vector[axis] = scale
    return vector


@pytest.fixture
def db():
    """Fresh in-memory store for each test."""
    return InMemoryDatabaseClient()


@pytest.fixture
def org(db):
    return db.add_organization("Acme Engineering")


@pytest.fixture
def person(db):
    """A person with a Slack and a GitHub account."""
    return db.add_person("Ada Lovelace", identities=[("slack", "U_ADA"), ("github", "ada")])


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def extractor():
    return PatternContentExtractor()


@pytest.fixture
def expertise(db):
    return ExpertiseService(db)


@pytest.fixture
def ingestion(db, extractor, embedder, expertise):
    return IngestionService(db, extractor=extractor, embedder=embedder, expertise=expertise)


@pytest.fixture
def make_payload():
    """Factory for raw content payloads (dicts, as callers send them)."""

    def _make(
        external_id: str = "C01-1700000000.000100",
        body: str = (
            "We deploy every service with docker and kubernetes on our cluster. "
            "The rollout uses helm charts and a canary deployment strategy for safety. "
            "Remember to avoid pushing images tagged latest to production."
        ),
        content_type: str = "slack_message",
        author: str = "U_ADA",
        **extra,
    ) -> Dict:
        payload = {
            "type": content_type,
            "external_id": external_id,
            "body": body,
            "author_external_id": author,
            "platform_created_at": datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc).isoformat(),
        }
        payload.update(extra)
        return payload

    return _make


@pytest.fixture
def add_point(db, org):
    """Insert a knowledge point directly, bypassing ingestion."""
    counter = {"n": 0}

    def _add(
        embedding: List[float],
        keywords: Optional[List[str]] = None,
        author_person_id: Optional[str] = None,
        summary: str = "A knowledge point",
        organization_id: Optional[str] = None,
    ) -> Dict:
        counter["n"] += 1
        return db.knowledge.upsert_point({
            "source_id": f"source-{counter['n']}",
            "organization_id": organization_id or org["id"],
            "author_person_id": author_person_id,
            "summary": summary,
            "keywords": keywords or [],
            "embedding": embedding,
            "processed_at": datetime.now(timezone.utc).isoformat(),
        })

    return _add
