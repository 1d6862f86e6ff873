"""
Tests for IngestionService against the in-memory store.
"""

import pytest

from conftest import DIMENSION, FakeEmbedder
from himind.features.database import InMemoryDatabaseClient
from himind.features.extraction import canonical_name
from himind.features.ingestion import IngestionService
from himind.features.processing import parse_content
from himind.shared.errors import (
    EmbeddingDimensionError,
    EmbeddingServiceError,
    OrganizationNotFoundError,
)


class FlakyEmbedder(FakeEmbedder):
    """Fails the first ``failures`` calls."""

    def __init__(self, failures: int = 1):
        super().__init__()
        self.failures = failures

    async def embed(self, text):
        if self.failures:
            self.failures -= 1
            raise EmbeddingServiceError("Embedding API call failed: connection reset")
        return await super().embed(text)


class TestIngest:
    """Tests for a single content source going through ingestion."""

    async def test_creates_source_statements_topics_and_point(self, db, org, person, ingestion, make_payload):
        result = await ingestion.ingest(parse_content(make_payload()))

        assert not result.already_processed
        assert "DevOps" in {t.name for t in result.topics}
        assert len(result.statements) == 3

        source = db.sources.get(result.content_artifact_id)
        assert source["is_processed"] is True
        assert source["organization_id"] == org["id"]
        assert source["author_person_id"] == person["id"]

        assert len(db.table("knowledge_statements")) == 3
        point = db.knowledge.get_point_by_source(result.content_artifact_id)
        assert len(point["embedding"]) == DIMENSION
        assert point["author_person_id"] == person["id"]
        assert "docker" in point["keywords"]

    async def test_statements_are_linked_to_topics(self, db, org, person, ingestion, make_payload):
        result = await ingestion.ingest(parse_content(make_payload()))

        links = db.table("statement_topics")
        assert len(links) == len(result.statements) * len(result.topics)

    async def test_devops_topic_is_shared_across_sources(self, db, org, person, ingestion, make_payload):
        await ingestion.ingest(parse_content(make_payload(external_id="m1")))
        await ingestion.ingest(parse_content(make_payload(external_id="m2")))

        devops = [t for t in db.table("topics") if t["canonical_name"] == canonical_name("DevOps")]
        assert len(devops) == 1
        assert len(db.table("knowledge_sources")) == 2

    async def test_reingest_is_idempotent(self, db, org, person, ingestion, make_payload):
        first = await ingestion.ingest(parse_content(make_payload()))
        second = await ingestion.ingest(parse_content(make_payload()))

        assert second.already_processed
        assert second.content_artifact_id == first.content_artifact_id
        assert {t.id for t in second.topics} == {t.id for t in first.topics}
        assert len(second.statements) == len(first.statements)
        assert len(db.table("knowledge_sources")) == 1
        assert len(db.table("knowledge_statements")) == 3
        assert len(db.table("knowledge_points")) == 1

    async def test_records_expertise_for_resolved_author(self, db, org, person, ingestion, make_payload):
        result = await ingestion.ingest(parse_content(make_payload()))
        devops = next(t for t in result.topics if t.name == "DevOps")

        expert = db.experts.get_topic_expert(person["id"], devops.id)
        assert expert["contribution_count"] == 1
        assert expert["expertise_score"] == pytest.approx(devops.relevance_score * 0.7 / 5, abs=1e-4)

        signals = [s for s in db.table("expertise_signals") if s["topic_id"] == devops.id]
        assert len(signals) == 1
        assert signals[0]["signal_type"] == "authored"

    async def test_unknown_author_is_stored_without_attribution(self, db, org, person, ingestion, make_payload):
        result = await ingestion.ingest(parse_content(make_payload(author="U_STRANGER")))

        assert db.sources.get(result.content_artifact_id).get("author_person_id") is None
        assert result.metadata["author_resolved"] is False
        assert db.table("expertise_signals") == []
        assert db.table("topic_experts") == []

    async def test_parent_source_is_linked(self, db, org, person, ingestion, make_payload):
        parent = await ingestion.ingest(parse_content(make_payload(external_id="thread-1")))
        reply = await ingestion.ingest(parse_content(make_payload(
            external_id="thread-1-reply",
            parent_external_id="thread-1",
            body="Good point, we should also pin the helm chart versions in the kubernetes repo.",
        )))

        assert db.sources.get(reply.content_artifact_id)["parent_source_id"] == parent.content_artifact_id

    async def test_explicit_organization(self, db, person, extractor, embedder, make_payload):
        db.add_organization("First")
        second = db.add_organization("Second")
        service = IngestionService(db, extractor=extractor, embedder=embedder)

        result = await service.ingest(parse_content(make_payload()), organization_id=second["id"])

        assert db.sources.get(result.content_artifact_id)["organization_id"] == second["id"]


class TestIngestFailures:
    """Tests for failure paths and replay after a partial run."""

    async def test_no_organization(self, extractor, embedder, make_payload):
        service = IngestionService(InMemoryDatabaseClient(), extractor=extractor, embedder=embedder)

        with pytest.raises(OrganizationNotFoundError):
            await service.ingest(parse_content(make_payload()))

    async def test_unknown_organization(self, db, org, ingestion, make_payload):
        with pytest.raises(OrganizationNotFoundError):
            await ingestion.ingest(parse_content(make_payload()), organization_id="missing-org")

    async def test_wrong_embedding_dimension(self, db, org, person, extractor, make_payload):
        service = IngestionService(
            db, extractor=extractor, embedder=FakeEmbedder(dimension=4), embedding_dimension=DIMENSION
        )

        with pytest.raises(EmbeddingDimensionError):
            await service.ingest(parse_content(make_payload()))

        assert db.table("knowledge_points") == []
        assert db.table("knowledge_sources")[0]["is_processed"] is False

    async def test_replay_after_embedding_failure(self, db, org, person, extractor, make_payload):
        service = IngestionService(db, extractor=extractor, embedder=FlakyEmbedder(failures=1))
        content = parse_content(make_payload())

        with pytest.raises(EmbeddingServiceError):
            await service.ingest(content)
        result = await service.ingest(content)

        assert not result.already_processed
        assert len(db.table("knowledge_sources")) == 1
        assert len(db.table("knowledge_statements")) == 3
        assert db.sources.get(result.content_artifact_id)["is_processed"] is True

    async def test_replay_after_late_failure_counts_expertise_once(self, db, org, person, ingestion, make_payload):
        content = parse_content(make_payload())
        mark_processed = db.sources.mark_processed
        failures = {"left": 1}

        def flaky_mark_processed(source_id, metadata):
            if failures["left"]:
                failures["left"] -= 1
                raise RuntimeError("database timeout")
            return mark_processed(source_id, metadata)

        db.sources.mark_processed = flaky_mark_processed

        with pytest.raises(RuntimeError):
            await ingestion.ingest(content)
        result = await ingestion.ingest(content)

        assert not result.already_processed
        signals = db.table("expertise_signals")
        assert len(signals) == len(result.topics)
        experts = db.table("topic_experts")
        assert len(experts) == len(result.topics)
        assert [row["contribution_count"] for row in experts] == [1] * len(result.topics)
