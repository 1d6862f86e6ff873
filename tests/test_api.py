"""
API tests through FastAPI's TestClient with in-memory services.
"""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from conftest import DIMENSION, FakeEmbedder, FakeIngestion, unit_vector
from himind.api.dependencies import (
    get_database,
    get_discovery_engine,
    get_error_handler,
    get_expertise_service,
    get_orchestrator,
    get_search_service,
)
from himind.features.database import InMemoryDatabaseClient
from himind.features.expertise import ExpertiseService
from himind.features.processing import ProcessingErrorHandler, ProcessingOrchestrator
from himind.features.search import SearchService
from himind.features.topics import TopicDiscoveryEngine
from main import app

QUERY = "how do we roll out to production"


@pytest.fixture
def store():
    db = InMemoryDatabaseClient()
    org = db.add_organization("Acme Engineering")
    person = db.add_person("Ada Lovelace", identities=[("slack", "U_ADA")])
    return db, org, person


@pytest.fixture
def client(store):
    db, _, _ = store
    error_handler = ProcessingErrorHandler(db)
    expertise = ExpertiseService(db)
    orchestrator = ProcessingOrchestrator(db, FakeIngestion(), error_handler=error_handler, concurrency=1)
    embedder = FakeEmbedder(vectors={QUERY: unit_vector(0)})

    app.dependency_overrides[get_database] = lambda: db
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_error_handler] = lambda: error_handler
    app.dependency_overrides[get_expertise_service] = lambda: expertise
    app.dependency_overrides[get_search_service] = lambda: SearchService(db, embedder, embedding_dimension=DIMENSION)
    app.dependency_overrides[get_discovery_engine] = lambda: TopicDiscoveryEngine(
        db, expertise=expertise, embedding_dimension=DIMENSION
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def clustered_points(store):
    """Eight points in two groups; the first group is authored by Ada."""
    db, org, person = store
    for axis, keywords, author in [(0, ["docker"], person["id"]), (1, ["react"], None)]:
        for i in range(4):
            vector = unit_vector(axis)
            vector[DIMENSION - 1] = 0.05 * i
            db.knowledge.upsert_point({
                "source_id": f"source-{axis}-{i}",
                "organization_id": org["id"],
                "author_person_id": author,
                "summary": f"Note {axis}-{i}",
                "keywords": keywords,
                "embedding": vector,
                "processed_at": datetime.now(timezone.utc).isoformat(),
            })


def payload(external_id="C01-1", **overrides):
    content = {
        "type": "slack_message",
        "external_id": external_id,
        "body": "We deploy with docker and kubernetes.",
        "author_external_id": "U_ADA",
        "platform_created_at": "2024-05-01T12:00:00+00:00",
    }
    content.update(overrides)
    return content


class TestProcessingEndpoints:
    """Tests for /processing."""

    def test_enqueue_and_get_job(self, client):
        response = client.post("/api/v1/processing/jobs", json={"content": payload(), "priority": "high"})

        assert response.status_code == 202
        job_id = response.json()["job_id"]

        job = client.get(f"/api/v1/processing/jobs/{job_id}").json()
        assert job["id"] == job_id
        assert job["status"] == "pending"
        assert job["priority"] == "high"

    def test_enqueue_invalid_content(self, client):
        response = client.post("/api/v1/processing/jobs", json={"content": payload(body="")})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_enqueue_invalid_priority(self, client):
        response = client.post("/api/v1/processing/jobs", json={"content": payload(), "priority": "urgent"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_unknown_job_is_404_with_correlation_id(self, client):
        response = client.get("/api/v1/processing/jobs/missing", headers={"X-Request-ID": "req-123"})

        assert response.status_code == 404
        body = response.json()["error"]
        assert body["code"] == "NOT_FOUND"
        assert body["correlation_id"] == "req-123"
        assert response.headers["X-Correlation-ID"] == "req-123"

    def test_batch(self, client):
        response = client.post(
            "/api/v1/processing/jobs/batch",
            json={"contents": [payload("a"), {"type": "fax"}, payload("c")]},
        )

        assert response.status_code == 202
        body = response.json()
        assert body["accepted"] == 2
        assert body["rejected"] == 1
        assert body["job_ids"][1] is None

    def test_stats(self, client):
        client.post("/api/v1/processing/jobs", json={"content": payload("a")})
        client.post("/api/v1/processing/jobs", json={"content": payload("b")})

        stats = client.get("/api/v1/processing/stats").json()

        assert stats["total"] == 2
        assert stats["pending"] == 2

    def test_retry(self, client):
        response = client.post("/api/v1/processing/retry", json={"max_age_ms": 60000})

        assert response.status_code == 200
        assert response.json() == {"retried": 0}

    def test_error_summary(self, client):
        client.post("/api/v1/processing/jobs/batch", json={"contents": [{"type": "fax"}]})

        summary = client.get("/api/v1/processing/errors/summary", params={"timeframe": "hour"}).json()

        assert summary["total_errors"] == 1
        assert summary["errors_by_type"] == {"validation": 1}

    def test_error_summary_rejects_unknown_timeframe(self, client):
        response = client.get("/api/v1/processing/errors/summary", params={"timeframe": "month"})
        assert response.status_code == 400


class TestTopicEndpoints:
    """Tests for /topics and /experts."""

    def test_discover_then_list(self, client, store, clustered_points):
        _, org, _ = store

        response = client.post("/api/v1/topics/discover", json={
            "organization_id": org["id"],
            "options": {"min_cluster_size": 3, "max_clusters": 2},
        })

        assert response.status_code == 200
        result = response.json()
        assert result["stats"]["new_topics"] == 2

        topics = client.get("/api/v1/topics", params={"organization_id": org["id"]}).json()
        assert {t["name"] for t in topics} == {"Docker Development", "React Development"}
        assert all(t["member_count"] == 4 for t in topics)

    def test_topic_experts(self, client, store, clustered_points):
        _, org, person = store
        result = client.post("/api/v1/topics/discover", json={
            "options": {"min_cluster_size": 3, "max_clusters": 2},
        }).json()
        docker = next(t for t in result["topics"] if t["name"] == "Docker Development")

        experts = client.get(f"/api/v1/topics/{docker['id']}/experts").json()

        assert [e["person_id"] for e in experts] == [person["id"]]
        assert experts[0]["display_name"] == "Ada Lovelace"

    def test_unknown_topic_experts(self, client):
        response = client.get("/api/v1/topics/missing/experts")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_recompute_experts(self, client, store, clustered_points):
        _, org, _ = store
        client.post("/api/v1/topics/discover", json={"options": {"min_cluster_size": 3, "max_clusters": 2}})

        response = client.post("/api/v1/experts/recompute", json={})

        assert response.status_code == 200
        assert response.json() == {"organization_id": org["id"], "experts_written": 1}

    def test_unknown_organization(self, client):
        response = client.get("/api/v1/topics", params={"organization_id": "missing"})

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"


class TestSearchEndpoints:
    """Tests for /search."""

    def test_post_search(self, client, clustered_points):
        response = client.post("/api/v1/search", json={"query": QUERY})

        assert response.status_code == 200
        body = response.json()
        assert body["query"] == QUERY
        assert len(body["knowledge_matches"]) == 4
        assert body["has_direct_answers"] is True
        assert body["suggested_experts"][0]["display_name"] == "Ada Lovelace"

    def test_get_search(self, client, clustered_points):
        response = client.get("/api/v1/search", params={"q": QUERY})

        assert response.status_code == 200
        assert len(response.json()["knowledge_matches"]) == 4

    def test_empty_query(self, client):
        response = client.post("/api/v1/search", json={"query": ""})
        assert response.status_code == 400


class TestServiceEndpoints:
    """Tests for health, root and unknown routes."""

    def test_health(self, client):
        orchestrator = app.dependency_overrides[get_orchestrator]()
        orchestrator.running = True

        response = client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["store"] == "memory"
        assert {check["name"] for check in body["checks"]} == {
            "pipeline_running", "ingestion", "database", "success_rate",
        }

    def test_health_degraded_when_scheduler_stopped(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "degraded"
        failed = [check["name"] for check in body["checks"] if check["status"] == "fail"]
        assert failed == ["pipeline_running"]

    def test_health_unhealthy_returns_503(self, client):
        orchestrator = app.dependency_overrides[get_orchestrator]()
        orchestrator.stats.record_failed()

        response = client.get("/api/v1/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    def test_root(self, client):
        assert client.get("/").json() == {"message": "HiMind Knowledge Service Running"}

    def test_unknown_route(self, client):
        response = client.get("/api/v1/nope")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"
