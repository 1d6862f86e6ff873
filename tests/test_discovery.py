"""
Tests for TopicDiscoveryEngine against the in-memory store.
"""

import asyncio
import time

import pytest

from conftest import DIMENSION, unit_vector
from himind.features.database import InMemoryDatabaseClient
from himind.features.topics import DiscoveryOptions, TopicDiscoveryEngine
from himind.features.topics.discovery import dominant_keywords, topic_confidence, topic_name
from himind.shared.errors import OrganizationNotFoundError


def near(axis: int, offset: int) -> list:
    """A vector close to ``axis``, nudged along the last axis."""
    vector = unit_vector(axis)
    vector[DIMENSION - 1] = 0.05 * offset
    return vector


@pytest.fixture
def engine(db, expertise):
    return TopicDiscoveryEngine(db, expertise=expertise, embedding_dimension=DIMENSION)


@pytest.fixture
def options():
    return DiscoveryOptions(min_cluster_size=3, max_clusters=2, similarity_threshold=0.7, seed=1)


@pytest.fixture
def two_groups(add_point, person):
    """Four deployment points and four frontend points."""
    deploy = [
        add_point(near(0, i), keywords=["docker", "kubernetes"], author_person_id=person["id"])
        for i in range(4)
    ]
    frontend = [
        add_point(near(1, i), keywords=["react", "css"], summary="Frontend notes")
        for i in range(4)
    ]
    return deploy, frontend


class TestHelpers:
    """Tests for naming and keyword helpers."""

    def test_topic_name_from_keyword(self):
        assert topic_name(["kubernetes", "helm"], "ignored") == "Kubernetes Development"

    def test_topic_name_from_summary(self):
        assert topic_name([], "Rotate credentials every quarter") == "Rotate credentials Topic"

    def test_untitled_topic(self):
        assert topic_name([], None) == "Untitled Topic"

    def test_dominant_keywords_by_frequency(self):
        members = [
            {"keywords": ["Docker", "helm"]},
            {"keywords": ["docker", "kubernetes"]},
            {"keywords": ["kubernetes", "docker"]},
        ]
        assert dominant_keywords(members, limit=2) == ["docker", "kubernetes"]

    def test_confidence_saturates(self):
        assert topic_confidence(4) == 0.4
        assert topic_confidence(25) == 1.0


class TestDiscover:
    """Tests for a discovery run."""

    async def test_creates_one_topic_per_cluster(self, db, org, engine, options, two_groups):
        result = await engine.discover(org["id"], options)

        assert result.stats.points_considered == 8
        assert result.stats.clusters_found == 2
        assert result.stats.new_topics == 2
        assert result.stats.updated_topics == 0

        names = {t.name for t in result.topics}
        assert names == {"Docker Development", "React Development"}
        for topic in result.topics:
            assert topic.is_new
            assert topic.cluster_size == 4
            assert topic.member_count == 4
            assert topic.confidence_score == pytest.approx(0.4)

        assert len(db.table("knowledge_topic_memberships")) == 8

    async def test_memberships_follow_clusters(self, db, org, engine, options, two_groups):
        deploy, frontend = two_groups

        result = await engine.discover(org["id"], options)

        docker = next(t for t in result.topics if t.name == "Docker Development")
        assert set(docker.knowledge_point_ids) == {p["id"] for p in deploy}
        for membership in db.topics.list_memberships(docker.id):
            assert membership["similarity_score"] > 0.9

    async def test_topic_centroid_is_mean_of_members(self, db, org, engine, options, two_groups):
        deploy, _ = two_groups

        result = await engine.discover(org["id"], options)

        docker = next(t for t in result.topics if t.name == "Docker Development")
        centroid = db.topics.get(docker.id)["centroid"]
        expected = [sum(p["embedding"][i] for p in deploy) / 4 for i in range(DIMENSION)]
        assert centroid == pytest.approx(expected)

    async def test_second_run_updates_existing_topics(self, db, org, engine, options, two_groups, add_point):
        await engine.discover(org["id"], options)
        add_point(near(0, 5), keywords=["docker", "helm"])

        result = await engine.discover(org["id"], options)

        assert result.stats.new_topics == 0
        assert result.stats.updated_topics == 2
        assert len(db.table("topics")) == 2
        assert len(db.table("knowledge_topic_memberships")) == 9

        docker = next(t for t in result.topics if t.name == "Docker Development")
        assert not docker.is_new
        assert docker.member_count == 5
        assert "helm" in db.topics.get(docker.id)["keyword_signatures"]

    async def test_existing_canonical_name_is_reused(self, db, org, engine, options, two_groups):
        existing, _ = db.topics.get_or_create({
            "organization_id": org["id"],
            "name": "Docker Development",
            "canonical_name": "docker_development",
            "keyword_signatures": ["containers"],
            "is_approved": False,
        })

        result = await engine.discover(org["id"], options)

        docker = next(t for t in result.topics if t.name == "Docker Development")
        assert docker.id == existing["id"]
        assert not docker.is_new
        assert result.stats.new_topics == 1
        assert db.topics.get(existing["id"])["keyword_signatures"][0] == "containers"

    async def test_small_clusters_are_dropped(self, db, org, engine, add_point):
        for i in range(4):
            add_point(near(0, i), keywords=["docker"])
        for i in range(2):
            add_point(near(1, i), keywords=["react"])

        result = await engine.discover(
            org["id"], DiscoveryOptions(min_cluster_size=3, max_clusters=2)
        )

        assert result.stats.clusters_found == 1
        assert [t.name for t in result.topics] == ["Docker Development"]

    async def test_too_few_points(self, db, org, engine, add_point):
        add_point(near(0, 0))
        add_point(near(0, 1))

        result = await engine.discover(org["id"], DiscoveryOptions(min_cluster_size=3))

        assert result.topics == []
        assert result.stats.points_considered == 2
        assert db.table("topics") == []

    async def test_wrong_dimension_points_are_skipped(self, db, org, engine, options, two_groups, add_point):
        add_point([1.0, 0.0, 0.0])

        result = await engine.discover(org["id"], options)

        assert result.stats.points_rejected == 1
        assert result.stats.points_considered == 8

    async def test_auto_approve_off(self, db, org, engine, two_groups):
        options = DiscoveryOptions(min_cluster_size=3, max_clusters=2, auto_approve=False)

        await engine.discover(org["id"], options)

        assert db.topics.list(org["id"], approved_only=True) == []
        assert len(db.topics.list(org["id"])) == 2

    async def test_experts_are_rebuilt_for_touched_topics(self, db, org, person, engine, options, two_groups, expertise):
        result = await engine.discover(org["id"], options)

        docker = next(t for t in result.topics if t.name == "Docker Development")
        react = next(t for t in result.topics if t.name == "React Development")

        experts = expertise.topic_experts(docker.id)
        assert [e["person_id"] for e in experts] == [person["id"]]
        assert experts[0]["contribution_count"] == 4
        assert experts[0]["is_active"]
        assert expertise.topic_experts(react.id) == []

    async def test_unknown_organization(self, engine):
        with pytest.raises(OrganizationNotFoundError):
            await engine.discover("missing-org", DiscoveryOptions())

    async def test_default_organization(self, db, org, engine, options, two_groups):
        result = await engine.discover(options=options)
        assert result.stats.clusters_found == 2


class TestSerialization:
    """Tests for per-organization single-flight runs."""

    async def test_runs_for_one_org_do_not_interleave(self, db, org, engine, options, two_groups):
        events = []
        run = engine._run

        def slow_run(org_id, opts):
            events.append("start")
            time.sleep(0.05)
            try:
                return run(org_id, opts)
            finally:
                events.append("end")

        engine._run = slow_run

        first, second = await asyncio.gather(
            engine.discover(org["id"], options),
            engine.discover(org["id"], options),
        )

        assert events == ["start", "end", "start", "end"]
        assert first.stats.new_topics == 2
        assert second.stats.new_topics == 0
        assert len(db.table("topics")) == 2

    async def test_orgs_are_independent(self):
        db = InMemoryDatabaseClient()
        engine = TopicDiscoveryEngine(db, embedding_dimension=DIMENSION)
        orgs = [db.add_organization("One"), db.add_organization("Two")]
        for org in orgs:
            for i in range(4):
                db.knowledge.upsert_point({
                    "source_id": f"{org['id']}-{i}",
                    "organization_id": org["id"],
                    "keywords": ["docker"],
                    "embedding": near(0, i),
                })

        results = await asyncio.gather(*[
            engine.discover(org["id"], DiscoveryOptions(min_cluster_size=3, max_clusters=1))
            for org in orgs
        ])

        assert [r.stats.new_topics for r in results] == [1, 1]
        assert {t["organization_id"] for t in db.table("topics")} == {o["id"] for o in orgs}
