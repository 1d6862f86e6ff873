"""
Tests for ExpertiseService.
"""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import unit_vector


def topic(db, org, name="DevOps"):
    row, _ = db.topics.get_or_create({
        "organization_id": org["id"],
        "name": name,
        "canonical_name": name.lower(),
        "is_approved": True,
    })
    return row


class TestRecordContribution:
    """Tests for incremental expert updates."""

    def test_first_contribution(self, db, org, person, expertise):
        devops = topic(db, org)
        now = datetime.now(timezone.utc)

        row = expertise.record_contribution(person["id"], devops["id"], 0.5, now)

        assert row["expertise_score"] == pytest.approx(0.1)
        assert row["contribution_count"] == 1
        assert row["is_active"]

    def test_contributions_accumulate_and_cap(self, db, org, person, expertise):
        devops = topic(db, org)
        now = datetime.now(timezone.utc)

        for _ in range(8):
            row = expertise.record_contribution(person["id"], devops["id"], 1.0, now)

        assert row["contribution_count"] == 8
        assert row["expertise_score"] == 1.0

    def test_old_contributions_are_inactive(self, db, org, person, expertise):
        devops = topic(db, org)
        old = datetime.now(timezone.utc) - timedelta(days=200)

        row = expertise.record_contribution(person["id"], devops["id"], 0.5, old)

        assert not row["is_active"]
        assert expertise.topic_experts(devops["id"]) == []

    def test_last_contribution_keeps_latest(self, db, org, person, expertise):
        devops = topic(db, org)
        recent = datetime.now(timezone.utc) - timedelta(days=1)

        expertise.record_contribution(person["id"], devops["id"], 0.5, recent)
        row = expertise.record_contribution(person["id"], devops["id"], 0.5, recent - timedelta(days=300))

        assert row["last_contribution_at"] == recent.isoformat()
        assert row["is_active"]


class TestRecompute:
    """Tests for full recomputation from signals and memberships."""

    def test_signals_and_memberships(self, db, org, person, expertise, add_point):
        devops = topic(db, org)
        now = datetime.now(timezone.utc).isoformat()
        db.experts.add_signal({
            "organization_id": org["id"],
            "person_id": person["id"],
            "topic_id": devops["id"],
            "signal_type": "authored",
            "strength": 0.9,
            "confidence": 0.7,
            "occurred_at": now,
        })
        point = add_point(unit_vector(0), author_person_id=person["id"])
        db.topics.upsert_membership(point["id"], devops["id"], 0.8)

        written = expertise.recompute_topic_experts(org["id"])

        assert written == 1
        expert = db.experts.get_topic_expert(person["id"], devops["id"])
        assert expert["contribution_count"] == 2
        assert expert["expertise_score"] == pytest.approx((0.9 * 0.7 + 0.8) / 5, abs=1e-4)
        assert expert["is_active"]

    def test_recompute_replaces_stale_rows(self, db, org, person, expertise):
        devops = topic(db, org)
        expertise.record_contribution(person["id"], devops["id"], 1.0, datetime.now(timezone.utc))

        assert expertise.recompute_topic_experts(org["id"], [devops["id"]]) == 0
        assert db.experts.get_topic_expert(person["id"], devops["id"]) is None

    def test_topic_filter(self, db, org, expertise):
        topic(db, org, "DevOps")
        assert expertise.recompute_topic_experts(org["id"], ["unknown"]) == 0

    def test_topic_experts_ranked_with_names(self, db, org, person, expertise):
        devops = topic(db, org)
        bob = db.add_person("Bob Builder")
        now = datetime.now(timezone.utc)
        expertise.record_contribution(person["id"], devops["id"], 0.5, now)
        expertise.record_contribution(bob["id"], devops["id"], 2.0, now)

        experts = expertise.topic_experts(devops["id"])

        assert [e["display_name"] for e in experts] == ["Bob Builder", "Ada Lovelace"]
