"""
Tests for content payload parsing and job/priority models.
"""

import pytest
from pydantic import ValidationError

from himind.features.processing import (
    CONTENT_TYPES,
    Priority,
    ProcessingJob,
    parse_content,
)
from himind.features.processing.models import GitHubPullRequest, SlackMessage


class TestParseContent:
    """Tests for the discriminated content union."""

    def test_slack_message(self, make_payload):
        content = parse_content(make_payload())

        assert isinstance(content, SlackMessage)
        assert content.platform == "slack"
        assert content.text == content.body

    def test_github_pr_with_title(self, make_payload):
        content = parse_content(make_payload(
            external_id="acme/api#42",
            content_type="github_pr",
            title="Switch to connection pooling",
            repository="acme/api",
            number=42,
        ))

        assert isinstance(content, GitHubPullRequest)
        assert content.platform == "github"
        assert content.text.startswith("Switch to connection pooling\n\n")

    @pytest.mark.parametrize("content_type", CONTENT_TYPES)
    def test_every_declared_type_parses(self, make_payload, content_type):
        assert parse_content(make_payload(content_type=content_type)).type == content_type

    def test_unknown_type_is_rejected(self, make_payload):
        with pytest.raises(ValidationError):
            parse_content(make_payload(content_type="email"))

    def test_missing_required_field_is_rejected(self, make_payload):
        payload = make_payload()
        del payload["author_external_id"]

        with pytest.raises(ValidationError):
            parse_content(payload)

    def test_blank_body_is_rejected(self, make_payload):
        with pytest.raises(ValidationError):
            parse_content(make_payload(body="   "))

    def test_model_instances_are_accepted(self, make_payload):
        content = parse_content(make_payload())
        assert parse_content(content) == content


class TestPriority:
    """Tests for priority weights."""

    def test_weights_order_priorities(self):
        assert Priority.HIGH.weight > Priority.NORMAL.weight > Priority.LOW.weight

    def test_from_string(self):
        assert Priority("high") is Priority.HIGH


class TestProcessingJob:
    """Tests for the job row model."""

    def test_content_property_reparses_payload(self, make_payload):
        job = ProcessingJob(
            id="slack_message_x_1_abcdef",
            content_type="slack_message",
            content_data=make_payload(external_id="x"),
            created_at="2024-05-01T12:00:00+00:00",
        )

        assert job.status == "pending"
        assert job.retry_count == 0
        assert job.content.external_id == "x"
