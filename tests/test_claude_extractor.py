"""
Tests for the Claude extractor with a mocked Anthropic client.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from himind.features.extraction.claude import ClaudeContentExtractor

EXTRACTION = {
    "statements": [{
        "headline": "Pin helm chart versions",
        "content": "Always pin helm chart versions in the deploy repo.",
        "statement_type": "best_practice",
        "keywords": ["helm"],
        "confidence": 0.8,
    }],
    "topics": [{"name": "DevOps", "category": "technology", "keywords": ["helm"], "confidence": 0.7}],
}


def reply(text):
    return SimpleNamespace(
        content=[SimpleNamespace(text=text)],
        usage=SimpleNamespace(input_tokens=10, output_tokens=20),
    )


@pytest.fixture
def extractor():
    extractor = ClaudeContentExtractor(api_key="test-key", models=["model-a", "model-b"])
    extractor.client = SimpleNamespace(messages=SimpleNamespace(create=AsyncMock()))
    return extractor


class TestClaudeContentExtractor:
    """Tests for model fallback and response parsing."""

    async def test_parses_json_reply(self, extractor):
        extractor.client.messages.create.return_value = reply(json.dumps(EXTRACTION))

        result = await extractor.extract("Always pin helm chart versions in the deploy repo.")

        assert result.statements[0].statement_type == "best_practice"
        assert result.topics[0].name == "DevOps"
        assert extractor.client.messages.create.await_count == 1

    async def test_strips_code_fences(self, extractor):
        extractor.client.messages.create.return_value = reply("```json\n" + json.dumps(EXTRACTION) + "\n```")

        result = await extractor.extract("text")

        assert result.topics[0].keywords == ["helm"]

    async def test_next_model_after_bad_json(self, extractor):
        extractor.client.messages.create.side_effect = [reply("not json"), reply(json.dumps(EXTRACTION))]

        result = await extractor.extract("text")

        assert len(result.statements) == 1
        models = [call.kwargs["model"] for call in extractor.client.messages.create.await_args_list]
        assert models == ["model-a", "model-b"]

    async def test_falls_back_to_patterns(self, extractor):
        extractor.client.messages.create.side_effect = RuntimeError("overloaded")

        result = await extractor.extract("We run every service with docker on kubernetes in production.")

        assert "DevOps" in {t.name for t in result.topics}
