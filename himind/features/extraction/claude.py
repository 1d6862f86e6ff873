"""
Claude-backed extractor.

Asks Claude for statements and topics as JSON, trying each configured
model in turn. When every model fails or returns unusable JSON, the
pattern extractor's result is returned instead so ingestion never stalls
on the LLM.
"""

import json
import logging
import re
import time
from typing import List, Optional

from anthropic import AsyncAnthropic
from pydantic import ValidationError

from himind.core.config import settings
from himind.core.logging_utils import log_model_usage
from himind.features.extraction.base import ContentExtractor, ExtractionResult
from himind.features.extraction.patterns import PatternContentExtractor

logger = logging.getLogger("HiMind.Extraction.Claude")

MAX_PROMPT_CHARS = 12000

EXTRACTION_PROMPT = """You extract reusable engineering knowledge from team conversations and code reviews.

Read the content below and return a JSON object with exactly two keys:

"statements": up to 3 self-contained knowledge statements, each
  {{"headline": "<= 60 chars", "content": "the statement",
    "statement_type": one of "explanation", "decision", "solution",
      "best_practice", "warning", "tip", "example", "reference",
    "keywords": ["lowercase", "terms"], "confidence": 0.0-1.0}}

"topics": up to 5 topics the content is about, each
  {{"name": "Title Case Name",
    "category": one of "technology", "domain", "process", "problem", "tool",
    "keywords": ["lowercase", "terms"], "confidence": 0.0-1.0}}

Use empty arrays when nothing applies. Return ONLY the JSON object.

CONTENT:
{text}
"""


class ClaudeContentExtractor(ContentExtractor):
    name = "claude"

    def __init__(
        self,
        api_key: Optional[str] = None,
        models: Optional[List[str]] = None,
        fallback: Optional[ContentExtractor] = None,
    ):
        self.client = AsyncAnthropic(api_key=api_key or settings.ANTHROPIC_API_KEY, timeout=60.0)
        self.model_candidates = models or settings.CLAUDE_MODEL_OPTIONS
        self.fallback = fallback or PatternContentExtractor()
        logger.info("Claude extractor initialized with models: %s", ", ".join(self.model_candidates))

    async def extract(self, text: str) -> ExtractionResult:
        prompt = EXTRACTION_PROMPT.format(text=text[:MAX_PROMPT_CHARS])

        for model_name in self.model_candidates:
            result_text = ""
            try:
                result_text = await self._invoke_model(prompt, model_name)
                return ExtractionResult.model_validate(json.loads(result_text))
            except json.JSONDecodeError as exc:
                logger.error(
                    "Model %s returned unparsable JSON: %s | snippet=%s",
                    model_name,
                    exc,
                    result_text[:300],
                )
            except ValidationError as exc:
                logger.error("Model %s returned an invalid extraction: %s", model_name, exc)
            except Exception as exc:  # pylint: disable=broad-except
                logger.warning("Model %s failed: %s", model_name, exc)

        logger.error("All Claude models failed, falling back to pattern extraction")
        return await self.fallback.extract(text)

    async def _invoke_model(self, prompt: str, model_name: str) -> str:
        """Send the prompt to Claude and return raw text output."""
        started = time.monotonic()
        response = await self.client.messages.create(
            model=model_name,
            max_tokens=2000,
            messages=[{"role": "user", "content": prompt}],
        )

        if not response.content:
            raise ValueError(f"Model {model_name} returned empty content")

        usage = getattr(response, "usage", None)
        log_model_usage(
            model=model_name,
            operation="extraction",
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
            duration_ms=int((time.monotonic() - started) * 1000),
        )

        block = response.content[0]
        result_text = block.text if hasattr(block, "text") else str(block)
        result_text = result_text.strip()

        if result_text.startswith("```"):
            result_text = re.sub(r"^```(?:json)?\n?", "", result_text)
            result_text = re.sub(r"\n?```$", "", result_text)

        return result_text
