"""
Content extraction - statements and topic candidates from raw text.

Two strategies share the ContentExtractor interface:
- pattern: keyword tables and phrase rules (default, deterministic)
- claude: LLM extraction with the pattern extractor as fallback
"""

from himind.core.config import settings
from himind.features.extraction.base import (
    ContentExtractor,
    ExtractedStatement,
    ExtractionResult,
    TopicCandidate,
    canonical_name,
)
from himind.features.extraction.patterns import PatternContentExtractor


def create_extractor(kind: str = None) -> ContentExtractor:
    """Build the extractor named by ``kind`` (defaults to CONTENT_EXTRACTOR)."""
    kind = (kind or settings.CONTENT_EXTRACTOR).lower()
    if kind == "claude":
        from himind.features.extraction.claude import ClaudeContentExtractor
        return ClaudeContentExtractor()
    if kind == "pattern":
        return PatternContentExtractor()
    raise ValueError(f"Unknown content extractor: {kind}")


__all__ = [
    "ContentExtractor",
    "ExtractedStatement",
    "ExtractionResult",
    "PatternContentExtractor",
    "TopicCandidate",
    "canonical_name",
    "create_extractor",
]
