"""
Knowledge point derivation - summary, keywords and scores for a source text.

Extractive and keyword-based; no model calls.
"""

import hashlib
import re
from typing import List

SUMMARY_MAX_CHARS = 200

KNOWLEDGE_KEYWORDS = [
    "react", "javascript", "typescript", "node", "api", "database", "sql",
    "docker", "kubernetes", "aws", "authentication", "security", "performance",
    "bug", "fix", "feature", "deployment", "test", "error", "issue",
]

RELEVANCE_INDICATORS = ["how to", "solution", "fix", "problem", "issue", "error", "help"]

_SENTENCE_SPLIT = re.compile(r"[.!?]+")


def content_hash(text: str) -> str:
    """Generate hash for deduplication."""
    return hashlib.md5(text.encode()).hexdigest()


def summarize(text: str) -> str:
    """First sentence longer than 20 chars, capped at 200 chars."""
    sentences = [s.strip() for s in _SENTENCE_SPLIT.split(text) if len(s.strip()) > 20]
    if not sentences:
        return text.strip()[:100]
    first = sentences[0]
    if len(first) > SUMMARY_MAX_CHARS:
        return first[:SUMMARY_MAX_CHARS - 3] + "..."
    return first


def extract_keywords(text: str) -> List[str]:
    lower = text.lower()
    return [keyword for keyword in KNOWLEDGE_KEYWORDS if keyword in lower]


def quality_score(text: str, keywords: List[str]) -> float:
    score = 0.5
    if len(text) > 100:
        score += 0.1
    if len(text) > 300:
        score += 0.1
    if keywords:
        score += min(0.3, len(keywords) * 0.1)
    if ":" in text or "```" in text or "-" in text:
        score += 0.1
    return round(min(1.0, score), 4)


def relevance_score(text: str) -> float:
    lower = text.lower()
    score = 0.5 + 0.1 * sum(1 for indicator in RELEVANCE_INDICATORS if indicator in lower)
    return round(min(1.0, score), 4)
