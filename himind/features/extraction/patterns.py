"""
Keyword-pattern extractor.

Topics come from a fixed table of keyword patterns; statements are the
highest-confidence sentences of the text, typed by phrase rules.
"""

import logging
import re
from typing import Dict, List

from himind.features.extraction.base import (
    ContentExtractor,
    ExtractedStatement,
    ExtractionResult,
    StatementType,
    TopicCandidate,
)

logger = logging.getLogger("HiMind.Extraction.Patterns")

MAX_TOPICS = 5
MAX_STATEMENTS = 3
MIN_SENTENCE_CHARS = 30

TOPIC_PATTERNS: Dict[str, Dict] = {
    "React Development": {
        "keywords": ["react", "jsx", "component", "hook", "usestate", "useeffect"],
        "category": "technology",
    },
    "Backend Development": {
        "keywords": ["api", "server", "backend", "endpoint", "microservice", "rest"],
        "category": "technology",
    },
    "Database": {
        "keywords": ["sql", "database", "query", "migration", "postgresql", "mongodb"],
        "category": "technology",
    },
    "DevOps": {
        "keywords": ["docker", "kubernetes", "ci/cd", "deployment", "infrastructure"],
        "category": "technology",
    },
    "Authentication": {
        "keywords": ["auth", "jwt", "oauth", "login", "token", "security"],
        "category": "technology",
    },
    "Frontend Development": {
        "keywords": ["frontend", "ui", "ux", "css", "html", "javascript", "typescript"],
        "category": "technology",
    },
    "Performance": {
        "keywords": ["performance", "optimization", "speed", "memory", "cache"],
        "category": "process",
    },
    "Testing": {
        "keywords": ["test", "testing", "unit", "integration", "e2e", "jest"],
        "category": "process",
    },
    "Troubleshooting": {
        "keywords": ["error", "bug", "fix", "problem", "issue", "debug"],
        "category": "problem",
    },
    "Software Architecture": {
        "keywords": ["architecture", "design", "pattern", "scalability", "design pattern"],
        "category": "domain",
    },
}

TECH_TERMS = [
    "react", "vue", "angular", "javascript", "typescript", "node", "express",
    "api", "rest", "graphql", "sql", "database", "mongodb", "postgresql",
    "docker", "kubernetes", "aws", "azure", "gcp", "deployment", "ci/cd",
    "auth", "jwt", "oauth", "security", "token", "login", "session",
    "test", "testing", "unit", "integration", "e2e", "jest", "cypress",
    "performance", "optimization", "cache", "memory", "speed", "latency",
    "component", "hook", "state", "props", "redux", "context",
    "backend", "frontend", "fullstack", "microservice", "architecture",
]

# First matching rule wins; unmatched sentences are explanations
STATEMENT_RULES: List[tuple] = [
    ("explanation", ("how to", "steps", "guide")),
    ("decision", ("decided", "chose", "will use")),
    ("solution", ("solved", "fix", "solution")),
    ("best_practice", ("best practice", "should", "recommend")),
    ("warning", ("warning", "careful", "avoid")),
    ("tip", ("tip", "hint", "pro tip")),
    ("example", ("example", "for instance", "like this")),
    ("reference", ("see", "docs", "documentation")),
]

_SENTENCE_SPLIT = re.compile(r"[.!?]+")


def extract_tech_terms(text: str) -> List[str]:
    lower = text.lower()
    return [term for term in TECH_TERMS if term in lower]


def classify_statement(text: str) -> StatementType:
    lower = text.lower()
    for statement_type, phrases in STATEMENT_RULES:
        if any(phrase in lower for phrase in phrases):
            return statement_type
    return "explanation"


def make_headline(sentence: str) -> str:
    """First eight words, at most 60 characters, capitalized."""
    headline = " ".join(sentence.split(" ")[:8])
    if len(headline) > 60:
        headline = headline[:57] + "..."
    return headline[:1].upper() + headline[1:]


def statement_confidence(text: str, statement_type: str) -> float:
    confidence = 0.5
    if len(text) > 50:
        confidence += 0.1
    if len(text) > 100:
        confidence += 0.1

    tech_terms = len(extract_tech_terms(text))
    if tech_terms:
        confidence += min(0.2, tech_terms * 0.05)

    if statement_type in ("solution", "best_practice"):
        confidence += 0.1
    elif statement_type in ("warning", "tip"):
        confidence += 0.05

    # Structured text (lists, definitions) reads as more deliberate
    if ":" in text or "-" in text or "1." in text:
        confidence += 0.1

    return min(0.95, confidence)


def extract_topics(text: str) -> List[TopicCandidate]:
    lower = text.lower()
    topics = []
    for name, pattern in TOPIC_PATTERNS.items():
        keywords = pattern["keywords"]
        matches = [k for k in keywords if k in lower]
        if not matches:
            continue
        topics.append(TopicCandidate(
            name=name,
            category=pattern["category"],
            keywords=matches,
            confidence=min(0.9, len(matches) / len(keywords) + 0.3),
        ))

    topics.sort(key=lambda t: t.confidence, reverse=True)
    return topics[:MAX_TOPICS]


def extract_statements(text: str) -> List[ExtractedStatement]:
    statements = []
    for sentence in _SENTENCE_SPLIT.split(text):
        trimmed = sentence.strip()
        if len(trimmed) < MIN_SENTENCE_CHARS:
            continue

        statement_type = classify_statement(trimmed)
        statements.append(ExtractedStatement(
            headline=make_headline(trimmed),
            content=trimmed,
            statement_type=statement_type,
            keywords=extract_tech_terms(trimmed),
            confidence=statement_confidence(trimmed, statement_type),
        ))

    # Stable sort keeps document order among equal confidences
    statements.sort(key=lambda s: s.confidence, reverse=True)
    return statements[:MAX_STATEMENTS]


class PatternContentExtractor(ContentExtractor):
    """Deterministic keyword/phrase extractor; no external calls."""

    name = "pattern"

    async def extract(self, text: str) -> ExtractionResult:
        result = ExtractionResult(
            statements=extract_statements(text),
            topics=extract_topics(text),
        )
        logger.debug(
            f"Pattern extraction: {len(result.statements)} statements, "
            f"{len(result.topics)} topics"
        )
        return result
