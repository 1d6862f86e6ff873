"""
Content extraction contract.

An extractor turns the text of one content source into knowledge
statements and topic candidates. Extractors are pure: no store access,
no side effects beyond logging.
"""

import re
from abc import ABC, abstractmethod
from typing import List, Literal

from pydantic import BaseModel, Field

StatementType = Literal[
    "explanation",
    "decision",
    "solution",
    "best_practice",
    "warning",
    "tip",
    "example",
    "reference",
]

TopicCategory = Literal["technology", "domain", "process", "problem", "tool"]


def canonical_name(name: str) -> str:
    """Lowercase name with every non-alphanumeric character replaced by '_'."""
    return re.sub(r"[^a-z0-9]", "_", name.lower())


class ExtractedStatement(BaseModel):
    headline: str
    content: str
    statement_type: StatementType = "explanation"
    keywords: List[str] = Field(default_factory=list)
    confidence: float = Field(0.5, ge=0.0, le=1.0)


class TopicCandidate(BaseModel):
    name: str
    category: TopicCategory = "technology"
    keywords: List[str] = Field(default_factory=list)
    confidence: float = Field(0.5, ge=0.0, le=1.0)

    @property
    def canonical_name(self) -> str:
        return canonical_name(self.name)

    @property
    def description(self) -> str:
        return f"{self.category} topic with keywords: {', '.join(self.keywords)}"


class ExtractionResult(BaseModel):
    statements: List[ExtractedStatement] = Field(default_factory=list)
    topics: List[TopicCandidate] = Field(default_factory=list)


class ContentExtractor(ABC):
    """Strategy interface for statement/topic extraction."""

    name: str = "base"

    @abstractmethod
    async def extract(self, text: str) -> ExtractionResult:
        """Extract statements and topic candidates from ``text``."""
