"""Search - semantic knowledge search with expert and topic suggestions."""

from himind.features.search.service import (
    KnowledgeMatch,
    SearchResult,
    SearchService,
    SuggestedExpert,
    TopicMatch,
)

__all__ = [
    "KnowledgeMatch",
    "SearchResult",
    "SearchService",
    "SuggestedExpert",
    "TopicMatch",
]
