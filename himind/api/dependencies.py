"""
Request-handler dependencies.

Every service is a process-wide singleton. Handlers receive them through
FastAPI's Depends so tests can swap any of them via dependency_overrides.
"""

from functools import lru_cache

from himind.features.database import StoreClient, get_database_client
from himind.features.expertise import ExpertiseService
from himind.features.extraction import ContentExtractor, create_extractor
from himind.features.ingestion import IngestionService
from himind.features.knowledge.embedder import OpenAIEmbedder
from himind.features.processing import (
    ProcessingErrorHandler,
    ProcessingOrchestrator,
    ProcessingStatsCollector,
)
from himind.features.search import SearchService
from himind.features.topics import TopicDiscoveryEngine


def get_database() -> StoreClient:
    """Provide the singleton knowledge store for request handlers."""
    return get_database_client()


@lru_cache(maxsize=1)
def get_embedder() -> OpenAIEmbedder:
    return OpenAIEmbedder()


@lru_cache(maxsize=1)
def get_extractor() -> ContentExtractor:
    return create_extractor()


@lru_cache(maxsize=1)
def get_error_handler() -> ProcessingErrorHandler:
    return ProcessingErrorHandler(get_database())


@lru_cache(maxsize=1)
def get_expertise_service() -> ExpertiseService:
    return ExpertiseService(get_database())


@lru_cache(maxsize=1)
def get_ingestion_service() -> IngestionService:
    # Job failures are logged by the orchestrator, not a second time here
    return IngestionService(
        get_database(),
        extractor=get_extractor(),
        embedder=get_embedder(),
        expertise=get_expertise_service(),
    )


@lru_cache(maxsize=1)
def get_orchestrator() -> ProcessingOrchestrator:
    """Provide the singleton orchestrator (started in main.py's lifespan)."""
    return ProcessingOrchestrator(
        get_database(),
        get_ingestion_service(),
        stats=ProcessingStatsCollector(),
        error_handler=get_error_handler(),
    )


@lru_cache(maxsize=1)
def get_discovery_engine() -> TopicDiscoveryEngine:
    return TopicDiscoveryEngine(get_database(), expertise=get_expertise_service())


@lru_cache(maxsize=1)
def get_search_service() -> SearchService:
    return SearchService(get_database(), get_embedder())
