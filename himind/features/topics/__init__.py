"""
Topics - clustering of knowledge points into discovered topics.

Usage:
    from himind.features.topics import DiscoveryOptions, TopicDiscoveryEngine

    engine = TopicDiscoveryEngine(db)
    result = await engine.discover(org_id, DiscoveryOptions(seed=42))
"""

from himind.features.topics.clustering import (
    CentroidSeeder,
    FarthestPointSeeder,
    KMeansResult,
    RandomJitterSeeder,
    choose_k,
    kmeans,
)
from himind.features.topics.discovery import (
    DiscoveredTopic,
    DiscoveryOptions,
    DiscoveryResult,
    DiscoveryStats,
    TopicDiscoveryEngine,
)

__all__ = [
    "CentroidSeeder",
    "DiscoveredTopic",
    "DiscoveryOptions",
    "DiscoveryResult",
    "DiscoveryStats",
    "FarthestPointSeeder",
    "KMeansResult",
    "RandomJitterSeeder",
    "TopicDiscoveryEngine",
    "choose_k",
    "kmeans",
]
