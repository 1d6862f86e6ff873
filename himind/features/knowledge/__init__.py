"""
Knowledge - embeddings, vector math and knowledge point scoring.
"""

from himind.features.knowledge.embedder import OpenAIEmbedder, validate_dimension
from himind.features.knowledge.similarity import (
    centroid,
    cosine_similarity,
    parse_embedding,
    similarity_matrix,
)

__all__ = [
    "OpenAIEmbedder",
    "centroid",
    "cosine_similarity",
    "parse_embedding",
    "similarity_matrix",
    "validate_dimension",
]
