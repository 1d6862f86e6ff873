"""
Vector math shared by topic discovery and search.
"""

import json
from typing import Any, List, Optional, Sequence

import numpy as np


def parse_embedding(value: Any) -> Optional[List[float]]:
    """
    Normalize a stored embedding to a list of floats.

    pgvector columns come back from PostgREST as strings like "[0.1,0.2]";
    jsonb/array columns come back as lists.
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        value = json.loads(value)
    return [float(v) for v in value]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Returns 0.0 when either vector has zero norm or the lengths differ.
    """
    if len(a) != len(b) or len(a) == 0:
        return 0.0
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def similarity_matrix(points: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """Pairwise cosine similarity, shape (len(points), len(centroids))."""
    p_norm = np.linalg.norm(points, axis=1, keepdims=True)
    c_norm = np.linalg.norm(centroids, axis=1, keepdims=True)
    p_norm[p_norm == 0] = 1.0
    c_norm[c_norm == 0] = 1.0
    return (points / p_norm) @ (centroids / c_norm).T


def centroid(vectors: Sequence[Sequence[float]]) -> List[float]:
    """Arithmetic mean of equal-length vectors."""
    if len(vectors) == 0:
        raise ValueError("Cannot compute the centroid of an empty set")
    return np.mean(np.asarray(vectors, dtype=float), axis=0).tolist()
