"""
Cosine k-means over knowledge point embeddings.

Distance is ``1 - cosine``, so the nearest centroid is the one with the
highest similarity. np.argmax returns the first maximum, which gives ties
to the lower-indexed centroid. Centroid seeding is pluggable:

- FarthestPointSeeder: deterministic, picks well separated points
- RandomJitterSeeder: random points plus small noise, reproducible through
  the injected generator
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import numpy as np

from himind.features.knowledge.similarity import similarity_matrix

JITTER_SCALE = 0.01


class CentroidSeeder(ABC):
    """Strategy producing the initial ``k`` centroids."""

    @abstractmethod
    def seed(self, points: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
        """Return an array of shape (k, dim)."""


class FarthestPointSeeder(CentroidSeeder):
    """
    Start from the first point, then repeatedly add the point whose nearest
    chosen centroid is farthest away. Ignores ``rng``.
    """

    def seed(self, points: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
        chosen = [0]
        nearest = 1.0 - similarity_matrix(points, points[[0]])[:, 0]
        while len(chosen) < k:
            candidate = int(np.argmax(nearest))
            chosen.append(candidate)
            distance = 1.0 - similarity_matrix(points, points[[candidate]])[:, 0]
            nearest = np.minimum(nearest, distance)
        return points[chosen].copy()


class RandomJitterSeeder(CentroidSeeder):
    """Distinct random points with gaussian jitter."""

    def __init__(self, scale: float = JITTER_SCALE):
        self.scale = scale

    def seed(self, points: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
        picks = rng.choice(len(points), size=k, replace=False)
        return points[picks] + rng.normal(0.0, self.scale, size=(k, points.shape[1]))


@dataclass
class KMeansResult:
    assignments: np.ndarray
    centroids: np.ndarray
    iterations: int
    converged: bool


def choose_k(n_points: int, max_clusters: int) -> int:
    """min(max_clusters, n // 2) bounded below by 2, never above n."""
    return max(1, min(max_clusters, max(2, n_points // 2), n_points))


def kmeans(
    points: np.ndarray,
    k: int,
    max_iterations: int = 20,
    seeder: Optional[CentroidSeeder] = None,
    rng: Optional[np.random.Generator] = None,
) -> KMeansResult:
    """
    Partition ``points`` into ``k`` clusters.

    Stops at the first round whose assignments equal the previous round's,
    or after ``max_iterations`` rounds. Empty clusters are reseeded from a
    random point drawn from ``rng``.
    """
    if len(points) == 0:
        raise ValueError("Cannot cluster an empty set of points")
    if not 1 <= k <= len(points):
        raise ValueError(f"k must be between 1 and {len(points)}, got {k}")
    if max_iterations < 1:
        raise ValueError("max_iterations must be at least 1")

    seeder = seeder or FarthestPointSeeder()
    rng = rng or np.random.default_rng()
    centroids = np.asarray(seeder.seed(points, k, rng), dtype=float)

    assignments: Optional[np.ndarray] = None
    iterations = 0
    converged = False

    for iterations in range(1, max_iterations + 1):
        new_assignments = np.argmax(similarity_matrix(points, centroids), axis=1)
        if assignments is not None and np.array_equal(new_assignments, assignments):
            converged = True
            break
        assignments = new_assignments

        for cluster in range(k):
            members = points[assignments == cluster]
            if len(members):
                centroids[cluster] = members.mean(axis=0)
            else:
                centroids[cluster] = points[rng.integers(len(points))]

    return KMeansResult(
        assignments=assignments,
        centroids=centroids,
        iterations=iterations,
        converged=converged,
    )
