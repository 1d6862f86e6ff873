"""
Tests for cosine k-means and its seeding strategies.
"""

import numpy as np
import pytest

from himind.features.topics import (
    CentroidSeeder,
    FarthestPointSeeder,
    RandomJitterSeeder,
    choose_k,
    kmeans,
)


class FixedSeeder(CentroidSeeder):
    def __init__(self, centroids):
        self.centroids = np.asarray(centroids, dtype=float)

    def seed(self, points, k, rng):
        return self.centroids.copy()


def two_groups():
    return np.array([
        [1.0, 0.0, 0.1],
        [1.0, 0.1, 0.0],
        [0.9, 0.0, 0.0],
        [0.0, 1.0, 0.1],
        [0.1, 1.0, 0.0],
        [0.0, 0.9, 0.0],
    ])


class TestChooseK:
    """Tests for the cluster-count rule."""

    @pytest.mark.parametrize("n_points,max_clusters,expected", [
        (1, 20, 1),
        (3, 20, 2),
        (10, 20, 5),
        (100, 20, 20),
        (8, 2, 2),
    ])
    def test_choose_k(self, n_points, max_clusters, expected):
        assert choose_k(n_points, max_clusters) == expected


class TestKMeans:
    """Tests for kmeans."""

    def test_separates_two_groups(self):
        result = kmeans(two_groups(), 2)

        assert result.converged
        assert len(set(result.assignments[:3])) == 1
        assert len(set(result.assignments[3:])) == 1
        assert result.assignments[0] != result.assignments[3]

    def test_farthest_point_seeding_is_deterministic(self):
        first = kmeans(two_groups(), 2, seeder=FarthestPointSeeder())
        second = kmeans(two_groups(), 2, seeder=FarthestPointSeeder())

        assert np.array_equal(first.assignments, second.assignments)
        assert np.allclose(first.centroids, second.centroids)

    def test_jitter_seeding_is_reproducible_with_a_seeded_generator(self):
        seeder = RandomJitterSeeder()
        first = kmeans(two_groups(), 2, seeder=seeder, rng=np.random.default_rng(7))
        second = kmeans(two_groups(), 2, seeder=seeder, rng=np.random.default_rng(7))

        assert np.array_equal(first.assignments, second.assignments)

    def test_ties_go_to_the_lower_index(self):
        seeder = FixedSeeder([[1.0, 1.0, 0.0], [1.0, 1.0, 0.0]])

        result = kmeans(two_groups(), 2, max_iterations=1, seeder=seeder)

        assert list(result.assignments) == [0] * 6
        assert result.iterations == 1
        assert not result.converged

    def test_centroid_is_mean_of_members(self):
        points = np.array([[1.0, 0.0], [3.0, 0.0], [0.0, 2.0], [0.0, 4.0]])

        result = kmeans(points, 2)

        by_cluster = {tuple(points[result.assignments == c].mean(axis=0)) for c in range(2)}
        assert by_cluster == {tuple(c) for c in result.centroids}

    def test_single_cluster(self):
        result = kmeans(two_groups(), 1)
        assert set(result.assignments) == {0}

    @pytest.mark.parametrize("k", [0, 7])
    def test_invalid_k(self, k):
        with pytest.raises(ValueError):
            kmeans(two_groups(), k)

    def test_empty_input(self):
        with pytest.raises(ValueError):
            kmeans(np.empty((0, 3)), 1)
