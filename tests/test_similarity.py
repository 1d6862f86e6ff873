"""
Unit tests for the vector helpers shared by discovery and search.
"""

import numpy as np
import pytest

from himind.features.knowledge.similarity import (
    centroid,
    cosine_similarity,
    parse_embedding,
    similarity_matrix,
)


class TestCosineSimilarity:
    """Tests for cosine_similarity."""

    def test_identical_vectors(self):
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_scale_invariant(self):
        assert cosine_similarity([1.0, 1.0], [5.0, 5.0]) == pytest.approx(1.0)

    def test_length_mismatch_is_zero(self):
        assert cosine_similarity([1.0, 0.0, 0.0], [1.0, 0.0]) == 0.0

    def test_zero_vector_is_zero(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0


class TestParseEmbedding:
    """Tests for parse_embedding."""

    def test_pgvector_string(self):
        assert parse_embedding("[0.5, -1, 2]") == [0.5, -1.0, 2.0]

    def test_list_passthrough(self):
        assert parse_embedding([1, 2]) == [1.0, 2.0]

    def test_missing_values(self):
        assert parse_embedding(None) is None
        assert parse_embedding("  ") is None


class TestCentroidAndMatrix:
    """Tests for centroid and similarity_matrix."""

    def test_centroid_is_mean(self):
        assert centroid([[0.0, 2.0], [2.0, 0.0]]) == [1.0, 1.0]

    def test_centroid_of_nothing_raises(self):
        with pytest.raises(ValueError):
            centroid([])

    def test_similarity_matrix_shape_and_values(self):
        points = np.array([[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]])
        centroids = np.array([[1.0, 0.0], [0.0, 2.0]])

        matrix = similarity_matrix(points, centroids)

        assert matrix.shape == (3, 2)
        assert matrix[0, 0] == pytest.approx(1.0)
        assert matrix[1, 1] == pytest.approx(1.0)
        assert matrix[2, 0] == pytest.approx(matrix[2, 1])

    def test_similarity_matrix_tolerates_zero_rows(self):
        matrix = similarity_matrix(np.zeros((1, 2)), np.array([[1.0, 0.0]]))
        assert matrix[0, 0] == 0.0
