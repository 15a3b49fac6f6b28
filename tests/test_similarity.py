"""Tests for cosine similarity, similarity matrices and centroids."""

import numpy as np
import pytest

from JTBD_clustering.clustering.models import Item
from JTBD_clustering.clustering.similarity import (
    build_similarity_matrix,
    compute_centroid,
    cosine_similarity,
    stack_embeddings,
)


class TestCosineSimilarity:
    """Test pairwise cosine similarity."""

    def test_identical_vectors(self):
        assert cosine_similarity([1.0, 2.0], [1.0, 2.0]) == pytest.approx(1.0), (
            "Identical vectors should have similarity 1"
        )

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 3.0]) == pytest.approx(0.0), (
            "Orthogonal vectors should have similarity 0"
        )

    def test_magnitude_independent(self):
        assert cosine_similarity([1.0, 1.0], [5.0, 5.0]) == pytest.approx(1.0), (
            "Similarity should not depend on vector magnitude"
        )

    def test_zero_vector(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0, (
            "Zero-magnitude vector should have similarity 0"
        )

    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError, match="dimensions don't match"):
            cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])


class TestBuildSimilarityMatrix:
    """Test the pairwise similarity matrix."""

    def test_shape_symmetry_and_diagonal(self):
        rng = np.random.default_rng(0)
        vectors = rng.normal(size=(6, 4))

        matrix = build_similarity_matrix(vectors)

        assert matrix.shape == (6, 6), "Matrix should be n x n"
        assert np.array_equal(matrix, matrix.T), "Matrix should be exactly symmetric"
        assert np.all(np.diag(matrix) == 1.0), "Diagonal should be 1"
        assert np.all(matrix <= 1.0) and np.all(matrix >= -1.0), "Values should be clipped"

    def test_known_value(self):
        matrix = build_similarity_matrix([[1.0, 0.0], [1.0, 1.0]])

        assert matrix[0, 1] == pytest.approx(1 / np.sqrt(2)), "Should match cosine of 45 degrees"

    def test_zero_vector_row(self):
        matrix = build_similarity_matrix([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0]])

        assert matrix[0, 1] == 0.0, "Zero vector should have similarity 0 to others"
        assert matrix[0, 0] == 1.0, "Diagonal should be 1 even for a zero vector"
        assert matrix[1, 2] == pytest.approx(1.0), "Parallel vectors should have similarity 1"

    def test_empty_input(self):
        matrix = build_similarity_matrix([])

        assert matrix.shape == (0, 0), "Empty input should give a 0x0 matrix"

    def test_ragged_vectors_raise(self):
        with pytest.raises(ValueError, match="same length"):
            build_similarity_matrix([[1.0, 0.0], [1.0, 0.0, 0.0]])

    def test_one_dimensional_input_raises(self):
        with pytest.raises(ValueError, match="2-D"):
            build_similarity_matrix(np.array([1.0, 2.0, 3.0]))


class TestCentroid:
    """Test centroid computation."""

    def test_mean(self):
        centroid = compute_centroid([[1.0, 0.0], [3.0, 2.0]])

        assert np.allclose(centroid, [2.0, 1.0]), "Centroid should be the element-wise mean"

    def test_empty_raises(self):
        with pytest.raises(ValueError, match="empty"):
            compute_centroid([])


class TestStackEmbeddings:
    """Test stacking of item embeddings."""

    def test_stack(self):
        items = [Item("a", "A", [1.0, 0.0]), Item("b", "B", [0.0, 1.0])]

        matrix = stack_embeddings(items)

        assert matrix.shape == (2, 2), "Should stack one row per item"

    def test_missing_embedding_raises(self):
        items = [Item("a", "A", [1.0, 0.0]), Item("b", "B")]

        with pytest.raises(ValueError, match="without embeddings"):
            stack_embeddings(items)

    def test_mismatched_lengths_raise(self):
        items = [Item("a", "A", [1.0, 0.0]), Item("b", "B", [0.0, 1.0, 0.0])]

        with pytest.raises(ValueError, match="uniform"):
            stack_embeddings(items)
