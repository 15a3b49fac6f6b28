"""
Cosine similarity utilities for clustering.

Builds the pairwise similarity matrix the merge clusterer works on and computes
centroids used as cluster representatives.
"""

import logging
from typing import Sequence

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity as sk_cosine_similarity

from .models import Item

LOGGER = logging.getLogger(__name__)


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """
    Compute cosine similarity between two vectors.

    Parameters
    ----------
    a : np.ndarray
        First vector
    b : np.ndarray
        Second vector

    Returns
    -------
    float
        Cosine similarity, 0.0 when either vector has zero magnitude

    Raises
    ------
    ValueError
        If the vectors differ in length
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError(f"Vector dimensions don't match: {a.shape} vs {b.shape}")

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.clip(np.dot(a, b) / (norm_a * norm_b), -1.0, 1.0))


def _as_matrix(vectors) -> np.ndarray:
    """Stack vectors into a 2-D float matrix, failing on ragged input."""
    if isinstance(vectors, np.ndarray):
        matrix = vectors.astype(np.float64, copy=False)
    else:
        vectors = list(vectors)
        if not vectors:
            return np.zeros((0, 0), dtype=np.float64)
        lengths = {len(v) for v in vectors}
        if len(lengths) > 1:
            raise ValueError(
                f"All vectors must have the same length, got lengths {sorted(lengths)}"
            )
        matrix = np.asarray(vectors, dtype=np.float64)

    if matrix.ndim == 1 and matrix.size == 0:
        return np.zeros((0, 0), dtype=np.float64)
    if matrix.ndim != 2:
        raise ValueError(f"Expected a 2-D array of vectors, got shape {matrix.shape}")
    if matrix.shape[0] > 0 and matrix.shape[1] == 0:
        raise ValueError("Vectors must have at least one dimension")
    return matrix


def build_similarity_matrix(vectors) -> np.ndarray:
    """
    Compute the pairwise cosine similarity matrix.

    Each unordered pair is computed once and mirrored, the diagonal is set
    to 1 and zero-magnitude vectors get similarity 0 to everything else.

    Parameters
    ----------
    vectors : Sequence[np.ndarray] or np.ndarray
        ``n`` vectors of equal length

    Returns
    -------
    np.ndarray
        Symmetric matrix of shape ``(n, n)``

    Raises
    ------
    ValueError
        If vectors have different lengths

    Examples
    --------
    >>> m = build_similarity_matrix([[1.0, 0.0], [1.0, 1.0]])
    >>> round(float(m[0, 1]), 4)
    0.7071
    """
    matrix = _as_matrix(vectors)
    n = matrix.shape[0]
    if n == 0:
        return np.zeros((0, 0), dtype=np.float64)

    # sklearn normalizes zero rows to zero, so their similarities come out as 0
    full = sk_cosine_similarity(matrix)
    upper = np.triu(np.clip(full, -1.0, 1.0), k=1)
    similarity = upper + upper.T
    np.fill_diagonal(similarity, 1.0)

    LOGGER.debug(f"Built {n}x{n} similarity matrix")
    return similarity


def compute_centroid(vectors) -> np.ndarray:
    """
    Element-wise mean of a set of vectors.

    Parameters
    ----------
    vectors : Sequence[np.ndarray] or np.ndarray
        Member vectors of equal length

    Returns
    -------
    np.ndarray
        Centroid vector
    """
    matrix = _as_matrix(vectors)
    if matrix.shape[0] == 0:
        raise ValueError("Cannot compute the centroid of an empty set of vectors")
    return matrix.mean(axis=0)


def stack_embeddings(items: Sequence[Item]) -> np.ndarray:
    """
    Stack item embeddings into a matrix.

    Raises
    ------
    ValueError
        If an item has no embedding or embedding lengths differ
    """
    if not items:
        return np.zeros((0, 0), dtype=np.float64)

    missing = [item.id for item in items if not item.has_embedding]
    if missing:
        raise ValueError(f"Items without embeddings: {missing[:5]}")

    dims = {item.embedding.shape[0] for item in items}
    if len(dims) > 1:
        raise ValueError(
            f"Embedding length must be uniform within a clustering call, got {sorted(dims)}"
        )
    return np.vstack([item.embedding for item in items])
