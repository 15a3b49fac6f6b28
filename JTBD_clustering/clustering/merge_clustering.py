"""
Threshold-based average-link agglomerative clustering.

Starts from singletons and repeatedly merges the pair of clusters with the
highest average pairwise member similarity until no pair is more similar than
the threshold.

Clusters live in an arena addressed by the index of their first item. A merge
extends cluster ``i`` with cluster ``j`` and deactivates ``j``; indices never
move, so no cluster list is rebuilt while merging.

Inter-cluster similarity sums are tracked with row/column additions after every
merge, which gives the exact average-link value ``sum / (|A| * |B|)`` without
recomputing member pairs each round.
"""

import logging
from typing import List, Sequence, TypeVar

import numpy as np

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


def validate_threshold(threshold: float) -> float:
    """Check that a similarity threshold lies in ``[0, 1]``."""
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float, np.floating)):
        raise ValueError(f"Threshold must be a number, got {type(threshold).__name__}")
    if not 0.0 <= float(threshold) <= 1.0:
        raise ValueError(f"Threshold must be between 0 and 1, got {threshold}")
    return float(threshold)


def cluster_by_threshold(
    similarity_matrix: np.ndarray,
    items: Sequence[T],
    threshold: float,
) -> List[List[T]]:
    """
    Cluster items by average-link merging above a similarity threshold.

    Parameters
    ----------
    similarity_matrix : np.ndarray
        Symmetric ``(n, n)`` similarity matrix built from ``items``
    items : Sequence[T]
        Objects the matrix rows refer to (items or lower-layer clusters)
    threshold : float
        Merging continues while the best average similarity is strictly
        greater than this value

    Returns
    -------
    List[List[T]]
        Clusters ordered by their lowest item index; members in merge order

    Raises
    ------
    ValueError
        If the threshold is outside ``[0, 1]`` or the matrix does not match
        the number of items

    Notes
    -----
    Ties between equally similar pairs go to the lowest ``(i, j)`` pair in
    row-major order, so the result is deterministic for a fixed input.
    """
    threshold = validate_threshold(threshold)
    n = len(items)
    if n == 0:
        return []

    matrix = np.asarray(similarity_matrix, dtype=np.float64)
    if matrix.shape != (n, n):
        raise ValueError(
            f"Similarity matrix shape {matrix.shape} does not match {n} items"
        )

    if n == 1:
        return [[items[0]]]

    members: List[List[int]] = [[i] for i in range(n)]
    active = np.ones(n, dtype=bool)
    sizes = np.ones(n, dtype=np.float64)
    sums = matrix.copy()

    # Only the upper triangle holds candidate pairs; -inf marks "not a candidate"
    averages = np.where(np.triu(np.ones((n, n), dtype=bool), k=1), matrix, -np.inf)

    merges = 0
    while True:
        flat_index = int(np.argmax(averages))
        best = averages.flat[flat_index]
        if not best > threshold:
            break

        i, j = divmod(flat_index, n)

        # Extend i with j, then deactivate j
        sums[i, :] += sums[j, :]
        sums[:, i] = sums[i, :]
        sizes[i] += sizes[j]
        members[i].extend(members[j])
        members[j] = []
        active[j] = False

        averages[j, :] = -np.inf
        averages[:, j] = -np.inf

        row = sums[i] / (sizes[i] * sizes)
        row[~active] = -np.inf
        averages[i, i + 1:] = row[i + 1:]
        averages[:i, i] = row[:i]
        merges += 1

    LOGGER.debug(
        f"Threshold {threshold:.3f}: {merges} merges, {int(active.sum())} clusters from {n} items"
    )
    return [[items[k] for k in members[i]] for i in range(n) if active[i]]
