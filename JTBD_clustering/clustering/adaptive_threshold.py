"""
Adaptive similarity threshold selection.

The number of clusters is not known up front. This module searches for a
threshold whose clustering lands in a target cluster-count range derived from
the number of items: a binary search first, then a sweep over fixed candidates
when the search does not converge.
"""

import logging
import math
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

import numpy as np

from JTBD_clustering.DEFAULT_CONSTS import (
    DEFAULT_SEARCH,
    DEFAULT_TARGET_RANGES,
    ThresholdSearchConsts,
    TargetRangeConsts,
)

from .merge_clustering import cluster_by_threshold, validate_threshold
from .models import ThresholdSearchResult

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

ClusterFunction = Callable[[np.ndarray, Sequence[T], float], List[List[T]]]


def compute_target_range(
    n_items: int,
    layer: int = 1,
    target_ranges: TargetRangeConsts = DEFAULT_TARGET_RANGES,
) -> Tuple[int, float]:
    """
    Compute the target cluster count range for a layer.

    Layer 1: ``[max(3, floor(n/10)), min(n/2, ceil(n/5))]``.
    Layer 2: ``[max(2, floor(n/20)), min(n/2, ceil(n/8))]``.

    Parameters
    ----------
    n_items : int
        Number of objects being clustered
    layer : int
        1 for raw items, 2 for layer-1 clusters

    Returns
    -------
    Tuple[int, float]
        ``(target_min, target_max)``. ``target_max`` can be fractional
        (``n/2``) and can be below ``target_min`` for very small inputs.
    """
    if layer == 1:
        heuristic = target_ranges.layer1
    elif layer == 2:
        heuristic = target_ranges.layer2
    else:
        raise ValueError(f"layer must be 1 or 2, got {layer}")

    target_min = max(heuristic.min_floor, n_items // heuristic.min_divisor)
    target_max = min(n_items / 2, math.ceil(n_items / heuristic.max_divisor))
    return target_min, target_max


def _in_range(count: int, target_min: float, target_max: float) -> bool:
    return target_min <= count <= target_max


def find_optimal_threshold(
    similarity_matrix: np.ndarray,
    items: Sequence[T],
    cluster_fn: ClusterFunction = cluster_by_threshold,
    layer: int = 1,
    threshold: Optional[float] = None,
    verbose: bool = False,
    search: ThresholdSearchConsts = DEFAULT_SEARCH,
    target_ranges: TargetRangeConsts = DEFAULT_TARGET_RANGES,
) -> ThresholdSearchResult:
    """
    Find a threshold producing a reasonable number of clusters.

    Parameters
    ----------
    similarity_matrix : np.ndarray
        Pairwise similarity matrix of ``items``
    items : Sequence[T]
        Objects to cluster
    cluster_fn : ClusterFunction
        ``cluster_fn(matrix, items, threshold) -> clusters``
    layer : int
        Layer whose target range heuristic is used (1 or 2)
    threshold : Optional[float]
        Explicit threshold. When given it is used verbatim and no search runs.
    verbose : bool
        Log every search step at DEBUG level
    search : ThresholdSearchConsts
        Search bounds, iteration cap and sweep candidates

    Returns
    -------
    ThresholdSearchResult
        Chosen threshold and its clusters. The cluster count is inside the
        target range when ``converged`` is True; otherwise it is the sweep
        candidate closest to the middle of the range.
    """
    if threshold is not None:
        threshold = validate_threshold(threshold)
        LOGGER.info(f"Using user-specified threshold for layer {layer}: {threshold}")
        clusters = cluster_fn(similarity_matrix, items, threshold)
        return ThresholdSearchResult(threshold=threshold, clusters=clusters, iterations=1)

    target_min, target_max = compute_target_range(len(items), layer, target_ranges)

    if not items:
        return ThresholdSearchResult(
            threshold=search.start,
            clusters=[],
            target_min=target_min,
            target_max=target_max,
            converged=False,
        )

    LOGGER.debug(
        f"Adaptive clustering target for layer {layer}: {target_min}-{target_max} clusters"
    )

    low, high = search.lower_bound, search.upper_bound
    best_threshold = search.start
    best_clusters = cluster_fn(similarity_matrix, items, best_threshold)
    runs = 1

    iterations = 0
    while iterations < search.max_iterations:
        count = len(best_clusters)
        if verbose:
            LOGGER.debug(
                f"Iteration {iterations}: threshold={best_threshold:.4f}, clusters={count}"
            )

        if _in_range(count, target_min, target_max):
            break

        if count < target_min:
            # Too few clusters: move the interval down
            high = best_threshold
            best_threshold = (low + best_threshold) / 2
        else:
            # Too many clusters: move the interval up
            low = best_threshold
            best_threshold = (best_threshold + high) / 2

        best_clusters = cluster_fn(similarity_matrix, items, best_threshold)
        runs += 1
        iterations += 1

    converged = _in_range(len(best_clusters), target_min, target_max)

    if not converged:
        LOGGER.debug("Binary search did not find optimal threshold; trying threshold sweep")
        middle_target = (target_min + target_max) / 2
        best_distance = math.inf

        for candidate in search.sweep_candidates:
            clusters = cluster_fn(similarity_matrix, items, candidate)
            runs += 1
            distance = abs(len(clusters) - middle_target)

            if distance < best_distance:
                best_distance = distance
                best_threshold = candidate
                best_clusters = clusters

            if verbose:
                LOGGER.debug(
                    f"Swept threshold {candidate}: {len(clusters)} clusters "
                    f"(distance: {distance:.2f})"
                )

        converged = _in_range(len(best_clusters), target_min, target_max)

    LOGGER.info(
        f"Selected threshold {best_threshold:.2f} for layer {layer} "
        f"with {len(best_clusters)} clusters"
    )

    return ThresholdSearchResult(
        threshold=best_threshold,
        clusters=best_clusters,
        target_min=target_min,
        target_max=target_max,
        converged=converged,
        iterations=runs,
    )
