"""
Incremental extension of prior clusters.

Re-creates the clusters recorded in a snapshot from the objects present in the
current batch and routes every unclaimed object to the nearest prior cluster
centroid, or to a new singleton cluster when nothing is similar enough.
Objects already claimed by a prior cluster are never moved.

Works one layer at a time: items and their embeddings for layer 1, layer-1
clusters and their centroids for layer 2.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, List, Mapping, Sequence, TypeVar

import numpy as np

from JTBD_clustering.DEFAULT_CONSTS import DEFAULT_INCREMENTAL_THRESHOLD

from .merge_clustering import validate_threshold
from .similarity import cosine_similarity

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ExtendedCluster(Generic[T]):
    """A cluster produced by :func:`extend_clusters`."""

    id: str
    members: List[T] = field(default_factory=list)
    is_new: bool = False
    centroid: np.ndarray = field(default=None, repr=False)


def extend_clusters(
    snapshot_members: Mapping[str, Sequence[str]],
    objects: Sequence[T],
    vectors: np.ndarray,
    id_of: Callable[[T], str],
    new_cluster_id: Callable[[], str],
    threshold: float = DEFAULT_INCREMENTAL_THRESHOLD,
) -> List[ExtendedCluster]:
    """
    Extend prior clusters with the objects they do not yet contain.

    Parameters
    ----------
    snapshot_members : Mapping[str, Sequence[str]]
        Prior cluster id -> ids of its members
    objects : Sequence[T]
        Objects of the current batch
    vectors : np.ndarray
        One vector per object, aligned with ``objects``
    id_of : Callable[[T], str]
        Returns the id of an object
    new_cluster_id : Callable[[], str]
        Returns a fresh, unused cluster id on each call
    threshold : float
        Minimum centroid similarity for joining a prior cluster

    Returns
    -------
    List[ExtendedCluster]
        Non-empty prior clusters in snapshot order, followed by new clusters
        in the order they were spawned
    """
    threshold = validate_threshold(threshold)
    vectors = np.asarray(vectors, dtype=np.float64)
    if len(objects) != len(vectors):
        raise ValueError(
            f"Got {len(vectors)} vectors for {len(objects)} objects"
        )

    index_by_id: Dict[str, int] = {id_of(obj): idx for idx, obj in enumerate(objects)}
    claimed: Dict[int, str] = {}

    prior: List[ExtendedCluster] = []
    prior_sizes: List[int] = []
    for cluster_id, member_ids in snapshot_members.items():
        indices = []
        for member_id in member_ids:
            idx = index_by_id.get(member_id)
            if idx is None:
                continue
            if idx in claimed:
                LOGGER.warning(
                    f"{member_id} is recorded in both {claimed[idx]} and {cluster_id}; "
                    f"keeping it in {claimed[idx]}"
                )
                continue
            claimed[idx] = cluster_id
            indices.append(idx)

        if not indices:
            LOGGER.warning(f"Prior cluster {cluster_id} has no members in this batch; dropped")
            continue

        prior.append(
            ExtendedCluster(
                id=cluster_id,
                members=[objects[i] for i in indices],
                centroid=vectors[indices].mean(axis=0),
            )
        )
        prior_sizes.append(len(indices))

    spawned: List[ExtendedCluster] = []
    joined = 0
    for idx, obj in enumerate(objects):
        if idx in claimed:
            continue

        vector = vectors[idx]
        best_pos, best_similarity = -1, -np.inf
        for pos, cluster in enumerate(prior):
            similarity = cosine_similarity(vector, cluster.centroid)
            if similarity > best_similarity:
                best_pos, best_similarity = pos, similarity

        if best_pos >= 0 and best_similarity >= threshold:
            cluster = prior[best_pos]
            n = prior_sizes[best_pos]
            cluster.centroid = (cluster.centroid * n + vector) / (n + 1)
            prior_sizes[best_pos] = n + 1
            cluster.members.append(obj)
            joined += 1
        else:
            spawned.append(
                ExtendedCluster(
                    id=new_cluster_id(),
                    members=[obj],
                    is_new=True,
                    centroid=vector.copy(),
                )
            )

    LOGGER.info(
        f"Incremental extension: {len(prior)} prior clusters kept, "
        f"{joined} objects joined them, {len(spawned)} new clusters"
    )
    return prior + spawned
