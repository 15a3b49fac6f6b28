"""
Two-layer hierarchical clustering of statements.

Layer 1 groups items by embedding similarity. Layer 2 groups the layer-1
clusters by the similarity of their centroids. Each layer is produced in one
of three modes:

- ``incremental``: prior clusters from a snapshot are extended with new members
- ``fixed``: a caller-supplied threshold is used as is
- ``adaptive``: the threshold is searched for so the cluster count stays in a
  range derived from the number of objects

Examples
--------
>>> from JTBD_clustering import ClusteringConfig, Item, cluster_items
>>> items = [Item("s1", "Pay an invoice", [1.0, 0.0]), Item("s2", "Pay a bill", [0.9, 0.1])]
>>> result = cluster_items(items, ClusteringConfig(explicit_threshold1=0.8))
>>> result.get_layer(1).cluster_ids
['cluster1-1']
"""

import itertools
import logging
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple, TypeVar

import numpy as np

from JTBD_clustering.config import ClusteringConfig
from JTBD_clustering.DEFAULT_CONSTS import (
    DEFAULT_CLUSTER_KEYS,
    DEFAULT_INCREMENTAL_THRESHOLD,
)

from .adaptive_threshold import find_optimal_threshold
from .incremental import extend_clusters
from .models import Cluster, ClusteringMode, ClusterLayer, HierarchyResult, Item
from .similarity import build_similarity_matrix, compute_centroid, stack_embeddings

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

# (cluster id, members) pairs in output order
_LayerGroups = List[Tuple[str, List[T]]]


def _id_factory(prefix: str, taken: Set[str]) -> Callable[[], str]:
    """Return a callable producing ``<prefix><k>`` ids that skips ``taken``."""
    counter = itertools.count(1)

    def next_id() -> str:
        candidate = f"{prefix}{next(counter)}"
        while candidate in taken:
            candidate = f"{prefix}{next(counter)}"
        taken.add(candidate)
        return candidate

    return next_id


class HierarchicalClusterer:
    """
    Build a one- or two-layer cluster hierarchy over items.

    Parameters
    ----------
    embedding_service : EmbeddingService, optional
        Used to embed items that arrive without an embedding. Without a
        service such items are rejected.
    """

    def __init__(self, embedding_service=None):
        self.embedding_service = embedding_service

    def cluster(
        self,
        items: Sequence[Item],
        config: Optional[ClusteringConfig] = None,
    ) -> HierarchyResult:
        """
        Cluster items into a hierarchy.

        Parameters
        ----------
        items : Sequence[Item]
            Items with unique ids
        config : ClusteringConfig, optional
            Per-call options, defaults to a single adaptive layer

        Returns
        -------
        HierarchyResult
            Layers and the item -> cluster map

        Raises
        ------
        ValueError
            If item ids repeat, an item has no embedding and no embedding
            service is available, or embedding lengths differ
        """
        config = config or ClusteringConfig()
        items = list(items)
        self._check_unique_ids(items)

        if not items:
            LOGGER.info("No items to cluster")
            layers = [ClusterLayer(layer_index=1, mode=self._resolve_mode(1, config))]
            if config.layer_count == 2:
                layers.append(ClusterLayer(layer_index=2, mode=self._resolve_mode(2, config)))
            return HierarchyResult(layers=layers)

        items = self._ensure_embeddings(items)
        vectors = stack_embeddings(items)

        groups1, threshold1, mode1 = self._cluster_layer(
            layer=1,
            objects=items,
            vectors=vectors,
            id_of=lambda item: item.id,
            config=config,
        )
        layer1_clusters = [
            Cluster(id=cluster_id, member_item_ids=[item.id for item in members], layer=1)
            for cluster_id, members in groups1
        ]
        layer1 = ClusterLayer(
            layer_index=1, clusters=layer1_clusters, threshold=threshold1, mode=mode1
        )
        LOGGER.info(
            f"Layer 1: {len(layer1_clusters)} clusters from {len(items)} items "
            f"({mode1.value}, threshold={threshold1:.2f})"
        )

        layers = [layer1]
        if config.layer_count == 2:
            layers.append(self._build_layer2(layer1_clusters, items, config))

        item_to_cluster_map = self._build_item_map(layers)
        return HierarchyResult(layers=layers, item_to_cluster_map=item_to_cluster_map)

    def _build_layer2(
        self,
        layer1_clusters: List[Cluster],
        items: List[Item],
        config: ClusteringConfig,
    ) -> ClusterLayer:
        embedding_by_id = {item.id: item.embedding for item in items}
        centroids = np.vstack(
            [
                compute_centroid([embedding_by_id[item_id] for item_id in cluster.member_item_ids])
                for cluster in layer1_clusters
            ]
        )

        groups2, threshold2, mode2 = self._cluster_layer(
            layer=2,
            objects=layer1_clusters,
            vectors=centroids,
            id_of=lambda cluster: cluster.id,
            config=config,
        )

        layer2_clusters = []
        for cluster_id, children in groups2:
            member_item_ids: List[str] = []
            for child in children:
                child.parent_cluster_id = cluster_id
                member_item_ids.extend(child.member_item_ids)
            layer2_clusters.append(
                Cluster(
                    id=cluster_id,
                    member_item_ids=member_item_ids,
                    child_cluster_ids=[child.id for child in children],
                    layer=2,
                )
            )

        LOGGER.info(
            f"Layer 2: {len(layer2_clusters)} clusters from {len(layer1_clusters)} "
            f"layer-1 clusters ({mode2.value}, threshold={threshold2:.2f})"
        )
        return ClusterLayer(
            layer_index=2, clusters=layer2_clusters, threshold=threshold2, mode=mode2
        )

    def _resolve_mode(self, layer: int, config: ClusteringConfig) -> ClusteringMode:
        if config.is_incremental(layer):
            return ClusteringMode.INCREMENTAL
        if config.threshold_for(layer) is not None:
            return ClusteringMode.FIXED
        return ClusteringMode.ADAPTIVE

    def _cluster_layer(
        self,
        layer: int,
        objects: Sequence[T],
        vectors: np.ndarray,
        id_of: Callable[[T], str],
        config: ClusteringConfig,
    ) -> Tuple[_LayerGroups, float, ClusteringMode]:
        """Cluster one layer and name its clusters."""
        prefix = (
            DEFAULT_CLUSTER_KEYS.layer1_prefix if layer == 1 else DEFAULT_CLUSTER_KEYS.layer2_prefix
        )
        mode = self._resolve_mode(layer, config)

        if mode == ClusteringMode.INCREMENTAL:
            snapshot_members = config.snapshot_members(layer)
            threshold = config.threshold_for(layer)
            if threshold is None:
                threshold = DEFAULT_INCREMENTAL_THRESHOLD
            new_cluster_id = _id_factory(prefix, set(snapshot_members))
            extended = extend_clusters(
                snapshot_members,
                objects,
                vectors,
                id_of=id_of,
                new_cluster_id=new_cluster_id,
                threshold=threshold,
            )
            return [(cluster.id, cluster.members) for cluster in extended], threshold, mode

        similarity_matrix = build_similarity_matrix(vectors)
        search_result = find_optimal_threshold(
            similarity_matrix,
            objects,
            layer=layer,
            threshold=config.threshold_for(layer),
            verbose=config.verbose,
        )
        if not search_result.converged:
            LOGGER.debug(
                f"Layer {layer}: {search_result.cluster_count} clusters is outside the "
                f"target range {search_result.target_min}-{search_result.target_max}"
            )

        new_cluster_id = _id_factory(prefix, set())
        groups = [(new_cluster_id(), members) for members in search_result.clusters]
        return groups, search_result.threshold, mode

    @staticmethod
    def _build_item_map(layers: List[ClusterLayer]) -> Dict[str, Dict[str, Optional[str]]]:
        item_to_cluster_map: Dict[str, Dict[str, Optional[str]]] = {}
        for cluster in layers[0].clusters:
            for item_id in cluster.member_item_ids:
                item_to_cluster_map[item_id] = {
                    DEFAULT_CLUSTER_KEYS.layer1: cluster.id,
                    DEFAULT_CLUSTER_KEYS.layer2: cluster.parent_cluster_id,
                }
        return item_to_cluster_map

    @staticmethod
    def _check_unique_ids(items: List[Item]) -> None:
        seen: Set[str] = set()
        for item in items:
            if not isinstance(item, Item):
                raise ValueError(f"Expected Item, got {type(item).__name__}")
            if item.id in seen:
                raise ValueError(f"Duplicate item id: {item.id}")
            seen.add(item.id)

    def _ensure_embeddings(self, items: List[Item]) -> List[Item]:
        missing = [item for item in items if not item.has_embedding]
        if not missing:
            return items

        if self.embedding_service is None:
            raise ValueError(
                f"Item {missing[0].id} has no embedding and no embedding service is configured"
            )

        LOGGER.info(f"Embedding {len(missing)} items without embeddings")
        return self.embedding_service.embed_items(items)


def cluster_items(
    items: Sequence[Item],
    config: Optional[ClusteringConfig] = None,
    embedding_service=None,
) -> HierarchyResult:
    """
    Convenience function: cluster items with a fresh :class:`HierarchicalClusterer`.

    Parameters
    ----------
    items : Sequence[Item]
        Items to cluster
    config : ClusteringConfig, optional
        Per-call options
    embedding_service : EmbeddingService, optional
        Service for items without embeddings

    Returns
    -------
    HierarchyResult
    """
    return HierarchicalClusterer(embedding_service=embedding_service).cluster(items, config)
