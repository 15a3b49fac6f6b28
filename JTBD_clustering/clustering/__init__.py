"""
Hierarchical clustering of statement embeddings.

This package groups statements into a one- or two-layer cluster hierarchy:

- models: Item, Cluster, ClusterLayer, HierarchyResult and the snapshot used
  for incremental runs
- similarity: cosine similarity matrix and centroids
- merge_clustering: threshold-based average-link merging
- adaptive_threshold: target cluster-count range and threshold search
- incremental: extension of prior clusters with new members
- hierarchical_clustering: the two-layer builder and ``cluster_items``
"""

from .models import (
    Cluster,
    ClusteringMode,
    ClusterLayer,
    ExistingClusterSnapshot,
    HierarchyResult,
    Item,
    ThresholdSearchResult,
)
from .similarity import (
    build_similarity_matrix,
    compute_centroid,
    cosine_similarity,
    stack_embeddings,
)
from .merge_clustering import cluster_by_threshold, validate_threshold
from .adaptive_threshold import compute_target_range, find_optimal_threshold
from .incremental import ExtendedCluster, extend_clusters
from .hierarchical_clustering import HierarchicalClusterer, cluster_items

__all__ = [
    "Cluster",
    "ClusteringMode",
    "ClusterLayer",
    "ExistingClusterSnapshot",
    "ExtendedCluster",
    "HierarchicalClusterer",
    "HierarchyResult",
    "Item",
    "ThresholdSearchResult",
    "build_similarity_matrix",
    "cluster_by_threshold",
    "cluster_items",
    "compute_centroid",
    "compute_target_range",
    "cosine_similarity",
    "extend_clusters",
    "find_optimal_threshold",
    "stack_embeddings",
    "validate_threshold",
]
