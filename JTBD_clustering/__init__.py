"""
JTBD clustering - adaptive hierarchical clustering of short statements.

This package groups semantically similar statements (user scenarios, jobs to
be done) into clusters and organizes the clusters into a two-level hierarchy:

- Clustering: similarity matrix, average-link threshold merging, adaptive
  threshold search, two-layer builder and incremental extension
- Embeddings: provider registry and a batched embedding service with fallback
- Agents: LLM summaries of clusters
- Utils: summary record helpers for incremental runs
"""

__version__ = "1.0.0"

# clustering must be imported before config
from JTBD_clustering.clustering import (  # noqa: E402
    Cluster,
    ClusteringMode,
    ClusterLayer,
    ExistingClusterSnapshot,
    HierarchicalClusterer,
    HierarchyResult,
    Item,
    cluster_items,
)
from JTBD_clustering.config import ClusteringConfig, EmbeddingConfig  # noqa: E402
from JTBD_clustering.DEFAULT_CONSTS import (  # noqa: E402
    DEFAULT_CLUSTER_KEYS,
    DEFAULT_RECORD_KEYS,
    DEFAULT_SEARCH,
    DEFAULT_TARGET_RANGES,
)

__all__ = [
    "Cluster",
    "ClusteringConfig",
    "ClusteringMode",
    "ClusterLayer",
    "EmbeddingConfig",
    "ExistingClusterSnapshot",
    "HierarchicalClusterer",
    "HierarchyResult",
    "Item",
    "cluster_items",
    "DEFAULT_CLUSTER_KEYS",
    "DEFAULT_RECORD_KEYS",
    "DEFAULT_SEARCH",
    "DEFAULT_TARGET_RANGES",
]
