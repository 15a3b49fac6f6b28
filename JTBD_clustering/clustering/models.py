"""
Data models for hierarchical clustering.

Defines items, clusters, per-layer results and the plain-data snapshot used to
carry clustering state from one run to the next.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

import numpy as np

from JTBD_clustering.DEFAULT_CONSTS import DEFAULT_CLUSTER_KEYS

T = TypeVar("T")

_LAYER1_KEY = DEFAULT_CLUSTER_KEYS.layer1
_LAYER2_KEY = DEFAULT_CLUSTER_KEYS.layer2


class ClusteringMode(Enum):
    """How the clusters of one layer were produced."""

    ADAPTIVE = "adaptive"  # Threshold chosen by adaptive search
    FIXED = "fixed"  # Caller-supplied threshold used verbatim
    INCREMENTAL = "incremental"  # Prior clusters extended with new members


@dataclass(frozen=True)
class Item:
    """A statement to be clustered.

    Identity is the ``id``: two items are equal iff their ids match.

    Parameters
    ----------
    id : str
        Unique item identifier
    text : str
        Natural-language statement
    embedding : Optional[np.ndarray]
        Embedding vector, or None until the item has been embedded
    """

    id: str
    text: str = field(default="", compare=False)
    embedding: Optional[np.ndarray] = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        if not isinstance(self.id, str) or not self.id:
            raise ValueError(f"Item id must be a non-empty string, got {self.id!r}")
        if not isinstance(self.text, str):
            raise ValueError(
                f"Item text must be a string, got {type(self.text).__name__} for item {self.id}"
            )
        if self.embedding is not None:
            vector = np.asarray(self.embedding, dtype=np.float64)
            if vector.ndim != 1:
                raise ValueError(
                    f"Embedding of item {self.id} must be 1-D, got shape {vector.shape}"
                )
            object.__setattr__(self, "embedding", vector)

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None

    def with_embedding(self, embedding: np.ndarray) -> "Item":
        """Return a copy of this item carrying ``embedding``."""
        return replace(self, embedding=embedding)


@dataclass
class Cluster:
    """A cluster at one layer of the hierarchy.

    Parameters
    ----------
    id : str
        Cluster identifier, e.g. ``cluster1-3``
    member_item_ids : List[str]
        Ids of the items in this cluster (for layer 2, the union over children)
    parent_cluster_id : Optional[str]
        Id of the layer-2 cluster containing this one (layer 1 only)
    child_cluster_ids : List[str]
        Ids of the layer-1 clusters grouped by this one (layer 2 only)
    layer : int
        Layer index, 1 or 2
    """

    id: str
    member_item_ids: List[str] = field(default_factory=list)
    parent_cluster_id: Optional[str] = None
    child_cluster_ids: List[str] = field(default_factory=list)
    layer: int = 1

    @property
    def size(self) -> int:
        return len(self.member_item_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "layer": self.layer,
            "member_item_ids": list(self.member_item_ids),
            "parent_cluster_id": self.parent_cluster_id,
            "child_cluster_ids": list(self.child_cluster_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Cluster":
        return cls(
            id=data["id"],
            member_item_ids=list(data.get("member_item_ids", [])),
            parent_cluster_id=data.get("parent_cluster_id"),
            child_cluster_ids=list(data.get("child_cluster_ids", [])),
            layer=int(data.get("layer", 1)),
        )


@dataclass
class ClusterLayer:
    """Clusters of one layer plus how they were obtained."""

    layer_index: int
    clusters: List[Cluster] = field(default_factory=list)
    threshold: Optional[float] = None
    mode: Optional[ClusteringMode] = None

    @property
    def cluster_ids(self) -> List[str]:
        return [cluster.id for cluster in self.clusters]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "layer_index": self.layer_index,
            "threshold": self.threshold,
            "mode": self.mode.value if self.mode is not None else None,
            "clusters": [cluster.to_dict() for cluster in self.clusters],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClusterLayer":
        mode = data.get("mode")
        return cls(
            layer_index=int(data["layer_index"]),
            clusters=[Cluster.from_dict(c) for c in data.get("clusters", [])],
            threshold=data.get("threshold"),
            mode=ClusteringMode(mode) if mode is not None else None,
        )


@dataclass
class ThresholdSearchResult(Generic[T]):
    """Outcome of clustering one layer at a chosen threshold.

    Attributes
    ----------
    threshold : float
        Threshold used for the returned clusters
    clusters : List[List[T]]
        Clusters, each a list of the objects that were clustered
    target_min : Optional[float]
        Lower end of the target cluster count range (None for a fixed threshold)
    target_max : Optional[float]
        Upper end of the target cluster count range (None for a fixed threshold)
    converged : bool
        Whether the cluster count landed inside the target range
    iterations : int
        Number of clustering runs performed
    """

    threshold: float
    clusters: List[List[T]]
    target_min: Optional[float] = None
    target_max: Optional[float] = None
    converged: bool = True
    iterations: int = 0

    @property
    def cluster_count(self) -> int:
        return len(self.clusters)


@dataclass
class HierarchyResult:
    """Result of a clustering call.

    Attributes
    ----------
    layers : List[ClusterLayer]
        Layer 1 and, when requested, layer 2
    item_to_cluster_map : Dict[str, Dict[str, Optional[str]]]
        ``item_id -> {"layer1": cluster_id, "layer2": cluster_id or None}``
    """

    layers: List[ClusterLayer] = field(default_factory=list)
    item_to_cluster_map: Dict[str, Dict[str, Optional[str]]] = field(default_factory=dict)

    @property
    def layer_count(self) -> int:
        return len(self.layers)

    def get_layer(self, layer_index: int) -> ClusterLayer:
        """Get a layer by its 1-based index."""
        for layer in self.layers:
            if layer.layer_index == layer_index:
                return layer
        raise KeyError(f"Layer {layer_index} not present (result has {self.layer_count} layers)")

    def get_cluster(self, cluster_id: str) -> Optional[Cluster]:
        for layer in self.layers:
            for cluster in layer.clusters:
                if cluster.id == cluster_id:
                    return cluster
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {
            DEFAULT_CLUSTER_KEYS.layers: [layer.to_dict() for layer in self.layers],
            DEFAULT_CLUSTER_KEYS.item_to_cluster_map: {
                item_id: dict(mapping) for item_id, mapping in self.item_to_cluster_map.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HierarchyResult":
        return cls(
            layers=[ClusterLayer.from_dict(d) for d in data.get(DEFAULT_CLUSTER_KEYS.layers, [])],
            item_to_cluster_map={
                item_id: dict(mapping)
                for item_id, mapping in data.get(DEFAULT_CLUSTER_KEYS.item_to_cluster_map, {}).items()
            },
        )


@dataclass
class ExistingClusterSnapshot:
    """Prior clustering state supplied by the caller for incremental runs.

    Attributes
    ----------
    layer1 : Dict[str, List[str]]
        Prior layer-1 cluster id -> ids of the items it contained
    layer2 : Dict[str, List[str]]
        Prior layer-2 cluster id -> ids of the layer-1 clusters it contained
    """

    layer1: Dict[str, List[str]] = field(default_factory=dict)
    layer2: Dict[str, List[str]] = field(default_factory=dict)

    def __post_init__(self):
        for name in (_LAYER1_KEY, _LAYER2_KEY):
            mapping = getattr(self, name)
            if not isinstance(mapping, dict):
                raise ValueError(
                    f"Snapshot {name} must be a mapping of cluster id to member ids, "
                    f"got {type(mapping).__name__}"
                )
            setattr(self, name, {str(k): [str(m) for m in v] for k, v in mapping.items()})

    def is_empty(self) -> bool:
        return not self.layer1 and not self.layer2

    def to_dict(self) -> Dict[str, Dict[str, List[str]]]:
        return {
            _LAYER1_KEY: {k: list(v) for k, v in self.layer1.items()},
            _LAYER2_KEY: {k: list(v) for k, v in self.layer2.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExistingClusterSnapshot":
        return cls(
            layer1=dict(data.get(_LAYER1_KEY) or {}),
            layer2=dict(data.get(_LAYER2_KEY) or {}),
        )

    @classmethod
    def from_hierarchy(cls, result: HierarchyResult) -> "ExistingClusterSnapshot":
        """Build the snapshot describing a previous :class:`HierarchyResult`."""
        snapshot = cls()
        for layer in result.layers:
            if layer.layer_index == 1:
                snapshot.layer1 = {c.id: list(c.member_item_ids) for c in layer.clusters}
            elif layer.layer_index == 2:
                snapshot.layer2 = {c.id: list(c.child_cluster_ids) for c in layer.clusters}
        return snapshot
