"""Shared constants for the hierarchical clustering engine.

This module defines frozen-dataclass constants that act as the single source
of truth for the numeric heuristics and string keys shared across
sub-packages:

* :data:`DEFAULT_SEARCH`: bounds, start point, iteration cap and sweep
  candidates used by :func:`~JTBD_clustering.clustering.find_optimal_threshold`.
* :data:`DEFAULT_TARGET_RANGES`: per-layer divisors and floors of the
  cluster-count target range.
* :data:`DEFAULT_CLUSTER_KEYS`: cluster id prefixes and the keys of the
  plain-data (JSON) form of results and snapshots.
* :data:`DEFAULT_RECORD_KEYS`: keys of summary records handed back by the
  abstraction collaborator.

Overriding defaults
-------------------
All singletons are instances of ``frozen=True`` dataclasses, so they cannot be
mutated.  To use a different value for a single call, create a modified copy
with :func:`dataclasses.replace`::

    import dataclasses
    from JTBD_clustering.DEFAULT_CONSTS import DEFAULT_SEARCH

    search = dataclasses.replace(DEFAULT_SEARCH, max_iterations=20)
"""

from dataclasses import dataclass, field
from typing import Tuple

__all__ = [
    "ThresholdSearchConsts",
    "LayerTargetRange",
    "TargetRangeConsts",
    "ClusterKeys",
    "RecordKeys",
    "DEFAULT_SEARCH",
    "DEFAULT_TARGET_RANGES",
    "DEFAULT_CLUSTER_KEYS",
    "DEFAULT_RECORD_KEYS",
    "DEFAULT_INCREMENTAL_THRESHOLD",
    "FALLBACK_EMBEDDING_DIM",
]


# ---------------------------------------------------------------------------
# Adaptive threshold search
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ThresholdSearchConsts:
    """Parameters of the adaptive threshold search.

    Attributes
    ----------
    lower_bound : float
        Initial lower bound of the binary search interval.
    upper_bound : float
        Initial upper bound of the binary search interval.
    start : float
        First threshold candidate.
    max_iterations : int
        Maximum number of binary search adjustments.
    sweep_candidates : Tuple[float, ...]
        Fixed thresholds tried when the binary search does not converge.
    """

    lower_bound: float = 0.1
    upper_bound: float = 0.9
    start: float = 0.5
    max_iterations: int = 10
    sweep_candidates: Tuple[float, ...] = (0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8)


@dataclass(frozen=True)
class LayerTargetRange:
    """Heuristic for one layer: ``[max(floor, n // min_div), min(n/2, ceil(n / max_div))]``."""

    min_floor: int
    min_divisor: int
    max_divisor: int


@dataclass(frozen=True)
class TargetRangeConsts:
    """Cluster-count target range heuristics per layer.

    Attributes
    ----------
    layer1 : LayerTargetRange
        Range used when clustering raw items.
    layer2 : LayerTargetRange
        Range used when clustering layer-1 clusters.
    """

    layer1: LayerTargetRange = field(
        default_factory=lambda: LayerTargetRange(min_floor=3, min_divisor=10, max_divisor=5)
    )
    layer2: LayerTargetRange = field(
        default_factory=lambda: LayerTargetRange(min_floor=2, min_divisor=20, max_divisor=8)
    )


# ---------------------------------------------------------------------------
# Cluster / result key schema
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClusterKeys:
    """Id prefixes and plain-data keys for clusters, results and snapshots.

    Attributes
    ----------
    layer1_prefix : str
        Prefix of generated layer-1 cluster ids (``cluster1-1``, ...).
    layer2_prefix : str
        Prefix of generated layer-2 cluster ids (``cluster2-1``, ...).
    layer1 : str
        Key of layer-1 entries in snapshots and item maps.
    layer2 : str
        Key of layer-2 entries in snapshots and item maps.
    """

    layer1_prefix: str = "cluster1-"
    layer2_prefix: str = "cluster2-"
    layer1: str = "layer1"
    layer2: str = "layer2"
    layers: str = "layers"
    item_to_cluster_map: str = "item_to_cluster_map"


@dataclass(frozen=True)
class RecordKeys:
    """Keys of summary records produced for finished clusters."""

    id: str = "id"
    statement: str = "statement"
    level: str = "level"
    cluster_id: str = "cluster_id"
    parent_id: str = "parent_id"
    child_ids: str = "child_ids"
    item_ids: str = "item_ids"
    is_abstract: str = "is_abstract"


# ---------------------------------------------------------------------------
# Singleton defaults: import these in consumer modules
# ---------------------------------------------------------------------------

DEFAULT_SEARCH = ThresholdSearchConsts()
DEFAULT_TARGET_RANGES = TargetRangeConsts()
DEFAULT_CLUSTER_KEYS = ClusterKeys()
DEFAULT_RECORD_KEYS = RecordKeys()

# Assignment threshold of the incremental extender when none is supplied
DEFAULT_INCREMENTAL_THRESHOLD: float = 0.5

# Length of the deterministic text-feature vector used when embedding fails.
# 2 length features + 18 letter frequencies.
FALLBACK_EMBEDDING_DIM: int = 20
