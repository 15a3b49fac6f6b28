"""
Configuration dataclasses for clustering and embedding.

A :class:`ClusteringConfig` is passed explicitly into every clustering call;
an :class:`EmbeddingConfig` describes how the embedding service is built.
Both support JSON serialization for reproducible runs.
"""

import json
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from JTBD_clustering.clustering.models import ExistingClusterSnapshot

__all__ = ["ClusteringConfig", "EmbeddingConfig"]


def _check_threshold(name: str, value: Optional[float]) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, got {type(value).__name__}")
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be in range [0, 1], got {value}")


@dataclass
class ClusteringConfig:
    """Options of a single clustering call.

    Parameters
    ----------
    layer_count : int
        Number of layers to build, 1 or 2
    explicit_threshold1 : float, optional
        Layer-1 threshold. Disables the adaptive search for layer 1, and is
        the assignment threshold of layer-1 incremental extension.
    explicit_threshold2 : float, optional
        Same as ``explicit_threshold1`` for layer 2
    existing_snapshot : ExistingClusterSnapshot, optional
        Clusters of a previous run
    preserve_existing : bool
        Extend the clusters of ``existing_snapshot`` instead of clustering
        from scratch
    verbose : bool
        Log every threshold search step

    Examples
    --------
    >>> config = ClusteringConfig(layer_count=2, explicit_threshold1=0.7)
    >>> config.save("output/clustering_config.json")
    >>> loaded = ClusteringConfig.load("output/clustering_config.json")
    """

    layer_count: int = 1
    explicit_threshold1: Optional[float] = None
    explicit_threshold2: Optional[float] = None
    existing_snapshot: Optional[ExistingClusterSnapshot] = None
    preserve_existing: bool = False
    verbose: bool = False

    def __post_init__(self):
        """Validate configuration values."""
        if self.layer_count not in (1, 2):
            raise ValueError(f"layer_count must be 1 or 2, got {self.layer_count}")

        _check_threshold("explicit_threshold1", self.explicit_threshold1)
        _check_threshold("explicit_threshold2", self.explicit_threshold2)

        if isinstance(self.existing_snapshot, dict):
            self.existing_snapshot = ExistingClusterSnapshot.from_dict(self.existing_snapshot)
        elif self.existing_snapshot is not None and not isinstance(
            self.existing_snapshot, ExistingClusterSnapshot
        ):
            raise ValueError(
                f"existing_snapshot must be an ExistingClusterSnapshot, "
                f"got {type(self.existing_snapshot).__name__}"
            )

    def snapshot_members(self, layer: int) -> Dict[str, List[str]]:
        """Prior clusters of ``layer`` (1 or 2), empty without a snapshot."""
        if self.existing_snapshot is None:
            return {}
        return self.existing_snapshot.layer1 if layer == 1 else self.existing_snapshot.layer2

    def is_incremental(self, layer: int) -> bool:
        """True when prior clusters of ``layer`` should be extended."""
        return self.preserve_existing and bool(self.snapshot_members(layer))

    def threshold_for(self, layer: int) -> Optional[float]:
        return self.explicit_threshold1 if layer == 1 else self.explicit_threshold2

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["existing_snapshot"] = (
            self.existing_snapshot.to_dict() if self.existing_snapshot is not None else None
        )
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClusteringConfig":
        """Create from dict, ignoring unknown keys."""
        valid_keys = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in valid_keys})

    def save(self, path: Union[str, Path]) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "ClusteringConfig":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))


@dataclass
class EmbeddingConfig:
    """How texts are turned into embeddings.

    Parameters
    ----------
    provider : str
        Registered provider name: "openai", "sentence-transformers",
        "langchain" or "fallback"
    model_name : str, optional
        Model identifier passed to the provider; None keeps the provider's
        own default model
    api_key : str, optional
        API key for remote providers
    batch_size : int
        Texts per provider request
    batch_delay : float
        Seconds to wait between batches
    max_retries : int
        Attempts per batch before falling back to feature vectors
    request_timeout : float
        Provider request timeout in seconds
    enable_cache : bool
        Reuse embeddings of repeated texts
    show_progress : bool
        Show a progress bar over batches
    """

    provider: str = "openai"
    model_name: Optional[str] = None
    api_key: Optional[str] = field(default=None, repr=False)
    batch_size: int = 10
    batch_delay: float = 0.2
    max_retries: int = 2
    request_timeout: float = 30.0
    enable_cache: bool = True
    show_progress: bool = False

    def __post_init__(self):
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.batch_delay < 0:
            raise ValueError(f"batch_delay must be non-negative, got {self.batch_delay}")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {self.max_retries}")
        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be positive, got {self.request_timeout}")

    @classmethod
    def from_env(cls, **overrides) -> "EmbeddingConfig":
        """Build from EMBEDDING_PROVIDER, EMBEDDING_MODEL and EMBEDDING_API_KEY.

        The API key falls back to OPENAI_API_KEY.
        """
        values: Dict[str, Any] = {}
        if os.environ.get("EMBEDDING_PROVIDER"):
            values["provider"] = os.environ["EMBEDDING_PROVIDER"].lower()
        if os.environ.get("EMBEDDING_MODEL"):
            values["model_name"] = os.environ["EMBEDDING_MODEL"]
        api_key = os.environ.get("EMBEDDING_API_KEY") or os.environ.get("OPENAI_API_KEY")
        if api_key:
            values["api_key"] = api_key
        values.update(overrides)
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict; the API key is never serialized."""
        data = asdict(self)
        data.pop("api_key")
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmbeddingConfig":
        valid_keys = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in valid_keys})
