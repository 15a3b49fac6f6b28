"""
Batched embedding with retry, rate limiting, caching and graceful fallback.

Texts are sent to the provider in small batches with a short pause between
batches. A batch that keeps failing is replaced by deterministic fallback
vectors for just its texts, so one bad request never aborts a clustering run.
"""

import logging
import time
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np
from tqdm import tqdm

from JTBD_clustering.clustering.models import Item
from JTBD_clustering.DEFAULT_CONSTS import FALLBACK_EMBEDDING_DIM

from .fallback import create_fallback_embedding
from .providers import EmbeddingProvider, EmbeddingProviderError, get_provider_class

LOGGER = logging.getLogger(__name__)


class EmbeddingService:
    """
    Embed texts through a provider in rate-limited batches.

    Parameters
    ----------
    provider : EmbeddingProvider
        Backend doing the actual embedding
    batch_size : int
        Texts per provider call
    batch_delay : float
        Seconds to wait between consecutive batches
    max_retries : int
        Attempts per batch before falling back
    enable_cache : bool
        Reuse vectors of texts already embedded by this service
    show_progress : bool
        Show a tqdm progress bar over batches
    sleep : Callable[[float], None]
        Sleep function, replaceable in tests

    Examples
    --------
    >>> from JTBD_clustering.embeddings import EmbeddingService, create_provider
    >>> service = EmbeddingService(create_provider("fallback"), batch_delay=0)
    >>> service.embed_texts(["pay an invoice", "pay a bill"]).shape
    (2, 20)
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        batch_size: int = 10,
        batch_delay: float = 0.2,
        max_retries: int = 2,
        enable_cache: bool = True,
        show_progress: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if batch_delay < 0:
            raise ValueError(f"batch_delay must be non-negative, got {batch_delay}")
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")

        self.provider = provider
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.max_retries = max_retries
        self.enable_cache = enable_cache
        self.show_progress = show_progress
        self._sleep = sleep

        self._cache: Dict[str, np.ndarray] = {}
        self._stats = {"batches": 0, "failed_batches": 0, "fallback_texts": 0, "cache_hits": 0}

    @classmethod
    def from_config(cls, config, **provider_kwargs) -> "EmbeddingService":
        """
        Build the service and its provider from an :class:`EmbeddingConfig`.

        Parameters
        ----------
        config : EmbeddingConfig
            Provider choice and batching options
        **provider_kwargs
            Extra provider constructor arguments, e.g. ``embeddings`` for the
            langchain provider
        """
        provider_cls = get_provider_class(config.provider)
        provider = provider_cls.from_config(config, **provider_kwargs)
        return cls(
            provider,
            batch_size=config.batch_size,
            batch_delay=config.batch_delay,
            max_retries=config.max_retries,
            enable_cache=config.enable_cache,
            show_progress=config.show_progress,
        )

    @staticmethod
    def _cache_key(text: str) -> str:
        return text.strip().lower()

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    @property
    def stats(self) -> Dict[str, int]:
        """Counters of batches, failed batches, fallback texts and cache hits."""
        return dict(self._stats)

    def clear_cache(self) -> None:
        self._cache.clear()

    def embed_texts(
        self, texts: Sequence[str], expected_dim: Optional[int] = None
    ) -> np.ndarray:
        """
        Embed texts in input order.

        Parameters
        ----------
        texts : Sequence[str]
            Texts to embed
        expected_dim : Optional[int]
            Dimension used for fallback vectors when no row of this call
            succeeds, e.g. the length of embeddings the caller already holds

        Returns
        -------
        np.ndarray
            Array of shape ``(len(texts), dim)``. Rows of failed batches hold
            fallback vectors padded to the dimension of the successful rows
            (or ``expected_dim`` when there are none).
        """
        texts = list(texts)
        if not texts:
            return np.zeros((0, 0), dtype=np.float64)

        results: List[Optional[np.ndarray]] = [None] * len(texts)

        # Texts still to embed, grouped so repeated texts are embedded once
        pending: Dict[str, List[int]] = {}
        for idx, text in enumerate(texts):
            key = self._cache_key(text) if self.enable_cache else str(idx)
            if self.enable_cache and key in self._cache:
                results[idx] = self._cache[key]
                self._stats["cache_hits"] += 1
            else:
                pending.setdefault(key, []).append(idx)

        keys = list(pending)
        failed_keys: List[str] = []
        n_batches = (len(keys) + self.batch_size - 1) // self.batch_size
        if keys:
            LOGGER.debug(
                f"Embedding {len(keys)} texts in {n_batches} batches "
                f"({len(texts) - sum(len(v) for v in pending.values())} from cache)"
            )

        for batch_num in tqdm(
            range(n_batches), desc="Embedding batches", disable=not self.show_progress
        ):
            if batch_num > 0 and self.batch_delay > 0:
                self._sleep(self.batch_delay)

            batch_keys = keys[batch_num * self.batch_size:(batch_num + 1) * self.batch_size]
            batch_texts = [texts[pending[key][0]] for key in batch_keys]
            self._stats["batches"] += 1

            vectors = self._embed_batch_with_retry(batch_texts, batch_num + 1)
            if vectors is None:
                self._stats["failed_batches"] += 1
                failed_keys.extend(batch_keys)
                continue

            for key, vector in zip(batch_keys, vectors):
                if self.enable_cache:
                    self._cache[key] = vector
                for idx in pending[key]:
                    results[idx] = vector

        if failed_keys:
            dim = self._embedding_dim(results, expected_dim)
            n_fallback = 0
            for key in failed_keys:
                for idx in pending[key]:
                    results[idx] = create_fallback_embedding(texts[idx], dim)
                    n_fallback += 1
            self._stats["fallback_texts"] += n_fallback
            LOGGER.warning(
                f"Using fallback embeddings for {n_fallback} texts; "
                f"clustering quality will be reduced"
            )

        return np.vstack(results)

    def embed_items(self, items: Sequence[Item]) -> List[Item]:
        """
        Fill in missing item embeddings.

        Items that already carry an embedding are returned unchanged. Fallback
        vectors for failed batches take the length of those existing embeddings
        so the items can still be clustered together.
        """
        items = list(items)
        missing = [idx for idx, item in enumerate(items) if not item.has_embedding]
        if not missing:
            return items

        expected_dim = next(
            (len(item.embedding) for item in items if item.has_embedding), None
        )
        vectors = self.embed_texts([items[idx].text for idx in missing], expected_dim)
        embedded = list(items)
        for idx, vector in zip(missing, vectors):
            embedded[idx] = items[idx].with_embedding(vector)
        return embedded

    def _embed_batch_with_retry(
        self, batch_texts: List[str], batch_num: int
    ) -> Optional[np.ndarray]:
        """
        Embed one batch, retrying on failure.

        Returns
        -------
        Optional[np.ndarray]
            Vectors of the batch, or None if all attempts failed
        """
        for attempt in range(self.max_retries):
            try:
                vectors = np.asarray(self.provider.embed(batch_texts), dtype=np.float64)
                if vectors.ndim != 2 or vectors.shape[0] != len(batch_texts):
                    raise EmbeddingProviderError(
                        f"Expected {len(batch_texts)} embeddings, got shape {vectors.shape}"
                    )
                return vectors
            except Exception as e:  # pylint: disable=broad-exception-caught
                LOGGER.warning(
                    f"Embedding batch {batch_num} failed "
                    f"(attempt {attempt + 1}/{self.max_retries}): {e}"
                )

        LOGGER.error(
            f"All {self.max_retries} attempts failed for embedding batch {batch_num} "
            f"({len(batch_texts)} texts)"
        )
        return None

    @staticmethod
    def _embedding_dim(
        results: List[Optional[np.ndarray]], expected_dim: Optional[int] = None
    ) -> int:
        for vector in results:
            if vector is not None:
                return int(vector.shape[0])
        if expected_dim:
            return expected_dim
        return FALLBACK_EMBEDDING_DIM
