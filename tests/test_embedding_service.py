"""Tests for the batched embedding service."""

import logging

import numpy as np
import pytest

from JTBD_clustering.clustering.models import Item
from JTBD_clustering.config import EmbeddingConfig
from JTBD_clustering.embeddings import (
    EmbeddingProvider,
    EmbeddingProviderError,
    EmbeddingService,
    FallbackEmbeddingProvider,
    create_fallback_embedding,
)


class _RecordingProvider(EmbeddingProvider):
    """Provider recording its batches and failing on demand."""

    def __init__(self, dim=8, fail_when=None, failures_before_success=0, wrong_rows=False):
        self.dim = dim
        self.fail_when = fail_when
        self.failures_left = failures_before_success
        self.wrong_rows = wrong_rows
        self.calls = []

    def embed(self, texts):
        texts = list(texts)
        self.calls.append(texts)
        if self.fail_when is not None and self.fail_when(texts):
            raise EmbeddingProviderError("backend unavailable")
        if self.failures_left > 0:
            self.failures_left -= 1
            raise EmbeddingProviderError("transient error")
        rows = len(texts) - 1 if self.wrong_rows else len(texts)
        return np.array([np.arange(self.dim) + len(texts[i]) for i in range(rows)], dtype=float)


def _service(provider, **kwargs):
    sleeps = []
    kwargs.setdefault("batch_delay", 0.2)
    service = EmbeddingService(provider, sleep=sleeps.append, **kwargs)
    return service, sleeps


class TestBatching:
    """Test batch splitting and rate limiting."""

    def test_batches_and_delays(self):
        provider = _RecordingProvider()
        service, sleeps = _service(provider, batch_size=10)
        texts = [f"text number {i}" for i in range(25)]

        vectors = service.embed_texts(texts)

        assert [len(batch) for batch in provider.calls] == [10, 10, 5], "Should send batches of 10"
        assert sleeps == [0.2, 0.2], "Should pause between batches but not after the last"
        assert vectors.shape == (25, 8), "Should return one row per text"
        assert service.stats["batches"] == 3, "Batch count should be tracked"

    def test_order_preserved(self):
        provider = _RecordingProvider(dim=2)
        service, _ = _service(provider, batch_size=2)

        vectors = service.embed_texts(["a", "bbb", "cc"])

        assert list(vectors[:, 0]) == [1.0, 3.0, 2.0], "Rows should follow input order"

    def test_empty_input(self):
        provider = _RecordingProvider()
        service, _ = _service(provider)

        assert service.embed_texts([]).shape == (0, 0), "Empty input should give an empty array"
        assert provider.calls == [], "Provider should not be called"

    def test_invalid_batch_size(self):
        with pytest.raises(ValueError, match="batch_size"):
            EmbeddingService(_RecordingProvider(), batch_size=0)


class TestRetryAndFallback:
    """Test per-batch retry and fallback vectors."""

    def test_transient_failure_retried(self):
        provider = _RecordingProvider(failures_before_success=1)
        service, _ = _service(provider, max_retries=2)

        vectors = service.embed_texts(["one", "two"])

        assert len(provider.calls) == 2, "Failed batch should be retried once"
        assert service.stats["failed_batches"] == 0, "Retried batch should succeed"
        assert vectors[0, 0] == 3.0, "Provider vector should be used after retry"

    def test_failed_batch_falls_back(self, caplog):
        provider = _RecordingProvider(fail_when=lambda texts: any("bad" in t for t in texts))
        service, _ = _service(provider, batch_size=10, max_retries=2)
        texts = [f"good {i}" for i in range(10)] + ["bad one", "bad two", "bad three"]

        with caplog.at_level(logging.WARNING):
            vectors = service.embed_texts(texts)

        assert vectors.shape == (13, 8), "Fallback rows should match the provider dimension"
        assert np.allclose(vectors[10], create_fallback_embedding("bad one", 8)), (
            "Failed texts should get fallback vectors"
        )
        assert np.allclose(vectors[0], np.arange(8) + len("good 0")), (
            "Successful batch should keep provider vectors"
        )
        assert service.stats["failed_batches"] == 1, "One batch should fail"
        assert service.stats["fallback_texts"] == 3, "Only the failed batch should fall back"
        assert len(provider.calls) == 3, "Failed batch should be tried max_retries times"
        assert "fallback embeddings" in caplog.text, "Degraded embeddings should be logged"

    def test_fallback_dimension_from_later_batch(self):
        provider = _RecordingProvider(dim=6, fail_when=lambda texts: "first" in texts[0])
        service, _ = _service(provider, batch_size=1, max_retries=1)

        vectors = service.embed_texts(["first", "second"])

        assert vectors.shape == (2, 6), "Fallback should be padded to the later batch dimension"

    def test_all_batches_fail_uses_default_dimension(self, caplog):
        provider = _RecordingProvider(fail_when=lambda texts: True)
        service, _ = _service(provider, max_retries=2)

        with caplog.at_level(logging.ERROR):
            vectors = service.embed_texts(["alpha", "beta"])

        assert vectors.shape == (2, 20), "Fallback dimension should default to 20"
        assert "attempts failed" in caplog.text, "Exhausted retries should be logged as error"

    def test_all_batches_fail_uses_expected_dimension(self):
        provider = _RecordingProvider(fail_when=lambda texts: True)
        service, _ = _service(provider, max_retries=1)

        vectors = service.embed_texts(["alpha", "beta"], expected_dim=64)

        assert vectors.shape == (2, 64), "Fallback should be padded to the expected dimension"

    def test_successful_batch_beats_expected_dimension(self):
        provider = _RecordingProvider(dim=6, fail_when=lambda texts: "first" in texts[0])
        service, _ = _service(provider, batch_size=1, max_retries=1)

        vectors = service.embed_texts(["first", "second"], expected_dim=64)

        assert vectors.shape == (2, 6), "Provider dimension should win over the expected one"

    def test_wrong_row_count_is_failure(self):
        provider = _RecordingProvider(wrong_rows=True)
        service, _ = _service(provider, max_retries=1)

        vectors = service.embed_texts(["alpha", "beta"])

        assert service.stats["failed_batches"] == 1, "Row count mismatch should fail the batch"
        assert vectors.shape == (2, 20), "Failed texts should get fallback vectors"

    def test_fallback_vectors_not_cached(self):
        provider = _RecordingProvider(fail_when=lambda texts: True)
        service, _ = _service(provider, max_retries=1)

        service.embed_texts(["alpha"])

        assert service.cache_size == 0, "Fallback vectors should never be cached"


class TestCache:
    """Test the text cache."""

    def test_repeated_call_served_from_cache(self):
        provider = _RecordingProvider()
        service, _ = _service(provider)

        first = service.embed_texts(["Pay invoice"])
        second = service.embed_texts(["  pay INVOICE "])

        assert len(provider.calls) == 1, "Second call should hit the cache"
        assert np.array_equal(first, second), "Cached vector should be returned"
        assert service.stats["cache_hits"] == 1, "Cache hit should be counted"

    def test_duplicates_in_one_call_embedded_once(self):
        provider = _RecordingProvider()
        service, _ = _service(provider)

        vectors = service.embed_texts(["same", "same", "other"])

        assert provider.calls == [["same", "other"]], "Duplicate texts should be sent once"
        assert np.array_equal(vectors[0], vectors[1]), "Duplicates should share a vector"

    def test_clear_cache(self):
        provider = _RecordingProvider()
        service, _ = _service(provider)
        service.embed_texts(["one", "two"])

        assert service.cache_size == 2, "Both texts should be cached"
        service.clear_cache()

        assert service.cache_size == 0, "Cache should be empty after clearing"

    def test_cache_disabled(self):
        provider = _RecordingProvider()
        service, _ = _service(provider, enable_cache=False)

        service.embed_texts(["same", "same"])
        service.embed_texts(["same"])

        assert [len(c) for c in provider.calls] == [2, 1], "Every text should be embedded"
        assert service.cache_size == 0, "Nothing should be cached"


class TestEmbedItems:
    """Test filling item embeddings."""

    def test_only_missing_embeddings_filled(self):
        provider = _RecordingProvider(dim=3)
        service, _ = _service(provider)
        items = [Item("a", "first", [9.0, 9.0, 9.0]), Item("b", "second")]

        embedded = service.embed_items(items)

        assert provider.calls == [["second"]], "Only items without embeddings should be embedded"
        assert np.array_equal(embedded[0].embedding, [9.0, 9.0, 9.0]), "Existing embedding kept"
        assert embedded[1].has_embedding, "Missing embedding should be filled"
        assert embedded[1].id == "b", "Item identity should be kept"

    def test_fallback_matches_existing_embeddings(self):
        provider = _RecordingProvider(fail_when=lambda texts: True)
        service, _ = _service(provider, max_retries=1)
        items = [Item("a", "first", np.ones(64)), Item("b", "book a flight")]

        embedded = service.embed_items(items)

        assert embedded[1].embedding.shape == (64,), (
            "Fallback vector should match the length of existing embeddings"
        )
        assert service.stats["fallback_texts"] == 1, "One text should use a fallback vector"


class TestFromConfig:
    """Test building the service from a config."""

    def test_fallback_provider(self):
        config = EmbeddingConfig(provider="fallback", batch_size=4, batch_delay=0.0)

        service = EmbeddingService.from_config(config)

        assert isinstance(service.provider, FallbackEmbeddingProvider), "Provider should match"
        assert service.batch_size == 4, "Batch size should come from the config"
        assert service.embed_texts(["hello"]).shape == (1, 20), "Service should embed"

    def test_unknown_provider_raises(self):
        config = EmbeddingConfig(provider="nope")

        with pytest.raises(ValueError, match="Unknown embedding provider"):
            EmbeddingService.from_config(config)
