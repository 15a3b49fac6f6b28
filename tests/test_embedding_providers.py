"""Tests for embedding providers, the provider registry and fallback vectors."""

from unittest.mock import MagicMock

import numpy as np
import pytest

from JTBD_clustering.config import EmbeddingConfig
from JTBD_clustering.embeddings import providers
from JTBD_clustering.embeddings.fallback import create_fallback_embedding
from JTBD_clustering.embeddings.providers import (
    EmbeddingProvider,
    EmbeddingProviderError,
    EmbeddingProviderType,
    FallbackEmbeddingProvider,
    LangChainEmbeddingProvider,
    OpenAIEmbeddingProvider,
    SentenceTransformerProvider,
    available_providers,
    create_provider,
    register_provider,
)


def _mock_langchain_embedder(dim: int = 8):
    """Return a minimal LangChain Embeddings-compatible mock."""
    mock = MagicMock()
    mock.embed_documents.side_effect = lambda texts: np.random.rand(len(texts), dim).tolist()
    return mock


def _mock_sentence_transformer(dim: int = 8):
    """Return a minimal SentenceTransformer-compatible mock."""
    mock = MagicMock(spec=["encode"])
    mock.encode.side_effect = lambda texts, **kw: np.random.rand(len(texts), dim).astype(
        np.float32
    )
    return mock


class TestRegistry:
    """Test provider lookup."""

    def test_builtin_providers_registered(self):
        assert set(available_providers()) == {
            "openai",
            "sentence-transformers",
            "langchain",
            "fallback",
        }, "All built-in providers should be registered"

    def test_create_by_name_and_enum(self):
        assert isinstance(create_provider("fallback"), FallbackEmbeddingProvider), (
            "Provider should be created by name"
        )
        assert isinstance(
            create_provider(EmbeddingProviderType.FALLBACK, dim=4), FallbackEmbeddingProvider
        ), "Provider should be created by enum"

    def test_name_is_case_insensitive(self):
        assert isinstance(create_provider("FALLBACK"), FallbackEmbeddingProvider), (
            "Provider names should be case-insensitive"
        )

    def test_unknown_provider_raises(self):
        with pytest.raises(ValueError, match="Unknown embedding provider"):
            create_provider("word2vec")

    def test_register_replaces_provider(self, monkeypatch):
        registry = providers._PROVIDER_REGISTRY
        monkeypatch.setitem(registry, EmbeddingProviderType.FALLBACK, registry[EmbeddingProviderType.FALLBACK])

        @register_provider(EmbeddingProviderType.FALLBACK)
        class ConstantProvider(EmbeddingProvider):
            def embed(self, texts):
                return np.ones((len(texts), 2))

        provider = create_provider("fallback")

        assert isinstance(provider, ConstantProvider), "Registered class should be used"
        assert ConstantProvider.provider_type == EmbeddingProviderType.FALLBACK, (
            "Decorator should record the provider type"
        )


class TestLangChainProvider:
    """Test the LangChain adapter."""

    def test_embed(self):
        provider = LangChainEmbeddingProvider(embeddings=_mock_langchain_embedder(dim=5))

        vectors = provider.embed(["a", "b", "c"])

        assert vectors.shape == (3, 5), "Should return one row per text"

    def test_backend_error_wrapped(self):
        embedder = MagicMock()
        embedder.embed_documents.side_effect = RuntimeError("rate limited")
        provider = LangChainEmbeddingProvider(embeddings=embedder)

        with pytest.raises(EmbeddingProviderError, match="rate limited"):
            provider.embed(["a"])

    def test_row_count_mismatch_raises(self):
        embedder = MagicMock()
        embedder.embed_documents.return_value = [[1.0, 2.0]]
        provider = LangChainEmbeddingProvider(embeddings=embedder)

        with pytest.raises(EmbeddingProviderError, match="shape"):
            provider.embed(["a", "b"])

    def test_requires_embeddings(self):
        with pytest.raises(ValueError, match="embeddings model is required"):
            LangChainEmbeddingProvider()

    def test_openai_provider_accepts_prebuilt_model(self):
        provider = OpenAIEmbeddingProvider(embeddings=_mock_langchain_embedder(dim=4))

        assert provider.embed(["x"]).shape == (1, 4), "Injected model should be used"
        assert provider.model_name == "text-embedding-3-large", "Default model should be set"

    def test_openai_from_config_keeps_own_default_model(self):
        provider = OpenAIEmbeddingProvider.from_config(
            EmbeddingConfig(), embeddings=_mock_langchain_embedder()
        )

        assert provider.model_name == "text-embedding-3-large", (
            "Unset model name should keep the OpenAI default"
        )


class TestSentenceTransformerProvider:
    """Test the sentence-transformers provider with a mocked model."""

    def test_embed(self):
        model = _mock_sentence_transformer(dim=6)
        provider = SentenceTransformerProvider(model=model)

        vectors = provider.embed(["a", "b"])

        assert vectors.shape == (2, 6), "Should return one row per text"
        assert vectors.dtype == np.float64, "Vectors should be float64"
        assert model.encode.call_args.kwargs["convert_to_numpy"] is True, "Should request numpy"

    def test_from_config_keeps_own_default_model(self):
        config = EmbeddingConfig(provider="sentence-transformers")

        provider = SentenceTransformerProvider.from_config(config, model=_mock_sentence_transformer())

        assert provider.model_name == "sentence-transformers/all-MiniLM-L6-v2", (
            "Unset model name should keep the provider default"
        )

    def test_from_config_forwards_model_name(self):
        config = EmbeddingConfig(provider="sentence-transformers", model_name="all-mpnet-base-v2")

        provider = SentenceTransformerProvider.from_config(config, model=_mock_sentence_transformer())

        assert provider.model_name == "all-mpnet-base-v2", "Configured model name should be used"


class TestFallbackEmbedding:
    """Test deterministic fallback vectors."""

    def test_layout(self):
        vector = create_fallback_embedding("tea")

        assert vector.shape == (20,), "Default dimension should be 20"
        assert vector[0] == pytest.approx(3 / 1000), "First feature is length / 1000"
        assert vector[1] == pytest.approx(1 / 100), "Second feature is words / 100"
        assert vector[2] == pytest.approx(1 / 3), "Third feature is the frequency of 'e'"
        assert vector[3] == pytest.approx(1 / 3), "Fourth feature is the frequency of 't'"
        assert vector[4] == pytest.approx(1 / 3), "Fifth feature is the frequency of 'a'"
        assert np.all(vector[5:] == 0), "Other letters should be zero"

    def test_deterministic(self):
        assert np.array_equal(
            create_fallback_embedding("Pay my invoice"), create_fallback_embedding("Pay my invoice")
        ), "Same text should give the same vector"

    def test_empty_text(self):
        assert np.all(create_fallback_embedding("") == 0), "Empty text should give a zero vector"

    def test_no_letters(self):
        vector = create_fallback_embedding("1234 !!")

        assert not np.any(np.isnan(vector)), "Vector should never contain NaN"
        assert np.all(vector[2:] == 0), "Letter frequencies should be zero"

    def test_padding(self):
        vector = create_fallback_embedding("tea", dim=32)

        assert vector.shape == (32,), "Vector should be padded to the requested dimension"
        assert np.all(vector[20:] == 0), "Padding should be zeros"

    def test_fallback_provider(self):
        vectors = FallbackEmbeddingProvider().embed(["a b", "c"])

        assert vectors.shape == (2, 20), "Provider should stack fallback vectors"
