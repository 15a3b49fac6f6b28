"""
Embedding backends and the batched embedding service.

- providers: EmbeddingProviderType, the provider registry and the built-in
  providers (OpenAI, sentence-transformers, any LangChain embeddings, fallback)
- embedding_service: EmbeddingService with batching, retry, caching and
  fallback vectors
- fallback: deterministic surface-feature vectors

Recommended usage:
    from JTBD_clustering.embeddings import EmbeddingService, create_provider
"""

from .embedding_service import EmbeddingService
from .fallback import create_fallback_embedding
from .providers import (
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

__all__ = [
    "EmbeddingProvider",
    "EmbeddingProviderError",
    "EmbeddingProviderType",
    "EmbeddingService",
    "FallbackEmbeddingProvider",
    "LangChainEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "SentenceTransformerProvider",
    "available_providers",
    "create_fallback_embedding",
    "create_provider",
    "register_provider",
]
