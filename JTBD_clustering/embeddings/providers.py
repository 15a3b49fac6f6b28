"""
Embedding providers and their registry.

A provider turns a batch of texts into vectors. Providers are selected
explicitly through :class:`EmbeddingProviderType` and created from the
registry, so the clustering engine never depends on a specific backend.

Examples
--------
>>> provider = create_provider("fallback")
>>> provider.embed(["pay an invoice"]).shape
(1, 20)
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Type, Union

import numpy as np

from JTBD_clustering.DEFAULT_CONSTS import FALLBACK_EMBEDDING_DIM

from .fallback import create_fallback_embedding

LOGGER = logging.getLogger(__name__)


class EmbeddingProviderType(Enum):
    """Supported embedding backends."""

    OPENAI = "openai"
    SENTENCE_TRANSFORMERS = "sentence-transformers"
    LANGCHAIN = "langchain"  # Any langchain_core Embeddings instance
    FALLBACK = "fallback"  # Deterministic surface-feature vectors


class EmbeddingProviderError(Exception):
    """Raised when a provider fails to embed a batch of texts."""


class EmbeddingProvider(ABC):
    """Base class of embedding providers."""

    provider_type: Optional[EmbeddingProviderType] = None

    @abstractmethod
    def embed(self, texts: Sequence[str]) -> np.ndarray:
        """
        Embed a batch of texts.

        Returns
        -------
        np.ndarray
            Array of shape ``(len(texts), dim)`` in input order

        Raises
        ------
        EmbeddingProviderError
            If the backend call fails
        """

    @classmethod
    def from_config(cls, config, **kwargs) -> "EmbeddingProvider":
        """Create the provider from an :class:`EmbeddingConfig`."""
        return cls(**kwargs)


_PROVIDER_REGISTRY: Dict[EmbeddingProviderType, Type[EmbeddingProvider]] = {}


def register_provider(
    provider_type: EmbeddingProviderType,
) -> Callable[[Type[EmbeddingProvider]], Type[EmbeddingProvider]]:
    """Class decorator registering a provider under ``provider_type``."""

    def decorator(cls: Type[EmbeddingProvider]) -> Type[EmbeddingProvider]:
        if provider_type in _PROVIDER_REGISTRY:
            LOGGER.warning(
                f"Replacing provider {_PROVIDER_REGISTRY[provider_type].__name__} "
                f"registered for '{provider_type.value}' with {cls.__name__}"
            )
        cls.provider_type = provider_type
        _PROVIDER_REGISTRY[provider_type] = cls
        return cls

    return decorator


def resolve_provider_type(
    provider_type: Union[str, EmbeddingProviderType],
) -> EmbeddingProviderType:
    """Convert a provider name to :class:`EmbeddingProviderType`."""
    if isinstance(provider_type, EmbeddingProviderType):
        return provider_type
    try:
        return EmbeddingProviderType(str(provider_type).lower())
    except ValueError:
        valid = [t.value for t in EmbeddingProviderType]
        raise ValueError(
            f"Unknown embedding provider '{provider_type}'. Valid providers: {valid}"
        ) from None


def get_provider_class(
    provider_type: Union[str, EmbeddingProviderType],
) -> Type[EmbeddingProvider]:
    provider_type = resolve_provider_type(provider_type)
    if provider_type not in _PROVIDER_REGISTRY:
        raise ValueError(
            f"No provider registered for '{provider_type.value}'. "
            f"Available: {available_providers()}"
        )
    return _PROVIDER_REGISTRY[provider_type]


def create_provider(
    provider_type: Union[str, EmbeddingProviderType], **kwargs: Any
) -> EmbeddingProvider:
    """
    Instantiate a registered provider.

    Parameters
    ----------
    provider_type : str or EmbeddingProviderType
        Provider to create, e.g. ``"openai"``
    **kwargs
        Passed to the provider constructor

    Raises
    ------
    ValueError
        If the provider name is unknown
    """
    provider_cls = get_provider_class(provider_type)
    LOGGER.debug(f"Creating embedding provider {provider_cls.__name__}")
    return provider_cls(**kwargs)


def available_providers() -> List[str]:
    """Names of the registered providers."""
    return [provider_type.value for provider_type in _PROVIDER_REGISTRY]


def _as_embedding_array(vectors: Any, n_texts: int) -> np.ndarray:
    try:
        array = np.asarray(vectors, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise EmbeddingProviderError(f"Provider returned malformed embeddings: {e}") from e

    if array.ndim != 2 or array.shape[0] != n_texts:
        raise EmbeddingProviderError(
            f"Provider returned embeddings of shape {array.shape} for {n_texts} texts"
        )
    return array


@register_provider(EmbeddingProviderType.LANGCHAIN)
class LangChainEmbeddingProvider(EmbeddingProvider):
    """
    Adapter over a LangChain ``Embeddings`` model.

    Parameters
    ----------
    embeddings : langchain_core.embeddings.Embeddings
        Any object exposing ``embed_documents(texts)``
    """

    def __init__(self, embeddings=None):
        if embeddings is None:
            raise ValueError("embeddings model is required for the langchain provider")
        self.embeddings = embeddings

    def embed(self, texts: Sequence[str]) -> np.ndarray:
        texts = list(texts)
        try:
            vectors = self.embeddings.embed_documents(texts)
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise EmbeddingProviderError(
                f"{type(self.embeddings).__name__} failed to embed {len(texts)} texts: {e}"
            ) from e
        return _as_embedding_array(vectors, len(texts))


@register_provider(EmbeddingProviderType.OPENAI)
class OpenAIEmbeddingProvider(LangChainEmbeddingProvider):
    """
    OpenAI embeddings through ``langchain_openai``.

    Parameters
    ----------
    model_name : str
        OpenAI embedding model
    api_key : str, optional
        API key. When None, ``langchain_openai`` reads ``OPENAI_API_KEY``.
    request_timeout : float
        Request timeout in seconds
    embeddings : Embeddings, optional
        Pre-built embeddings model, skips building ``OpenAIEmbeddings``
    """

    def __init__(
        self,
        model_name: str = "text-embedding-3-large",
        api_key: Optional[str] = None,
        request_timeout: float = 30.0,
        embeddings=None,
    ):
        self.model_name = model_name
        if embeddings is None:
            try:
                from langchain_openai import OpenAIEmbeddings
            except ImportError:
                raise ImportError(
                    "langchain-openai is required for the openai provider. "
                    "Install with: pip install langchain-openai"
                )

            LOGGER.info(f"Using OpenAI embedding model: {model_name}")
            embeddings = OpenAIEmbeddings(
                model=model_name,
                api_key=api_key,
                timeout=request_timeout,
            )
        super().__init__(embeddings=embeddings)

    @classmethod
    def from_config(cls, config, **kwargs) -> "OpenAIEmbeddingProvider":
        if config.model_name:
            kwargs.setdefault("model_name", config.model_name)
        kwargs.setdefault("api_key", config.api_key)
        kwargs.setdefault("request_timeout", config.request_timeout)
        return cls(**kwargs)


@register_provider(EmbeddingProviderType.SENTENCE_TRANSFORMERS)
class SentenceTransformerProvider(EmbeddingProvider):
    """
    Local embeddings with ``sentence-transformers``.

    Parameters
    ----------
    model_name : str
        Model to load when ``model`` is None
    model : SentenceTransformer, optional
        Pre-loaded model
    normalize_embeddings : bool
        Whether to L2-normalize the embeddings
    """

    def __init__(
        self,
        model_name: str = "sentence-transformers/all-MiniLM-L6-v2",
        model=None,
        normalize_embeddings: bool = False,
    ):
        self.model_name = model_name
        self.normalize_embeddings = normalize_embeddings
        self.model = model

        if self.model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError:
                raise ImportError(
                    "sentence-transformers is required. "
                    "Install with: pip install sentence-transformers"
                )

            LOGGER.info(f"Loading embedding model: {model_name}")
            self.model = SentenceTransformer(model_name)

    def embed(self, texts: Sequence[str]) -> np.ndarray:
        texts = list(texts)
        try:
            vectors = self.model.encode(
                texts,
                show_progress_bar=False,
                convert_to_numpy=True,
                normalize_embeddings=self.normalize_embeddings,
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise EmbeddingProviderError(
                f"Sentence transformer {self.model_name} failed: {e}"
            ) from e
        return _as_embedding_array(vectors, len(texts))

    @classmethod
    def from_config(cls, config, **kwargs) -> "SentenceTransformerProvider":
        if config.model_name:
            kwargs.setdefault("model_name", config.model_name)
        return cls(**kwargs)


@register_provider(EmbeddingProviderType.FALLBACK)
class FallbackEmbeddingProvider(EmbeddingProvider):
    """Provider returning :func:`create_fallback_embedding` vectors. Never fails."""

    def __init__(self, dim: int = FALLBACK_EMBEDDING_DIM):
        self.dim = dim

    def embed(self, texts: Sequence[str]) -> np.ndarray:
        texts = list(texts)
        if not texts:
            return np.zeros((0, self.dim), dtype=np.float64)
        return np.vstack([create_fallback_embedding(text, self.dim) for text in texts])
