"""
Deterministic low-fidelity embeddings used when the provider is unavailable.

The vectors only encode surface features of the text (length, word count and
letter frequencies), so clustering keeps working in a degraded way instead of
failing.
"""

from collections import Counter

import numpy as np

from JTBD_clustering.DEFAULT_CONSTS import FALLBACK_EMBEDDING_DIM

# Most frequent letters in English text
FREQUENT_LETTERS = "etaoinshrdlucmfwyp"


def create_fallback_embedding(text: str, dim: int = FALLBACK_EMBEDDING_DIM) -> np.ndarray:
    """
    Create a feature vector from surface statistics of a text.

    Layout: ``[len / 1000, words / 100, freq('e'), freq('t'), ...]`` where a
    letter frequency is its count divided by the text length. The vector is
    zero padded (or truncated) to ``dim``.

    Parameters
    ----------
    text : str
        Text to describe
    dim : int
        Output length

    Returns
    -------
    np.ndarray
        Vector of shape ``(dim,)``. All zeros for empty text.

    Examples
    --------
    >>> vec = create_fallback_embedding("tea")
    >>> vec.shape
    (20,)
    >>> round(float(vec[2]), 3)  # frequency of 'e'
    0.333
    """
    if dim <= 0:
        raise ValueError(f"dim must be positive, got {dim}")

    embedding = np.zeros(dim, dtype=np.float64)
    text = text or ""
    length = len(text)
    if length == 0:
        return embedding

    features = [length / 1000, len(text.split()) / 100]
    counts = Counter(char for char in text.lower() if "a" <= char <= "z")
    features.extend(counts.get(letter, 0) / length for letter in FREQUENT_LETTERS)

    size = min(dim, len(features))
    embedding[:size] = features[:size]
    return embedding
