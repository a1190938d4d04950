"""
Similarity metrics for Inkwell.

Cosine similarity ranks weighted term vectors by topical overlap; Jaccard
similarity measures raw lexical overlap and drives near-duplicate filtering.
"""

from __future__ import annotations

import re
from typing import Sequence, Set

import numpy as np

from errors import DimensionMismatchError

_TOKEN_RE = re.compile(r"[^\W_]+")


def tokenize(text: str, min_length: int = 2) -> list[str]:
    """
    Split text into lower-cased alphanumeric terms.

    Args:
        text: Input text
        min_length: Tokens shorter than this are dropped

    Returns:
        Terms in order of appearance (duplicates kept)
    """
    if not text:
        return []
    return [tok for tok in _TOKEN_RE.findall(text.lower()) if len(tok) >= min_length]


def token_set(text: str) -> Set[str]:
    return set(tokenize(text, min_length=1))


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """
    Calculate cosine similarity between two vectors.

    Args:
        vec1: First vector
        vec2: Second vector

    Returns:
        Cosine similarity score between -1 and 1, or 0.0 if either vector is zero

    Raises:
        DimensionMismatchError: if the vectors differ in length
    """
    v1 = np.asarray(vec1, dtype=np.float64)
    v2 = np.asarray(vec2, dtype=np.float64)
    if v1.shape != v2.shape:
        raise DimensionMismatchError(v1.size, v2.size)

    norm1 = float(np.linalg.norm(v1))
    norm2 = float(np.linalg.norm(v2))
    if norm1 == 0 or norm2 == 0:
        return 0.0

    score = float(np.dot(v1, v2) / (norm1 * norm2))
    # Rounding can push parallel vectors just past 1.
    return max(-1.0, min(1.0, score))


def jaccard_similarity(text1: str, text2: str) -> float:
    """
    Calculate Jaccard similarity between the token sets of two texts.

    Case-insensitive. Two texts without any tokens are considered identical.
    """
    tokens1 = token_set(text1)
    tokens2 = token_set(text2)

    if not tokens1 and not tokens2:
        return 1.0
    if not tokens1 or not tokens2:
        return 0.0

    return len(tokens1 & tokens2) / len(tokens1 | tokens2)


def normalize_vector(vector: Sequence[float]) -> np.ndarray:
    """Return a unit-length copy of `vector` (zero vectors come back unchanged)."""
    v = np.array(vector, dtype=np.float64)
    norm = np.linalg.norm(v)
    if norm == 0:
        return v
    return v / norm
