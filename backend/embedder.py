"""
Embedding module for Inkwell.

Builds a TF-IDF vocabulary from a corpus and turns text into fixed-length,
L2-normalized term vectors. Fully local and deterministic; no model files.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from typing import Dict, Iterable, List, Optional

import numpy as np

from similarity import normalize_vector, tokenize

logger = logging.getLogger(__name__)


class LocalEmbedder:
    """Handles text embedding using a corpus-trained TF-IDF vocabulary."""

    def __init__(self, min_token_length: int = 2):
        """
        Initialize the embedder.

        Args:
            min_token_length: Tokens shorter than this are ignored everywhere
        """
        self.min_token_length = min_token_length
        self.vocabulary: Dict[str, int] = {}
        self.document_frequencies: Dict[str, int] = {}
        self._idf: np.ndarray = np.zeros(0, dtype=np.float64)
        self.document_count = 0
        self._trained = False

    @property
    def is_trained(self) -> bool:
        return self._trained

    def tokenize(self, text: str) -> List[str]:
        return tokenize(text, min_length=self.min_token_length)

    def train(self, documents: Iterable[str]):
        """
        Build vocabulary and IDF weights from a corpus of documents.

        Replaces any previous vocabulary. Term indices follow first appearance
        across the corpus, so the same corpus always yields the same vectors.

        Args:
            documents: Texts to learn from
        """
        vocabulary: Dict[str, int] = {}
        frequencies: Dict[str, int] = {}
        count = 0

        for doc in documents:
            count += 1
            for term in dict.fromkeys(self.tokenize(doc)):
                if term not in vocabulary:
                    vocabulary[term] = len(vocabulary)
                frequencies[term] = frequencies.get(term, 0) + 1

        idf = np.zeros(len(vocabulary), dtype=np.float64)
        for term, index in vocabulary.items():
            # Smoothed IDF: strictly positive even for terms in every document.
            idf[index] = math.log((1 + count) / (1 + frequencies[term])) + 1.0

        self.vocabulary = vocabulary
        self.document_frequencies = frequencies
        self._idf = idf
        self.document_count = count
        self._trained = True
        logger.debug("Trained embedder on %d documents, %d terms", count, len(vocabulary))

    def embed(self, text: str) -> np.ndarray:
        """
        Convert text to a TF-IDF vector.

        Args:
            text: Text to embed

        Returns:
            Unit-length vector of size `vocabulary_size()`, or the zero vector
            when `text` shares no term with the vocabulary
        """
        vector = np.zeros(len(self.vocabulary), dtype=np.float64)
        if not self.vocabulary or not text:
            return vector

        for term, tf in Counter(self.tokenize(text)).items():
            index = self.vocabulary.get(term)
            if index is not None:
                vector[index] = tf * self._idf[index]

        return normalize_vector(vector)

    def embed_batch(self, texts: List[str]) -> List[np.ndarray]:
        """Embed several texts against the current vocabulary."""
        return [self.embed(text) for text in texts]

    def vocabulary_size(self) -> int:
        """Number of distinct trained terms."""
        return len(self.vocabulary)

    def document_frequency(self, term: str) -> int:
        return self.document_frequencies.get(term.lower(), 0)

    def idf(self, term: str) -> Optional[float]:
        index = self.vocabulary.get(term.lower())
        if index is None:
            return None
        return float(self._idf[index])
