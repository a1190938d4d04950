"""
Semantic memory for Inkwell.

Holds remembered snippets, trains a shared TF-IDF vocabulary over them and
ranks them against queries. Storage is in-process only; callers persist the
output of `export_memories()` if they need it across sessions.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from context_models import SearchOptions
from embedder import LocalEmbedder
from errors import MemoryNotFoundError
from models import MemoryItem, MemoryStats, ScoredResult
from similarity import cosine_similarity, jaccard_similarity

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_OPTIONS = SearchOptions()
DEFAULT_SIMILAR_OPTIONS = SearchOptions(min_semantic_score=0.5)


class MemoryManager:
    """Collection of memory items with semantic search over a shared vocabulary."""

    def __init__(self, embedder: Optional[LocalEmbedder] = None):
        self.embedder = embedder or LocalEmbedder()
        self._memories: Dict[str, MemoryItem] = {}

    def __len__(self) -> int:
        return len(self._memories)

    def __contains__(self, memory_id: object) -> bool:
        return memory_id in self._memories

    # ------------------------------------------------------------------
    # Collection management
    # ------------------------------------------------------------------
    def add_memory(
        self, memory_id: str, text: str, metadata: Optional[Mapping[str, Any]] = None
    ) -> MemoryItem:
        """
        Insert or replace a memory item.

        The vocabulary is not retrained. If it was trained before, the item is
        embedded against it right away so that search can score it.

        Returns:
            A copy of the stored item
        """
        vector = self.embedder.embed(text) if self.embedder.is_trained else None
        item = MemoryItem(id=memory_id, text=text, vector=vector, metadata=dict(metadata or {}))
        # A replaced item counts as the newest insertion.
        self._memories.pop(memory_id, None)
        self._memories[memory_id] = item
        return item.copy()

    def remove_memory(self, memory_id: str) -> bool:
        return self._memories.pop(memory_id, None) is not None

    def get_memory(self, memory_id: str) -> Optional[MemoryItem]:
        item = self._memories.get(memory_id)
        return item.copy() if item is not None else None

    def all_memories(self) -> List[MemoryItem]:
        return [item.copy() for item in self._memories.values()]

    def clear_memories(self):
        self._memories.clear()

    def update_metadata(self, memory_id: str, **values: Any):
        """Merge values into an item's metadata. Text and vector are untouched."""
        item = self._memories.get(memory_id)
        if item is None:
            raise MemoryNotFoundError(memory_id)
        item.metadata.update(values)

    # ------------------------------------------------------------------
    # Training and search
    # ------------------------------------------------------------------
    def train(self):
        """Retrain the vocabulary over all stored texts and re-embed every item."""
        texts = [item.text for item in self._memories.values()]
        self.embedder.train(texts)
        for item in self._memories.values():
            item.vector = self.embedder.embed(item.text)
        logger.debug(
            "Retrained memory vocabulary: %d items, %d terms",
            len(texts),
            self.embedder.vocabulary_size(),
        )

    def search(self, query: str, options: Optional[SearchOptions] = None) -> List[ScoredResult]:
        """
        Rank stored memories against a query.

        Args:
            query: Query text, embedded with the current vocabulary
            options: Search options

        Returns:
            Results sorted by descending cosine score, ties in insertion order
        """
        options = options or DEFAULT_SEARCH_OPTIONS
        query_vector = self.embedder.embed(query)
        return self._rank(query_vector, self._memories.values(), options)

    def find_similar(
        self, memory_id: str, options: Optional[SearchOptions] = None
    ) -> List[ScoredResult]:
        """
        Rank other memories against a stored one.

        Raises:
            MemoryNotFoundError: if `memory_id` is not stored
        """
        source = self._memories.get(memory_id)
        if source is None:
            raise MemoryNotFoundError(memory_id)

        options = options or DEFAULT_SIMILAR_OPTIONS
        query_vector = source.vector
        if query_vector is None:
            query_vector = self.embedder.embed(source.text)
        others = [item for item in self._memories.values() if item.id != memory_id]
        return self._rank(query_vector, others, options)

    def _rank(
        self,
        query_vector: np.ndarray,
        items: Iterable[MemoryItem],
        options: SearchOptions,
    ) -> List[ScoredResult]:
        scored: List[ScoredResult] = []
        for item in items:
            score = self._score(query_vector, item)
            if score < options.min_semantic_score:
                continue
            scored.append(
                ScoredResult(id=item.id, text=item.text, score=score, metadata=dict(item.metadata))
            )

        # Stable sort keeps insertion order between equal scores.
        scored.sort(key=lambda r: r.score, reverse=True)

        if options.enable_jaccard_filter:
            scored = filter_near_duplicates(scored, options.max_jaccard_score, limit=options.top_k)

        return scored[: options.top_k]

    @staticmethod
    def _score(query_vector: np.ndarray, item: MemoryItem) -> float:
        if item.vector is None:
            return 0.0
        return cosine_similarity(query_vector, item.vector)

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------
    def export_memories(self) -> List[MemoryItem]:
        return [item.copy() for item in self._memories.values()]

    def import_memories(self, items: Iterable[MemoryItem]):
        """
        Replace the collection with `items`.

        Vectors that don't fit the current vocabulary are dropped; call
        `train()` afterwards to embed everything consistently.
        """
        size = self.embedder.vocabulary_size() if self.embedder.is_trained else None
        memories: Dict[str, MemoryItem] = {}
        stale = 0
        for item in items:
            item = item.copy()
            if item.vector is not None and (size is None or item.vector.shape != (size,)):
                item.vector = None
                stale += 1
            memories.pop(item.id, None)
            memories[item.id] = item
        self._memories = memories
        if stale:
            logger.debug("Dropped %d imported vectors that no longer fit the vocabulary", stale)

    def get_stats(self) -> MemoryStats:
        return MemoryStats(
            total_memories=len(self._memories),
            vocabulary_size=self.embedder.vocabulary_size(),
        )


def filter_near_duplicates(
    results: Sequence[ScoredResult], max_jaccard_score: float, limit: Optional[int] = None
) -> List[ScoredResult]:
    """
    Greedily keep ranked results that don't overlap an earlier kept one.

    A result is accepted only if its Jaccard similarity to every accepted
    result is at most `max_jaccard_score`, so the highest ranked member of a
    near-duplicate cluster always survives.
    """
    accepted: List[ScoredResult] = []
    for candidate in results:
        if limit is not None and len(accepted) >= limit:
            break
        if all(jaccard_similarity(candidate.text, kept.text) <= max_jaccard_score for kept in accepted):
            accepted.append(candidate)
    return accepted


def semantic_filter(
    documents: Iterable[Mapping[str, Any]],
    query: str,
    options: Optional[SearchOptions] = None,
) -> List[ScoredResult]:
    """
    Rank ad-hoc documents against a query with a throwaway manager.

    Args:
        documents: Mappings with `id`, `text` and optional `metadata`
        query: Query text
        options: Search options

    Returns:
        Ranked results; empty when there are no documents
    """
    manager = MemoryManager()
    for doc in documents:
        manager.add_memory(str(doc["id"]), str(doc.get("text", "")), doc.get("metadata"))
    if not len(manager):
        return []
    manager.train()
    return manager.search(query, options)
