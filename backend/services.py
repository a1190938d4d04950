"""Service layer coordinating semantic memory, persistence and ad-hoc filtering."""

from __future__ import annotations

import logging
import math
import time
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional

from context_models import SearchOptions, SemanticContextOptions
from context_service import get_local_context
from memory import MemoryManager, semantic_filter
from models import MemoryItem, MemoryStats, ScoredResult, SemanticContext
from storage import MemoryStore

logger = logging.getLogger(__name__)

PINNED_NOTE_OPTIONS = SearchOptions(
    top_k=3, min_semantic_score=0.1, enable_jaccard_filter=True, max_jaccard_score=0.9
)
SECTION_FILTER_OPTIONS = SearchOptions(
    top_k=5, min_semantic_score=0.15, enable_jaccard_filter=True, max_jaccard_score=0.85
)
HISTORY_FILTER_OPTIONS = SearchOptions(
    top_k=5, min_semantic_score=0.2, enable_jaccard_filter=True, max_jaccard_score=0.8
)
DEFAULT_SEMANTIC_CONTEXT_OPTIONS = SemanticContextOptions()


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class MemoryService:
    """Owns one MemoryManager for a session: capacity, retraining and persistence."""

    EVICTION_FRACTION = 0.2

    def __init__(
        self,
        manager: MemoryManager | None = None,
        store: MemoryStore | None = None,
        max_memories: int = 1000,
        retrain_every: int = 10,
    ):
        self.manager = manager or MemoryManager()
        self.store = store
        self.max_memories = max(1, int(max_memories))
        self.retrain_every = max(1, int(retrain_every))
        self._adds_since_train = 0

        if self.store is not None:
            self.load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def load(self) -> int:
        """Replace in-memory state with the store's snapshot. Returns items loaded."""
        if self.store is None:
            return 0
        items = self.store.load()
        self.manager.import_memories(items)
        if items:
            self.train()
        return len(items)

    def _persist(self):
        if self.store is not None:
            self.store.save(self.manager.export_memories())

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def add(
        self,
        text: str,
        metadata: Optional[Mapping[str, Any]] = None,
        memory_id: Optional[str] = None,
    ) -> MemoryItem:
        memory_id = memory_id or uuid.uuid4().hex
        if memory_id not in self.manager and len(self.manager) >= self.max_memories:
            self._evict_least_recently_used()

        now = time.time()
        meta: Dict[str, Any] = dict(metadata or {})
        meta["last_accessed_at"] = _as_float(meta.get("last_accessed_at"), now)
        meta["access_count"] = _as_int(meta.get("access_count"), 0)
        self.manager.add_memory(memory_id, text, meta)

        self._adds_since_train += 1
        if not self.manager.embedder.is_trained or self._adds_since_train >= self.retrain_every:
            self.train()

        self._persist()
        item = self.manager.get_memory(memory_id)
        assert item is not None
        return item

    def remove(self, memory_id: str) -> bool:
        removed = self.manager.remove_memory(memory_id)
        if removed:
            self._persist()
        return removed

    def train(self):
        self.manager.train()
        self._adds_since_train = 0
        logger.info(
            "Trained semantic memory: %d items, vocabulary %d",
            len(self.manager),
            self.manager.embedder.vocabulary_size(),
        )

    def search(self, query: str, options: Optional[SearchOptions] = None) -> List[ScoredResult]:
        results = self.manager.search(query, options)
        if results:
            now = time.time()
            for result in results:
                count = _as_int(result.metadata.get("access_count"), 0) + 1
                self.manager.update_metadata(result.id, last_accessed_at=now, access_count=count)
            self._persist()
        return results

    def find_similar(self, memory_id: str, options: Optional[SearchOptions] = None) -> List[ScoredResult]:
        return self.manager.find_similar(memory_id, options)

    def export(self) -> List[MemoryItem]:
        return self.manager.export_memories()

    def import_(self, items: Iterable[MemoryItem]) -> int:
        items = list(items)
        self.manager.import_memories(items)
        if items:
            self.train()
        self._persist()
        return len(self.manager)

    def clear(self):
        self.manager.clear_memories()
        self._adds_since_train = 0
        if self.store is not None:
            self.store.clear()

    def stats(self) -> MemoryStats:
        return self.manager.get_stats()

    def _evict_least_recently_used(self):
        items = self.manager.all_memories()
        items.sort(key=lambda item: _as_float(item.metadata.get("last_accessed_at"), item.created_at))
        count = max(1, math.ceil(len(items) * self.EVICTION_FRACTION))
        for item in items[:count]:
            self.manager.remove_memory(item.id)
        logger.info("Evicted %d least recently used memories", count)


def filter_pinned_notes(
    notes: List[str], query: str, options: Optional[SearchOptions] = None
) -> List[str]:
    """Return the pinned notes most relevant to `query`, best first."""
    if not notes:
        return []
    documents = [{"id": f"note-{i}", "text": note} for i, note in enumerate(notes)]
    results = semantic_filter(documents, query, options or PINNED_NOTE_OPTIONS)
    return [result.text for result in results]


def filter_document_sections(
    sections: List[Mapping[str, Any]], query: str, options: Optional[SearchOptions] = None
) -> List[Dict[str, Any]]:
    """
    Rank caller-supplied sections against `query`.

    Args:
        sections: Mappings with `id`, `text` and optional `heading`
        query: Query text
        options: Search options

    Returns:
        Dicts with id, text, heading and score, best first
    """
    if not sections:
        return []
    headings = {str(s["id"]): s.get("heading") for s in sections}
    results = semantic_filter(sections, query, options or SECTION_FILTER_OPTIONS)
    return [
        {"id": r.id, "text": r.text, "heading": headings.get(r.id), "score": r.score}
        for r in results
    ]


def filter_history(
    history: List[Mapping[str, Any]], query: str, options: Optional[SearchOptions] = None
) -> List[Dict[str, Any]]:
    """
    Rank history entries against `query`.

    Args:
        history: Mappings with `id`, `text` and optional `type`
        query: Query text
        options: Search options

    Returns:
        Dicts with id, text, type and score, best first
    """
    if not history:
        return []
    types = {str(h["id"]): h.get("type") for h in history}
    results = semantic_filter(history, query, options or HISTORY_FILTER_OPTIONS)
    return [
        {"id": r.id, "text": r.text, "type": types.get(r.id), "score": r.score}
        for r in results
    ]


def _fit_notes(notes: List[str], budget: int) -> List[str]:
    # Greedy in rank order; stops at the first note that doesn't fit.
    kept: List[str] = []
    used = 0
    for note in notes:
        cost = len(note) + (1 if kept else 0)
        if used + cost > budget:
            break
        kept.append(note)
        used += cost
    return kept


def assemble_semantic_context(
    document: str,
    cursor_offset: int,
    query: str,
    pinned_notes: Optional[List[str]] = None,
    options: Optional[SemanticContextOptions] = None,
) -> SemanticContext:
    """
    Combine the text around the cursor with the pinned notes relevant to it.

    Notes are ranked against the query plus the local text, then trimmed in
    rank order so that the local text and the newline-joined notes fit in
    `max_context_chars`. The local text itself is never trimmed.
    """
    options = options or DEFAULT_SEMANTIC_CONTEXT_OPTIONS
    document = document or ""
    cursor = max(0, min(int(cursor_offset), len(document)))
    before, after, _, _ = get_local_context(document, cursor, cursor, options.local_window)
    local_context = before + after

    notes = list(pinned_notes or [])
    if options.enable_semantic_filtering and notes:
        notes = filter_pinned_notes(notes, f"{query} {local_context}", options.search_options)

    if len(local_context) + len("\n".join(notes)) > options.max_context_chars:
        kept = _fit_notes(notes, options.max_context_chars - len(local_context))
        logger.debug("Trimmed pinned notes to budget: %d of %d kept", len(kept), len(notes))
        notes = kept

    return SemanticContext(local_context=local_context, relevant_notes=tuple(notes))


def format_semantic_context_for_prompt(context: SemanticContext) -> str:
    """Format notes first, then the document text, as prompt blocks."""
    prompt = ""
    if context.relevant_notes:
        prompt += "RELEVANT CONTEXT AND GUIDANCE:\n"
        for i, note in enumerate(context.relevant_notes, start=1):
            prompt += f"{i}. {note}\n"
        prompt += "\n"
    if context.local_context:
        prompt += f"DOCUMENT CONTEXT:\n{context.local_context}\n"
    return prompt
