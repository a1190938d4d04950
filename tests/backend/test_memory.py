"""
Unit tests for the MemoryManager and ad-hoc semantic filtering.
"""

import os
import sys

import numpy as np
import pytest
from pydantic import ValidationError

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../backend"))

from context_models import SearchOptions
from errors import MemoryNotFoundError
from memory import MemoryManager, filter_near_duplicates, semantic_filter
from models import MemoryItem, ScoredResult

TEXTS = {
    "weather": "Sunny weather with light winds expected tomorrow afternoon",
    "pasta": "Pasta recipe with tomato sauce, fresh basil",
    "ml": "Machine learning models learn patterns from data",
    "nn": "Neural networks are a family of machine learning models",
}


class TestMemoryManager:
    """Test suite for the MemoryManager class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.manager = MemoryManager()

    def _load(self, order):
        for memory_id in order:
            self.manager.add_memory(memory_id, TEXTS[memory_id])
        self.manager.train()

    def test_add_and_stats(self):
        """Test that adding items is reflected in stats."""
        self._load(["weather", "pasta"])
        stats = self.manager.get_stats()
        assert stats.total_memories == 2
        assert stats.vocabulary_size > 0

    def test_remove_memory(self):
        self._load(["weather", "pasta"])
        assert self.manager.remove_memory("weather") is True
        assert self.manager.remove_memory("weather") is False
        assert self.manager.get_stats().total_memories == 1
        assert "weather" not in self.manager

    @pytest.mark.parametrize("order", [["weather", "pasta", "ml", "nn"], ["nn", "ml", "pasta", "weather"]])
    def test_search_finds_relevant_items(self, order):
        """Test that topical items rank first whatever the insertion order."""
        self._load(order)
        results = self.manager.search(
            "machine learning and neural networks", SearchOptions(top_k=2)
        )
        assert {r.id for r in results} == {"ml", "nn"}
        assert results[0].score >= results[1].score

    def test_identical_items_are_filtered(self):
        """Test that the near-duplicate filter keeps the first of identical items."""
        text = "the quick brown fox jumps over the lazy dog"
        self.manager.add_memory("1", text)
        self.manager.add_memory("2", text)
        self.manager.train()

        results = self.manager.search(text, SearchOptions(max_jaccard_score=0.8))
        assert [r.id for r in results] == ["1"]

        unfiltered = self.manager.search(text, SearchOptions(enable_jaccard_filter=False))
        assert [r.id for r in unfiltered] == ["1", "2"]

    def test_ties_keep_insertion_order(self):
        """Test that equal scores keep insertion order, and a replaced id moves last."""
        options = SearchOptions(enable_jaccard_filter=False)
        self.manager.add_memory("a", "apple pie")
        self.manager.add_memory("b", "apple pie")
        self.manager.train()
        assert [r.id for r in self.manager.search("apple", options)] == ["a", "b"]

        self.manager.add_memory("a", "apple pie")
        assert [r.id for r in self.manager.search("apple", options)] == ["b", "a"]

    def test_min_score_and_top_k(self):
        self._load(["weather", "pasta", "ml", "nn"])
        results = self.manager.search("machine learning", SearchOptions(min_semantic_score=0.1))
        assert {r.id for r in results} == {"ml", "nn"}
        assert all(r.score >= 0.1 for r in results)

        results = self.manager.search("machine learning", SearchOptions(top_k=1))
        assert len(results) == 1

    def test_search_untrained_scores_zero(self):
        """Test that items without vectors score 0.0 rather than failing."""
        self.manager.add_memory("x", "some text")
        results = self.manager.search("some text")
        assert [r.score for r in results] == [0.0]
        assert self.manager.search("some text", SearchOptions(min_semantic_score=0.1)) == []

    def test_add_after_train_is_embedded(self):
        """Test that items added after training can be scored without retraining."""
        self._load(["ml", "pasta"])
        self.manager.add_memory("late", "machine learning")
        item = self.manager.get_memory("late")
        assert item.vector is not None
        assert item.vector.shape == (self.manager.embedder.vocabulary_size(),)

    def test_find_similar_excludes_self(self):
        self._load(["weather", "pasta", "ml", "nn"])
        results = self.manager.find_similar("ml", SearchOptions(min_semantic_score=0.0))
        ids = [r.id for r in results]
        assert "ml" not in ids
        assert ids[0] == "nn"

    def test_find_similar_default_threshold(self):
        """Test that the default threshold for similar items is strict."""
        self._load(["weather", "pasta", "ml", "nn"])
        assert all(r.score >= 0.5 for r in self.manager.find_similar("ml"))

    def test_find_similar_missing_id(self):
        with pytest.raises(MemoryNotFoundError):
            self.manager.find_similar("missing")

    def test_update_metadata(self):
        self.manager.add_memory("a", "apple", {"tag": "fruit"})
        self.manager.update_metadata("a", access_count=3)
        assert self.manager.get_memory("a").metadata == {"tag": "fruit", "access_count": 3}
        with pytest.raises(MemoryNotFoundError):
            self.manager.update_metadata("missing", access_count=1)

    def test_export_returns_copies(self):
        """Test that mutating an export does not touch the stored items."""
        self._load(["ml"])
        exported = self.manager.export_memories()
        exported[0].metadata["changed"] = True
        exported[0].vector[:] = 0.0
        stored = self.manager.get_memory("ml")
        assert "changed" not in stored.metadata
        assert np.linalg.norm(stored.vector) == pytest.approx(1.0)

    def test_import_replaces_collection(self):
        self._load(["weather", "pasta"])
        self.manager.import_memories([MemoryItem(id="new", text="fresh item")])
        assert [item.id for item in self.manager.all_memories()] == ["new"]

    def test_import_drops_stale_vectors(self):
        """Test that vectors sized for another vocabulary are discarded."""
        self._load(["weather", "pasta"])
        size = self.manager.embedder.vocabulary_size()
        items = [
            MemoryItem(id="fits", text="weather", vector=np.ones(size) / np.sqrt(size)),
            MemoryItem(id="stale", text="pasta", vector=np.ones(size + 3)),
        ]
        self.manager.import_memories(items)
        assert self.manager.get_memory("fits").vector is not None
        assert self.manager.get_memory("stale").vector is None

    def test_clear_memories(self):
        self._load(["weather"])
        self.manager.clear_memories()
        assert len(self.manager) == 0
        assert self.manager.search("weather") == []


class TestFiltering:
    """Test suite for near-duplicate and ad-hoc filtering."""

    def test_filter_near_duplicates_keeps_best_of_cluster(self):
        results = [
            ScoredResult(id="a", text="red apples are sweet", score=0.9),
            ScoredResult(id="b", text="red apples are sweet", score=0.8),
            ScoredResult(id="c", text="green pears are crunchy", score=0.7),
        ]
        kept = filter_near_duplicates(results, 0.8)
        assert [r.id for r in kept] == ["a", "c"]

    def test_filter_near_duplicates_limit(self):
        results = [ScoredResult(id=str(i), text=f"word{i}", score=1.0) for i in range(5)]
        assert len(filter_near_duplicates(results, 0.8, limit=2)) == 2

    def test_semantic_filter_empty(self):
        assert semantic_filter([], "anything") == []

    def test_semantic_filter_ranks_documents(self):
        documents = [
            {"id": "1", "text": TEXTS["weather"]},
            {"id": "2", "text": TEXTS["nn"], "metadata": {"source": "notes"}},
        ]
        results = semantic_filter(documents, "neural networks", SearchOptions(min_semantic_score=0.1))
        assert [r.id for r in results] == ["2"]
        assert results[0].metadata == {"source": "notes"}

    def test_search_options_reject_unknown_fields(self):
        with pytest.raises(ValidationError):
            SearchOptions(top_k=3, fuzzy=True)

    def test_search_options_validate_ranges(self):
        with pytest.raises(ValidationError):
            SearchOptions(top_k=0)
        with pytest.raises(ValidationError):
            SearchOptions(max_jaccard_score=1.5)
