"""
Unit tests for the similarity module.
"""

import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../backend"))

from errors import DimensionMismatchError
from similarity import cosine_similarity, jaccard_similarity, normalize_vector, tokenize


class TestTokenize:
    """Test suite for term extraction."""

    def test_lowercases_and_splits_on_punctuation(self):
        """Test that tokens are lower-cased and split on non-alphanumerics."""
        assert tokenize("Hello, World! 42") == ["hello", "world", "42"]

    def test_drops_short_tokens(self):
        """Test that single-character tokens are dropped by default."""
        assert tokenize("a b_c de") == ["de"]

    def test_min_length_is_configurable(self):
        assert tokenize("a b_c", min_length=1) == ["a", "b", "c"]

    def test_empty_text(self):
        assert tokenize("") == []


class TestCosineSimilarity:
    """Test suite for cosine similarity."""

    def test_identical_vectors(self):
        """Test that a non-zero vector is fully similar to itself."""
        v = [0.3, -1.2, 4.0]
        assert cosine_similarity(v, v) == pytest.approx(1.0)

    def test_symmetric(self):
        """Test that argument order does not matter."""
        a = [1.0, 2.0, 0.5]
        b = [0.2, -1.0, 3.0]
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))

    def test_orthogonal_and_opposite(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
        assert cosine_similarity([1.0, 0.0], [-2.0, 0.0]) == pytest.approx(-1.0)

    def test_zero_vector_scores_zero(self):
        """Test that a zero magnitude yields 0.0 instead of dividing by zero."""
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0
        assert cosine_similarity([], []) == 0.0

    def test_dimension_mismatch(self):
        """Test that vectors of different length are rejected."""
        with pytest.raises(DimensionMismatchError):
            cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])

    def test_dimension_mismatch_is_value_error(self):
        with pytest.raises(ValueError):
            cosine_similarity(np.zeros(2), np.zeros(4))


class TestJaccardSimilarity:
    """Test suite for Jaccard similarity."""

    def test_identical_strings(self):
        assert jaccard_similarity("the quick brown fox", "the quick brown fox") == 1.0

    def test_case_insensitive(self):
        """Test that case does not affect overlap."""
        assert jaccard_similarity("Hello World", "hello world") == 1.0

    def test_disjoint(self):
        assert jaccard_similarity("apple banana", "dog elephant") == 0.0

    def test_partial_overlap(self):
        assert jaccard_similarity("apple banana cherry", "apple banana") == pytest.approx(2 / 3)

    def test_symmetric(self):
        a = "machine learning is fun"
        b = "learning to cook is fun too"
        assert jaccard_similarity(a, b) == pytest.approx(jaccard_similarity(b, a))

    def test_empty_inputs(self):
        """Test the defined identity and one-sided empty cases."""
        assert jaccard_similarity("", "") == 1.0
        assert jaccard_similarity("", "words") == 0.0
        assert jaccard_similarity("words", "  ") == 0.0


class TestNormalizeVector:
    def test_unit_length(self):
        v = normalize_vector([3.0, 4.0])
        assert np.allclose(v, [0.6, 0.8])

    def test_zero_vector_unchanged(self):
        v = normalize_vector([0.0, 0.0])
        assert np.array_equal(v, [0.0, 0.0])

    def test_does_not_mutate_input(self):
        original = np.array([3.0, 4.0])
        normalize_vector(original)
        assert np.array_equal(original, [3.0, 4.0])
