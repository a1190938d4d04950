"""
Unit tests for the memory snapshot store.
"""

import json
import os
import shutil
import sys
import tempfile

import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../backend"))

from models import MemoryItem
from storage import MemoryStore


class TestMemoryStore:
    """Test suite for the MemoryStore class."""

    def setup_method(self):
        """Set up a temporary snapshot location."""
        self.temp_dir = tempfile.mkdtemp()
        self.path = os.path.join(self.temp_dir, "nested", "memories.json")
        self.store = MemoryStore(self.path)

    def teardown_method(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_missing_file_loads_empty(self):
        assert self.store.load() == []

    def test_save_and_load(self):
        """Test that items survive a save/load cycle."""
        items = [
            MemoryItem(id="a", text="alpha", vector=np.array([0.6, 0.8]), metadata={"k": 1}),
            MemoryItem(id="b", text="beta"),
        ]
        self.store.save(items)
        loaded = self.store.load()

        assert [item.id for item in loaded] == ["a", "b"]
        assert np.allclose(loaded[0].vector, [0.6, 0.8])
        assert loaded[0].metadata == {"k": 1}
        assert loaded[0].created_at == items[0].created_at
        assert loaded[1].vector is None

    def test_snapshot_format(self):
        self.store.save([MemoryItem(id="a", text="alpha")])
        with open(self.path, "r", encoding="utf-8") as f:
            payload = json.load(f)
        assert payload["version"] == 1
        assert payload["memories"][0]["id"] == "a"

    def test_corrupt_file_loads_empty(self):
        os.makedirs(os.path.dirname(self.path), exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("{not json")
        assert self.store.load() == []

    def test_clear(self):
        self.store.save([MemoryItem(id="a", text="alpha")])
        self.store.clear()
        assert not os.path.exists(self.path)
        # Clearing twice is harmless.
        self.store.clear()
