"""JSON snapshot storage for semantic memories."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, List, Union

from models import MemoryItem

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class MemoryStore:
    """Persists memory snapshots to a single JSON file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> List[MemoryItem]:
        """Read the snapshot. Missing or unreadable files load as empty."""
        if not self.path.exists():
            logger.info("No memory snapshot at %s, starting fresh", self.path)
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                payload = json.load(f)
            items = [MemoryItem.from_dict(entry) for entry in payload.get("memories", [])]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("Failed to load memory snapshot %s: %s", self.path, exc)
            return []
        logger.info("Loaded %d memories from %s", len(items), self.path)
        return items

    def save(self, items: Iterable[MemoryItem]):
        """Write the snapshot atomically."""
        payload = {
            "version": SNAPSHOT_VERSION,
            "memories": [item.to_dict() for item in items],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".memories-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def clear(self):
        self.path.unlink(missing_ok=True)
