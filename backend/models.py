"""Shared backend records for Inkwell."""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np


def _timestamp() -> float:
    return time.time()


@dataclass
class MemoryItem:
    """A remembered snippet owned by the memory manager."""

    id: str
    text: str
    vector: Optional[np.ndarray] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: float = field(default_factory=_timestamp)

    def copy(self) -> "MemoryItem":
        return MemoryItem(
            id=self.id,
            text=self.text,
            vector=None if self.vector is None else self.vector.copy(),
            metadata=copy.deepcopy(self.metadata),
            created_at=self.created_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "vector": None if self.vector is None else self.vector.tolist(),
            "metadata": copy.deepcopy(self.metadata),
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemoryItem":
        vector = data.get("vector")
        return cls(
            id=str(data["id"]),
            text=str(data.get("text", "")),
            vector=None if vector is None else np.asarray(vector, dtype=np.float64),
            metadata=dict(data.get("metadata") or {}),
            created_at=float(data.get("created_at") or _timestamp()),
        )


@dataclass(frozen=True)
class ScoredResult:
    """Read-only projection of a memory item produced by a search."""

    id: str
    text: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MemoryStats:
    total_memories: int
    vocabulary_size: int


@dataclass(frozen=True)
class Heading:
    offset: int
    title: str
    level: Optional[int] = None  # None for ALL-CAPS headings


@dataclass(frozen=True)
class DocumentSection:
    """A contiguous slice of the source document."""

    text: str
    start_offset: int
    end_offset: int
    nearest_heading: Optional[str] = None


@dataclass(frozen=True)
class RelatedSection:
    text: str
    score: float
    start_offset: int
    end_offset: int
    heading: Optional[str] = None


@dataclass(frozen=True)
class ContextBundle:
    """Output of context assembly, ready for prompt formatting."""

    local_before: str = ""
    local_after: str = ""
    related_sections: Tuple[RelatedSection, ...] = ()
    nearest_heading: Optional[str] = None
    section_count: int = 0

    @property
    def total_chars(self) -> int:
        return (
            len(self.local_before)
            + len(self.local_after)
            + sum(len(section.text) for section in self.related_sections)
        )


@dataclass(frozen=True)
class SemanticContext:
    """Local text plus the pinned notes selected for it."""

    local_context: str = ""
    relevant_notes: Tuple[str, ...] = ()

    @property
    def total_chars(self) -> int:
        return len(self.local_context) + len("\n".join(self.relevant_notes))
