"""Exceptions raised by the Inkwell retrieval core."""

from __future__ import annotations


class InkwellError(Exception):
    """Base class for errors raised by the retrieval core."""


class DimensionMismatchError(InkwellError, ValueError):
    """Two vectors of different length were compared."""

    def __init__(self, left: int, right: int):
        super().__init__(f"Vector dimensions don't match: {left} vs {right}")
        self.left = left
        self.right = right


class MemoryNotFoundError(InkwellError, KeyError):
    """A memory id was referenced that the manager does not hold."""

    def __init__(self, memory_id: str):
        super().__init__(memory_id)
        self.memory_id = memory_id

    def __str__(self) -> str:
        return f"Memory not found: {self.memory_id}"
