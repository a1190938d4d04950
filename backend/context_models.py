"""Pydantic models for context assembly, memory search and the HTTP payloads."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ContextOptions(BaseModel):
    """Options recognized by `assemble_context`."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    local_window: int = Field(
        default=1500,
        ge=0,
        description="Characters of local context; half before the cursor, half after.",
    )
    max_related_sections: int = Field(
        default=3, ge=0, description="Upper bound on related sections returned."
    )
    max_section_length: int = Field(
        default=250, ge=1, description="Related sections longer than this are compressed."
    )
    enable_relevance_scoring: bool = Field(
        default=True,
        description="When false only the local window is returned.",
    )
    enable_deduplication: bool = Field(
        default=True, description="Drop related sections sharing a leading fingerprint."
    )
    dedup_prefix_length: int = Field(
        default=60, ge=1, description="Fingerprint length used by deduplication."
    )


class SearchOptions(BaseModel):
    """Options recognized by memory search and similar-item lookup."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    top_k: int = Field(default=10, ge=1, description="Maximum number of results.")
    min_semantic_score: float = Field(
        default=0.0, ge=-1.0, le=1.0, description="Results scoring below this are dropped."
    )
    enable_jaccard_filter: bool = Field(
        default=True, description="Remove lower-ranked near-duplicates."
    )
    max_jaccard_score: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="A result is kept only if its overlap with every kept result is at most this.",
    )


class SemanticContextOptions(BaseModel):
    """Options recognized by `assemble_semantic_context`."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    local_window: int = Field(
        default=3000,
        ge=0,
        description="Characters of local context; half before the cursor, half after.",
    )
    enable_semantic_filtering: bool = Field(
        default=True, description="When false every pinned note is kept, subject to the budget."
    )
    max_context_chars: int = Field(
        default=3000, ge=0, description="Budget for local text plus newline-joined notes."
    )
    search_options: Optional[SearchOptions] = Field(
        default=None, description="Overrides the pinned-note search defaults."
    )


# API payloads

class ContextRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str
    # Out-of-range offsets are clamped into the document, not rejected.
    cursor_offset: int = Field(alias="cursor_offset")
    selection_end: Optional[int] = Field(default=None, alias="selection_end")
    options: ContextOptions = Field(default_factory=ContextOptions)
    include_related: bool = Field(default=True, alias="include_related")


class RelatedSectionPayload(BaseModel):
    text: str
    score: float
    start_offset: int
    end_offset: int
    heading: Optional[str] = None


class ContextResponsePayload(BaseModel):
    local_before: str
    local_after: str
    related_sections: List[RelatedSectionPayload] = Field(default_factory=list)
    nearest_heading: Optional[str] = None
    section_count: int = 0
    total_chars: int = 0
    prompt: str = ""


class SemanticContextRequest(BaseModel):
    text: str
    cursor_offset: int
    query: str = ""
    pinned_notes: List[str] = Field(default_factory=list)
    options: SemanticContextOptions = Field(default_factory=SemanticContextOptions)


class SemanticContextResponsePayload(BaseModel):
    local_context: str
    relevant_notes: List[str] = Field(default_factory=list)
    total_chars: int = 0
    prompt: str = ""


class AnalyzeRequest(BaseModel):
    text: str
    cursor_offset: int


class AnalyzeResponsePayload(BaseModel):
    document_type: str
    confidence: float
    indicators: List[str] = Field(default_factory=list)
    cursor: Dict[str, Any] = Field(default_factory=dict)
    instructions: str = ""
    structure: List[str] = Field(default_factory=list)


class AddMemoryRequest(BaseModel):
    id: Optional[str] = None
    text: str = Field(min_length=1)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class MemoryIdRequest(BaseModel):
    id: str


class MemorySearchRequest(BaseModel):
    query: str
    options: Optional[SearchOptions] = None


class MemorySimilarRequest(BaseModel):
    id: str
    options: Optional[SearchOptions] = None


class ScoredResultPayload(BaseModel):
    id: str
    text: str
    score: float
    metadata: Dict[str, Any] = Field(default_factory=dict)


class MemorySearchResponsePayload(BaseModel):
    results: List[ScoredResultPayload] = Field(default_factory=list)


class MemoryStatsPayload(BaseModel):
    total_memories: int
    vocabulary_size: int


class MemoryItemPayload(BaseModel):
    id: str
    text: str
    vector: Optional[List[float]] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[float] = None


class MemoryExportPayload(BaseModel):
    memories: List[MemoryItemPayload] = Field(default_factory=list)
