"""Cursor-conditioned context assembly for generation tools.

Given a full document and a cursor (or selection), this module builds a
bounded context bundle:
- local text immediately before and after the cursor
- a few sections from the rest of the document that are most relevant to it
- the heading the cursor sits under

Relevance uses a TF-IDF vocabulary trained for the single call, so the result
depends only on the arguments. Nothing is cached between calls.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from chunker import (
    build_heading_index,
    compress_section,
    fingerprint,
    heading_before_cursor,
    split_sections,
)
from context_models import ContextOptions
from embedder import LocalEmbedder
from models import ContextBundle, DocumentSection, RelatedSection
from similarity import cosine_similarity

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_OPTIONS = ContextOptions()

START_PLACEHOLDER = "[Start of document]"
END_PLACEHOLDER = "[End of document]"


def _clamp(value: int, lo: int, hi: int) -> int:
    return max(lo, min(int(value), hi))


def _cursor_range(document: str, cursor_offset: int, selection_end: Optional[int]) -> Tuple[int, int]:
    length = len(document)
    start = _clamp(cursor_offset, 0, length)
    end = start if selection_end is None else _clamp(selection_end, 0, length)
    if end < start:
        start, end = end, start
    return start, end


def get_local_context(
    document: str, start: int, end: int, local_window: int
) -> Tuple[str, str, int, int]:
    """
    Extract the text around a cursor or selection.

    Args:
        document: Full document text
        start: Cursor offset, or selection start
        end: Cursor offset, or selection end
        local_window: Total characters; half is taken on each side

    Returns:
        (before, after, window_start, window_end)
    """
    half = max(0, local_window) // 2
    window_start = max(0, start - half)
    window_end = min(len(document), end + half)
    return document[window_start:start], document[end:window_end], window_start, window_end


def score_sections(
    query: str, sections: Sequence[DocumentSection]
) -> List[Tuple[DocumentSection, float]]:
    """
    Score sections against a query with a vocabulary trained on both.

    Returns:
        (section, score) pairs with a positive score, best first; ties keep
        document order
    """
    if not sections or not query.strip():
        return []

    embedder = LocalEmbedder()
    embedder.train([query] + [section.text for section in sections])
    query_vec = embedder.embed(query)

    scored: List[Tuple[DocumentSection, float]] = []
    for section in sections:
        score = cosine_similarity(query_vec, embedder.embed(section.text))
        if score > 0:
            scored.append((section, score))

    scored.sort(key=lambda pair: pair[1], reverse=True)
    logger.debug(
        "Scored %d sections over %d terms, %d overlap the local window",
        len(sections),
        embedder.vocabulary_size(),
        len(scored),
    )
    return scored


def remove_duplicates(
    ranked: Sequence[Tuple[DocumentSection, float]], prefix_length: int
) -> List[Tuple[DocumentSection, float]]:
    """Drop sections whose leading characters match an earlier kept section."""
    seen = set()
    unique: List[Tuple[DocumentSection, float]] = []
    for section, score in ranked:
        key = fingerprint(section.text, prefix_length)
        if key in seen:
            continue
        seen.add(key)
        unique.append((section, score))
    return unique


def assemble_context(
    document: str,
    cursor_offset: int,
    options: Optional[ContextOptions] = None,
    *,
    selection_end: Optional[int] = None,
) -> ContextBundle:
    """
    Assemble a bounded context bundle for the cursor or selection.

    Args:
        document: Full document text (never modified)
        cursor_offset: Cursor position, or selection start
        options: Assembly options
        selection_end: End of the selected range, if any; the selection
            itself is excluded from both the local window and the sections

    Returns:
        A ContextBundle; empty parts rather than errors for degenerate input
    """
    options = options or DEFAULT_CONTEXT_OPTIONS
    document = document or ""

    start, end = _cursor_range(document, cursor_offset, selection_end)
    before, after, window_start, window_end = get_local_context(
        document, start, end, options.local_window
    )
    headings = build_heading_index(document)
    heading = heading_before_cursor(headings, start)

    if not options.enable_relevance_scoring or options.max_related_sections == 0:
        return ContextBundle(local_before=before, local_after=after, nearest_heading=heading)

    sections = split_sections(document, 0, window_start, headings) + split_sections(
        document, window_end, len(document), headings
    )
    ranked = score_sections(before + after, sections)

    # Over-select so deduplication doesn't starve the final list.
    pool = ranked[: options.max_related_sections * 2]
    if options.enable_deduplication:
        pool = remove_duplicates(pool, options.dedup_prefix_length)

    related = tuple(
        RelatedSection(
            text=compress_section(section.text, options.max_section_length),
            score=score,
            start_offset=section.start_offset,
            end_offset=section.end_offset,
            heading=section.nearest_heading,
        )
        for section, score in pool[: options.max_related_sections]
    )

    return ContextBundle(
        local_before=before,
        local_after=after,
        related_sections=related,
        nearest_heading=heading,
        section_count=len(sections),
    )


def _cursor_note(before: str, after: str) -> str:
    last_words = " ".join(before.split()[-5:])
    next_words = " ".join(after.split()[:5])
    if last_words and next_words:
        return (
            "Note: The cursor sits between existing text. Generate text that continues "
            "naturally from the context before it and leads into the context after it."
        )
    if last_words:
        return f'CURSOR AT END: Your text will continue after "...{last_words}"'
    if next_words:
        return f'CURSOR AT START: Your text will come before "{next_words}..."'
    return ""


def format_context_for_prompt(bundle: ContextBundle, include_related: bool = True) -> str:
    """
    Format a context bundle as a prompt section.

    Args:
        bundle: Assembled context
        include_related: Whether to list related sections

    Returns:
        Delimited blocks joined by blank lines; empty string for an empty bundle
    """
    parts: List[str] = []

    if bundle.local_before.strip() or bundle.local_after.strip():
        parts.append(f"CONTEXT BEFORE CURSOR:\n{bundle.local_before or START_PLACEHOLDER}")
        parts.append(f"CONTEXT AFTER CURSOR:\n{bundle.local_after or END_PLACEHOLDER}")
        note = _cursor_note(bundle.local_before, bundle.local_after)
        if note:
            parts.append(note)

    if include_related and bundle.related_sections:
        lines = ["RELATED SECTIONS FROM DOCUMENT (for context and consistency):"]
        for i, section in enumerate(bundle.related_sections, start=1):
            lines.append(f"{i}. {section.text.strip()}")
        parts.append("\n".join(lines))

    if bundle.nearest_heading:
        parts.append(f"CURRENT SECTION: {bundle.nearest_heading}")

    return "\n\n".join(parts)
