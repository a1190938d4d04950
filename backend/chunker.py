"""
Section segmentation for Inkwell.

Splits a document into paragraph-level sections on blank lines and heading
lines, keeps fenced code blocks whole, and compresses long sections down to
their leading sentences.
"""

from __future__ import annotations

import re
from bisect import bisect_left, bisect_right
from typing import Iterator, List, Optional, Sequence, Tuple

from models import DocumentSection, Heading

MAX_SECTION_CHARS = 1000
FINGERPRINT_LENGTH = 60

_MD_HEADING_RE = re.compile(r"^[ \t]{0,3}(#{1,6})[ \t]+(\S.*?)\s*$")
_CAPS_HEADING_RE = re.compile(r"^[A-Z][A-Z\s]{10,}$")
_SUBJECT_RE = re.compile(r"^subject:\s*(.+)$", re.IGNORECASE)
_FENCE_RE = re.compile(r"^[ \t]{0,3}(```|~~~)")
_SENTENCE_END_RE = re.compile(r"[.!?]+(?=\s|$)")


def clean_text(text: str) -> str:
    """Normalize line endings to \\n."""
    return (text or "").replace("\r\n", "\n").replace("\r", "\n")


def _lines(text: str, start: int = 0, end: Optional[int] = None) -> Iterator[Tuple[int, str]]:
    """Yield (absolute offset, line without newline) for text[start:end]."""
    end = len(text) if end is None else end
    pos = start
    while pos < end:
        newline = text.find("\n", pos, end)
        if newline == -1:
            yield pos, text[pos:end]
            return
        yield pos, text[pos:newline]
        pos = newline + 1


def _track_fence(fence: Optional[str], line: str) -> Tuple[Optional[str], bool]:
    """Advance fence state over one line. Returns (new state, line is code)."""
    fence_match = _FENCE_RE.match(line)
    if fence is not None:
        if fence_match and fence_match.group(1) == fence:
            return None, True
        return fence, True
    if fence_match:
        return fence_match.group(1), True
    return None, False


def fence_at(document: str, offset: int) -> Optional[str]:
    """Fence marker open at `offset`, or None outside fenced code."""
    fence: Optional[str] = None
    for line_start, line in _lines(document):
        if line_start >= offset:
            break
        fence, _ = _track_fence(fence, line)
    return fence


def parse_heading(line: str) -> Optional[Tuple[str, Optional[int]]]:
    """Return (title, level) if `line` is a heading. ALL-CAPS headings have no level."""
    match = _MD_HEADING_RE.match(line)
    if match:
        return match.group(2).strip(), len(match.group(1))
    stripped = line.strip()
    if _CAPS_HEADING_RE.match(stripped):
        return stripped, None
    return None


def build_heading_index(document: str) -> List[Heading]:
    """Collect every heading outside fenced code, in document order."""
    headings: List[Heading] = []
    fence: Optional[str] = None
    for offset, line in _lines(document):
        fence, is_code = _track_fence(fence, line)
        if is_code:
            continue
        parsed = parse_heading(line)
        if parsed:
            headings.append(Heading(offset=offset, title=parsed[0], level=parsed[1]))
    return headings


def nearest_heading(headings: Sequence[Heading], offset: int) -> Optional[str]:
    """Title of the last heading whose line starts at or before `offset`."""
    if not headings:
        return None
    idx = bisect_right([h.offset for h in headings], offset) - 1
    if idx < 0:
        return None
    return headings[idx].title


def heading_before_cursor(headings: Sequence[Heading], cursor: int) -> Optional[str]:
    """Title of the last heading whose line starts before `cursor`.

    A cursor at the very start of a heading line still belongs to the
    previous heading; one inside the heading line belongs to that heading.
    """
    idx = bisect_left([h.offset for h in headings], cursor) - 1
    if idx < 0:
        return None
    return headings[idx].title


def split_sections(
    document: str,
    start: int = 0,
    end: Optional[int] = None,
    headings: Optional[Sequence[Heading]] = None,
    max_section_chars: int = MAX_SECTION_CHARS,
) -> List[DocumentSection]:
    """
    Split document[start:end] into sections.

    Args:
        document: The full document (offsets stay document-absolute)
        start: First character to consider
        end: One past the last character to consider
        headings: Heading index of the whole document, so sections after
            `start` still see headings that precede it
        max_section_chars: Longer sections are split again on single newlines

    Returns:
        Sections in document order, heading-only sections omitted
    """
    end = len(document) if end is None else min(end, len(document))
    start = max(0, min(start, end))
    if headings is None:
        headings = build_heading_index(document)

    spans: List[Tuple[int, int]] = []
    span_start: Optional[int] = None
    span_end = start
    prose_end: Optional[int] = None
    # A range may begin inside a code block opened before it.
    fence = fence_at(document, start)
    if fence is not None:
        span_start = start

    def flush():
        nonlocal span_start
        if span_start is not None:
            spans.append((span_start, span_end))
        span_start = None

    for offset, line in _lines(document, start, end):
        line_end = offset + len(line)
        fence_match = _FENCE_RE.match(line)

        if fence is not None:
            span_end = line_end
            if fence_match and fence_match.group(1) == fence:
                fence = None
            continue

        if fence_match:
            prose_end = span_end if span_start is not None else None
            if span_start is None:
                span_start = offset
            span_end = line_end
            fence = fence_match.group(1)
            continue

        if not line.strip():
            flush()
            continue

        if parse_heading(line):
            flush()

        if span_start is None:
            span_start = offset
        span_end = line_end
    if fence is not None and end < len(document):
        # The code block runs past the range; keep only the text before it.
        if prose_end is None:
            span_start = None
        else:
            span_end = prose_end
    flush()

    sections: List[DocumentSection] = []
    for lo, hi in spans:
        for piece_start, piece_end in _refine_span(document, lo, hi, max_section_chars):
            raw = document[piece_start:piece_end]
            text = raw.strip()
            if not text or _is_heading_only(text):
                continue
            text_start = piece_start + (len(raw) - len(raw.lstrip()))
            sections.append(
                DocumentSection(
                    text=text,
                    start_offset=text_start,
                    end_offset=text_start + len(text),
                    nearest_heading=nearest_heading(headings, text_start),
                )
            )
    return sections


def _refine_span(
    document: str, start: int, end: int, max_section_chars: int
) -> List[Tuple[int, int]]:
    if end - start <= max_section_chars:
        return [(start, end)]
    # Very long blocks fall back to one section per line.
    return [(offset, offset + len(line)) for offset, line in _lines(document, start, end) if line.strip()]


def _is_heading_only(text: str) -> bool:
    lines = [ln for ln in text.splitlines() if ln.strip()]
    return len(lines) == 1 and parse_heading(lines[0]) is not None


def compress_section(text: str, max_length: int) -> str:
    """
    Shorten text to at most `max_length` characters.

    Prefers ending after the last sentence that fits, then at whitespace,
    and only cuts mid-word when neither is available.
    """
    if len(text) <= max_length:
        return text

    best = 0
    for match in _SENTENCE_END_RE.finditer(text):
        if match.end() > max_length:
            break
        best = match.end()
    if best > 0:
        return text[:best].rstrip()

    head = text[: max_length + 1]
    last_space = max(head.rfind(" "), head.rfind("\n"), head.rfind("\t"))
    if last_space > 0:
        candidate = text[:last_space].rstrip()
        if candidate:
            return candidate

    return text[:max_length]


def fingerprint(text: str, length: int = FINGERPRINT_LENGTH) -> str:
    """Leading characters used as a cheap duplicate key.

    Sections that merely share a long prefix (repeated boilerplate, for
    instance) collide; that approximation is intended.
    """
    return text.strip()[:length]


def extract_document_structure(document: str) -> List[str]:
    """List heading titles and email subject lines in document order."""
    document = clean_text(document)
    titles: List[str] = []
    fence: Optional[str] = None
    for _, line in _lines(document):
        fence, is_code = _track_fence(fence, line)
        if is_code:
            continue
        parsed = parse_heading(line)
        if parsed:
            titles.append(parsed[0])
            continue
        subject = _SUBJECT_RE.match(line.strip())
        if subject:
            titles.append(subject.group(1).strip())
    return titles
