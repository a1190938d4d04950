"""Heuristic document and cursor analysis used to shape generation instructions."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from chunker import build_heading_index, clean_text, heading_before_cursor

_EMAIL_HEADER_RE = re.compile(r"^(subject|to|from|cc|bcc):", re.IGNORECASE | re.MULTILINE)
_EMAIL_ADDRESS_RE = re.compile(r"@[\w.-]+\.\w+")
_SALUTATION_RE = re.compile(r"^(dear|hi|hello|greetings)\b", re.IGNORECASE | re.MULTILINE)
_CLOSING_RE = re.compile(r"\b(sincerely|regards|best|yours)\b", re.IGNORECASE)
_MD_HEADING_LINE_RE = re.compile(r"^#{1,6}\s+.+$", re.MULTILINE)
_BULLET_RE = re.compile(r"^\s*[•\-*]\s+")
_NUMBERED_RE = re.compile(r"^\s*\d+\.\s+")
_CODE_FENCE_BLOCK_RE = re.compile(r"```[\s\S]*?```")
_CODE_KEYWORD_RE = re.compile(r"^(function|const|let|var|class|import|export|def|from)\b", re.MULTILINE)

DOCUMENT_TYPES = ("email", "letter", "article", "list", "code")


@dataclass(frozen=True)
class DocumentType:
    type: str
    confidence: float
    indicators: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class CursorContext:
    is_in_subject_line: bool = False
    is_in_heading: bool = False
    is_in_list: bool = False
    is_in_code_block: bool = False
    is_after_salutation: bool = False
    is_before_signature: bool = False
    nearest_heading: Optional[str] = None
    list_style: str = "none"  # bullet|numbered|none
    indent_level: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _is_caps_line(line: str) -> bool:
    stripped = line.strip()
    return len(stripped) > 3 and any(c.isalpha() for c in stripped) and stripped == stripped.upper()


def detect_document_type(text: str) -> DocumentType:
    """Guess what kind of document `text` is from surface patterns."""
    text = clean_text(text)
    lines = text.split("\n")
    first_lines = "\n".join(lines[:10])
    indicators: List[str] = []
    scores = dict.fromkeys(DOCUMENT_TYPES, 0.0)

    if _EMAIL_HEADER_RE.search(text):
        scores["email"] += 3
        indicators.append("email headers")
    if _EMAIL_ADDRESS_RE.search(text):
        scores["email"] += 1
        indicators.append("email addresses")

    if _SALUTATION_RE.search(first_lines):
        scores["letter"] += 2
        indicators.append("salutation")
    if _CLOSING_RE.search(text):
        scores["letter"] += 1
        indicators.append("closing")

    heading_count = len(_MD_HEADING_LINE_RE.findall(text))
    if heading_count:
        scores["article"] += heading_count
        indicators.append(f"{heading_count} markdown headings")
    caps_lines = sum(1 for line in lines if _is_caps_line(line))
    if caps_lines:
        scores["article"] += caps_lines * 0.5
        indicators.append(f"{caps_lines} all-caps headings")

    bullets = sum(1 for line in lines if _BULLET_RE.match(line))
    numbered = sum(1 for line in lines if _NUMBERED_RE.match(line))
    if bullets > 2:
        scores["list"] += bullets * 0.5
        indicators.append(f"{bullets} bullet points")
    if numbered > 2:
        scores["list"] += numbered * 0.5
        indicators.append(f"{numbered} numbered items")

    if _CODE_FENCE_BLOCK_RE.search(text):
        scores["code"] += 3
        indicators.append("code blocks")
    if _CODE_KEYWORD_RE.search(text):
        scores["code"] += 2
        indicators.append("code keywords")

    best = max(scores.values())
    if best == 0:
        return DocumentType(type="general", confidence=1.0, indicators=["no specific patterns"])

    # First type in declaration order wins a tie.
    doc_type = next(name for name in DOCUMENT_TYPES if scores[name] == best)
    return DocumentType(type=doc_type, confidence=min(best / 5, 1.0), indicators=indicators)


def analyze_cursor_context(text: str, cursor: int) -> CursorContext:
    """Describe where the cursor sits: heading, list, code block, email parts."""
    text = clean_text(text)
    cursor = max(0, min(int(cursor), len(text)))

    lines = text.split("\n")
    line_index = text.count("\n", 0, cursor)
    line = lines[line_index] if line_index < len(lines) else ""
    line_before = lines[line_index - 1] if line_index > 0 else ""
    line_after = lines[line_index + 1] if line_index + 1 < len(lines) else ""

    is_in_subject_line = bool(re.match(r"^subject:", line, re.IGNORECASE)) or (
        bool(re.match(r"^subject:", line_before, re.IGNORECASE)) and len(line.strip()) < 100
    )
    is_in_heading = bool(re.match(r"^#{1,6}\s+", line)) or (
        bool(line.strip()) and _is_caps_line(line)
    )

    if _BULLET_RE.match(line):
        list_style = "bullet"
    elif _NUMBERED_RE.match(line):
        list_style = "numbered"
    else:
        list_style = "none"

    # An odd number of fences before the cursor means we're inside one.
    is_in_code_block = text[:cursor].count("```") % 2 == 1

    indent = len(line) - len(line.lstrip(" \t"))

    return CursorContext(
        is_in_subject_line=is_in_subject_line,
        is_in_heading=is_in_heading,
        is_in_list=list_style != "none",
        is_in_code_block=is_in_code_block,
        is_after_salutation=bool(_SALUTATION_RE.match(line_before)),
        is_before_signature=bool(_CLOSING_RE.search(line_after)),
        nearest_heading=heading_before_cursor(build_heading_index(text), cursor),
        list_style=list_style,
        indent_level=indent,
    )


def build_context_instructions(doc_type: DocumentType, cursor: CursorContext) -> str:
    """Turn the analysis into bullet-style instructions for the generator."""
    instructions: List[str] = []

    if cursor.is_in_subject_line:
        instructions += [
            "Generate a VERY SHORT subject line (5-10 words maximum)",
            "Be concise and specific",
            "Do NOT write a full email or paragraph",
        ]
        return "\n- ".join(instructions)

    if cursor.is_in_heading:
        instructions += [
            "Generate a heading or title (one line only)",
            "Be concise and descriptive",
            "Do NOT write body text or paragraphs",
        ]
        return "\n- ".join(instructions)

    if cursor.is_in_list:
        kind = "bullet point" if cursor.list_style == "bullet" else "numbered"
        instructions += [f"Continue the {kind} list", "Each item should be brief (one line)"]
        return "\n- ".join(instructions)

    if cursor.is_in_code_block:
        instructions += ["Generate code only (no explanations)", "Match the coding style and language"]
        return "\n- ".join(instructions)

    if doc_type.type == "email":
        if cursor.is_after_salutation:
            instructions.append("Write the email body (2-3 paragraphs)")
        if cursor.is_before_signature:
            instructions += ["Write a closing paragraph", "Keep it brief and professional"]
    elif doc_type.type == "letter":
        instructions += ["Match formal letter style", "Use appropriate tone and structure"]
    elif doc_type.type == "article":
        if cursor.nearest_heading:
            instructions.append(f'Continue writing about: "{cursor.nearest_heading}"')
        instructions += ["Write in article/blog style", "Use clear paragraphs"]

    return "\n- ".join(instructions)
