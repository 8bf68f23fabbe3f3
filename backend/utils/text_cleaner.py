"""
Text utilities for draft statistics and normalization of loosely-shaped
backend payloads (chapter ideas may come back as a string, a list or an
object).
"""

import json
import math
import re
from typing import Any, List

WORDS_PER_MINUTE: int = 200

# A blank line: newline, optional horizontal whitespace, newline.
_PARAGRAPH_SPLIT_RE = re.compile(r"\n[ \t\r]*\n")

# Top-level numbered list item: "1." or "2)" at the very start of a line.
_NUMBERED_ITEM_RE = re.compile(r"^(\d{1,2})[.)]\s+", re.MULTILINE)


def count_words(text: str) -> int:
    if not text:
        return 0
    return len([token for token in text.split() if token])


def split_paragraphs(text: str) -> List[str]:
    """Blank-line-delimited segments that contain non-whitespace content."""
    if not text:
        return []
    return [segment for segment in _PARAGRAPH_SPLIT_RE.split(text) if segment.strip()]


def estimate_reading_minutes(word_count: int, words_per_minute: int = WORDS_PER_MINUTE) -> int:
    if word_count <= 0:
        return 0
    return math.ceil(word_count / words_per_minute)


def split_numbered_items(text: str) -> List[str]:
    """
    Split a numbered list ("1. ...\\n2. ...") into one string per item.

    Multi-line items keep their continuation lines. Text that does not hold
    at least two numbered items is returned as a single stripped entry.
    """
    if not text or not text.strip():
        return []

    starts = [m.start() for m in _NUMBERED_ITEM_RE.finditer(text)]
    if len(starts) < 2:
        return [text.strip()]

    items: List[str] = []
    preamble = text[: starts[0]].strip()
    bounds = starts + [len(text)]
    for begin, end in zip(bounds, bounds[1:]):
        chunk = _NUMBERED_ITEM_RE.sub("", text[begin:end], count=1).strip()
        if chunk:
            items.append(chunk)
    if preamble and not items:
        return [preamble]
    return items


def stringify_payload(value: Any) -> str:
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(value)


def normalize_ideas(value: Any) -> List[str]:
    """
    Normalize an ideas payload into a list of non-empty strings.

    - ``None`` -> ``[]``
    - ``str`` -> split into numbered items when it is a numbered list
    - ``list``/``tuple`` -> one entry per element, non-strings stringified
    - ``dict`` with an ``ideas`` key -> normalized recursively
    - anything else -> stringified as a single entry
    """
    if value is None:
        return []
    if isinstance(value, str):
        return split_numbered_items(value)
    if isinstance(value, (list, tuple)):
        ideas: List[str] = []
        for item in value:
            text = stringify_payload(item).strip() if item is not None else ""
            if text:
                ideas.append(text)
        return ideas
    if isinstance(value, dict) and "ideas" in value:
        return normalize_ideas(value["ideas"])
    text = stringify_payload(value).strip()
    return [text] if text else []
