"""
Detection and stripping of simulated (placeholder) generation payloads.

A backend without usable credentials answers with a payload that starts with
``SIMULATED_MARKER`` followed by a short header block and a blank line; the
placeholder body follows. Both the orchestrator and the draft editor run text
through here so the header never reaches a chapter.
"""

import re
from typing import NamedTuple, Optional

SIMULATED_MARKER = "#SIMULATED_RESPONSE#"

# First blank line: a newline followed by an all-whitespace line.
_BLANK_LINE_RE = re.compile(r"\r?\n[ \t]*\r?\n")


class ClassifiedResponse(NamedTuple):
    simulated: bool
    content: str


def is_simulated(raw: Optional[str]) -> bool:
    return isinstance(raw, str) and raw.lstrip().startswith(SIMULATED_MARKER)


def strip_simulated_header(raw: Optional[str]) -> str:
    """
    Remove the simulated marker and its header block.

    Everything from the marker through the first blank line after it is
    dropped. A marker without any blank line means the whole payload is
    header. Leading markers are removed repeatedly, so applying this twice
    gives the same result as applying it once.
    """
    text = raw or ""
    while is_simulated(text):
        text = text.lstrip()
        match = _BLANK_LINE_RE.search(text, len(SIMULATED_MARKER))
        if match is None:
            return ""
        text = text[match.end():]
    return text


def classify_response(raw: Optional[str]) -> ClassifiedResponse:
    if not is_simulated(raw):
        return ClassifiedResponse(simulated=False, content=raw or "")
    return ClassifiedResponse(simulated=True, content=strip_simulated_header(raw))


def build_simulated_payload(header: str, body: str) -> str:
    header_lines = [line for line in (header or "").splitlines() if line.strip()]
    header_block = "\n".join([SIMULATED_MARKER, *header_lines])
    return f"{header_block}\n\n{body}"
