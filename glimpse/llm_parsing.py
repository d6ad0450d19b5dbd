from __future__ import annotations

import re
from typing import List

from glimpse.errors import UnparsableResponse

# Frameworks whose answer is free-form prose rather than a code block
RAW_TEXT_FRAMEWORKS = {"analysis"}

# Markers the prompt templates wrap around the delimited code block
RESERVED_MARKERS = ("explainfiton", "explanation")

_TRIPLE_QUOTE_RE = re.compile(r"'''([\s\S]*?)'''")
_FENCE_RE = re.compile(r"```(?:\w+)?\n([\s\S]*?)```")
_LABEL_RE = re.compile(r"^[A-Za-z\s]+:")


def _delimited_block(text: str) -> str:
    m = _TRIPLE_QUOTE_RE.search(text)
    if m and m.group(1):
        return m.group(1).strip()
    return ""


def _fenced_block(text: str) -> str:
    m = _FENCE_RE.search(text)
    if m and m.group(1):
        return m.group(1).strip()
    return ""


def _code_like_lines(text: str) -> List[str]:
    """Keep the lines that do not look like prose around the code."""
    keep: List[str] = []
    for line in text.split("\n"):
        if not line.strip():
            continue
        if line.startswith(RESERVED_MARKERS):
            continue
        if _LABEL_RE.match(line):
            continue
        keep.append(line)
    return keep


def extract_code(raw_text: str, framework: str = "") -> str:
    """Pull the code block out of a model answer.

    Strategy, first hit wins:
    - text between a ''' ... ''' pair;
    - a ``` fenced block, language tag optional;
    - every line that is not blank, not a reserved marker and not a
      "Label:" prose line.
    The analysis framework carries prose, so its text is returned untouched.
    Raises UnparsableResponse when nothing survives.
    """
    text = raw_text or ""
    if framework in RAW_TEXT_FRAMEWORKS:
        return text

    code = _delimited_block(text)
    if code:
        return code
    code = _fenced_block(text)
    if code:
        return code

    lines = _code_like_lines(text)
    if lines:
        code = "\n".join(lines).strip()
        if code:
            return code
    raise UnparsableResponse()
