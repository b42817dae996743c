from __future__ import annotations

import re
from typing import Iterable, List

_WS_RE = re.compile(r"[ \t\u00A0\u202F]+")  # включая NBSP и узкий NBSP
_ZERO_WIDTH_RE = re.compile(r"[\u200B\u200C\u200D\uFEFF]")


def normalize_line(s: str) -> str:
    s = s.replace("\r", "")
    s = _ZERO_WIDTH_RE.sub("", s)
    s = _WS_RE.sub(" ", s)
    return s.strip()


def normalize_lines(lines: Iterable[str]) -> List[str]:
    out: List[str] = []
    for ln in lines:
        ln = normalize_line(ln)
        if ln != "":
            out.append(ln)
    return out


def split_transcript(text: str) -> List[str]:
    """Raw extracted text -> non-empty trimmed lines."""
    return normalize_lines((text or "").split("\n"))
