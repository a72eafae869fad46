"""Snippet truncation measured in UTF-16 code units.

Hosts measure strings in UTF-16 units, so the snippet budget is counted the
same way. A character outside the Basic Multilingual Plane costs two units
and is either kept whole or dropped, never split.
"""

from __future__ import annotations

SNIPPET_MAX_CHARS = 400


def utf16_len(text: str) -> int:
    return sum(2 if ord(ch) > 0xFFFF else 1 for ch in text)


def truncate_utf16_safe(text: str, max_units: int) -> str:
    """Return the longest prefix of *text* that fits in *max_units* UTF-16 units."""
    limit = max(0, int(max_units))
    if len(text) <= limit // 2 or utf16_len(text) <= limit:
        return text
    used = 0
    for index, ch in enumerate(text):
        used += 2 if ord(ch) > 0xFFFF else 1
        if used > limit:
            return text[:index]
    return text
