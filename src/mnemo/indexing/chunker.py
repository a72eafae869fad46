"""Line-based markdown chunker with carried overlap.

Token sizes are approximated as characters / 4, the same approximation the
rest of mnemo uses, so no tokenizer dependency is required.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

_CHARS_PER_TOKEN = 4
_MIN_CHUNK_CHARS = 32


@dataclass(frozen=True)
class MemoryChunk:
    """A contiguous slice of a file.

    Attributes:
        start_line: First line of the slice (1-indexed).
        end_line: Last line of the slice (inclusive).
        text: The lines joined with ``\\n``.
        hash: sha256 hex digest of ``text``.
    """

    start_line: int
    end_line: int
    text: str
    hash: str


def hash_text(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def chunk_markdown(content: str, tokens: int, overlap: int) -> list[MemoryChunk]:
    """Split *content* into size-bounded chunks of whole lines.

    Lines accumulate until the next one would push the buffer past the
    character budget; the buffer is then emitted and the next buffer starts
    with trailing lines of the emitted chunk totalling at least the overlap
    budget. A line that alone exceeds the budget becomes its own chunk,
    unsplit.

    Args:
        content: Full file text.
        tokens: Approximate tokens per chunk (budget = max(32, tokens * 4) chars).
        overlap: Approximate tokens carried into the next chunk.

    Returns:
        Chunks in file order. Empty input yields an empty list. Whitespace-only
        chunks are kept; callers filter them.
    """
    if not content:
        return []

    max_chars = max(_MIN_CHUNK_CHARS, tokens * _CHARS_PER_TOKEN)
    overlap_chars = max(0, overlap * _CHARS_PER_TOKEN)
    chunks: list[MemoryChunk] = []

    # (line, line_no) pairs; each line costs len(line) + 1 for its newline.
    current: list[tuple[str, int]] = []
    current_chars = 0

    def flush() -> None:
        if not current:
            return
        text = "\n".join(line for line, _ in current)
        chunks.append(MemoryChunk(current[0][1], current[-1][1], text, hash_text(text)))

    def carry_overlap() -> None:
        nonlocal current, current_chars
        if overlap_chars <= 0:
            current, current_chars = [], 0
            return
        kept: list[tuple[str, int]] = []
        acc = 0
        for entry in reversed(current):
            acc += len(entry[0]) + 1
            kept.insert(0, entry)
            if acc >= overlap_chars:
                break
        current, current_chars = kept, acc

    for index, line in enumerate(content.split("\n")):
        line_no = index + 1
        line_size = len(line) + 1

        if line_size > max_chars:
            if current:
                flush()
                carry_overlap()
            chunks.append(MemoryChunk(line_no, line_no, line, hash_text(line)))
            continue

        if current and current_chars + line_size > max_chars:
            flush()
            carry_overlap()

        current.append((line, line_no))
        current_chars += line_size

    flush()
    return chunks
