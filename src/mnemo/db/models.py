"""Row models for the memory index database."""

from __future__ import annotations

import json
from dataclasses import dataclass, field


@dataclass
class FileRecord:
    path: str
    hash: str
    mtime: int
    size: int
    source: str = "memory"
    identity: str = ""


@dataclass
class ChunkRecord:
    id: str
    path: str
    start_line: int
    end_line: int
    hash: str
    model: str
    text: str
    updated_at: int
    embedding: list[float] = field(default_factory=list)
    source: str = "memory"
    identity: str = ""

    @property
    def embedding_json(self) -> str:
        return json.dumps(self.embedding)


@dataclass
class SearchRow:
    """A raw hit from the keyword or vector index, before scoring."""

    id: str
    path: str
    start_line: int
    end_line: int
    text: str
    value: float  # bm25 rank (lower is better) or cosine distance
