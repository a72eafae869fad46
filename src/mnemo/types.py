"""Public result and option types shared by managers, the worker, and the CLI.

Every type converts to and from plain dicts so it can cross the worker pipe
and be printed as JSON.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any


@dataclass
class SearchResult:
    """One ranked snippet.

    Attributes:
        path: Absolute path of the memory file.
        start_line: First line of the chunk (1-indexed).
        end_line: Last line of the chunk (inclusive).
        score: Relevance in [0, 1] for a single mode; a weighted sum in hybrid mode.
        snippet: Chunk text, truncated to the snippet budget.
        source: Corpus tag ('memory').
        identity: Owning identity, set by cross-identity search.
    """

    path: str
    start_line: int
    end_line: int
    score: float
    snippet: str
    source: str = "memory"
    identity: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SearchResult:
        return cls(**data)


@dataclass
class GetResult:
    path: str
    text: str

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass
class QueryOptions:
    """Per-call overrides of the configured query defaults.

    Attributes:
        max_results: Overrides query.max_results.
        min_score: Overrides query.min_score.
        scope: 'self', 'agent' (requires target_identity) or 'all'.
        target_identity: Identity searched when scope is 'agent'.
    """

    max_results: int | None = None
    min_score: float | None = None
    scope: str | None = None
    target_identity: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> QueryOptions:
        return cls(**(data or {}))


@dataclass
class SyncReport:
    """Outcome of one sync() call.

    ``ran`` is False when the call was skipped because another sync was in
    flight, and ``error`` holds the message of a failed pass.
    """

    reason: str = ""
    ran: bool = True
    indexed: list[str] = field(default_factory=list)
    skipped: int = 0
    removed: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncReport:
        return cls(**data)


@dataclass
class IndexStatus:
    identity: str
    db_path: str
    memory_dir: str
    dirty: bool
    files: int = 0
    chunks: int = 0
    fts_rows: int = 0
    vector_rows: int = 0
    fts_available: bool = False
    fts_reason: str | None = None
    vector_available: bool = False
    vector_reason: str | None = None
    provider: str | None = None
    model: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IndexStatus:
        return cls(**data)
