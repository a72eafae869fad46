"""Keyword search over the FTS5 index (bm25 ranking)."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

from mnemo.db.repository import Repository
from mnemo.search.text import truncate_utf16_safe

# Unicode letters, digits and underscore.
_TOKEN_RE = re.compile(r"\w+", re.UNICODE)
_NON_FINITE_RANK = 999.0


@dataclass
class ScoredHit:
    """A chunk hit from one search mode, with that mode's score."""

    id: str
    path: str
    start_line: int
    end_line: int
    score: float
    snippet: str


def build_fts_query(raw: str) -> str | None:
    """Turn free text into an FTS5 AND-query of quoted literal tokens.

    Examples:
        'deploy the API' -> '"deploy" AND "the" AND "API"'
        '?!' -> None
    """
    tokens = [t.replace('"', "") for t in _TOKEN_RE.findall(raw)]
    tokens = [t for t in tokens if t]
    if not tokens:
        return None
    return " AND ".join(f'"{t}"' for t in tokens)


def bm25_rank_to_score(rank: float) -> float:
    """Map an FTS5 bm25 rank to a (0, 1] score; better ranks score higher."""
    # SQLite's bm25 is <= 0: every keyword hit scores 1.0, so hybrid's text side is constant.
    normalized = max(0.0, rank) if math.isfinite(rank) else _NON_FINITE_RANK
    return 1.0 / (1.0 + normalized)


def search_fts(
    repo: Repository,
    query: str,
    limit: int,
    min_score: float,
    snippet_max_chars: int,
    model: str | None = None,
) -> list[ScoredHit]:
    """Keyword search; hits below *min_score* are dropped."""
    if limit <= 0:
        return []
    fts_query = build_fts_query(query)
    if fts_query is None:
        return []
    hits = [
        ScoredHit(
            id=row.id,
            path=row.path,
            start_line=row.start_line,
            end_line=row.end_line,
            score=bm25_rank_to_score(row.value),
            snippet=truncate_utf16_safe(row.text, snippet_max_chars),
        )
        for row in repo.search_fts(fts_query, limit, model=model)
    ]
    return [h for h in hits if h.score >= min_score]
