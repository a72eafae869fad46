"""Nearest-neighbour search over the sqlite-vec index."""

from __future__ import annotations

from mnemo.db.repository import Repository
from mnemo.search.fts import ScoredHit
from mnemo.search.text import truncate_utf16_safe


def search_vector(
    repo: Repository,
    query_vec: list[float],
    limit: int,
    snippet_max_chars: int,
    model: str | None = None,
) -> list[ScoredHit]:
    """Return up to *limit* chunks, nearest first, scored ``1 - cosine distance``."""
    if not query_vec or limit <= 0:
        return []
    return [
        ScoredHit(
            id=row.id,
            path=row.path,
            start_line=row.start_line,
            end_line=row.end_line,
            score=1.0 - row.value,
            snippet=truncate_utf16_safe(row.text, snippet_max_chars),
        )
        for row in repo.search_vec(query_vec, limit, model=model)
    ]
