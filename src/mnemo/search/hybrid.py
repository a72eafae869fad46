"""Weighted fusion of vector and keyword hits.

score = vector_weight * vector_score + text_weight * text_score, where a
chunk missing from one side scores 0 on that side.
"""

from __future__ import annotations

from dataclasses import dataclass

from mnemo.config import HybridCfg
from mnemo.search.fts import ScoredHit
from mnemo.types import SearchResult

MAX_CANDIDATES = 200


@dataclass
class _Merged:
    hit: ScoredHit
    vector_score: float = 0.0
    text_score: float = 0.0


def candidate_limit(max_results: int, multiplier: float) -> int:
    """Candidates fetched per side: ``min(200, max(1, floor(max_results * multiplier)))``."""
    return min(MAX_CANDIDATES, max(1, int(max_results * multiplier)))


def merge_hybrid_results(
    vector: list[ScoredHit],
    keyword: list[ScoredHit],
    vector_weight: float,
    text_weight: float,
    source: str = "memory",
) -> list[SearchResult]:
    """Merge both hit lists by chunk id. Output is unsorted and unfiltered."""
    by_id: dict[str, _Merged] = {}
    for hit in vector:
        by_id[hit.id] = _Merged(hit, vector_score=hit.score)
    for hit in keyword:
        existing = by_id.get(hit.id)
        if existing is None:
            by_id[hit.id] = _Merged(hit, text_score=hit.score)
            continue
        existing.text_score = max(existing.text_score, hit.score)
        if not existing.hit.snippet and hit.snippet:
            existing.hit = hit

    return [
        SearchResult(
            path=m.hit.path,
            start_line=m.hit.start_line,
            end_line=m.hit.end_line,
            score=m.vector_score * vector_weight + m.text_score * text_weight,
            snippet=m.hit.snippet,
            source=source,
        )
        for m in by_id.values()
    ]


def apply_rank_extensions(results: list[SearchResult], hybrid: HybridCfg) -> list[SearchResult]:
    """Hook for diversity (MMR) and recency-decay re-ranking.

    Both knob sets are accepted in config; neither changes the ranking, so
    the input order is returned as is.
    """
    return list(results)


def to_results(hits: list[ScoredHit], source: str = "memory") -> list[SearchResult]:
    return [
        SearchResult(
            path=h.path,
            start_line=h.start_line,
            end_line=h.end_line,
            score=h.score,
            snippet=h.snippet,
            source=source,
        )
        for h in hits
    ]


def rank(results: list[SearchResult], min_score: float, max_results: int) -> list[SearchResult]:
    """Filter by *min_score*, sort by score descending, keep *max_results*."""
    kept = [r for r in results if r.score >= min_score]
    kept.sort(key=lambda r: r.score, reverse=True)
    return kept[:max_results]
