"""Tests for hybrid merging and ranking."""

from __future__ import annotations

import pytest

from mnemo.config import HybridCfg
from mnemo.search.fts import ScoredHit
from mnemo.search.hybrid import (
    MAX_CANDIDATES,
    apply_rank_extensions,
    candidate_limit,
    merge_hybrid_results,
    rank,
    to_results,
)
from mnemo.types import SearchResult


def _hit(id: str, score: float, snippet: str = "text") -> ScoredHit:
    return ScoredHit(id=id, path=f"/mem/{id}.md", start_line=1, end_line=2, score=score, snippet=snippet)


@pytest.mark.parametrize(
    ("max_results", "multiplier", "expected"),
    [
        (6, 4.0, 24),
        (100, 4.0, MAX_CANDIDATES),
        (1, 0.0, 1),
        (3, 1.5, 4),
    ],
)
def test_candidate_limit(max_results, multiplier, expected):
    assert candidate_limit(max_results, multiplier) == expected


def test_merge_combines_scores_by_id():
    merged = merge_hybrid_results([_hit("a", 0.8)], [_hit("a", 0.5)], 0.7, 0.3)
    assert len(merged) == 1
    assert merged[0].score == pytest.approx(0.8 * 0.7 + 0.5 * 0.3)


def test_merge_missing_side_scores_zero():
    merged = merge_hybrid_results([_hit("v", 0.9)], [_hit("k", 1.0)], 0.7, 0.3)
    scores = {r.path: r.score for r in merged}
    assert scores["/mem/v.md"] == pytest.approx(0.63)
    assert scores["/mem/k.md"] == pytest.approx(0.3)


def test_zero_text_weight_equals_vector_only():
    vector = [_hit("a", 0.9), _hit("b", 0.4)]
    keyword = [_hit("b", 1.0), _hit("c", 1.0)]
    merged = rank(merge_hybrid_results(vector, keyword, 1.0, 0.0), 0.0, 10)
    assert [(r.path, r.score) for r in merged[:2]] == [("/mem/a.md", 0.9), ("/mem/b.md", 0.4)]
    assert merged[2].score == 0.0


def test_zero_vector_weight_equals_keyword_only():
    vector = [_hit("a", 0.9)]
    keyword = [_hit("b", 1.0)]
    merged = rank(merge_hybrid_results(vector, keyword, 0.0, 1.0), 0.5, 10)
    assert [r.path for r in merged] == ["/mem/b.md"]


def test_merge_prefers_keyword_snippet_when_vector_has_none():
    merged = merge_hybrid_results([_hit("a", 0.5, snippet="")], [_hit("a", 1.0, snippet="kw")], 0.7, 0.3)
    assert merged[0].snippet == "kw"


def test_rank_filters_sorts_and_caps():
    results = [
        SearchResult("/a.md", 1, 1, 0.2, "a"),
        SearchResult("/b.md", 1, 1, 0.9, "b"),
        SearchResult("/c.md", 1, 1, 0.5, "c"),
        SearchResult("/d.md", 1, 1, 0.7, "d"),
    ]
    ranked = rank(results, 0.3, 2)
    assert [r.path for r in ranked] == ["/b.md", "/d.md"]


def test_rank_extensions_keep_order():
    results = [SearchResult("/a.md", 1, 1, 0.9, "a"), SearchResult("/b.md", 1, 1, 0.8, "b")]
    cfg = HybridCfg()
    cfg.mmr.enabled = True
    cfg.temporal_decay.enabled = True
    assert apply_rank_extensions(results, cfg) == results


def test_to_results_tags_source():
    out = to_results([_hit("a", 0.5)], "memory")
    assert out[0].source == "memory"
    assert out[0].identity is None
