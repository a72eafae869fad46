"""Keyword, vector and hybrid search."""

from mnemo.search.fts import ScoredHit, bm25_rank_to_score, build_fts_query, search_fts
from mnemo.search.hybrid import apply_rank_extensions, merge_hybrid_results
from mnemo.search.text import SNIPPET_MAX_CHARS, truncate_utf16_safe
from mnemo.search.vector import search_vector

__all__ = [
    "SNIPPET_MAX_CHARS",
    "ScoredHit",
    "apply_rank_extensions",
    "bm25_rank_to_score",
    "build_fts_query",
    "merge_hybrid_results",
    "search_fts",
    "search_vector",
    "truncate_utf16_safe",
]
