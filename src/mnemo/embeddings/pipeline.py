"""Chunk embedding pipeline: input-size guard, cache, batch runner."""

from __future__ import annotations

import logging
import sqlite3

from mnemo.config import CacheCfg
from mnemo.embeddings.base import EmbeddingProvider
from mnemo.embeddings.batch import DEFAULT_BATCH_SIZE, DEFAULT_CONCURRENCY, run_embedding_batches
from mnemo.embeddings.cache import EmbeddingCache
from mnemo.indexing.chunker import MemoryChunk, hash_text

logger = logging.getLogger(__name__)

DEFAULT_MAX_INPUT_TOKENS = 2048
_CHARS_PER_TOKEN = 4


def max_input_chars(provider: EmbeddingProvider) -> int:
    tokens = provider.max_input_tokens or DEFAULT_MAX_INPUT_TOKENS
    return tokens * _CHARS_PER_TOKEN


def enforce_max_input(provider: EmbeddingProvider, chunks: list[MemoryChunk]) -> list[MemoryChunk]:
    """Return the chunks as they should be embedded.

    A chunk longer than the provider's input budget is truncated to the budget
    and its hash recomputed over the truncated text, so the cache never mixes
    full and truncated inputs. Line ranges are kept. The caller stores the
    original chunk text; only the embedding input is shortened.
    """
    budget = max_input_chars(provider)
    limited: list[MemoryChunk] = []
    for chunk in chunks:
        if len(chunk.text) <= budget:
            limited.append(chunk)
            continue
        text = chunk.text[:budget]
        logger.debug(
            "truncating embedding input for lines %d-%d (%d > %d chars)",
            chunk.start_line,
            chunk.end_line,
            len(chunk.text),
            budget,
        )
        limited.append(MemoryChunk(chunk.start_line, chunk.end_line, text, hash_text(text)))
    return limited


def embed_chunks(
    conn: sqlite3.Connection,
    provider: EmbeddingProvider,
    provider_key: str,
    chunks: list[MemoryChunk],
    cache_cfg: CacheCfg,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> tuple[list[MemoryChunk], list[list[float]]]:
    """Resolve one embedding per chunk, cache first.

    Returns:
        ``(limited_chunks, embeddings)`` aligned index-for-index with *chunks*.

    Raises:
        EmbeddingError: Propagated from the provider.
    """
    limited = enforce_max_input(provider, chunks)
    embeddings: list[list[float]] = [[] for _ in limited]
    cache = EmbeddingCache(conn, provider.id, provider.model, provider_key) if cache_cfg.enabled else None

    pending_texts: list[str] = []
    pending_indices: list[int] = []
    for i, chunk in enumerate(limited):
        if cache is not None:
            cached = cache.read(chunk.hash)
            if cached is not None:
                embeddings[i] = cached
                continue
        pending_texts.append(chunk.text)
        pending_indices.append(i)

    if not pending_texts:
        return limited, embeddings

    logger.debug("embedding %d of %d chunks (%d cached)", len(pending_texts), len(limited), len(limited) - len(pending_texts))
    embedded = run_embedding_batches(pending_texts, batch_size, concurrency, provider.embed_batch)
    for index, embedding in zip(pending_indices, embedded):
        embeddings[index] = embedding
        if cache is not None:
            cache.write(limited[index].hash, embedding)

    if cache is not None:
        cache.prune(cache_cfg.max_entries)

    return limited, embeddings
