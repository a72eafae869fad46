"""Per-file indexing: chunk, embed, and replace the file's rows as a set."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from mnemo.config import CacheCfg, ChunkingCfg
from mnemo.db.models import ChunkRecord, FileRecord
from mnemo.db.repository import Repository
from mnemo.embeddings.base import EmbeddingProvider
from mnemo.embeddings.batch import DEFAULT_BATCH_SIZE, DEFAULT_CONCURRENCY
from mnemo.embeddings.pipeline import embed_chunks
from mnemo.indexing.chunker import MemoryChunk, chunk_markdown, hash_text
from mnemo.indexing.files import FileEntry

logger = logging.getLogger(__name__)

# Model tag for rows written without an embedding provider.
KEYWORD_ONLY_MODEL = "fts"


@dataclass
class EmbeddingContext:
    """Everything the indexer needs to embed chunks.

    Attributes:
        provider: The embedding provider.
        provider_key: Cache partition for this provider configuration.
        cache: Cache policy.
        ensure_ready: Called with the embedding width before the first vector
            insert of a file; returns False when vector rows must be skipped.
    """

    provider: EmbeddingProvider
    provider_key: str
    cache: CacheCfg
    ensure_ready: Callable[[int], bool]
    batch_size: int = DEFAULT_BATCH_SIZE
    concurrency: int = DEFAULT_CONCURRENCY


def build_chunk_id(source: str, path: str, chunk: MemoryChunk, model: str) -> str:
    """Deterministic chunk id; equal inputs give equal ids across runs."""
    return hash_text(f"{source}:{path}:{chunk.start_line}:{chunk.end_line}:{chunk.hash}:{model}")


def index_memory_file(
    repo: Repository,
    entry: FileEntry,
    source: str,
    identity: str,
    chunking: ChunkingCfg,
    fts_available: bool,
    embeddings: EmbeddingContext | None = None,
) -> int:
    """Reindex one file inside a single transaction.

    Order: delete vec rows, FTS rows, chunk rows; chunk and embed; insert
    chunk rows, FTS rows, vec rows (non-empty embeddings only); upsert the
    file record. Any failure rolls the file back to its previous rows.

    Returns:
        Number of chunks written.

    Raises:
        EmbeddingError: If the provider fails; the transaction is rolled back.
        OSError: If the file cannot be read.
    """
    content = entry.abs_path.read_text(encoding="utf-8", errors="replace")
    chunks = [
        c for c in chunk_markdown(content, chunking.tokens, chunking.overlap) if c.text.strip()
    ]
    model = embeddings.provider.model if embeddings else KEYWORD_ONLY_MODEL
    now = int(time.time() * 1000)

    with repo.transaction():
        repo.delete_path_rows(entry.path, source, identity, fts=fts_available)

        vectors: list[list[float]] = [[] for _ in chunks]
        if embeddings is not None and chunks:
            _, vectors = embed_chunks(
                repo.conn,
                embeddings.provider,
                embeddings.provider_key,
                chunks,
                embeddings.cache,
                batch_size=embeddings.batch_size,
                concurrency=embeddings.concurrency,
            )

        # Overlap carried past an oversized line can repeat a chunk; ids must be unique.
        unique: dict[str, ChunkRecord] = {}
        for chunk, vector in zip(chunks, vectors):
            chunk_id = build_chunk_id(source, entry.path, chunk, model)
            if chunk_id in unique:
                continue
            unique[chunk_id] = ChunkRecord(
                id=chunk_id,
                path=entry.path,
                source=source,
                identity=identity,
                start_line=chunk.start_line,
                end_line=chunk.end_line,
                hash=chunk.hash,
                model=model,
                text=chunk.text,
                embedding=vector,
                updated_at=now,
            )
        records = list(unique.values())

        for record in records:
            repo.insert_chunk(record)
        if fts_available:
            for record in records:
                repo.insert_fts(record)

        vector_ready: bool | None = None
        for record in records:
            if not record.embedding:
                continue
            if vector_ready is None:
                vector_ready = embeddings is not None and embeddings.ensure_ready(len(record.embedding))
            if not vector_ready:
                break
            repo.insert_vec(record.id, record.embedding)

        repo.upsert_file(
            FileRecord(
                path=entry.path,
                source=source,
                identity=identity,
                hash=entry.hash,
                mtime=entry.mtime,
                size=entry.size,
            )
        )

    logger.debug("indexed %s: %d chunks (model=%s)", entry.path, len(records), model)
    return len(records)
