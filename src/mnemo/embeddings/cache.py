"""Persistent embedding cache keyed by content hash.

Key: (provider id, model, provider key, chunk hash). Values are JSON arrays.
"""

from __future__ import annotations

import json
import sqlite3
import time

from mnemo.db.schema import EMBEDDING_CACHE_TABLE


class EmbeddingCache:
    """Cache rows for one (provider, model, provider_key) triple."""

    def __init__(self, conn: sqlite3.Connection, provider: str, model: str, provider_key: str) -> None:
        self._conn = conn
        self._key = (provider, model, provider_key)

    def read(self, chunk_hash: str) -> list[float] | None:
        row = self._conn.execute(
            f"""
            SELECT embedding FROM {EMBEDDING_CACHE_TABLE}
            WHERE provider = ? AND model = ? AND provider_key = ? AND hash = ?
            """,
            (*self._key, chunk_hash),
        ).fetchone()
        if row is None or not row["embedding"]:
            return None
        try:
            parsed = json.loads(row["embedding"])
        except ValueError:
            return None
        return parsed if isinstance(parsed, list) else None

    def write(self, chunk_hash: str, embedding: list[float]) -> None:
        self._conn.execute(
            f"""
            INSERT INTO {EMBEDDING_CACHE_TABLE}
                (provider, model, provider_key, hash, embedding, dims, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(provider, model, provider_key, hash) DO UPDATE SET
                embedding = excluded.embedding,
                dims = excluded.dims,
                updated_at = excluded.updated_at
            """,
            (*self._key, chunk_hash, json.dumps(embedding), len(embedding), int(time.time() * 1000)),
        )

    def count(self) -> int:
        row = self._conn.execute(
            f"""
            SELECT COUNT(*) FROM {EMBEDDING_CACHE_TABLE}
            WHERE provider = ? AND model = ? AND provider_key = ?
            """,
            self._key,
        ).fetchone()
        return row[0]

    def prune(self, max_entries: int) -> int:
        """Delete the oldest entries beyond *max_entries* (0 = unbounded).

        Returns:
            Number of rows deleted.
        """
        if max_entries <= 0:
            return 0
        excess = self.count() - max_entries
        if excess <= 0:
            return 0
        cur = self._conn.execute(
            f"""
            DELETE FROM {EMBEDDING_CACHE_TABLE}
            WHERE rowid IN (
                SELECT rowid FROM {EMBEDDING_CACHE_TABLE}
                WHERE provider = ? AND model = ? AND provider_key = ?
                ORDER BY updated_at ASC
                LIMIT ?
            )
            """,
            (*self._key, excess),
        )
        return cur.rowcount
