"""Repository pattern for all memory index database operations.

Single interface for: file records, chunks, FTS5 rows, vec rows, and search.
Mutating methods do not commit; wrap them in ``transaction()`` so a file's
rows change as one unit.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager

from mnemo.db.models import ChunkRecord, FileRecord, SearchRow
from mnemo.db.schema import CHUNKS_TABLE, FILES_TABLE, FTS_TABLE, VECTOR_TABLE
from mnemo.db.vectors import serialize_embedding, vec_table_exists


class Repository:
    """Data access layer for the memory index.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see mnemo.db.schema.initialize).
        """
        self._conn = conn

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Commit on success, roll back on any exception."""
        with self._conn:
            yield

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def get_file(self, path: str, source: str = "memory", identity: str = "") -> FileRecord | None:
        row = self._conn.execute(
            f"""
            SELECT path, source, identity, hash, mtime, size FROM {FILES_TABLE}
            WHERE path = ? AND source = ? AND identity = ?
            """,
            (path, source, identity),
        ).fetchone()
        return _row_to_file(row) if row else None

    def list_file_paths(self, source: str = "memory", identity: str = "") -> list[str]:
        rows = self._conn.execute(
            f"SELECT path FROM {FILES_TABLE} WHERE source = ? AND identity = ? ORDER BY path",
            (source, identity),
        ).fetchall()
        return [r["path"] for r in rows]

    def upsert_file(self, record: FileRecord) -> None:
        self._conn.execute(
            f"""
            INSERT INTO {FILES_TABLE} (path, source, identity, hash, mtime, size)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(path, source, identity) DO UPDATE SET
                hash = excluded.hash,
                mtime = excluded.mtime,
                size = excluded.size
            """,
            (record.path, record.source, record.identity, record.hash, record.mtime, record.size),
        )

    def delete_file(self, path: str, source: str = "memory", identity: str = "") -> None:
        self._conn.execute(
            f"DELETE FROM {FILES_TABLE} WHERE path = ? AND source = ? AND identity = ?",
            (path, source, identity),
        )

    # ------------------------------------------------------------------
    # Chunks + mirrors
    # ------------------------------------------------------------------

    def chunk_ids_for_path(self, path: str, source: str = "memory", identity: str = "") -> list[str]:
        rows = self._conn.execute(
            f"SELECT id FROM {CHUNKS_TABLE} WHERE path = ? AND source = ? AND identity = ?",
            (path, source, identity),
        ).fetchall()
        return [r["id"] for r in rows]

    def delete_path_rows(
        self,
        path: str,
        source: str = "memory",
        identity: str = "",
        *,
        fts: bool,
    ) -> int:
        """Delete a path's vec rows, then FTS rows, then chunk rows.

        Returns the number of chunk rows removed.
        """
        ids = self.chunk_ids_for_path(path, source, identity)
        if ids:
            self._delete_mirrors(ids, fts=fts)
        cur = self._conn.execute(
            f"DELETE FROM {CHUNKS_TABLE} WHERE path = ? AND source = ? AND identity = ?",
            (path, source, identity),
        )
        return cur.rowcount

    def _delete_mirrors(self, ids: list[str], *, fts: bool) -> None:
        # vec0 deletes by primary key only.
        if vec_table_exists(self._conn):
            self._conn.executemany(
                f"DELETE FROM {VECTOR_TABLE} WHERE id = ?", [(i,) for i in ids]
            )
        if fts:
            placeholders = ",".join("?" * len(ids))
            self._conn.execute(
                f"DELETE FROM {FTS_TABLE} WHERE id IN ({placeholders})", ids  # noqa: S608
            )

    def insert_chunk(self, chunk: ChunkRecord) -> None:
        self._conn.execute(
            f"""
            INSERT INTO {CHUNKS_TABLE}
                (id, path, source, identity, start_line, end_line, hash, model, text, embedding, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                hash = excluded.hash,
                model = excluded.model,
                text = excluded.text,
                embedding = excluded.embedding,
                updated_at = excluded.updated_at
            """,
            (
                chunk.id,
                chunk.path,
                chunk.source,
                chunk.identity,
                chunk.start_line,
                chunk.end_line,
                chunk.hash,
                chunk.model,
                chunk.text,
                chunk.embedding_json,
                chunk.updated_at,
            ),
        )

    def insert_fts(self, chunk: ChunkRecord) -> None:
        self._conn.execute(
            f"""
            INSERT INTO {FTS_TABLE} (text, id, path, source, model, start_line, end_line)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                chunk.text,
                chunk.id,
                chunk.path,
                chunk.source,
                chunk.model,
                chunk.start_line,
                chunk.end_line,
            ),
        )

    def insert_vec(self, chunk_id: str, embedding: list[float]) -> None:
        """Insert an embedding keyed by chunk id (table must exist)."""
        self._conn.execute(
            f"INSERT INTO {VECTOR_TABLE} (id, embedding) VALUES (?, ?)",
            (chunk_id, serialize_embedding(embedding)),
        )

    def clear_identity(self, identity: str, *, fts: bool) -> int:
        """Remove every file and chunk row belonging to *identity*."""
        rows = self._conn.execute(
            f"SELECT id FROM {CHUNKS_TABLE} WHERE identity = ?", (identity,)
        ).fetchall()
        ids = [r["id"] for r in rows]
        if ids:
            self._delete_mirrors(ids, fts=fts)
        cur = self._conn.execute(f"DELETE FROM {CHUNKS_TABLE} WHERE identity = ?", (identity,))
        self._conn.execute(f"DELETE FROM {FILES_TABLE} WHERE identity = ?", (identity,))
        return cur.rowcount

    # ------------------------------------------------------------------
    # Counts
    # ------------------------------------------------------------------

    def count_rows(self, *, fts: bool) -> dict[str, int]:
        """Row counts per table; absent optional tables count as 0."""
        counts = {
            FILES_TABLE: self._count(FILES_TABLE),
            CHUNKS_TABLE: self._count(CHUNKS_TABLE),
            FTS_TABLE: self._count(FTS_TABLE) if fts else 0,
            VECTOR_TABLE: self._count(VECTOR_TABLE) if vec_table_exists(self._conn) else 0,
        }
        return counts

    def _count(self, table: str) -> int:
        return self._conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]  # noqa: S608

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search_fts(self, fts_query: str, limit: int, model: str | None = None) -> list[SearchRow]:
        """BM25 full-text search. Returns rows best-first.

        bm25() returns negative values; lower (more negative) = better match.
        The raw value is returned so callers can map it to a score.
        """
        model_clause = " AND model = ?" if model else ""
        params: list[object] = [fts_query]
        if model:
            params.append(model)
        params.append(limit)
        rows = self._conn.execute(
            f"""
            SELECT id, path, start_line, end_line, text, bm25({FTS_TABLE}) AS rank
            FROM {FTS_TABLE}
            WHERE {FTS_TABLE} MATCH ?{model_clause}
            ORDER BY rank ASC
            LIMIT ?
            """,
            params,
        ).fetchall()
        return [
            SearchRow(
                id=r["id"],
                path=r["path"],
                start_line=int(r["start_line"]),
                end_line=int(r["end_line"]),
                text=r["text"],
                value=r["rank"],
            )
            for r in rows
        ]

    def search_vec(
        self, embedding: list[float], limit: int, model: str | None = None
    ) -> list[SearchRow]:
        """Nearest-neighbour search by cosine distance, nearest first."""
        model_clause = " WHERE c.model = ?" if model else ""
        params: list[object] = [serialize_embedding(embedding)]
        if model:
            params.append(model)
        params.append(limit)
        rows = self._conn.execute(
            f"""
            SELECT c.id, c.path, c.start_line, c.end_line, c.text,
                   vec_distance_cosine(v.embedding, ?) AS dist
            FROM {VECTOR_TABLE} v
            JOIN {CHUNKS_TABLE} c ON c.id = v.id{model_clause}
            ORDER BY dist ASC
            LIMIT ?
            """,
            params,
        ).fetchall()
        return [
            SearchRow(
                id=r["id"],
                path=r["path"],
                start_line=r["start_line"],
                end_line=r["end_line"],
                text=r["text"],
                value=r["dist"],
            )
            for r in rows
        ]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_file(row: sqlite3.Row) -> FileRecord:
    return FileRecord(
        path=row["path"],
        source=row["source"],
        identity=row["identity"],
        hash=row["hash"],
        mtime=row["mtime"],
        size=row["size"],
    )
