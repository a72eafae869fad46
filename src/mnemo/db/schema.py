"""Table names and schema initialization."""

from __future__ import annotations

import logging
import sqlite3

from mnemo.db.connection import Capability

logger = logging.getLogger(__name__)

FILES_TABLE = "files"
CHUNKS_TABLE = "chunks"
FTS_TABLE = "chunks_fts"
VECTOR_TABLE = "chunks_vec"
EMBEDDING_CACHE_TABLE = "embedding_cache"
META_TABLE = "meta"

_CREATE_CHUNKS_FTS = f"""
CREATE VIRTUAL TABLE IF NOT EXISTS {FTS_TABLE} USING fts5(
    text,
    id UNINDEXED,
    path UNINDEXED,
    source UNINDEXED,
    model UNINDEXED,
    start_line UNINDEXED,
    end_line UNINDEXED
)
"""


def initialize(conn: sqlite3.Connection, fts_enabled: bool = True) -> Capability:
    """Run migrations and probe the FTS5 keyword index (idempotent).

    Returns:
        The keyword-index capability. FTS5 missing from the SQLite build is
        reported here, not raised.
    """
    from mnemo.db.migrations import run_migrations

    run_migrations(conn)

    if not fts_enabled:
        return Capability.unavailable("disabled in config")
    try:
        conn.execute(_CREATE_CHUNKS_FTS)
        conn.commit()
    except sqlite3.OperationalError as exc:
        logger.warning("FTS5 unavailable: %s", exc)
        return Capability.unavailable(str(exc))
    return Capability.ok()


def get_meta(conn: sqlite3.Connection, key: str) -> str | None:
    row = conn.execute(f"SELECT value FROM {META_TABLE} WHERE key = ?", (key,)).fetchone()
    return row["value"] if row else None


def set_meta(conn: sqlite3.Connection, key: str, value: str) -> None:
    conn.execute(
        f"""
        INSERT INTO {META_TABLE} (key, value) VALUES (?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value
        """,
        (key, value),
    )
