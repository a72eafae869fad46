"""sqlite-vec virtual table management.

One vec0 table, ``chunks_vec``, keyed by chunk id. It is created lazily once
the first embedding's dimensionality is known, and dropped and recreated when
the dimensionality changes. The current dimensionality is stored in the meta
table so a reopened database notices a model switch.
"""

from __future__ import annotations

import json
import sqlite3

from mnemo.db.schema import VECTOR_TABLE, get_meta, set_meta

_DIMS_KEY = "vector_dims"


def vec_table_exists(conn: sqlite3.Connection) -> bool:
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (VECTOR_TABLE,)
    ).fetchone()
    return row is not None


def vector_dims(conn: sqlite3.Connection) -> int | None:
    """Return the dimensionality of the existing vec table, or None."""
    if not vec_table_exists(conn):
        return None
    value = get_meta(conn, _DIMS_KEY)
    return int(value) if value else None


def ensure_vec_table(conn: sqlite3.Connection, dimensions: int) -> str:
    """Create (or rebuild) chunks_vec for *dimensions*-wide embeddings.

    Does not commit; the caller owns the transaction.

    Args:
        conn: Active database connection (sqlite-vec must be loaded).
        dimensions: Embedding vector dimensions.

    Returns:
        The table name.

    Raises:
        ValueError: If dimensions < 1.
    """
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    if vector_dims(conn) == dimensions:
        return VECTOR_TABLE

    if vec_table_exists(conn):
        conn.execute(f"DROP TABLE IF EXISTS {VECTOR_TABLE}")
    conn.execute(
        f"CREATE VIRTUAL TABLE {VECTOR_TABLE} USING vec0("
        f"id TEXT PRIMARY KEY, embedding float[{dimensions}])"
    )
    set_meta(conn, _DIMS_KEY, str(dimensions))
    return VECTOR_TABLE


def serialize_embedding(embedding: list[float]) -> str:
    """Encode an embedding in the JSON form accepted by sqlite-vec."""
    return json.dumps(embedding)
