"""Tests for schema initialization and the meta table."""

from __future__ import annotations

from mnemo.db.connection import Database
from mnemo.db.schema import FTS_TABLE, get_meta, initialize, set_meta


def _table_names(conn) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    return {r["name"] for r in rows}


def test_initialize_creates_fts_table(tmp_path):
    db = Database(tmp_path / "index.sqlite")
    conn = db.connect()
    capability = initialize(conn)
    if capability.available:
        assert FTS_TABLE in _table_names(conn)
    else:
        assert capability.reason
    db.close()


def test_initialize_fts_disabled(tmp_path):
    db = Database(tmp_path / "index.sqlite")
    conn = db.connect()
    capability = initialize(conn, fts_enabled=False)
    assert capability.available is False
    assert capability.reason == "disabled in config"
    assert FTS_TABLE not in _table_names(conn)
    db.close()


def test_initialize_idempotent(tmp_path):
    db = Database(tmp_path / "index.sqlite")
    conn = db.connect()
    first = initialize(conn)
    second = initialize(conn)
    assert first == second
    db.close()


def test_meta_round_trip(tmp_db):
    assert get_meta(tmp_db, "index_model") is None
    set_meta(tmp_db, "index_model", "fts")
    set_meta(tmp_db, "index_model", "fake-embed")
    tmp_db.commit()
    assert get_meta(tmp_db, "index_model") == "fake-embed"
