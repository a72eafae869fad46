"""Tests for the Database connection layer."""

from __future__ import annotations

import sqlite3

import pytest

from mnemo.db.connection import Capability, Database


def test_connect_creates_file_and_parents(tmp_path):
    db_path = tmp_path / "agents" / "a" / "index.sqlite"
    db = Database(db_path)
    conn = db.connect()
    conn.close()
    assert db_path.exists()


def test_wal_journal_mode(tmp_path):
    db = Database(tmp_path / "index.sqlite")
    conn = db.connect()
    mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
    db.close()
    assert mode == "wal"


def test_row_factory_set(tmp_path):
    db = Database(tmp_path / "index.sqlite")
    conn = db.connect()
    conn.execute("CREATE TABLE t (x INTEGER)")
    conn.execute("INSERT INTO t VALUES (42)")
    row = conn.execute("SELECT x FROM t").fetchone()
    db.close()
    assert row["x"] == 42


def test_sqlite_vec_probe(tmp_path):
    db = Database(tmp_path / "index.sqlite")
    conn = db.connect()
    try:
        if not db.vector.available:
            pytest.skip(f"sqlite-vec not loadable here: {db.vector.reason}")
        version = conn.execute("SELECT vec_version()").fetchone()[0]
        assert version.startswith("v")
    finally:
        db.close()


def test_vector_disabled_is_reported_not_raised(tmp_path):
    db = Database(tmp_path / "index.sqlite", vector_enabled=False)
    db.connect()
    db.close()
    assert db.vector == Capability(False, "disabled in config")


def test_bad_extension_path_degrades(tmp_path):
    db = Database(tmp_path / "index.sqlite", extension_path=str(tmp_path / "missing-vec.so"))
    conn = db.connect()
    assert db.vector.available is False
    assert db.vector.reason
    # The connection itself stays usable
    assert conn.execute("SELECT 1").fetchone()[0] == 1
    db.close()


def test_context_manager_closes_connection(tmp_path):
    db = Database(tmp_path / "index.sqlite")
    with db as conn:
        conn.execute("CREATE TABLE t (x INTEGER)")
    with pytest.raises(sqlite3.ProgrammingError):
        conn.execute("SELECT 1")


def test_close_twice_is_safe(tmp_path):
    db = Database(tmp_path / "index.sqlite")
    db.connect()
    db.close()
    db.close()


def test_capability_constructors():
    assert Capability.ok() == Capability(True, None)
    assert Capability.unavailable("no fts5") == Capability(False, "no fts5")
