"""Tests for sqlite-vec table management."""

from __future__ import annotations

import json

import pytest

from mnemo.db.connection import Database
from mnemo.db.schema import initialize
from mnemo.db.vectors import ensure_vec_table, serialize_embedding, vec_table_exists, vector_dims


@pytest.fixture
def vec_db(tmp_path):
    db = Database(tmp_path / "index.sqlite")
    conn = db.connect()
    initialize(conn)
    if not db.vector.available:
        db.close()
        pytest.skip(f"sqlite-vec not loadable here: {db.vector.reason}")
    yield conn
    db.close()


def test_no_vec_table_until_requested(tmp_db):
    assert vec_table_exists(tmp_db) is False
    assert vector_dims(tmp_db) is None


def test_ensure_vec_table_creates(vec_db):
    name = ensure_vec_table(vec_db, 4)
    vec_db.commit()
    assert name == "chunks_vec"
    assert vec_table_exists(vec_db)
    assert vector_dims(vec_db) == 4


def test_ensure_vec_table_same_dims_keeps_rows(vec_db):
    ensure_vec_table(vec_db, 3)
    vec_db.execute("INSERT INTO chunks_vec (id, embedding) VALUES (?, ?)", ("c1", "[1, 0, 0]"))
    vec_db.commit()
    ensure_vec_table(vec_db, 3)
    assert vec_db.execute("SELECT COUNT(*) FROM chunks_vec").fetchone()[0] == 1


def test_ensure_vec_table_rebuilds_on_dims_change(vec_db):
    ensure_vec_table(vec_db, 3)
    vec_db.execute("INSERT INTO chunks_vec (id, embedding) VALUES (?, ?)", ("c1", "[1, 0, 0]"))
    vec_db.commit()
    ensure_vec_table(vec_db, 5)
    vec_db.commit()
    assert vector_dims(vec_db) == 5
    assert vec_db.execute("SELECT COUNT(*) FROM chunks_vec").fetchone()[0] == 0


def test_ensure_vec_table_rejects_zero_dims(tmp_db):
    with pytest.raises(ValueError):
        ensure_vec_table(tmp_db, 0)


def test_serialize_embedding_is_json():
    assert json.loads(serialize_embedding([0.5, -1.0])) == [0.5, -1.0]
