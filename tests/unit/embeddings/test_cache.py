"""Tests for the content-hash embedding cache."""

from __future__ import annotations

import time

from mnemo.embeddings.cache import EmbeddingCache


def test_read_miss(tmp_db):
    cache = EmbeddingCache(tmp_db, "fake", "fake-embed", "key")
    assert cache.read("nope") is None


def test_write_then_read(tmp_db):
    cache = EmbeddingCache(tmp_db, "fake", "fake-embed", "key")
    cache.write("h1", [0.1, 0.2])
    assert cache.read("h1") == [0.1, 0.2]
    assert cache.count() == 1


def test_entries_are_partitioned_by_model(tmp_db):
    EmbeddingCache(tmp_db, "fake", "model-a", "key").write("h1", [1.0])
    assert EmbeddingCache(tmp_db, "fake", "model-b", "key").read("h1") is None


def test_corrupt_row_reads_as_miss(tmp_db):
    cache = EmbeddingCache(tmp_db, "fake", "fake-embed", "key")
    cache.write("h1", [1.0])
    tmp_db.execute("UPDATE embedding_cache SET embedding = 'not json'")
    assert cache.read("h1") is None


def test_prune_unbounded_is_noop(tmp_db):
    cache = EmbeddingCache(tmp_db, "fake", "fake-embed", "key")
    for i in range(3):
        cache.write(f"h{i}", [float(i)])
    assert cache.prune(0) == 0
    assert cache.count() == 3


def test_prune_removes_oldest(tmp_db):
    cache = EmbeddingCache(tmp_db, "fake", "fake-embed", "key")
    for i in range(4):
        cache.write(f"h{i}", [float(i)])
        time.sleep(0.002)
    assert cache.prune(2) == 2
    assert cache.count() == 2
    assert cache.read("h0") is None
    assert cache.read("h3") == [3.0]
