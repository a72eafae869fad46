"""Tests for the embedding batch runner."""

from __future__ import annotations

import threading
import time

import pytest

from mnemo.embeddings.batch import run_embedding_batches, split_into_batches
from mnemo.errors import EmbeddingError


def test_split_into_batches():
    assert split_into_batches([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert split_into_batches([], 3) == []
    assert split_into_batches([1, 2], 0) == [[1], [2]]


def test_empty_input_does_not_call_provider():
    calls = []
    assert run_embedding_batches([], 4, 2, lambda batch: calls.append(batch) or []) == []
    assert calls == []


def test_output_order_matches_input_when_batches_finish_out_of_order():
    def run_batch(batch: list[int]) -> list[list[float]]:
        # Earlier batches finish last
        time.sleep(0.05 if batch[0] == 0 else 0.0)
        return [[float(i)] for i in batch]

    items = list(range(10))
    result = run_embedding_batches(items, 3, 4, run_batch)
    assert result == [[float(i)] for i in items]


def test_concurrency_is_bounded():
    active = 0
    peak = 0
    lock = threading.Lock()

    def run_batch(batch):
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.02)
        with lock:
            active -= 1
        return [[1.0] for _ in batch]

    run_embedding_batches(list(range(20)), 2, 3, run_batch)
    assert peak <= 3


def test_missing_vectors_become_empty():
    result = run_embedding_batches(["a", "b", "c"], 3, 1, lambda batch: [[1.0]])
    assert result == [[1.0], [], []]


def test_first_error_propagates():
    def run_batch(batch):
        raise EmbeddingError("down")

    with pytest.raises(EmbeddingError, match="down"):
        run_embedding_batches(list(range(8)), 2, 2, run_batch)
