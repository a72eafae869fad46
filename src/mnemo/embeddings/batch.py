"""Concurrency-limited, order-preserving batch runner."""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import TypeVar

T = TypeVar("T")

DEFAULT_BATCH_SIZE = 16
DEFAULT_CONCURRENCY = 2


def split_into_batches(items: Sequence[T], max_batch_size: int) -> list[list[T]]:
    size = max(1, max_batch_size)
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def run_embedding_batches(
    items: Sequence[T],
    max_batch_size: int,
    concurrency: int,
    run_batch: Callable[[list[T]], list[list[float]]],
) -> list[list[float]]:
    """Embed *items* in batches, at most *concurrency* batches at a time.

    A fixed pool of workers each pulls the next unprocessed batch index.
    Results land at ``batch_index * max_batch_size`` in a pre-sized list, so
    output order equals input order whatever order batches finish in. A
    missing vector for an item is stored as ``[]``.

    The first exception raised by *run_batch* propagates to the caller.
    """
    if not items:
        return []
    size = max(1, max_batch_size)
    batches = split_into_batches(items, size)
    results: list[list[float]] = [[] for _ in items]

    lock = threading.Lock()
    next_index = 0

    def worker() -> None:
        nonlocal next_index
        while True:
            with lock:
                index = next_index
                next_index += 1
            if index >= len(batches):
                return
            batch = batches[index]
            embeddings = run_batch(batch)
            start = index * size
            for offset in range(len(batch)):
                results[start + offset] = embeddings[offset] if offset < len(embeddings) else []

    workers = max(1, min(concurrency, len(batches)))
    if workers == 1:
        worker()
        return results

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="mnemo-embed") as pool:
        futures = [pool.submit(worker) for _ in range(workers)]
        for future in futures:
            future.result()
    return results
