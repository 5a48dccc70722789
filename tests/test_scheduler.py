"""Chunking and the worker pool."""

import random
import threading
import time

import pytest

from eth_multiread.scheduler import get_default_chunk_size, run_in_pool, slice_into_chunks


class ChunkBroken(Exception):
    pass


@pytest.mark.parametrize(
    "count, chunk_size, expected_chunks",
    [
        (0, 500, 0),
        (1, 500, 1),
        (500, 500, 1),
        (501, 500, 2),
        (1200, 100, 12),
        (7, 3, 3),
    ],
)
def test_slice_into_chunks(count, chunk_size, expected_chunks):
    items = list(range(count))
    chunks = slice_into_chunks(items, chunk_size)
    assert len(chunks) == expected_chunks
    assert all(len(c) <= chunk_size for c in chunks)
    assert [i for c in chunks for i in c] == items


def test_slice_bad_chunk_size():
    with pytest.raises(AssertionError):
        slice_into_chunks([1, 2, 3], 0)


def test_run_in_pool_preserves_order():
    """Results come back in submission order even if workers finish in random order."""

    def _process(item: int) -> int:
        time.sleep(random.uniform(0, 0.02))
        return item * 2

    items = list(range(50))
    assert run_in_pool(items, _process, concurrency=8) == [i * 2 for i in items]


def test_run_in_pool_concurrency_bound():
    lock = threading.Lock()
    in_flight = 0
    max_in_flight = 0

    def _process(item: int) -> int:
        nonlocal in_flight, max_in_flight
        with lock:
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
        time.sleep(0.01)
        with lock:
            in_flight -= 1
        return item

    run_in_pool(list(range(20)), _process, concurrency=3)
    assert max_in_flight <= 3


def test_run_in_pool_single_item_inline():
    caller = threading.get_ident()
    assert run_in_pool([1], lambda item: threading.get_ident()) == [caller]


def test_run_in_pool_empty():
    assert run_in_pool([], lambda item: item) == []


def test_run_in_pool_raises():
    """A failing chunk fails the batch with the original exception."""

    def _process(item: int) -> int:
        if item == 3:
            raise ChunkBroken("Chunk 3 failed")
        return item

    with pytest.raises(ChunkBroken):
        run_in_pool(list(range(6)), _process, concurrency=2)


def test_default_chunk_size(monkeypatch):
    monkeypatch.delenv("MULTICALL_CHUNK_SIZE", raising=False)
    assert get_default_chunk_size() == 500

    monkeypatch.setenv("MULTICALL_CHUNK_SIZE", "42")
    assert get_default_chunk_size() == 42
