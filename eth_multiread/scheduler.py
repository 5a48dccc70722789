"""Split large batches and run them in a thread pool.

- Uses `futureproof - Bulletproof concurrent.futures for Python <https://github.com/yeraydiazdiaz/futureproof>`_
  so that a failing chunk stops the whole batch instead of being silently lost

- Results are always returned in the submission order,
  regardless in which order the worker threads complete
"""

import logging
import math
from typing import Callable, Sequence, TypeVar

import futureproof
from futureproof import ThreadPoolExecutor

from eth_multiread.provider.env import read_default_chunk_size
from eth_multiread.utils import chunked


logger = logging.getLogger(__name__)

#: How many chunks can be in flight at the same time
DEFAULT_CONCURRENCY = 20


T = TypeVar("T")
R = TypeVar("R")


def get_default_chunk_size() -> int:
    """How many calls go into one multicall.

    Set ``MULTICALL_CHUNK_SIZE`` environment variable to change.
    """
    return read_default_chunk_size()


def slice_into_chunks(items: Sequence[T], chunk_size: int) -> list[list[T]]:
    """Split items to contiguous lists of at most ``chunk_size``.

    :return:
        ``ceil(len(items) / chunk_size)`` lists
    """
    assert chunk_size > 0, f"Bad chunk size {chunk_size}"
    chunks = list(chunked(items, chunk_size))
    assert len(chunks) == math.ceil(len(items) / chunk_size)
    return chunks


def run_in_pool(
    items: Sequence[T],
    processor: Callable[[T], R],
    concurrency: int = DEFAULT_CONCURRENCY,
) -> list[R]:
    """Process items concurrently.

    - A single item is processed in the calling thread
    - If any item fails, the exception is raised as is and the remaining work is abandoned

    :param processor:
        Called once for each item, in some worker thread

    :param concurrency:
        Max worker threads

    :return:
        Results in the same order as ``items``
    """
    assert concurrency >= 1, f"Bad concurrency {concurrency}"

    if len(items) == 0:
        return []

    if len(items) == 1:
        return [processor(items[0])]

    def _process(idx: int, item: T) -> R:
        return processor(item)

    # The executor is shut down when the task manager exits,
    # so create a new one per batch
    executor = ThreadPoolExecutor(max_workers=min(concurrency, len(items)))
    tm = futureproof.TaskManager(executor, error_policy=futureproof.ErrorPolicyEnum.RAISE)

    for idx, item in enumerate(items):
        tm.submit(_process, idx, item)

    logger.debug("Submitted %d tasks, concurrency %d", len(items), concurrency)

    completed: dict[int, R] = {}
    for task in tm.as_completed():
        idx = task.args[0]
        assert idx not in completed, f"Duplicate task: {idx}"
        completed[idx] = task.result
        logger.debug("Completed task %d", idx)

    assert len(completed) == len(items), f"Expected {len(items)} results, got {len(completed)}"
    return [completed[idx] for idx in range(len(items))]
