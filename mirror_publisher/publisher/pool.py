"""Worker pool utilities."""
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Iterable, Set, Tuple

from ..protocols import IWorkerPool


def create_worker_pool(size: int) -> ThreadPoolExecutor:
    """
    Create the fixed-size pool shared by a whole publish run.

    Each worker blocks on one HTTP PUT at a time, so ``size`` is also the
    upper bound of concurrent uploads across the tree.
    """
    if size < 1:
        raise ValueError(f"Pool size must be at least 1, got {size}")
    return ThreadPoolExecutor(max_workers=size, thread_name_prefix="publisher")


def drain(pool: IWorkerPool, futures: Iterable[Future], timeout: float) -> Tuple[Set[Future], Set[Future]]:
    """
    Close the pool to new work and wait for submitted uploads.

    Returns ``(done, not_done)`` as of the moment ``timeout`` expired or the
    last upload finished. Futures in ``not_done`` are abandoned, not
    cancelled: the pool keeps running them in the background.
    """
    pool.shutdown(wait=False)
    done, not_done = wait(list(futures), timeout=timeout)
    return done, not_done


def when_all_done(futures: Iterable[Future], callback) -> None:
    """Call ``callback()`` once, after every future in ``futures`` has finished."""
    pending = list(futures)
    if not pending:
        callback()
        return

    remaining = [len(pending)]
    lock = threading.Lock()

    def _one_done(_future: Future) -> None:
        with lock:
            remaining[0] -= 1
            last = remaining[0] == 0
        if last:
            callback()

    for future in pending:
        future.add_done_callback(_one_done)
