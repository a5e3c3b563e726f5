"""
Parallel fan-out for the per-target inner loop of a planning scan.

The time loop stays sequential; only the independent per-target work at a
single sample time is spread over a thread pool. Threads rather than
processes: the shared kernel file handle and the small per-target cost make
process start-up and pickling a net loss.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence, TypeVar
import logging
import os

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def get_optimal_workers(max_workers: Optional[int] = None, num_targets: int = 0) -> int:
    """
    Determine the number of worker threads.

    Args:
        max_workers: Requested maximum (None = auto-detect)
        num_targets: Number of targets per sample (0 = unknown)

    Returns:
        Worker count, at least 1
    """
    cpu_count = os.cpu_count() or 4

    if max_workers is not None:
        workers = min(max_workers, cpu_count)
    else:
        workers = cpu_count

    # Don't start more workers than targets
    if num_targets > 0:
        workers = min(workers, num_targets)
    return max(1, workers)


def run_per_target(
    func: Callable[[T], R],
    items: Sequence[T],
    executor: Optional[ThreadPoolExecutor] = None,
) -> List[R]:
    """
    Apply ``func`` to every item, preserving input order.

    Runs serially when no executor is given or there is a single item.
    Exceptions raised by ``func`` propagate to the caller.
    """
    if executor is None or len(items) <= 1:
        return [func(item) for item in items]
    return list(executor.map(func, items))


class TargetPool:
    """
    Thread pool scoped to one planning run.

    ``max_workers`` of None or 1 means serial execution and no pool.
    """

    def __init__(self, max_workers: Optional[int], num_targets: int) -> None:
        self.workers = 1 if max_workers in (None, 1) else get_optimal_workers(max_workers, num_targets)
        self._executor: Optional[ThreadPoolExecutor] = None

    def __enter__(self) -> "TargetPool":
        if self.workers > 1:
            self._executor = ThreadPoolExecutor(
                max_workers=self.workers, thread_name_prefix="neo-planner"
            )
            logger.debug(f"Started target pool with {self.workers} workers")
        return self

    def map(self, func: Callable[[T], R], items: Sequence[T]) -> List[R]:
        return run_per_target(func, items, self._executor)

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
