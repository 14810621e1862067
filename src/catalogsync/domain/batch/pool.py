"""Bounded worker pool used for bulk asset prefetching."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable, Mapping

log = logging.getLogger(__name__)

DEFAULT_PREFETCH_WORKERS: Final[int] = 4


@dataclass(slots=True)
class PoolResult[K: Hashable, T]:
    results: dict[K, T] = field(default_factory=dict["K", "T"])
    errors: dict[K, Exception] = field(default_factory=dict["K", Exception])

    @property
    def ok(self) -> bool:
        return not self.errors


class PrefetchPool:
    """Run callables with at most ``max_workers`` in flight.

    Submission blocks on a bounded semaphore until a worker slot frees up,
    and ``run`` returns only after every submitted task has finished.
    """

    def __init__(self, max_workers: int = DEFAULT_PREFETCH_WORKERS) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers

    def run[K: Hashable, T](self, tasks: Mapping[K, Callable[[], T]]) -> PoolResult[K, T]:
        outcome: PoolResult[K, T] = PoolResult()
        if not tasks:
            return outcome

        slots = threading.BoundedSemaphore(self.max_workers)
        futures: dict[Future[T], K] = {}
        with ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(tasks)),
            thread_name_prefix="prefetch",
        ) as executor:
            for key, task in tasks.items():
                slots.acquire()
                try:
                    future = executor.submit(task)
                except RuntimeError:
                    slots.release()
                    raise
                future.add_done_callback(lambda _done: slots.release())
                futures[future] = key

            for future in as_completed(futures):
                key = futures[future]
                try:
                    outcome.results[key] = future.result()
                except Exception as exc:  # noqa: BLE001
                    log.error("Prefetch task %r failed: %s", key, exc, exc_info=exc)
                    outcome.errors[key] = exc

        log.debug(
            "Prefetched %s tasks (%s failed) with %s workers",
            len(outcome.results),
            len(outcome.errors),
            self.max_workers,
        )
        return outcome
