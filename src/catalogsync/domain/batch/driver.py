"""Resumable paging over long input lists."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from catalogsync.common.retry import DEFAULT_MAX_ATTEMPTS, is_failed, retry

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from catalogsync.domain.ports import CheckpointRepository

log = logging.getLogger(__name__)


@dataclass(slots=True)
class PageResult[T]:
    """What one driver run covered.

    ``next_offset`` is the offset stored for the following run; it is ``0``
    once the page reached the end of the input.
    """

    key: str
    offset: int
    next_offset: int
    total: int
    items: list[T] = field(default_factory=list["T"])

    @property
    def completed_pass(self) -> bool:
        return self.next_offset == 0


class CheckpointedDriver:
    """Process one page of ``items`` per run, starting at the stored offset."""

    def __init__(
        self,
        checkpoints: CheckpointRepository,
        page_size: int,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self._checkpoints = checkpoints
        self._page_size = page_size
        self._max_attempts = max_attempts

    @property
    def page_size(self) -> int:
        return self._page_size

    def current_offset(self, key: str, total: int) -> int:
        stored = retry(
            lambda: self._checkpoints.load(key),
            self._max_attempts,
            description=f"loading checkpoint {key}",
        )
        if is_failed(stored):
            log.warning("Checkpoint %s unavailable, starting from the beginning", key)
            return 0
        if stored < 0 or stored >= total:
            return 0
        return stored

    def run[T](
        self,
        key: str,
        items: Sequence[T],
        process: Callable[[Sequence[T]], None],
    ) -> PageResult[T]:
        """Hand the current page to ``process`` and store the advanced offset.

        The offset is only stored after ``process`` returns; an exception leaves
        the checkpoint where it was so the page is retried on the next run.
        """

        total = len(items)
        offset = self.current_offset(key, total)
        page = list(items[offset : offset + self._page_size])
        log.info(
            "Processing %s: items %s-%s of %s", key, offset, offset + len(page), total
        )

        process(page)

        next_offset = offset + len(page)
        if len(page) < self._page_size or next_offset >= total:
            next_offset = 0
        self.store_offset(key, next_offset)
        return PageResult(key=key, offset=offset, next_offset=next_offset, total=total, items=page)

    def store_offset(self, key: str, offset: int) -> None:
        stored = retry(
            lambda: self._checkpoints.store(key, offset),
            self._max_attempts,
            description=f"storing checkpoint {key}",
        )
        if is_failed(stored):
            log.error("Checkpoint %s could not be stored; the page will run again", key)
