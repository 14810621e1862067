"""Bounded retry helper shared by every store write and network fetch.

Call sites wrap a zero-argument callable and receive either its result or the
``FAILED`` sentinel once ``max_attempts`` attempts have raised. Callers decide
whether a sentinel is fatal; the helper never raises on exhaustion.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Final, Literal

if TYPE_CHECKING:
    from collections.abc import Callable

log = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS: Final[int] = 10


class _Failed(Enum):
    FAILED = "failed"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "FAILED"


FAILED: Final = _Failed.FAILED

type RetryResult[T] = T | Literal[_Failed.FAILED]
type FailureHook = Callable[[Exception, int], None]


def retry[T](
    operation: Callable[[], T],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    *,
    description: str = "operation",
    on_failure: FailureHook | None = None,
    retry_on: tuple[type[Exception], ...] = (Exception,),
) -> RetryResult[T]:
    """Run ``operation`` up to ``max_attempts`` times.

    ``on_failure`` is called after every failed attempt except the last one, with
    the exception and the 1-based attempt number. Exceptions outside ``retry_on``
    propagate immediately.
    """

    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except retry_on as exc:
            log.warning(
                "%s failed (try %s of %s): %s", description, attempt, max_attempts, exc
            )
            if attempt < max_attempts and on_failure is not None:
                on_failure(exc, attempt)

    log.error("%s failed after %s attempts", description, max_attempts)
    return FAILED


def is_failed(value: object) -> bool:
    return value is FAILED
