"""Paged, resumable reconciliation passes."""

from __future__ import annotations

from .context import RunContext
from .driver import CheckpointedDriver, PageResult
from .pipeline import KITS_GROUP, CategorySync, PersistenceError, SyncOptions, SyncReport
from .pool import DEFAULT_PREFETCH_WORKERS, PoolResult, PrefetchPool

__all__ = [
    "DEFAULT_PREFETCH_WORKERS",
    "KITS_GROUP",
    "CategorySync",
    "CheckpointedDriver",
    "PageResult",
    "PersistenceError",
    "PoolResult",
    "PrefetchPool",
    "RunContext",
    "SyncOptions",
    "SyncReport",
]
