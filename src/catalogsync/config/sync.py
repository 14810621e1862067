"""Batch and retry defaults for catalog synchronisation runs."""

from __future__ import annotations

from dataclasses import dataclass

from .env import positive_int_env

DEFAULT_PAGE_SIZE = 50
DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_PREFETCH_WORKERS = 4


@dataclass(frozen=True, slots=True)
class SyncConfig:
    page_size: int = DEFAULT_PAGE_SIZE
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    prefetch_workers: int = DEFAULT_PREFETCH_WORKERS


def get_sync_config() -> SyncConfig:
    return SyncConfig(
        page_size=positive_int_env("CATALOGSYNC_PAGE_SIZE", DEFAULT_PAGE_SIZE),
        max_attempts=positive_int_env("CATALOGSYNC_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS),
        prefetch_workers=positive_int_env(
            "CATALOGSYNC_PREFETCH_WORKERS", DEFAULT_PREFETCH_WORKERS
        ),
    )
