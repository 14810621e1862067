"""Cached media for catalog records.

``ensure_asset`` reuses the stored blob while its freshness token still
matches the source and replaces it otherwise. Any unrecoverable failure
yields the placeholder reference with an empty token, so the next run tries
again instead of keeping the placeholder as a valid image.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from catalogsync.common.retry import DEFAULT_MAX_ATTEMPTS, is_failed, retry
from catalogsync.domain.fetch import fetch_with_retry

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from catalogsync.domain.batch.pool import PrefetchPool
    from catalogsync.domain.ports import BlobMetadata, BlobStore, CatalogSource

log = logging.getLogger(__name__)

PLACEHOLDER_IMAGE_REF: Final[str] = "placeholder://customization-images/placeholder.png"


@dataclass(frozen=True, slots=True)
class AssetResult:
    ref: str
    token: str

    @property
    def is_placeholder(self) -> bool:
        return self.ref == PLACEHOLDER_IMAGE_REF


PLACEHOLDER: Final[AssetResult] = AssetResult(PLACEHOLDER_IMAGE_REF, "")


@dataclass(frozen=True, slots=True)
class AssetRequest:
    """One prefetch job; ``key`` identifies the result in the returned mapping."""

    key: str
    folder: str
    name: str
    source_path: str
    prior_token: str | None = None


def is_placeholder(ref: str) -> bool:
    return not ref or ref == PLACEHOLDER_IMAGE_REF


class AssetCache:
    def __init__(
        self,
        blobs: BlobStore,
        source: CatalogSource,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        probe: bool = True,
    ) -> None:
        self._blobs = blobs
        self._source = source
        self._max_attempts = max_attempts
        self._probe = probe

    def ensure_asset(
        self,
        folder: str,
        key: str,
        source_path: str,
        prior_token: str | None = None,
    ) -> AssetResult:
        """Return a cached asset for ``source_path`` stored at ``folder/key``."""

        if not source_path:
            log.warning("No source path for %s%s, using placeholder", folder, key)
            return PLACEHOLDER

        cached = retry(
            lambda: self._blobs.find(folder, key),
            self._max_attempts,
            description=f"looking up {folder}{key}",
        )
        if is_failed(cached):
            cached = None

        current_token: str | None = None
        if cached is not None:
            current_token = self._current_token(source_path, cached)
            expected = prior_token or cached.token
            if current_token is not None and expected and current_token == expected:
                return AssetResult(cached.ref, current_token)

        return self._replace(folder, key, source_path, cached, current_token)

    def prefetch(
        self, requests: Iterable[AssetRequest], pool: PrefetchPool
    ) -> dict[str, AssetResult]:
        """Run ``ensure_asset`` for every request through ``pool``."""

        tasks = {request.key: self._task(request) for request in requests}
        outcome = pool.run(tasks)
        results = dict(outcome.results)
        for key in outcome.errors:
            results[key] = PLACEHOLDER
        return results

    def _task(self, request: AssetRequest) -> Callable[[], AssetResult]:
        def _run() -> AssetResult:
            return self.ensure_asset(
                request.folder, request.name, request.source_path, request.prior_token
            )

        return _run

    def _current_token(self, source_path: str, cached: BlobMetadata) -> str | None:
        if not self._probe:
            return cached.token
        probed = fetch_with_retry(
            self._source,
            lambda: self._source.probe_asset(source_path),
            description=f"probing {source_path}",
            max_attempts=self._max_attempts,
        )
        if is_failed(probed):
            return None
        return probed

    def _replace(
        self,
        folder: str,
        key: str,
        source_path: str,
        stale: BlobMetadata | None,
        probed_token: str | None,
    ) -> AssetResult:
        payload = fetch_with_retry(
            self._source,
            lambda: self._source.fetch_asset(source_path),
            description=f"fetching {source_path}",
            max_attempts=self._max_attempts,
        )
        if is_failed(payload):
            log.error("Falling back to placeholder for %s%s", folder, key)
            return PLACEHOLDER

        token = payload.token or probed_token or ""
        stored = retry(
            lambda: self._blobs.upload(
                folder, key, payload.content, token=token, mime_type=payload.mime_type
            ),
            self._max_attempts,
            description=f"uploading {folder}{key}",
        )
        if is_failed(stored):
            log.error("Falling back to placeholder for %s%s", folder, key)
            return PLACEHOLDER

        if stale is not None and stale.ref != stored.ref:
            trashed = retry(
                lambda: self._blobs.trash(stale.ref),
                self._max_attempts,
                description=f"trashing {stale.ref}",
            )
            if is_failed(trashed):
                log.warning("Stale asset %s was left in place", stale.ref)

        log.info("Cached %s%s", folder, key)
        return AssetResult(stored.ref, token)


__all__ = [
    "PLACEHOLDER",
    "PLACEHOLDER_IMAGE_REF",
    "AssetCache",
    "AssetRequest",
    "AssetResult",
    "is_placeholder",
]
