"""Retry wrappers around catalog source calls."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from catalogsync.common.retry import DEFAULT_MAX_ATTEMPTS, retry
from catalogsync.domain.ports.fetching import CredentialsExpiredError

if TYPE_CHECKING:
    from collections.abc import Callable

    from catalogsync.common.retry import FailureHook, RetryResult
    from catalogsync.domain.ports.fetching import CatalogSource

log = logging.getLogger(__name__)


def credential_refresher(source: CatalogSource) -> FailureHook:
    """Return a retry hook that refreshes credentials after an auth failure."""

    def _on_failure(exc: Exception, attempt: int) -> None:
        if isinstance(exc, CredentialsExpiredError):
            log.info("Refreshing source credentials after attempt %s", attempt)
            source.refresh_credentials()

    return _on_failure


def fetch_with_retry[T](
    source: CatalogSource,
    operation: Callable[[], T],
    *,
    description: str,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> RetryResult[T]:
    return retry(
        operation,
        max_attempts,
        description=description,
        on_failure=credential_refresher(source),
    )
