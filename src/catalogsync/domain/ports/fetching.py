"""Ports for fetching catalog data from the external source."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from catalogsync.domain.model import (
        AssetPayload,
        ItemKind,
        ItemSnapshot,
        ListingKind,
        ListingSnapshot,
        PaletteReference,
        PaletteSnapshot,
    )
    from catalogsync.domain.schema import CategorySchema


class CatalogFetchError(RuntimeError):
    """Raised when the catalog source cannot serve a request."""

    def __init__(self, message: str, *, path: str | None = None, status: int | None = None) -> None:
        super().__init__(message)
        self.path = path
        self.status = status


class CredentialsExpiredError(CatalogFetchError):
    """Raised when the source rejects the current credentials."""


@runtime_checkable
class CatalogSource(Protocol):
    """Contract for the external catalog.

    Implementations raise :class:`CredentialsExpiredError` on auth failures so
    callers can trigger ``refresh_credentials`` before retrying, and
    :class:`CatalogFetchError` for everything else.
    """

    def fetch_item(self, path: str) -> ItemSnapshot: ...

    def fetch_palette(self, reference: PaletteReference) -> PaletteSnapshot: ...

    def fetch_freshness_index(self) -> dict[str, str]: ...

    def list_paths(self, schema: CategorySchema, kind: ItemKind) -> list[str]: ...

    def fetch_listings(self, kind: ListingKind, channel: str) -> list[ListingSnapshot]: ...

    def fetch_asset(self, path: str) -> AssetPayload: ...

    def probe_asset(self, path: str) -> str: ...

    def refresh_credentials(self) -> None: ...


__all__ = ["CatalogFetchError", "CatalogSource", "CredentialsExpiredError"]
