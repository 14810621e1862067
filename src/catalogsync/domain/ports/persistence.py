"""Ports for persisting catalog records."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable
    from uuid import UUID

    from catalogsync.domain.model import (
        CatalogRecord,
        CatalogType,
        Category,
        CoreRecord,
        ListingKind,
        ListingRecord,
        LookupKind,
        LookupValue,
        PaletteRecord,
        ReferenceField,
    )


@runtime_checkable
class CatalogRecordRepository(Protocol):
    """Persistence contract for catalog records.

    ``upsert`` and ``bulk_upsert`` write scalar fields only; relationship sets
    change through ``replace_references`` and ``insert_reference``.
    """

    def get(self, record_id: UUID) -> CatalogRecord | None: ...

    def get_by_external_id(self, category: Category, external_id: str) -> CatalogRecord | None: ...

    def find_any(
        self, category: Category, external_ids: Collection[str]
    ) -> list[CatalogRecord]: ...

    def find_referencing(
        self, category: Category, field: ReferenceField, target_id: UUID
    ) -> list[CatalogRecord]: ...

    def upsert(self, record: CatalogRecord) -> None: ...

    def bulk_upsert(self, records: Iterable[CatalogRecord]) -> None: ...

    def replace_references(
        self, record_id: UUID, field: ReferenceField, target_ids: list[UUID]
    ) -> None: ...

    def insert_reference(self, record_id: UUID, field: ReferenceField, target_id: UUID) -> None: ...


@runtime_checkable
class CoreRecordRepository(Protocol):
    def get_by_external_id(self, category: Category, external_id: str) -> CoreRecord | None: ...

    def list_for_category(self, category: Category) -> list[CoreRecord]: ...

    def find_any(self, category: Category, external_ids: Collection[str]) -> list[CoreRecord]: ...

    def upsert(self, record: CoreRecord) -> None: ...

    def bulk_upsert(self, records: Iterable[CoreRecord]) -> None: ...


@runtime_checkable
class PaletteRecordRepository(Protocol):
    def find_by_configuration_id(self, configuration_id: str) -> list[PaletteRecord]: ...

    def add(self, record: PaletteRecord) -> None: ...


@runtime_checkable
class ListingRecordRepository(Protocol):
    def get_by_external_id(self, kind: ListingKind, external_id: str) -> ListingRecord | None: ...

    def list_available(self, kind: ListingKind, channel: str) -> list[ListingRecord]: ...

    def upsert(self, record: ListingRecord) -> None: ...

    def replace_references(self, listing_id: UUID, key: str, target_ids: list[UUID]) -> None: ...


@runtime_checkable
class LookupRepository(Protocol):
    """Read-only access to the reference dictionaries loaded at bootstrap."""

    def values(self, kind: LookupKind) -> list[LookupValue]: ...

    def types(self, category: Category) -> list[CatalogType]: ...


@runtime_checkable
class CheckpointRepository(Protocol):
    """Stores the resumable offset of a paged run, keyed by run name."""

    def load(self, key: str) -> int: ...

    def store(self, key: str, offset: int) -> None: ...
