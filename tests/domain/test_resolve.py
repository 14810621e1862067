from __future__ import annotations

import uuid

import pytest

from catalogsync.domain.batch import RunContext
from catalogsync.domain.errors import NotFoundError, PaletteConsistencyError, ResolutionError
from catalogsync.domain.model import CatalogRecord, Category, PaletteRecord
from catalogsync.domain.resolve import ReferenceResolver
from tests.helpers.repositories import (
    InMemoryCatalogRecordRepository,
    InMemoryPaletteRecordRepository,
)


class _CountingRecords(InMemoryCatalogRecordRepository):
    def __init__(self) -> None:
        super().__init__()
        self.lookups = 0

    def find_any(self, category, external_ids):  # type: ignore[override]
        self.lookups += 1
        return super().find_any(category, external_ids)


def _resolver(
    records: InMemoryCatalogRecordRepository | None = None,
    palettes: InMemoryPaletteRecordRepository | None = None,
    core_ids: dict[str, uuid.UUID] | None = None,
) -> ReferenceResolver:
    return ReferenceResolver(
        records=records or InMemoryCatalogRecordRepository(),
        palettes=palettes or InMemoryPaletteRecordRepository(),
        context=RunContext(category=Category.ARMOR),
        core_ids=core_ids or {},
        attachment_category=Category.ARMOR_ATTACHMENT,
        max_attempts=1,
    )


def _attachment(external_id: str) -> CatalogRecord:
    return CatalogRecord(
        category=Category.ARMOR_ATTACHMENT, external_id=external_id, name=external_id
    )


def test_unknown_cores_are_dropped() -> None:
    core_id = uuid.uuid4()
    resolver = _resolver(core_ids={"core-a": core_id})

    assert resolver.resolve_cores(["core-a", "core-b", "core-a"]) == [core_id]


def test_attachments_resolve_once_per_run() -> None:
    records = _CountingRecords()
    first = _attachment("attachment-1")
    second = _attachment("attachment-2")
    records.upsert(first)
    records.upsert(second)
    resolver = _resolver(records=records)

    assert resolver.resolve_attachments(["attachment-1", "attachment-2"]) == [first.id, second.id]
    assert resolver.resolve_attachments(["attachment-2"]) == [second.id]
    assert records.lookups == 1


def test_partially_missing_attachments_are_dropped() -> None:
    records = InMemoryCatalogRecordRepository()
    known = _attachment("attachment-1")
    records.upsert(known)

    resolved = _resolver(records=records).resolve_attachments(["attachment-1", "missing"])

    assert resolved == [known.id]


def test_fully_missing_batch_raises_not_found() -> None:
    with pytest.raises(NotFoundError) as exc:
        _resolver().resolve_attachments(["missing-1", "missing-2"])

    assert exc.value.identifiers == ("missing-1", "missing-2")


def test_coreless_resolver_rejects_attachments() -> None:
    resolver = ReferenceResolver(
        records=InMemoryCatalogRecordRepository(),
        palettes=InMemoryPaletteRecordRepository(),
        context=RunContext(category=Category.SPARTAN_ID),
        core_ids={},
        max_attempts=1,
    )

    assert resolver.resolve_attachments([]) == []
    with pytest.raises(ResolutionError):
        resolver.resolve_attachments(["attachment-1"])


def test_kit_children_default_to_run_category() -> None:
    records = InMemoryCatalogRecordRepository()
    helmet = CatalogRecord(category=Category.ARMOR, external_id="helmet-1", name="Helmet")
    records.upsert(helmet)

    assert _resolver(records=records).resolve_kit_children(["helmet-1"]) == [helmet.id]


def test_palette_lookup_is_memoized() -> None:
    palettes = InMemoryPaletteRecordRepository()
    palette = PaletteRecord(configuration_id="config-1")
    palettes.add(palette)
    resolver = _resolver(palettes=palettes)

    assert resolver.resolve_palette("config-1") == palette.id
    palettes.records.clear()
    assert resolver.resolve_palette("config-1") == palette.id


def test_missing_palette_returns_none_until_registered() -> None:
    resolver = _resolver()
    created = uuid.uuid4()

    assert resolver.resolve_palette("config-1") is None
    with pytest.raises(ResolutionError):
        resolver.resolve_palettes(["config-1"])

    resolver.register_palette("config-1", created)

    assert resolver.resolve_palettes(["config-1", "config-1"]) == [created]


def test_duplicate_palettes_are_a_consistency_error() -> None:
    palettes = InMemoryPaletteRecordRepository()
    palettes.add(PaletteRecord(configuration_id="config-1"))
    palettes.add(PaletteRecord(configuration_id="config-1"))

    with pytest.raises(PaletteConsistencyError):
        _resolver(palettes=palettes).resolve_palette("config-1")
