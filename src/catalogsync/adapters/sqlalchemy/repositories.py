"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import delete, insert, select, update

from catalogsync.adapters.sqlalchemy.mappings import (
    catalog_record_table,
    catalog_reference_table,
    catalog_type_table,
    core_record_table,
    listing_record_table,
    listing_reference_table,
    lookup_value_table,
    palette_record_table,
    sync_checkpoint_table,
)
from catalogsync.domain.model import (
    CatalogRecord,
    CatalogType,
    CoreRecord,
    ListingRecord,
    LookupValue,
    PaletteRecord,
    ReferenceField,
)

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Mapping

    from sqlalchemy import Row, Table
    from sqlalchemy.orm import Session

    from catalogsync.domain.model import Category, ListingKind, LookupKind

_CATALOG_SCALARS = (
    "category",
    "external_id",
    "name",
    "type_id",
    "quality_id",
    "manufacturer_id",
    "release_id",
    "description",
    "image_ref",
    "image_token",
    "alt_text",
    "source_text",
    "hidden",
    "currently_available",
    "kit_only",
    "change_log",
    "needs_review",
    "freshness_token",
    "last_synced_at",
)

_CORE_SCALARS = (
    "category",
    "external_id",
    "name",
    "quality_id",
    "manufacturer_id",
    "release_id",
    "description",
    "image_ref",
    "image_token",
    "alt_text",
    "source_text",
    "hidden",
    "currently_available",
    "theme_paths",
    "change_log",
    "needs_review",
    "freshness_token",
    "last_synced_at",
)

_LISTING_SCALARS = (
    "kind",
    "external_id",
    "name",
    "description",
    "cost",
    "channels",
    "available_dates",
    "price_history",
    "populated_fields",
    "last_synced_at",
)


def _values(record: object, names: Iterable[str]) -> dict[str, Any]:
    return {name: getattr(record, name) for name in names}


def _upsert_row(
    session: Session, table: Table, record_id: uuid.UUID, values: dict[str, Any]
) -> None:
    exists = session.execute(
        select(table.c.id).where(table.c.id == record_id)
    ).scalar_one_or_none()
    if exists is None:
        session.execute(insert(table).values(id=record_id, **values))
    else:
        session.execute(update(table).where(table.c.id == record_id).values(**values))


class SqlAlchemyCatalogRecordRepository:
    """Catalog records with their relationship sets kept in ``catalog_reference``."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, record_id: uuid.UUID) -> CatalogRecord | None:
        stmt = select(catalog_record_table).where(catalog_record_table.c.id == record_id)
        return self._first(stmt)

    def get_by_external_id(self, category: Category, external_id: str) -> CatalogRecord | None:
        stmt = (
            select(catalog_record_table)
            .where(catalog_record_table.c.category == category)
            .where(catalog_record_table.c.external_id == external_id)
        )
        return self._first(stmt)

    def find_any(self, category: Category, external_ids: Collection[str]) -> list[CatalogRecord]:
        if not external_ids:
            return []
        stmt = (
            select(catalog_record_table)
            .where(catalog_record_table.c.category == category)
            .where(catalog_record_table.c.external_id.in_(list(external_ids)))
        )
        return self._hydrate(self.session.execute(stmt).all())

    def find_referencing(
        self, category: Category, field: ReferenceField, target_id: uuid.UUID
    ) -> list[CatalogRecord]:
        stmt = (
            select(catalog_record_table)
            .join(
                catalog_reference_table,
                catalog_reference_table.c.record_id == catalog_record_table.c.id,
            )
            .where(catalog_record_table.c.category == category)
            .where(catalog_reference_table.c.field == field.value)
            .where(catalog_reference_table.c.target_id == target_id)
        )
        return self._hydrate(self.session.execute(stmt).all())

    def upsert(self, record: CatalogRecord) -> None:
        _upsert_row(
            self.session,
            catalog_record_table,
            record.id,
            _values(record, _CATALOG_SCALARS),
        )

    def bulk_upsert(self, records: Iterable[CatalogRecord]) -> None:
        for record in records:
            self.upsert(record)

    def replace_references(
        self, record_id: uuid.UUID, field: ReferenceField, target_ids: list[uuid.UUID]
    ) -> None:
        if field is ReferenceField.DEFAULT_OF_CORE and len(target_ids) > 1:
            raise ValueError("default_of_core holds at most one core reference")
        self.session.execute(
            delete(catalog_reference_table)
            .where(catalog_reference_table.c.record_id == record_id)
            .where(catalog_reference_table.c.field == field.value)
        )
        rows = [
            {
                "record_id": record_id,
                "field": field.value,
                "target_id": target_id,
                "position": index,
            }
            for index, target_id in enumerate(dict.fromkeys(target_ids))
        ]
        if rows:
            self.session.execute(insert(catalog_reference_table), rows)

    def insert_reference(
        self, record_id: uuid.UUID, field: ReferenceField, target_id: uuid.UUID
    ) -> None:
        existing = self.session.execute(
            select(catalog_reference_table.c.position)
            .where(catalog_reference_table.c.record_id == record_id)
            .where(catalog_reference_table.c.field == field.value)
        ).scalars().all()
        stmt = (
            insert(catalog_reference_table)
            .prefix_with("OR IGNORE", dialect="sqlite")
            .values(
                record_id=record_id,
                field=field.value,
                target_id=target_id,
                position=max(existing, default=-1) + 1,
            )
        )
        self.session.execute(stmt)

    def _first(self, stmt: Any) -> CatalogRecord | None:
        row = self.session.execute(stmt).first()
        if row is None:
            return None
        return self._hydrate([row])[0]

    def _hydrate(self, rows: Iterable[Row[Any]]) -> list[CatalogRecord]:
        records = [self._from_row(row) for row in rows]
        if not records:
            return []
        references: dict[uuid.UUID, dict[str, list[uuid.UUID]]] = defaultdict(
            lambda: defaultdict(list)
        )
        stmt = (
            select(
                catalog_reference_table.c.record_id,
                catalog_reference_table.c.field,
                catalog_reference_table.c.target_id,
            )
            .where(catalog_reference_table.c.record_id.in_([record.id for record in records]))
            .order_by(catalog_reference_table.c.position)
        )
        for record_id, field, target_id in self.session.execute(stmt).all():
            references[record_id][field].append(target_id)
        for record in records:
            for field, target_ids in references.get(record.id, {}).items():
                record.set_references(ReferenceField(field), target_ids)
        return records

    @staticmethod
    def _from_row(row: Row[Any]) -> CatalogRecord:
        mapping = row._mapping  # noqa: SLF001
        return CatalogRecord(id=mapping["id"], **{name: mapping[name] for name in _CATALOG_SCALARS})


class SqlAlchemyCoreRecordRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get_by_external_id(self, category: Category, external_id: str) -> CoreRecord | None:
        stmt = (
            select(core_record_table)
            .where(core_record_table.c.category == category)
            .where(core_record_table.c.external_id == external_id)
        )
        row = self.session.execute(stmt).first()
        return self._from_row(row) if row is not None else None

    def list_for_category(self, category: Category) -> list[CoreRecord]:
        stmt = (
            select(core_record_table)
            .where(core_record_table.c.category == category)
            .order_by(core_record_table.c.name)
        )
        return [self._from_row(row) for row in self.session.execute(stmt).all()]

    def find_any(self, category: Category, external_ids: Collection[str]) -> list[CoreRecord]:
        if not external_ids:
            return []
        stmt = (
            select(core_record_table)
            .where(core_record_table.c.category == category)
            .where(core_record_table.c.external_id.in_(list(external_ids)))
        )
        return [self._from_row(row) for row in self.session.execute(stmt).all()]

    def upsert(self, record: CoreRecord) -> None:
        _upsert_row(self.session, core_record_table, record.id, _values(record, _CORE_SCALARS))

    def bulk_upsert(self, records: Iterable[CoreRecord]) -> None:
        for record in records:
            self.upsert(record)

    @staticmethod
    def _from_row(row: Row[Any]) -> CoreRecord:
        mapping = row._mapping  # noqa: SLF001
        return CoreRecord(id=mapping["id"], **{name: mapping[name] for name in _CORE_SCALARS})


class SqlAlchemyPaletteRecordRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def find_by_configuration_id(self, configuration_id: str) -> list[PaletteRecord]:
        stmt = select(palette_record_table).where(
            palette_record_table.c.configuration_id == configuration_id
        )
        records: list[PaletteRecord] = []
        for row in self.session.execute(stmt).all():
            mapping = row._mapping  # noqa: SLF001
            records.append(
                PaletteRecord(
                    id=mapping["id"],
                    configuration_id=mapping["configuration_id"],
                    external_id=mapping["external_id"],
                    name=mapping["name"],
                    image_ref=mapping["image_ref"],
                    nameplates=mapping["nameplates"],
                )
            )
        return records

    def add(self, record: PaletteRecord) -> None:
        self.session.execute(
            insert(palette_record_table).values(
                id=record.id,
                configuration_id=record.configuration_id,
                external_id=record.external_id,
                name=record.name,
                image_ref=record.image_ref,
                nameplates=record.nameplates,
            )
        )


class SqlAlchemyListingRecordRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get_by_external_id(self, kind: ListingKind, external_id: str) -> ListingRecord | None:
        stmt = (
            select(listing_record_table)
            .where(listing_record_table.c.kind == kind)
            .where(listing_record_table.c.external_id == external_id)
        )
        records = self._hydrate(self.session.execute(stmt).all())
        return records[0] if records else None

    def list_available(self, kind: ListingKind, channel: str) -> list[ListingRecord]:
        stmt = select(listing_record_table).where(listing_record_table.c.kind == kind)
        records = self._hydrate(self.session.execute(stmt).all())
        return [record for record in records if record.is_available_on(channel)]

    def upsert(self, record: ListingRecord) -> None:
        _upsert_row(
            self.session,
            listing_record_table,
            record.id,
            _values(record, _LISTING_SCALARS),
        )

    def replace_references(
        self, listing_id: uuid.UUID, key: str, target_ids: list[uuid.UUID]
    ) -> None:
        self.session.execute(
            delete(listing_reference_table)
            .where(listing_reference_table.c.listing_id == listing_id)
            .where(listing_reference_table.c.key == key)
        )
        rows = [
            {"listing_id": listing_id, "key": key, "target_id": target_id, "position": index}
            for index, target_id in enumerate(dict.fromkeys(target_ids))
        ]
        if rows:
            self.session.execute(insert(listing_reference_table), rows)

    def _hydrate(self, rows: Iterable[Row[Any]]) -> list[ListingRecord]:
        records: list[ListingRecord] = []
        for row in rows:
            mapping = row._mapping  # noqa: SLF001
            records.append(
                ListingRecord(
                    id=mapping["id"], **{name: mapping[name] for name in _LISTING_SCALARS}
                )
            )
        if not records:
            return records
        stmt = (
            select(
                listing_reference_table.c.listing_id,
                listing_reference_table.c.key,
                listing_reference_table.c.target_id,
            )
            .where(listing_reference_table.c.listing_id.in_([record.id for record in records]))
            .order_by(listing_reference_table.c.position)
        )
        by_id = {record.id: record for record in records}
        for listing_id, key, target_id in self.session.execute(stmt).all():
            by_id[listing_id].references.setdefault(key, []).append(target_id)
        return records


class SqlAlchemyLookupRepository:
    """Reference dictionaries; ``add_values``/``add_types`` seed them."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def values(self, kind: LookupKind) -> list[LookupValue]:
        stmt = (
            select(lookup_value_table)
            .where(lookup_value_table.c.kind == kind)
            .order_by(lookup_value_table.c.position, lookup_value_table.c.name)
        )
        return [
            LookupValue(
                id=row.id,
                kind=row.kind,
                name=row.name,
                position=row.position,
            )
            for row in self.session.execute(stmt).all()
        ]

    def types(self, category: Category) -> list[CatalogType]:
        stmt = (
            select(catalog_type_table)
            .where(catalog_type_table.c.category == category)
            .order_by(catalog_type_table.c.name)
        )
        types: list[CatalogType] = []
        for row in self.session.execute(stmt).all():
            mapping = cast("Mapping[str, Any]", row._mapping)  # noqa: SLF001
            types.append(CatalogType(**dict(mapping)))
        return types

    def add_values(self, values: Iterable[LookupValue]) -> None:
        rows = [
            {"id": value.id, "kind": value.kind, "name": value.name, "position": value.position}
            for value in values
        ]
        if rows:
            self.session.execute(insert(lookup_value_table), rows)

    def add_types(self, types: Iterable[CatalogType]) -> None:
        rows = [
            {column.name: getattr(item_type, column.name) for column in catalog_type_table.columns}
            for item_type in types
        ]
        if rows:
            self.session.execute(insert(catalog_type_table), rows)


class SqlAlchemyCheckpointRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def load(self, key: str) -> int:
        stmt = select(sync_checkpoint_table.c.offset).where(sync_checkpoint_table.c.key == key)
        offset = self.session.execute(stmt).scalar_one_or_none()
        return int(offset) if offset is not None else 0

    def store(self, key: str, offset: int) -> None:
        now = datetime.now(tz=UTC)
        updated = self.session.execute(
            update(sync_checkpoint_table)
            .where(sync_checkpoint_table.c.key == key)
            .values(offset=offset, updated_at=now)
        )
        if updated.rowcount == 0:  # pyright: ignore[reportAttributeAccessIssue]
            self.session.execute(
                insert(sync_checkpoint_table).values(key=key, offset=offset, updated_at=now)
            )


if TYPE_CHECKING:
    from catalogsync.domain.ports.persistence import (
        CatalogRecordRepository,
        CheckpointRepository,
        CoreRecordRepository,
        ListingRecordRepository,
        LookupRepository,
        PaletteRecordRepository,
    )

    _session_stub = cast("Session", object())
    _record_repo: CatalogRecordRepository = SqlAlchemyCatalogRecordRepository(_session_stub)
    _core_repo: CoreRecordRepository = SqlAlchemyCoreRecordRepository(_session_stub)
    _palette_repo: PaletteRecordRepository = SqlAlchemyPaletteRecordRepository(_session_stub)
    _listing_repo: ListingRecordRepository = SqlAlchemyListingRecordRepository(_session_stub)
    _lookup_repo: LookupRepository = SqlAlchemyLookupRepository(_session_stub)
    _checkpoint_repo: CheckpointRepository = SqlAlchemyCheckpointRepository(_session_stub)
