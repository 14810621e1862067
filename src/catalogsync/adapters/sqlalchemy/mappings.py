"""SQLAlchemy table metadata for the catalog record store.

Records are slotted dataclasses that the diff engine deep-copies, so they are
not ORM-mapped; repositories translate rows to records and back.
sql.func.now() uses UTC for sqlite databases
-> see https://www.sqlite.org/lang_datefunc.html
"""

from __future__ import annotations

import json
import logging
import uuid
from abc import abstractmethod
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Final, cast

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    func,
)

from catalogsync.domain.model import (
    Category,
    ChangeLogEntry,
    ListingKind,
    LookupKind,
    NameplateAssets,
)

if TYPE_CHECKING:
    from enum import StrEnum

    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


def _enum_values(enum_cls: type[StrEnum]) -> list[str]:
    return [member.value for member in enum_cls]


def _enum_column(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=_enum_values,
        validate_strings=True,
    )


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class _JsonColumn[T](TypeDecorator[T]):
    """Store a Python value as a JSON document in a text column."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: T | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(self.dump(value), separators=(",", ":"))

    def process_result_value(self, value: str | None, dialect: Dialect) -> T:
        _ = dialect
        if value is None:
            return self.load(None)
        return self.load(json.loads(value))

    @abstractmethod
    def dump(self, value: T) -> object: ...

    @abstractmethod
    def load(self, payload: object) -> T: ...


class ChangeLogType(_JsonColumn[list[ChangeLogEntry]]):
    def dump(self, value: list[ChangeLogEntry]) -> object:
        return [entry.to_payload() for entry in value]

    def load(self, payload: object) -> list[ChangeLogEntry]:
        if not isinstance(payload, list):
            return []
        items = cast(list[Any], payload)
        return [ChangeLogEntry.from_payload(item) for item in items if isinstance(item, dict)]


class StringListType(_JsonColumn[list[str]]):
    def dump(self, value: list[str]) -> object:
        return list(value)

    def load(self, payload: object) -> list[str]:
        if not isinstance(payload, list):
            return []
        return [str(item) for item in cast(list[Any], payload)]


class IntListType(_JsonColumn[list[int]]):
    def dump(self, value: list[int]) -> object:
        return list(value)

    def load(self, payload: object) -> list[int]:
        if not isinstance(payload, list):
            return []
        return [int(item) for item in cast(list[Any], payload)]


class DateTimeListType(_JsonColumn[list[datetime]]):
    def dump(self, value: list[datetime]) -> object:
        return [
            (item if item.tzinfo else item.replace(tzinfo=UTC)).astimezone(UTC).isoformat()
            for item in value
        ]

    def load(self, payload: object) -> list[datetime]:
        if not isinstance(payload, list):
            return []
        loaded: list[datetime] = []
        for item in cast(list[Any], payload):
            parsed = datetime.fromisoformat(str(item))
            loaded.append(parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC))
        return loaded


class ChannelMapType(_JsonColumn[dict[str, bool]]):
    def dump(self, value: dict[str, bool]) -> object:
        return dict(value)

    def load(self, payload: object) -> dict[str, bool]:
        if not isinstance(payload, dict):
            return {}
        return {str(key): bool(flag) for key, flag in cast(dict[Any, Any], payload).items()}


class NameplateMapType(_JsonColumn[dict[str, NameplateAssets]]):
    def dump(self, value: dict[str, NameplateAssets]) -> object:
        return {
            nameplate_id: {
                "emblem_ref": assets.emblem_ref,
                "nameplate_ref": assets.nameplate_ref,
                "text_color": assets.text_color,
            }
            for nameplate_id, assets in value.items()
        }

    def load(self, payload: object) -> dict[str, NameplateAssets]:
        if not isinstance(payload, dict):
            return {}
        nameplates: dict[str, NameplateAssets] = {}
        for nameplate_id, raw in cast(dict[Any, Any], payload).items():
            if not isinstance(raw, dict):
                continue
            entry = cast(dict[str, Any], raw)
            nameplates[str(nameplate_id)] = NameplateAssets(
                emblem_ref=str(entry.get("emblem_ref", "")),
                nameplate_ref=str(entry.get("nameplate_ref", "")),
                text_color=str(entry.get("text_color", "")),
            )
        return nameplates


NAMING_CONVENTION: Final[dict[str, str]] = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)

# Reference dictionaries ------------------------------------------------------

lookup_value_table = Table(
    "lookup_value",
    metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("kind", _enum_column(LookupKind), nullable=False),
    Column("name", String, nullable=False),
    Column("position", Integer, nullable=False, default=0),
    UniqueConstraint("kind", "name"),
)

catalog_type_table = Table(
    "catalog_type",
    metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("category", _enum_column(Category), nullable=False),
    Column("name", String, nullable=False),
    Column("external_type", String, nullable=False),
    Column("option_group", String, nullable=False, default=""),
    Column("media_folder", String, nullable=False, default=""),
    Column("parent_media_folder", String, nullable=False, default=""),
    Column("is_cross_core", Boolean, nullable=False, default=False),
    Column("is_partial_cross_core", Boolean, nullable=False, default=False),
    Column("is_kit", Boolean, nullable=False, default=False),
    Column("has_attachments", Boolean, nullable=False, default=False),
    Column("has_palettes", Boolean, nullable=False, default=False),
    UniqueConstraint("category", "external_type"),
)

# Records ---------------------------------------------------------------------

catalog_record_table = Table(
    "catalog_record",
    metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("category", _enum_column(Category), nullable=False),
    Column("external_id", String, nullable=False),
    Column("name", String, nullable=False),
    Column("type_id", UUIDColumnType, nullable=True),
    Column("quality_id", UUIDColumnType, nullable=True),
    Column("manufacturer_id", UUIDColumnType, nullable=True),
    Column("release_id", UUIDColumnType, nullable=True),
    Column("description", Text, nullable=False, default=""),
    Column("image_ref", String, nullable=False, default=""),
    Column("image_token", String, nullable=False, default=""),
    Column("alt_text", String, nullable=False, default=""),
    Column("source_text", Text, nullable=False, default=""),
    Column("hidden", Boolean, nullable=False, default=False),
    Column("currently_available", Boolean, nullable=False, default=False),
    Column("kit_only", Boolean, nullable=False, default=False),
    Column("change_log", ChangeLogType, nullable=False, default=list),
    Column("needs_review", Boolean, nullable=False, default=False),
    Column("freshness_token", String, nullable=False, default=""),
    Column("last_synced_at", UTCDateTime, nullable=True),
    Column("created_at", UTCDateTime, nullable=False, server_default=func.now()),
    UniqueConstraint("category", "external_id"),
)

catalog_reference_table = Table(
    "catalog_reference",
    metadata,
    Column(
        "record_id",
        UUIDColumnType,
        ForeignKey("catalog_record.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("field", String(32), primary_key=True),
    Column("target_id", UUIDColumnType, primary_key=True),
    Column("position", Integer, nullable=False, default=0),
    Index("ix_catalog_reference_target", "field", "target_id"),
)

core_record_table = Table(
    "core_record",
    metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("category", _enum_column(Category), nullable=False),
    Column("external_id", String, nullable=False),
    Column("name", String, nullable=False),
    Column("quality_id", UUIDColumnType, nullable=True),
    Column("manufacturer_id", UUIDColumnType, nullable=True),
    Column("release_id", UUIDColumnType, nullable=True),
    Column("description", Text, nullable=False, default=""),
    Column("image_ref", String, nullable=False, default=""),
    Column("image_token", String, nullable=False, default=""),
    Column("alt_text", String, nullable=False, default=""),
    Column("source_text", Text, nullable=False, default=""),
    Column("hidden", Boolean, nullable=False, default=False),
    Column("currently_available", Boolean, nullable=False, default=False),
    Column("theme_paths", StringListType, nullable=False, default=list),
    Column("change_log", ChangeLogType, nullable=False, default=list),
    Column("needs_review", Boolean, nullable=False, default=False),
    Column("freshness_token", String, nullable=False, default=""),
    Column("last_synced_at", UTCDateTime, nullable=True),
    UniqueConstraint("category", "external_id"),
)

# Configuration ids are indexed but not unique: duplicates must stay detectable.
palette_record_table = Table(
    "palette_record",
    metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("configuration_id", String, nullable=False, index=True),
    Column("external_id", String, nullable=False, default=""),
    Column("name", String, nullable=False, default=""),
    Column("image_ref", String, nullable=False, default=""),
    Column("nameplates", NameplateMapType, nullable=False, default=dict),
)

listing_record_table = Table(
    "listing_record",
    metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("kind", _enum_column(ListingKind), nullable=False),
    Column("external_id", String, nullable=False),
    Column("name", String, nullable=False),
    Column("description", Text, nullable=False, default=""),
    Column("cost", Integer, nullable=False, default=0),
    Column("channels", ChannelMapType, nullable=False, default=dict),
    Column("available_dates", DateTimeListType, nullable=False, default=list),
    Column("price_history", IntListType, nullable=False, default=list),
    Column("populated_fields", StringListType, nullable=False, default=list),
    Column("last_synced_at", UTCDateTime, nullable=True),
    UniqueConstraint("kind", "external_id"),
)

listing_reference_table = Table(
    "listing_reference",
    metadata,
    Column(
        "listing_id",
        UUIDColumnType,
        ForeignKey("listing_record.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("key", String(64), primary_key=True),
    Column("target_id", UUIDColumnType, primary_key=True),
    Column("position", Integer, nullable=False, default=0),
)

sync_checkpoint_table = Table(
    "sync_checkpoint",
    metadata,
    Column("key", String, primary_key=True),
    Column("offset", Integer, nullable=False, default=0),
    Column("updated_at", UTCDateTime, nullable=True),
)


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the record store metadata."""

    log.info("Creating all tables")
    metadata.create_all(engine)


__all__ = [
    "ChangeLogType",
    "UTCDateTime",
    "catalog_record_table",
    "catalog_reference_table",
    "catalog_type_table",
    "core_record_table",
    "create_all_tables",
    "listing_record_table",
    "listing_reference_table",
    "lookup_value_table",
    "metadata",
    "palette_record_table",
    "sync_checkpoint_table",
]
