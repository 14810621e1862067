"""Persisted records owned by the reconciliation pass.

Records are plain dataclasses: the store adapter reads and writes them, the
engine deep-copies them before mutating, and nothing else keeps them alive
between passes.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final

from .enums import Category, ListingKind, LookupKind, ReferenceField

if TYPE_CHECKING:
    from collections.abc import Mapping

CHANGE_LOG_TIMESTAMP_FORMAT: Final[str] = "%m-%d-%Y %H:%M:%S"
PENDING_SOURCE_TEXT: Final[str] = "(Pending)"


def _render(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, list | tuple):
        items: list[object] = list(value)  # pyright: ignore[reportUnknownArgumentType]
        return ", ".join(_render(item) for item in items)
    return str(value)


@dataclass(frozen=True, slots=True)
class ChangeLogEntry:
    """One audit line; ``field is None`` marks the creation entry."""

    timestamp: datetime
    field: str | None = None
    old: str = ""
    new: str = ""

    @classmethod
    def changed(
        cls, timestamp: datetime, field_name: str, old: object, new: object
    ) -> ChangeLogEntry:
        return cls(timestamp=timestamp, field=field_name, old=_render(old), new=_render(new))

    @classmethod
    def added(cls, timestamp: datetime) -> ChangeLogEntry:
        return cls(timestamp=timestamp)

    def __str__(self) -> str:
        stamp = self.timestamp.strftime(CHANGE_LOG_TIMESTAMP_FORMAT)
        if self.field is None:
            return f"{stamp}: Added item to DB."
        return f"{stamp}: Changed {self.field}, Was: {self.old}, Is: {self.new}"

    def to_payload(self) -> dict[str, str | None]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "field": self.field,
            "old": self.old,
            "new": self.new,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, str | None]) -> ChangeLogEntry:
        raw_timestamp = payload.get("timestamp") or datetime.now(tz=UTC).isoformat()
        timestamp = datetime.fromisoformat(raw_timestamp)
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=UTC)
        return cls(
            timestamp=timestamp,
            field=payload.get("field"),
            old=payload.get("old") or "",
            new=payload.get("new") or "",
        )


@dataclass(slots=True, kw_only=True)
class CatalogRecord:
    """One catalog item within a category, unique by ``(category, external_id)``."""

    id: uuid.UUID = field(default_factory=uuid.uuid4)
    category: Category
    external_id: str
    name: str
    type_id: uuid.UUID | None = None
    cores: list[uuid.UUID] = field(default_factory=list[uuid.UUID])
    attachments: list[uuid.UUID] = field(default_factory=list[uuid.UUID])
    kit_items: list[uuid.UUID] = field(default_factory=list[uuid.UUID])
    kit_attachments: list[uuid.UUID] = field(default_factory=list[uuid.UUID])
    palettes: list[uuid.UUID] = field(default_factory=list[uuid.UUID])
    default_of_core: list[uuid.UUID] = field(default_factory=list[uuid.UUID])
    provenance_types: list[uuid.UUID] = field(default_factory=list[uuid.UUID])
    quality_id: uuid.UUID | None = None
    manufacturer_id: uuid.UUID | None = None
    release_id: uuid.UUID | None = None
    description: str = ""
    image_ref: str = ""
    image_token: str = ""
    alt_text: str = ""
    source_text: str = PENDING_SOURCE_TEXT
    hidden: bool = False
    currently_available: bool = False
    kit_only: bool = False
    change_log: list[ChangeLogEntry] = field(default_factory=list[ChangeLogEntry])
    needs_review: bool = False
    freshness_token: str = ""
    last_synced_at: datetime | None = None

    def references(self, reference: ReferenceField) -> list[uuid.UUID]:
        return getattr(self, reference.value)

    def set_references(self, reference: ReferenceField, ids: list[uuid.UUID]) -> None:
        if reference is ReferenceField.DEFAULT_OF_CORE and len(ids) > 1:
            raise ValueError("default_of_core holds at most one core reference")
        setattr(self, reference.value, list(ids))


@dataclass(slots=True, kw_only=True)
class CoreRecord:
    """Top-level grouping record; themes listed in ``theme_paths`` belong to it."""

    id: uuid.UUID = field(default_factory=uuid.uuid4)
    category: Category
    external_id: str
    name: str
    quality_id: uuid.UUID | None = None
    manufacturer_id: uuid.UUID | None = None
    release_id: uuid.UUID | None = None
    description: str = ""
    image_ref: str = ""
    image_token: str = ""
    alt_text: str = ""
    source_text: str = PENDING_SOURCE_TEXT
    hidden: bool = False
    currently_available: bool = False
    theme_paths: list[str] = field(default_factory=list[str])
    change_log: list[ChangeLogEntry] = field(default_factory=list[ChangeLogEntry])
    needs_review: bool = False
    freshness_token: str = ""
    last_synced_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class NameplateAssets:
    emblem_ref: str
    nameplate_ref: str
    text_color: str = ""


@dataclass(slots=True, kw_only=True)
class PaletteRecord:
    """Shared palette, deduplicated by ``configuration_id``."""

    id: uuid.UUID = field(default_factory=uuid.uuid4)
    configuration_id: str
    external_id: str = ""
    name: str = ""
    image_ref: str = ""
    nameplates: dict[str, NameplateAssets] = field(default_factory=dict[str, NameplateAssets])


@dataclass(slots=True, kw_only=True)
class ListingRecord:
    """Shop bundle, pass or challenge that grants catalog records."""

    id: uuid.UUID = field(default_factory=uuid.uuid4)
    kind: ListingKind
    external_id: str
    name: str
    description: str = ""
    cost: int = 0
    channels: dict[str, bool] = field(default_factory=dict[str, bool])
    available_dates: list[datetime] = field(default_factory=list[datetime])
    price_history: list[int] = field(default_factory=list[int])
    populated_fields: list[str] = field(default_factory=list[str])
    references: dict[str, list[uuid.UUID]] = field(default_factory=dict[str, list[uuid.UUID]])
    last_synced_at: datetime | None = None

    @property
    def currently_available(self) -> bool:
        return any(self.channels.values())

    def is_available_on(self, channel: str) -> bool:
        return self.channels.get(channel, False)


@dataclass(frozen=True, slots=True, kw_only=True)
class CatalogType:
    """Per-category socket describing where items of one external type live."""

    id: uuid.UUID = field(default_factory=uuid.uuid4)
    category: Category
    name: str
    external_type: str
    option_group: str = ""
    media_folder: str = ""
    parent_media_folder: str = ""
    is_cross_core: bool = False
    is_partial_cross_core: bool = False
    is_kit: bool = False
    has_attachments: bool = False
    has_palettes: bool = False


@dataclass(frozen=True, slots=True, kw_only=True)
class LookupValue:
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    kind: LookupKind
    name: str
    position: int = 0
