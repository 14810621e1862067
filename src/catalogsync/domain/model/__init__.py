"""Domain model for catalog reconciliation."""

from __future__ import annotations

from .draft import ANY_CORE_MARKER, EntityDraft
from .enums import (
    Category,
    ItemKind,
    ListingKind,
    LookupKind,
    OutcomeStatus,
    ProvenanceKind,
    ReferenceField,
)
from .records import (
    CHANGE_LOG_TIMESTAMP_FORMAT,
    PENDING_SOURCE_TEXT,
    CatalogRecord,
    CatalogType,
    ChangeLogEntry,
    CoreRecord,
    ListingRecord,
    LookupValue,
    NameplateAssets,
    PaletteRecord,
)
from .snapshots import (
    AssetPayload,
    AttachmentOption,
    ItemSnapshot,
    ListingSnapshot,
    NameplateSnapshot,
    PaletteReference,
    PaletteSnapshot,
)

__all__ = [
    "ANY_CORE_MARKER",
    "CHANGE_LOG_TIMESTAMP_FORMAT",
    "PENDING_SOURCE_TEXT",
    "AssetPayload",
    "AttachmentOption",
    "CatalogRecord",
    "CatalogType",
    "Category",
    "ChangeLogEntry",
    "CoreRecord",
    "EntityDraft",
    "ItemKind",
    "ItemSnapshot",
    "ListingKind",
    "ListingRecord",
    "ListingSnapshot",
    "LookupKind",
    "LookupValue",
    "NameplateAssets",
    "NameplateSnapshot",
    "OutcomeStatus",
    "PaletteRecord",
    "PaletteReference",
    "PaletteSnapshot",
    "ProvenanceKind",
    "ReferenceField",
]
