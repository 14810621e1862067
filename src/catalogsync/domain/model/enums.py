"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class Category(StrEnum):
    """Catalog categories, one record collection each."""

    ARMOR = "armor"
    ARMOR_ATTACHMENT = "armor_attachment"
    WEAPON = "weapon"
    VEHICLE = "vehicle"
    BODY_AI = "body_ai"
    SPARTAN_ID = "spartan_id"


class ItemKind(StrEnum):
    CORE = "core"
    ITEM = "item"
    ATTACHMENT = "attachment"
    KIT = "kit"


class ProvenanceKind(StrEnum):
    """Acquisition-source tags; values match the provenance-type lookup names."""

    PENDING = "Pending"
    SHOP = "Shop"
    PASS = "Pass"
    CHALLENGE = "Capstone Challenge"
    KIT_ITEM = "Kit Item"


class ListingKind(StrEnum):
    SHOP = "shop"
    PASS = "pass"
    CHALLENGE = "challenge"

    @property
    def provenance(self) -> ProvenanceKind:
        return _PROVENANCE_BY_LISTING[self]


_PROVENANCE_BY_LISTING = {
    ListingKind.SHOP: ProvenanceKind.SHOP,
    ListingKind.PASS: ProvenanceKind.PASS,
    ListingKind.CHALLENGE: ProvenanceKind.CHALLENGE,
}


class ReferenceField(StrEnum):
    """Relationship fields on catalog records (stored as reference sets)."""

    CORES = "cores"
    ATTACHMENTS = "attachments"
    KIT_ITEMS = "kit_items"
    KIT_ATTACHMENTS = "kit_attachments"
    PALETTES = "palettes"
    DEFAULT_OF_CORE = "default_of_core"
    PROVENANCE_TYPES = "provenance_types"


class LookupKind(StrEnum):
    QUALITY = "quality"
    RELEASE = "release"
    MANUFACTURER = "manufacturer"
    PROVENANCE_TYPE = "provenance_type"


class OutcomeStatus(StrEnum):
    UNCHANGED = "unchanged"
    UPDATED = "updated"
    CREATED = "created"
