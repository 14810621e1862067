"""Source-side snapshots handed to the normalizer by the catalog source port."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .enums import Category

if TYPE_CHECKING:
    from datetime import datetime

    from .enums import ListingKind


@dataclass(frozen=True, slots=True)
class AttachmentOption:
    """One parent item together with the attachment paths it offers."""

    parent_path: str
    attachment_paths: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class PaletteReference:
    configuration_id: str
    path: str


@dataclass(frozen=True, slots=True, kw_only=True)
class ItemSnapshot:
    """Raw catalog entity as reported by the source.

    Cores, themes, kits and plain items share this shape; fields that do not
    apply to a given entity are left empty. ``option_groups``,
    ``default_options`` and ``attachment_groups`` are only populated for themes
    and kits, keyed by the option group name a :class:`CatalogType` declares.
    """

    external_id: str
    path: str
    title: str
    type: str
    image_path: str = ""
    mime_type: str = "image/png"
    quality: str = ""
    description: str = ""
    manufacturer_index: int | None = None
    release: str = ""
    hide_until_owned: bool = False
    parent_paths: tuple[str, ...] = ()
    parent_theme: str = ""
    is_kit: bool = False
    palettes: tuple[PaletteReference, ...] = ()
    option_groups: dict[str, tuple[str, ...]] = field(default_factory=dict[str, tuple[str, ...]])
    default_options: dict[str, str] = field(default_factory=dict[str, str])
    attachment_groups: dict[str, tuple[AttachmentOption, ...]] = field(
        default_factory=dict[str, tuple[AttachmentOption, ...]]
    )
    theme_paths: tuple[str, ...] = ()
    freshness_token: str = ""


@dataclass(frozen=True, slots=True)
class NameplateSnapshot:
    nameplate_id: str
    emblem_path: str
    nameplate_path: str
    text_color: str = ""


@dataclass(frozen=True, slots=True, kw_only=True)
class PaletteSnapshot:
    configuration_id: str
    external_id: str
    name: str
    image_path: str = ""
    nameplates: tuple[NameplateSnapshot, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class ListingSnapshot:
    """Listing as it appears on the current source page."""

    kind: ListingKind
    external_id: str
    name: str
    description: str = ""
    cost: int = 0
    items: dict[Category, tuple[str, ...]] = field(default_factory=dict[Category, tuple[str, ...]])
    cores: dict[Category, tuple[str, ...]] = field(default_factory=dict[Category, tuple[str, ...]])

    @property
    def populated_fields(self) -> list[str]:
        populated = [f"items:{category}" for category, ids in self.items.items() if ids]
        populated.extend(f"cores:{category}" for category, ids in self.cores.items() if ids)
        return populated


@dataclass(frozen=True, slots=True)
class AssetPayload:
    """Binary asset fetched from the source together with its freshness token."""

    content: bytes
    token: str = ""
    mime_type: str = "image/png"
    fetched_at: datetime | None = None
