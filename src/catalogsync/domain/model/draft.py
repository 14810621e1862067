"""Canonical per-snapshot draft consumed by the diff engine."""

from __future__ import annotations

from dataclasses import dataclass

from .enums import ItemKind

ANY_CORE_MARKER = "Any"


@dataclass(frozen=True, slots=True, kw_only=True)
class EntityDraft:
    """Category-independent view of one snapshot.

    Relationship fields hold raw source identifiers; the reference resolver
    turns them into record ids. A draft lives for a single reconciliation call.
    """

    kind: ItemKind
    external_id: str
    name: str
    type: str
    quality: str = ""
    manufacturer_index: int | None = None
    release: str = ""
    description: str = ""
    hidden: bool = False
    core_ids: tuple[str, ...] = ()
    attachment_ids: tuple[str, ...] = ()
    kit_item_ids: tuple[str, ...] = ()
    kit_attachment_ids: tuple[str, ...] = ()
    palette_configuration_ids: tuple[str, ...] = ()
    parent_type: str | None = None
    kit_only: bool = False
    default_of_core: str | None = None
    image_path: str = ""
    theme_paths: tuple[str, ...] = ()

    @property
    def is_cross_core(self) -> bool:
        return self.core_ids == (ANY_CORE_MARKER,)
