"""Snapshot normalization.

Turns a source snapshot into an :class:`EntityDraft`. Each item kind takes its
own options dataclass so the context a kind needs is spelled out in its
signature instead of being looked up in a loose mapping.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from catalogsync.domain.errors import ResolutionError
from catalogsync.domain.model import EntityDraft, ItemKind

if TYPE_CHECKING:
    from collections.abc import Mapping

    from catalogsync.domain.model import CatalogType, ItemSnapshot
    from catalogsync.domain.schema import CategorySchema


@dataclass(frozen=True, slots=True, kw_only=True)
class CoreOptions:
    """Cores need no relationship context."""


@dataclass(frozen=True, slots=True, kw_only=True)
class ItemOptions:
    theme_cores: Mapping[str, str] = field(default_factory=dict[str, str])
    kit_item: bool = False
    default_of_core: str | None = None
    attachment_ids: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class AttachmentOptions:
    parent_type: str
    theme_cores: Mapping[str, str] = field(default_factory=dict[str, str])
    kit_item: bool = False


@dataclass(frozen=True, slots=True, kw_only=True)
class KitOptions:
    theme_cores: Mapping[str, str] = field(default_factory=dict[str, str])
    child_item_ids: tuple[str, ...] = ()
    child_attachment_ids: tuple[str, ...] = ()


type NormalizeOptions = CoreOptions | ItemOptions | AttachmentOptions | KitOptions


def normalize_snapshot(
    snapshot: ItemSnapshot,
    schema: CategorySchema,
    item_type: CatalogType | None,
    options: NormalizeOptions,
) -> EntityDraft:
    """Build the draft for ``snapshot``.

    ``item_type`` is the category type matching ``snapshot.type``; it may only
    be ``None`` for cores, which have no per-category type row.
    """

    if not snapshot.external_id:
        raise ResolutionError(f"Snapshot at {snapshot.path} carries no external id")

    match options:
        case CoreOptions():
            return _draft(
                snapshot,
                kind=ItemKind.CORE,
                type_name=schema.core_type_name or snapshot.type,
                theme_paths=snapshot.theme_paths,
            )
        case ItemOptions():
            return _draft(
                snapshot,
                kind=ItemKind.ITEM,
                type_name=snapshot.type,
                core_ids=_cores(snapshot, schema, item_type, options.theme_cores),
                attachment_ids=options.attachment_ids,
                palette_ids=tuple(palette.configuration_id for palette in snapshot.palettes),
                kit_only=options.kit_item,
                default_of_core=options.default_of_core,
            )
        case AttachmentOptions():
            return _draft(
                snapshot,
                kind=ItemKind.ATTACHMENT,
                type_name=snapshot.type,
                core_ids=_cores(snapshot, schema, item_type, options.theme_cores),
                parent_type=options.parent_type,
                kit_only=options.kit_item,
            )
        case KitOptions():
            kit_core = options.theme_cores.get(snapshot.path)
            core_ids = (
                (kit_core,)
                if kit_core is not None
                else _cores(snapshot, schema, item_type, options.theme_cores)
            )
            return _draft(
                snapshot,
                kind=ItemKind.KIT,
                type_name=snapshot.type,
                core_ids=core_ids,
                kit_item_ids=options.child_item_ids,
                kit_attachment_ids=options.child_attachment_ids,
            )


def _cores(
    snapshot: ItemSnapshot,
    schema: CategorySchema,
    item_type: CatalogType | None,
    theme_cores: Mapping[str, str],
) -> tuple[str, ...]:
    if not schema.has_cores:
        return ()
    if item_type is None:
        raise ResolutionError(f"Unknown type {snapshot.type!r} for {snapshot.path}")
    return schema.cores_for(snapshot, theme_cores, item_type)


def _draft(  # noqa: PLR0913
    snapshot: ItemSnapshot,
    *,
    kind: ItemKind,
    type_name: str,
    core_ids: tuple[str, ...] = (),
    attachment_ids: tuple[str, ...] = (),
    kit_item_ids: tuple[str, ...] = (),
    kit_attachment_ids: tuple[str, ...] = (),
    palette_ids: tuple[str, ...] = (),
    parent_type: str | None = None,
    kit_only: bool = False,
    default_of_core: str | None = None,
    theme_paths: tuple[str, ...] = (),
) -> EntityDraft:
    return EntityDraft(
        kind=kind,
        external_id=snapshot.external_id,
        name=snapshot.title.strip(),
        type=type_name,
        quality=snapshot.quality,
        manufacturer_index=snapshot.manufacturer_index,
        release=snapshot.release,
        description=snapshot.description,
        hidden=snapshot.hide_until_owned,
        core_ids=core_ids,
        attachment_ids=attachment_ids,
        kit_item_ids=kit_item_ids,
        kit_attachment_ids=kit_attachment_ids,
        palette_configuration_ids=palette_ids,
        parent_type=parent_type,
        kit_only=kit_only,
        default_of_core=default_of_core,
        image_path=snapshot.image_path,
        theme_paths=theme_paths,
    )


__all__ = [
    "AttachmentOptions",
    "CoreOptions",
    "ItemOptions",
    "KitOptions",
    "NormalizeOptions",
    "ResolutionError",
    "normalize_snapshot",
]
