"""Translate Waypoint payloads into catalog snapshots."""

from __future__ import annotations

import re
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final, cast

from catalogsync.domain.model import (
    AttachmentOption,
    Category,
    ItemSnapshot,
    ListingSnapshot,
    NameplateSnapshot,
    PaletteReference,
    PaletteSnapshot,
)

from .schema import GuidePayload, ItemPayload, PalettePayload, raw_mapping

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from catalogsync.domain.model import ListingKind

log = getLogger(__name__)

_WAYPOINT_ID = re.compile(r"\d[^.]+")

# Attachment types are matched before their category prefix.
_ATTACHMENT_SUFFIX: Final[str] = "Attachment"
_ATTACHMENT_PARENTS: Final[tuple[str, ...]] = ("ArmorHelmet",)
_NON_GROUP_KEYS: Final[frozenset[str]] = frozenset(
    {"CommonData", "Themes", "AvailableConfigurations", "IsKit"}
)

TYPE_PREFIXES: Final[dict[Category, str]] = {
    Category.ARMOR: "Armor",
    Category.WEAPON: "Weapon",
    Category.VEHICLE: "Vehicle",
    Category.BODY_AI: "Ai",
    Category.SPARTAN_ID: "Spartan",
}


def waypoint_id_from_path(path: str) -> str:
    """Return the Waypoint id embedded in a file path, or the bare file name."""

    file_name = path.rsplit("/", 1)[-1]
    match = _WAYPOINT_ID.search(file_name)
    if match is None:
        return file_name.rsplit(".", 1)[0]
    return match.group(0)


def theme_type(category: Category) -> str:
    return f"{TYPE_PREFIXES[category]}Theme"


def core_type(category: Category) -> str:
    return f"{TYPE_PREFIXES[category]}Core"


def category_for_type(item_type: str) -> Category | None:
    """Map a Waypoint item type to the catalog category it belongs to."""

    if item_type.endswith(_ATTACHMENT_SUFFIX) and item_type.startswith(_ATTACHMENT_PARENTS):
        return Category.ARMOR_ATTACHMENT
    for category, prefix in TYPE_PREFIXES.items():
        if item_type.startswith(prefix):
            return category
    return None


def is_core_type(item_type: str) -> bool:
    return item_type.endswith("Core")


def freshness_index(payload: object) -> dict[str, str]:
    guide = GuidePayload.model_validate(payload)
    index: dict[str, str] = {}
    for entry in guide.files:
        if not entry.uri.path or not entry.etag:
            continue
        index[waypoint_id_from_path(entry.uri.path)] = entry.etag
    return index


def _option_groups(
    raw: Mapping[str, object],
) -> tuple[dict[str, tuple[str, ...]], dict[str, str], dict[str, tuple[AttachmentOption, ...]]]:
    option_groups: dict[str, tuple[str, ...]] = {}
    default_options: dict[str, str] = {}
    attachment_groups: dict[str, tuple[AttachmentOption, ...]] = {}

    for key, value in raw.items():
        if key in _NON_GROUP_KEYS:
            continue
        if isinstance(value, dict):
            group = cast(dict[str, Any], value)
            if "OptionPaths" not in group:
                continue
            option_groups[key] = tuple(str(path) for path in group.get("OptionPaths") or ())
            default_path = group.get("DefaultOptionPath")
            if default_path:
                default_options[key] = str(default_path)
        elif isinstance(value, list):
            options = tuple(
                option
                for entry in cast(list[Any], value)
                if (option := _attachment_option(entry)) is not None
            )
            if options:
                attachment_groups[key] = options
    return option_groups, default_options, attachment_groups


def _attachment_option(entry: object) -> AttachmentOption | None:
    if not isinstance(entry, dict):
        return None
    fields = cast(dict[str, Any], entry)
    parent_path = ""
    attachment_paths: tuple[str, ...] | None = None
    for key, value in fields.items():
        if key.endswith("Path") and isinstance(value, str):
            parent_path = value
        elif isinstance(value, dict) and "OptionPaths" in value:
            paths = cast(dict[str, Any], value).get("OptionPaths") or ()
            attachment_paths = tuple(str(path) for path in paths)
    if not parent_path or attachment_paths is None:
        return None
    return AttachmentOption(parent_path=parent_path, attachment_paths=attachment_paths)


def parse_item(path: str, payload: object, *, freshness_token: str = "") -> ItemSnapshot:
    item = ItemPayload.model_validate(payload)
    common = item.common_data
    option_groups, default_options, attachment_groups = _option_groups(raw_mapping(payload))

    return ItemSnapshot(
        external_id=common.id,
        path=path,
        title=common.title,
        type=common.type,
        image_path=common.display_path.image_path,
        mime_type=common.display_path.mime_type,
        quality=common.quality,
        description=common.description,
        manufacturer_index=common.manufacturer_id,
        release=common.season,
        hide_until_owned=common.hide_until_owned,
        parent_paths=tuple(parent.path for parent in common.parent_paths if parent.path),
        parent_theme=common.parent_theme,
        is_kit=item.is_kit,
        palettes=tuple(
            PaletteReference(
                configuration_id=configuration.configuration_id,
                path=configuration.configuration_path,
            )
            for configuration in item.available_configurations
        ),
        option_groups=option_groups,
        default_options=default_options,
        attachment_groups=attachment_groups,
        theme_paths=tuple(item.themes.option_paths) if item.themes is not None else (),
        freshness_token=freshness_token,
    )


def parse_palette(reference: PaletteReference, payload: object) -> PaletteSnapshot:
    palette = PalettePayload.model_validate(payload)
    common = palette.common_data
    return PaletteSnapshot(
        configuration_id=reference.configuration_id,
        external_id=common.id,
        name=common.title,
        image_path=common.display_path.image_path,
        nameplates=tuple(
            NameplateSnapshot(
                nameplate_id=nameplate.nameplate_id,
                emblem_path=nameplate.emblem_path,
                nameplate_path=nameplate.nameplate_path,
                text_color=nameplate.text_color,
            )
            for nameplate in palette.nameplates
        ),
    )


def build_listing(  # noqa: PLR0913
    kind: ListingKind,
    *,
    external_id: str,
    name: str,
    description: str = "",
    cost: int = 0,
    granted: Iterable[tuple[str, str]] = (),
) -> ListingSnapshot:
    """Group the ``(path, item type)`` pairs a listing grants by category.

    Core grants land in ``cores``; everything else lands in ``items``. Types
    outside the catalog (currencies, consumables) are dropped.
    """

    items: dict[Category, list[str]] = {}
    cores: dict[Category, list[str]] = {}
    for path, item_type in granted:
        category = category_for_type(item_type)
        if category is None:
            log.debug("Ignoring %s grant %s in %s", item_type, path, name)
            continue
        target = cores if is_core_type(item_type) else items
        external_ids = target.setdefault(category, [])
        external_id_of_grant = waypoint_id_from_path(path)
        if external_id_of_grant not in external_ids:
            external_ids.append(external_id_of_grant)

    return ListingSnapshot(
        kind=kind,
        external_id=external_id,
        name=name,
        description=description,
        cost=cost,
        items={category: tuple(ids) for category, ids in items.items()},
        cores={category: tuple(ids) for category, ids in cores.items()},
    )


__all__ = [
    "TYPE_PREFIXES",
    "build_listing",
    "category_for_type",
    "core_type",
    "freshness_index",
    "is_core_type",
    "parse_item",
    "parse_palette",
    "theme_type",
    "waypoint_id_from_path",
]
