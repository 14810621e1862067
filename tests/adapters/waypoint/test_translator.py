"""Translator checks for Waypoint catalog payloads."""

from __future__ import annotations

from catalogsync.adapters.waypoint.translator import (
    build_listing,
    category_for_type,
    core_type,
    freshness_index,
    is_core_type,
    parse_item,
    parse_palette,
    theme_type,
    waypoint_id_from_path,
)
from catalogsync.domain.model import (
    AttachmentOption,
    Category,
    ListingKind,
    NameplateSnapshot,
    PaletteReference,
)

WaypointPayload = dict[str, object]

HERMES = "Inventory/Armor/Helmets/101-000-helmet-hermes.json"
ARES = "Inventory/Armor/Helmets/101-000-helmet-ares.json"
LAMP = "Inventory/Armor/HelmetAttachments/102-000-lamp.json"


def test_waypoint_id_from_path() -> None:
    assert waypoint_id_from_path(HERMES) == "101-000-helmet-hermes"
    assert waypoint_id_from_path("Inventory/Armor/Themes/kit-a.json") == "kit-a"
    assert waypoint_id_from_path("007-001-olympus-c13d0b38.json") == "007-001-olympus-c13d0b38"


def test_category_for_type() -> None:
    assert category_for_type("ArmorHelmet") is Category.ARMOR
    assert category_for_type("ArmorHelmetAttachment") is Category.ARMOR_ATTACHMENT
    assert category_for_type("WeaponCoating") is Category.WEAPON
    assert category_for_type("AiModel") is Category.BODY_AI
    assert category_for_type("SpartanStance") is Category.SPARTAN_ID
    assert category_for_type("Consumable") is None
    assert theme_type(Category.VEHICLE) == "VehicleTheme"
    assert core_type(Category.WEAPON) == "WeaponCore"
    assert is_core_type("ArmorCore")
    assert not is_core_type("ArmorCoating")


def test_parse_item_reads_common_data(helmet_payload: WaypointPayload) -> None:
    snapshot = parse_item(HERMES, helmet_payload, freshness_token="etag-1")

    assert snapshot.external_id == "101-000-helmet-hermes"
    assert snapshot.path == HERMES
    assert snapshot.title == "Hermes"
    assert snapshot.type == "ArmorHelmet"
    assert snapshot.description == ""
    assert snapshot.quality == "Legendary"
    assert snapshot.manufacturer_index == 2
    assert snapshot.release == "Season 1"
    assert snapshot.hide_until_owned
    assert snapshot.parent_paths == ("Inventory/Armor/Themes/007-001-olympus-c13d0b38.json",)
    assert snapshot.image_path == "progression/Inventory/Armor/hermes.png"
    assert snapshot.freshness_token == "etag-1"
    assert snapshot.option_groups == {}
    assert snapshot.attachment_groups == {}


def test_parse_theme_collects_option_groups(theme_payload: WaypointPayload) -> None:
    snapshot = parse_item("Inventory/Armor/Themes/007-001-olympus-c13d0b38.json", theme_payload)

    assert not snapshot.is_kit
    assert snapshot.option_groups == {
        "Visors": (
            "Inventory/Armor/Visors/103-000-visor-gold.json",
            "Inventory/Armor/Visors/103-000-visor-blue.json",
        ),
        "Coatings": (),
    }
    assert snapshot.default_options == {
        "Visors": "Inventory/Armor/Visors/103-000-visor-gold.json"
    }
    assert snapshot.attachment_groups == {
        "Helmets": (
            AttachmentOption(parent_path=HERMES, attachment_paths=(LAMP,)),
            AttachmentOption(parent_path=ARES, attachment_paths=()),
        )
    }
    assert snapshot.palettes == (
        PaletteReference(configuration_id="12", path="Inventory/Armor/Palettes/red.json"),
    )


def test_parse_core_lists_theme_paths(core_payload: WaypointPayload) -> None:
    snapshot = parse_item("Inventory/Armor/Cores/007-000-core-mk7.json", core_payload)

    assert snapshot.theme_paths == ("Inventory/Armor/Themes/007-001-olympus-c13d0b38.json",)
    assert snapshot.option_groups == {}


def test_parse_palette(palette_payload: WaypointPayload) -> None:
    reference = PaletteReference(configuration_id="12", path="palettes/red.json")

    snapshot = parse_palette(reference, palette_payload)

    assert snapshot.configuration_id == "12"
    assert snapshot.external_id == "palette-red"
    assert snapshot.name == "Red"
    assert snapshot.image_path == "progression/palettes/red.png"
    assert snapshot.nameplates == (
        NameplateSnapshot(
            nameplate_id="plate-1",
            emblem_path="progression/emblems/red.png",
            nameplate_path="progression/nameplates/red.png",
            text_color="#FFFFFF",
        ),
    )


def test_freshness_index_skips_incomplete_entries() -> None:
    index = freshness_index(
        {
            "Files": [
                {"Uri": {"Path": HERMES}, "ETag": '"abc"'},
                {"Uri": {"Path": LAMP}, "ETag": ""},
                {"Uri": {"Path": ""}, "ETag": '"def"'},
            ]
        }
    )

    assert index == {"101-000-helmet-hermes": '"abc"'}


def test_build_listing_groups_grants_by_category() -> None:
    listing = build_listing(
        ListingKind.SHOP,
        external_id="bundle-1",
        name="Hermes Bundle",
        cost=1000,
        granted=[
            (HERMES, "ArmorHelmet"),
            (HERMES, "ArmorHelmet"),
            (LAMP, "ArmorHelmetAttachment"),
            ("Inventory/Armor/Cores/007-000-core-mk7.json", "ArmorCore"),
            ("Currency/cr.json", "Currency"),
        ],
    )

    assert listing.items == {
        Category.ARMOR: ("101-000-helmet-hermes",),
        Category.ARMOR_ATTACHMENT: ("102-000-lamp",),
    }
    assert listing.cores == {Category.ARMOR: ("007-000-core-mk7",)}
    assert listing.populated_fields == ["items:armor", "items:armor_attachment", "cores:armor"]
    assert listing.cost == 1000
