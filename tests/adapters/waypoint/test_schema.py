"""Schema validation checks for Waypoint payloads."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from catalogsync.adapters.waypoint.schema import (
    ArmorCoreList,
    AvailableConfiguration,
    ItemPayload,
    PalettePayload,
    PassPayload,
    StorePayload,
    raw_mapping,
)

WaypointPayload = dict[str, object]


def test_item_payload_normalises_nulls(helmet_payload: WaypointPayload) -> None:
    item = ItemPayload.model_validate(helmet_payload)

    common = item.common_data
    assert common.id == "101-000-helmet-hermes"
    assert common.description == ""
    assert common.manufacturer_id == 2
    assert common.hide_until_owned
    assert [parent.path for parent in common.parent_paths] == [
        "Inventory/Armor/Themes/007-001-olympus-c13d0b38.json"
    ]
    assert common.display_path.image_path == "progression/Inventory/Armor/hermes.png"
    assert item.themes is None
    assert item.available_configurations == []


def test_item_payload_requires_common_data() -> None:
    with pytest.raises(ValidationError):
        ItemPayload.model_validate({"IsKit": True})


def test_configuration_ids_are_strings() -> None:
    configuration = AvailableConfiguration.model_validate(
        {"ConfigurationId": 12, "ConfigurationPath": "palettes/red.json"}
    )

    assert configuration.configuration_id == "12"


def test_core_payload_lists_themes(core_payload: WaypointPayload) -> None:
    item = ItemPayload.model_validate(core_payload)

    assert item.themes is not None
    assert item.themes.option_paths == ["Inventory/Armor/Themes/007-001-olympus-c13d0b38.json"]


def test_palette_payload_nameplates(palette_payload: WaypointPayload) -> None:
    palette = PalettePayload.model_validate(palette_payload)

    assert palette.common_data.title == "Red"
    assert palette.nameplates[0].text_color == "#FFFFFF"
    bare = PalettePayload.model_validate({"CommonData": {"Id": "x"}, "Nameplates": None})
    assert bare.nameplates == []


def test_armor_core_list_is_bare_array() -> None:
    cores = ArmorCoreList.model_validate(
        [{"CoreCMSPath": "Inventory/Armor/Cores/007-000-core-mk7.json"}]
    )

    assert [entry.core_path for entry in cores.root] == [
        "Inventory/Armor/Cores/007-000-core-mk7.json"
    ]


def test_store_offering_cost_defaults_to_zero() -> None:
    store = StorePayload.model_validate(
        {
            "Offerings": [
                {"OfferingId": "bundle-1", "Prices": [{"Cost": 1000}]},
                {"OfferingId": "bundle-2", "Prices": []},
            ]
        }
    )

    assert [offering.cost for offering in store.offerings] == [1000, 0]
    assert StorePayload.model_validate({"Offerings": None}).offerings == []


def test_pass_rewards_include_free_and_paid_tracks() -> None:
    reward_pass = PassPayload.model_validate(
        {
            "Name": "Operation",
            "Ranks": [
                {
                    "Rank": 1,
                    "FreeRewards": {
                        "InventoryRewards": [
                            {"InventoryItemPath": "free.json", "Type": "ArmorVisor"}
                        ]
                    },
                    "PaidRewards": {"InventoryRewards": None},
                },
                {
                    "Rank": 2,
                    "PaidRewards": {
                        "InventoryRewards": [
                            {"InventoryItemPath": "paid.json", "Type": "ArmorCoating"}
                        ]
                    },
                },
            ],
        }
    )

    assert [reward.item_path for reward in reward_pass.rewards] == ["free.json", "paid.json"]


def test_raw_mapping_ignores_non_mappings() -> None:
    assert raw_mapping(["not", "a", "mapping"]) == {}
    assert raw_mapping({"a": 1}) == {"a": 1}
