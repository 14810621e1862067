"""Shared payloads and HTTP plumbing for Waypoint adapter tests."""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from catalogsync.adapters.http_resilience import ResilientClient
from catalogsync.adapters.waypoint import WaypointCatalogSource
from catalogsync.config import ResilienceConfig, RetryPolicy, WaypointConfig

WaypointPayload = dict[str, object]
Handler = Callable[[httpx.Request], httpx.Response]

BASE_URL = "https://cms.example.test/hi/"
ECONOMY_URL = "https://economy.example.test/hi/"
PLAYER_ID = "2535400000000001"


@pytest.fixture
def helmet_payload() -> WaypointPayload:
    return {
        "CommonData": {
            "Id": "101-000-helmet-hermes",
            "Title": "Hermes",
            "Type": "ArmorHelmet",
            "Description": None,
            "Quality": "Legendary",
            "ManufacturerId": 2,
            "Season": "Season 1",
            "HideUntilOwned": True,
            "ParentPaths": [{"Path": "Inventory/Armor/Themes/007-001-olympus-c13d0b38.json"}],
            "DisplayPath": {
                "Media": {"MediaUrl": {"Path": "progression/Inventory/Armor/hermes.png"}},
                "MimeType": "image/png",
            },
            "Unused": {"Nested": True},
        }
    }


@pytest.fixture
def theme_payload() -> WaypointPayload:
    return {
        "CommonData": {
            "Id": "007-001-olympus-c13d0b38",
            "Title": "Mark VII",
            "Type": "ArmorTheme",
            "ParentPaths": [{"Path": "Inventory/Armor/Cores/007-000-core-mk7.json"}],
        },
        "IsKit": False,
        "Visors": {
            "DefaultOptionPath": "Inventory/Armor/Visors/103-000-visor-gold.json",
            "OptionPaths": [
                "Inventory/Armor/Visors/103-000-visor-gold.json",
                "Inventory/Armor/Visors/103-000-visor-blue.json",
            ],
            "IsRequired": True,
        },
        "Coatings": {"OptionPaths": None},
        "Helmets": [
            {
                "HelmetPath": "Inventory/Armor/Helmets/101-000-helmet-hermes.json",
                "HelmetAttachments": {
                    "OptionPaths": ["Inventory/Armor/HelmetAttachments/102-000-lamp.json"]
                },
            },
            {
                "HelmetPath": "Inventory/Armor/Helmets/101-000-helmet-ares.json",
                "HelmetAttachments": {"OptionPaths": None},
            },
            {"Unrelated": 1},
        ],
        "AvailableConfigurations": [
            {"ConfigurationId": 12, "ConfigurationPath": "Inventory/Armor/Palettes/red.json"}
        ],
    }


@pytest.fixture
def core_payload() -> WaypointPayload:
    return {
        "CommonData": {"Id": "007-000-core-mk7", "Title": "Mark VII", "Type": "ArmorCore"},
        "Themes": {
            "DefaultOptionPath": "Inventory/Armor/Themes/007-001-olympus-c13d0b38.json",
            "OptionPaths": ["Inventory/Armor/Themes/007-001-olympus-c13d0b38.json"],
        },
    }


@pytest.fixture
def palette_payload() -> WaypointPayload:
    return {
        "CommonData": {
            "Id": "palette-red",
            "Title": "Red",
            "DisplayPath": {"Media": {"MediaUrl": {"Path": "progression/palettes/red.png"}}},
        },
        "Nameplates": [
            {
                "NameplateId": "plate-1",
                "EmblemPath": "progression/emblems/red.png",
                "NameplatePath": "progression/nameplates/red.png",
                "TextColor": "#FFFFFF",
            }
        ],
    }


@pytest.fixture
def waypoint_config() -> WaypointConfig:
    return WaypointConfig(
        resilience=ResilienceConfig(
            name="waypoint",
            base_url=BASE_URL,
            retry=RetryPolicy(total=0),
        ),
        spartan_token="spartan-token",
        clearance="clearance-id",
        economy_base_url=ECONOMY_URL,
        player_id=PLAYER_ID,
    )


@pytest.fixture
def make_source(
    waypoint_config: WaypointConfig,
) -> Callable[[Handler], WaypointCatalogSource]:
    def factory(handler: Handler) -> WaypointCatalogSource:
        transport = httpx.MockTransport(handler)
        return WaypointCatalogSource(
            config_loader=lambda: waypoint_config,
            client_factory=lambda config: ResilientClient(config, transport=transport),
        )

    return factory
