from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from typing import TYPE_CHECKING

import httpx
import pytest

from catalogsync.adapters.http_resilience import ResilientClient
from catalogsync.adapters.waypoint import WaypointCatalogSource
from catalogsync.config import ConfigurationError
from catalogsync.config.waypoint import SPARTAN_TOKEN_HEADER
from catalogsync.domain.model import Category, ItemKind, ListingKind, PaletteReference
from catalogsync.domain.ports import CatalogFetchError, CatalogSource, CredentialsExpiredError
from catalogsync.domain.schema import get_schema

if TYPE_CHECKING:
    from catalogsync.config import WaypointConfig

WaypointPayload = dict[str, object]
Handler = Callable[[httpx.Request], httpx.Response]
MakeSource = Callable[[Handler], WaypointCatalogSource]

CMS = "https://cms.example.test/hi/"
ECONOMY = "https://economy.example.test/hi/players/xuid(2535400000000001)/"
HERMES = "Inventory/Armor/Helmets/101-000-helmet-hermes.json"
THEME = "Inventory/Armor/Themes/007-001-olympus-c13d0b38.json"
CORE = "Inventory/Armor/Cores/007-000-core-mk7.json"


def _routes(routes: dict[str, httpx.Response], seen: list[httpx.Request]) -> Handler:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        response = routes.get(str(request.url))
        if response is None:
            return httpx.Response(404)
        # routes may be hit more than once
        return httpx.Response(
            response.status_code, headers=response.headers, content=response.content
        )

    return handler


def test_source_satisfies_port(make_source: MakeSource) -> None:
    assert isinstance(make_source(_routes({}, [])), CatalogSource)


def test_fetch_item_sends_credentials_and_reads_etag(
    make_source: MakeSource, helmet_payload: WaypointPayload
) -> None:
    seen: list[httpx.Request] = []
    routes = {
        f"{CMS}Progression/file/{HERMES}": httpx.Response(
            200, json=helmet_payload, headers={"etag": '"v1"'}
        )
    }
    source = make_source(_routes(routes, seen))

    snapshot = source.fetch_item(HERMES)

    assert snapshot.external_id == "101-000-helmet-hermes"
    assert snapshot.freshness_token == '"v1"'
    assert seen[0].headers[SPARTAN_TOKEN_HEADER] == "spartan-token"


def test_rejected_credentials_raise_expired(make_source: MakeSource) -> None:
    routes = {f"{CMS}Progression/file/{HERMES}": httpx.Response(401)}
    source = make_source(_routes(routes, []))

    with pytest.raises(CredentialsExpiredError) as exc:
        source.fetch_item(HERMES)

    assert exc.value.status == 401


def test_server_errors_raise_fetch_error(make_source: MakeSource) -> None:
    routes = {f"{CMS}Progression/file/{HERMES}": httpx.Response(503)}
    source = make_source(_routes(routes, []))

    with pytest.raises(CatalogFetchError) as exc:
        source.fetch_item(HERMES)

    assert not isinstance(exc.value, CredentialsExpiredError)
    assert exc.value.status == 503


def test_invalid_payloads_raise_fetch_error(make_source: MakeSource) -> None:
    routes = {
        f"{CMS}Progression/file/broken.json": httpx.Response(200, content=b"<html>"),
        f"{CMS}Progression/file/empty.json": httpx.Response(200, json={"Nope": 1}),
    }
    source = make_source(_routes(routes, []))

    with pytest.raises(CatalogFetchError):
        source.fetch_item("broken.json")
    with pytest.raises(CatalogFetchError):
        source.fetch_item("empty.json")


def test_transport_errors_raise_fetch_error(make_source: MakeSource) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(CatalogFetchError):
        make_source(handler).fetch_item(HERMES)


def test_fetch_palette_and_freshness_index(
    make_source: MakeSource, palette_payload: WaypointPayload
) -> None:
    routes = {
        f"{CMS}Progression/file/palettes/red.json": httpx.Response(200, json=palette_payload),
        f"{CMS}Progression/guide/xo": httpx.Response(
            200, json={"Files": [{"Uri": {"Path": HERMES}, "ETag": '"v1"'}]}
        ),
    }
    source = make_source(_routes(routes, []))

    palette = source.fetch_palette(PaletteReference("12", "palettes/red.json"))
    index = source.fetch_freshness_index()

    assert palette.name == "Red"
    assert index == {"101-000-helmet-hermes": '"v1"'}


def test_asset_fetch_and_probe(make_source: MakeSource) -> None:
    seen: list[httpx.Request] = []
    routes = {
        f"{CMS}images/file/progression/hermes.png": httpx.Response(
            200, content=b"png", headers={"etag": '"img"', "content-type": "image/png"}
        )
    }
    source = make_source(_routes(routes, seen))

    asset = source.fetch_asset("progression/hermes.png")
    token = source.probe_asset("progression/hermes.png")

    assert asset.content == b"png"
    assert asset.token == '"img"'
    assert asset.fetched_at is not None
    assert token == '"img"'
    assert [request.method for request in seen] == ["GET", "HEAD"]


def test_list_paths_per_kind(
    make_source: MakeSource, theme_payload: WaypointPayload
) -> None:
    routes = {
        f"{CMS}waypoint/file/armor-core-list.json": httpx.Response(
            200, json=[{"CoreCMSPath": CORE}]
        ),
        f"{CMS}Progression/file/inventory/catalog/inventory_catalog.json": httpx.Response(
            200,
            json={
                "Items": [
                    {"ItemPath": HERMES, "ItemType": "ArmorHelmet"},
                    {"ItemPath": HERMES, "ItemType": "ArmorHelmet"},
                    {"ItemPath": "stance.json", "ItemType": "SpartanStance"},
                ]
            },
        ),
        f"{ECONOMY}inventory": httpx.Response(
            200,
            json={
                "Items": [
                    {"ItemPath": THEME, "ItemType": "WeaponTheme"},
                    {"ItemPath": "kit.json", "ItemType": "ArmorTheme"},
                ]
            },
        ),
        f"{CMS}Progression/file/{THEME}": httpx.Response(200, json=theme_payload),
    }
    source = make_source(_routes(routes, []))

    assert source.list_paths(get_schema(Category.ARMOR), ItemKind.CORE) == [CORE]
    assert source.list_paths(get_schema(Category.ARMOR), ItemKind.ITEM) == [HERMES]
    assert source.list_paths(get_schema(Category.ARMOR), ItemKind.KIT) == ["kit.json"]
    assert source.list_paths(get_schema(Category.WEAPON), ItemKind.CORE) == [CORE]
    assert source.list_paths(get_schema(Category.SPARTAN_ID), ItemKind.CORE) == []


def test_player_scoped_requests_require_player_id(
    waypoint_config: WaypointConfig,
) -> None:
    config = replace(waypoint_config, player_id=None)
    transport = httpx.MockTransport(_routes({}, []))
    source = WaypointCatalogSource(
        config_loader=lambda: config,
        client_factory=lambda resilience: ResilientClient(resilience, transport=transport),
    )

    with pytest.raises(ConfigurationError):
        source.fetch_listings(ListingKind.SHOP, "main")


def test_store_listings_resolve_theme_grants_to_cores(
    make_source: MakeSource, theme_payload: WaypointPayload
) -> None:
    routes = {
        f"{ECONOMY}stores/main": httpx.Response(
            200,
            json={
                "Offerings": [
                    {
                        "OfferingId": "bundle-1",
                        "OfferingDisplayPath": "Offerings/bundle-1.json",
                        "Prices": [{"Cost": 1000}],
                        "IncludedItems": [
                            {"ItemPath": HERMES, "ItemType": "ArmorHelmet"},
                            {"ItemPath": THEME, "ItemType": "ArmorTheme"},
                            {"ItemPath": "Currency/cr.json", "ItemType": "Currency"},
                        ],
                    }
                ]
            },
        ),
        f"{CMS}Progression/file/Offerings/bundle-1.json": httpx.Response(
            200, json={"Title": "Hermes Bundle", "Description": ""}
        ),
        f"{CMS}Progression/file/{THEME}": httpx.Response(200, json=theme_payload),
    }
    source = make_source(_routes(routes, []))

    listings = source.fetch_listings(ListingKind.SHOP, "main")

    assert len(listings) == 1
    listing = listings[0]
    assert listing.name == "Hermes Bundle"
    assert listing.cost == 1000
    assert listing.items == {Category.ARMOR: ("101-000-helmet-hermes",)}
    assert listing.cores == {Category.ARMOR: ("007-000-core-mk7",)}


def test_refresh_credentials_reloads_config(waypoint_config: WaypointConfig) -> None:
    calls: list[int] = []

    def loader() -> WaypointConfig:
        calls.append(1)
        return waypoint_config

    source = WaypointCatalogSource(config_loader=loader)
    source.refresh_credentials()

    assert len(calls) == 2
