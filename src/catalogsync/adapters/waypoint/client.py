"""HTTP client for the Waypoint catalog."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Final

import httpx
from pydantic import ValidationError

from catalogsync.adapters.http_resilience import ResilientClient
from catalogsync.config import ConfigurationError, WaypointConfig, get_waypoint_config
from catalogsync.domain.model import AssetPayload, Category, ItemKind, ListingKind
from catalogsync.domain.ports.fetching import CatalogFetchError, CredentialsExpiredError

from .schema import (
    ArmorCoreList,
    ChallengeDeck,
    ChallengeDecksPayload,
    ChallengePayload,
    InventoryPayload,
    OfferingDisplay,
    OperationTracksPayload,
    PassPayload,
    StorePayload,
)
from .translator import (
    build_listing,
    category_for_type,
    core_type,
    freshness_index,
    parse_item,
    parse_palette,
    theme_type,
    waypoint_id_from_path,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from catalogsync.config import ResilienceConfig
    from catalogsync.domain.model import (
        ItemSnapshot,
        ListingSnapshot,
        PaletteReference,
        PaletteSnapshot,
    )
    from catalogsync.domain.ports.fetching import CatalogSource
    from catalogsync.domain.schema import CategorySchema

log = getLogger(__name__)

PROGRESSION_PREFIX: Final[str] = "Progression/file/"
IMAGE_PREFIX: Final[str] = "images/file/"
GUIDE_PATH: Final[str] = "Progression/guide/xo"
ARMOR_CORE_LIST_PATH: Final[str] = "waypoint/file/armor-core-list.json"
INVENTORY_CATALOG_PATH: Final[str] = "inventory/catalog/inventory_catalog.json"
HALOSTATS_BASE_URL: Final[str] = "https://halostats.svc.halowaypoint.com/hi/"
_AUTH_FAILURES: Final[frozenset[int]] = frozenset({401, 403})


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class WaypointCatalogSource:
    """Catalog source backed by the Waypoint content and economy services.

    Every public call runs its own event loop, so the source can be used
    from the prefetch worker threads as well as from the main thread.
    """

    config_loader: Callable[[], WaypointConfig] = field(default=get_waypoint_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    config: WaypointConfig = field(init=False)

    def __post_init__(self) -> None:
        self.config = self.config_loader()

    # Catalog documents ----------------------------------------------------------

    def fetch_item(self, path: str) -> ItemSnapshot:
        return self._run(lambda client: self._fetch_item(client, path))

    def fetch_palette(self, reference: PaletteReference) -> PaletteSnapshot:
        async def fetch(client: ResilientClient) -> PaletteSnapshot:
            payload, _ = await self._get_json(client, PROGRESSION_PREFIX + reference.path)
            return parse_palette(reference, payload)

        return self._run(fetch)

    def fetch_freshness_index(self) -> dict[str, str]:
        async def fetch(client: ResilientClient) -> dict[str, str]:
            payload, _ = await self._get_json(client, GUIDE_PATH)
            return freshness_index(payload)

        return self._run(fetch)

    def list_paths(self, schema: CategorySchema, kind: ItemKind) -> list[str]:
        category = schema.category
        if kind is ItemKind.CORE:
            if category is Category.ARMOR:
                return self._run(self._armor_core_paths)
            if schema.has_cores:
                return self._run(lambda client: self._core_paths_from_themes(client, category))
            return []
        if kind is ItemKind.KIT:
            return self._run(lambda client: self._inventory_paths(client, theme_type(category)))
        if kind is ItemKind.ITEM:
            return self._run(lambda client: self._catalog_paths(client, category))
        log.warning("Cannot list %s paths for %s", kind, schema.display_name)
        return []

    # Media ----------------------------------------------------------------------

    def fetch_asset(self, path: str) -> AssetPayload:
        async def fetch(client: ResilientClient) -> AssetPayload:
            response = await self._send(client.get, IMAGE_PREFIX + path)
            return AssetPayload(
                content=response.content,
                token=response.headers.get("etag", ""),
                mime_type=response.headers.get("content-type", "image/png"),
                fetched_at=datetime.now(tz=UTC),
            )

        return self._run(fetch)

    def probe_asset(self, path: str) -> str:
        async def probe(client: ResilientClient) -> str:
            response = await self._send(client.head, IMAGE_PREFIX + path)
            return response.headers.get("etag", "")

        return self._run(probe)

    # Listings -------------------------------------------------------------------

    def fetch_listings(self, kind: ListingKind, channel: str) -> list[ListingSnapshot]:
        if kind is ListingKind.SHOP:
            return self._run(lambda client: self._store_listings(client, channel))
        if kind is ListingKind.PASS:
            return self._run(lambda client: self._pass_listings(client, channel))
        return self._run(self._challenge_listings)

    def refresh_credentials(self) -> None:
        log.info("Reloading Waypoint credentials")
        self.config = self.config_loader()

    # Internals ------------------------------------------------------------------

    def _run[T](self, operation: Callable[[ResilientClient], Awaitable[T]]) -> T:
        async def run() -> T:
            async with self.client_factory(self.config.resilience) as client:
                return await operation(client)

        return asyncio.run(run())

    async def _send(
        self, method: Callable[..., Awaitable[httpx.Response]], url: str
    ) -> httpx.Response:
        try:
            response = await method(url, headers=self.config.auth_headers())
        except httpx.HTTPError as exc:
            raise CatalogFetchError(f"Request to {url} failed: {exc}", path=url) from exc

        status = response.status_code
        if status in _AUTH_FAILURES:
            raise CredentialsExpiredError(
                f"Waypoint rejected the credentials for {url} ({status})", path=url, status=status
            )
        if status >= httpx.codes.BAD_REQUEST:
            raise CatalogFetchError(
                f"Waypoint returned {status} for {url}", path=url, status=status
            )
        return response

    async def _get_json(
        self, client: ResilientClient, url: str
    ) -> tuple[object, httpx.Response]:
        response = await self._send(client.get, url)
        try:
            return response.json(), response
        except ValueError as exc:
            raise CatalogFetchError(f"Invalid JSON from {url}", path=url) from exc

    async def _fetch_item(self, client: ResilientClient, path: str) -> ItemSnapshot:
        payload, response = await self._get_json(client, PROGRESSION_PREFIX + path)
        try:
            return parse_item(path, payload, freshness_token=response.headers.get("etag", ""))
        except ValidationError as exc:
            raise CatalogFetchError(f"Unexpected item payload at {path}", path=path) from exc

    def _player_url(self, suffix: str, base_url: str | None = None) -> str:
        player_id = self.config.player_id
        if not player_id:
            raise ConfigurationError("WAYPOINT_PLAYER_ID is required for player-scoped requests")
        return f"{base_url or self.config.economy_base_url}players/xuid({player_id})/{suffix}"

    async def _armor_core_paths(self, client: ResilientClient) -> list[str]:
        payload, _ = await self._get_json(client, ARMOR_CORE_LIST_PATH)
        return [entry.core_path for entry in ArmorCoreList.model_validate(payload).root]

    async def _inventory_paths(self, client: ResilientClient, item_type: str) -> list[str]:
        payload, _ = await self._get_json(client, self._player_url("inventory"))
        inventory = InventoryPayload.model_validate(payload)
        return _unique(item.item_path for item in inventory.items if item.item_type == item_type)

    async def _core_paths_from_themes(
        self, client: ResilientClient, category: Category
    ) -> list[str]:
        """Cores are not listed in the inventory; collect them through owned themes."""

        paths: list[str] = []
        for theme_path in await self._inventory_paths(client, theme_type(category)):
            theme = await self._fetch_item(client, theme_path)
            for core_path in theme.parent_paths:
                if core_path not in paths:
                    paths.append(core_path)
        return paths

    async def _catalog_paths(self, client: ResilientClient, category: Category) -> list[str]:
        payload, _ = await self._get_json(client, PROGRESSION_PREFIX + INVENTORY_CATALOG_PATH)
        catalog = InventoryPayload.model_validate(payload)
        return _unique(
            item.item_path
            for item in catalog.items
            if category_for_type(item.item_type) is category
        )

    async def _resolve_grant(
        self, client: ResilientClient, path: str, item_type: str
    ) -> tuple[str, str]:
        """Map a non-kit theme grant to the core it unlocks."""

        if not item_type.endswith("Theme"):
            return path, item_type
        theme = await self._fetch_item(client, path)
        category = category_for_type(item_type)
        if theme.is_kit or not theme.parent_paths or category is None:
            return path, item_type
        return theme.parent_paths[0], core_type(category)

    async def _grants(
        self, client: ResilientClient, granted: Iterable[tuple[str, str]]
    ) -> list[tuple[str, str]]:
        return [await self._resolve_grant(client, path, item_type) for path, item_type in granted]

    async def _store_listings(
        self, client: ResilientClient, channel: str
    ) -> list[ListingSnapshot]:
        payload, _ = await self._get_json(client, self._player_url(f"stores/{channel}"))
        store = StorePayload.model_validate(payload)
        listings: list[ListingSnapshot] = []
        for offering in store.offerings:
            display = OfferingDisplay()
            if offering.display_path:
                display_payload, _ = await self._get_json(
                    client, PROGRESSION_PREFIX + offering.display_path
                )
                display = OfferingDisplay.model_validate(display_payload)
            granted = await self._grants(
                client, ((item.item_path, item.item_type) for item in offering.included_items)
            )
            listings.append(
                build_listing(
                    ListingKind.SHOP,
                    external_id=offering.offering_id,
                    name=display.title or offering.offering_id,
                    description=display.description,
                    cost=offering.cost,
                    granted=granted,
                )
            )
        return listings

    async def _pass_listings(
        self, client: ResilientClient, channel: str
    ) -> list[ListingSnapshot]:
        payload, _ = await self._get_json(client, self._player_url(f"rewardtracks/{channel}"))
        tracks = OperationTracksPayload.model_validate(payload)
        listings: list[ListingSnapshot] = []
        for track in tracks.tracks:
            track_payload, _ = await self._get_json(
                client, PROGRESSION_PREFIX + track.reward_track_path
            )
            reward_pass = PassPayload.model_validate(track_payload)
            granted = await self._grants(
                client, ((reward.item_path, reward.item_type) for reward in reward_pass.rewards)
            )
            listings.append(
                build_listing(
                    ListingKind.PASS,
                    external_id=waypoint_id_from_path(track.reward_track_path),
                    name=reward_pass.name,
                    description=reward_pass.description,
                    granted=granted,
                )
            )
        return listings

    async def _challenge_listings(self, client: ResilientClient) -> list[ListingSnapshot]:
        payload, _ = await self._get_json(
            client, self._player_url("decks", base_url=HALOSTATS_BASE_URL)
        )
        decks = ChallengeDecksPayload.model_validate(payload)
        listings: list[ListingSnapshot] = []
        for deck_ref in decks.assigned_decks:
            deck_payload, _ = await self._get_json(client, PROGRESSION_PREFIX + deck_ref.path)
            deck = ChallengeDeck.model_validate(deck_payload)
            if not deck.capstone_challenge_path:
                continue
            challenge_payload, _ = await self._get_json(
                client, PROGRESSION_PREFIX + deck.capstone_challenge_path
            )
            challenge = ChallengePayload.model_validate(challenge_payload)
            granted = await self._grants(
                client,
                (
                    (reward.item_path, reward.item_type)
                    for reward in challenge.reward.inventory_rewards
                ),
            )
            listings.append(
                build_listing(
                    ListingKind.CHALLENGE,
                    external_id=waypoint_id_from_path(deck.capstone_challenge_path),
                    name=challenge.title,
                    description=challenge.description,
                    granted=granted,
                )
            )
        return listings


def _unique(paths: Iterable[str]) -> list[str]:
    unique: list[str] = []
    for path in paths:
        if path not in unique:
            unique.append(path)
    return unique


if TYPE_CHECKING:
    _source_check: CatalogSource = WaypointCatalogSource()
