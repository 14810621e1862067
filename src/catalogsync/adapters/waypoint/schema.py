"""Pydantic models describing the Waypoint catalog payloads."""

from __future__ import annotations

from collections.abc import Mapping
from typing import cast

from pydantic import BaseModel, ConfigDict, Field, RootModel, field_validator


class WaypointBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


def _none_to_empty_list(value: object) -> object:
    return [] if value is None else value


class PathRef(WaypointBaseModel):
    path: str = Field(default="", alias="Path")


class MediaUrl(WaypointBaseModel):
    path: str = Field(default="", alias="Path")


class Media(WaypointBaseModel):
    media_url: MediaUrl = Field(default_factory=MediaUrl, alias="MediaUrl")


class DisplayPath(WaypointBaseModel):
    media: Media = Field(default_factory=Media, alias="Media")
    mime_type: str = Field(default="image/png", alias="MimeType")

    @property
    def image_path(self) -> str:
        return self.media.media_url.path


class CommonData(WaypointBaseModel):
    id: str = Field(alias="Id")
    title: str = Field(default="", alias="Title")
    type: str = Field(default="", alias="Type")
    description: str = Field(default="", alias="Description")
    quality: str = Field(default="", alias="Quality")
    manufacturer_id: int | None = Field(default=None, alias="ManufacturerId")
    season: str = Field(default="", alias="Season")
    hide_until_owned: bool = Field(default=False, alias="HideUntilOwned")
    parent_paths: list[PathRef] = Field(default_factory=list[PathRef], alias="ParentPaths")
    parent_theme: str = Field(default="", alias="ParentTheme")
    display_path: DisplayPath = Field(default_factory=DisplayPath, alias="DisplayPath")

    @field_validator("title", "description", "quality", "season", "parent_theme", mode="before")
    @classmethod
    def _none_to_blank(cls, value: object) -> object:
        return "" if value is None else value

    _normalize_parents = field_validator("parent_paths", mode="before")(_none_to_empty_list)


class OptionList(WaypointBaseModel):
    default_option_path: str = Field(default="", alias="DefaultOptionPath")
    option_paths: list[str] = Field(default_factory=list[str], alias="OptionPaths")

    _normalize_paths = field_validator("option_paths", mode="before")(_none_to_empty_list)


class AvailableConfiguration(WaypointBaseModel):
    configuration_id: str = Field(alias="ConfigurationId")
    configuration_path: str = Field(alias="ConfigurationPath")

    @field_validator("configuration_id", mode="before")
    @classmethod
    def _stringify(cls, value: object) -> object:
        return str(value) if isinstance(value, int) else value


class ItemPayload(WaypointBaseModel):
    """One item, theme, kit or core document.

    Themes and kits carry their option groups as extra top-level keys; those
    are read from the raw mapping by the translator.
    """

    common_data: CommonData = Field(alias="CommonData")
    is_kit: bool = Field(default=False, alias="IsKit")
    themes: OptionList | None = Field(default=None, alias="Themes")
    available_configurations: list[AvailableConfiguration] = Field(
        default_factory=list[AvailableConfiguration], alias="AvailableConfigurations"
    )

    _normalize_configurations = field_validator("available_configurations", mode="before")(
        _none_to_empty_list
    )


class NameplatePayload(WaypointBaseModel):
    nameplate_id: str = Field(alias="NameplateId")
    emblem_path: str = Field(default="", alias="EmblemPath")
    nameplate_path: str = Field(default="", alias="NameplatePath")
    text_color: str = Field(default="", alias="TextColor")


class PalettePayload(WaypointBaseModel):
    common_data: CommonData = Field(alias="CommonData")
    nameplates: list[NameplatePayload] = Field(
        default_factory=list[NameplatePayload], alias="Nameplates"
    )

    _normalize_nameplates = field_validator("nameplates", mode="before")(_none_to_empty_list)


class GuideFile(WaypointBaseModel):
    uri: PathRef = Field(alias="Uri")
    etag: str = Field(default="", alias="ETag")


class GuidePayload(WaypointBaseModel):
    files: list[GuideFile] = Field(default_factory=list[GuideFile], alias="Files")


class InventoryItem(WaypointBaseModel):
    item_path: str = Field(alias="ItemPath")
    item_type: str = Field(default="", alias="ItemType")


class InventoryPayload(WaypointBaseModel):
    items: list[InventoryItem] = Field(default_factory=list[InventoryItem], alias="Items")

    _normalize_items = field_validator("items", mode="before")(_none_to_empty_list)


class ArmorCoreEntry(WaypointBaseModel):
    core_path: str = Field(alias="CoreCMSPath")


class ArmorCoreList(RootModel[list[ArmorCoreEntry]]):
    """The armor core list is a bare JSON array."""


class Price(WaypointBaseModel):
    cost: int = Field(default=0, alias="Cost")


class Offering(WaypointBaseModel):
    offering_id: str = Field(alias="OfferingId")
    display_path: str = Field(default="", alias="OfferingDisplayPath")
    prices: list[Price] = Field(default_factory=list[Price], alias="Prices")
    included_items: list[InventoryItem] = Field(
        default_factory=list[InventoryItem], alias="IncludedItems"
    )

    @property
    def cost(self) -> int:
        return self.prices[0].cost if self.prices else 0


class StorePayload(WaypointBaseModel):
    offerings: list[Offering] = Field(default_factory=list[Offering], alias="Offerings")

    _normalize_offerings = field_validator("offerings", mode="before")(_none_to_empty_list)


class OfferingDisplay(WaypointBaseModel):
    title: str = Field(default="", alias="Title")
    description: str = Field(default="", alias="Description")


class InventoryReward(WaypointBaseModel):
    item_path: str = Field(alias="InventoryItemPath")
    item_type: str = Field(default="", alias="Type")


class RewardSet(WaypointBaseModel):
    inventory_rewards: list[InventoryReward] = Field(
        default_factory=list[InventoryReward], alias="InventoryRewards"
    )

    _normalize_rewards = field_validator("inventory_rewards", mode="before")(_none_to_empty_list)


class PassRank(WaypointBaseModel):
    rank: int = Field(default=0, alias="Rank")
    free_rewards: RewardSet = Field(default_factory=RewardSet, alias="FreeRewards")
    paid_rewards: RewardSet = Field(default_factory=RewardSet, alias="PaidRewards")


class PassPayload(WaypointBaseModel):
    name: str = Field(default="", alias="Name")
    description: str = Field(default="", alias="Description")
    ranks: list[PassRank] = Field(default_factory=list[PassRank], alias="Ranks")

    @property
    def rewards(self) -> list[InventoryReward]:
        rewards: list[InventoryReward] = []
        for rank in self.ranks:
            rewards.extend(rank.free_rewards.inventory_rewards)
            rewards.extend(rank.paid_rewards.inventory_rewards)
        return rewards


class OperationTrack(WaypointBaseModel):
    reward_track_path: str = Field(alias="RewardTrackPath")


class OperationTracksPayload(WaypointBaseModel):
    tracks: list[OperationTrack] = Field(
        default_factory=list[OperationTrack], alias="OperationRewardTracks"
    )


class AssignedDeck(WaypointBaseModel):
    path: str = Field(alias="Path")


class ChallengeDecksPayload(WaypointBaseModel):
    assigned_decks: list[AssignedDeck] = Field(
        default_factory=list[AssignedDeck], alias="AssignedDecks"
    )


class ChallengeDeck(WaypointBaseModel):
    capstone_challenge_path: str = Field(default="", alias="CapstoneChallengePath")


class ChallengePayload(WaypointBaseModel):
    title: str = Field(default="", alias="Title")
    description: str = Field(default="", alias="Description")
    reward: RewardSet = Field(default_factory=RewardSet, alias="Reward")


def raw_mapping(payload: object) -> Mapping[str, object]:
    if isinstance(payload, Mapping):
        return cast(Mapping[str, object], payload)
    return {}
