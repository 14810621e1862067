"""Per-category schema strategies.

Each category knows its media folders, whether it groups items under cores
and themes, and how an item's owning cores are derived from its snapshot.
The rest of the engine asks the schema instead of branching on category keys.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from catalogsync.config.errors import ConfigurationError
from catalogsync.domain.errors import ResolutionError
from catalogsync.domain.model import ANY_CORE_MARKER, Category

if TYPE_CHECKING:
    from collections.abc import Mapping

    from catalogsync.domain.model import CatalogType, ItemSnapshot

MEDIA_ROOT: Final[str] = "/Customization Images"
PALETTE_FOLDER: Final[str] = "Emblem Palettes"
PALETTE_TYPE_NAME: Final[str] = "Emblem Palette"

_UNSAFE_KEY_CHARACTERS = re.compile(r"[\\/?:]")


class UnknownCategoryError(ConfigurationError):
    """Raised when a category key has no schema."""


def _join_folder(*segments: str) -> str:
    joined = "/".join(segment.strip("/") for segment in segments if segment.strip("/"))
    return f"/{joined}/"


def safe_title(title: str) -> str:
    return _UNSAFE_KEY_CHARACTERS.sub("_", title)


def palette_image_folder() -> str:
    return _join_folder(MEDIA_ROOT, PALETTE_FOLDER)


@dataclass(frozen=True, slots=True)
class CategorySchema(ABC):
    """Strategy describing one catalog category."""

    category: Category
    display_name: str
    folder: str

    @property
    def has_cores(self) -> bool:
        return False

    @property
    def has_themes(self) -> bool:
        return False

    @property
    def has_kits(self) -> bool:
        return False

    @property
    def core_folder(self) -> str:
        return ""

    @property
    def core_type_name(self) -> str:
        return ""

    @property
    def attachment_category(self) -> Category | None:
        return None

    @property
    def parent_category(self) -> Category | None:
        return None

    @property
    def is_attachment(self) -> bool:
        return self.parent_category is not None

    def image_folder(
        self,
        item_type: CatalogType,
        core: str | None = None,
        parent_type: CatalogType | None = None,
    ) -> str:
        """Return ``/<root>/<category>/<type>/<core>/<parent type>/``.

        The core segment is dropped for coreless categories and for cross-core
        or partially cross-core types; the parent segment only applies to
        attachments.
        """

        core_segment = ""
        if (
            self.has_cores
            and core
            and core != ANY_CORE_MARKER
            and not (item_type.is_cross_core or item_type.is_partial_cross_core)
        ):
            core_segment = core
        parent_segment = parent_type.media_folder if parent_type is not None else ""
        return _join_folder(
            MEDIA_ROOT, self.folder, item_type.media_folder, core_segment, parent_segment
        )

    def core_image_folder(self) -> str:
        return _join_folder(MEDIA_ROOT, self.folder, self.core_folder)

    def asset_key(self, title: str, type_name: str) -> str:
        return f"{safe_title(title)} {type_name}.png"

    @abstractmethod
    def cores_for(
        self,
        snapshot: ItemSnapshot,
        theme_cores: Mapping[str, str],
        item_type: CatalogType,
    ) -> tuple[str, ...]:
        """Return the external ids of the cores owning ``snapshot``."""


@dataclass(frozen=True, slots=True)
class CoreCategorySchema(CategorySchema):
    """Category whose items hang off cores through themes."""

    core_label: str = ""

    @property
    def has_cores(self) -> bool:
        return True

    @property
    def has_themes(self) -> bool:
        return True

    @property
    def has_kits(self) -> bool:
        return True

    @property
    def core_folder(self) -> str:
        return f"{self.core_label}s"

    @property
    def core_type_name(self) -> str:
        return self.core_label

    @property
    def attachment_category(self) -> Category | None:
        if self.category is Category.ARMOR:
            return Category.ARMOR_ATTACHMENT
        return None

    def cores_for(
        self,
        snapshot: ItemSnapshot,
        theme_cores: Mapping[str, str],
        item_type: CatalogType,
    ) -> tuple[str, ...]:
        if item_type.is_cross_core:
            return (ANY_CORE_MARKER,)

        theme_paths = snapshot.parent_paths or (
            (snapshot.parent_theme,) if snapshot.parent_theme else ()
        )
        cores: list[str] = []
        for theme_path in theme_paths:
            core_id = theme_cores.get(theme_path)
            if core_id is not None and core_id not in cores:
                cores.append(core_id)
        if not cores:
            raise ResolutionError(
                f"No parent core could be resolved for {snapshot.path} ({snapshot.type})"
            )
        return tuple(cores)


@dataclass(frozen=True, slots=True)
class AttachmentCategorySchema(CoreCategorySchema):
    """Attachments share their parent category's cores and folders."""

    parent: Category = Category.ARMOR

    @property
    def has_kits(self) -> bool:
        return False

    @property
    def attachment_category(self) -> Category | None:
        return None

    @property
    def parent_category(self) -> Category | None:
        return self.parent


@dataclass(frozen=True, slots=True)
class CorelessCategorySchema(CategorySchema):
    """Category without cores; ``has_themes`` decides how paths are listed."""

    themed: bool = False

    @property
    def has_themes(self) -> bool:
        return self.themed

    def cores_for(
        self,
        snapshot: ItemSnapshot,
        theme_cores: Mapping[str, str],
        item_type: CatalogType,
    ) -> tuple[str, ...]:
        _ = (snapshot, theme_cores, item_type)
        return ()


_SCHEMAS: Final[dict[Category, CategorySchema]] = {
    Category.ARMOR: CoreCategorySchema(
        Category.ARMOR, "Armor", "Armor Customization", core_label="Armor Core"
    ),
    Category.ARMOR_ATTACHMENT: AttachmentCategorySchema(
        Category.ARMOR_ATTACHMENT,
        "Armor Attachment",
        "Armor Customization",
        core_label="Armor Core",
        parent=Category.ARMOR,
    ),
    Category.WEAPON: CoreCategorySchema(
        Category.WEAPON, "Weapon", "Weapon Customization", core_label="Weapon Core"
    ),
    Category.VEHICLE: CoreCategorySchema(
        Category.VEHICLE, "Vehicle", "Vehicle Customization", core_label="Vehicle Core"
    ),
    Category.BODY_AI: CorelessCategorySchema(
        Category.BODY_AI, "Body & AI", "Body & AI Customization", themed=True
    ),
    Category.SPARTAN_ID: CorelessCategorySchema(
        Category.SPARTAN_ID, "Spartan ID", "Spartan ID Customization"
    ),
}


def get_schema(category: Category | str) -> CategorySchema:
    """Return the schema for ``category``; unknown keys are a configuration error."""

    try:
        key = Category(category)
    except ValueError as exc:
        raise UnknownCategoryError(f"Unknown catalog category: {category!r}") from exc
    try:
        return _SCHEMAS[key]
    except KeyError as exc:  # pragma: no cover - every Category has a schema
        raise UnknownCategoryError(f"No schema registered for {key}") from exc


__all__ = [
    "MEDIA_ROOT",
    "PALETTE_FOLDER",
    "PALETTE_TYPE_NAME",
    "AttachmentCategorySchema",
    "CategorySchema",
    "CoreCategorySchema",
    "CorelessCategorySchema",
    "UnknownCategoryError",
    "get_schema",
    "palette_image_folder",
    "safe_title",
]
