"""Public interface for the Waypoint adapter."""

from __future__ import annotations

from .client import WaypointCatalogSource
from .schema import ItemPayload, PalettePayload, StorePayload
from .translator import build_listing, category_for_type, parse_item, parse_palette

__all__ = [
    "ItemPayload",
    "PalettePayload",
    "StorePayload",
    "WaypointCatalogSource",
    "build_listing",
    "category_for_type",
    "parse_item",
    "parse_palette",
]
