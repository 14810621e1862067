"""Availability lifecycle for shop listings, passes and challenges.

Each refresh compares the listings on the newest source page with the ones
stored as available on the same channel. A listing moves at most once per
refresh: absent ones become unavailable, new ones become available and fan
their availability out to the records they grant. Records are never flipped
back to unavailable here because several listings may grant the same record.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from catalogsync.common.retry import DEFAULT_MAX_ATTEMPTS, is_failed, retry
from catalogsync.domain.model import (
    PENDING_SOURCE_TEXT,
    ListingRecord,
    ProvenanceKind,
    ReferenceField,
)
from catalogsync.domain.schema import get_schema

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence
    from uuid import UUID

    from catalogsync.common.retry import RetryResult
    from catalogsync.domain.model import (
        CatalogRecord,
        CatalogType,
        Category,
        CoreRecord,
        ListingKind,
        ListingSnapshot,
    )
    from catalogsync.domain.ports import CatalogRepositories

log = logging.getLogger(__name__)

SOURCE_TEXT_SEPARATOR = "<br>"
_PENDING_TEXTS = frozenset({PENDING_SOURCE_TEXT, PENDING_SOURCE_TEXT.strip("()")})


class EmptyListingError(RuntimeError):
    """The source returned no listings; refreshing would mark everything unavailable."""


class AvailabilityError(RuntimeError):
    """A store call failed after every retry."""


@dataclass(frozen=True, slots=True)
class ItemSummary:
    """Human-readable description of one record granted by a listing."""

    name: str
    type_name: str
    core_name: str | None = None
    parent_name: str | None = None

    def __str__(self) -> str:
        label = f"{self.name} {self.type_name}"
        if self.parent_name:
            label = f"{label} for {self.parent_name}"
        if self.core_name:
            label = f"{label} ({self.core_name})"
        return label


@dataclass(slots=True)
class AvailabilityReport:
    kind: ListingKind
    channel: str
    became_available: list[ListingRecord] = field(default_factory=list[ListingRecord])
    became_unavailable: list[ListingRecord] = field(default_factory=list[ListingRecord])
    summaries: dict[str, list[ItemSummary]] = field(default_factory=dict[str, list[ItemSummary]])

    @property
    def changed(self) -> bool:
        return bool(self.became_available or self.became_unavailable)


def merge_source_text(current: str, addition: str) -> str:
    """Replace a pending source text, otherwise append ``addition`` once."""

    if not addition:
        return current
    if not current or current.strip() in _PENDING_TEXTS:
        return addition
    if addition in current.split(SOURCE_TEXT_SEPARATOR):
        return current
    return f"{current}{SOURCE_TEXT_SEPARATOR}{addition}"


def listing_source_text(listing: ListingSnapshot) -> str:
    if listing.description:
        return listing.description
    return f"Purchase <i>{listing.name}</i> from the Shop for {listing.cost} Credits"


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def _unique_listings(listings: Iterable[ListingSnapshot]) -> list[ListingSnapshot]:
    seen: dict[str, ListingSnapshot] = {}
    for listing in listings:
        if listing.external_id in seen:
            log.debug("Ignoring duplicate listing %s", listing.external_id)
            continue
        seen[listing.external_id] = listing
    return list(seen.values())


class AvailabilityManager:
    """Apply listing transitions through one unit of work's repositories."""

    def __init__(
        self,
        repositories: CatalogRepositories,
        provenance_types: Mapping[ProvenanceKind, UUID],
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repositories = repositories
        self._provenance_types = provenance_types
        self._max_attempts = max_attempts
        self._clock = clock
        self._type_names: dict[Category, dict[UUID, str]] = {}
        self._core_names: dict[Category, dict[UUID, str]] = {}

    def refresh(
        self, kind: ListingKind, channel: str, listings: Sequence[ListingSnapshot]
    ) -> AvailabilityReport:
        current = _unique_listings(listings)
        if not current:
            raise EmptyListingError(f"No {kind} listings returned for channel {channel!r}")

        report = AvailabilityReport(kind=kind, channel=channel)
        now = self._clock()
        previous = self._call(
            lambda: self._repositories.listings.list_available(kind, channel),
            f"loading available {kind} listings",
        )
        previous_ids = {record.external_id for record in previous}
        current_ids = {listing.external_id for listing in current}

        for record in previous:
            if record.external_id in current_ids:
                continue
            record.channels[channel] = False
            record.last_synced_at = now
            self._call(
                lambda record=record: self._repositories.listings.upsert(record),
                f"storing {record.name}",
            )
            report.became_unavailable.append(record)
            log.info("%s is no longer available on %s", record.name, channel)

        for listing in current:
            if listing.external_id in previous_ids:
                continue
            record = self._make_available(listing, channel, now)
            report.became_available.append(record)
            report.summaries[record.external_id] = self._fan_out(listing, record)
            log.info("%s is now available on %s", record.name, channel)

        log.info(
            "%s/%s refresh: %s became available, %s became unavailable",
            kind,
            channel,
            len(report.became_available),
            len(report.became_unavailable),
        )
        return report

    def _make_available(
        self, listing: ListingSnapshot, channel: str, now: datetime
    ) -> ListingRecord:
        listings = self._repositories.listings
        record = self._call(
            lambda: listings.get_by_external_id(listing.kind, listing.external_id),
            f"loading listing {listing.external_id}",
        )
        if record is None:
            record = ListingRecord(
                kind=listing.kind, external_id=listing.external_id, name=listing.name
            )

        record.name = listing.name
        record.description = listing.description
        record.cost = listing.cost
        record.channels[channel] = True
        record.available_dates.insert(0, now)
        if not record.price_history or record.price_history[0] != listing.cost:
            record.price_history.insert(0, listing.cost)
        record.populated_fields = listing.populated_fields
        record.last_synced_at = now
        self._call(lambda: listings.upsert(record), f"storing {record.name}")
        return record

    def _fan_out(self, listing: ListingSnapshot, record: ListingRecord) -> list[ItemSummary]:
        source_text = listing_source_text(listing)
        provenance_id = self._provenance_types[listing.kind.provenance]
        pending_id = self._provenance_types[ProvenanceKind.PENDING]
        summaries: list[ItemSummary] = []

        for category, external_ids in listing.items.items():
            if not external_ids:
                continue
            items = self._call(
                lambda category=category, external_ids=external_ids: (
                    self._repositories.records.find_any(category, external_ids)
                ),
                f"loading {category} items of {listing.name}",
            )
            self._link(record, f"items:{category}", [item.id for item in items])
            for item in items:
                self._mark_item(item, source_text, provenance_id, pending_id)
                summaries.append(self._summarize(item))

        for category, external_ids in listing.cores.items():
            if not external_ids:
                continue
            cores = self._call(
                lambda category=category, external_ids=external_ids: (
                    self._repositories.cores.find_any(category, external_ids)
                ),
                f"loading {category} cores of {listing.name}",
            )
            self._link(record, f"cores:{category}", [core.id for core in cores])
            schema = get_schema(category)
            for core in cores:
                self._mark_core(core, source_text)
                summaries.append(ItemSummary(name=core.name, type_name=schema.core_type_name))

        return summaries

    def _link(self, record: ListingRecord, key: str, target_ids: list[UUID]) -> None:
        if not target_ids:
            return
        record.references[key] = target_ids
        self._call(
            lambda: self._repositories.listings.replace_references(record.id, key, target_ids),
            f"linking {key} to {record.name}",
        )

    def _mark_item(
        self,
        item: CatalogRecord,
        source_text: str,
        provenance_id: UUID,
        pending_id: UUID,
    ) -> None:
        records = self._repositories.records
        merged_text = merge_source_text(item.source_text, source_text)
        if not item.currently_available or merged_text != item.source_text:
            item.currently_available = True
            item.source_text = merged_text
            self._call(lambda: records.upsert(item), f"storing {item.name}")

        if item.provenance_types == [pending_id]:
            item.provenance_types = [provenance_id]
            self._call(
                lambda: records.replace_references(
                    item.id, ReferenceField.PROVENANCE_TYPES, [provenance_id]
                ),
                f"replacing provenance of {item.name}",
            )
        elif provenance_id not in item.provenance_types:
            item.provenance_types.append(provenance_id)
            self._call(
                lambda: records.insert_reference(
                    item.id, ReferenceField.PROVENANCE_TYPES, provenance_id
                ),
                f"adding provenance to {item.name}",
            )

    def _mark_core(self, core: CoreRecord, source_text: str) -> None:
        merged_text = merge_source_text(core.source_text, source_text)
        if core.currently_available and merged_text == core.source_text:
            return
        core.currently_available = True
        core.source_text = merged_text
        self._call(lambda: self._repositories.cores.upsert(core), f"storing {core.name}")

    def _summarize(self, item: CatalogRecord) -> ItemSummary:
        schema = get_schema(item.category)
        type_names = self._type_names_for(item.category)
        type_name = type_names.get(item.type_id, "")  # type: ignore[arg-type]

        parent_name = None
        if schema.parent_category is not None:
            parent_category = schema.parent_category
            parents = self._call(
                lambda: self._repositories.records.find_referencing(
                    parent_category, ReferenceField.ATTACHMENTS, item.id
                ),
                f"loading parent of {item.name}",
            )
            if parents:
                parent_name = parents[0].name

        core_name = None
        if schema.has_cores and item.cores:
            core_category = schema.parent_category or item.category
            core_name = self._core_names_for(core_category).get(item.cores[0])
        return ItemSummary(
            name=item.name, type_name=type_name, core_name=core_name, parent_name=parent_name
        )

    def _type_names_for(self, category: Category) -> dict[UUID, str]:
        if category not in self._type_names:
            types: list[CatalogType] = self._call(
                lambda: self._repositories.lookups.types(category),
                f"loading {category} types",
            )
            self._type_names[category] = {item_type.id: item_type.name for item_type in types}
        return self._type_names[category]

    def _core_names_for(self, category: Category) -> dict[UUID, str]:
        if category not in self._core_names:
            cores = self._call(
                lambda: self._repositories.cores.list_for_category(category),
                f"loading {category} cores",
            )
            self._core_names[category] = {core.id: core.name for core in cores}
        return self._core_names[category]

    def _call[T](self, operation: Callable[[], T], description: str) -> T:
        result: RetryResult[T] = retry(operation, self._max_attempts, description=description)
        if is_failed(result):
            raise AvailabilityError(f"{description} failed after {self._max_attempts} attempts")
        return result  # type: ignore[return-value]


__all__ = [
    "AvailabilityError",
    "AvailabilityManager",
    "AvailabilityReport",
    "EmptyListingError",
    "ItemSummary",
    "listing_source_text",
    "merge_source_text",
]
