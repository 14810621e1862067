"""Reference dictionaries every reconciliation pass depends on.

Bootstrap failures are never skipped: without qualities, releases,
manufacturers, provenance types and the freshness index no item can be
reconciled correctly, so any missing piece raises :class:`BootstrapError`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import UUID

from catalogsync.common.retry import DEFAULT_MAX_ATTEMPTS, is_failed, retry
from catalogsync.domain.fetch import fetch_with_retry
from catalogsync.domain.model import ANY_CORE_MARKER, LookupKind, ProvenanceKind

if TYPE_CHECKING:
    from catalogsync.domain.model import CatalogType, LookupValue
    from catalogsync.domain.ports import CatalogSource, CoreRecordRepository, LookupRepository
    from catalogsync.domain.schema import CategorySchema

log = logging.getLogger(__name__)


class BootstrapError(RuntimeError):
    """A reference dictionary required by the run could not be built."""


@dataclass(slots=True)
class ReferenceData:
    """Category-independent lookups resolved once per run."""

    qualities: dict[str, UUID]
    releases: dict[str, UUID]
    manufacturers: list[UUID]
    provenance_types: dict[ProvenanceKind, UUID]
    freshness_tokens: dict[str, str]
    labels: dict[UUID, str] = field(default_factory=dict[UUID, str])

    def quality_id(self, raw: str) -> UUID | None:
        return self._lookup(self.qualities, raw, "quality")

    def release_id(self, raw: str) -> UUID | None:
        return self._lookup(self.releases, raw, "release")

    def manufacturer_id(self, index: int | None) -> UUID | None:
        if index is None:
            return None
        if 0 <= index < len(self.manufacturers):
            return self.manufacturers[index]
        log.warning("Unknown manufacturer index %s", index)
        return None

    def provenance_id(self, kind: ProvenanceKind) -> UUID:
        return self.provenance_types[kind]

    def token_for(self, external_id: str) -> str:
        return self.freshness_tokens.get(external_id, "")

    def label(self, value_id: UUID | None) -> str:
        if value_id is None:
            return ""
        return self.labels.get(value_id, str(value_id))

    @staticmethod
    def _lookup(values: dict[str, UUID], raw: str, kind: str) -> UUID | None:
        if not raw:
            return None
        found = values.get(raw)
        if found is None:
            log.warning("Unknown %s %r", kind, raw)
        return found


@dataclass(slots=True)
class CategoryData:
    """Types and cores of one category."""

    schema: CategorySchema
    types: dict[str, CatalogType]
    core_ids: dict[str, UUID] = field(default_factory=dict[str, "UUID"])
    core_names: dict[str, str] = field(default_factory=dict[str, str])

    def type_for(self, external_type: str) -> CatalogType | None:
        return self.types.get(external_type)

    def type_by_id(self, type_id: UUID | None) -> CatalogType | None:
        for item_type in self.types.values():
            if item_type.id == type_id:
                return item_type
        return None

    def register_core(self, external_id: str, record_id: UUID, name: str) -> None:
        self.core_ids[external_id] = record_id
        self.core_names[external_id] = name
        if name == ANY_CORE_MARKER:
            self.core_ids[ANY_CORE_MARKER] = record_id
            self.core_names[ANY_CORE_MARKER] = name


def _load_values(
    lookups: LookupRepository, kind: LookupKind, max_attempts: int
) -> list[LookupValue]:
    values = retry(
        lambda: lookups.values(kind),
        max_attempts,
        description=f"loading {kind} lookups",
    )
    if is_failed(values) or not values:
        raise BootstrapError(f"No {kind} lookups available")
    return sorted(values, key=lambda value: value.position)


def _provenance_types(values: list[LookupValue]) -> dict[ProvenanceKind, UUID]:
    provenance_types: dict[ProvenanceKind, UUID] = {}
    for value in values:
        try:
            provenance_types[ProvenanceKind(value.name)] = value.id
        except ValueError:
            log.debug("Ignoring provenance type %r", value.name)
    missing = [kind.value for kind in ProvenanceKind if kind not in provenance_types]
    if missing:
        raise BootstrapError(f"Missing provenance types: {', '.join(missing)}")
    return provenance_types


def load_provenance_types(
    lookups: LookupRepository, max_attempts: int = DEFAULT_MAX_ATTEMPTS
) -> dict[ProvenanceKind, UUID]:
    """Load the provenance type ids; every :class:`ProvenanceKind` must be present."""

    return _provenance_types(_load_values(lookups, LookupKind.PROVENANCE_TYPE, max_attempts))


def load_reference_data(
    lookups: LookupRepository,
    source: CatalogSource,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> ReferenceData:
    """Load the category-independent dictionaries and the freshness index."""

    qualities = _load_values(lookups, LookupKind.QUALITY, max_attempts)
    releases = _load_values(lookups, LookupKind.RELEASE, max_attempts)
    manufacturers = _load_values(lookups, LookupKind.MANUFACTURER, max_attempts)
    provenance_values = _load_values(lookups, LookupKind.PROVENANCE_TYPE, max_attempts)
    provenance_types = _provenance_types(provenance_values)

    tokens = fetch_with_retry(
        source,
        source.fetch_freshness_index,
        description="fetching freshness index",
        max_attempts=max_attempts,
    )
    if is_failed(tokens) or not tokens:
        raise BootstrapError("Freshness index could not be fetched")

    labels = {
        value.id: value.name
        for value in (*qualities, *releases, *manufacturers, *provenance_values)
    }
    log.info(
        "Loaded %s qualities, %s releases, %s manufacturers, %s freshness tokens",
        len(qualities),
        len(releases),
        len(manufacturers),
        len(tokens),
    )
    return ReferenceData(
        qualities={value.name: value.id for value in qualities},
        releases={value.name: value.id for value in releases},
        manufacturers=[value.id for value in manufacturers],
        provenance_types=provenance_types,
        freshness_tokens=dict(tokens),
        labels=labels,
    )


def load_category_data(
    schema: CategorySchema,
    lookups: LookupRepository,
    cores: CoreRecordRepository,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> CategoryData:
    """Load the type sockets and known cores for ``schema``'s category."""

    types = retry(
        lambda: lookups.types(schema.category),
        max_attempts,
        description=f"loading {schema.category} types",
    )
    if is_failed(types) or not types:
        raise BootstrapError(f"No types configured for {schema.category}")

    data = CategoryData(
        schema=schema,
        types={item_type.external_type: item_type for item_type in types},
    )
    if schema.has_cores:
        core_category = schema.parent_category or schema.category
        records = retry(
            lambda: cores.list_for_category(core_category),
            max_attempts,
            description=f"loading {core_category} cores",
        )
        if is_failed(records):
            raise BootstrapError(f"Cores for {core_category} could not be loaded")
        for record in records:
            data.register_core(record.external_id, record.id, record.name)
    return data
