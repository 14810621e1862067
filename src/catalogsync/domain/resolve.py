"""Reference resolution: raw identifiers in a draft to record ids.

Every lookup goes through the run context first, so resolving the same key
twice within a run never queries the store again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from catalogsync.common.retry import DEFAULT_MAX_ATTEMPTS, is_failed, retry
from catalogsync.domain.errors import NotFoundError, PaletteConsistencyError, ResolutionError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from uuid import UUID

    from catalogsync.domain.batch.context import RunContext
    from catalogsync.domain.bootstrap import ReferenceData
    from catalogsync.domain.model import Category, EntityDraft
    from catalogsync.domain.ports import CatalogRecordRepository, PaletteRecordRepository

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResolvedLookups:
    quality_id: UUID | None
    manufacturer_id: UUID | None
    release_id: UUID | None


def _unique[T](values: Iterable[T]) -> list[T]:
    seen: list[T] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


class ReferenceResolver:
    """Resolve cores, attachments, kit children, palettes and lookups."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        records: CatalogRecordRepository,
        palettes: PaletteRecordRepository,
        context: RunContext,
        core_ids: Mapping[str, UUID],
        attachment_category: Category | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self._records = records
        self._palettes = palettes
        self._context = context
        self._core_ids = core_ids
        self._attachment_category = attachment_category
        self._max_attempts = max_attempts

    def resolve_cores(self, core_ids: Iterable[str]) -> list[UUID]:
        """Map core external ids to record ids; unknown cores are dropped."""

        resolved: list[UUID] = []
        for core_id in _unique(core_ids):
            record_id = self._core_ids.get(core_id)
            if record_id is None:
                log.warning("Dropping unresolved core %r", core_id)
                continue
            resolved.append(record_id)
        return resolved

    def resolve_attachments(self, external_ids: Iterable[str]) -> list[UUID]:
        if self._attachment_category is None:
            ids = tuple(external_ids)
            if ids:
                raise ResolutionError(
                    f"{self._context.category} has no attachment category for {ids}"
                )
            return []
        return self._resolve_batch(self._attachment_category, tuple(external_ids))

    def resolve_kit_children(
        self, external_ids: Iterable[str], category: Category | None = None
    ) -> list[UUID]:
        return self._resolve_batch(category or self._context.category, tuple(external_ids))

    def resolve_palette(self, configuration_id: str) -> UUID | None:
        """Return the palette record id, or ``None`` when it must be created."""

        memo = self._context.palette_ids
        if configuration_id in memo:
            return memo[configuration_id]

        matches = retry(
            lambda: self._palettes.find_by_configuration_id(configuration_id),
            self._max_attempts,
            description=f"looking up palette {configuration_id}",
        )
        if is_failed(matches):
            raise ResolutionError(f"Palette {configuration_id} could not be looked up")
        if len(matches) > 1:
            raise PaletteConsistencyError(
                f"{len(matches)} palettes share configuration id {configuration_id}"
            )
        if not matches:
            return None
        memo[configuration_id] = matches[0].id
        return matches[0].id

    def register_palette(self, configuration_id: str, record_id: UUID) -> None:
        self._context.palette_ids[configuration_id] = record_id

    def resolve_palettes(self, configuration_ids: Iterable[str]) -> list[UUID]:
        resolved: list[UUID] = []
        for configuration_id in _unique(configuration_ids):
            record_id = self.resolve_palette(configuration_id)
            if record_id is None:
                raise ResolutionError(f"Palette {configuration_id} has not been created")
            resolved.append(record_id)
        return resolved

    def resolve_lookups(self, draft: EntityDraft, reference: ReferenceData) -> ResolvedLookups:
        return ResolvedLookups(
            quality_id=reference.quality_id(draft.quality),
            manufacturer_id=reference.manufacturer_id(draft.manufacturer_index),
            release_id=reference.release_id(draft.release),
        )

    def _resolve_batch(self, category: Category, external_ids: tuple[str, ...]) -> list[UUID]:
        if not external_ids:
            return []
        memo = self._context.reference_ids
        pending = [
            external_id
            for external_id in _unique(external_ids)
            if (category, external_id) not in memo
        ]
        if pending:
            rows = retry(
                lambda: self._records.find_any(category, pending),
                self._max_attempts,
                description=f"resolving {len(pending)} {category} references",
            )
            if is_failed(rows):
                raise ResolutionError(f"{category} references could not be resolved")
            if not rows:
                raise NotFoundError(
                    f"None of {len(pending)} {category} references exist",
                    identifiers=tuple(pending),
                )
            for row in rows:
                memo[(category, row.external_id)] = row.id

        resolved: list[UUID] = []
        for external_id in _unique(external_ids):
            record_id = memo.get((category, external_id))
            if record_id is None:
                log.warning("Dropping unresolved %s reference %r", category, external_id)
                continue
            resolved.append(record_id)
        return resolved
