"""Diff and audit engine.

Compares a draft with the stored record, field by field in a fixed order,
and returns the merged copy together with the change-log entries it wrote.
The stored record handed in by the caller is never mutated.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from catalogsync.domain.assets import is_placeholder
from catalogsync.domain.errors import ResolutionError
from catalogsync.domain.model import (
    PENDING_SOURCE_TEXT,
    CatalogRecord,
    ChangeLogEntry,
    CoreRecord,
    ItemKind,
    ProvenanceKind,
)

from .changelog import ChangeTracker, normalized_text, sets_equal, texts_equal
from .contracts import Created, Unchanged, Updated

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from uuid import UUID

    from catalogsync.domain.assets import AssetCache
    from catalogsync.domain.bootstrap import CategoryData, ReferenceData
    from catalogsync.domain.model import CatalogType, EntityDraft
    from catalogsync.domain.resolve import ReferenceResolver, ResolvedLookups

    from .contracts import Outcome

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True, slots=True)
class _Resolved:
    item_type: CatalogType
    parent_type: CatalogType | None
    cores: list[UUID]
    attachments: list[UUID]
    kit_items: list[UUID]
    kit_attachments: list[UUID]
    palettes: list[UUID]
    default_of_core: list[UUID]
    lookups: ResolvedLookups


@dataclass(slots=True)
class DiffEngine:
    """Reconcile drafts of one category against stored records."""

    category_data: CategoryData
    reference: ReferenceData
    resolver: ReferenceResolver
    assets: AssetCache
    parent_types: Mapping[str, CatalogType] = field(default_factory=dict[str, "CatalogType"])
    clock: Callable[[], datetime] = _utcnow

    # Catalog records -----------------------------------------------------------

    def reconcile(
        self,
        existing: CatalogRecord | None,
        draft: EntityDraft,
        freshness_token: str,
        *,
        force_check: bool = False,
    ) -> Outcome[CatalogRecord]:
        """Return the outcome of merging ``draft`` into ``existing``."""

        if existing is not None and self.is_current(
            existing, draft, freshness_token, force_check=force_check
        ):
            return Unchanged(record=existing)

        resolved = self._resolve(draft)
        timestamp = self.clock()
        if existing is None:
            return Created(record=self._create(draft, resolved, freshness_token, timestamp))
        return self._update(existing, draft, resolved, freshness_token, timestamp)

    @staticmethod
    def is_current(
        existing: CatalogRecord | None,
        draft: EntityDraft,
        freshness_token: str,
        *,
        force_check: bool = False,
    ) -> bool:
        """Whether ``existing`` can be kept as is without resolving ``draft``."""

        if existing is None or force_check or not existing.freshness_token:
            return False
        if existing.freshness_token != freshness_token:
            return False
        if existing.kit_only and not draft.kit_only:
            return False
        return not (draft.default_of_core and not existing.default_of_core)

    def _resolve(self, draft: EntityDraft) -> _Resolved:
        item_type = self.category_data.type_for(draft.type)
        if item_type is None:
            raise ResolutionError(f"Unknown type {draft.type!r} for {draft.external_id}")
        parent_type = None
        if draft.parent_type:
            parent_type = self.parent_types.get(draft.parent_type)
            if parent_type is None:
                raise ResolutionError(
                    f"Unknown parent type {draft.parent_type!r} for {draft.external_id}"
                )

        resolver = self.resolver
        is_kit = item_type.is_kit or draft.kind is ItemKind.KIT
        return _Resolved(
            item_type=item_type,
            parent_type=parent_type,
            cores=resolver.resolve_cores(draft.core_ids),
            attachments=(
                resolver.resolve_attachments(draft.attachment_ids)
                if item_type.has_attachments
                else []
            ),
            kit_items=resolver.resolve_kit_children(draft.kit_item_ids) if is_kit else [],
            kit_attachments=(
                resolver.resolve_attachments(draft.kit_attachment_ids) if is_kit else []
            ),
            palettes=(
                resolver.resolve_palettes(draft.palette_configuration_ids)
                if item_type.has_palettes
                else []
            ),
            default_of_core=(
                resolver.resolve_cores((draft.default_of_core,)) if draft.default_of_core else []
            ),
            lookups=resolver.resolve_lookups(draft, self.reference),
        )

    def _create(
        self,
        draft: EntityDraft,
        resolved: _Resolved,
        freshness_token: str,
        timestamp: datetime,
    ) -> CatalogRecord:
        item_type = resolved.item_type
        image = self.assets.ensure_asset(
            self._image_folder(draft, resolved),
            self.category_data.schema.asset_key(draft.name, item_type.name),
            draft.image_path,
        )
        provenance = ProvenanceKind.KIT_ITEM if draft.kit_only else ProvenanceKind.PENDING
        record = CatalogRecord(
            category=self.category_data.schema.category,
            external_id=draft.external_id,
            name=draft.name,
            type_id=item_type.id,
            cores=resolved.cores,
            attachments=resolved.attachments,
            kit_items=resolved.kit_items,
            kit_attachments=resolved.kit_attachments,
            palettes=resolved.palettes,
            default_of_core=resolved.default_of_core[:1],
            provenance_types=[self.reference.provenance_id(provenance)],
            quality_id=resolved.lookups.quality_id,
            manufacturer_id=resolved.lookups.manufacturer_id,
            release_id=resolved.lookups.release_id,
            description=normalized_text(draft.description),
            image_ref=image.ref,
            image_token=image.token,
            alt_text=f"{draft.name} {item_type.name}",
            source_text=PENDING_SOURCE_TEXT,
            hidden=draft.hidden,
            currently_available=False,
            kit_only=draft.kit_only,
            change_log=[ChangeLogEntry.added(timestamp)],
            needs_review=True,
            freshness_token=freshness_token,
            last_synced_at=timestamp,
        )
        log.info("Created %s %s (%s)", item_type.name, draft.name, draft.external_id)
        return record

    def _update(  # noqa: PLR0913
        self,
        existing: CatalogRecord,
        draft: EntityDraft,
        resolved: _Resolved,
        freshness_token: str,
        timestamp: datetime,
    ) -> Outcome[CatalogRecord]:
        record = copy.deepcopy(existing)
        tracker = ChangeTracker(record, timestamp, self._describe)
        item_type = resolved.item_type
        schema = self.category_data.schema

        tracker.set_silently("freshness_token", freshness_token)
        name_changed = tracker.update("name", draft.name)
        type_changed = False
        if draft.kind is not ItemKind.ATTACHMENT:
            type_changed = tracker.update("type_id", item_type.id, label="type")
        cores_changed = schema.has_cores and not sets_equal(record.cores, resolved.cores)

        if name_changed or type_changed or cores_changed or is_placeholder(record.image_ref):
            image = self.assets.ensure_asset(
                self._image_folder(draft, resolved),
                schema.asset_key(draft.name, item_type.name),
                draft.image_path,
                prior_token=record.image_token or None,
            )
            tracker.set_silently("image_ref", image.ref)
            tracker.set_silently("image_token", image.token)

        if schema.has_cores:
            tracker.update("cores", resolved.cores, equal=sets_equal)
        if item_type.has_attachments and (not draft.kit_only or record.kit_only):
            tracker.update("attachments", resolved.attachments, equal=sets_equal)
        if item_type.is_kit or draft.kind is ItemKind.KIT:
            tracker.update("kit_items", resolved.kit_items, equal=sets_equal)
            tracker.update("kit_attachments", resolved.kit_attachments, equal=sets_equal)
        if item_type.has_palettes:
            tracker.update("palettes", resolved.palettes, equal=sets_equal)
        if resolved.default_of_core:
            tracker.update("default_of_core", resolved.default_of_core[:1], equal=sets_equal)

        self._update_details(tracker, draft, resolved.lookups)

        if record.hidden and not draft.hidden:
            tracker.update("hidden", False)
        if record.kit_only and not draft.kit_only:
            tracker.update("kit_only", False)
        tracker.set_silently("alt_text", f"{draft.name} {item_type.name}")

        return self._finish(existing, tracker, timestamp)

    # Core records --------------------------------------------------------------

    def reconcile_core(
        self,
        existing: CoreRecord | None,
        draft: EntityDraft,
        freshness_token: str,
        *,
        force_check: bool = False,
    ) -> Outcome[CoreRecord]:
        if (
            existing is not None
            and not force_check
            and existing.freshness_token
            and existing.freshness_token == freshness_token
        ):
            return Unchanged(record=existing)

        schema = self.category_data.schema
        lookups = self.resolver.resolve_lookups(draft, self.reference)
        timestamp = self.clock()
        folder = schema.core_image_folder()
        key = schema.asset_key(draft.name, schema.core_type_name)
        alt_text = f"{draft.name} {schema.core_type_name}"

        if existing is None:
            image = self.assets.ensure_asset(folder, key, draft.image_path)
            log.info("Created core %s (%s)", draft.name, draft.external_id)
            return Created(
                record=CoreRecord(
                    category=schema.category,
                    external_id=draft.external_id,
                    name=draft.name,
                    quality_id=lookups.quality_id,
                    manufacturer_id=lookups.manufacturer_id,
                    release_id=lookups.release_id,
                    description=normalized_text(draft.description),
                    image_ref=image.ref,
                    image_token=image.token,
                    alt_text=alt_text,
                    hidden=draft.hidden,
                    theme_paths=list(draft.theme_paths),
                    change_log=[ChangeLogEntry.added(timestamp)],
                    needs_review=True,
                    freshness_token=freshness_token,
                    last_synced_at=timestamp,
                )
            )

        record = copy.deepcopy(existing)
        tracker = ChangeTracker(record, timestamp, self._describe)
        tracker.set_silently("freshness_token", freshness_token)
        name_changed = tracker.update("name", draft.name)
        if name_changed or is_placeholder(record.image_ref):
            image = self.assets.ensure_asset(
                folder, key, draft.image_path, prior_token=record.image_token or None
            )
            tracker.set_silently("image_ref", image.ref)
            tracker.set_silently("image_token", image.token)
        self._update_details(tracker, draft, lookups)
        if record.hidden and not draft.hidden:
            tracker.update("hidden", False)
        tracker.update("theme_paths", list(draft.theme_paths), label="themes", equal=sets_equal)
        tracker.set_silently("alt_text", alt_text)
        return self._finish(existing, tracker, timestamp)

    # Shared --------------------------------------------------------------------

    def _update_details(
        self,
        tracker: ChangeTracker[CatalogRecord] | ChangeTracker[CoreRecord],
        draft: EntityDraft,
        lookups: ResolvedLookups,
    ) -> None:
        if lookups.quality_id is not None:
            tracker.update("quality_id", lookups.quality_id, label="quality")
        tracker.update(
            "description", normalized_text(draft.description), equal=texts_equal
        )
        if lookups.manufacturer_id is not None:
            tracker.update("manufacturer_id", lookups.manufacturer_id, label="manufacturer")
        if lookups.release_id is not None:
            tracker.update("release_id", lookups.release_id, label="release")

    @staticmethod
    def _finish[R: (CatalogRecord, CoreRecord)](
        existing: R,
        tracker: ChangeTracker[R],
        timestamp: datetime,
    ) -> Outcome[R]:
        if not tracker.changed:
            return Unchanged(record=existing)
        entries = tracker.finish()
        tracker.record.last_synced_at = timestamp
        if entries:
            log.info(
                "Updated %s: %s",
                tracker.record.name,
                ", ".join(entry.field or "" for entry in entries),
            )
        return Updated(record=tracker.record, entries=entries)

    def _image_folder(self, draft: EntityDraft, resolved: _Resolved) -> str:
        core_name = None
        if draft.core_ids:
            core_name = self.category_data.core_names.get(draft.core_ids[0], draft.core_ids[0])
        return self.category_data.schema.image_folder(
            resolved.item_type, core_name, resolved.parent_type
        )

    def _describe(self, field_name: str, value: object) -> object:
        if field_name == "type_id":
            item_type = self.category_data.type_by_id(value)  # type: ignore[arg-type]
            return item_type.name if item_type is not None else value
        if field_name in {"quality_id", "manufacturer_id", "release_id"}:
            return self.reference.label(value)  # type: ignore[arg-type]
        return value
