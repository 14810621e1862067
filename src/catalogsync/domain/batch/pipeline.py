"""One reconciliation pass over a catalog category.

The pass walks the category the way the source lays it out:

1) cores, reconciled every pass; they also yield the theme-path-to-core map
2) one page of the theme list (or the flat item list for categories without
   themes), default themes first and kits last
3) per theme and option group: attachments before their parent items, kit
   children before the kit itself

Every record is persisted right after it is reconciled, so anything that
references it later in the pass resolves against the store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from catalogsync.common.retry import DEFAULT_MAX_ATTEMPTS, is_failed, retry
from catalogsync.config.errors import ConfigurationError
from catalogsync.domain.assets import AssetRequest
from catalogsync.domain.bootstrap import load_category_data, load_reference_data
from catalogsync.domain.errors import ResolutionError
from catalogsync.domain.fetch import fetch_with_retry
from catalogsync.domain.model import ItemKind, NameplateAssets, PaletteRecord, ReferenceField
from catalogsync.domain.normalize import (
    AttachmentOptions,
    CoreOptions,
    ItemOptions,
    KitOptions,
    normalize_snapshot,
)
from catalogsync.domain.ports import CatalogFetchError
from catalogsync.domain.reconciliation import Created, DiffEngine, Updated
from catalogsync.domain.resolve import ReferenceResolver
from catalogsync.domain.schema import PALETTE_TYPE_NAME, get_schema, palette_image_folder

from .driver import CheckpointedDriver
from .pool import DEFAULT_PREFETCH_WORKERS, PrefetchPool

if TYPE_CHECKING:
    from collections import Counter
    from collections.abc import Callable, Sequence
    from datetime import datetime

    from catalogsync.domain.assets import AssetCache
    from catalogsync.domain.bootstrap import CategoryData, ReferenceData
    from catalogsync.domain.model import (
        AttachmentOption,
        CatalogRecord,
        CatalogType,
        Category,
        CoreRecord,
        ItemSnapshot,
        NameplateSnapshot,
        OutcomeStatus,
        PaletteSnapshot,
    )
    from catalogsync.domain.normalize import NormalizeOptions
    from catalogsync.domain.ports import CatalogRepositories, CatalogSource
    from catalogsync.domain.reconciliation import Outcome
    from catalogsync.domain.schema import CategorySchema

    from .context import RunContext
    from .driver import PageResult

log = logging.getLogger(__name__)

KITS_GROUP: Final[str] = "Kits"

_REPLACED_REFERENCES: Final[tuple[ReferenceField, ...]] = (
    ReferenceField.CORES,
    ReferenceField.ATTACHMENTS,
    ReferenceField.KIT_ITEMS,
    ReferenceField.KIT_ATTACHMENTS,
    ReferenceField.PALETTES,
    ReferenceField.DEFAULT_OF_CORE,
)


class PersistenceError(RuntimeError):
    """A store write kept failing; the pass aborts without advancing its checkpoint."""


@dataclass(frozen=True, slots=True, kw_only=True)
class SyncOptions:
    """Knobs for one pass.

    ``groups`` limits which option groups are reconciled; an empty tuple means
    every group. Kits are included when ``groups`` is empty or names ``Kits``.
    """

    groups: tuple[str, ...] = ()
    cores_only: bool = False
    page_size: int = 50
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    prefetch_workers: int = DEFAULT_PREFETCH_WORKERS
    force_check: bool = False

    @property
    def include_kits(self) -> bool:
        return not self.groups or KITS_GROUP in self.groups

    def includes_group(self, option_group: str) -> bool:
        return not self.groups or option_group in self.groups

    def checkpoint_key(self, schema: CategorySchema) -> str:
        scope = "+".join(sorted(self.groups)) if self.groups else "all"
        return f"{schema.category}:{scope}"


@dataclass(slots=True)
class SyncReport:
    category: str
    cores_only: bool
    page: PageResult[str] | None = None
    counts: Counter[OutcomeStatus] | None = None
    skipped_paths: list[str] = field(default_factory=list[str])
    outcomes: list[Outcome] = field(default_factory=list["Outcome"])


@dataclass(slots=True)
class _Collected:
    """External ids gathered while walking a kit."""

    item_ids: list[str] = field(default_factory=list[str])
    attachment_ids: list[str] = field(default_factory=list[str])


class CategorySync:
    """Drive one page of a category through normalize, resolve, diff and persist."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        schema: CategorySchema,
        repositories: CatalogRepositories,
        source: CatalogSource,
        assets: AssetCache,
        context: RunContext,
        options: SyncOptions,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if schema.is_attachment:
            raise ConfigurationError(
                f"{schema.category} is synced together with {schema.parent_category}"
            )
        self.schema = schema
        self.context = context
        self.options = options
        self._repositories = repositories
        self._source = source
        self._assets = assets
        self._clock = clock
        self._pool = PrefetchPool(options.prefetch_workers)
        self._driver = CheckpointedDriver(
            repositories.checkpoints, options.page_size, max_attempts=options.max_attempts
        )
        self._reference: ReferenceData | None = None
        self._engine: DiffEngine | None = None
        self._attachment_engine: DiffEngine | None = None

    # Entry point ----------------------------------------------------------------

    def run(self) -> SyncReport:
        max_attempts = self.options.max_attempts
        lookups = self._repositories.lookups
        self._reference = load_reference_data(lookups, self._source, max_attempts)
        category_data = load_category_data(
            self.schema, lookups, self._repositories.cores, max_attempts
        )
        self._engine = self._build_engine(category_data, self.schema.attachment_category)
        if self.schema.attachment_category is not None:
            attachment_schema = get_schema(self.schema.attachment_category)
            attachment_data = load_category_data(
                attachment_schema, lookups, self._repositories.cores, max_attempts
            )
            self._attachment_engine = self._build_engine(
                attachment_data, None, parent_types=category_data.types
            )

        report = SyncReport(category=self.schema.category, cores_only=self.options.cores_only)
        core_snapshots = self._sync_cores(category_data) if self.schema.has_cores else []
        if self.options.cores_only:
            if not self.schema.has_cores:
                log.warning("%s has no cores to sync", self.schema.display_name)
            return self._finish(report)

        key = self.options.checkpoint_key(self.schema)
        if self.schema.has_themes:
            report.page = self._driver.run(
                key, self._theme_paths(core_snapshots), self._sync_themes
            )
        else:
            report.page = self._driver.run(key, self._list(ItemKind.ITEM), self._sync_flat_items)
        return self._finish(report)

    def _finish(self, report: SyncReport) -> SyncReport:
        report.counts = self.context.counts()
        report.skipped_paths = list(self.context.skipped_paths)
        report.outcomes = list(self.context.outcomes)
        log.info(
            "%s pass finished: %s, %s skipped",
            self.schema.display_name,
            dict(report.counts),
            len(report.skipped_paths),
        )
        return report

    def _build_engine(
        self,
        category_data: CategoryData,
        attachment_category: Category | None,
        *,
        parent_types: dict[str, CatalogType] | None = None,
    ) -> DiffEngine:
        resolver = ReferenceResolver(
            records=self._repositories.records,
            palettes=self._repositories.palettes,
            context=self.context,
            core_ids=category_data.core_ids,
            attachment_category=attachment_category,
            max_attempts=self.options.max_attempts,
        )
        engine = DiffEngine(
            category_data=category_data,
            reference=self.reference,
            resolver=resolver,
            assets=self._assets,
            parent_types=parent_types or {},
        )
        if self._clock is not None:
            engine.clock = self._clock
        return engine

    @property
    def reference(self) -> ReferenceData:
        if self._reference is None:
            raise RuntimeError("Reference data is loaded by run()")
        return self._reference

    @property
    def engine(self) -> DiffEngine:
        if self._engine is None:
            raise RuntimeError("The diff engine is built by run()")
        return self._engine

    # Cores ----------------------------------------------------------------------

    def _sync_cores(self, category_data: CategoryData) -> list[ItemSnapshot]:
        """Fetch and reconcile every core, building the theme map for the page.

        Cores are registered with both engines before any item runs, so items
        of a pass on an empty store still resolve their cores.
        """

        snapshots: list[ItemSnapshot] = []
        changed: list[CoreRecord] = []
        for path in self._list(ItemKind.CORE):
            if self.context.is_processed(path):
                continue
            try:
                snapshot = self._fetch(path)
            except CatalogFetchError:
                log.exception("Skipping core %s", path)
                self.context.mark_skipped(path)
                continue
            self.context.mark_processed(path, snapshot.external_id)
            snapshots.append(snapshot)
            for theme_path in snapshot.theme_paths:
                self.context.theme_cores[theme_path] = snapshot.external_id

            try:
                outcome = self._reconcile_core(snapshot)
            except ResolutionError:
                log.exception("Skipping core %s", path)
                self.context.mark_skipped(path)
                continue
            if outcome.changed:
                changed.append(outcome.record)
            category_data.register_core(
                snapshot.external_id, outcome.record.id, outcome.record.name
            )
            if self._attachment_engine is not None:
                self._attachment_engine.category_data.register_core(
                    snapshot.external_id, outcome.record.id, outcome.record.name
                )

        if changed:
            cores = self._repositories.cores
            self._call(lambda: cores.bulk_upsert(changed), f"storing {len(changed)} cores")
        log.info("Mapped %s themes to %s cores", len(self.context.theme_cores), len(snapshots))
        return snapshots

    def _reconcile_core(self, snapshot: ItemSnapshot) -> Outcome[CoreRecord]:
        draft = normalize_snapshot(snapshot, self.schema, None, CoreOptions())
        cores = self._repositories.cores
        existing = self._call(
            lambda: cores.get_by_external_id(self.schema.category, draft.external_id),
            f"loading core {draft.external_id}",
        )
        outcome = self.engine.reconcile_core(
            existing,
            draft,
            self._token(snapshot),
            force_check=self.options.force_check,
        )
        self.context.record(outcome)
        self.context.remember_reference(self.schema.category, draft.external_id, outcome.record.id)
        return outcome

    def _theme_paths(self, core_snapshots: Sequence[ItemSnapshot]) -> list[str]:
        if not self.schema.has_cores:
            return self._list(ItemKind.KIT)
        paths: list[str] = []
        for core in core_snapshots:
            for theme_path in core.theme_paths:
                if theme_path not in paths:
                    paths.append(theme_path)
        return paths

    # Themes ---------------------------------------------------------------------

    def _sync_themes(self, page: Sequence[str]) -> None:
        themes: list[ItemSnapshot] = []
        for path in page:
            try:
                themes.append(self._fetch(path))
            except CatalogFetchError:
                log.exception("Skipping theme %s", path)
                self.context.mark_skipped(path)

        for theme in themes:
            if not theme.is_kit:
                self._sync_default_theme(theme)
        if not self.options.include_kits:
            return
        for theme in themes:
            if theme.is_kit:
                self._sync_kit(theme)

    def _sync_default_theme(self, theme: ItemSnapshot) -> None:
        log.info("Processing theme %s", theme.title)
        for item_type in self._groups():
            if not self.options.includes_group(item_type.option_group):
                continue
            default_core = self._default_core_hint(theme, item_type)
            if item_type.has_attachments:
                self._sync_with_attachments(
                    theme.attachment_groups.get(item_type.option_group, ()),
                    item_type,
                    default_core=default_core,
                )
            else:
                for path in theme.option_groups.get(item_type.option_group, ()):
                    self._sync_item(
                        path,
                        ItemOptions(
                            theme_cores=self.context.theme_cores,
                            default_of_core=default_core[1] if default_core[0] == path else None,
                        ),
                    )

    def _sync_kit(self, kit: ItemSnapshot) -> None:
        if self.context.is_processed(kit.path):
            return
        log.info("Processing kit %s", kit.title)
        collected = _Collected()
        for item_type in self._groups():
            if item_type.has_attachments:
                self._sync_with_attachments(
                    kit.attachment_groups.get(item_type.option_group, ()),
                    item_type,
                    kit=collected,
                )
                continue
            for path in kit.option_groups.get(item_type.option_group, ()):
                external_id = self._sync_item(
                    path,
                    ItemOptions(theme_cores=self.context.theme_cores, kit_item=True),
                )
                if external_id is not None and external_id not in collected.item_ids:
                    collected.item_ids.append(external_id)

        self._reconcile_path(
            kit.path,
            KitOptions(
                theme_cores=self.context.theme_cores,
                child_item_ids=tuple(collected.item_ids),
                child_attachment_ids=tuple(collected.attachment_ids),
            ),
            snapshot=kit,
        )

    def _sync_with_attachments(
        self,
        options: Sequence[AttachmentOption],
        item_type: CatalogType,
        *,
        default_core: tuple[str, str | None] = ("", None),
        kit: _Collected | None = None,
    ) -> None:
        """Reconcile attachments first, then their parents with a forced diff."""

        kit_item = kit is not None
        parent_attachments: dict[str, list[str]] = {}
        for option in options:
            attachment_ids: list[str] = []
            for path in option.attachment_paths:
                external_id = self._sync_item(
                    path,
                    AttachmentOptions(
                        parent_type=item_type.external_type,
                        theme_cores=self.context.theme_cores,
                        kit_item=kit_item,
                    ),
                    attachment=True,
                )
                if external_id is None:
                    continue
                if external_id not in attachment_ids:
                    attachment_ids.append(external_id)
                if kit is not None and external_id not in kit.attachment_ids:
                    kit.attachment_ids.append(external_id)
            parent_attachments[option.parent_path] = attachment_ids

        for option in options:
            external_id = self._sync_item(
                option.parent_path,
                ItemOptions(
                    theme_cores=self.context.theme_cores,
                    kit_item=kit_item,
                    default_of_core=(
                        default_core[1] if default_core[0] == option.parent_path else None
                    ),
                    attachment_ids=tuple(parent_attachments.get(option.parent_path, ())),
                ),
                force_check=True,
            )
            if kit is not None and external_id is not None and external_id not in kit.item_ids:
                kit.item_ids.append(external_id)

    def _default_core_hint(
        self, theme: ItemSnapshot, item_type: CatalogType
    ) -> tuple[str, str | None]:
        """Return the default option path of ``item_type`` and the core it is default of."""

        if not self.schema.has_cores:
            return ("", None)
        default_path = theme.default_options.get(item_type.option_group, "")
        core_id = self.context.theme_cores.get(theme.path)
        if not default_path or core_id is None:
            return ("", None)
        return (default_path, core_id)

    def _groups(self) -> list[CatalogType]:
        return [
            item_type
            for item_type in self.engine.category_data.types.values()
            if item_type.option_group and not item_type.is_kit
        ]

    # Flat item lists ------------------------------------------------------------

    def _sync_flat_items(self, page: Sequence[str]) -> None:
        for path in page:
            self._sync_item(path, ItemOptions(), group_filtered=True)

    # Items ----------------------------------------------------------------------

    def _sync_item(
        self,
        path: str,
        options: NormalizeOptions,
        *,
        attachment: bool = False,
        force_check: bool = False,
        group_filtered: bool = False,
    ) -> str | None:
        """Reconcile ``path`` once per pass and return its external id."""

        if self.context.is_processed(path):
            return self.context.processed_id(path)
        return self._reconcile_path(
            path,
            options,
            attachment=attachment,
            force_check=force_check,
            group_filtered=group_filtered,
        )

    def _reconcile_path(  # noqa: PLR0913
        self,
        path: str,
        options: NormalizeOptions,
        *,
        snapshot: ItemSnapshot | None = None,
        attachment: bool = False,
        force_check: bool = False,
        group_filtered: bool = False,
    ) -> str | None:
        engine = self._attachment_engine if attachment else self.engine
        if engine is None:
            raise ConfigurationError(f"{self.schema.category} has no attachment category")
        category_data = engine.category_data
        try:
            snapshot = snapshot or self._fetch(path)
            item_type = category_data.type_for(snapshot.type)
            if (
                group_filtered
                and item_type is not None
                and not self.options.includes_group(item_type.option_group)
            ):
                self.context.mark_processed(path, snapshot.external_id)
                return None
            draft = normalize_snapshot(snapshot, category_data.schema, item_type, options)
            records = self._repositories.records
            existing = self._call(
                lambda: records.get_by_external_id(
                    category_data.schema.category, draft.external_id
                ),
                f"loading {draft.external_id}",
            )
            token = self._token(snapshot)
            force_check = force_check or self.options.force_check
            if (
                item_type is not None
                and item_type.has_palettes
                and not engine.is_current(existing, draft, token, force_check=force_check)
            ):
                self._provision_palettes(snapshot)
            outcome = engine.reconcile(existing, draft, token, force_check=force_check)
        except (ResolutionError, CatalogFetchError):
            log.exception("Skipping %s", path)
            self.context.mark_skipped(path)
            return None

        self.context.mark_processed(path, snapshot.external_id)
        self._persist(outcome)
        return snapshot.external_id

    def _persist(self, outcome: Outcome[CatalogRecord]) -> None:
        record = outcome.record
        self.context.record(outcome)
        self.context.remember_reference(record.category, record.external_id, record.id)
        if not outcome.changed:
            return

        records = self._repositories.records
        self._call(lambda: records.upsert(record), f"storing {record.name}")
        for reference in _written_references(outcome):
            target_ids = record.references(reference)
            # empty sets never reach the store, on create or update
            if not target_ids:
                continue
            self._call(
                lambda reference=reference, target_ids=target_ids: records.replace_references(
                    record.id, reference, target_ids
                ),
                f"storing {reference} of {record.name}",
            )
        if isinstance(outcome, Created):
            for provenance_id in record.provenance_types:
                self._call(
                    lambda provenance_id=provenance_id: records.insert_reference(
                        record.id, ReferenceField.PROVENANCE_TYPES, provenance_id
                    ),
                    f"storing provenance of {record.name}",
                )

    # Palettes -------------------------------------------------------------------

    def _provision_palettes(self, snapshot: ItemSnapshot) -> None:
        """Create palettes the store does not know yet, prefetching their images."""

        resolver = self.engine.resolver
        missing = []
        seen: set[str] = set()
        for reference in snapshot.palettes:
            if reference.configuration_id in seen:
                continue
            seen.add(reference.configuration_id)
            if resolver.resolve_palette(reference.configuration_id) is None:
                missing.append(reference)
        if not missing:
            return

        palettes: list[PaletteSnapshot] = []
        for reference in missing:
            palette = fetch_with_retry(
                self._source,
                lambda reference=reference: self._source.fetch_palette(reference),
                description=f"fetching palette {reference.configuration_id}",
                max_attempts=self.options.max_attempts,
            )
            if is_failed(palette):
                raise CatalogFetchError(
                    f"Palette {reference.configuration_id} could not be fetched",
                    path=reference.path,
                )
            palettes.append(palette)

        images = self._assets.prefetch(self._palette_requests(palettes), self._pool)
        store = self._repositories.palettes
        for palette in palettes:
            record = PaletteRecord(
                configuration_id=palette.configuration_id,
                external_id=palette.external_id,
                name=palette.name,
                image_ref=images[palette.configuration_id].ref,
                nameplates={
                    nameplate.nameplate_id: NameplateAssets(
                        emblem_ref=images[_nameplate_key(palette, nameplate, "emblem")].ref,
                        nameplate_ref=images[_nameplate_key(palette, nameplate, "nameplate")].ref,
                        text_color=nameplate.text_color,
                    )
                    for nameplate in palette.nameplates
                },
            )
            self._call(lambda record=record: store.add(record), f"storing palette {palette.name}")
            resolver.register_palette(palette.configuration_id, record.id)
            log.info("Created palette %s (%s)", palette.name, palette.configuration_id)

    def _palette_requests(self, palettes: Sequence[PaletteSnapshot]) -> list[AssetRequest]:
        folder = palette_image_folder()
        requests: list[AssetRequest] = []
        for palette in palettes:
            requests.append(
                AssetRequest(
                    key=palette.configuration_id,
                    folder=folder,
                    name=self.schema.asset_key(palette.name, PALETTE_TYPE_NAME),
                    source_path=palette.image_path,
                )
            )
            for nameplate in palette.nameplates:
                for part, source_path in (
                    ("emblem", nameplate.emblem_path),
                    ("nameplate", nameplate.nameplate_path),
                ):
                    requests.append(
                        AssetRequest(
                            key=_nameplate_key(palette, nameplate, part),
                            folder=folder,
                            name=self.schema.asset_key(
                                f"{palette.name} {nameplate.nameplate_id} {part}",
                                PALETTE_TYPE_NAME,
                            ),
                            source_path=source_path,
                        )
                    )
        return requests

    # Source and store helpers ---------------------------------------------------

    def _list(self, kind: ItemKind) -> list[str]:
        paths = fetch_with_retry(
            self._source,
            lambda: self._source.list_paths(self.schema, kind),
            description=f"listing {self.schema.category} {kind} paths",
            max_attempts=self.options.max_attempts,
        )
        if is_failed(paths):
            raise CatalogFetchError(f"{self.schema.category} {kind} paths could not be listed")
        return paths

    def _fetch(self, path: str) -> ItemSnapshot:
        snapshot = fetch_with_retry(
            self._source,
            lambda: self._source.fetch_item(path),
            description=f"fetching {path}",
            max_attempts=self.options.max_attempts,
        )
        if is_failed(snapshot):
            raise CatalogFetchError(f"{path} could not be fetched", path=path)
        return snapshot

    def _token(self, snapshot: ItemSnapshot) -> str:
        return snapshot.freshness_token or self.reference.token_for(snapshot.external_id)

    def _call[T](self, operation: Callable[[], T], description: str) -> T:
        result = retry(operation, self.options.max_attempts, description=description)
        if is_failed(result):
            raise PersistenceError(
                f"{description} failed after {self.options.max_attempts} attempts"
            )
        return result  # type: ignore[return-value]


def _written_references(outcome: Outcome[CatalogRecord]) -> tuple[ReferenceField, ...]:
    """Reference fields to write for ``outcome``: all on create, logged ones on update."""

    if isinstance(outcome, Updated):
        logged = {entry.field for entry in outcome.entries}
        return tuple(ref for ref in _REPLACED_REFERENCES if ref.value in logged)
    return _REPLACED_REFERENCES


def _nameplate_key(palette: PaletteSnapshot, nameplate: NameplateSnapshot, part: str) -> str:
    return f"{palette.configuration_id}:{nameplate.nameplate_id}:{part}"


__all__ = [
    "KITS_GROUP",
    "CategorySync",
    "PersistenceError",
    "SyncOptions",
    "SyncReport",
]
