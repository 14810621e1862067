from __future__ import annotations

from datetime import UTC, datetime

import pytest

from catalogsync.config import ConfigurationError
from catalogsync.domain.assets import AssetCache
from catalogsync.domain.batch import CategorySync, PersistenceError, RunContext, SyncOptions
from catalogsync.domain.model import (
    AttachmentOption,
    Category,
    ItemKind,
    LookupKind,
    OutcomeStatus,
    PaletteReference,
    PaletteSnapshot,
    ProvenanceKind,
)
from catalogsync.domain.ports import CatalogFetchError
from catalogsync.domain.schema import get_schema
from tests.helpers.catalog import (
    COATINGS_GROUP,
    HELMETS_GROUP,
    VISORS_GROUP,
    make_core,
    make_item,
    make_theme,
)
from tests.helpers.fakes import FakeBlobStore, FakeCatalogSource
from tests.helpers.repositories import (
    InMemoryCatalogRecordRepository,
    InMemoryPaletteRecordRepository,
    make_repositories,
)

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)
CORE_ID = "101-000-core-mk7"
MK7_THEME = "Inventory/Armor/Themes/mk7-default.json"
KIT_PATH = "Inventory/Armor/Themes/kit-a.json"


def _armor_source() -> FakeCatalogSource:
    source = FakeCatalogSource()
    core = source.add_item(make_core(CORE_ID, theme_paths=(MK7_THEME, KIT_PATH)))
    attachment = source.add_item(
        make_item("attachment-1", title="Visor Lamp", item_type="ArmorHelmetAttachment")
    )
    helmet = source.add_item(make_item("helmet-1", title="Mark VII"))
    coating = source.add_item(
        make_item(
            "coating-1",
            title="Crimson",
            item_type="ArmorCoating",
            palettes=(PaletteReference("palette-a", "palettes/a.json"),),
        )
    )
    visor = source.add_item(make_item("visor-1", title="Gold", item_type="ArmorVisor"))
    kit_visor = source.add_item(
        make_item("visor-kit", title="Kit Visor", item_type="ArmorVisor", parent_paths=(KIT_PATH,))
    )
    source.add_item(
        make_theme(
            MK7_THEME,
            option_groups={
                COATINGS_GROUP: (coating.path,),
                VISORS_GROUP: (visor.path,),
            },
            default_options={HELMETS_GROUP: helmet.path},
            attachment_groups={
                HELMETS_GROUP: (AttachmentOption(helmet.path, (attachment.path,)),),
            },
        )
    )
    source.add_item(
        make_theme(
            KIT_PATH,
            external_id="kit-a",
            title="Kit A",
            is_kit=True,
            option_groups={VISORS_GROUP: (kit_visor.path,)},
        )
    )
    source.palettes["palette-a"] = PaletteSnapshot(
        configuration_id="palette-a",
        external_id="pal-a",
        name="Crimson Palette",
        image_path="progression/palette-a.png",
    )
    source.paths[(Category.ARMOR, ItemKind.CORE)] = [core.path]
    source.freshness = {
        external_id: f"etag-{external_id}"
        for external_id in (
            CORE_ID,
            "attachment-1",
            "helmet-1",
            "coating-1",
            "visor-1",
            "visor-kit",
            "kit-a",
        )
    }
    return source


def _sync(
    repositories,
    source: FakeCatalogSource,
    category: Category = Category.ARMOR,
    **options: object,
) -> CategorySync:
    values: dict[str, object] = {"max_attempts": 1, "prefetch_workers": 2}
    values.update(options)
    return CategorySync(
        schema=get_schema(category),
        repositories=repositories,
        source=source,
        assets=AssetCache(FakeBlobStore(), source, max_attempts=1),
        context=RunContext(category=category),
        options=SyncOptions(**values),  # type: ignore[arg-type]
        clock=lambda: NOW,
    )


@pytest.fixture
def seeded():
    repositories = make_repositories()
    source = _armor_source()
    _sync(repositories, source, cores_only=True).run()
    return repositories, source


def test_cores_only_run_stores_cores(seeded) -> None:
    repositories, _source = seeded

    core = repositories.cores.get_by_external_id(Category.ARMOR, CORE_ID)

    assert core is not None
    assert core.theme_paths == [MK7_THEME, KIT_PATH]
    assert core.freshness_token == f"etag-{CORE_ID}"
    assert repositories.records.records == {}
    assert repositories.checkpoints.offsets == {}


def test_full_pass_creates_items_kits_and_attachments(seeded) -> None:
    repositories, source = seeded
    records = repositories.records
    core = repositories.cores.get_by_external_id(Category.ARMOR, CORE_ID)
    assert core is not None

    report = _sync(repositories, source).run()

    assert report.counts is not None
    assert report.counts[OutcomeStatus.CREATED] == 6
    assert report.skipped_paths == []
    assert report.page is not None
    assert report.page.items == [MK7_THEME, KIT_PATH]
    assert repositories.checkpoints.offsets == {"armor:all": 0}

    attachment = records.by_external_id("attachment-1")
    helmet = records.by_external_id("helmet-1")
    coating = records.by_external_id("coating-1")
    kit_visor = records.by_external_id("visor-kit")
    kit = records.by_external_id("kit-a")

    assert attachment.category is Category.ARMOR_ATTACHMENT
    assert "Helmet Attachments/Mark VII/Helmets/" in attachment.image_ref
    assert helmet.attachments == [attachment.id]
    assert helmet.cores == [core.id]
    assert helmet.default_of_core == [core.id]
    assert len(coating.palettes) == 1
    assert repositories.palettes.records[0].id == coating.palettes[0]
    assert kit_visor.kit_only
    assert kit_visor.provenance_types == [
        repositories.lookups.id_of(LookupKind.PROVENANCE_TYPE, ProvenanceKind.KIT_ITEM.value)
    ]
    assert kit.kit_items == [kit_visor.id]
    assert kit.cores == [core.id]


def test_second_pass_is_unchanged(seeded) -> None:
    repositories, source = seeded
    _sync(repositories, source).run()
    upserts = repositories.records.upserts

    report = _sync(repositories, source).run()

    assert report.counts is not None
    assert set(report.counts) == {OutcomeStatus.UNCHANGED}
    assert repositories.records.upserts == upserts


def test_changed_source_updates_record(seeded) -> None:
    repositories, source = seeded
    _sync(repositories, source).run()
    source.add_item(make_item("visor-1", title="Platinum", item_type="ArmorVisor"))
    source.freshness["visor-1"] = "etag-visor-1-v2"

    report = _sync(repositories, source).run()

    assert report.counts is not None
    assert report.counts[OutcomeStatus.UPDATED] == 1
    visor = repositories.records.by_external_id("visor-1")
    assert visor.name == "Platinum"
    assert visor.change_log[0].field == "name"
    assert visor.needs_review


def test_page_size_limits_themes_per_run(seeded) -> None:
    repositories, source = seeded

    first = _sync(repositories, source, page_size=1).run()
    assert first.page is not None
    assert first.page.items == [MK7_THEME]
    assert repositories.checkpoints.offsets == {"armor:all": 1}
    with pytest.raises(KeyError):
        repositories.records.by_external_id("kit-a")

    second = _sync(repositories, source, page_size=1).run()
    assert second.page is not None
    assert second.page.items == [KIT_PATH]
    assert repositories.checkpoints.offsets == {"armor:all": 0}
    assert repositories.records.by_external_id("kit-a").kit_items


def test_group_filter_skips_other_groups_and_kits(seeded) -> None:
    repositories, source = seeded

    report = _sync(repositories, source, groups=(VISORS_GROUP,)).run()

    assert report.counts is not None
    assert report.counts[OutcomeStatus.CREATED] == 1
    assert repositories.records.by_external_id("visor-1")
    assert repositories.checkpoints.offsets == {f"armor:{VISORS_GROUP}": 0}


def test_fetch_failure_skips_only_that_item(seeded) -> None:
    repositories, source = seeded
    visor_path = source.items["Inventory/Armor/ArmorVisor/visor-1.json"].path
    source.fail(visor_path, CatalogFetchError("gateway timeout", status=504))

    report = _sync(repositories, source).run()

    assert report.skipped_paths == [visor_path]
    assert report.counts is not None
    assert report.counts[OutcomeStatus.CREATED] == 5


def test_failed_store_write_aborts_without_checkpoint(seeded) -> None:
    repositories, source = seeded

    class _BrokenRecords(InMemoryCatalogRecordRepository):
        def upsert(self, record) -> None:  # type: ignore[override]
            raise OSError("database is locked")

    repositories.records = _BrokenRecords()

    with pytest.raises(PersistenceError):
        _sync(repositories, source).run()

    assert repositories.checkpoints.offsets == {}


def test_flat_category_respects_groups() -> None:
    repositories = make_repositories()
    source = FakeCatalogSource()
    stance = source.add_item(
        make_item("stance-1", title="Stoic", item_type="SpartanStance", parent_paths=())
    )
    source.paths[(Category.SPARTAN_ID, ItemKind.ITEM)] = [stance.path]

    filtered = _sync(repositories, source, Category.SPARTAN_ID, groups=("Emblems",)).run()
    assert filtered.counts is not None
    assert sum(filtered.counts.values()) == 0

    report = _sync(repositories, source, Category.SPARTAN_ID).run()
    assert report.counts is not None
    assert report.counts[OutcomeStatus.CREATED] == 1
    record = repositories.records.by_external_id("stance-1")
    assert record.cores == []
    assert "/Stances/" in f"/{record.image_ref}"


def test_attachment_category_is_synced_through_parent() -> None:
    with pytest.raises(ConfigurationError):
        _sync(make_repositories(), FakeCatalogSource(), Category.ARMOR_ATTACHMENT)


class _RecordingRecords(InMemoryCatalogRecordRepository):
    def __init__(self) -> None:
        super().__init__()
        self.replaced: list[tuple[str, str, list]] = []

    def replace_references(self, record_id, field, target_ids) -> None:  # type: ignore[override]
        self.replaced.append((self.records[record_id].external_id, field.value, list(target_ids)))
        super().replace_references(record_id, field, target_ids)


class _CountingPalettes(InMemoryPaletteRecordRepository):
    lookups: int = 0

    def find_by_configuration_id(self, configuration_id: str):  # type: ignore[override]
        self.lookups += 1
        return super().find_by_configuration_id(configuration_id)


def test_full_pass_on_empty_store_links_cores() -> None:
    repositories = make_repositories()
    source = _armor_source()

    report = _sync(repositories, source).run()

    core = repositories.cores.get_by_external_id(Category.ARMOR, CORE_ID)
    assert core is not None
    assert core.theme_paths == [MK7_THEME, KIT_PATH]
    assert report.counts is not None
    assert report.counts[OutcomeStatus.CREATED] == 6
    helmet = repositories.records.by_external_id("helmet-1")
    attachment = repositories.records.by_external_id("attachment-1")
    assert helmet.cores == [core.id]
    assert helmet.default_of_core == [core.id]
    assert "/Mark VII/" in attachment.image_ref


def test_empty_reference_sets_are_never_written(seeded) -> None:
    repositories, source = seeded
    records = _RecordingRecords()
    repositories.records = records

    _sync(repositories, source).run()

    assert records.replaced
    assert all(target_ids for _external_id, _field, target_ids in records.replaced)


def test_update_only_rewrites_logged_references(seeded) -> None:
    repositories, source = seeded
    records = _RecordingRecords()
    repositories.records = records
    _sync(repositories, source).run()
    records.replaced.clear()
    source.add_item(make_item("visor-1", title="Platinum", item_type="ArmorVisor"))
    source.freshness["visor-1"] = "etag-visor-1-v2"
    source.freshness["helmet-1"] = "etag-helmet-1-v2"

    report = _sync(repositories, source).run()

    assert report.counts is not None
    assert report.counts[OutcomeStatus.UPDATED] == 2
    assert records.replaced == []
    core = repositories.cores.get_by_external_id(Category.ARMOR, CORE_ID)
    assert core is not None
    helmet = records.by_external_id("helmet-1")
    assert helmet.cores == [core.id]
    assert helmet.attachments == [records.by_external_id("attachment-1").id]


def test_unchanged_coating_skips_palette_lookups(seeded) -> None:
    repositories, source = seeded
    _sync(repositories, source).run()
    palettes = _CountingPalettes(records=repositories.palettes.records)
    repositories.palettes = palettes

    report = _sync(repositories, source).run()

    assert report.counts is not None
    assert set(report.counts) == {OutcomeStatus.UNCHANGED}
    assert palettes.lookups == 0
    assert len(palettes.records) == 1
