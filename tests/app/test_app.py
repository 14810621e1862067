from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from catalogsync import app as app_module
from catalogsync.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork
from catalogsync.app import (
    RefreshListingsParams,
    SyncCategoryParams,
    refresh_listings,
    sync_category,
)
from catalogsync.config import SyncConfig
from catalogsync.domain.batch import PersistenceError
from catalogsync.domain.model import (
    AttachmentOption,
    Category,
    ItemKind,
    ListingKind,
    ListingSnapshot,
    OutcomeStatus,
    ReferenceField,
)
from catalogsync.domain.ports import CatalogFetchError
from tests.helpers.catalog import (
    HELMETS_GROUP,
    VISORS_GROUP,
    make_armor_types,
    make_core,
    make_item,
    make_lookup_values,
    make_spartan_id_types,
    make_theme,
)
from tests.helpers.fakes import FakeBlobStore, FakeCatalogSource
from tests.helpers.repositories import FakeUnitOfWork, InMemoryCatalogRecordRepository

if TYPE_CHECKING:
    from collections.abc import Callable

    from catalogsync.domain.ports import CatalogRepositories

CONFIG = SyncConfig(page_size=10, max_attempts=1, prefetch_workers=1)
CORE_ID = "101-000-core-mk7"
THEME = "Inventory/Armor/Themes/mk7-default.json"


def _armor_source() -> FakeCatalogSource:
    source = FakeCatalogSource()
    core = source.add_item(make_core(CORE_ID, theme_paths=(THEME,)))
    helmet = source.add_item(make_item("helmet-1", title="Hermes"))
    visor = source.add_item(make_item("visor-1", title="Gold", item_type="ArmorVisor"))
    source.add_item(
        make_theme(
            THEME,
            option_groups={VISORS_GROUP: (visor.path,)},
            default_options={HELMETS_GROUP: helmet.path},
            attachment_groups={HELMETS_GROUP: (AttachmentOption(helmet.path),)},
        )
    )
    source.paths[(Category.ARMOR, ItemKind.CORE)] = [core.path]
    source.freshness = {
        external_id: f"etag-{external_id}" for external_id in (CORE_ID, "helmet-1", "visor-1")
    }
    return source


def _sync(
    unit_of_work: Callable[[], object],
    source: FakeCatalogSource,
    **params: object,
):
    return sync_category(
        SyncCategoryParams(category=Category.ARMOR, **params),  # type: ignore[arg-type]
        source=source,
        blobs=FakeBlobStore(),
        unit_of_work_factory=unit_of_work,  # type: ignore[arg-type]
        sync_config=CONFIG,
    )


def test_sync_category_commits_one_page(
    unit_of_work: FakeUnitOfWork, repositories: CatalogRepositories
) -> None:
    source = _armor_source()

    cores = _sync(lambda: unit_of_work, source, cores_only=True)
    report = _sync(lambda: unit_of_work, source)

    assert cores.cores_only
    assert report.counts is not None
    assert report.counts[OutcomeStatus.CREATED] == 2
    assert unit_of_work.commits == 2
    assert repositories.checkpoints.load("armor:all") == 0


def test_sync_category_rolls_back_on_persistence_error(
    unit_of_work: FakeUnitOfWork, repositories: CatalogRepositories
) -> None:
    source = _armor_source()
    _sync(lambda: unit_of_work, source, cores_only=True)

    class _BrokenRecords(InMemoryCatalogRecordRepository):
        def upsert(self, record) -> None:  # type: ignore[override]
            raise OSError("database is locked")

    repositories.records = _BrokenRecords()

    with pytest.raises(PersistenceError):
        _sync(lambda: unit_of_work, source)

    assert unit_of_work.commits == 1
    assert unit_of_work.rollbacks == 1


def test_default_unit_of_work_factory_starts_adapter(monkeypatch: pytest.MonkeyPatch) -> None:
    started: list[bool] = []
    monkeypatch.setattr(app_module, "is_started", lambda: False)
    monkeypatch.setattr(app_module, "startup", lambda: started.append(True))

    factory = app_module._default_unit_of_work_factory()  # noqa: SLF001

    assert factory is SqlAlchemyUnitOfWork
    assert started == [True]


def test_refresh_listings_applies_transitions(
    unit_of_work: FakeUnitOfWork, repositories: CatalogRepositories
) -> None:
    source = _armor_source()
    _sync(lambda: unit_of_work, source, cores_only=True)
    _sync(lambda: unit_of_work, source)
    source.listings[(ListingKind.SHOP, "main")] = [
        ListingSnapshot(
            kind=ListingKind.SHOP,
            external_id="bundle-1",
            name="Hermes Bundle",
            cost=1000,
            items={Category.ARMOR: ("helmet-1",)},
        )
    ]

    report = refresh_listings(
        RefreshListingsParams(kind=ListingKind.SHOP),
        source=source,
        unit_of_work_factory=lambda: unit_of_work,
        sync_config=CONFIG,
    )

    assert report.channel == "main"
    assert [listing.external_id for listing in report.became_available] == ["bundle-1"]
    helmet = repositories.records.get_by_external_id(Category.ARMOR, "helmet-1")
    assert helmet is not None
    assert helmet.currently_available
    assert unit_of_work.commits == 3


def test_refresh_listings_fails_when_source_is_down(unit_of_work: FakeUnitOfWork) -> None:
    source = FakeCatalogSource()
    source.fail("listings:pass", CatalogFetchError("gateway timeout", status=504))

    with pytest.raises(CatalogFetchError):
        refresh_listings(
            RefreshListingsParams(kind=ListingKind.PASS, channel="operations"),
            source=source,
            unit_of_work_factory=lambda: unit_of_work,
            sync_config=CONFIG,
        )

    assert unit_of_work.commits == 0


def test_sync_category_against_sqlite(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.lookups.add_values(make_lookup_values())  # type: ignore[attr-defined]
        uow.repositories.lookups.add_types(  # type: ignore[attr-defined]
            [*make_armor_types(), *make_spartan_id_types()]
        )
        uow.commit()
    source = _armor_source()

    _sync(sqlite_unit_of_work, source, cores_only=True)
    report = _sync(sqlite_unit_of_work, source)
    again = _sync(sqlite_unit_of_work, source)

    assert report.counts is not None
    assert report.counts[OutcomeStatus.CREATED] == 2
    assert again.counts is not None
    assert set(again.counts) == {OutcomeStatus.UNCHANGED}
    with sqlite_unit_of_work() as uow:
        records = uow.repositories.records
        core = uow.repositories.cores.get_by_external_id(Category.ARMOR, CORE_ID)
        helmet = records.get_by_external_id(Category.ARMOR, "helmet-1")
        assert core is not None
        assert helmet is not None
        assert helmet.references(ReferenceField.DEFAULT_OF_CORE) == [core.id]
        assert uow.repositories.checkpoints.load("armor:all") == 0
