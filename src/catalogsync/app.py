"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final

from catalogsync.adapters.blobs import FilesystemBlobStore
from catalogsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyUnitOfWork,
    is_started,
    startup,
)
from catalogsync.adapters.waypoint import WaypointCatalogSource
from catalogsync.common.retry import is_failed
from catalogsync.config import get_sync_config
from catalogsync.domain.assets import AssetCache
from catalogsync.domain.availability import AvailabilityManager
from catalogsync.domain.batch import CategorySync, RunContext, SyncOptions
from catalogsync.domain.bootstrap import load_provenance_types
from catalogsync.domain.fetch import fetch_with_retry
from catalogsync.domain.model import ListingKind
from catalogsync.domain.ports import CatalogFetchError, CatalogUnitOfWork
from catalogsync.domain.schema import get_schema

if TYPE_CHECKING:
    from catalogsync.config import SyncConfig
    from catalogsync.domain.availability import AvailabilityReport
    from catalogsync.domain.batch import SyncReport
    from catalogsync.domain.model import Category
    from catalogsync.domain.ports import BlobStore, CatalogSource

UnitOfWorkFactory = Callable[[], CatalogUnitOfWork]

DEFAULT_CHANNELS: Final[dict[ListingKind, str]] = {
    ListingKind.SHOP: "main",
    ListingKind.PASS: "operations",
    ListingKind.CHALLENGE: "capstone",
}

log = getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class SyncCategoryParams:
    category: Category
    groups: tuple[str, ...] = ()
    cores_only: bool = False
    page_size: int | None = None
    max_attempts: int | None = None
    force_check: bool = False


@dataclass(frozen=True, slots=True, kw_only=True)
class RefreshListingsParams:
    kind: ListingKind
    channel: str | None = None
    max_attempts: int | None = None

    @property
    def effective_channel(self) -> str:
        return self.channel or DEFAULT_CHANNELS[self.kind]


def _default_unit_of_work_factory() -> UnitOfWorkFactory:
    if not is_started():
        startup()
    return SqlAlchemyUnitOfWork


def sync_category(
    params: SyncCategoryParams,
    *,
    source: CatalogSource | None = None,
    blobs: BlobStore | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    sync_config: SyncConfig | None = None,
) -> SyncReport:
    """Reconcile one page of a catalog category using the configured adapters."""

    config = sync_config or get_sync_config()
    schema = get_schema(params.category)
    options = SyncOptions(
        groups=params.groups,
        cores_only=params.cores_only,
        page_size=params.page_size or config.page_size,
        max_attempts=params.max_attempts or config.max_attempts,
        prefetch_workers=config.prefetch_workers,
        force_check=params.force_check,
    )
    effective_uow = unit_of_work_factory or _default_unit_of_work_factory()
    effective_source = source or WaypointCatalogSource()
    effective_blobs = blobs or FilesystemBlobStore()
    log.info(
        "Starting %s sync: groups=%s, cores_only=%s, page_size=%s",
        schema.display_name,
        list(options.groups) or "all",
        options.cores_only,
        options.page_size,
    )

    with effective_uow() as uow:
        pipeline = CategorySync(
            schema=schema,
            repositories=uow.repositories,
            source=effective_source,
            assets=AssetCache(
                effective_blobs, effective_source, max_attempts=options.max_attempts
            ),
            context=RunContext(category=schema.category),
            options=options,
        )
        report = pipeline.run()
        uow.commit()

    if report.page is not None:
        log.info(
            "Finished %s page %s-%s of %s",
            schema.display_name,
            report.page.offset,
            report.page.offset + len(report.page.items),
            report.page.total,
        )
    return report


def refresh_listings(
    params: RefreshListingsParams,
    *,
    source: CatalogSource | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    sync_config: SyncConfig | None = None,
) -> AvailabilityReport:
    """Apply the availability transitions of the current listing page."""

    config = sync_config or get_sync_config()
    max_attempts = params.max_attempts or config.max_attempts
    channel = params.effective_channel
    effective_uow = unit_of_work_factory or _default_unit_of_work_factory()
    effective_source = source or WaypointCatalogSource()
    log.info("Refreshing %s listings on %s", params.kind, channel)

    listings = fetch_with_retry(
        effective_source,
        lambda: effective_source.fetch_listings(params.kind, channel),
        description=f"fetching {params.kind} listings",
        max_attempts=max_attempts,
    )
    if is_failed(listings):
        raise CatalogFetchError(f"{params.kind} listings for {channel!r} could not be fetched")

    with effective_uow() as uow:
        repositories = uow.repositories
        manager = AvailabilityManager(
            repositories,
            load_provenance_types(repositories.lookups, max_attempts),
            max_attempts=max_attempts,
        )
        report = manager.refresh(params.kind, channel, listings)
        uow.commit()
    return report


__all__ = [
    "DEFAULT_CHANNELS",
    "RefreshListingsParams",
    "SyncCategoryParams",
    "refresh_listings",
    "sync_category",
]
