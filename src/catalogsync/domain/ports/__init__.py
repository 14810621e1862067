"""Domain port definitions for adapters."""

from __future__ import annotations

from .blobs import BlobMetadata, BlobStore
from .fetching import CatalogFetchError, CatalogSource, CredentialsExpiredError
from .persistence import (
    CatalogRecordRepository,
    CheckpointRepository,
    CoreRecordRepository,
    ListingRecordRepository,
    LookupRepository,
    PaletteRecordRepository,
)
from .unit_of_work import (
    CatalogRepositories,
    CatalogUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "BlobMetadata",
    "BlobStore",
    "CatalogFetchError",
    "CatalogRecordRepository",
    "CatalogRepositories",
    "CatalogSource",
    "CatalogUnitOfWork",
    "CheckpointRepository",
    "CoreRecordRepository",
    "CredentialsExpiredError",
    "ListingRecordRepository",
    "LookupRepository",
    "PaletteRecordRepository",
    "RepositoryCollection",
    "UnitOfWork",
]
