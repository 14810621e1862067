"""SQLAlchemy adapter package for catalogsync."""

from __future__ import annotations

from .mappings import create_all_tables, metadata
from .repositories import (
    SqlAlchemyCatalogRecordRepository,
    SqlAlchemyCheckpointRepository,
    SqlAlchemyCoreRecordRepository,
    SqlAlchemyListingRecordRepository,
    SqlAlchemyLookupRepository,
    SqlAlchemyPaletteRecordRepository,
)
from .unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyCatalogRecordRepository",
    "SqlAlchemyCheckpointRepository",
    "SqlAlchemyCoreRecordRepository",
    "SqlAlchemyListingRecordRepository",
    "SqlAlchemyLookupRepository",
    "SqlAlchemyPaletteRecordRepository",
    "SqlAlchemyUnitOfWork",
    "StartupError",
    "configured_engine",
    "create_all_tables",
    "is_started",
    "metadata",
    "shutdown",
    "startup",
]
