from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from catalogsync.adapters.sqlalchemy.migrations import upgrade_head
from catalogsync.adapters.sqlalchemy.repositories import SqlAlchemyLookupRepository
from catalogsync.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, shutdown, startup
from tests.helpers.catalog import make_armor_types, make_lookup_values, make_spartan_id_types
from tests.helpers.fakes import FakeBlobStore, FakeCatalogSource
from tests.helpers.repositories import FakeUnitOfWork, make_repositories

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from catalogsync.domain.ports import CatalogRepositories


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    # prefetch workers share the single in-memory connection
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded_session(sqlite_session: Session) -> Session:
    lookups = SqlAlchemyLookupRepository(sqlite_session)
    lookups.add_values(make_lookup_values())
    lookups.add_types([*make_armor_types(), *make_spartan_id_types()])
    sqlite_session.commit()
    return sqlite_session


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def repositories() -> CatalogRepositories:
    return make_repositories()


@pytest.fixture
def unit_of_work(repositories: CatalogRepositories) -> FakeUnitOfWork:
    return FakeUnitOfWork(repositories)


@pytest.fixture
def source() -> FakeCatalogSource:
    return FakeCatalogSource()


@pytest.fixture
def blobs() -> FakeBlobStore:
    return FakeBlobStore()
