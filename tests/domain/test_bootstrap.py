from __future__ import annotations

import pytest

from catalogsync.domain.bootstrap import (
    BootstrapError,
    load_category_data,
    load_provenance_types,
    load_reference_data,
)
from catalogsync.domain.model import (
    ANY_CORE_MARKER,
    Category,
    CoreRecord,
    LookupKind,
    ProvenanceKind,
)
from catalogsync.domain.ports import CredentialsExpiredError
from catalogsync.domain.schema import get_schema
from tests.helpers.fakes import FakeCatalogSource
from tests.helpers.repositories import (
    InMemoryCoreRecordRepository,
    InMemoryLookupRepository,
)


def test_reference_data_maps_lookups_and_tokens() -> None:
    lookups = InMemoryLookupRepository()
    source = FakeCatalogSource(freshness={"helmet-1": "etag-1"})

    data = load_reference_data(lookups, source, max_attempts=1)

    assert data.quality_id("Rare") == lookups.id_of(LookupKind.QUALITY, "Rare")
    assert data.release_id("Season 2") == lookups.id_of(LookupKind.RELEASE, "Season 2")
    assert data.manufacturer_id(1) == lookups.id_of(LookupKind.MANUFACTURER, "Banished")
    assert data.provenance_id(ProvenanceKind.PENDING) == lookups.id_of(
        LookupKind.PROVENANCE_TYPE, "Pending"
    )
    assert data.token_for("helmet-1") == "etag-1"
    assert data.token_for("unknown") == ""
    assert data.label(data.quality_id("Rare")) == "Rare"


def test_unknown_lookup_values_resolve_to_none() -> None:
    data = load_reference_data(InMemoryLookupRepository(), FakeCatalogSource(), max_attempts=1)

    assert data.quality_id("Mythic") is None
    assert data.quality_id("") is None
    assert data.manufacturer_id(99) is None
    assert data.manufacturer_id(None) is None


def test_missing_lookup_kind_is_fatal() -> None:
    lookups = InMemoryLookupRepository()
    lookups.lookup_values = [
        value for value in lookups.lookup_values if value.kind is not LookupKind.RELEASE
    ]

    with pytest.raises(BootstrapError, match="release"):
        load_reference_data(lookups, FakeCatalogSource(), max_attempts=1)


def test_missing_provenance_type_is_fatal() -> None:
    lookups = InMemoryLookupRepository()
    lookups.lookup_values = [
        value
        for value in lookups.lookup_values
        if not (value.kind is LookupKind.PROVENANCE_TYPE and value.name == "Kit Item")
    ]

    with pytest.raises(BootstrapError, match="Kit Item"):
        load_provenance_types(lookups, max_attempts=1)


def test_freshness_index_refreshes_credentials_before_retrying() -> None:
    source = FakeCatalogSource()
    source.fail("freshness", CredentialsExpiredError("expired", status=401))

    data = load_reference_data(InMemoryLookupRepository(), source, max_attempts=2)

    assert source.credential_refreshes == 1
    assert data.token_for("seed") == "etag-seed"


def test_unavailable_freshness_index_is_fatal() -> None:
    source = FakeCatalogSource()
    source.fail("freshness", OSError("down"), OSError("down"))

    with pytest.raises(BootstrapError, match="Freshness"):
        load_reference_data(InMemoryLookupRepository(), source, max_attempts=2)


def test_category_data_registers_stored_cores() -> None:
    cores = InMemoryCoreRecordRepository()
    mk7 = CoreRecord(category=Category.ARMOR, external_id="core-mk7", name="Mark VII")
    any_core = CoreRecord(category=Category.ARMOR, external_id="core-any", name=ANY_CORE_MARKER)
    cores.upsert(mk7)
    cores.upsert(any_core)

    data = load_category_data(get_schema(Category.ARMOR), InMemoryLookupRepository(), cores)

    assert data.core_ids["core-mk7"] == mk7.id
    assert data.core_names["core-mk7"] == "Mark VII"
    assert data.core_ids[ANY_CORE_MARKER] == any_core.id
    assert data.type_for("ArmorHelmet") is not None
    helmet = data.type_for("ArmorHelmet")
    assert helmet is not None
    assert data.type_by_id(helmet.id) == helmet


def test_attachment_category_loads_parent_cores() -> None:
    cores = InMemoryCoreRecordRepository()
    mk7 = CoreRecord(category=Category.ARMOR, external_id="core-mk7", name="Mark VII")
    cores.upsert(mk7)

    data = load_category_data(
        get_schema(Category.ARMOR_ATTACHMENT), InMemoryLookupRepository(), cores
    )

    assert data.core_ids == {"core-mk7": mk7.id}
    assert set(data.types) == {"ArmorHelmetAttachment"}


def test_category_without_types_is_fatal() -> None:
    with pytest.raises(BootstrapError):
        load_category_data(
            get_schema(Category.VEHICLE),
            InMemoryLookupRepository(),
            InMemoryCoreRecordRepository(),
            max_attempts=1,
        )
