"""Outcome types produced by the diff engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from catalogsync.domain.model import CatalogRecord, CoreRecord, OutcomeStatus

if TYPE_CHECKING:
    from catalogsync.domain.model import ChangeLogEntry


type AnyRecord = CatalogRecord | CoreRecord


@dataclass(frozen=True, slots=True, kw_only=True)
class Unchanged[R: AnyRecord]:
    """The stored record already matches the source."""

    record: R
    status: Literal[OutcomeStatus.UNCHANGED] = OutcomeStatus.UNCHANGED

    @property
    def changed(self) -> bool:
        return False


@dataclass(frozen=True, slots=True, kw_only=True)
class Updated[R: AnyRecord]:
    """Merged copy of an existing record.

    ``entries`` is empty when only the freshness token moved.
    """

    record: R
    entries: tuple[ChangeLogEntry, ...] = ()
    status: Literal[OutcomeStatus.UPDATED] = OutcomeStatus.UPDATED

    @property
    def changed(self) -> bool:
        return True


@dataclass(frozen=True, slots=True, kw_only=True)
class Created[R: AnyRecord]:
    record: R
    status: Literal[OutcomeStatus.CREATED] = OutcomeStatus.CREATED

    @property
    def changed(self) -> bool:
        return True


type Outcome[R: AnyRecord] = Unchanged[R] | Updated[R] | Created[R]
