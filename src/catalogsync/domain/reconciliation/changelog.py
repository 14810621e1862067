"""Field-by-field change tracking with audit entries."""

from __future__ import annotations

import operator
import unicodedata
from typing import TYPE_CHECKING

from catalogsync.domain.model import ChangeLogEntry

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from datetime import datetime

    from .contracts import AnyRecord

type Describe = Callable[[str, object], object]


def sets_equal(left: Sequence[object], right: Sequence[object]) -> bool:
    """Order-insensitive comparison of two reference lists."""

    if len(left) != len(right):
        return False
    return sorted(left, key=str) == sorted(right, key=str)


def normalized_text(value: str) -> str:
    return unicodedata.normalize("NFC", value or "")


def texts_equal(left: object, right: object) -> bool:
    return normalized_text(str(left or "")) == normalized_text(str(right or ""))


def _as_is(field_name: str, value: object) -> object:
    _ = field_name
    return value


class ChangeTracker[R: AnyRecord]:
    """Apply new field values to ``record`` and collect change-log entries.

    ``record`` must be a private copy; the tracker mutates it in place.
    """

    def __init__(
        self, record: R, timestamp: datetime, describe: Describe | None = None
    ) -> None:
        self.record = record
        self.timestamp = timestamp
        self.entries: list[ChangeLogEntry] = []
        self.silent_changes: list[str] = []
        self._describe = describe or _as_is

    @property
    def changed(self) -> bool:
        return bool(self.entries or self.silent_changes)

    def update(
        self,
        field_name: str,
        value: object,
        *,
        label: str | None = None,
        equal: Callable[[object, object], bool] = operator.eq,
    ) -> bool:
        """Set ``field_name`` to ``value`` and log it when the value differs."""

        old = getattr(self.record, field_name)
        if equal(old, value):
            return False
        setattr(self.record, field_name, value)
        self.entries.append(
            ChangeLogEntry.changed(
                self.timestamp,
                label or field_name,
                self._describe(field_name, old),
                self._describe(field_name, value),
            )
        )
        return True

    def set_silently(self, field_name: str, value: object) -> bool:
        """Set a derived field without an audit entry."""

        if getattr(self.record, field_name) == value:
            return False
        setattr(self.record, field_name, value)
        self.silent_changes.append(field_name)
        return True

    def finish(self) -> tuple[ChangeLogEntry, ...]:
        """Prepend new entries (most recent first) and flag the record for review."""

        if not self.entries:
            return ()
        self.record.change_log = [*reversed(self.entries), *self.record.change_log]
        self.record.needs_review = True
        return tuple(reversed(self.entries))
