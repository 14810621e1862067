"""Diff and audit engine for catalog and core records.

Flow for one snapshot:
1) short-circuit on an unchanged freshness token
2) resolve relationship identifiers to record ids
3) compare fields in a fixed order on a deep copy
4) prepend change-log entries and flag the record for review
"""

from __future__ import annotations

from .changelog import ChangeTracker, normalized_text, sets_equal, texts_equal
from .contracts import AnyRecord, Created, Outcome, Unchanged, Updated
from .engine import DiffEngine

__all__ = [
    "AnyRecord",
    "ChangeTracker",
    "Created",
    "DiffEngine",
    "Outcome",
    "Unchanged",
    "Updated",
    "normalized_text",
    "sets_equal",
    "texts_equal",
]
