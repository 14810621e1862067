"""Per-run state shared by the components of one reconciliation pass."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID

    from catalogsync.domain.model import Category, OutcomeStatus
    from catalogsync.domain.reconciliation.contracts import Outcome


@dataclass(slots=True)
class RunContext:
    """Memos owned by a single pass.

    A fresh context is built for every run and passed explicitly to the
    resolver and pipeline, so two runs never share cached identifiers.
    """

    category: Category
    started_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    processed_paths: dict[str, str] = field(default_factory=dict[str, str])
    palette_ids: dict[str, UUID] = field(default_factory=dict[str, "UUID"])
    reference_ids: dict[tuple[Category, str], UUID] = field(
        default_factory=dict[tuple["Category", str], "UUID"]
    )
    theme_cores: dict[str, str] = field(default_factory=dict[str, str])
    outcomes: list[Outcome] = field(default_factory=list["Outcome"])
    skipped_paths: list[str] = field(default_factory=list[str])

    def is_processed(self, path: str) -> bool:
        return path in self.processed_paths

    def processed_id(self, path: str) -> str | None:
        return self.processed_paths.get(path) or None

    def mark_processed(self, path: str, external_id: str) -> None:
        self.processed_paths[path] = external_id

    def mark_skipped(self, path: str) -> None:
        self.processed_paths[path] = ""
        self.skipped_paths.append(path)

    def remember_reference(self, category: Category, external_id: str, record_id: UUID) -> None:
        self.reference_ids[(category, external_id)] = record_id

    def record(self, outcome: Outcome) -> None:
        self.outcomes.append(outcome)

    def counts(self) -> Counter[OutcomeStatus]:
        return Counter(outcome.status for outcome in self.outcomes)
