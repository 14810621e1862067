"""Per-item and consistency errors raised while reconciling."""

from __future__ import annotations


class ResolutionError(ValueError):
    """A single snapshot could not be normalized or resolved; the item is skipped."""


class NotFoundError(ResolutionError):
    """A batch lookup matched nothing although identifiers were supplied."""

    def __init__(self, message: str, *, identifiers: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.identifiers = identifiers


class PaletteConsistencyError(RuntimeError):
    """More than one palette record shares a configuration id."""
