"""Port for the blob store holding cached media."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class BlobMetadata:
    ref: str
    folder: str
    key: str
    token: str = ""
    size: int = 0


@runtime_checkable
class BlobStore(Protocol):
    def find(self, folder: str, key: str) -> BlobMetadata | None: ...

    def upload(
        self, folder: str, key: str, content: bytes, *, token: str = "", mime_type: str = ""
    ) -> BlobMetadata: ...

    def metadata(self, ref: str) -> BlobMetadata | None: ...

    def trash(self, ref: str) -> None: ...
