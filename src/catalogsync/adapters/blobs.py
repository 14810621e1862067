"""Filesystem blob store for cached media.

Blobs live under the storage root at ``<folder>/<key>`` with a JSON sidecar
holding their freshness token. Overwritten and trashed blobs are moved into
``.trash`` instead of being deleted.
"""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Final

from catalogsync.config import get_storage_config
from catalogsync.domain.ports.blobs import BlobMetadata

if TYPE_CHECKING:
    from catalogsync.domain.ports.blobs import BlobStore

log = logging.getLogger(__name__)

TRASH_DIRNAME: Final[str] = ".trash"
SIDECAR_SUFFIX: Final[str] = ".meta.json"


def _default_root() -> Path:
    return get_storage_config().blob_root()


@dataclass(slots=True)
class FilesystemBlobStore:
    root: Path = field(default_factory=_default_root)

    def __post_init__(self) -> None:
        self.root = self.root.expanduser().resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def find(self, folder: str, key: str) -> BlobMetadata | None:
        return self.metadata(self._ref(folder, key))

    def upload(
        self, folder: str, key: str, content: bytes, *, token: str = "", mime_type: str = ""
    ) -> BlobMetadata:
        ref = self._ref(folder, key)
        target = self._path(ref)
        if target.exists():
            self._move_to_trash(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        self._sidecar(target).write_text(
            json.dumps({"token": token, "mime_type": mime_type, "size": len(content)}),
            encoding="utf-8",
        )
        log.debug("Stored %s (%s bytes)", ref, len(content))
        return BlobMetadata(ref=ref, folder=folder, key=key, token=token, size=len(content))

    def metadata(self, ref: str) -> BlobMetadata | None:
        target = self._path(ref)
        if not target.is_file():
            return None
        token = ""
        sidecar = self._sidecar(target)
        if sidecar.is_file():
            try:
                token = str(json.loads(sidecar.read_text(encoding="utf-8")).get("token", ""))
            except json.JSONDecodeError:
                log.warning("Ignoring unreadable metadata for %s", ref)
        relative = PurePosixPath(ref)
        return BlobMetadata(
            ref=ref,
            folder=f"/{relative.parent.as_posix()}/",
            key=relative.name,
            token=token,
            size=target.stat().st_size,
        )

    def trash(self, ref: str) -> None:
        target = self._path(ref)
        if not target.exists():
            log.debug("Nothing to trash at %s", ref)
            return
        self._move_to_trash(target)

    def _ref(self, folder: str, key: str) -> str:
        if not key or "/" in key or "\\" in key:
            raise ValueError(f"Invalid blob key: {key!r}")
        return (PurePosixPath(folder.strip("/")) / key).as_posix()

    def _path(self, ref: str) -> Path:
        candidate = (self.root / ref).resolve()
        if (
            not candidate.is_relative_to(self.root)
            or TRASH_DIRNAME in candidate.relative_to(self.root).parts
        ):
            raise ValueError(f"Blob reference escapes the store: {ref!r}")
        return candidate

    @staticmethod
    def _sidecar(target: Path) -> Path:
        return target.with_name(target.name + SIDECAR_SUFFIX)

    def _move_to_trash(self, target: Path) -> None:
        stamp = datetime.now(tz=UTC).strftime("%Y%m%dT%H%M%S%f")
        destination = self.root / TRASH_DIRNAME / target.relative_to(self.root).parent
        destination.mkdir(parents=True, exist_ok=True)
        shutil.move(target, destination / f"{stamp}-{target.name}")
        sidecar = self._sidecar(target)
        if sidecar.exists():
            shutil.move(sidecar, destination / f"{stamp}-{sidecar.name}")
        log.info("Moved %s to trash", target.relative_to(self.root).as_posix())


if TYPE_CHECKING:
    _blob_check: BlobStore = FilesystemBlobStore()
