"""
Media-hosting boundary.

The exporter only needs two operations from the hosting service:
``put(bytes, asset_id) -> url`` and ``delete(asset_id)``.  ``MediaStore`` is
that contract; ``LocalMediaStore`` implements it on the filesystem, which is
what the desktop tool and the tests use.  Remote services plug in by
subclassing and raising ``MediaStoreError`` for failures worth retrying.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path

logger = logging.getLogger(__name__)


class MediaStoreError(RuntimeError):
    """A put/delete against the media store failed."""


class MediaStore(ABC):
    @abstractmethod
    def put(self, data: bytes, asset_id: str) -> str:
        """Store (or overwrite) an asset and return its retrievable URL."""

    @abstractmethod
    def delete(self, asset_id: str) -> bool:
        """Delete an asset; return False if it did not exist."""


class LocalMediaStore(MediaStore):
    """Stores assets as JPEG files under *root*; ``/`` in ids makes subfolders."""

    def __init__(self, root: Path, suffix: str = ".jpg"):
        self.root = Path(root).resolve()
        self.suffix = suffix

    def path_for(self, asset_id: str) -> Path:
        parts = str(asset_id).replace("\\", "/").split("/")
        if not asset_id or any(p in ("", ".", "..") for p in parts):
            raise ValueError(f"invalid asset id: {asset_id!r}")
        return self.root.joinpath(*parts).with_name(parts[-1] + self.suffix)

    def put(self, data: bytes, asset_id: str) -> str:
        path = self.path_for(asset_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise MediaStoreError(f"could not store {asset_id}: {exc}") from exc
        logger.debug("Stored asset %s (%d bytes) at %s", asset_id, len(data), path)
        return path.as_uri()

    def delete(self, asset_id: str) -> bool:
        path = self.path_for(asset_id)
        if not path.exists():
            return False
        try:
            path.unlink()
        except OSError as exc:
            raise MediaStoreError(f"could not delete {asset_id}: {exc}") from exc
        logger.debug("Deleted asset %s", asset_id)
        return True
