import logging
import os
import shutil
from pathlib import Path

from fileshare.storage.base import (
    BlobNotFound,
    BlobObject,
    BlobStore,
    BlobStoreError,
    DownloadResult,
    InvalidLocation,
    Location,
    validate_location,
    validate_object,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class LocalBlobStore(BlobStore):
    """Keeps blobs on disk under ``<base>/<container>/<name>``."""

    def __init__(self, base_path):
        self.base_path = Path(base_path).resolve()

    def _full_path(self, rel_path: str) -> Path:
        full = (self.base_path / rel_path).resolve()
        if self.base_path not in full.parents:
            raise InvalidLocation(f"path escapes storage root: {rel_path!r}")
        return full

    def upload(self, obj: BlobObject) -> Location:
        name = validate_object(obj)
        rel_path = f"{obj.container.value}/{name}"
        full = self._full_path(rel_path)
        full.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(full, "wb") as out:
                shutil.copyfileobj(obj.stream, out, CHUNK_SIZE)
        except OSError as e:
            # never leave a truncated blob behind
            full.unlink(missing_ok=True)
            raise BlobStoreError(f"local storage: write failed: {e}") from e
        return Location(container=obj.container, path=rel_path)

    def download(self, loc: Location) -> DownloadResult:
        validate_location(loc)
        full = self._full_path(loc.path)
        try:
            handle = open(full, "rb")
        except FileNotFoundError:
            raise BlobNotFound(loc.path)
        except OSError as e:
            raise BlobStoreError(f"local storage: open failed: {e}") from e
        size = os.fstat(handle.fileno()).st_size
        return DownloadResult(stream=handle, content_type=None, size=size)

    def delete(self, loc: Location) -> None:
        validate_location(loc)
        full = self._full_path(loc.path)
        try:
            full.unlink()
        except FileNotFoundError:
            logger.debug("local storage: %s already absent", loc.path)
        except OSError as e:
            raise BlobStoreError(f"local storage: delete failed: {e}") from e

    def healthcheck(self) -> None:
        self.base_path.mkdir(parents=True, exist_ok=True)
