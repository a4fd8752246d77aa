import mimetypes
import os
from datetime import datetime, timezone

import structlog

from app.errors import StorageFailure
from app.storage.base import BlobNotFound, BlobStore, StoredBlob


logger = structlog.get_logger(__name__)


class LocalBlobStore(BlobStore):
    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    def _path_for(self, name: str) -> str:
        path = os.path.abspath(os.path.join(self.root, name))
        # Names come from URLs on the read path; keep them inside the root.
        if os.path.commonpath([self.root, path]) != self.root or path == self.root:
            raise BlobNotFound(name)
        return path

    def save(self, name: str, data: bytes, content_type: str) -> None:
        path = self._path_for(name)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "wb") as buffer:
                buffer.write(data)
        except OSError as e:
            raise StorageFailure(f"Could not write blob {name}") from e
        logger.debug("blob.saved", name=name, size=len(data))

    def delete(self, name: str) -> None:
        try:
            path = self._path_for(name)
            os.remove(path)
        except (BlobNotFound, FileNotFoundError):
            logger.warning("blob.delete_missing", name=name)
            return
        except OSError as e:
            raise StorageFailure(f"Could not delete blob {name}") from e
        logger.debug("blob.deleted", name=name)

    def open(self, name: str) -> StoredBlob:
        path = self._path_for(name)
        try:
            with open(path, "rb") as buffer:
                data = buffer.read()
                stat = os.fstat(buffer.fileno())
        except (FileNotFoundError, IsADirectoryError) as e:
            raise BlobNotFound(name) from e
        except OSError as e:
            raise StorageFailure(f"Could not read blob {name}") from e

        content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        return StoredBlob(
            data=data,
            content_type=content_type,
            etag=f"{stat.st_mtime_ns:x}-{stat.st_size:x}",
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )
