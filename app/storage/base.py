from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


class BlobNotFound(Exception):
    pass


@dataclass
class StoredBlob:
    data: bytes
    content_type: str
    etag: str | None = None
    last_modified: datetime | None = None


class BlobStore(ABC):
    @abstractmethod
    def save(self, name: str, data: bytes, content_type: str) -> None:
        """Stores ``data`` under ``name``, replacing any previous blob."""
        pass

    @abstractmethod
    def delete(self, name: str) -> None:
        """Removes the blob. A missing blob is not an error."""
        pass

    @abstractmethod
    def open(self, name: str) -> StoredBlob:
        """Returns the blob, raising BlobNotFound when it does not exist."""
        pass

    def exists(self, name: str) -> bool:
        try:
            self.open(name)
        except BlobNotFound:
            return False
        return True
