"""Attachment Storage Port - Domain interface for S3-compatible storage.

Architecture: Hexagonal - Port interface in domain layer
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


class StorageError(Exception):
    """Object storage operation failed."""
    pass


@dataclass
class StoredAttachment:
    """Metadata for an attachment stored in object storage.

    Attributes:
        storage_key: Key in object storage (always prefixed with the owning user id)
        sha256: SHA256 hash of the content (hex format)
        size_bytes: Size in bytes
        mime_type: MIME type of the file
    """
    storage_key: str
    sha256: str
    size_bytes: int
    mime_type: str


class AttachmentStoragePort(ABC):
    """Port interface for storing and loading user attachments.

    Keys are scoped by user: `{user_id}/...`. Callers authorize paths before
    downloading (see domain.attachments.paths).
    """

    @abstractmethod
    def upload(self, storage_key: str, content: bytes, mime_type: str) -> StoredAttachment:
        """Store content under the given key, overwriting an existing object.

        Raises:
            StorageError: If the upload fails
        """
        pass

    @abstractmethod
    def download(self, storage_key: str) -> bytes:
        """Load the content stored under the key.

        Raises:
            FileNotFoundError: If nothing is stored under the key
            StorageError: If the download fails
        """
        pass

    @abstractmethod
    def delete(self, storage_key: str) -> None:
        """Remove the object stored under the key. Missing keys are ignored.

        Raises:
            StorageError: If the deletion fails
        """
        pass

    @abstractmethod
    def file_exists(self, storage_key: str) -> bool:
        pass

    @abstractmethod
    def check_health(self) -> None:
        """Raise StorageError if the bucket is not reachable."""
        pass
