"""Storage Provider Interface

Abstract base class defining the contract for recording media storage.
Supports both local filesystem (development/self-hosted) and S3 (enterprise/K8s).
Clients transfer media bytes directly to the blob store through presigned URLs;
the service only coordinates keys, URLs and deletion.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncGenerator, BinaryIO, Dict


class StorageError(Exception):
    """Storage backend operation failed"""


@dataclass
class UploadResult:
    """Outcome of a server-side upload"""

    key: str
    url: str
    size: int
    mime_type: str
    uploaded_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class PresignedURL:
    """Time-limited signed URL for direct transfer"""

    url: str
    method: str
    expires_at: datetime
    headers: Dict[str, str] = field(default_factory=dict)


class StorageProvider(ABC):
    """Abstract storage provider interface for deployment-neutral media storage."""

    @abstractmethod
    async def upload(
        self,
        key: str,
        file_stream: BinaryIO,
        size: int,
        content_type: str
    ) -> UploadResult:
        """Upload a file under ``key``.

        Args:
            key: Object key (e.g., "recordings/{ride}/{user}/{id}.m4a")
            file_stream: Binary file stream
            size: Size in bytes
            content_type: MIME type (e.g., "audio/m4a")

        Returns:
            UploadResult describing the stored object

        Raises:
            StorageError: If upload fails
        """
        pass

    @abstractmethod
    async def download_stream(self, key: str) -> AsyncGenerator[bytes, None]:
        """Stream file content as bytes.

        Raises:
            FileNotFoundError: If file doesn't exist
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete an object. Deleting a missing object is not an error.

        Raises:
            StorageError: If the backend rejects the delete
        """
        pass

    @abstractmethod
    def get_url(self, key: str) -> str:
        """Resolve the stable (unsigned) URL of an object. Never fails."""
        pass

    @abstractmethod
    async def generate_presigned_upload_url(
        self,
        key: str,
        content_type: str,
        expiration: int = 3600
    ) -> PresignedURL:
        """Generate a temporary URL the client can PUT the object to.

        Args:
            key: Object key
            content_type: MIME type the upload must carry
            expiration: URL expiration time in seconds (default: 1 hour)

        Raises:
            StorageError: If URL generation fails
        """
        pass

    @abstractmethod
    async def generate_presigned_download_url(self, key: str, expiration: int = 3600) -> PresignedURL:
        """Generate a temporary URL for direct download.

        Raises:
            StorageError: If URL generation fails
        """
        pass

    @abstractmethod
    async def file_exists(self, key: str) -> bool:
        """Check if an object exists in storage."""
        pass

    @abstractmethod
    async def copy(self, source_key: str, dest_key: str) -> None:
        """Copy an object within storage.

        Raises:
            StorageError: If the copy fails
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if storage backend is healthy and accessible."""
        pass
