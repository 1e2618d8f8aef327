"""Local Filesystem Storage Implementation

Async local file storage for development and self-hosted deployments.
Uses aiofiles for non-blocking I/O to match S3Storage performance characteristics.
"""

import logging
import os
import shutil
from datetime import datetime, timedelta
from pathlib import Path
from typing import AsyncGenerator, BinaryIO

import aiofiles

from recording_service.infrastructure.storage.provider import (
    PresignedURL,
    StorageError,
    StorageProvider,
    UploadResult,
)

logger = logging.getLogger(__name__)


class LocalStorage(StorageProvider):
    """Local filesystem storage provider for development and self-hosted deployments.

    Uses aiofiles for async operations to avoid blocking the FastAPI event loop.
    Maintains performance parity with S3Storage for deployment neutrality.
    """

    def __init__(self, base_path: str = None, public_base_url: str = "/media"):
        """Initialize local storage provider.

        Args:
            base_path: Base directory for file storage (default: ./data/recordings)
            public_base_url: URL prefix a media server (e.g. nginx) exposes base_path under
        """
        if not base_path:
            base_path = os.getenv("STORAGE_LOCAL_PATH", "./data/recordings")

        self.base_path = Path(base_path).resolve()
        self.public_base_url = public_base_url.rstrip("/")

        # Ensure directory exists on startup
        self.base_path.mkdir(parents=True, exist_ok=True)

        logger.info(f"Local storage initialized at: {self.base_path}")

    def _get_path(self, key: str) -> Path:
        """Get full filesystem path from storage key.

        Raises:
            StorageError: If path attempts directory traversal
        """
        # Security: Prevent directory traversal attacks (e.g., "../../etc/passwd")
        safe_path = (self.base_path / key).resolve()

        if not safe_path.is_relative_to(self.base_path):
            logger.error(f"Path traversal attempt detected: {key}")
            raise StorageError("Invalid file path")

        return safe_path

    async def upload(
        self,
        key: str,
        file_stream: BinaryIO,
        size: int,
        content_type: str
    ) -> UploadResult:
        """Upload file to local filesystem."""
        file_path = self._get_path(key)

        # Ensure subdirectories exist
        file_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            # Reset stream pointer
            file_stream.seek(0)

            # Write file asynchronously in 64KB chunks
            async with aiofiles.open(file_path, 'wb') as out_file:
                while content := file_stream.read(65536):  # 64KB chunks
                    await out_file.write(content)

            logger.info(f"Uploaded file to local storage: {file_path}")

        except Exception as e:
            logger.error(f"Local upload failed for {key}: {e}")
            raise StorageError("Local upload failed") from e

        return UploadResult(
            key=key,
            url=self.get_url(key),
            size=size,
            mime_type=content_type
        )

    async def download_stream(self, key: str) -> AsyncGenerator[bytes, None]:
        """Stream file from local filesystem.

        Raises:
            FileNotFoundError: If file not found
            StorageError: If read fails
        """
        file_path = self._get_path(key)

        if not file_path.exists():
            logger.warning(f"File not found in local storage: {key}")
            raise FileNotFoundError(key)

        try:
            async with aiofiles.open(file_path, 'rb') as in_file:
                while chunk := await in_file.read(65536):  # 64KB chunks
                    yield chunk

            logger.info(f"Streamed file from local storage: {file_path}")

        except OSError as e:
            logger.error(f"Local download failed for {key}: {e}")
            raise StorageError("Local download failed") from e

    async def delete(self, key: str) -> None:
        """Delete file from local filesystem.

        Note:
            Attempts to clean up empty parent directories
        """
        file_path = self._get_path(key)

        if not file_path.exists():
            logger.warning(f"File not found for deletion: {key}")
            return

        try:
            os.remove(file_path)
            logger.info(f"Deleted file from local storage: {file_path}")
        except OSError as e:
            logger.error(f"Failed to delete file {key}: {e}")
            raise StorageError(f"Failed to delete {key}") from e

        # Clean up empty directories (best effort)
        try:
            file_path.parent.rmdir()
            file_path.parent.parent.rmdir()
        except OSError:
            # Directory not empty, that's fine
            pass

    def get_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    async def generate_presigned_upload_url(
        self,
        key: str,
        content_type: str,
        expiration: int = 3600
    ) -> PresignedURL:
        """Generate URL for direct upload.

        Local storage has no signing authority; the returned URL points at the
        media server fronting base_path and the expiry is advisory.
        """
        self._get_path(key)
        url = f"{self.get_url(key)}?expires_in={expiration}"

        logger.debug(f"Generated local upload URL for {key}: {url}")
        return PresignedURL(
            url=url,
            method="PUT",
            headers={"Content-Type": content_type},
            expires_at=datetime.utcnow() + timedelta(seconds=expiration)
        )

    async def generate_presigned_download_url(self, key: str, expiration: int = 3600) -> PresignedURL:
        """Generate URL for direct download (expiry not enforced locally)."""
        self._get_path(key)
        url = f"{self.get_url(key)}?expires_in={expiration}"

        logger.debug(f"Generated local download URL for {key}: {url}")
        return PresignedURL(
            url=url,
            method="GET",
            expires_at=datetime.utcnow() + timedelta(seconds=expiration)
        )

    async def file_exists(self, key: str) -> bool:
        """Check if file exists in local storage."""
        try:
            file_path = self._get_path(key)
            return file_path.exists()
        except StorageError:
            # Path traversal attempt
            return False

    async def copy(self, source_key: str, dest_key: str) -> None:
        source = self._get_path(source_key)
        dest = self._get_path(dest_key)

        if not source.exists():
            raise StorageError(f"Source object not found: {source_key}")

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, dest)
            logger.info(f"Copied {source_key} to {dest_key}")
        except OSError as e:
            logger.error(f"Local copy failed for {source_key} -> {dest_key}: {e}")
            raise StorageError("Local copy failed") from e

    async def health_check(self) -> bool:
        """Check local storage health by verifying write access."""
        try:
            # Verify base directory is writable
            test_file = self.base_path / ".health_check"
            test_file.touch()
            test_file.unlink()

            logger.debug(f"Local storage health check passed: {self.base_path}")
            return True

        except Exception as e:
            logger.error(f"Local storage health check failed: {e}")
            return False
