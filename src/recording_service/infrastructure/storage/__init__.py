"""Storage infrastructure module.

Provides deployment-neutral media storage via the StorageProvider interface.
"""

from recording_service.infrastructure.storage.factory import get_storage_provider, reset_storage_provider
from recording_service.infrastructure.storage.provider import (
    PresignedURL,
    StorageError,
    StorageProvider,
    UploadResult,
)
from recording_service.infrastructure.storage.local_storage import LocalStorage
from recording_service.infrastructure.storage.s3_storage import S3Storage

__all__ = [
    "get_storage_provider",
    "reset_storage_provider",
    "PresignedURL",
    "StorageError",
    "StorageProvider",
    "UploadResult",
    "LocalStorage",
    "S3Storage",
]
