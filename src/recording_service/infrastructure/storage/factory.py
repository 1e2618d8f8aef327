"""Process-wide storage provider, chosen by STORAGE_PROVIDER ("local" or "s3")"""

import logging
import os
from typing import Optional

from recording_service.config.settings import settings
from recording_service.infrastructure.storage.provider import StorageProvider
from recording_service.infrastructure.storage.local_storage import LocalStorage
from recording_service.infrastructure.storage.s3_storage import S3Storage

logger = logging.getLogger(__name__)

_storage_instance: Optional[StorageProvider] = None


def get_storage_provider() -> StorageProvider:
    """Return the shared provider, creating it on first use.

    "s3" builds an S3Storage from the S3_* settings (bucket required; an
    endpoint URL selects MinIO, a public base URL selects a CDN for the
    stable object URLs stored on completed recordings). Anything else
    stores recordings under STORAGE_LOCAL_PATH.
    """
    global _storage_instance

    if _storage_instance is not None:
        return _storage_instance

    provider_type = os.getenv("STORAGE_PROVIDER", "local").lower()

    logger.info(f"Initializing storage provider: {provider_type}")

    if provider_type == "s3":
        _storage_instance = S3Storage(
            bucket_name=settings.s3_bucket_name,
            region=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
            public_base_url=settings.s3_public_base_url
        )

        logger.info(
            f"S3 storage provider initialized: "
            f"bucket={_storage_instance.bucket_name}, "
            f"endpoint={_storage_instance.endpoint_url or 'AWS'}"
        )

    else:
        _storage_instance = LocalStorage(base_path=settings.storage_local_path)

        logger.info(f"Local storage provider initialized: path={settings.storage_local_path}")

    return _storage_instance


def reset_storage_provider():
    """Drop the shared provider so the next call rebuilds it from settings"""
    global _storage_instance
    _storage_instance = None
    logger.warning("Storage provider instance reset")
