"""S3/MinIO Storage Implementation

S3-compatible recording storage using aioboto3 for non-blocking async I/O.
Supports AWS S3 and self-hosted MinIO for enterprise deployments.
"""

import logging
import os
from datetime import datetime, timedelta
from typing import AsyncGenerator, BinaryIO

import aioboto3
from botocore.exceptions import ClientError

from recording_service.infrastructure.storage.provider import (
    PresignedURL,
    StorageError,
    StorageProvider,
    UploadResult,
)

logger = logging.getLogger(__name__)


class S3Storage(StorageProvider):
    """S3/MinIO storage provider for production Kubernetes deployments.

    Uses aioboto3 for async operations to avoid blocking the FastAPI event loop.
    Supports both AWS S3 and self-hosted MinIO via endpoint_url configuration.
    """

    def __init__(
        self,
        bucket_name: str = None,
        region: str = None,
        endpoint_url: str = None,
        access_key: str = None,
        secret_key: str = None,
        public_base_url: str = None
    ):
        """Initialize S3 storage provider.

        Args:
            bucket_name: S3 bucket name (required)
            region: AWS region (default: us-east-1)
            endpoint_url: Custom S3 endpoint for MinIO/LocalStack (optional)
            access_key: AWS access key ID (optional, falls back to env)
            secret_key: AWS secret access key (optional, falls back to env)
            public_base_url: CDN/custom domain prefix used by get_url (optional)

        Raises:
            ValueError: If bucket_name is not provided
        """
        self.bucket_name = bucket_name or os.getenv("S3_BUCKET_NAME")
        self.region = region or os.getenv("S3_REGION", "us-east-1")
        self.endpoint_url = endpoint_url or os.getenv("S3_ENDPOINT_URL")
        self.access_key = access_key or os.getenv("AWS_ACCESS_KEY_ID")
        self.secret_key = secret_key or os.getenv("AWS_SECRET_ACCESS_KEY")

        if not self.bucket_name:
            raise ValueError(
                "S3_BUCKET_NAME environment variable or bucket_name parameter is required"
            )

        if public_base_url:
            self.base_url = public_base_url.rstrip("/")
        elif self.endpoint_url:
            self.base_url = f"{self.endpoint_url.rstrip('/')}/{self.bucket_name}"
        else:
            self.base_url = f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com"

        # Create aioboto3 session
        self.session = aioboto3.Session(
            aws_access_key_id=self.access_key,
            aws_secret_access_key=self.secret_key,
            region_name=self.region
        )

        logger.info(
            f"S3 storage initialized - bucket: {self.bucket_name}, "
            f"region: {self.region}, "
            f"endpoint: {self.endpoint_url or 'AWS'}"
        )

    def _client(self):
        return self.session.client(
            "s3",
            region_name=self.region,
            endpoint_url=self.endpoint_url
        )

    async def upload(
        self,
        key: str,
        file_stream: BinaryIO,
        size: int,
        content_type: str
    ) -> UploadResult:
        """Upload file to S3 bucket."""
        try:
            async with self._client() as s3:
                # Reset stream pointer
                file_stream.seek(0)

                await s3.upload_fileobj(
                    file_stream,
                    self.bucket_name,
                    key,
                    ExtraArgs={"ContentType": content_type, "ACL": "private"}
                )

                logger.info(f"Uploaded file to S3: s3://{self.bucket_name}/{key} ({size} bytes)")

        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.error(f"S3 upload failed (error: {error_code}): {e}")
            raise StorageError(f"S3 upload failed: {error_code}") from e
        except Exception as e:
            logger.error(f"S3 upload failed: {e}")
            raise StorageError("S3 upload failed") from e

        return UploadResult(
            key=key,
            url=self.get_url(key),
            size=size,
            mime_type=content_type
        )

    async def download_stream(self, key: str) -> AsyncGenerator[bytes, None]:
        """Stream file from S3.

        Raises:
            FileNotFoundError: If the object does not exist
            StorageError: If download fails
        """
        async with self._client() as s3:
            try:
                response = await s3.get_object(Bucket=self.bucket_name, Key=key)

                async for chunk in response['Body'].iter_chunks(chunk_size=65536):  # 64KB chunks
                    yield chunk

                logger.info(f"Streamed file from S3: s3://{self.bucket_name}/{key}")

            except ClientError as e:
                error_code = e.response.get("Error", {}).get("Code", "Unknown")
                if error_code == "NoSuchKey":
                    logger.warning(f"File not found in S3: {key}")
                    raise FileNotFoundError(key) from e
                logger.error(f"S3 download failed (error: {error_code}): {e}")
                raise StorageError(f"S3 download failed: {error_code}") from e

    async def delete(self, key: str) -> None:
        """Delete file from S3.

        Note:
            S3 delete_object succeeds even if object doesn't exist
        """
        try:
            async with self._client() as s3:
                await s3.delete_object(Bucket=self.bucket_name, Key=key)
                logger.info(f"Deleted file from S3: s3://{self.bucket_name}/{key}")

        except Exception as e:
            logger.error(f"S3 delete failed for {key}: {e}")
            raise StorageError(f"S3 delete failed for {key}") from e

    def get_url(self, key: str) -> str:
        return f"{self.base_url}/{key}"

    async def generate_presigned_upload_url(
        self,
        key: str,
        content_type: str,
        expiration: int = 3600
    ) -> PresignedURL:
        """Generate presigned PUT URL for direct client upload."""
        try:
            async with self._client() as s3:
                url = await s3.generate_presigned_url(
                    'put_object',
                    Params={'Bucket': self.bucket_name, 'Key': key, 'ContentType': content_type},
                    ExpiresIn=expiration
                )

                logger.debug(f"Generated presigned upload URL for {key} (expires in {expiration}s)")

        except Exception as e:
            logger.error(f"Failed to generate presigned upload URL for {key}: {e}")
            raise StorageError("Could not generate upload URL") from e

        return PresignedURL(
            url=url,
            method="PUT",
            headers={"Content-Type": content_type},
            expires_at=datetime.utcnow() + timedelta(seconds=expiration)
        )

    async def generate_presigned_download_url(self, key: str, expiration: int = 3600) -> PresignedURL:
        """Generate presigned GET URL for direct download."""
        try:
            async with self._client() as s3:
                url = await s3.generate_presigned_url(
                    'get_object',
                    Params={'Bucket': self.bucket_name, 'Key': key},
                    ExpiresIn=expiration
                )

                logger.debug(f"Generated presigned download URL for {key} (expires in {expiration}s)")

        except Exception as e:
            logger.error(f"Failed to generate presigned download URL for {key}: {e}")
            raise StorageError("Could not generate download URL") from e

        return PresignedURL(
            url=url,
            method="GET",
            expires_at=datetime.utcnow() + timedelta(seconds=expiration)
        )

    async def file_exists(self, key: str) -> bool:
        """Check if file exists in S3."""
        try:
            async with self._client() as s3:
                await s3.head_object(Bucket=self.bucket_name, Key=key)
                return True

        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code not in ("404", "NoSuchKey"):
                logger.error(f"Error checking file existence for {key}: {e}")
            return False
        except Exception as e:
            logger.error(f"Error checking file existence for {key}: {e}")
            return False

    async def copy(self, source_key: str, dest_key: str) -> None:
        """Copy an object within the bucket."""
        try:
            async with self._client() as s3:
                await s3.copy_object(
                    Bucket=self.bucket_name,
                    CopySource={'Bucket': self.bucket_name, 'Key': source_key},
                    Key=dest_key
                )
                logger.info(f"Copied s3://{self.bucket_name}/{source_key} to {dest_key}")

        except Exception as e:
            logger.error(f"S3 copy failed for {source_key} -> {dest_key}: {e}")
            raise StorageError("S3 copy failed") from e

    async def health_check(self) -> bool:
        """Check S3 storage health by verifying bucket access."""
        try:
            async with self._client() as s3:
                # Try to list objects (limit 1) to verify access
                await s3.list_objects_v2(Bucket=self.bucket_name, MaxKeys=1)
                logger.debug(f"S3 health check passed for bucket: {self.bucket_name}")
                return True

        except Exception as e:
            logger.error(f"S3 health check failed: {e}")
            return False
