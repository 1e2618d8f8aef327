"""
Recording Service Settings

Configuration management using Pydantic settings with environment variable support.
"""

from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MAX_DURATION_SECONDS = 7200  # 2 hours
DEFAULT_MAX_FILE_SIZE_BYTES = 500 * 1024 * 1024  # 500MB


class Settings(BaseSettings):
    """Recording Service configuration"""

    # Service Configuration
    service_name: str = Field(default="ride-recording-service", description="Service name")
    environment: str = Field(default="development", description="Environment (development, production)")
    port: int = Field(default=8010, description="Service port")
    host: str = Field(default="0.0.0.0", description="Service host")

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./ride_recordings.db",
        description="Database connection URL"
    )

    # Object Storage Configuration (Deployment-Neutral)
    # NOTE: STORAGE_PROVIDER ("local" or "s3") is read directly by factory.py
    s3_bucket_name: Optional[str] = Field(
        default=None,
        description="S3 bucket name (required when STORAGE_PROVIDER=s3)"
    )
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="S3/MinIO endpoint URL (optional, for MinIO/LocalStack)"
    )
    s3_region: Optional[str] = Field(
        default="us-east-1",
        description="AWS region (default: us-east-1)"
    )
    s3_public_base_url: Optional[str] = Field(
        default=None,
        description="CDN or custom domain prefix for object URLs"
    )
    storage_local_path: str = Field(default="./data/recordings", description="Local storage base path")

    # Recording Lifecycle
    # Zero or negative values fall back to the defaults
    recording_max_duration_seconds: int = Field(
        default=DEFAULT_MAX_DURATION_SECONDS,
        description="Maximum recording duration in seconds"
    )
    recording_max_file_size_bytes: int = Field(
        default=DEFAULT_MAX_FILE_SIZE_BYTES,
        description="Maximum uploaded file size in bytes"
    )
    presigned_url_ttl_seconds: int = Field(default=3600, description="Upload/download URL validity")

    # Post-processing
    processing_delay_seconds: float = Field(default=2.0, description="Delay before a recording is processed")
    processing_max_retries: int = Field(default=3, description="Attempts before a job is dead-lettered")
    processing_workers: int = Field(default=2, description="Concurrent post-processing workers")

    # Retention
    cleanup_batch_size: int = Field(default=100, ge=1, le=100, description="Expired recordings removed per cleanup run")

    # CORS Configuration
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8090"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Global settings instance
settings = Settings()
