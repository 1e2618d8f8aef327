"""
API Request and Response Models

Pydantic models for API input/output validation.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .recording import (
    AccessLog,
    Location,
    Recording,
    RecordingStatus,
    RecordingType,
    RetentionPolicy,
)


class StartRecordingRequest(BaseModel):
    """Request to start recording a ride"""

    ride_id: str = Field(..., min_length=1, description="Ride to record")
    recording_type: RecordingType = Field(..., description="audio or video")
    quality: Optional[str] = Field(None, description="low, medium, high (default: medium)")
    device_info: Optional[str] = Field(None, description="Client device description")
    location: Optional[Location] = Field(None, description="Where recording started")


class StartRecordingResponse(BaseModel):
    """Response after starting a recording"""

    recording_id: str
    upload_url: str = Field(..., description="Presigned URL for direct upload")
    upload_key: str = Field(..., description="Object key the media must be uploaded to")
    max_duration_seconds: int
    max_file_size_bytes: int
    status: RecordingStatus
    message: str = Field(default="Recording started. Upload data to the provided URL.")


class StopRecordingRequest(BaseModel):
    """Request to stop an active recording"""

    recording_id: str = Field(..., min_length=1)
    location: Optional[Location] = None


class StopRecordingResponse(BaseModel):
    """Response after stopping a recording"""

    recording_id: str
    status: RecordingStatus
    duration_seconds: int
    message: str = Field(default="Recording stopped. Complete the upload to finalize.")


class UploadProgressRequest(BaseModel):
    """Chunked upload progress report"""

    recording_id: str = Field(..., min_length=1)
    upload_id: str = Field(..., min_length=1)
    chunks_received: int = Field(..., ge=0)
    total_chunks: int = Field(..., ge=1)


class CompleteUploadRequest(BaseModel):
    """Request to finalize an upload"""

    recording_id: str = Field(..., min_length=1)
    total_size: int = Field(..., ge=0, description="Uploaded size in bytes")
    duration_seconds: int = Field(..., ge=0)
    checksum: Optional[str] = None


class GetRecordingResponse(BaseModel):
    """Recording plus an optional temporary access URL"""

    recording: Recording
    access_url: Optional[str] = Field(None, description="Temporary signed URL")
    access_url_expires_in_seconds: Optional[int] = None


class RecordingListResponse(BaseModel):
    """Recordings of a ride"""

    recordings: List[Recording] = Field(default_factory=list)


class RecordingConsentRequest(BaseModel):
    """Consent to be recorded during a ride"""

    ride_id: str = Field(..., min_length=1)
    consented: bool


class ConsentCheckResponse(BaseModel):
    """Whether both ride participants consented"""

    ride_id: str
    all_consented: bool


class ExtendRetentionRequest(BaseModel):
    """Change a recording's retention policy"""

    policy: RetentionPolicy


class ExtendRetentionResponse(BaseModel):
    recording_id: str
    policy: RetentionPolicy
    expires_at: datetime
    message: str = Field(default="Retention extended successfully")


class CleanupResponse(BaseModel):
    """Result of one cleanup batch"""

    deleted: int = Field(..., ge=0)


class AccessLogListResponse(BaseModel):
    access_logs: List[AccessLog] = Field(default_factory=list)


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    """Health check response"""

    status: str = Field(default="healthy")
    service: str = Field(default="ride-recording-service")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    storage_available: bool = Field(default=True)
    database_available: bool = Field(default=True)


class UpdateSettingsRequest(BaseModel):
    """User's recording preferences (the user comes from the caller identity)"""

    recording_enabled: bool = False
    default_type: RecordingType = RecordingType.AUDIO
    default_quality: str = Field(default="medium", description="low, medium, high")
    auto_record_night_rides: bool = False
    auto_record_sos_rides: bool = True
    notify_on_recording: bool = True
    allow_driver_recording: bool = True
    allow_rider_recording: bool = True
