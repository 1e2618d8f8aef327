"""
Recording Data Models

Core domain models for ride recordings, consent, access auditing and
per-user recording preferences.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Set
from uuid import uuid4

from pydantic import BaseModel, Field


class RecordingType(str, Enum):
    """Captured media type"""
    AUDIO = "audio"
    VIDEO = "video"


class RecordingStatus(str, Enum):
    """Recording lifecycle status"""
    INITIALIZED = "initialized"
    RECORDING = "recording"
    PAUSED = "paused"
    STOPPED = "stopped"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    DELETED = "deleted"


class RetentionPolicy(str, Enum):
    """How long a recording is kept before cleanup"""
    STANDARD = "standard"    # 7 days
    EXTENDED = "extended"    # 30 days, disputes
    PERMANENT = "permanent"  # 10 years, incidents


class UserRole(str, Enum):
    """Ride participant role of the recorder"""
    RIDER = "rider"
    DRIVER = "driver"


class AccessType(str, Enum):
    """Audit entry classification"""
    VIEW = "view"
    ADMIN_VIEW = "admin_view"


TERMINAL_STATUSES: Set[RecordingStatus] = {
    RecordingStatus.COMPLETED,
    RecordingStatus.FAILED,
    RecordingStatus.DELETED,
}

# Any non-terminal session blocks a new one for the same (ride, recorder)
ACTIVE_STATUSES: Set[RecordingStatus] = set(RecordingStatus) - TERMINAL_STATUSES

ALLOWED_TRANSITIONS: Dict[RecordingStatus, Set[RecordingStatus]] = {
    RecordingStatus.INITIALIZED: {RecordingStatus.RECORDING},
    RecordingStatus.RECORDING: {RecordingStatus.PAUSED, RecordingStatus.STOPPED},
    RecordingStatus.PAUSED: {RecordingStatus.RECORDING, RecordingStatus.STOPPED},
    RecordingStatus.STOPPED: {RecordingStatus.UPLOADING, RecordingStatus.UPLOADED},
    RecordingStatus.UPLOADING: {RecordingStatus.UPLOADING, RecordingStatus.UPLOADED},
    RecordingStatus.UPLOADED: {RecordingStatus.PROCESSING, RecordingStatus.FAILED},
    RecordingStatus.PROCESSING: {RecordingStatus.COMPLETED, RecordingStatus.FAILED},
    RecordingStatus.COMPLETED: set(),
    RecordingStatus.FAILED: set(),
    RecordingStatus.DELETED: set(),
}


def can_transition(current: RecordingStatus, target: RecordingStatus) -> bool:
    """Return True if ``current -> target`` is an edge of the lifecycle graph.

    Deletion is reachable from every state except ``deleted`` itself.
    """
    if target == RecordingStatus.DELETED:
        return current != RecordingStatus.DELETED
    return target in ALLOWED_TRANSITIONS.get(current, set())


def file_extension_for(recording_type) -> str:
    """Object extension for a media type (m4a for anything not video)"""
    if recording_type == RecordingType.VIDEO:
        return "mp4"
    return "m4a"


def content_type_for(recording_type) -> str:
    """Upload content type for a media type"""
    if recording_type == RecordingType.VIDEO:
        return "video/mp4"
    return "audio/m4a"


def build_object_key(ride_id: str, user_id: str, recording_id: str, recording_type) -> str:
    """Build the blob-store key of a recording.

    Structure: recordings/{ride_id}/{recorder_user_id}/{recording_id}.{ext}

    The key is derived, never stored, so it must stay stable for delete and
    URL resolution to address the same object that was uploaded.
    """
    return f"recordings/{ride_id}/{user_id}/{recording_id}.{file_extension_for(recording_type)}"


class Location(BaseModel):
    """Geographic point"""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class Recording(BaseModel):
    """Audio/video capture session tied to one ride and one recorder"""

    id: str = Field(default_factory=lambda: str(uuid4()), description="Recording identifier")
    ride_id: str = Field(..., description="Ride the recording belongs to")
    user_id: str = Field(..., description="Recorder's user ID")
    user_type: UserRole = Field(default=UserRole.RIDER, description="Recorder's role")
    recording_type: RecordingType = Field(..., description="Media type")
    status: RecordingStatus = Field(default=RecordingStatus.INITIALIZED)
    retention_policy: RetentionPolicy = Field(default=RetentionPolicy.STANDARD)

    # File information
    file_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    file_size: Optional[int] = Field(None, ge=0, description="File size in bytes")
    duration_seconds: Optional[int] = Field(None, ge=0)
    format: str = Field(default="m4a")
    quality: str = Field(default="medium", description="low, medium, high")
    encrypted: bool = True
    encryption_key_id: Optional[str] = None

    # Upload tracking (chunked transfer)
    upload_id: Optional[str] = None
    chunks_received: int = 0
    total_chunks: int = 0

    # Timestamps
    started_at: datetime = Field(default_factory=datetime.utcnow)
    ended_at: Optional[datetime] = None
    uploaded_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    expires_at: datetime
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Metadata
    device_info: Optional[str] = None
    start_location: Optional[Location] = None
    end_location: Optional[Location] = None

    version: int = Field(default=1, description="Optimistic concurrency token")

    @property
    def object_key(self) -> str:
        """Blob-store key of this recording's media"""
        return build_object_key(self.ride_id, self.user_id, self.id, self.recording_type)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class Consent(BaseModel):
    """Per-ride, per-user agreement to be recorded (latest write wins)"""

    id: str = Field(default_factory=lambda: str(uuid4()))
    ride_id: str
    user_id: str
    user_type: UserRole = UserRole.RIDER
    consented: bool
    consented_at: datetime = Field(default_factory=datetime.utcnow)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AccessLog(BaseModel):
    """Append-only audit entry for a media access URL issuance"""

    id: str = Field(default_factory=lambda: str(uuid4()))
    recording_id: str
    accessed_by: str
    access_type: AccessType
    reason: Optional[str] = None
    ip_address: Optional[str] = None
    accessed_at: datetime = Field(default_factory=datetime.utcnow)


class RecordingSettings(BaseModel):
    """User's recording preferences"""

    user_id: str
    recording_enabled: bool = False
    default_type: RecordingType = RecordingType.AUDIO
    default_quality: str = "medium"
    auto_record_night_rides: bool = False
    auto_record_sos_rides: bool = True
    notify_on_recording: bool = True
    allow_driver_recording: bool = True  # for riders
    allow_rider_recording: bool = True   # for drivers
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def defaults_for(cls, user_id: str) -> "RecordingSettings":
        """Synthesized preferences for a user with no stored row"""
        return cls(user_id=user_id)


class RecordingStats(BaseModel):
    """Aggregate recording statistics"""

    total_recordings: int = 0
    total_duration_hours: float = 0.0
    total_storage_gb: float = 0.0
    active_recordings: int = 0
    pending_uploads: int = 0
    recordings_by_type: Dict[str, int] = Field(default_factory=dict)
    recordings_by_status: Dict[str, int] = Field(default_factory=dict)
