"""Data models for Recording Service"""

from .recording import (
    ACTIVE_STATUSES,
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    AccessLog,
    AccessType,
    Consent,
    Location,
    Recording,
    RecordingSettings,
    RecordingStats,
    RecordingStatus,
    RecordingType,
    RetentionPolicy,
    UserRole,
    build_object_key,
    can_transition,
    content_type_for,
    file_extension_for,
)
from .requests import (
    AccessLogListResponse,
    CleanupResponse,
    CompleteUploadRequest,
    ConsentCheckResponse,
    ExtendRetentionRequest,
    ExtendRetentionResponse,
    GetRecordingResponse,
    HealthResponse,
    MessageResponse,
    RecordingConsentRequest,
    RecordingListResponse,
    StartRecordingRequest,
    StartRecordingResponse,
    StopRecordingRequest,
    StopRecordingResponse,
    UpdateSettingsRequest,
    UploadProgressRequest,
)

__all__ = [
    "ACTIVE_STATUSES",
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATUSES",
    "AccessLog",
    "AccessType",
    "Consent",
    "Location",
    "Recording",
    "RecordingSettings",
    "RecordingStats",
    "RecordingStatus",
    "RecordingType",
    "RetentionPolicy",
    "UserRole",
    "build_object_key",
    "can_transition",
    "content_type_for",
    "file_extension_for",
    "AccessLogListResponse",
    "CleanupResponse",
    "CompleteUploadRequest",
    "ConsentCheckResponse",
    "ExtendRetentionRequest",
    "ExtendRetentionResponse",
    "GetRecordingResponse",
    "HealthResponse",
    "MessageResponse",
    "RecordingConsentRequest",
    "RecordingListResponse",
    "StartRecordingRequest",
    "StartRecordingResponse",
    "StopRecordingRequest",
    "StopRecordingResponse",
    "UpdateSettingsRequest",
    "UploadProgressRequest",
]
