"""
Recording Manager

Core business logic for the ride recording lifecycle: starting, pausing,
stopping and completing recordings, issuing presigned transfer URLs, and
deleting recordings. Every mutation is checked against the lifecycle
transition table and applied conditionally on the version that was read.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, List, Optional

from recording_service.config.settings import (
    DEFAULT_MAX_DURATION_SECONDS,
    DEFAULT_MAX_FILE_SIZE_BYTES,
    Settings,
)
from recording_service.core.access_auditor import AccessAuditor
from recording_service.core.dead_letter import POST_PROCESSING, STORAGE_DELETE, DeadLetterSink
from recording_service.core.exceptions import (
    BadRequestError,
    ConflictError,
    DuplicateRecordError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    RecordNotFoundError,
    StaleRecordError,
)
from recording_service.core.processing_queue import ProcessingQueue
from recording_service.core.retention_scheduler import compute_expiry
from recording_service.infrastructure.database.repository import RecordingRepository
from recording_service.infrastructure.storage.provider import StorageProvider
from recording_service.models.recording import (
    AccessType,
    Location,
    Recording,
    RecordingSettings,
    RecordingStats,
    RecordingStatus,
    RecordingType,
    RetentionPolicy,
    UserRole,
    can_transition,
    content_type_for,
    file_extension_for,
)
from recording_service.models.requests import (
    GetRecordingResponse,
    StartRecordingResponse,
    StopRecordingResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_URL_TTL_SECONDS = 3600
DEFAULT_QUALITY = "medium"
ADMIN_REVIEW_REASON = "admin review"


@dataclass
class RecordingConfig:
    """Recording limits; zero or negative values fall back to the defaults"""

    bucket_name: Optional[str] = None
    max_duration_seconds: int = DEFAULT_MAX_DURATION_SECONDS
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES
    url_ttl_seconds: int = DEFAULT_URL_TTL_SECONDS

    def __post_init__(self):
        if self.max_duration_seconds <= 0:
            self.max_duration_seconds = DEFAULT_MAX_DURATION_SECONDS
        if self.max_file_size_bytes <= 0:
            self.max_file_size_bytes = DEFAULT_MAX_FILE_SIZE_BYTES
        if self.url_ttl_seconds <= 0:
            self.url_ttl_seconds = DEFAULT_URL_TTL_SECONDS

    @classmethod
    def from_settings(cls, settings: Settings) -> "RecordingConfig":
        return cls(
            bucket_name=settings.s3_bucket_name,
            max_duration_seconds=settings.recording_max_duration_seconds,
            max_file_size_bytes=settings.recording_max_file_size_bytes,
            url_ttl_seconds=settings.presigned_url_ttl_seconds,
        )


class RecordingManager:
    """Business logic for the recording lifecycle"""

    def __init__(
        self,
        repository: RecordingRepository,
        storage: StorageProvider,
        config: Optional[RecordingConfig] = None,
        processing_queue: Optional[ProcessingQueue] = None,
        auditor: Optional[AccessAuditor] = None,
        dead_letters: Optional[DeadLetterSink] = None,
    ):
        self.repository = repository
        self.storage = storage
        self.config = config or RecordingConfig()
        self.processing_queue = processing_queue
        self.dead_letters = dead_letters or DeadLetterSink()
        self.auditor = auditor or AccessAuditor(repository, self.dead_letters)

    # ========================================
    # HELPERS
    # ========================================

    async def _load(self, recording_id: str) -> Recording:
        try:
            return await self.repository.get_recording(recording_id)
        except RecordNotFoundError:
            raise NotFoundError("recording not found")
        except Exception as e:
            logger.error(f"Failed to load recording {recording_id}: {e}")
            raise InternalError("failed to get recording") from e

    async def _load_owned(self, user_id: str, recording_id: str, action: str) -> Recording:
        recording = await self._load(recording_id)
        if recording.user_id != user_id:
            logger.warning(f"User {user_id} denied {action} on recording {recording_id}")
            raise ForbiddenError(f"not authorized to {action}")
        return recording

    @staticmethod
    def _require_transition(recording: Recording, target: RecordingStatus, message: str) -> None:
        if not can_transition(recording.status, target):
            raise BadRequestError(message)

    @staticmethod
    async def _persist(action: str, update: Awaitable[None]) -> None:
        """Await a repository write, translating its failures"""
        try:
            await update
        except StaleRecordError:
            raise ConflictError("recording was modified concurrently, retry the request")
        except RecordNotFoundError:
            raise NotFoundError("recording not found")
        except Exception as e:
            logger.error(f"Failed to {action}: {e}")
            raise InternalError(f"failed to {action}") from e

    # ========================================
    # LIFECYCLE
    # ========================================

    async def start_recording(
        self,
        user_id: str,
        user_type: UserRole,
        ride_id: str,
        recording_type: RecordingType,
        quality: Optional[str] = None,
        device_info: Optional[str] = None,
        location: Optional[Location] = None,
    ) -> StartRecordingResponse:
        """
        Start a recording session and issue its presigned upload URL

        Args:
            user_id: Recorder's user ID
            user_type: Recorder's role on the ride
            ride_id: Ride being recorded
            recording_type: audio or video
            quality: Capture quality (default: medium)
            device_info: Optional client device description
            location: Optional position where recording started

        Returns:
            Recording ID, upload URL/key and limits

        Raises:
            ConflictError: If the user already has an active recording for the ride
            InternalError: If persistence or URL issuance fails
        """
        if not ride_id or not user_id:
            raise BadRequestError("ride_id and user_id are required")

        try:
            existing = await self.repository.get_active_recording_for_ride(ride_id, user_id)
        except Exception as e:
            logger.error(f"Failed to check active recordings for ride {ride_id}: {e}")
            raise InternalError("failed to check existing recordings") from e

        if existing is not None:
            raise ConflictError("recording already in progress for this ride")

        now = datetime.utcnow()
        recording = Recording(
            ride_id=ride_id,
            user_id=user_id,
            user_type=user_type,
            recording_type=recording_type,
            status=RecordingStatus.INITIALIZED,
            retention_policy=RetentionPolicy.STANDARD,
            format=file_extension_for(recording_type),
            quality=quality or DEFAULT_QUALITY,
            encrypted=True,
            started_at=now,
            expires_at=compute_expiry(RetentionPolicy.STANDARD, now),
            device_info=device_info,
            start_location=location,
            created_at=now,
            updated_at=now,
        )

        try:
            await self.repository.create_recording(recording)
        except DuplicateRecordError:
            # Lost a concurrent start for the same (ride, user)
            raise ConflictError("recording already in progress for this ride")
        except Exception as e:
            logger.error(f"Failed to create recording for ride {ride_id}: {e}")
            raise InternalError("failed to create recording") from e

        upload_key = recording.object_key
        try:
            presigned = await self.storage.generate_presigned_upload_url(
                upload_key,
                content_type_for(recording_type),
                self.config.url_ttl_seconds,
            )
        except Exception as e:
            # The row stays initialized; it expires with the standard policy
            logger.error(f"Failed to generate upload URL for recording {recording.id}: {e}")
            raise InternalError("failed to generate upload URL") from e

        await self._persist(
            "start recording",
            self.repository.update_recording_status(
                recording.id, RecordingStatus.RECORDING, expected_version=recording.version
            ),
        )

        logger.info(
            f"Recording started: {recording.id} (ride={ride_id}, user={user_id}, "
            f"type={recording_type.value})"
        )

        return StartRecordingResponse(
            recording_id=recording.id,
            upload_url=presigned.url,
            upload_key=upload_key,
            max_duration_seconds=self.config.max_duration_seconds,
            max_file_size_bytes=self.config.max_file_size_bytes,
            status=RecordingStatus.RECORDING,
        )

    async def pause_recording(self, user_id: str, recording_id: str) -> None:
        recording = await self._load_owned(user_id, recording_id, "pause this recording")
        if recording.status != RecordingStatus.RECORDING:
            raise BadRequestError("recording is not active")

        await self._persist(
            "pause recording",
            self.repository.update_recording_status(
                recording_id, RecordingStatus.PAUSED, expected_version=recording.version
            ),
        )
        logger.info(f"Recording paused: {recording_id}")

    async def resume_recording(self, user_id: str, recording_id: str) -> None:
        recording = await self._load_owned(user_id, recording_id, "resume this recording")
        if recording.status != RecordingStatus.PAUSED:
            raise BadRequestError("recording is not paused")

        await self._persist(
            "resume recording",
            self.repository.update_recording_status(
                recording_id, RecordingStatus.RECORDING, expected_version=recording.version
            ),
        )
        logger.info(f"Recording resumed: {recording_id}")

    async def stop_recording(
        self,
        user_id: str,
        recording_id: str,
        location: Optional[Location] = None,
    ) -> StopRecordingResponse:
        """
        Stop an active or paused recording

        Returns:
            Recording ID, new status and elapsed whole seconds since start

        Raises:
            NotFoundError: If the recording does not exist
            ForbiddenError: If the caller is not the recorder
            BadRequestError: If the recording is not recording or paused
        """
        recording = await self._load_owned(user_id, recording_id, "stop this recording")
        if recording.status not in (RecordingStatus.RECORDING, RecordingStatus.PAUSED):
            raise BadRequestError("recording is not active")

        ended_at = datetime.utcnow()
        duration = max(0, int((ended_at - recording.started_at).total_seconds()))

        await self._persist(
            "stop recording",
            self.repository.update_recording_stopped(
                recording_id, ended_at, end_location=location, expected_version=recording.version
            ),
        )

        logger.info(f"Recording stopped: {recording_id} (duration={duration}s)")

        return StopRecordingResponse(
            recording_id=recording_id,
            status=RecordingStatus.STOPPED,
            duration_seconds=duration,
        )

    async def record_upload_progress(
        self,
        user_id: str,
        recording_id: str,
        upload_id: str,
        chunks_received: int,
        total_chunks: int,
    ) -> None:
        """Persist chunked-transfer progress; the row moves to uploading once complete"""
        recording = await self._load_owned(user_id, recording_id, "upload this recording")
        self._require_transition(recording, RecordingStatus.UPLOADING, "recording is not awaiting upload")

        if chunks_received > total_chunks:
            raise BadRequestError("chunks_received exceeds total_chunks")

        await self._persist(
            "record upload progress",
            self.repository.update_recording_upload(
                recording_id,
                upload_id,
                chunks_received,
                total_chunks,
                expected_version=recording.version,
            ),
        )
        logger.debug(f"Upload progress for {recording_id}: {chunks_received}/{total_chunks}")

    async def complete_upload(
        self,
        user_id: str,
        recording_id: str,
        total_size: int,
        duration_seconds: int,
    ) -> None:
        """
        Finalize an upload and queue post-processing

        The processing job is submitted, never awaited.

        Raises:
            ForbiddenError: If the caller is not the recorder
            BadRequestError: If the size exceeds the limit or the recording
                is not stopped/uploading
        """
        recording = await self._load_owned(user_id, recording_id, "complete this upload")

        max_size = self.config.max_file_size_bytes
        if total_size > max_size:
            raise BadRequestError(f"file size exceeds maximum allowed ({max_size} bytes)")

        self._require_transition(recording, RecordingStatus.UPLOADED, "recording is not awaiting upload")

        file_url = self.storage.get_url(recording.object_key)

        await self._persist(
            "complete upload",
            self.repository.update_recording_completed(
                recording_id,
                file_url,
                total_size,
                duration_seconds,
                expected_version=recording.version,
            ),
        )

        if self.processing_queue is not None:
            self.processing_queue.submit(recording_id)
        else:
            logger.warning(f"No processing queue configured, recording {recording_id} stays uploaded")

        logger.info(
            f"Recording upload completed: {recording_id} "
            f"(size={total_size}, duration={duration_seconds}s)"
        )

    # ========================================
    # RETRIEVAL
    # ========================================

    async def _with_access_url(
        self,
        recording: Recording,
        accessed_by: str,
        access_type: AccessType,
        reason: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> GetRecordingResponse:
        response = GetRecordingResponse(recording=recording)

        if recording.status != RecordingStatus.COMPLETED or not recording.file_url:
            return response

        ttl = self.config.url_ttl_seconds
        try:
            presigned = await self.storage.generate_presigned_download_url(recording.object_key, ttl)
        except Exception as e:
            logger.error(f"Failed to generate access URL for recording {recording.id}: {e}")
            return response

        response.access_url = presigned.url
        response.access_url_expires_in_seconds = ttl

        await self.auditor.record_access(
            recording.id, accessed_by, access_type, reason=reason, ip_address=ip_address
        )
        return response

    async def get_recording(
        self,
        user_id: str,
        recording_id: str,
        ip_address: Optional[str] = None,
    ) -> GetRecordingResponse:
        """
        Get a recording; completed recordings come with an audited access URL

        Raises:
            NotFoundError: If the recording does not exist
            ForbiddenError: If the caller is not the recorder
        """
        recording = await self._load_owned(user_id, recording_id, "view this recording")
        return await self._with_access_url(recording, user_id, AccessType.VIEW, ip_address=ip_address)

    async def admin_get_recording(
        self,
        admin_id: str,
        recording_id: str,
        reason: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> GetRecordingResponse:
        """Get any recording; URL issuance is audited as admin_view with the reason"""
        recording = await self._load(recording_id)
        return await self._with_access_url(
            recording,
            admin_id,
            AccessType.ADMIN_VIEW,
            reason=reason or ADMIN_REVIEW_REASON,
            ip_address=ip_address,
        )

    async def get_recordings_for_ride(self, ride_id: str) -> List[Recording]:
        try:
            return await self.repository.get_recordings_by_ride(ride_id)
        except Exception as e:
            logger.error(f"Failed to list recordings for ride {ride_id}: {e}")
            raise InternalError("failed to get recordings") from e

    # ========================================
    # DELETION
    # ========================================

    async def delete_recording(self, user_id: str, recording_id: str) -> None:
        """
        Soft-delete a recording and remove its media

        The object delete is best effort: a failure is dead-lettered and the
        row is still marked deleted.
        """
        recording = await self._load_owned(user_id, recording_id, "delete this recording")
        self._require_transition(recording, RecordingStatus.DELETED, "recording is already deleted")

        if recording.file_url:
            try:
                await self.storage.delete(recording.object_key)
            except Exception as e:
                self.dead_letters.record(
                    STORAGE_DELETE,
                    recording_id,
                    e,
                    payload={"object_key": recording.object_key, "source": "delete"},
                )

        await self._persist(
            "delete recording",
            self.repository.mark_recording_deleted(recording_id, expected_version=recording.version),
        )
        logger.info(f"Recording deleted: {recording_id} by {user_id}")

    # ========================================
    # POST-PROCESSING
    # ========================================

    async def process_recording(self, recording_id: str) -> None:
        """
        Post-process an uploaded recording and mark it completed

        Idempotent: recordings that are already terminal are skipped, so a
        redelivered job is harmless. Transcoding and thumbnailing are not
        performed; the recording is promoted as-is.
        """
        try:
            recording = await self.repository.get_recording(recording_id)
        except RecordNotFoundError:
            logger.warning(f"Skipping post-processing of missing recording {recording_id}")
            return

        if recording.is_terminal:
            logger.info(f"Skipping post-processing of {recording_id} ({recording.status.value})")
            return

        if recording.status == RecordingStatus.UPLOADED:
            await self.repository.update_recording_status(
                recording_id, RecordingStatus.PROCESSING, expected_version=recording.version
            )
        elif recording.status != RecordingStatus.PROCESSING:
            logger.warning(
                f"Skipping post-processing of {recording_id}: not uploaded ({recording.status.value})"
            )
            return

        if await self.repository.update_recording_processed(recording_id, thumbnail_url=None):
            logger.info(f"Recording processed: {recording_id}")
        else:
            logger.info(f"Recording {recording_id} changed during processing, left as is")

    async def mark_processing_failed(self, recording_id: str, error: Exception) -> None:
        """Exhaustion callback of the processing queue"""
        self.dead_letters.record(POST_PROCESSING, recording_id, error)

        recording = await self.repository.get_recording(recording_id)
        if not can_transition(recording.status, RecordingStatus.FAILED):
            return

        await self.repository.update_recording_status(
            recording_id, RecordingStatus.FAILED, expected_version=recording.version
        )
        logger.warning(f"Recording {recording_id} marked failed after post-processing errors")

    # ========================================
    # SETTINGS & STATISTICS
    # ========================================

    async def get_settings(self, user_id: str) -> RecordingSettings:
        try:
            return await self.repository.get_settings(user_id)
        except Exception as e:
            logger.error(f"Failed to get recording settings for {user_id}: {e}")
            raise InternalError("failed to get settings") from e

    async def update_settings(self, settings: RecordingSettings) -> RecordingSettings:
        try:
            await self.repository.upsert_settings(settings)
        except Exception as e:
            logger.error(f"Failed to update recording settings for {settings.user_id}: {e}")
            raise InternalError("failed to update settings") from e

        logger.info(f"Recording settings updated for user {settings.user_id}")
        return settings

    async def get_recording_stats(self) -> RecordingStats:
        try:
            return await self.repository.get_recording_stats()
        except Exception as e:
            logger.error(f"Failed to compute recording stats: {e}")
            raise InternalError("failed to get stats") from e
