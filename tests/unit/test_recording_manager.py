"""Unit tests for the recording lifecycle manager"""

from datetime import datetime, timedelta

import pytest

from recording_service.config.settings import DEFAULT_MAX_FILE_SIZE_BYTES
from recording_service.core.dead_letter import POST_PROCESSING, STORAGE_DELETE
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
from recording_service.core.recording_manager import RecordingConfig, RecordingManager
from recording_service.infrastructure.storage.provider import StorageError
from recording_service.models.recording import (
    AccessType,
    RecordingStatus,
    RecordingType,
    RetentionPolicy,
    UserRole,
)

MAX_SIZE = 500 * 1024 * 1024


@pytest.mark.unit
class TestRecordingConfig:
    """Test limit defaults"""

    def test_defaults(self):
        config = RecordingConfig()
        assert config.max_duration_seconds == 7200
        assert config.max_file_size_bytes == 524288000
        assert config.url_ttl_seconds == 3600

    def test_zero_values_fall_back_to_defaults(self):
        config = RecordingConfig(max_duration_seconds=0, max_file_size_bytes=-1, url_ttl_seconds=0)
        assert config.max_duration_seconds == 7200
        assert config.max_file_size_bytes == DEFAULT_MAX_FILE_SIZE_BYTES
        assert config.url_ttl_seconds == 3600

    def test_explicit_values_kept(self):
        config = RecordingConfig(bucket_name="rides", max_duration_seconds=60, max_file_size_bytes=1024)
        assert config.bucket_name == "rides"
        assert config.max_duration_seconds == 60
        assert config.max_file_size_bytes == 1024


@pytest.mark.unit
class TestStartRecording:
    """Test StartRecording"""

    async def test_start_promotes_to_recording(self, manager, mock_repository, mock_storage):
        """Happy path: row created initialized, URL issued, status promoted"""
        mock_repository.get_active_recording_for_ride.return_value = None

        response = await manager.start_recording("user-1", UserRole.RIDER, "ride-1", RecordingType.AUDIO)

        assert response.status == RecordingStatus.RECORDING
        assert response.upload_url == "https://storage.example.com/upload?signature=abc"
        assert response.upload_key == f"recordings/ride-1/user-1/{response.recording_id}.m4a"
        assert response.max_duration_seconds == 7200
        assert response.max_file_size_bytes == 524288000

        created = mock_repository.create_recording.await_args.args[0]
        assert created.id == response.recording_id
        assert created.status == RecordingStatus.INITIALIZED
        assert created.retention_policy == RetentionPolicy.STANDARD
        assert created.quality == "medium"
        assert created.format == "m4a"
        assert created.encrypted is True
        assert created.started_at + timedelta(days=7) == created.expires_at

        mock_storage.generate_presigned_upload_url.assert_awaited_once_with(
            response.upload_key, "audio/m4a", 3600
        )
        mock_repository.update_recording_status.assert_awaited_once_with(
            response.recording_id, RecordingStatus.RECORDING, expected_version=1
        )

    async def test_start_video_uses_mp4(self, manager, mock_repository, mock_storage):
        mock_repository.get_active_recording_for_ride.return_value = None

        response = await manager.start_recording(
            "driver-1", UserRole.DRIVER, "ride-1", RecordingType.VIDEO, quality="high"
        )

        assert response.upload_key.endswith(".mp4")
        created = mock_repository.create_recording.await_args.args[0]
        assert created.quality == "high"
        assert created.user_type == UserRole.DRIVER
        assert mock_storage.generate_presigned_upload_url.await_args.args[1] == "video/mp4"

    async def test_start_with_active_recording_conflicts(self, manager, mock_repository, make_recording):
        mock_repository.get_active_recording_for_ride.return_value = make_recording()

        with pytest.raises(ConflictError, match="recording already in progress for this ride"):
            await manager.start_recording("user-1", UserRole.RIDER, "ride-1", RecordingType.AUDIO)

        mock_repository.create_recording.assert_not_awaited()

    async def test_start_losing_concurrent_insert_conflicts(self, manager, mock_repository):
        """Unique index violation on insert surfaces as Conflict"""
        mock_repository.get_active_recording_for_ride.return_value = None
        mock_repository.create_recording.side_effect = DuplicateRecordError("active session exists")

        with pytest.raises(ConflictError):
            await manager.start_recording("user-1", UserRole.RIDER, "ride-1", RecordingType.AUDIO)

    async def test_start_url_failure_leaves_row_initialized(self, manager, mock_repository, mock_storage):
        mock_repository.get_active_recording_for_ride.return_value = None
        mock_storage.generate_presigned_upload_url.side_effect = StorageError("signing failed")

        with pytest.raises(InternalError) as exc_info:
            await manager.start_recording("user-1", UserRole.RIDER, "ride-1", RecordingType.AUDIO)

        assert "signing failed" not in str(exc_info.value)
        mock_repository.create_recording.assert_awaited_once()
        mock_repository.update_recording_status.assert_not_awaited()

    async def test_start_create_failure_is_internal(self, manager, mock_repository):
        mock_repository.get_active_recording_for_ride.return_value = None
        mock_repository.create_recording.side_effect = RuntimeError("connection reset")

        with pytest.raises(InternalError, match="failed to create recording"):
            await manager.start_recording("user-1", UserRole.RIDER, "ride-1", RecordingType.AUDIO)

    async def test_start_requires_ride_id(self, manager):
        with pytest.raises(BadRequestError):
            await manager.start_recording("user-1", UserRole.RIDER, "", RecordingType.AUDIO)


@pytest.mark.unit
class TestStartRecordingPersisted:
    """Test the one-session-per-recorder rule against the SQLite repository"""

    @pytest.mark.parametrize(
        "status",
        [
            RecordingStatus.STOPPED,
            RecordingStatus.UPLOADING,
            RecordingStatus.UPLOADED,
            RecordingStatus.PROCESSING,
        ],
    )
    async def test_unfinished_session_conflicts(self, repository, mock_storage, make_recording, status):
        await repository.create_recording(make_recording(id="rec-1", status=status))
        manager = RecordingManager(repository, mock_storage)

        with pytest.raises(ConflictError):
            await manager.start_recording("user-1", UserRole.RIDER, "ride-1", RecordingType.AUDIO)

        assert len(await repository.get_recordings_by_ride("ride-1")) == 1

    async def test_completed_session_allows_restart(self, repository, mock_storage, make_recording):
        await repository.create_recording(make_recording(id="rec-1", status=RecordingStatus.COMPLETED))
        manager = RecordingManager(repository, mock_storage)

        response = await manager.start_recording("user-1", UserRole.RIDER, "ride-1", RecordingType.AUDIO)

        assert response.status == RecordingStatus.RECORDING
        stored = await repository.get_recording(response.recording_id)
        assert stored.status == RecordingStatus.RECORDING


@pytest.mark.unit
class TestStopRecording:
    """Test StopRecording"""

    async def test_stop_records_duration(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording(version=2)

        response = await manager.stop_recording("user-1", "rec-1")

        assert response.status == RecordingStatus.STOPPED
        assert 90 <= response.duration_seconds <= 92

        call = mock_repository.update_recording_stopped.await_args
        assert call.args[0] == "rec-1"
        assert isinstance(call.args[1], datetime)
        assert call.kwargs["expected_version"] == 2

    async def test_stop_paused_recording(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording(status=RecordingStatus.PAUSED)

        response = await manager.stop_recording("user-1", "rec-1")

        assert response.status == RecordingStatus.STOPPED

    @pytest.mark.parametrize("status", [
        RecordingStatus.STOPPED,
        RecordingStatus.UPLOADED,
        RecordingStatus.COMPLETED,
        RecordingStatus.FAILED,
        RecordingStatus.DELETED,
    ])
    async def test_stop_inactive_recording_rejected(self, manager, mock_repository, make_recording, status):
        mock_repository.get_recording.return_value = make_recording(status=status)

        with pytest.raises(BadRequestError, match="recording is not active"):
            await manager.stop_recording("user-1", "rec-1")

        mock_repository.update_recording_stopped.assert_not_awaited()

    async def test_stop_by_other_user_forbidden(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording()

        with pytest.raises(ForbiddenError, match="not authorized to stop this recording"):
            await manager.stop_recording("someone-else", "rec-1")

    async def test_stop_missing_recording(self, manager, mock_repository):
        mock_repository.get_recording.side_effect = RecordNotFoundError("rec-1")

        with pytest.raises(NotFoundError, match="recording not found"):
            await manager.stop_recording("user-1", "rec-1")

    async def test_stop_concurrent_modification_conflicts(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording()
        mock_repository.update_recording_stopped.side_effect = StaleRecordError("version changed")

        with pytest.raises(ConflictError):
            await manager.stop_recording("user-1", "rec-1")


@pytest.mark.unit
class TestPauseResume:
    """Test pause and resume"""

    async def test_pause(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording()

        await manager.pause_recording("user-1", "rec-1")

        mock_repository.update_recording_status.assert_awaited_once_with(
            "rec-1", RecordingStatus.PAUSED, expected_version=1
        )

    async def test_pause_requires_recording(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording(status=RecordingStatus.PAUSED)

        with pytest.raises(BadRequestError):
            await manager.pause_recording("user-1", "rec-1")

    async def test_resume(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording(status=RecordingStatus.PAUSED)

        await manager.resume_recording("user-1", "rec-1")

        mock_repository.update_recording_status.assert_awaited_once_with(
            "rec-1", RecordingStatus.RECORDING, expected_version=1
        )

    async def test_resume_requires_paused(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording(status=RecordingStatus.STOPPED)

        with pytest.raises(BadRequestError, match="recording is not paused"):
            await manager.resume_recording("user-1", "rec-1")

    async def test_pause_by_other_user_forbidden(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording()

        with pytest.raises(ForbiddenError):
            await manager.pause_recording("user-2", "rec-1")


@pytest.mark.unit
class TestUploadProgress:
    """Test chunked upload progress"""

    async def test_progress_recorded(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording(status=RecordingStatus.STOPPED)

        await manager.record_upload_progress("user-1", "rec-1", "upload-9", 3, 10)

        mock_repository.update_recording_upload.assert_awaited_once_with(
            "rec-1", "upload-9", 3, 10, expected_version=1
        )

    async def test_progress_requires_stopped(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording(status=RecordingStatus.RECORDING)

        with pytest.raises(BadRequestError):
            await manager.record_upload_progress("user-1", "rec-1", "upload-9", 3, 10)

    async def test_progress_rejects_excess_chunks(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording(status=RecordingStatus.UPLOADING)

        with pytest.raises(BadRequestError):
            await manager.record_upload_progress("user-1", "rec-1", "upload-9", 11, 10)


@pytest.mark.unit
class TestCompleteUpload:
    """Test CompleteUpload"""

    async def test_complete_at_size_limit(self, manager, mock_repository, mock_queue, make_recording):
        """Boundary: exactly the maximum size is accepted"""
        mock_repository.get_recording.return_value = make_recording(status=RecordingStatus.STOPPED)

        await manager.complete_upload("user-1", "rec-1", MAX_SIZE, 120)

        mock_repository.update_recording_completed.assert_awaited_once_with(
            "rec-1",
            "https://cdn.example.com/recordings/ride-1/user-1/rec-1.m4a",
            MAX_SIZE,
            120,
            expected_version=1,
        )
        mock_queue.submit.assert_called_once_with("rec-1")

    async def test_complete_over_size_limit(self, manager, mock_repository, mock_queue, make_recording):
        """Boundary: one byte over the maximum names the exact ceiling"""
        mock_repository.get_recording.return_value = make_recording(status=RecordingStatus.STOPPED)

        with pytest.raises(BadRequestError) as exc_info:
            await manager.complete_upload("user-1", "rec-1", MAX_SIZE + 1, 120)

        message = str(exc_info.value)
        assert "file size exceeds maximum allowed" in message
        assert "524288000" in message
        mock_repository.update_recording_completed.assert_not_awaited()
        mock_queue.submit.assert_not_called()

    async def test_complete_uses_configured_limit(self, mock_repository, mock_storage, make_recording):
        manager = RecordingManager(mock_repository, mock_storage, RecordingConfig(max_file_size_bytes=1000))
        mock_repository.get_recording.return_value = make_recording(status=RecordingStatus.STOPPED)

        with pytest.raises(BadRequestError, match=r"\(1000 bytes\)"):
            await manager.complete_upload("user-1", "rec-1", 1001, 5)

    async def test_complete_by_other_user_forbidden(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording(status=RecordingStatus.STOPPED)

        with pytest.raises(ForbiddenError):
            await manager.complete_upload("user-2", "rec-1", 100, 5)

    async def test_complete_requires_stopped_or_uploading(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording(status=RecordingStatus.RECORDING)

        with pytest.raises(BadRequestError, match="recording is not awaiting upload"):
            await manager.complete_upload("user-1", "rec-1", 100, 5)

    async def test_complete_after_chunked_upload(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording(status=RecordingStatus.UPLOADING)

        await manager.complete_upload("user-1", "rec-1", 100, 5)

        mock_repository.update_recording_completed.assert_awaited_once()

    async def test_complete_repository_failure_hides_backend_text(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording(status=RecordingStatus.STOPPED)
        mock_repository.update_recording_completed.side_effect = RuntimeError("deadlock detected")

        with pytest.raises(InternalError) as exc_info:
            await manager.complete_upload("user-1", "rec-1", 100, 5)

        assert str(exc_info.value) == "failed to complete upload"


@pytest.mark.unit
class TestGetRecording:
    """Test GetRecording and AdminGetRecording"""

    async def test_completed_recording_gets_audited_url(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording(
            status=RecordingStatus.COMPLETED, file_url="https://cdn.example.com/x.m4a"
        )

        response = await manager.get_recording("user-1", "rec-1", ip_address="10.0.0.1")

        assert response.access_url == "https://storage.example.com/download?signature=def"
        assert response.access_url_expires_in_seconds == 3600

        entry = mock_repository.log_access.await_args.args[0]
        assert entry.recording_id == "rec-1"
        assert entry.accessed_by == "user-1"
        assert entry.access_type == AccessType.VIEW
        assert entry.ip_address == "10.0.0.1"

    @pytest.mark.parametrize("status", [RecordingStatus.RECORDING, RecordingStatus.UPLOADED])
    async def test_unfinished_recording_has_no_url(self, manager, mock_repository, mock_storage, make_recording, status):
        mock_repository.get_recording.return_value = make_recording(status=status, file_url="https://cdn/x")

        response = await manager.get_recording("user-1", "rec-1")

        assert response.access_url is None
        mock_storage.generate_presigned_download_url.assert_not_awaited()
        mock_repository.log_access.assert_not_awaited()

    @pytest.mark.parametrize("status", list(RecordingStatus))
    async def test_non_owner_forbidden_in_every_status(self, manager, mock_repository, make_recording, status):
        mock_repository.get_recording.return_value = make_recording(status=status, file_url="https://cdn/x")

        with pytest.raises(ForbiddenError):
            await manager.get_recording("intruder", "rec-1")

    async def test_audit_failure_does_not_fail_access(self, manager, mock_repository, dead_letters, make_recording):
        mock_repository.get_recording.return_value = make_recording(
            status=RecordingStatus.COMPLETED, file_url="https://cdn/x"
        )
        mock_repository.log_access.side_effect = RuntimeError("audit table locked")

        response = await manager.get_recording("user-1", "rec-1")

        assert response.access_url is not None
        assert len(dead_letters) == 1

    async def test_admin_get_bypasses_ownership(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording(
            status=RecordingStatus.COMPLETED, file_url="https://cdn/x"
        )

        response = await manager.admin_get_recording("admin-1", "rec-1")

        assert response.access_url is not None
        entry = mock_repository.log_access.await_args.args[0]
        assert entry.access_type == AccessType.ADMIN_VIEW
        assert entry.accessed_by == "admin-1"
        assert entry.reason == "admin review"

    async def test_admin_get_keeps_reason(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording(
            status=RecordingStatus.COMPLETED, file_url="https://cdn/x"
        )

        await manager.admin_get_recording("admin-1", "rec-1", reason="safety incident #42")

        assert mock_repository.log_access.await_args.args[0].reason == "safety incident #42"


@pytest.mark.unit
class TestDeleteRecording:
    """Test DeleteRecording"""

    async def test_delete_without_file_skips_storage(self, manager, mock_repository, mock_storage, make_recording):
        mock_repository.get_recording.return_value = make_recording(status=RecordingStatus.STOPPED)

        await manager.delete_recording("user-1", "rec-1")

        mock_storage.delete.assert_not_awaited()
        mock_repository.mark_recording_deleted.assert_awaited_once_with("rec-1", expected_version=1)

    async def test_delete_removes_object(self, manager, mock_repository, mock_storage, make_recording):
        mock_repository.get_recording.return_value = make_recording(
            status=RecordingStatus.COMPLETED, file_url="https://cdn/x"
        )

        await manager.delete_recording("user-1", "rec-1")

        mock_storage.delete.assert_awaited_once_with("recordings/ride-1/user-1/rec-1.m4a")
        mock_repository.mark_recording_deleted.assert_awaited_once()

    async def test_storage_failure_is_dead_lettered(
        self, manager, mock_repository, mock_storage, dead_letters, make_recording
    ):
        mock_repository.get_recording.return_value = make_recording(
            status=RecordingStatus.COMPLETED, file_url="https://cdn/x"
        )
        mock_storage.delete.side_effect = StorageError("bucket unreachable")

        await manager.delete_recording("user-1", "rec-1")

        mock_repository.mark_recording_deleted.assert_awaited_once()
        entries = dead_letters.entries(STORAGE_DELETE)
        assert len(entries) == 1
        assert entries[0].recording_id == "rec-1"

    async def test_delete_by_other_user_forbidden(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording()

        with pytest.raises(ForbiddenError, match="not authorized to delete this recording"):
            await manager.delete_recording("user-2", "rec-1")

        mock_repository.mark_recording_deleted.assert_not_awaited()

    async def test_delete_twice_rejected(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording(status=RecordingStatus.DELETED)

        with pytest.raises(BadRequestError):
            await manager.delete_recording("user-1", "rec-1")


@pytest.mark.unit
class TestProcessRecording:
    """Test the post-processing handler"""

    async def test_uploaded_recording_completed(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording(status=RecordingStatus.UPLOADED, version=4)
        mock_repository.update_recording_processed.return_value = True

        await manager.process_recording("rec-1")

        mock_repository.update_recording_status.assert_awaited_once_with(
            "rec-1", RecordingStatus.PROCESSING, expected_version=4
        )
        mock_repository.update_recording_processed.assert_awaited_once_with("rec-1", thumbnail_url=None)

    @pytest.mark.parametrize("status", [
        RecordingStatus.COMPLETED,
        RecordingStatus.FAILED,
        RecordingStatus.DELETED,
    ])
    async def test_terminal_recording_skipped(self, manager, mock_repository, make_recording, status):
        """Redelivered jobs are harmless"""
        mock_repository.get_recording.return_value = make_recording(status=status)

        await manager.process_recording("rec-1")

        mock_repository.update_recording_status.assert_not_awaited()
        mock_repository.update_recording_processed.assert_not_awaited()

    async def test_resumes_interrupted_processing(self, manager, mock_repository, make_recording):
        mock_repository.get_recording.return_value = make_recording(status=RecordingStatus.PROCESSING)

        await manager.process_recording("rec-1")

        mock_repository.update_recording_status.assert_not_awaited()
        mock_repository.update_recording_processed.assert_awaited_once()

    async def test_mark_processing_failed(self, manager, mock_repository, dead_letters, make_recording):
        mock_repository.get_recording.return_value = make_recording(status=RecordingStatus.PROCESSING)

        await manager.mark_processing_failed("rec-1", RuntimeError("transcoder crashed"))

        mock_repository.update_recording_status.assert_awaited_once_with(
            "rec-1", RecordingStatus.FAILED, expected_version=1
        )
        assert dead_letters.entries(POST_PROCESSING)[0].recording_id == "rec-1"


@pytest.mark.unit
class TestPassThrough:
    """Test settings, listing and stats error normalization"""

    async def test_stats_failure_is_internal(self, manager, mock_repository):
        mock_repository.get_recording_stats.side_effect = RuntimeError("timeout")

        with pytest.raises(InternalError):
            await manager.get_recording_stats()

    async def test_list_for_ride(self, manager, mock_repository, make_recording):
        mock_repository.get_recordings_by_ride.return_value = [make_recording()]

        recordings = await manager.get_recordings_for_ride("ride-1")

        assert [r.id for r in recordings] == ["rec-1"]

    async def test_settings_failure_is_internal(self, manager, mock_repository):
        mock_repository.get_settings.side_effect = RuntimeError("timeout")

        with pytest.raises(InternalError, match="failed to get settings"):
            await manager.get_settings("user-1")
