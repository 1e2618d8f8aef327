"""Unit tests for the SQLAlchemy repository (in-memory SQLite)"""

from datetime import datetime, timedelta

import pytest

from recording_service.core.exceptions import (
    DuplicateRecordError,
    RecordNotFoundError,
    StaleRecordError,
)
from recording_service.models.recording import (
    AccessLog,
    AccessType,
    Consent,
    Location,
    RecordingSettings,
    RecordingStatus,
    RecordingType,
    RetentionPolicy,
    UserRole,
)


@pytest.mark.unit
class TestRecordingPersistence:
    """Test recording rows and transitions"""

    async def test_create_and_get(self, repository, make_recording):
        recording = make_recording(
            status=RecordingStatus.INITIALIZED,
            device_info="Pixel 8",
            start_location=Location(latitude=52.52, longitude=13.405),
        )

        await repository.create_recording(recording)
        stored = await repository.get_recording("rec-1")

        assert stored.ride_id == "ride-1"
        assert stored.status == RecordingStatus.INITIALIZED
        assert stored.start_location == Location(latitude=52.52, longitude=13.405)
        assert stored.encrypted is True
        assert stored.version == 1

    async def test_get_missing(self, repository):
        with pytest.raises(RecordNotFoundError):
            await repository.get_recording("nope")

    async def test_second_active_session_rejected(self, repository, make_recording):
        """At most one active recording per (ride, recorder)"""
        await repository.create_recording(make_recording(id="rec-1", status=RecordingStatus.INITIALIZED))

        with pytest.raises(DuplicateRecordError):
            await repository.create_recording(make_recording(id="rec-2", status=RecordingStatus.INITIALIZED))

    @pytest.mark.parametrize(
        "status",
        [
            RecordingStatus.INITIALIZED,
            RecordingStatus.RECORDING,
            RecordingStatus.PAUSED,
            RecordingStatus.STOPPED,
            RecordingStatus.UPLOADING,
            RecordingStatus.UPLOADED,
            RecordingStatus.PROCESSING,
        ],
    )
    async def test_non_terminal_session_blocks_new_one(self, repository, make_recording, status):
        await repository.create_recording(make_recording(id="rec-1", status=status))

        active = await repository.get_active_recording_for_ride("ride-1", "user-1")
        assert active.id == "rec-1"

        with pytest.raises(DuplicateRecordError):
            await repository.create_recording(make_recording(id="rec-2", status=RecordingStatus.INITIALIZED))

    @pytest.mark.parametrize(
        "status", [RecordingStatus.COMPLETED, RecordingStatus.FAILED, RecordingStatus.DELETED]
    )
    async def test_new_session_allowed_after_terminal(self, repository, make_recording, status):
        await repository.create_recording(make_recording(id="rec-1", status=status))

        assert await repository.get_active_recording_for_ride("ride-1", "user-1") is None

        await repository.create_recording(make_recording(id="rec-2", status=RecordingStatus.INITIALIZED))

        active = await repository.get_active_recording_for_ride("ride-1", "user-1")
        assert active.id == "rec-2"

    async def test_other_recorder_on_same_ride_allowed(self, repository, make_recording):
        await repository.create_recording(make_recording(id="rec-1", user_id="rider"))
        await repository.create_recording(make_recording(id="rec-2", user_id="driver"))

        assert len(await repository.get_recordings_by_ride("ride-1")) == 2

    async def test_update_bumps_version(self, repository, make_recording):
        await repository.create_recording(make_recording(status=RecordingStatus.INITIALIZED))

        await repository.update_recording_status("rec-1", RecordingStatus.RECORDING, expected_version=1)

        stored = await repository.get_recording("rec-1")
        assert stored.status == RecordingStatus.RECORDING
        assert stored.version == 2

    async def test_stale_version_rejected(self, repository, make_recording):
        await repository.create_recording(make_recording())
        await repository.update_recording_status("rec-1", RecordingStatus.PAUSED, expected_version=1)

        with pytest.raises(StaleRecordError):
            await repository.update_recording_status("rec-1", RecordingStatus.STOPPED, expected_version=1)

    async def test_update_missing_recording(self, repository):
        with pytest.raises(RecordNotFoundError):
            await repository.update_recording_status("nope", RecordingStatus.PAUSED)

    async def test_stop_persists_end(self, repository, make_recording):
        await repository.create_recording(make_recording())
        ended_at = datetime.utcnow()

        await repository.update_recording_stopped(
            "rec-1", ended_at, end_location=Location(latitude=1.0, longitude=2.0)
        )

        stored = await repository.get_recording("rec-1")
        assert stored.status == RecordingStatus.STOPPED
        assert stored.ended_at == ended_at
        assert stored.end_location.longitude == 2.0

    async def test_upload_progress_moves_to_uploading_when_complete(self, repository, make_recording):
        await repository.create_recording(make_recording(status=RecordingStatus.STOPPED))

        await repository.update_recording_upload("rec-1", "up-1", 2, 4)
        assert (await repository.get_recording("rec-1")).status == RecordingStatus.STOPPED

        await repository.update_recording_upload("rec-1", "up-1", 4, 4)
        stored = await repository.get_recording("rec-1")
        assert stored.status == RecordingStatus.UPLOADING
        assert stored.chunks_received == 4

    async def test_completed_then_processed(self, repository, make_recording):
        await repository.create_recording(make_recording(status=RecordingStatus.STOPPED))

        await repository.update_recording_completed("rec-1", "https://cdn/a.m4a", 2048, 95)
        stored = await repository.get_recording("rec-1")
        assert stored.status == RecordingStatus.UPLOADED
        assert stored.file_size == 2048
        assert stored.uploaded_at is not None

        assert await repository.update_recording_processed("rec-1") is True
        stored = await repository.get_recording("rec-1")
        assert stored.status == RecordingStatus.COMPLETED
        assert stored.processed_at is not None

    async def test_processed_only_from_uploaded(self, repository, make_recording):
        await repository.create_recording(make_recording(status=RecordingStatus.DELETED))

        assert await repository.update_recording_processed("rec-1") is False
        assert (await repository.get_recording("rec-1")).status == RecordingStatus.DELETED

    async def test_mark_deleted_clears_file(self, repository, make_recording):
        await repository.create_recording(make_recording(status=RecordingStatus.STOPPED))
        await repository.update_recording_completed("rec-1", "https://cdn/a.m4a", 10, 1)

        await repository.mark_recording_deleted("rec-1")

        stored = await repository.get_recording("rec-1")
        assert stored.status == RecordingStatus.DELETED
        assert stored.file_url is None
        assert await repository.get_recordings_by_ride("ride-1") == []

    async def test_retention_policy(self, repository, make_recording):
        await repository.create_recording(make_recording())
        expires_at = datetime.utcnow() + timedelta(days=30)

        await repository.update_retention_policy("rec-1", RetentionPolicy.EXTENDED, expires_at)

        stored = await repository.get_recording("rec-1")
        assert stored.retention_policy == RetentionPolicy.EXTENDED
        assert stored.expires_at == expires_at

    async def test_expired_recordings(self, repository, make_recording):
        past = datetime.utcnow() - timedelta(days=1)
        await repository.create_recording(make_recording(id="expired", user_id="a", expires_at=past))
        await repository.create_recording(make_recording(id="fresh", user_id="b"))
        await repository.create_recording(
            make_recording(id="gone", user_id="c", expires_at=past, status=RecordingStatus.DELETED)
        )
        await repository.create_recording(
            make_recording(id="broken", user_id="d", expires_at=past, status=RecordingStatus.FAILED)
        )

        expired = await repository.get_expired_recordings(limit=100)

        assert [r.id for r in expired] == ["expired"]


@pytest.mark.unit
class TestConsentPersistence:
    """Test consent upsert and the two-party check"""

    async def test_latest_answer_wins(self, repository):
        await repository.create_consent(Consent(ride_id="ride-1", user_id="rider", consented=True))
        await repository.create_consent(Consent(ride_id="ride-1", user_id="rider", consented=False))

        consent = await repository.get_consent("ride-1", "rider")
        assert consent.consented is False

    async def test_missing_consent(self, repository):
        with pytest.raises(RecordNotFoundError):
            await repository.get_consent("ride-1", "rider")

    @pytest.mark.parametrize("answers,expected", [
        ([], False),
        ([True], False),
        ([True, False], False),
        ([True, True], True),
        ([True, True, True], False),
    ])
    async def test_check_all_consented(self, repository, answers, expected):
        for i, answer in enumerate(answers):
            await repository.create_consent(
                Consent(ride_id="ride-1", user_id=f"user-{i}", user_type=UserRole.RIDER, consented=answer)
            )

        assert await repository.check_all_consented("ride-1") is expected


@pytest.mark.unit
class TestAccessLogPersistence:
    """Test append-only access log"""

    async def test_newest_first(self, repository):
        now = datetime.utcnow()
        await repository.log_access(AccessLog(
            recording_id="rec-1", accessed_by="user-1", access_type=AccessType.VIEW,
            accessed_at=now - timedelta(minutes=5),
        ))
        await repository.log_access(AccessLog(
            recording_id="rec-1", accessed_by="admin-1", access_type=AccessType.ADMIN_VIEW,
            reason="admin review", accessed_at=now,
        ))

        logs = await repository.get_access_logs("rec-1")

        assert [log.accessed_by for log in logs] == ["admin-1", "user-1"]
        assert logs[0].reason == "admin review"


@pytest.mark.unit
class TestSettingsPersistence:
    """Test recording preferences"""

    async def test_defaults_when_missing(self, repository):
        settings = await repository.get_settings("user-1")

        assert settings.recording_enabled is False
        assert settings.default_type == RecordingType.AUDIO
        assert settings.default_quality == "medium"
        assert settings.auto_record_sos_rides is True
        assert settings.notify_on_recording is True
        assert settings.created_at is None

    async def test_upsert(self, repository):
        await repository.upsert_settings(RecordingSettings(user_id="user-1", recording_enabled=True))
        await repository.upsert_settings(
            RecordingSettings(user_id="user-1", recording_enabled=True, default_type=RecordingType.VIDEO)
        )

        settings = await repository.get_settings("user-1")
        assert settings.recording_enabled is True
        assert settings.default_type == RecordingType.VIDEO
        assert settings.created_at is not None


@pytest.mark.unit
class TestRecordingStats:
    """Test aggregate statistics"""

    async def test_stats(self, repository, make_recording):
        await repository.create_recording(make_recording(id="a", user_id="u1", status=RecordingStatus.RECORDING))
        await repository.create_recording(make_recording(id="b", user_id="u2", status=RecordingStatus.STOPPED))
        await repository.update_recording_completed("b", "https://cdn/b", 1024 * 1024 * 1024, 3600)
        await repository.update_recording_processed("b")
        await repository.create_recording(
            make_recording(id="c", user_id="u3", recording_type=RecordingType.VIDEO, status=RecordingStatus.STOPPED)
        )
        await repository.create_recording(make_recording(id="d", user_id="u4", status=RecordingStatus.DELETED))

        stats = await repository.get_recording_stats()

        assert stats.total_recordings == 3
        assert stats.total_duration_hours == 1.0
        assert stats.total_storage_gb == 1.0
        assert stats.active_recordings == 1
        assert stats.pending_uploads == 1
        assert stats.recordings_by_type == {"audio": 2, "video": 1}
        assert stats.recordings_by_status["deleted"] == 1
