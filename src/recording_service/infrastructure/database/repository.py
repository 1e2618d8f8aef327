"""
Recording Repository

Persistence for recordings, consent, access logs and settings. Every lifecycle
transition has its own update method; each call runs in its own transaction.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from recording_service.core.exceptions import (
    DuplicateRecordError,
    RecordNotFoundError,
    StaleRecordError,
)
from recording_service.infrastructure.database.models import (
    AccessLogDB,
    ConsentDB,
    RecordingDB,
    RecordingSettingsDB,
)
from recording_service.models.recording import (
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
)

logger = logging.getLogger(__name__)

_BYTES_PER_GB = 1024 * 1024 * 1024


def _location_to_json(location: Optional[Location]) -> Optional[Dict[str, float]]:
    return location.model_dump() if location else None


def _location_from_json(data: Optional[Dict[str, Any]]) -> Optional[Location]:
    return Location(**data) if data else None


def _to_recording(row: RecordingDB) -> Recording:
    return Recording(
        id=row.id,
        ride_id=row.ride_id,
        user_id=row.user_id,
        user_type=UserRole(row.user_type),
        recording_type=RecordingType(row.recording_type),
        status=RecordingStatus(row.status),
        retention_policy=RetentionPolicy(row.retention_policy),
        file_url=row.file_url,
        thumbnail_url=row.thumbnail_url,
        file_size=row.file_size,
        duration_seconds=row.duration_seconds,
        format=row.format,
        quality=row.quality,
        encrypted=row.encrypted,
        encryption_key_id=row.encryption_key_id,
        upload_id=row.upload_id,
        chunks_received=row.chunks_received,
        total_chunks=row.total_chunks,
        started_at=row.started_at,
        ended_at=row.ended_at,
        uploaded_at=row.uploaded_at,
        processed_at=row.processed_at,
        expires_at=row.expires_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
        device_info=row.device_info,
        start_location=_location_from_json(row.start_location),
        end_location=_location_from_json(row.end_location),
        version=row.version,
    )


def _to_consent(row: ConsentDB) -> Consent:
    return Consent(
        id=row.id,
        ride_id=row.ride_id,
        user_id=row.user_id,
        user_type=UserRole(row.user_type),
        consented=row.consented,
        consented_at=row.consented_at,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
    )


def _to_access_log(row: AccessLogDB) -> AccessLog:
    return AccessLog(
        id=row.id,
        recording_id=row.recording_id,
        accessed_by=row.accessed_by,
        access_type=AccessType(row.access_type),
        reason=row.reason,
        ip_address=row.ip_address,
        accessed_at=row.accessed_at,
    )


def _status_values(statuses: Iterable[RecordingStatus]) -> List[str]:
    return [s.value for s in statuses]


class RecordingRepository:
    """SQLAlchemy-backed persistence for the recording lifecycle"""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    def _insert(self, session: AsyncSession, table):
        """Dialect-specific INSERT supporting ON CONFLICT (PostgreSQL, SQLite)"""
        if session.get_bind().dialect.name == "postgresql":
            return pg_insert(table)
        return sqlite_insert(table)

    # ========================================
    # RECORDING OPERATIONS
    # ========================================

    async def create_recording(self, recording: Recording) -> None:
        """Insert a new recording row.

        Raises:
            DuplicateRecordError: If the recorder already holds an active
                session for the ride (partial unique index)
        """
        row = RecordingDB(
            id=recording.id,
            ride_id=recording.ride_id,
            user_id=recording.user_id,
            user_type=recording.user_type.value,
            recording_type=recording.recording_type.value,
            status=recording.status.value,
            retention_policy=recording.retention_policy.value,
            format=recording.format,
            quality=recording.quality,
            encrypted=recording.encrypted,
            encryption_key_id=recording.encryption_key_id,
            started_at=recording.started_at,
            expires_at=recording.expires_at,
            device_info=recording.device_info,
            start_location=_location_to_json(recording.start_location),
            created_at=recording.created_at,
            updated_at=recording.updated_at,
            version=recording.version,
        )

        async with self._session_factory() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateRecordError(
                    f"active recording exists for ride {recording.ride_id} and user {recording.user_id}"
                ) from e

    async def get_recording(self, recording_id: str) -> Recording:
        """Fetch a recording.

        Raises:
            RecordNotFoundError: If no row has this ID
        """
        async with self._session_factory() as session:
            result = await session.execute(select(RecordingDB).where(RecordingDB.id == recording_id))
            row = result.scalar_one_or_none()

        if row is None:
            raise RecordNotFoundError(recording_id)
        return _to_recording(row)

    async def get_recordings_by_ride(self, ride_id: str) -> List[Recording]:
        """All non-deleted recordings of a ride, oldest first"""
        stmt = (
            select(RecordingDB)
            .where(RecordingDB.ride_id == ride_id, RecordingDB.status != RecordingStatus.DELETED.value)
            .order_by(RecordingDB.started_at.asc())
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_to_recording(row) for row in result.scalars().all()]

    async def get_active_recording_for_ride(self, ride_id: str, user_id: str) -> Optional[Recording]:
        """The recorder's active session on a ride, if any"""
        stmt = (
            select(RecordingDB)
            .where(
                RecordingDB.ride_id == ride_id,
                RecordingDB.user_id == user_id,
                RecordingDB.status.notin_(_status_values(TERMINAL_STATUSES)),
            )
            .order_by(RecordingDB.created_at.desc())
            .limit(1)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()

        return _to_recording(row) if row else None

    async def _update_recording(
        self,
        recording_id: str,
        values: Dict[str, Any],
        expected_version: Optional[int] = None,
        from_statuses: Optional[Iterable[RecordingStatus]] = None,
    ) -> int:
        """Apply a conditional update, bumping version and updated_at.

        Returns:
            Number of rows updated
        """
        stmt = update(RecordingDB).where(RecordingDB.id == recording_id)
        if expected_version is not None:
            stmt = stmt.where(RecordingDB.version == expected_version)
        if from_statuses is not None:
            stmt = stmt.where(RecordingDB.status.in_(_status_values(from_statuses)))

        stmt = stmt.values(
            **values,
            version=RecordingDB.version + 1,
            updated_at=datetime.utcnow(),
        ).execution_options(synchronize_session=False)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount

    async def _apply_transition(
        self,
        recording_id: str,
        values: Dict[str, Any],
        expected_version: Optional[int],
    ) -> None:
        updated = await self._update_recording(recording_id, values, expected_version)
        if updated:
            return

        if expected_version is not None and await self._recording_exists(recording_id):
            raise StaleRecordError(
                f"recording {recording_id} changed since version {expected_version}"
            )
        raise RecordNotFoundError(recording_id)

    async def _recording_exists(self, recording_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count()).select_from(RecordingDB).where(RecordingDB.id == recording_id)
            )
            return result.scalar_one() > 0

    async def update_recording_status(
        self,
        recording_id: str,
        status: RecordingStatus,
        expected_version: Optional[int] = None,
    ) -> None:
        await self._apply_transition(recording_id, {"status": status.value}, expected_version)

    async def update_recording_stopped(
        self,
        recording_id: str,
        ended_at: datetime,
        end_location: Optional[Location] = None,
        expected_version: Optional[int] = None,
    ) -> None:
        values = {"status": RecordingStatus.STOPPED.value, "ended_at": ended_at}
        if end_location is not None:
            values["end_location"] = _location_to_json(end_location)
        await self._apply_transition(recording_id, values, expected_version)

    async def update_recording_upload(
        self,
        recording_id: str,
        upload_id: str,
        chunks_received: int,
        total_chunks: int,
        expected_version: Optional[int] = None,
    ) -> None:
        """Persist chunk progress; the row becomes ``uploading`` once all chunks arrived"""
        values = {
            "upload_id": upload_id,
            "chunks_received": chunks_received,
            "total_chunks": total_chunks,
        }
        if chunks_received >= total_chunks:
            values["status"] = RecordingStatus.UPLOADING.value
        await self._apply_transition(recording_id, values, expected_version)

    async def update_recording_completed(
        self,
        recording_id: str,
        file_url: str,
        file_size: int,
        duration_seconds: int,
        expected_version: Optional[int] = None,
    ) -> None:
        """Record the finished upload and mark the row ``uploaded``"""
        values = {
            "status": RecordingStatus.UPLOADED.value,
            "file_url": file_url,
            "file_size": file_size,
            "duration_seconds": duration_seconds,
            "uploaded_at": datetime.utcnow(),
        }
        await self._apply_transition(recording_id, values, expected_version)

    async def update_recording_processed(self, recording_id: str, thumbnail_url: Optional[str] = None) -> bool:
        """Mark a recording ``completed`` after post-processing.

        Only rows still awaiting processing are touched, so repeated delivery
        of the same job is harmless.

        Returns:
            True if the row was updated
        """
        updated = await self._update_recording(
            recording_id,
            {
                "status": RecordingStatus.COMPLETED.value,
                "thumbnail_url": thumbnail_url,
                "processed_at": datetime.utcnow(),
            },
            from_statuses=(RecordingStatus.UPLOADED, RecordingStatus.PROCESSING),
        )
        return updated > 0

    async def update_retention_policy(
        self,
        recording_id: str,
        policy: RetentionPolicy,
        expires_at: datetime,
    ) -> None:
        await self._apply_transition(
            recording_id,
            {"retention_policy": policy.value, "expires_at": expires_at},
            expected_version=None,
        )

    async def get_expired_recordings(self, limit: int) -> List[Recording]:
        """Recordings past expiry that still hold (or may hold) media"""
        stmt = (
            select(RecordingDB)
            .where(
                RecordingDB.expires_at < datetime.utcnow(),
                RecordingDB.status.notin_(
                    _status_values((RecordingStatus.DELETED, RecordingStatus.FAILED))
                ),
            )
            .order_by(RecordingDB.expires_at.asc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_to_recording(row) for row in result.scalars().all()]

    async def mark_recording_deleted(self, recording_id: str, expected_version: Optional[int] = None) -> None:
        """Soft-delete: status ``deleted`` and file_url cleared, row kept for audit"""
        await self._apply_transition(
            recording_id,
            {"status": RecordingStatus.DELETED.value, "file_url": None},
            expected_version,
        )

    # ========================================
    # CONSENT OPERATIONS
    # ========================================

    async def create_consent(self, consent: Consent) -> None:
        """Upsert the (ride, user) consent row; the latest write wins"""
        async with self._session_factory() as session:
            stmt = self._insert(session, ConsentDB).values(
                id=consent.id,
                ride_id=consent.ride_id,
                user_id=consent.user_id,
                user_type=consent.user_type.value,
                consented=consent.consented,
                consented_at=consent.consented_at,
                ip_address=consent.ip_address,
                user_agent=consent.user_agent,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[ConsentDB.ride_id, ConsentDB.user_id],
                set_={
                    "consented": stmt.excluded.consented,
                    "consented_at": stmt.excluded.consented_at,
                    "ip_address": stmt.excluded.ip_address,
                    "user_agent": stmt.excluded.user_agent,
                },
            )
            await session.execute(stmt)
            await session.commit()

    async def get_consent(self, ride_id: str, user_id: str) -> Consent:
        """
        Raises:
            RecordNotFoundError: If the user never answered for this ride
        """
        stmt = select(ConsentDB).where(ConsentDB.ride_id == ride_id, ConsentDB.user_id == user_id)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()

        if row is None:
            raise RecordNotFoundError(f"consent for ride {ride_id} user {user_id}")
        return _to_consent(row)

    async def check_all_consented(self, ride_id: str) -> bool:
        """True iff exactly two parties answered and both consented"""
        stmt = select(ConsentDB.consented).where(ConsentDB.ride_id == ride_id)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            answers = list(result.scalars().all())

        return len(answers) == 2 and all(answers)

    # ========================================
    # ACCESS LOG OPERATIONS
    # ========================================

    async def log_access(self, entry: AccessLog) -> None:
        async with self._session_factory() as session:
            session.add(AccessLogDB(
                id=entry.id,
                recording_id=entry.recording_id,
                accessed_by=entry.accessed_by,
                access_type=entry.access_type.value,
                reason=entry.reason,
                ip_address=entry.ip_address,
                accessed_at=entry.accessed_at,
            ))
            await session.commit()

    async def get_access_logs(self, recording_id: str) -> List[AccessLog]:
        """Audit entries for a recording, newest first"""
        stmt = (
            select(AccessLogDB)
            .where(AccessLogDB.recording_id == recording_id)
            .order_by(AccessLogDB.accessed_at.desc())
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_to_access_log(row) for row in result.scalars().all()]

    # ========================================
    # SETTINGS OPERATIONS
    # ========================================

    async def get_settings(self, user_id: str) -> RecordingSettings:
        """Stored preferences, or synthesized defaults (not persisted)"""
        stmt = select(RecordingSettingsDB).where(RecordingSettingsDB.user_id == user_id)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()

        if row is None:
            return RecordingSettings.defaults_for(user_id)

        return RecordingSettings(
            user_id=row.user_id,
            recording_enabled=row.recording_enabled,
            default_type=RecordingType(row.default_type),
            default_quality=row.default_quality,
            auto_record_night_rides=row.auto_record_night_rides,
            auto_record_sos_rides=row.auto_record_sos_rides,
            notify_on_recording=row.notify_on_recording,
            allow_driver_recording=row.allow_driver_recording,
            allow_rider_recording=row.allow_rider_recording,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    async def upsert_settings(self, settings: RecordingSettings) -> None:
        now = datetime.utcnow()
        preferences = {
            "recording_enabled": settings.recording_enabled,
            "default_type": settings.default_type.value,
            "default_quality": settings.default_quality,
            "auto_record_night_rides": settings.auto_record_night_rides,
            "auto_record_sos_rides": settings.auto_record_sos_rides,
            "notify_on_recording": settings.notify_on_recording,
            "allow_driver_recording": settings.allow_driver_recording,
            "allow_rider_recording": settings.allow_rider_recording,
        }

        async with self._session_factory() as session:
            stmt = self._insert(session, RecordingSettingsDB).values(
                user_id=settings.user_id,
                created_at=now,
                updated_at=now,
                **preferences,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[RecordingSettingsDB.user_id],
                set_={**preferences, "updated_at": now},
            )
            await session.execute(stmt)
            await session.commit()

    # ========================================
    # STATISTICS
    # ========================================

    async def get_recording_stats(self) -> RecordingStats:
        not_deleted = RecordingDB.status != RecordingStatus.DELETED.value

        async with self._session_factory() as session:
            total = await session.scalar(select(func.count()).select_from(RecordingDB).where(not_deleted))

            total_seconds = await session.scalar(
                select(func.coalesce(func.sum(RecordingDB.duration_seconds), 0))
                .where(RecordingDB.status == RecordingStatus.COMPLETED.value)
            )
            total_bytes = await session.scalar(
                select(func.coalesce(func.sum(RecordingDB.file_size), 0))
                .where(RecordingDB.file_size.isnot(None))
            )
            active = await session.scalar(
                select(func.count()).select_from(RecordingDB)
                .where(RecordingDB.status == RecordingStatus.RECORDING.value)
            )
            pending = await session.scalar(
                select(func.count()).select_from(RecordingDB)
                .where(RecordingDB.status.in_(
                    _status_values((RecordingStatus.STOPPED, RecordingStatus.UPLOADING))
                ))
            )

            by_type = await session.execute(
                select(RecordingDB.recording_type, func.count())
                .where(not_deleted)
                .group_by(RecordingDB.recording_type)
            )
            by_status = await session.execute(
                select(RecordingDB.status, func.count()).group_by(RecordingDB.status)
            )

            return RecordingStats(
                total_recordings=total or 0,
                total_duration_hours=float(total_seconds or 0) / 3600.0,
                total_storage_gb=float(total_bytes or 0) / _BYTES_PER_GB,
                active_recordings=active or 0,
                pending_uploads=pending or 0,
                recordings_by_type={kind: count for kind, count in by_type.all()},
                recordings_by_status={status: count for status, count in by_status.all()},
            )
