"""
Retention Scheduler

Policy-driven expiry and batched cleanup of expired recordings. Cleanup runs
one bounded batch per call and is meant to be triggered externally (cron,
scripts/cleanup_expired.py or the admin endpoint).
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from recording_service.core.dead_letter import STORAGE_DELETE, DeadLetterSink
from recording_service.core.exceptions import InternalError, NotFoundError, RecordNotFoundError
from recording_service.infrastructure.database.repository import RecordingRepository
from recording_service.infrastructure.storage.provider import StorageProvider
from recording_service.models.recording import RetentionPolicy

logger = logging.getLogger(__name__)

DEFAULT_CLEANUP_BATCH_SIZE = 100
MAX_CLEANUP_BATCH_SIZE = 100

STANDARD_RETENTION = timedelta(days=7)
EXTENDED_RETENTION = timedelta(days=30)
PERMANENT_RETENTION_YEARS = 10


def _add_years(moment: datetime, years: int) -> datetime:
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        # Feb 29 into a non-leap year
        return moment.replace(year=moment.year + years, day=28)


def compute_expiry(policy: RetentionPolicy, now: Optional[datetime] = None) -> datetime:
    """Expiry of a recording kept under ``policy`` starting at ``now``"""
    now = now or datetime.utcnow()

    if policy == RetentionPolicy.PERMANENT:
        return _add_years(now, PERMANENT_RETENTION_YEARS)
    if policy == RetentionPolicy.EXTENDED:
        return now + EXTENDED_RETENTION
    return now + STANDARD_RETENTION


class RetentionScheduler:
    """Applies retention policies and purges expired recordings"""

    def __init__(
        self,
        repository: RecordingRepository,
        storage: StorageProvider,
        dead_letters: Optional[DeadLetterSink] = None,
        batch_size: int = DEFAULT_CLEANUP_BATCH_SIZE,
    ):
        self.repository = repository
        self.storage = storage
        self.dead_letters = dead_letters or DeadLetterSink()
        if batch_size <= 0:
            batch_size = DEFAULT_CLEANUP_BATCH_SIZE
        self.batch_size = min(batch_size, MAX_CLEANUP_BATCH_SIZE)

    async def extend_retention(self, recording_id: str, policy: RetentionPolicy) -> datetime:
        """
        Recompute a recording's expiry from now under a new policy.

        The new expiry replaces the old one unconditionally, so a weaker
        policy shortens a previously extended window.

        Returns:
            The new expiry

        Raises:
            NotFoundError: If the recording does not exist
            InternalError: If the update fails
        """
        expires_at = compute_expiry(policy)

        try:
            await self.repository.update_retention_policy(recording_id, policy, expires_at)
        except RecordNotFoundError:
            raise NotFoundError("recording not found")
        except Exception as e:
            logger.error(f"Failed to extend retention for recording {recording_id}: {e}")
            raise InternalError("failed to extend retention") from e

        logger.info(f"Retention of recording {recording_id} set to {policy.value} (expires {expires_at.isoformat()})")
        return expires_at

    async def cleanup_expired_recordings(self, limit: Optional[int] = None) -> int:
        """
        Delete one batch of expired recordings.

        Object deletes are best effort and dead-lettered on failure. A row
        that cannot be marked deleted is skipped; the rest of the batch
        still runs. ``limit`` can shrink the batch but never raise it above
        ``batch_size``.

        Returns:
            Number of recordings marked deleted
        """
        limit = min(limit, self.batch_size) if limit else self.batch_size

        try:
            expired = await self.repository.get_expired_recordings(limit)
        except Exception as e:
            logger.error(f"Failed to load expired recordings: {e}")
            raise InternalError("failed to get expired recordings") from e

        deleted = 0
        for recording in expired:
            if recording.file_url:
                try:
                    await self.storage.delete(recording.object_key)
                except Exception as e:
                    self.dead_letters.record(
                        STORAGE_DELETE,
                        recording.id,
                        e,
                        payload={"object_key": recording.object_key, "source": "cleanup"},
                    )

            try:
                await self.repository.mark_recording_deleted(recording.id)
            except Exception as e:
                logger.error(f"Failed to mark expired recording {recording.id} deleted: {e}")
                continue

            deleted += 1

        logger.info(f"Cleaned up {deleted}/{len(expired)} expired recordings")
        return deleted
