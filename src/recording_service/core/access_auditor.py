"""
Access Auditor

Append-only record of who was handed a media URL for a recording, and why.
"""

import logging
from typing import List, Optional

from recording_service.core.dead_letter import ACCESS_LOG, DeadLetterSink
from recording_service.core.exceptions import InternalError
from recording_service.infrastructure.database.repository import RecordingRepository
from recording_service.models.recording import AccessLog, AccessType

logger = logging.getLogger(__name__)


class AccessAuditor:
    """Writes and lists recording access audit entries"""

    def __init__(self, repository: RecordingRepository, dead_letters: Optional[DeadLetterSink] = None):
        self.repository = repository
        self.dead_letters = dead_letters or DeadLetterSink()

    async def record_access(
        self,
        recording_id: str,
        accessed_by: str,
        access_type: AccessType,
        reason: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> None:
        """
        Append an audit entry.

        Best effort: a failed write is dead-lettered and never propagated to
        the access request that triggered it.
        """
        entry = AccessLog(
            recording_id=recording_id,
            accessed_by=accessed_by,
            access_type=access_type,
            reason=reason,
            ip_address=ip_address,
        )

        try:
            await self.repository.log_access(entry)
        except Exception as e:
            self.dead_letters.record(
                ACCESS_LOG,
                recording_id,
                e,
                payload={"accessed_by": accessed_by, "access_type": access_type.value, "reason": reason},
            )
            return

        logger.info(f"Recorded {access_type.value} of recording {recording_id} by {accessed_by}")

    async def list_access(self, recording_id: str) -> List[AccessLog]:
        """Audit entries for a recording, newest first"""
        try:
            return await self.repository.get_access_logs(recording_id)
        except Exception as e:
            logger.error(f"Failed to list access logs for recording {recording_id}: {e}")
            raise InternalError("failed to get access logs") from e
