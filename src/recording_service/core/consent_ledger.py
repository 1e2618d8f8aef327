"""
Consent Ledger

Per-ride, per-user record of agreement to be recorded. Each party has a
single row per ride; answering again overwrites the previous answer.
"""

import logging
from typing import Optional

from recording_service.core.exceptions import (
    BadRequestError,
    InternalError,
    NotFoundError,
    RecordNotFoundError,
)
from recording_service.infrastructure.database.repository import RecordingRepository
from recording_service.models.recording import Consent, UserRole

logger = logging.getLogger(__name__)


class ConsentLedger:
    """Records and checks ride recording consent"""

    def __init__(self, repository: RecordingRepository):
        self.repository = repository

    async def record_consent(
        self,
        user_id: str,
        user_type: UserRole,
        ride_id: str,
        consented: bool,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Consent:
        """
        Upsert the user's consent for a ride.

        The timestamp is taken here, never from the client.

        Raises:
            BadRequestError: If ride or user ID is missing
            InternalError: If the write fails
        """
        if not ride_id or not user_id:
            raise BadRequestError("ride_id and user_id are required")

        consent = Consent(
            ride_id=ride_id,
            user_id=user_id,
            user_type=user_type,
            consented=consented,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        try:
            await self.repository.create_consent(consent)
        except Exception as e:
            logger.error(f"Failed to record consent for ride {ride_id} user {user_id}: {e}")
            raise InternalError("failed to record consent") from e

        logger.info(f"User {user_id} {'granted' if consented else 'declined'} recording consent for ride {ride_id}")
        return consent

    async def check_consent(self, ride_id: str) -> bool:
        """True iff both ride parties answered and both consented"""
        if not ride_id:
            raise BadRequestError("ride_id is required")

        try:
            return await self.repository.check_all_consented(ride_id)
        except Exception as e:
            logger.error(f"Failed to check consent for ride {ride_id}: {e}")
            raise InternalError("failed to check consent") from e

    async def get_consent(self, ride_id: str, user_id: str) -> Consent:
        """
        Raises:
            NotFoundError: If the user has not answered for this ride
        """
        try:
            return await self.repository.get_consent(ride_id, user_id)
        except RecordNotFoundError:
            raise NotFoundError("consent not found")
        except Exception as e:
            logger.error(f"Failed to get consent for ride {ride_id} user {user_id}: {e}")
            raise InternalError("failed to get consent") from e
