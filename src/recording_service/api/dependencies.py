"""
API Dependencies

Caller identity from gateway headers and access to the wired services.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, Request

from recording_service.core.consent_ledger import ConsentLedger
from recording_service.core.exceptions import ForbiddenError
from recording_service.core.recording_manager import RecordingManager
from recording_service.core.retention_scheduler import RetentionScheduler
from recording_service.core.services import RecordingServices
from recording_service.models.recording import UserRole

ADMIN_ROLE = "admin"


@dataclass
class CurrentUser:
    """Caller as asserted by the API gateway"""

    user_id: str
    role: str = UserRole.RIDER.value

    @property
    def user_type(self) -> UserRole:
        """Ride role of the caller (rider unless the gateway says driver)"""
        if self.role == UserRole.DRIVER.value:
            return UserRole.DRIVER
        return UserRole.RIDER

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


async def get_current_user(
    x_user_id: str = Header(..., alias="X-User-ID"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
) -> CurrentUser:
    """Dependency for the authenticated caller"""
    role = (x_user_role or UserRole.RIDER.value).strip().lower()
    return CurrentUser(user_id=x_user_id, role=role)


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Dependency restricting a route to admins"""
    if not user.is_admin:
        raise ForbiddenError("admin access required")
    return user


def get_client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def get_services(request: Request) -> RecordingServices:
    """Dependency for the services wired at startup"""
    return request.app.state.services


def get_recording_manager(services: RecordingServices = Depends(get_services)) -> RecordingManager:
    return services.manager


def get_consent_ledger(services: RecordingServices = Depends(get_services)) -> ConsentLedger:
    return services.consent


def get_retention_scheduler(services: RecordingServices = Depends(get_services)) -> RetentionScheduler:
    return services.retention
