"""
Admin Recording API Routes

Support and compliance endpoints: audited access to any recording,
retention changes, cleanup and reconciliation of failed side effects.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request

from recording_service.api.dependencies import (
    CurrentUser,
    get_client_ip,
    get_recording_manager,
    get_retention_scheduler,
    get_services,
    require_admin,
)
from recording_service.core.recording_manager import ADMIN_REVIEW_REASON, RecordingManager
from recording_service.core.retention_scheduler import MAX_CLEANUP_BATCH_SIZE, RetentionScheduler
from recording_service.core.services import RecordingServices
from recording_service.models import (
    AccessLogListResponse,
    CleanupResponse,
    ExtendRetentionRequest,
    ExtendRetentionResponse,
    GetRecordingResponse,
    RecordingStats,
)

router = APIRouter(prefix="/api/v1/admin/recordings", tags=["admin"])
logger = logging.getLogger(__name__)


@router.get("/stats", response_model=RecordingStats, summary="Recording Statistics")
async def get_stats(
    admin: CurrentUser = Depends(require_admin),
    manager: RecordingManager = Depends(get_recording_manager)
) -> RecordingStats:
    """Aggregate counts, hours recorded and storage used"""
    return await manager.get_recording_stats()


@router.get("/dead-letters", summary="Failed Side Effects")
async def list_dead_letters(
    kind: Optional[str] = Query(None, description="storage_delete, access_log or post_processing"),
    admin: CurrentUser = Depends(require_admin),
    services: RecordingServices = Depends(get_services)
) -> Dict[str, List[Dict[str, Any]]]:
    """Object deletes, audit writes and processing jobs that failed and need reconciliation"""
    entries = services.dead_letters.entries(kind)
    return {"dead_letters": [entry.to_dict() for entry in entries]}


@router.post(
    "/cleanup",
    response_model=CleanupResponse,
    summary="Clean Up Expired Recordings",
    description="""
Delete one batch (at most 100) of recordings whose retention expired.

**Workflow**:
1. Loads expired recordings that are not already deleted or failed
2. Removes each recording's media (failures are kept for reconciliation)
3. Marks each recording deleted; a failing row is skipped, not retried

**Authorization**: Requires X-User-Role: admin
    """
)
async def cleanup_expired(
    limit: Optional[int] = Query(None, ge=1, le=MAX_CLEANUP_BATCH_SIZE, description="Smaller batch size"),
    admin: CurrentUser = Depends(require_admin),
    retention: RetentionScheduler = Depends(get_retention_scheduler)
) -> CleanupResponse:
    deleted = await retention.cleanup_expired_recordings(limit)
    logger.info(f"Admin {admin.user_id} cleaned up {deleted} expired recordings")
    return CleanupResponse(deleted=deleted)


@router.get(
    "/{recording_id}",
    response_model=GetRecordingResponse,
    summary="Get Any Recording",
    description="""
Get a recording regardless of ownership. Issuing an access URL is logged as
`admin_view` together with the given reason.

**Authorization**: Requires X-User-Role: admin
    """
)
async def admin_get_recording(
    recording_id: str,
    request: Request,
    reason: str = Query(ADMIN_REVIEW_REASON, description="Why the recording is accessed"),
    admin: CurrentUser = Depends(require_admin),
    manager: RecordingManager = Depends(get_recording_manager)
) -> GetRecordingResponse:
    """Admin get recording"""
    return await manager.admin_get_recording(
        admin.user_id,
        recording_id,
        reason=reason,
        ip_address=get_client_ip(request)
    )


@router.get("/{recording_id}/access-logs", response_model=AccessLogListResponse, summary="Recording Access Log")
async def list_access_logs(
    recording_id: str,
    admin: CurrentUser = Depends(require_admin),
    services: RecordingServices = Depends(get_services)
) -> AccessLogListResponse:
    """Audit entries, newest first"""
    access_logs = await services.auditor.list_access(recording_id)
    return AccessLogListResponse(access_logs=access_logs)


@router.post("/{recording_id}/extend", response_model=ExtendRetentionResponse, summary="Extend Retention")
async def extend_retention(
    recording_id: str,
    body: ExtendRetentionRequest,
    admin: CurrentUser = Depends(require_admin),
    retention: RetentionScheduler = Depends(get_retention_scheduler)
) -> ExtendRetentionResponse:
    """Set a retention policy; expiry is recomputed from now (7d, 30d or 10y)"""
    expires_at = await retention.extend_retention(recording_id, body.policy)
    logger.info(f"Admin {admin.user_id} set retention of {recording_id} to {body.policy.value}")
    return ExtendRetentionResponse(recording_id=recording_id, policy=body.policy, expires_at=expires_at)
