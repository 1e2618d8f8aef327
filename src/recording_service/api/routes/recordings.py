"""
Recording API Routes

RESTful endpoints for the ride recording lifecycle, consent and preferences.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from recording_service.api.dependencies import (
    CurrentUser,
    get_client_ip,
    get_consent_ledger,
    get_current_user,
    get_recording_manager,
    get_services,
)
from recording_service.config.settings import settings
from recording_service.core.consent_ledger import ConsentLedger
from recording_service.core.recording_manager import RecordingManager
from recording_service.core.services import RecordingServices
from recording_service.infrastructure.database.client import db_client
from recording_service.models import (
    CompleteUploadRequest,
    Consent,
    ConsentCheckResponse,
    GetRecordingResponse,
    HealthResponse,
    MessageResponse,
    RecordingConsentRequest,
    RecordingListResponse,
    RecordingSettings,
    StartRecordingRequest,
    StartRecordingResponse,
    StopRecordingRequest,
    StopRecordingResponse,
    UpdateSettingsRequest,
    UploadProgressRequest,
)

router = APIRouter(prefix="/api/v1/recordings", tags=["recordings"])
logger = logging.getLogger(__name__)


@router.post(
    "/start",
    response_model=StartRecordingResponse,
    status_code=201,
    summary="Start Recording",
    description="""
Start an audio or video recording for a ride.

**Workflow**:
1. Rejects the request if the caller already has an active recording for the ride
2. Creates the recording (status `initialized`, standard 7-day retention)
3. Issues a presigned upload URL for `recordings/{ride_id}/{user_id}/{recording_id}.{ext}`
4. Promotes the recording to `recording` and returns the URL and limits

The client uploads media directly to the returned URL (PUT, 1 hour validity).

**Authorization**: Requires X-User-ID header; X-User-Role selects rider/driver
    """,
    responses={
        201: {"description": "Recording started"},
        409: {"description": "Recording already in progress for this ride"},
        500: {"description": "Database or storage failure"}
    }
)
async def start_recording(
    body: StartRecordingRequest,
    user: CurrentUser = Depends(get_current_user),
    manager: RecordingManager = Depends(get_recording_manager)
) -> StartRecordingResponse:
    """Start recording"""
    return await manager.start_recording(
        user_id=user.user_id,
        user_type=user.user_type,
        ride_id=body.ride_id,
        recording_type=body.recording_type,
        quality=body.quality,
        device_info=body.device_info,
        location=body.location
    )


@router.post(
    "/stop",
    response_model=StopRecordingResponse,
    summary="Stop Recording",
    description="""
Stop a recording that is `recording` or `paused`. Returns the elapsed whole
seconds since the recording started.

**Authorization**: Recorder only
    """,
    responses={
        200: {"description": "Recording stopped"},
        400: {"description": "Recording is not active"},
        403: {"description": "Caller is not the recorder"},
        404: {"description": "Recording not found"}
    }
)
async def stop_recording(
    body: StopRecordingRequest,
    user: CurrentUser = Depends(get_current_user),
    manager: RecordingManager = Depends(get_recording_manager)
) -> StopRecordingResponse:
    """Stop recording"""
    return await manager.stop_recording(user.user_id, body.recording_id, location=body.location)


@router.post("/upload-progress", response_model=MessageResponse, summary="Report Upload Progress")
async def record_upload_progress(
    body: UploadProgressRequest,
    user: CurrentUser = Depends(get_current_user),
    manager: RecordingManager = Depends(get_recording_manager)
) -> MessageResponse:
    """Report chunked upload progress"""
    await manager.record_upload_progress(
        user.user_id,
        body.recording_id,
        body.upload_id,
        body.chunks_received,
        body.total_chunks
    )
    return MessageResponse(message="Upload progress recorded")


@router.post(
    "/complete",
    response_model=MessageResponse,
    summary="Complete Upload",
    description="""
Finalize an upload after the media was PUT to the presigned URL.

**Workflow**:
1. Checks ownership and the maximum file size (default 524288000 bytes)
2. Stores the object URL, size and duration; status becomes `uploaded`
3. Queues post-processing; the recording becomes `completed` shortly after

**Authorization**: Recorder only
    """,
    responses={
        200: {"description": "Upload completed"},
        400: {"description": "File too large or recording not awaiting upload"},
        403: {"description": "Caller is not the recorder"},
        404: {"description": "Recording not found"}
    }
)
async def complete_upload(
    body: CompleteUploadRequest,
    user: CurrentUser = Depends(get_current_user),
    manager: RecordingManager = Depends(get_recording_manager)
) -> MessageResponse:
    """Complete upload"""
    await manager.complete_upload(user.user_id, body.recording_id, body.total_size, body.duration_seconds)
    return MessageResponse(message="Upload completed successfully")


@router.post("/consent", response_model=Consent, summary="Record Consent")
async def record_consent(
    body: RecordingConsentRequest,
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    user_agent: Optional[str] = Header(None, alias="User-Agent"),
    ledger: ConsentLedger = Depends(get_consent_ledger)
) -> Consent:
    """Record the caller's consent to be recorded on a ride (latest answer wins)"""
    return await ledger.record_consent(
        user_id=user.user_id,
        user_type=user.user_type,
        ride_id=body.ride_id,
        consented=body.consented,
        ip_address=get_client_ip(request),
        user_agent=user_agent
    )


@router.get("/consent/{ride_id}", response_model=ConsentCheckResponse, summary="Check Ride Consent")
async def check_consent(
    ride_id: str,
    user: CurrentUser = Depends(get_current_user),
    ledger: ConsentLedger = Depends(get_consent_ledger)
) -> ConsentCheckResponse:
    """True only when both ride participants consented"""
    all_consented = await ledger.check_consent(ride_id)
    return ConsentCheckResponse(ride_id=ride_id, all_consented=all_consented)


@router.get("/consent/{ride_id}/me", response_model=Consent, summary="Get My Consent")
async def get_my_consent(
    ride_id: str,
    user: CurrentUser = Depends(get_current_user),
    ledger: ConsentLedger = Depends(get_consent_ledger)
) -> Consent:
    return await ledger.get_consent(ride_id, user.user_id)


@router.get("/settings", response_model=RecordingSettings, summary="Get Recording Settings")
async def get_settings(
    user: CurrentUser = Depends(get_current_user),
    manager: RecordingManager = Depends(get_recording_manager)
) -> RecordingSettings:
    """Caller's recording preferences (defaults if never saved)"""
    return await manager.get_settings(user.user_id)


@router.put("/settings", response_model=RecordingSettings, summary="Update Recording Settings")
async def update_settings(
    body: UpdateSettingsRequest,
    user: CurrentUser = Depends(get_current_user),
    manager: RecordingManager = Depends(get_recording_manager)
) -> RecordingSettings:
    """Replace the caller's recording preferences"""
    return await manager.update_settings(RecordingSettings(user_id=user.user_id, **body.model_dump()))


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Detailed Health Check",
    description="""
Checks storage and database availability.

**Response**: `status` is `healthy` when both are reachable, `degraded` otherwise.
**Authorization**: None required
    """
)
async def health_check(services: RecordingServices = Depends(get_services)) -> HealthResponse:
    """Health check with storage and database status"""
    storage_ok = await services.storage.health_check()
    database_ok = await db_client.health_check()

    return HealthResponse(
        status="healthy" if storage_ok and database_ok else "degraded",
        service=settings.service_name,
        storage_available=storage_ok,
        database_available=database_ok
    )


@router.get("/ride/{ride_id}", response_model=RecordingListResponse, summary="List Ride Recordings")
async def get_ride_recordings(
    ride_id: str,
    user: CurrentUser = Depends(get_current_user),
    manager: RecordingManager = Depends(get_recording_manager)
) -> RecordingListResponse:
    """Non-deleted recordings of a ride, oldest first"""
    recordings = await manager.get_recordings_for_ride(ride_id)
    return RecordingListResponse(recordings=recordings)


@router.get(
    "/{recording_id}",
    response_model=GetRecordingResponse,
    summary="Get Recording",
    description="""
Get a recording. Completed recordings include a presigned download URL
(1 hour validity); every URL issued is written to the access audit log.

**Authorization**: Recorder only (admins use `/api/v1/admin/recordings/{id}`)
    """,
    responses={
        200: {"description": "Recording returned"},
        403: {"description": "Caller is not the recorder"},
        404: {"description": "Recording not found"}
    }
)
async def get_recording(
    recording_id: str,
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    manager: RecordingManager = Depends(get_recording_manager)
) -> GetRecordingResponse:
    """Get recording"""
    return await manager.get_recording(user.user_id, recording_id, ip_address=get_client_ip(request))


@router.post("/{recording_id}/pause", response_model=MessageResponse, summary="Pause Recording")
async def pause_recording(
    recording_id: str,
    user: CurrentUser = Depends(get_current_user),
    manager: RecordingManager = Depends(get_recording_manager)
) -> MessageResponse:
    await manager.pause_recording(user.user_id, recording_id)
    return MessageResponse(message="Recording paused")


@router.post("/{recording_id}/resume", response_model=MessageResponse, summary="Resume Recording")
async def resume_recording(
    recording_id: str,
    user: CurrentUser = Depends(get_current_user),
    manager: RecordingManager = Depends(get_recording_manager)
) -> MessageResponse:
    await manager.resume_recording(user.user_id, recording_id)
    return MessageResponse(message="Recording resumed")


@router.delete(
    "/{recording_id}",
    response_model=MessageResponse,
    summary="Delete Recording",
    description="""
Delete a recording. The stored media is removed (best effort) and the
recording is kept as a `deleted` row for auditing.

**Authorization**: Recorder only
    """,
    responses={
        200: {"description": "Recording deleted"},
        403: {"description": "Caller is not the recorder"},
        404: {"description": "Recording not found"}
    }
)
async def delete_recording(
    recording_id: str,
    user: CurrentUser = Depends(get_current_user),
    manager: RecordingManager = Depends(get_recording_manager)
) -> MessageResponse:
    """Delete recording"""
    await manager.delete_recording(user.user_id, recording_id)
    return MessageResponse(message="Recording deleted successfully")
