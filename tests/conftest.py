"""Shared test fixtures"""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from recording_service.core.dead_letter import DeadLetterSink
from recording_service.core.processing_queue import ProcessingQueue
from recording_service.core.recording_manager import RecordingConfig, RecordingManager
from recording_service.infrastructure.database.client import DatabaseClient
from recording_service.infrastructure.database.repository import RecordingRepository
from recording_service.infrastructure.storage.provider import PresignedURL, StorageProvider
from recording_service.models.recording import Recording, RecordingStatus, RecordingType


def build_recording(**overrides) -> Recording:
    """A recording owned by user-1 on ride-1 that started 90 seconds ago"""
    now = datetime.utcnow()
    values = {
        "id": "rec-1",
        "ride_id": "ride-1",
        "user_id": "user-1",
        "recording_type": RecordingType.AUDIO,
        "status": RecordingStatus.RECORDING,
        "started_at": now - timedelta(seconds=90),
        "expires_at": now + timedelta(days=7),
    }
    values.update(overrides)
    return Recording(**values)


@pytest.fixture
def make_recording():
    return build_recording


@pytest.fixture
def mock_repository():
    return AsyncMock(spec=RecordingRepository)


@pytest.fixture
def mock_storage():
    storage = AsyncMock(spec=StorageProvider)
    storage.get_url.side_effect = lambda key: f"https://cdn.example.com/{key}"
    storage.generate_presigned_upload_url.return_value = PresignedURL(
        url="https://storage.example.com/upload?signature=abc",
        method="PUT",
        expires_at=datetime.utcnow() + timedelta(hours=1),
        headers={"Content-Type": "audio/m4a"},
    )
    storage.generate_presigned_download_url.return_value = PresignedURL(
        url="https://storage.example.com/download?signature=def",
        method="GET",
        expires_at=datetime.utcnow() + timedelta(hours=1),
    )
    return storage


@pytest.fixture
def mock_queue():
    return AsyncMock(spec=ProcessingQueue)


@pytest.fixture
def dead_letters():
    return DeadLetterSink()


@pytest.fixture
def manager(mock_repository, mock_storage, mock_queue, dead_letters):
    return RecordingManager(
        mock_repository,
        mock_storage,
        config=RecordingConfig(),
        processing_queue=mock_queue,
        dead_letters=dead_letters,
    )


@pytest.fixture
async def database():
    client = DatabaseClient()
    await client.initialize("sqlite+aiosqlite:///:memory:")
    yield client
    await client.close()


@pytest.fixture
async def repository(database):
    return RecordingRepository(database.session_maker)
