"""
Service Wiring

Builds the recording components on top of a session factory and a storage
provider. Used by the application lifespan and the cleanup script.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from recording_service.config.settings import Settings, settings as default_settings
from recording_service.core.access_auditor import AccessAuditor
from recording_service.core.consent_ledger import ConsentLedger
from recording_service.core.dead_letter import DeadLetterSink
from recording_service.core.processing_queue import ProcessingQueue
from recording_service.core.recording_manager import RecordingConfig, RecordingManager
from recording_service.core.retention_scheduler import RetentionScheduler
from recording_service.infrastructure.database.repository import RecordingRepository
from recording_service.infrastructure.storage.provider import StorageProvider


@dataclass
class RecordingServices:
    repository: RecordingRepository
    storage: StorageProvider
    dead_letters: DeadLetterSink
    auditor: AccessAuditor
    manager: RecordingManager
    consent: ConsentLedger
    retention: RetentionScheduler
    processing_queue: ProcessingQueue


def build_services(
    session_factory: async_sessionmaker,
    storage: StorageProvider,
    settings: Optional[Settings] = None,
) -> RecordingServices:
    """Wire repository, storage and queue into the recording components"""
    settings = settings or default_settings

    repository = RecordingRepository(session_factory)
    dead_letters = DeadLetterSink()
    auditor = AccessAuditor(repository, dead_letters)

    manager = RecordingManager(
        repository,
        storage,
        config=RecordingConfig.from_settings(settings),
        auditor=auditor,
        dead_letters=dead_letters,
    )
    processing_queue = ProcessingQueue(
        manager.process_recording,
        on_exhausted=manager.mark_processing_failed,
        workers=settings.processing_workers,
        max_retries=settings.processing_max_retries,
        delay_seconds=settings.processing_delay_seconds,
    )
    manager.processing_queue = processing_queue

    return RecordingServices(
        repository=repository,
        storage=storage,
        dead_letters=dead_letters,
        auditor=auditor,
        manager=manager,
        consent=ConsentLedger(repository),
        retention=RetentionScheduler(
            repository,
            storage,
            dead_letters=dead_letters,
            batch_size=settings.cleanup_batch_size,
        ),
        processing_queue=processing_queue,
    )
