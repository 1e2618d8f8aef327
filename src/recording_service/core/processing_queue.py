"""
Post-Processing Queue

Asyncio worker pool that runs recording post-processing outside the request
that completed the upload. Delivery is at-least-once: failed jobs are
re-queued until ``max_retries`` attempts are used up, then handed to the
exhaustion callback. The queue keeps no record of finished jobs.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, List, Optional
from uuid import uuid4

logger = logging.getLogger(__name__)

JobHandler = Callable[[str], Awaitable[None]]
ExhaustedHandler = Callable[[str, Exception], Awaitable[None]]


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ProcessingJob:
    """Post-processing request for one recording"""

    recording_id: str
    max_retries: int
    id: str = field(default_factory=lambda: str(uuid4()))
    status: JobStatus = JobStatus.PENDING
    attempts: int = 0
    error: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None


class ProcessingQueue:
    """
    Worker pool for recording post-processing.

    Example usage:
        queue = ProcessingQueue(manager.process_recording, delay_seconds=2)
        await queue.start()
        queue.submit(recording_id)
        await queue.shutdown()
    """

    def __init__(
        self,
        handler: JobHandler,
        on_exhausted: Optional[ExhaustedHandler] = None,
        workers: int = 2,
        max_retries: int = 3,
        delay_seconds: float = 2.0,
    ):
        """
        Args:
            handler: Idempotent coroutine processing one recording ID
            on_exhausted: Called once a job has failed ``max_retries`` times
            workers: Number of concurrent worker coroutines
            max_retries: Attempts per job before ``on_exhausted`` is called
            delay_seconds: Wait before each attempt
        """
        self._handler = handler
        self._on_exhausted = on_exhausted
        self._worker_count = max(1, workers)
        self._max_retries = max(1, max_retries)
        self._delay = max(0.0, delay_seconds)

        self._queue: asyncio.Queue = asyncio.Queue()
        self._workers: List[asyncio.Task] = []
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start worker coroutines"""
        if self._running:
            logger.warning("Processing queue already running")
            return

        self._running = True
        for worker_id in range(self._worker_count):
            self._workers.append(asyncio.create_task(self._worker_loop(worker_id)))

        logger.info(f"Processing queue started with {self._worker_count} workers")

    async def shutdown(self, drain: bool = True) -> None:
        """
        Stop the worker pool.

        Args:
            drain: If True, wait for queued jobs (including retries) to finish
                   before cancelling workers
        """
        if not self._running:
            return

        logger.info(f"Shutting down processing queue (drain={drain})")

        if drain:
            await self._queue.join()

        self._running = False
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()

        logger.info(f"Processing queue stopped: {self.pending_count()} pending")

    def submit(self, recording_id: str) -> ProcessingJob:
        """Enqueue post-processing for a recording without waiting for it"""
        job = ProcessingJob(recording_id=recording_id, max_retries=self._max_retries)
        self._queue.put_nowait(job)

        logger.info(f"Queued post-processing job {job.id} for recording {recording_id}")
        return job

    def pending_count(self) -> int:
        return self._queue.qsize()

    async def join(self) -> None:
        """Wait until every queued job has been handled"""
        await self._queue.join()

    async def _worker_loop(self, worker_id: int) -> None:
        logger.debug(f"Processing worker {worker_id} started")

        while True:
            await self._process_next()

    async def _process_next(self) -> None:
        job = await self._queue.get()
        try:
            await self._execute(job)
        finally:
            self._queue.task_done()

    async def _execute(self, job: ProcessingJob) -> None:
        if self._delay:
            await asyncio.sleep(self._delay)

        job.status = JobStatus.RUNNING
        job.attempts += 1

        try:
            await self._handler(job.recording_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            job.error = f"{type(e).__name__}: {e}"

            if job.attempts < job.max_retries:
                job.status = JobStatus.PENDING
                self._queue.put_nowait(job)
                logger.warning(
                    f"Post-processing of recording {job.recording_id} failed "
                    f"(attempt {job.attempts}/{job.max_retries}), retrying: {e}"
                )
                return

            job.status = JobStatus.FAILED
            job.completed_at = datetime.utcnow()
            logger.error(
                f"Post-processing of recording {job.recording_id} failed after "
                f"{job.attempts} attempts: {e}"
            )
            await self._notify_exhausted(job, e)
            return

        job.status = JobStatus.COMPLETED
        job.completed_at = datetime.utcnow()
        logger.info(f"Post-processing job {job.id} completed for recording {job.recording_id}")

    async def _notify_exhausted(self, job: ProcessingJob, error: Exception) -> None:
        if self._on_exhausted is None:
            return
        try:
            await self._on_exhausted(job.recording_id, error)
        except Exception as e:
            logger.error(f"Exhaustion handler failed for recording {job.recording_id}: {e}")
