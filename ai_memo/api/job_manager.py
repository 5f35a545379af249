"""Background AI jobs.

A job generates the summary or the tags of one note. It owns an
``AIStatusTracker`` that only the job runner writes to; each transition is
recorded as a ``StatusEvent`` and pushed to the job's queue so SSE streams can
follow it. Jobs live in memory for ``JobManager.TTL_SECONDS``.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from ai_memo.ai.status import AIProcessType, AIStatusTracker
from ai_memo.api.sse_models import CompleteEvent, ErrorEvent, SSEEvent, StatusEvent

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class Job(BaseModel):
    """Summary or tag generation for one note."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(description="노트 소유자")
    note_id: UUID = Field(description="처리 중인 노트")
    process_type: AIProcessType = Field(description="처리 종류")
    status: JobStatus = JobStatus.PENDING
    created_at: float = Field(default_factory=time.time)
    events: list[SSEEvent] = Field(default_factory=list, description="발생한 이벤트 (순서대로)")
    result: dict[str, Any] | None = None
    error: str | None = None
    tracker: AIStatusTracker = Field(default_factory=AIStatusTracker, exclude=True)

    @property
    def finished(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def is_expired(self, now: float, ttl: float) -> bool:
        return now - self.created_at > ttl


class JobManager:
    """In-memory registry of jobs and their event queues.

    A ``None`` pushed to a queue tells streams that no more events follow.
    """

    TTL_SECONDS = 3600

    def __init__(self) -> None:
        self._jobs: dict[UUID, Job] = {}
        self._queues: dict[UUID, asyncio.Queue[SSEEvent | None]] = {}
        self._lock = asyncio.Lock()

    async def create_job(self, user_id: str, note_id: UUID, process_type: AIProcessType) -> Job:
        async with self._lock:
            self._drop_expired()
            job = Job(user_id=user_id, note_id=note_id, process_type=process_type)
            self._jobs[job.id] = job
            self._queues[job.id] = asyncio.Queue()
        logger.debug(f"Job created: {job.id} ({process_type.value})")
        return job

    async def get_job(self, job_id: UUID) -> Job | None:
        """Job by id; expired jobs are dropped first."""
        self._drop_expired()
        return self._jobs.get(job_id)

    def get_queue(self, job_id: UUID) -> asyncio.Queue[SSEEvent | None] | None:
        return self._queues.get(job_id)

    async def update_status(self, job_id: UUID, status: JobStatus) -> None:
        job = self._jobs.get(job_id)
        if job is not None:
            job.status = status

    async def publish_status(self, job_id: UUID) -> None:
        """Record the job's current tracker state as a status event."""
        job = self._jobs.get(job_id)
        if job is not None:
            await self.add_event(job_id, StatusEvent(state=job.tracker.state.snapshot()))

    async def add_event(self, job_id: UUID, event: SSEEvent) -> None:
        """Record an event; complete and error events also finish the job."""
        job = self._jobs.get(job_id)
        if job is None:
            return

        job.events.append(event)
        if isinstance(event, CompleteEvent):
            job.status = JobStatus.COMPLETED
            job.result = event.result
        elif isinstance(event, ErrorEvent):
            job.status = JobStatus.FAILED
            job.error = event.error

        await self._queues[job_id].put(event)

    async def signal_complete(self, job_id: UUID) -> None:
        queue = self._queues.get(job_id)
        if queue is not None:
            await queue.put(None)

    def _drop_expired(self) -> None:
        now = time.time()
        for job_id in [j.id for j in self._jobs.values() if j.is_expired(now, self.TTL_SECONDS)]:
            del self._jobs[job_id]
            self._queues.pop(job_id, None)


job_manager = JobManager()
