"""FastAPI application for the AI memo API."""

import asyncio
import logging
import os
from collections.abc import AsyncGenerator, Callable, Iterator
from contextlib import AbstractContextManager, asynccontextmanager, contextmanager
from typing import Any
from uuid import UUID

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from sse_starlette.sse import EventSourceResponse
from starlette.middleware.sessions import SessionMiddleware

from ai_memo.ai.errors import classify_error, log_ai_error
from ai_memo.ai.monitoring import (
    ErrorPatterns,
    ErrorStats,
    error_monitor,
    get_error_patterns,
    get_error_stats,
)
from ai_memo.ai.status import AIProcessType
from ai_memo.api.auth import AuthenticatedUser, require_admin, require_auth
from ai_memo.api.auth import router as auth_router
from ai_memo.api.job_manager import Job, JobStatus, job_manager
from ai_memo.api.models import (
    DeleteResponse,
    ErrorResponse,
    JobResponse,
    OnboardingStatusResponse,
    SummaryUpdateRequest,
    TagsUpdateRequest,
)
from ai_memo.api.sse_models import CompleteEvent, ErrorEvent, to_sse
from ai_memo.config import get_settings
from ai_memo.db import connection_scope, get_connection
from ai_memo.notes import (
    DraftCreate,
    DraftNote,
    Note,
    NoteCreate,
    NoteDetail,
    NotePage,
    NoteRepository,
    NoteSortOrder,
    NoteUpdate,
)
from ai_memo.services import (
    AIActionResult,
    AIProcessingService,
    OnboardingResult,
    complete_onboarding,
    get_onboarding_status,
    skip_onboarding,
)

# Configure logging for Cloud Run
logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

AIServiceScope = Callable[[], AbstractContextManager[AIProcessingService]]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialize and cleanup resources."""
    logger.info("Starting AI memo API...")
    yield
    logger.info("Shutting down AI memo API...")


app = FastAPI(
    title="AI Memo API",
    description="Notes with AI generated summaries and tags",
    version="0.1.0",
    lifespan=lifespan,
)

settings = get_settings()

# Session middleware (must be added before CORS)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret_key or "dev-secret-key-change-in-production",
    max_age=86400,  # 24 hours
    same_site="lax",
    https_only=settings.is_production,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)


# ========== Dependencies ==========


def get_note_repository(conn: Any = Depends(connection_scope)) -> NoteRepository:
    return NoteRepository(conn)


def get_ai_service(
    repository: NoteRepository = Depends(get_note_repository),
) -> AIProcessingService:
    return AIProcessingService(repository)


@contextmanager
def open_ai_service() -> Iterator[AIProcessingService]:
    """AI service on its own connection, for work that outlives the request."""
    conn = get_connection()
    try:
        yield AIProcessingService(NoteRepository(conn))
    finally:
        conn.close()


def get_ai_service_scope() -> AIServiceScope:
    return open_ai_service


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


# ========== Notes ==========


@app.get("/api/notes", response_model=NotePage)
async def list_notes(
    page: int = 1,
    limit: int = 10,
    sort_by: NoteSortOrder = NoteSortOrder.LATEST,
    user: AuthenticatedUser = Depends(require_auth),
    repository: NoteRepository = Depends(get_note_repository),
) -> NotePage:
    """List the user's notes, one page at a time."""
    return repository.list_notes(user.id, page=page, limit=limit, sort_by=sort_by)


@app.post("/api/notes", response_model=Note, status_code=201)
async def create_note(
    body: NoteCreate,
    user: AuthenticatedUser = Depends(require_auth),
    repository: NoteRepository = Depends(get_note_repository),
) -> Note:
    note = repository.create_note(user.id, body)
    logger.info(f"Note created: id={note.id}")
    return note


@app.get("/api/notes/{note_id}", response_model=NoteDetail)
async def get_note(
    note_id: UUID,
    user: AuthenticatedUser = Depends(require_auth),
    repository: NoteRepository = Depends(get_note_repository),
) -> NoteDetail:
    """Get a note with its tags and latest summary.

    Raises:
        HTTPException: 404 if the note does not exist for this user.
    """
    note = repository.get_note_detail(user.id, note_id)
    if note is None:
        raise HTTPException(status_code=404, detail="Note not found")
    return note


@app.patch("/api/notes/{note_id}", response_model=Note)
async def update_note(
    note_id: UUID,
    body: NoteUpdate,
    user: AuthenticatedUser = Depends(require_auth),
    repository: NoteRepository = Depends(get_note_repository),
) -> Note:
    note = repository.update_note(user.id, note_id, body)
    if note is None:
        raise HTTPException(status_code=404, detail="Note not found")
    return note


@app.delete("/api/notes/{note_id}", response_model=DeleteResponse)
async def delete_note(
    note_id: UUID,
    user: AuthenticatedUser = Depends(require_auth),
    repository: NoteRepository = Depends(get_note_repository),
) -> DeleteResponse:
    if not repository.delete_note(user.id, note_id):
        raise HTTPException(status_code=404, detail="Note not found")
    return DeleteResponse(id=note_id)


@app.delete("/api/notes", response_model=DeleteResponse)
async def delete_all_notes(
    user: AuthenticatedUser = Depends(require_auth),
    repository: NoteRepository = Depends(get_note_repository),
) -> DeleteResponse:
    """Delete every note of the user."""
    count = repository.delete_all_notes(user.id)
    logger.info(f"Deleted all notes of user {user.id}: count={count}")
    return DeleteResponse(count=count)


# ========== Drafts ==========


@app.get("/api/drafts", response_model=list[DraftNote])
async def list_drafts(
    user: AuthenticatedUser = Depends(require_auth),
    repository: NoteRepository = Depends(get_note_repository),
) -> list[DraftNote]:
    return repository.list_drafts(user.id)


@app.post("/api/drafts", response_model=DraftNote, status_code=201)
async def create_draft(
    body: DraftCreate,
    user: AuthenticatedUser = Depends(require_auth),
    repository: NoteRepository = Depends(get_note_repository),
) -> DraftNote:
    return repository.save_draft(user.id, body)


@app.put("/api/drafts/{draft_id}", response_model=DraftNote)
async def update_draft(
    draft_id: UUID,
    body: DraftCreate,
    user: AuthenticatedUser = Depends(require_auth),
    repository: NoteRepository = Depends(get_note_repository),
) -> DraftNote:
    """Overwrite a draft and extend its expiry."""
    draft = repository.save_draft(user.id, body, draft_id=draft_id)
    if draft is None:
        raise HTTPException(status_code=404, detail="Draft not found")
    return draft


@app.delete("/api/drafts/{draft_id}", response_model=DeleteResponse)
async def delete_draft(
    draft_id: UUID,
    user: AuthenticatedUser = Depends(require_auth),
    repository: NoteRepository = Depends(get_note_repository),
) -> DeleteResponse:
    if not repository.delete_draft(user.id, draft_id):
        raise HTTPException(status_code=404, detail="Draft not found")
    return DeleteResponse(id=draft_id)


@app.post("/api/drafts/{draft_id}/convert", response_model=Note, status_code=201)
async def convert_draft(
    draft_id: UUID,
    user: AuthenticatedUser = Depends(require_auth),
    repository: NoteRepository = Depends(get_note_repository),
) -> Note:
    """Turn a draft into a regular note."""
    note = repository.convert_draft_to_note(user.id, draft_id)
    if note is None:
        raise HTTPException(status_code=404, detail="Draft not found")
    logger.info(f"Draft {draft_id} converted to note {note.id}")
    return note


# ========== AI processing ==========


@app.post("/api/notes/{note_id}/summary", response_model=AIActionResult)
async def generate_summary(
    note_id: UUID,
    user: AuthenticatedUser = Depends(require_auth),
    service: AIProcessingService = Depends(get_ai_service),
) -> AIActionResult:
    """Generate a summary and wait for it.

    AI failures are returned with ``success=False`` rather than as an HTTP
    error so the client can read ``retryable``.
    """
    return await service.generate_summary(user.id, note_id)


@app.put("/api/notes/{note_id}/summary", response_model=AIActionResult)
async def update_summary(
    note_id: UUID,
    body: SummaryUpdateRequest,
    user: AuthenticatedUser = Depends(require_auth),
    service: AIProcessingService = Depends(get_ai_service),
) -> AIActionResult:
    return await service.update_summary(user.id, note_id, body.content)


@app.post("/api/notes/{note_id}/tags", response_model=AIActionResult)
async def generate_tags(
    note_id: UUID,
    user: AuthenticatedUser = Depends(require_auth),
    service: AIProcessingService = Depends(get_ai_service),
) -> AIActionResult:
    return await service.generate_tags(user.id, note_id)


@app.put("/api/notes/{note_id}/tags", response_model=AIActionResult)
async def update_tags(
    note_id: UUID,
    body: TagsUpdateRequest,
    user: AuthenticatedUser = Depends(require_auth),
    service: AIProcessingService = Depends(get_ai_service),
) -> AIActionResult:
    return await service.update_tags(user.id, note_id, body.tags)


@app.post("/api/notes/{note_id}/ai", response_model=AIActionResult)
async def generate_all(
    note_id: UUID,
    user: AuthenticatedUser = Depends(require_auth),
    service: AIProcessingService = Depends(get_ai_service),
) -> AIActionResult:
    """Generate summary and tags together."""
    return await service.generate_all(user.id, note_id)


@app.post("/api/ai/test-connection", response_model=AIActionResult)
async def test_connection(
    user: AuthenticatedUser = Depends(require_auth),
    service: AIProcessingService = Depends(get_ai_service),
) -> AIActionResult:
    return await service.test_connection()


# ========== Jobs ==========


def _job_response(job: Job) -> JobResponse:
    return JobResponse(
        id=job.id,
        note_id=job.note_id,
        process_type=job.process_type,
        status=job.status,
        state=job.tracker.state.snapshot(),
        result=job.result,
        error=job.error,
    )


async def _get_owned_job(job_id: UUID, user: AuthenticatedUser) -> Job:
    job = await job_manager.get_job(job_id)
    if job is None or job.user_id != user.id:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@app.post("/api/notes/{note_id}/jobs/{process_type}", response_model=JobResponse, status_code=202)
async def start_job(
    note_id: UUID,
    process_type: AIProcessType,
    background_tasks: BackgroundTasks,
    user: AuthenticatedUser = Depends(require_auth),
    service_scope: AIServiceScope = Depends(get_ai_service_scope),
) -> JobResponse:
    """Start summary or tag generation in the background.

    Progress is available from ``GET /api/jobs/{job_id}/stream``.
    """
    job = await job_manager.create_job(user.id, note_id, process_type)
    background_tasks.add_task(_run_ai_job, job, service_scope)
    logger.info(f"Job {job.id} queued: note_id={note_id}, process_type={process_type.value}")
    return _job_response(job)


async def _run_ai_job(job: Job, service_scope: AIServiceScope) -> None:
    """Run one AI job, driving its status tracker and pushing events to its queue.

    Args:
        job: The job to execute.
        service_scope: Opens an AI service for the duration of the job.
    """
    tracker = job.tracker
    try:
        await job_manager.update_status(job.id, JobStatus.RUNNING)
        tracker.set_loading(job.process_type)
        await job_manager.publish_status(job.id)

        try:
            with service_scope() as service:
                if job.process_type == AIProcessType.SUMMARY:
                    result = await service.generate_summary(job.user_id, job.note_id)
                else:
                    result = await service.generate_tags(job.user_id, job.note_id)
        except Exception as e:
            logger.exception(f"Error in job {job.id}")
            error_info = classify_error(e)
            context = {"note_id": str(job.note_id), "action": f"job_{job.process_type.value}"}
            log_ai_error(error_info, context)
            result = AIActionResult.failure(error_info)

        if result.success:
            tracker.set_success(job.process_type)
            await job_manager.publish_status(job.id)
            await job_manager.add_event(job.id, CompleteEvent(result=result.data or {}))
        else:
            tracker.set_error(job.process_type, result.error or "")
            await job_manager.publish_status(job.id)
            await job_manager.add_event(
                job.id,
                ErrorEvent(
                    error=result.error or "",
                    error_type=result.error_type,
                    retryable=bool(result.retryable),
                ),
            )
    finally:
        await job_manager.signal_complete(job.id)


@app.get("/api/jobs/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: UUID,
    user: AuthenticatedUser = Depends(require_auth),
) -> JobResponse:
    job = await _get_owned_job(job_id, user)
    return _job_response(job)


@app.get("/api/jobs/{job_id}/stream")
async def stream_job(
    request: Request,
    job_id: UUID,
    user: AuthenticatedUser = Depends(require_auth),
) -> EventSourceResponse:
    """Stream job progress via SSE.

    Emits ``status`` events with tracker snapshots, then one ``complete`` or
    ``error`` event.

    Raises:
        HTTPException: 401 if not authenticated, 404 if job not found.
    """
    job = await _get_owned_job(job_id, user)

    queue = job_manager.get_queue(job_id)
    if queue is None:
        raise HTTPException(status_code=404, detail="Job queue not found")

    async def event_generator() -> AsyncGenerator[dict[str, Any], None]:
        # The queue only wakes the stream up; events are read from the job so
        # late joiners get the full history.
        sent = 0
        while True:
            while sent < len(job.events):
                yield to_sse(job.events[sent])
                sent += 1

            if job.finished:
                break

            if await request.is_disconnected():
                logger.info(f"Client disconnected from job {job_id}")
                break

            try:
                await asyncio.wait_for(queue.get(), timeout=1.0)
            except TimeoutError:
                continue

    return EventSourceResponse(event_generator())


@app.post("/api/jobs/{job_id}/clear-error", response_model=JobResponse)
async def clear_job_error(
    job_id: UUID,
    user: AuthenticatedUser = Depends(require_auth),
) -> JobResponse:
    """Dismiss the error of a failed job; its status returns to idle."""
    job = await _get_owned_job(job_id, user)
    job.tracker.clear_error()
    await job_manager.publish_status(job.id)
    return _job_response(job)


# ========== Onboarding ==========


@app.get("/api/onboarding", response_model=OnboardingStatusResponse)
async def onboarding_status(
    user: AuthenticatedUser = Depends(require_auth),
    repository: NoteRepository = Depends(get_note_repository),
) -> OnboardingStatusResponse:
    return OnboardingStatusResponse(completed=get_onboarding_status(repository, user.id))


@app.post(
    "/api/onboarding/complete",
    response_model=OnboardingResult,
    responses={500: {"model": ErrorResponse}},
)
async def onboarding_complete(
    user: AuthenticatedUser = Depends(require_auth),
    repository: NoteRepository = Depends(get_note_repository),
) -> OnboardingResult:
    result = complete_onboarding(repository, user.id)
    if not result.success:
        raise HTTPException(status_code=500, detail=result.error)
    return result


@app.post(
    "/api/onboarding/skip",
    response_model=OnboardingResult,
    responses={500: {"model": ErrorResponse}},
)
async def onboarding_skip(
    user: AuthenticatedUser = Depends(require_auth),
    repository: NoteRepository = Depends(get_note_repository),
) -> OnboardingResult:
    result = skip_onboarding(repository, user.id)
    if not result.success:
        raise HTTPException(status_code=500, detail=result.error)
    return result


# ========== Admin ==========


@app.get("/api/admin/errors/stats", response_model=ErrorStats)
async def admin_error_stats(user: AuthenticatedUser = Depends(require_admin)) -> ErrorStats:
    """AI error statistics collected since startup (admins only)."""
    return get_error_stats()


@app.get("/api/admin/errors/patterns", response_model=ErrorPatterns)
async def admin_error_patterns(user: AuthenticatedUser = Depends(require_admin)) -> ErrorPatterns:
    return get_error_patterns()


@app.delete("/api/admin/errors")
async def admin_reset_errors(user: AuthenticatedUser = Depends(require_admin)) -> dict[str, str]:
    error_monitor.reset_stats()
    logger.info(f"Error statistics reset by {user.email}")
    return {"status": "reset"}
