"""API request and response models."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from ai_memo.ai.status import AIProcessType
from ai_memo.api.job_manager import JobStatus


class SummaryUpdateRequest(BaseModel):
    """Request model for manually editing a summary."""

    content: str = Field(description="요약 내용")


class TagsUpdateRequest(BaseModel):
    """Request model for manually editing tags."""

    tags: list[str] = Field(description="태그 목록 (최대 10개)")


class JobResponse(BaseModel):
    """State of a background AI job."""

    id: UUID = Field(description="작업 ID")
    note_id: UUID = Field(description="노트 ID")
    process_type: AIProcessType = Field(description="처리 종류")
    status: JobStatus = Field(description="작업 상태")
    state: dict[str, Any] = Field(description="AI 상태 스냅샷")
    result: dict[str, Any] | None = Field(default=None, description="처리 결과")
    error: str | None = Field(default=None, description="에러 메시지")


class OnboardingStatusResponse(BaseModel):
    completed: bool = Field(description="온보딩 완료 여부")


class DeleteResponse(BaseModel):
    status: str = Field(default="deleted")
    id: UUID | None = Field(default=None, description="삭제된 항목 ID")
    count: int | None = Field(default=None, description="삭제된 항목 수")


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str = Field(description="에러 종류")
    detail: str = Field(description="에러 상세")
