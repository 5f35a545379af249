"""Note, summary, tag and draft models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class NoteSortOrder(str, Enum):
    """Sort order for note listings."""

    LATEST = "latest"
    OLDEST = "oldest"
    TITLE = "title"


class NoteCreate(BaseModel):
    """Request model for creating a note."""

    title: str = Field(min_length=1, max_length=255, description="제목")
    content: str = Field(description="본문")


class NoteUpdate(BaseModel):
    """Request model for partially updating a note."""

    title: str | None = Field(default=None, min_length=1, max_length=255, description="제목")
    content: str | None = Field(default=None, description="본문")


class Note(BaseModel):
    """A stored note."""

    id: UUID
    user_id: str
    title: str
    content: str
    created_at: datetime
    updated_at: datetime


class Summary(BaseModel):
    """AI generated (or manually edited) note summary."""

    note_id: UUID
    model: str = Field(description="사용된 AI 모델 (수동 편집은 manual-edit)")
    content: str
    created_at: datetime


class NoteDetail(Note):
    """Note together with its tags and latest summary."""

    tags: list[str] = Field(default_factory=list)
    summary: Summary | None = None


class Pagination(BaseModel):
    """Page position within a note listing."""

    current_page: int
    total_pages: int
    total_count: int
    limit: int
    has_next: bool
    has_prev: bool


class NotePage(BaseModel):
    """One page of a user's notes."""

    notes: list[Note]
    pagination: Pagination
    sort_by: NoteSortOrder


class DraftCreate(BaseModel):
    """Request model for saving a draft."""

    title: str = Field(default="", max_length=255, description="제목 (비어 있으면 '제목 없음')")
    content: str = Field(default="", description="본문")


class DraftNote(BaseModel):
    """A temporarily saved note that expires automatically."""

    id: UUID
    user_id: str
    title: str
    content: str
    created_at: datetime
    updated_at: datetime
    expires_at: datetime
