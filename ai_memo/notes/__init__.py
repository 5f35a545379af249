"""Note persistence: models and repository."""

from ai_memo.notes.models import (
    DraftCreate,
    DraftNote,
    Note,
    NoteCreate,
    NoteDetail,
    NotePage,
    NoteSortOrder,
    NoteUpdate,
    Pagination,
    Summary,
)
from ai_memo.notes.repository import NoteRepository

__all__ = [
    "DraftCreate",
    "DraftNote",
    "Note",
    "NoteCreate",
    "NoteDetail",
    "NotePage",
    "NoteRepository",
    "NoteSortOrder",
    "NoteUpdate",
    "Pagination",
    "Summary",
]
