"""Repository for notes, tags, summaries, drafts and onboarding state.

Every query is scoped by ``user_id`` where the table has one; tag and summary
queries expect the caller to have checked note ownership first.
"""

import logging
import math
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from psycopg2.extras import RealDictCursor

from ai_memo.config import settings
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

logger = logging.getLogger(__name__)

UNTITLED_DRAFT = "제목 없음"
MANUAL_EDIT_MODEL = "manual-edit"
MAX_PAGE_SIZE = 100

_ORDER_BY = {
    NoteSortOrder.LATEST: "updated_at DESC",
    NoteSortOrder.OLDEST: "updated_at ASC",
    NoteSortOrder.TITLE: "title ASC",
}

_NOTE_COLUMNS = "id, user_id, title, content, created_at, updated_at"
_DRAFT_COLUMNS = "id, user_id, title, content, created_at, updated_at, expires_at"


class NoteRepository:
    """Repository for CRUD operations on notes and their AI results."""

    def __init__(self, connection: Any) -> None:
        """Initialize repository with database connection."""
        self._conn = connection

    @contextmanager
    def _cursor(self) -> Iterator[Any]:
        """Cursor returning dict rows; commits on success, rolls back on error."""
        try:
            with self._conn.cursor(cursor_factory=RealDictCursor) as cursor:
                yield cursor
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    # ========== Notes ==========

    def create_note(self, user_id: str, data: NoteCreate) -> Note:
        """Insert a note owned by ``user_id``."""
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                INSERT INTO notes (user_id, title, content)
                VALUES (%s, %s, %s)
                RETURNING {_NOTE_COLUMNS}
                """,
                (user_id, data.title, data.content),
            )
            return Note(**cursor.fetchone())

    def get_note(self, user_id: str, note_id: UUID) -> Note | None:
        """Fetch a note if it belongs to ``user_id``."""
        with self._cursor() as cursor:
            cursor.execute(
                f"SELECT {_NOTE_COLUMNS} FROM notes WHERE id = %s AND user_id = %s LIMIT 1",
                (str(note_id), user_id),
            )
            row = cursor.fetchone()
        return Note(**row) if row else None

    def list_notes(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 10,
        sort_by: NoteSortOrder = NoteSortOrder.LATEST,
    ) -> NotePage:
        """Return one page of the user's notes.

        Args:
            user_id: Owner of the notes.
            page: 1-based page number (values below 1 are treated as 1).
            limit: Page size, clamped to 1..100.
            sort_by: latest / oldest (by update time) or title.

        Returns:
            The notes on the page with pagination metadata.
        """
        sort_by = NoteSortOrder(sort_by)
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        offset = (page - 1) * limit

        with self._cursor() as cursor:
            cursor.execute("SELECT COUNT(*) AS total FROM notes WHERE user_id = %s", (user_id,))
            total_count = int(cursor.fetchone()["total"])

            cursor.execute(
                f"""
                SELECT {_NOTE_COLUMNS} FROM notes
                WHERE user_id = %s
                ORDER BY {_ORDER_BY[sort_by]}
                LIMIT %s OFFSET %s
                """,
                (user_id, limit, offset),
            )
            rows = cursor.fetchall()

        total_pages = math.ceil(total_count / limit)
        return NotePage(
            notes=[Note(**row) for row in rows],
            pagination=Pagination(
                current_page=page,
                total_pages=total_pages,
                total_count=total_count,
                limit=limit,
                has_next=page < total_pages,
                has_prev=page > 1,
            ),
            sort_by=sort_by,
        )

    def update_note(self, user_id: str, note_id: UUID, data: NoteUpdate) -> Note | None:
        """Update the given fields of a note and bump ``updated_at``.

        Returns:
            The updated note, or None if it does not exist for this user.
        """
        changes = data.model_dump(exclude_none=True)
        assignments = ", ".join(f"{column} = %s" for column in changes)
        if assignments:
            assignments += ", "

        with self._cursor() as cursor:
            cursor.execute(
                f"""
                UPDATE notes SET {assignments}updated_at = now()
                WHERE id = %s AND user_id = %s
                RETURNING {_NOTE_COLUMNS}
                """,
                (*changes.values(), str(note_id), user_id),
            )
            row = cursor.fetchone()
        return Note(**row) if row else None

    def delete_note(self, user_id: str, note_id: UUID) -> bool:
        """Delete a note (tags and summaries cascade). Returns False if not found."""
        with self._cursor() as cursor:
            cursor.execute(
                "DELETE FROM notes WHERE id = %s AND user_id = %s RETURNING id",
                (str(note_id), user_id),
            )
            return cursor.fetchone() is not None

    def delete_all_notes(self, user_id: str) -> int:
        """Delete every note of the user and return how many were removed."""
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM notes WHERE user_id = %s RETURNING id", (user_id,))
            deleted = len(cursor.fetchall())
        logger.info(f"Deleted {deleted} notes for user {user_id}")
        return deleted

    def get_note_detail(self, user_id: str, note_id: UUID) -> NoteDetail | None:
        """Fetch a note with its tags and latest summary."""
        note = self.get_note(user_id, note_id)
        if note is None:
            return None
        return NoteDetail(
            **note.model_dump(),
            tags=self.get_tags(note_id),
            summary=self.get_summary(note_id),
        )

    # ========== Tags ==========

    def get_tags(self, note_id: UUID) -> list[str]:
        """Tags of a note."""
        with self._cursor() as cursor:
            cursor.execute("SELECT tag FROM note_tags WHERE note_id = %s", (str(note_id),))
            return [row["tag"] for row in cursor.fetchall()]

    def replace_tags(self, note_id: UUID, tags: list[str]) -> list[str]:
        """Replace all tags of a note in one transaction."""
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM note_tags WHERE note_id = %s", (str(note_id),))
            if tags:
                cursor.executemany(
                    "INSERT INTO note_tags (note_id, tag) VALUES (%s, %s)",
                    [(str(note_id), tag) for tag in tags],
                )
        return tags

    # ========== Summaries ==========

    def get_summary(self, note_id: UUID) -> Summary | None:
        """Latest summary of a note."""
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT note_id, model, content, created_at FROM summaries
                WHERE note_id = %s ORDER BY created_at DESC LIMIT 1
                """,
                (str(note_id),),
            )
            row = cursor.fetchone()
        return Summary(**row) if row else None

    def save_summary(self, note_id: UUID, model: str, content: str) -> Summary:
        """Store a newly generated summary."""
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO summaries (note_id, model, content)
                VALUES (%s, %s, %s)
                RETURNING note_id, model, content, created_at
                """,
                (str(note_id), model, content),
            )
            return Summary(**cursor.fetchone())

    def upsert_summary(self, note_id: UUID, content: str) -> Summary:
        """Overwrite the note's summaries with a manual edit, or create one."""
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE summaries SET content = %s, created_at = now()
                WHERE note_id = %s
                RETURNING note_id, model, content, created_at
                """,
                (content, str(note_id)),
            )
            row = cursor.fetchone()
            if row is None:
                cursor.execute(
                    """
                    INSERT INTO summaries (note_id, model, content)
                    VALUES (%s, %s, %s)
                    RETURNING note_id, model, content, created_at
                    """,
                    (str(note_id), MANUAL_EDIT_MODEL, content),
                )
                row = cursor.fetchone()
        return Summary(**row)

    # ========== Drafts ==========

    def save_draft(
        self,
        user_id: str,
        data: DraftCreate,
        draft_id: UUID | None = None,
    ) -> DraftNote | None:
        """Create a draft, or overwrite ``draft_id`` and extend its expiry.

        Returns:
            The saved draft, or None if ``draft_id`` does not exist for this user.
        """
        title = data.title.strip() or UNTITLED_DRAFT
        expires_at = datetime.now(timezone.utc) + timedelta(days=settings.draft_ttl_days)

        with self._cursor() as cursor:
            if draft_id is None:
                cursor.execute(
                    f"""
                    INSERT INTO draft_notes (user_id, title, content, expires_at)
                    VALUES (%s, %s, %s, %s)
                    RETURNING {_DRAFT_COLUMNS}
                    """,
                    (user_id, title, data.content, expires_at),
                )
            else:
                cursor.execute(
                    f"""
                    UPDATE draft_notes
                    SET title = %s, content = %s, updated_at = now(), expires_at = %s
                    WHERE id = %s AND user_id = %s
                    RETURNING {_DRAFT_COLUMNS}
                    """,
                    (title, data.content, expires_at, str(draft_id), user_id),
                )
            row = cursor.fetchone()
        return DraftNote(**row) if row else None

    def list_drafts(self, user_id: str) -> list[DraftNote]:
        """Unexpired drafts of the user, most recently edited first."""
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                SELECT {_DRAFT_COLUMNS} FROM draft_notes
                WHERE user_id = %s AND expires_at > now()
                ORDER BY updated_at DESC
                """,
                (user_id,),
            )
            return [DraftNote(**row) for row in cursor.fetchall()]

    def get_draft(self, user_id: str, draft_id: UUID) -> DraftNote | None:
        with self._cursor() as cursor:
            cursor.execute(
                f"SELECT {_DRAFT_COLUMNS} FROM draft_notes WHERE id = %s AND user_id = %s",
                (str(draft_id), user_id),
            )
            row = cursor.fetchone()
        return DraftNote(**row) if row else None

    def delete_draft(self, user_id: str, draft_id: UUID) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                "DELETE FROM draft_notes WHERE id = %s AND user_id = %s RETURNING id",
                (str(draft_id), user_id),
            )
            return cursor.fetchone() is not None

    def convert_draft_to_note(self, user_id: str, draft_id: UUID) -> Note | None:
        """Turn a draft into a note and delete the draft, atomically.

        Returns:
            The new note, or None if the draft does not exist for this user.
        """
        with self._cursor() as cursor:
            cursor.execute(
                "DELETE FROM draft_notes WHERE id = %s AND user_id = %s RETURNING title, content",
                (str(draft_id), user_id),
            )
            draft = cursor.fetchone()
            if draft is None:
                return None

            cursor.execute(
                f"""
                INSERT INTO notes (user_id, title, content)
                VALUES (%s, %s, %s)
                RETURNING {_NOTE_COLUMNS}
                """,
                (user_id, draft["title"], draft["content"]),
            )
            return Note(**cursor.fetchone())

    def cleanup_expired_drafts(self) -> int:
        """Delete expired drafts of every user. Returns the number removed."""
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM draft_notes WHERE expires_at <= now() RETURNING id")
            deleted = len(cursor.fetchall())
        logger.info(f"Cleaned up {deleted} expired drafts")
        return deleted

    # ========== Onboarding ==========

    def get_onboarding_status(self, user_id: str) -> bool:
        """Whether the user finished (or skipped) onboarding."""
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT onboarding_completed FROM user_profiles WHERE user_id = %s",
                (user_id,),
            )
            row = cursor.fetchone()
        return bool(row and row["onboarding_completed"])

    def set_onboarding_completed(self, user_id: str) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO user_profiles (user_id, onboarding_completed)
                VALUES (%s, TRUE)
                ON CONFLICT (user_id)
                DO UPDATE SET onboarding_completed = TRUE, updated_at = now()
                """,
                (user_id,),
            )
