"""Tests for NoteRepository against a mocked psycopg2 connection."""

from datetime import datetime, timezone
from unittest.mock import MagicMock
from uuid import uuid4

import psycopg2
import pytest

from ai_memo.notes import DraftCreate, NoteCreate, NoteRepository, NoteSortOrder, NoteUpdate

NOW = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


def _note_row(**overrides):
    row = {
        "id": uuid4(),
        "user_id": "user-1",
        "title": "회의 메모",
        "content": "다음 주 출시 일정",
        "created_at": NOW,
        "updated_at": NOW,
    }
    row.update(overrides)
    return row


@pytest.fixture
def conn():
    return MagicMock()


@pytest.fixture
def cursor(conn):
    return conn.cursor.return_value.__enter__.return_value


@pytest.fixture
def repo(conn):
    return NoteRepository(conn)


class TestTransactions:
    """Test commit and rollback handling."""

    def test_commits_on_success(self, repo, conn, cursor):
        cursor.fetchone.return_value = _note_row()
        repo.create_note("user-1", NoteCreate(title="회의 메모", content="내용"))

        conn.commit.assert_called_once()
        conn.rollback.assert_not_called()

    def test_rolls_back_and_reraises_on_error(self, repo, conn, cursor):
        cursor.execute.side_effect = psycopg2.OperationalError("connection lost")

        with pytest.raises(psycopg2.OperationalError):
            repo.get_note("user-1", uuid4())

        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()


class TestNotes:
    """Test note queries."""

    def test_create_note(self, repo, cursor):
        row = _note_row()
        cursor.fetchone.return_value = row

        note = repo.create_note("user-1", NoteCreate(title="회의 메모", content="다음 주 출시 일정"))

        assert note.id == row["id"]
        params = cursor.execute.call_args.args[1]
        assert params == ("user-1", "회의 메모", "다음 주 출시 일정")

    def test_get_note_is_scoped_to_user(self, repo, cursor):
        note_id = uuid4()
        cursor.fetchone.return_value = None

        assert repo.get_note("user-2", note_id) is None
        sql, params = cursor.execute.call_args.args
        assert "user_id = %s" in sql
        assert params == (str(note_id), "user-2")

    def test_list_notes_pagination(self, repo, cursor):
        cursor.fetchone.return_value = {"total": 25}
        cursor.fetchall.return_value = [_note_row() for _ in range(10)]

        page = repo.list_notes("user-1", page=2, limit=10)

        assert len(page.notes) == 10
        assert page.pagination.total_pages == 3
        assert page.pagination.has_next is True
        assert page.pagination.has_prev is True
        assert cursor.execute.call_args.args[1] == ("user-1", 10, 10)

    def test_list_notes_clamps_page_and_limit(self, repo, cursor):
        cursor.fetchone.return_value = {"total": 0}
        cursor.fetchall.return_value = []

        page = repo.list_notes("user-1", page=0, limit=1000)

        assert page.pagination.current_page == 1
        assert page.pagination.limit == 100
        assert page.pagination.total_pages == 0
        assert page.pagination.has_next is False
        assert cursor.execute.call_args.args[1] == ("user-1", 100, 0)

    @pytest.mark.parametrize(
        ("sort_by", "order_by"),
        [
            (NoteSortOrder.LATEST, "ORDER BY updated_at DESC"),
            (NoteSortOrder.OLDEST, "ORDER BY updated_at ASC"),
            ("title", "ORDER BY title ASC"),
        ],
    )
    def test_list_notes_sort_order(self, repo, cursor, sort_by, order_by):
        cursor.fetchone.return_value = {"total": 0}
        cursor.fetchall.return_value = []

        page = repo.list_notes("user-1", sort_by=sort_by)

        assert order_by in cursor.execute.call_args.args[0]
        assert page.sort_by == NoteSortOrder(sort_by)

    def test_update_note_only_sets_given_fields(self, repo, cursor):
        note_id = uuid4()
        cursor.fetchone.return_value = _note_row(id=note_id, title="새 제목")

        note = repo.update_note("user-1", note_id, NoteUpdate(title="새 제목"))

        sql, params = cursor.execute.call_args.args
        assert "title = %s" in sql
        assert "content = %s" not in sql
        assert "updated_at = now()" in sql
        assert params == ("새 제목", str(note_id), "user-1")
        assert note.title == "새 제목"

    def test_update_missing_note_returns_none(self, repo, cursor):
        cursor.fetchone.return_value = None
        assert repo.update_note("user-1", uuid4(), NoteUpdate(content="x")) is None

    def test_delete_note(self, repo, cursor):
        cursor.fetchone.return_value = {"id": uuid4()}
        assert repo.delete_note("user-1", uuid4()) is True

        cursor.fetchone.return_value = None
        assert repo.delete_note("user-1", uuid4()) is False

    def test_delete_all_notes_returns_count(self, repo, cursor):
        cursor.fetchall.return_value = [{"id": uuid4()}, {"id": uuid4()}]
        assert repo.delete_all_notes("user-1") == 2


class TestTagsAndSummaries:
    """Test tag and summary queries."""

    def test_replace_tags_deletes_then_inserts(self, repo, cursor):
        note_id = uuid4()

        repo.replace_tags(note_id, ["회의", "일정"])

        assert "DELETE FROM note_tags" in cursor.execute.call_args.args[0]
        rows = cursor.executemany.call_args.args[1]
        assert rows == [(str(note_id), "회의"), (str(note_id), "일정")]

    def test_replace_with_no_tags_only_deletes(self, repo, cursor):
        repo.replace_tags(uuid4(), [])
        cursor.executemany.assert_not_called()

    def test_upsert_summary_updates_existing(self, repo, cursor):
        note_id = uuid4()
        cursor.fetchone.return_value = {
            "note_id": note_id,
            "model": "gemini-2.0-flash-001",
            "content": "수정된 요약",
            "created_at": NOW,
        }

        summary = repo.upsert_summary(note_id, "수정된 요약")

        assert summary.model == "gemini-2.0-flash-001"
        assert cursor.execute.call_count == 1

    def test_upsert_summary_inserts_manual_edit(self, repo, cursor):
        note_id = uuid4()
        cursor.fetchone.side_effect = [
            None,
            {"note_id": note_id, "model": "manual-edit", "content": "새 요약", "created_at": NOW},
        ]

        summary = repo.upsert_summary(note_id, "새 요약")

        assert summary.model == "manual-edit"
        assert cursor.execute.call_args.args[1] == (str(note_id), "manual-edit", "새 요약")

    def test_get_note_detail(self, repo, cursor):
        note_id = uuid4()
        cursor.fetchone.side_effect = [
            _note_row(id=note_id),
            {"note_id": note_id, "model": "m", "content": "- 요약", "created_at": NOW},
        ]
        cursor.fetchall.return_value = [{"tag": "회의"}]

        detail = repo.get_note_detail("user-1", note_id)

        assert detail.tags == ["회의"]
        assert detail.summary.content == "- 요약"


class TestDrafts:
    """Test draft queries."""

    def _draft_row(self, **overrides):
        row = _note_row(expires_at=NOW)
        row.update(overrides)
        return row

    def test_blank_title_becomes_untitled(self, repo, cursor):
        cursor.fetchone.return_value = self._draft_row(title="제목 없음")

        repo.save_draft("user-1", DraftCreate(title="  ", content="임시 내용"))

        params = cursor.execute.call_args.args[1]
        assert params[:3] == ("user-1", "제목 없음", "임시 내용")

    def test_save_existing_draft_updates(self, repo, cursor):
        draft_id = uuid4()
        cursor.fetchone.return_value = self._draft_row(id=draft_id)

        draft = repo.save_draft("user-1", DraftCreate(title="초안"), draft_id=draft_id)

        assert "UPDATE draft_notes" in cursor.execute.call_args.args[0]
        assert draft.id == draft_id

    def test_save_unknown_draft_returns_none(self, repo, cursor):
        cursor.fetchone.return_value = None
        assert repo.save_draft("user-1", DraftCreate(), draft_id=uuid4()) is None

    def test_convert_draft_to_note(self, repo, conn, cursor):
        cursor.fetchone.side_effect = [
            {"title": "초안", "content": "내용"},
            _note_row(title="초안", content="내용"),
        ]

        note = repo.convert_draft_to_note("user-1", uuid4())

        assert note.title == "초안"
        assert cursor.execute.call_count == 2
        conn.commit.assert_called_once()

    def test_convert_missing_draft_returns_none(self, repo, cursor):
        cursor.fetchone.return_value = None
        assert repo.convert_draft_to_note("user-1", uuid4()) is None
        assert cursor.execute.call_count == 1

    def test_cleanup_expired_drafts(self, repo, cursor):
        cursor.fetchall.return_value = [{"id": uuid4()}]
        assert repo.cleanup_expired_drafts() == 1


class TestOnboarding:
    def test_status_defaults_to_false(self, repo, cursor):
        cursor.fetchone.return_value = None
        assert repo.get_onboarding_status("user-1") is False

    def test_status_true_when_completed(self, repo, cursor):
        cursor.fetchone.return_value = {"onboarding_completed": True}
        assert repo.get_onboarding_status("user-1") is True

    def test_set_completed_upserts(self, repo, cursor):
        repo.set_onboarding_completed("user-1")
        assert "ON CONFLICT (user_id)" in cursor.execute.call_args.args[0]
