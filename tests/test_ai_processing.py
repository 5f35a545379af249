"""Tests for the AI processing service."""

import asyncio
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import psycopg2
import pytest
from langchain_core.language_models import FakeListChatModel

from ai_memo.ai.errors import AIErrorType, AINetworkError, AIParsingError
from ai_memo.ai.monitoring import error_monitor
from ai_memo.chains import ConnectionCheckChain, SummaryChain, TagChain
from ai_memo.notes import NoteRepository
from ai_memo.services import AIProcessingService


def _failing_chain(method: str, error: Exception) -> MagicMock:
    chain = MagicMock()
    chain.model_name = "gemini-2.0-flash-001"
    setattr(chain, method, AsyncMock(side_effect=error))
    return chain


@pytest.fixture
def note(make_note):
    return make_note()


@pytest.fixture
def repository(note):
    repository = MagicMock(spec=NoteRepository)
    repository.get_note.return_value = note
    return repository


@pytest.fixture
def summary_chain():
    return SummaryChain(llm=FakeListChatModel(responses=["- 출시 일정 논의"]))


@pytest.fixture
def tag_chain():
    return TagChain(llm=FakeListChatModel(responses=["회의, 일정, 출시"]))


@pytest.fixture
def service(repository, summary_chain, tag_chain):
    return AIProcessingService(repository, summary_chain=summary_chain, tag_chain=tag_chain)


class TestGenerateSummary:
    """Test summary generation."""

    def test_success_saves_summary(self, service, repository, note):
        result = asyncio.run(service.generate_summary("user-1", note.id))

        assert result.success is True
        assert result.data == {"summary": "- 출시 일정 논의"}
        repository.save_summary.assert_called_once_with(
            note.id, "gemini-2.0-flash-001", "- 출시 일정 논의"
        )

    def test_anonymous_user_is_an_authentication_error(self, service, repository, note):
        result = asyncio.run(service.generate_summary(None, note.id))

        assert result.success is False
        assert result.error_type == AIErrorType.AUTHENTICATION_ERROR
        assert result.retryable is False
        repository.get_note.assert_not_called()

    def test_missing_note_is_an_authorization_error(self, service, repository):
        repository.get_note.return_value = None

        result = asyncio.run(service.generate_summary("user-1", uuid4()))

        assert result.error_type == AIErrorType.AUTHORIZATION_ERROR
        assert result.error == "노트를 찾을 수 없습니다."

    def test_overlong_note_is_a_token_limit_error(self, service, repository, make_note):
        repository.get_note.return_value = make_note(content="가" * 6000)

        result = asyncio.run(service.generate_summary("user-1", uuid4()))

        assert result.error_type == AIErrorType.TOKEN_LIMIT_EXCEEDED
        assert result.retryable is False
        repository.save_summary.assert_not_called()

    def test_database_failure_while_saving(self, service, repository, note):
        repository.save_summary.side_effect = psycopg2.OperationalError("server closed")

        result = asyncio.run(service.generate_summary("user-1", note.id))

        assert result.success is False
        assert result.error_type == AIErrorType.DATABASE_ERROR
        assert result.retryable is True

    def test_failure_is_recorded_with_action(self, service, repository):
        repository.get_note.return_value = None
        asyncio.run(service.generate_summary("user-1", uuid4()))

        assert error_monitor.get_stats().errors_by_action == {"generate_summary": 1}

    def test_retries_exhausted_keeps_network_error(self, repository, tag_chain, note):
        chain = _failing_chain("asummarize", AINetworkError("연결 끊김"))
        service = AIProcessingService(repository, summary_chain=chain, tag_chain=tag_chain)

        result = asyncio.run(service.generate_summary("user-1", note.id))

        assert result.error_type == AIErrorType.NETWORK_ERROR
        assert result.error == "네트워크 연결에 문제가 있습니다. 잠시 후 다시 시도해주세요."
        assert result.retryable is True
        assert chain.asummarize.await_count == 3


class TestGenerateTags:
    """Test tag generation."""

    def test_success_replaces_tags(self, service, repository, note):
        result = asyncio.run(service.generate_tags("user-1", note.id))

        assert result.success is True
        assert result.data == {"tags": ["회의", "일정", "출시"]}
        repository.replace_tags.assert_called_once_with(note.id, ["회의", "일정", "출시"])

    def test_unparseable_response(self, repository, summary_chain, note):
        # A second call would succeed; parsing happens after the single model call
        tag_chain = TagChain(llm=FakeListChatModel(responses=[" , ", "회의"]))
        service = AIProcessingService(repository, summary_chain=summary_chain, tag_chain=tag_chain)

        result = asyncio.run(service.generate_tags("user-1", note.id))

        assert result.success is False
        assert result.error_type == AIErrorType.PARSING_ERROR
        assert result.error == "AI가 적절한 태그를 생성하지 못했습니다. 다시 시도해주세요."
        assert result.retryable is True
        repository.replace_tags.assert_not_called()

    def test_model_is_called_once_for_unparseable_response(self, repository, summary_chain, note):
        tag_chain = MagicMock()
        tag_chain.arespond = AsyncMock(return_value=" , ")
        tag_chain.parse = TagChain.parse
        service = AIProcessingService(repository, summary_chain=summary_chain, tag_chain=tag_chain)

        result = asyncio.run(service.generate_tags("user-1", note.id))

        assert result.error_type == AIErrorType.PARSING_ERROR
        assert tag_chain.arespond.await_count == 1


class TestGenerateAll:
    """Test combined summary and tag generation."""

    def test_both_succeed(self, service, note):
        result = asyncio.run(service.generate_all("user-1", note.id))

        assert result.success is True
        assert result.data == {"summary": "- 출시 일정 논의", "tags": ["회의", "일정", "출시"]}
        assert result.partial_success is False

    def test_partial_success(self, repository, summary_chain, note):
        tag_chain = _failing_chain("arespond", AIParsingError("생성된 태그가 없습니다."))
        service = AIProcessingService(repository, summary_chain=summary_chain, tag_chain=tag_chain)

        result = asyncio.run(service.generate_all("user-1", note.id))

        assert result.success is False
        assert result.partial_success is True
        assert result.partial_data == {"summary": "- 출시 일정 논의"}
        assert result.error == "AI 처리 중 일부 오류가 발생했습니다."
        assert result.error_type == AIErrorType.PARSING_ERROR
        assert result.retryable is True
        repository.save_summary.assert_called_once()

    def test_both_fail(self, repository, note):
        error = AINetworkError("연결 끊김")
        service = AIProcessingService(
            repository,
            summary_chain=_failing_chain("asummarize", error),
            tag_chain=_failing_chain("arespond", error),
        )

        result = asyncio.run(service.generate_all("user-1", note.id))

        assert result.success is False
        assert result.partial_success is False
        assert result.error_type == AIErrorType.NETWORK_ERROR

    def test_gates_run_once_before_generation(self, service, repository):
        repository.get_note.return_value = None

        result = asyncio.run(service.generate_all("user-1", uuid4()))

        assert result.error_type == AIErrorType.AUTHORIZATION_ERROR
        repository.get_note.assert_called_once()


class TestUpdateSummary:
    """Test manual summary edits."""

    def test_trims_and_saves(self, service, repository, note):
        repository.upsert_summary.return_value = MagicMock(content="수정된 요약")

        result = asyncio.run(service.update_summary("user-1", note.id, "  수정된 요약  "))

        assert result.success is True
        repository.upsert_summary.assert_called_once_with(note.id, "수정된 요약")

    def test_empty_summary_is_rejected(self, service, repository, note):
        result = asyncio.run(service.update_summary("user-1", note.id, "   "))

        assert result.success is False
        assert result.error == "요약 내용을 입력해주세요."
        assert result.error_type == AIErrorType.VALIDATION_ERROR
        repository.upsert_summary.assert_not_called()

    def test_overlong_summary_is_rejected(self, service, note):
        result = asyncio.run(service.update_summary("user-1", note.id, "가" * 2001))

        assert result.error == "요약이 너무 깁니다. (최대 2000자)"

    def test_length_limit_counts_surrounding_whitespace(self, service, repository, note):
        result = asyncio.run(service.update_summary("user-1", note.id, " " + "가" * 2000))

        assert result.error == "요약이 너무 깁니다. (최대 2000자)"
        repository.upsert_summary.assert_not_called()

    def test_other_users_note_is_rejected(self, service, repository):
        repository.get_note.return_value = None

        result = asyncio.run(service.update_summary("user-2", uuid4(), "요약"))

        assert result.error == "노트를 찾을 수 없거나 권한이 없습니다."


class TestUpdateTags:
    """Test manual tag edits."""

    def test_cleans_and_limits_tags(self, service, repository, note):
        tags = ["  회의 ", "", "가" * 51] + [f"태그{i}" for i in range(12)]

        result = asyncio.run(service.update_tags("user-1", note.id, tags))

        expected = ["회의"] + [f"태그{i}" for i in range(9)]
        assert result.success is True
        assert result.data == {"tags": expected}
        repository.replace_tags.assert_called_once_with(note.id, expected)

    def test_requires_at_least_one_tag(self, service, repository, note):
        result = asyncio.run(service.update_tags("user-1", note.id, [" ", ""]))

        assert result.error == "최소 1개의 태그를 입력해주세요."
        repository.replace_tags.assert_not_called()


class TestConnection:
    def test_success(self, repository):
        chain = ConnectionCheckChain(llm=FakeListChatModel(responses=["안녕하세요!"]))
        service = AIProcessingService(repository, connection_chain=chain)

        result = asyncio.run(service.test_connection())

        assert result.success is True
        assert result.data == {"message": "API 연결 성공: 안녕하세요!"}

    def test_works_without_repository(self):
        chain = ConnectionCheckChain(llm=FakeListChatModel(responses=["안녕하세요!"]))
        service = AIProcessingService(None, connection_chain=chain)

        result = asyncio.run(service.test_connection())

        assert result.success is True

    def test_failure(self, repository):
        chain = _failing_chain("acheck", AINetworkError("연결 끊김"))
        service = AIProcessingService(repository, connection_chain=chain)

        result = asyncio.run(service.test_connection())

        assert result.success is False
        assert result.error.startswith("API 연결 테스트 실패:")
