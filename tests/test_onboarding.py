"""Tests for onboarding state."""

from unittest.mock import MagicMock

import psycopg2

from ai_memo.notes import NoteRepository
from ai_memo.services import complete_onboarding, get_onboarding_status, skip_onboarding


def _repository():
    return MagicMock(spec=NoteRepository)


class TestOnboardingStatus:
    def test_anonymous_user_is_not_completed(self):
        repository = _repository()

        assert get_onboarding_status(repository, None) is False
        repository.get_onboarding_status.assert_not_called()

    def test_reads_repository(self):
        repository = _repository()
        repository.get_onboarding_status.return_value = True

        assert get_onboarding_status(repository, "user-1") is True

    def test_database_error_counts_as_not_completed(self):
        repository = _repository()
        repository.get_onboarding_status.side_effect = psycopg2.OperationalError("down")

        assert get_onboarding_status(repository, "user-1") is False


class TestCompleteOnboarding:
    def test_complete(self):
        repository = _repository()

        result = complete_onboarding(repository, "user-1")

        assert result.success is True
        repository.set_onboarding_completed.assert_called_once_with("user-1")

    def test_requires_login(self):
        result = complete_onboarding(_repository(), None)

        assert result.success is False
        assert result.error == "로그인이 필요합니다."

    def test_database_error(self):
        repository = _repository()
        repository.set_onboarding_completed.side_effect = psycopg2.OperationalError("down")

        result = skip_onboarding(repository, "user-1")

        assert result.success is False
        assert result.error == "온보딩 완료 처리 중 오류가 발생했습니다."
