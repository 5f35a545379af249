"""Onboarding state of a user."""

import logging

import psycopg2
from pydantic import BaseModel

from ai_memo.notes import NoteRepository

logger = logging.getLogger(__name__)


class OnboardingResult(BaseModel):
    success: bool
    error: str | None = None


def get_onboarding_status(repository: NoteRepository, user_id: str | None) -> bool:
    """Whether the user has completed onboarding.

    Anonymous users and database failures both count as "not completed" so the
    onboarding guide is shown rather than blocking the page.
    """
    if not user_id:
        return False
    try:
        return repository.get_onboarding_status(user_id)
    except psycopg2.Error as e:
        logger.warning(f"Failed to load onboarding status for {user_id}: {e}")
        return False


def complete_onboarding(repository: NoteRepository, user_id: str | None) -> OnboardingResult:
    """Mark onboarding as completed for the user."""
    if not user_id:
        return OnboardingResult(success=False, error="로그인이 필요합니다.")
    try:
        repository.set_onboarding_completed(user_id)
    except psycopg2.Error as e:
        logger.error(f"Failed to complete onboarding for {user_id}: {e}")
        return OnboardingResult(
            success=False, error="온보딩 완료 처리 중 오류가 발생했습니다."
        )

    logger.info(f"Onboarding completed: user_id={user_id}")
    return OnboardingResult(success=True)


def skip_onboarding(repository: NoteRepository, user_id: str | None) -> OnboardingResult:
    """Skipping is recorded the same way as completing."""
    return complete_onboarding(repository, user_id)
