"""Application services used by the API."""

from ai_memo.services.ai_processing import AIActionResult, AIProcessingService
from ai_memo.services.onboarding import (
    OnboardingResult,
    complete_onboarding,
    get_onboarding_status,
    skip_onboarding,
)

__all__ = [
    "AIActionResult",
    "AIProcessingService",
    "OnboardingResult",
    "complete_onboarding",
    "get_onboarding_status",
    "skip_onboarding",
]
