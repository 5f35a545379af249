"""API module for FastAPI REST endpoints."""

from ai_memo.api.models import (
    DeleteResponse,
    ErrorResponse,
    JobResponse,
    OnboardingStatusResponse,
    SummaryUpdateRequest,
    TagsUpdateRequest,
)

__all__ = [
    "DeleteResponse",
    "ErrorResponse",
    "JobResponse",
    "OnboardingStatusResponse",
    "SummaryUpdateRequest",
    "TagsUpdateRequest",
]
