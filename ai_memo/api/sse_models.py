"""SSE event models for streaming AI job progress."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from ai_memo.ai.errors import AIErrorType


class SSEEventType(str, Enum):
    """Types of SSE events."""

    STATUS = "status"
    COMPLETE = "complete"
    ERROR = "error"


class StatusEvent(BaseModel):
    """Snapshot of the job's AI status tracker."""

    event_type: str = Field(default=SSEEventType.STATUS.value, description="Event type")
    state: dict[str, Any] = Field(description="AIStatusState snapshot")


class CompleteEvent(BaseModel):
    """Job finished successfully."""

    event_type: str = Field(default=SSEEventType.COMPLETE.value, description="Event type")
    result: dict[str, Any] = Field(description="생성된 요약 또는 태그")


class ErrorEvent(BaseModel):
    """Job failed."""

    event_type: str = Field(default=SSEEventType.ERROR.value, description="Event type")
    error: str = Field(description="사용자에게 표시할 에러 메시지")
    error_type: AIErrorType | None = Field(default=None, description="에러 종류")
    retryable: bool = Field(default=False, description="재시도 가능 여부")


SSEEvent = StatusEvent | CompleteEvent | ErrorEvent


def to_sse(event: SSEEvent) -> dict[str, str]:
    """Format an event for ``EventSourceResponse``."""
    return {"event": event.event_type, "data": event.model_dump_json()}
