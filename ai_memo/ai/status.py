"""AI processing status tracking.

Holds the progress of one summary or tag generation as a single snapshot
(idle / loading / success / error). Every setter replaces the whole snapshot;
only ``clear_error`` carries the previous fields over.

A tracker has exactly one writer. Concurrent operations must each use their
own tracker, otherwise the last call wins.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class AIProcessType(str, Enum):
    """AI feature being run for a note."""

    SUMMARY = "summary"
    TAGS = "tags"


class AIStatus(str, Enum):
    """Phase of an AI operation."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


PROCESS_TYPE_LABELS: dict[AIProcessType, str] = {
    AIProcessType.SUMMARY: "요약",
    AIProcessType.TAGS: "태그",
}

DEFAULT_MESSAGES: dict[tuple[AIProcessType, AIStatus], str] = {
    (AIProcessType.SUMMARY, AIStatus.LOADING): "요약 생성 중...",
    (AIProcessType.SUMMARY, AIStatus.SUCCESS): "요약 생성 완료",
    (AIProcessType.SUMMARY, AIStatus.ERROR): "요약 생성 실패",
    (AIProcessType.TAGS, AIStatus.LOADING): "태그 생성 중...",
    (AIProcessType.TAGS, AIStatus.SUCCESS): "태그 생성 완료",
    (AIProcessType.TAGS, AIStatus.ERROR): "태그 생성 실패",
}


def default_message(process_type: AIProcessType, status: AIStatus) -> str:
    """Return the default status message for a process type and phase.

    Raises:
        KeyError: For the idle phase, which has no default message.
    """
    return DEFAULT_MESSAGES[(AIProcessType(process_type), status)]


class AIStatusState(BaseModel):
    """Snapshot of an AI operation's status.

    ``error`` and ``timestamp`` are left unset rather than ``None`` when a
    state does not carry them, so ``snapshot()`` omits the keys.
    """

    status: AIStatus = Field(default=AIStatus.IDLE, description="현재 상태")
    process_type: AIProcessType | None = Field(default=None, description="처리 종류")
    message: str = Field(default="", description="상태 메시지")
    error: str | None = Field(default=None, description="에러 내용 (error 상태에서만)")
    timestamp: datetime | None = Field(default=None, description="마지막 전환 시각")

    def snapshot(self) -> dict[str, Any]:
        """JSON-ready dict containing only the fields this state carries."""
        return self.model_dump(mode="json", exclude_unset=True)


def _initial_state() -> AIStatusState:
    return AIStatusState(status=AIStatus.IDLE, process_type=None, message="")


class AIStatusTracker:
    """State container driving loading/success/error display for one AI operation."""

    def __init__(self) -> None:
        self._state = _initial_state()

    @property
    def state(self) -> AIStatusState:
        """Current status snapshot."""
        return self._state

    def set_loading(self, process_type: AIProcessType, message: str | None = None) -> None:
        """Mark the operation as in flight."""
        self._replace(AIStatus.LOADING, process_type, message)

    def set_success(self, process_type: AIProcessType, message: str | None = None) -> None:
        """Mark the operation as finished. Any previous error is dropped."""
        self._replace(AIStatus.SUCCESS, process_type, message)

    def set_error(
        self,
        process_type: AIProcessType,
        error: str,
        message: str | None = None,
    ) -> None:
        """Mark the operation as failed, storing ``error`` verbatim."""
        self._replace(AIStatus.ERROR, process_type, message, error=error)

    def reset(self) -> None:
        """Return to idle, forgetting the process type and message."""
        self._state = _initial_state()

    def clear_error(self) -> None:
        """Dismiss an error, keeping the process type and message.

        Does nothing unless the current status is error.
        """
        if self._state.status != AIStatus.ERROR:
            return

        carried = self._state.model_dump(exclude_unset=True, exclude={"error", "status"})
        self._state = AIStatusState(status=AIStatus.IDLE, **carried)

    def _replace(
        self,
        status: AIStatus,
        process_type: AIProcessType,
        message: str | None,
        **extra: Any,
    ) -> None:
        process_type = AIProcessType(process_type)
        self._state = AIStatusState(
            status=status,
            process_type=process_type,
            message=message or default_message(process_type, status),
            timestamp=self._next_timestamp(),
            **extra,
        )

    def _next_timestamp(self) -> datetime:
        # Never earlier than the previous transition, even if the wall clock steps back
        now = datetime.now(timezone.utc)
        previous = self._state.timestamp
        if previous is not None and previous > now:
            return previous
        return now
