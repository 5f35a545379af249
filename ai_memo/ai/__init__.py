"""AI status tracking, error classification and retry helpers."""

from ai_memo.ai.errors import AIErrorInfo, AIErrorType, AIProcessingError, classify_error
from ai_memo.ai.monitoring import ErrorMonitor, error_monitor
from ai_memo.ai.status import AIProcessType, AIStatus, AIStatusState, AIStatusTracker

__all__ = [
    "AIErrorInfo",
    "AIErrorType",
    "AIProcessType",
    "AIProcessingError",
    "AIStatus",
    "AIStatusState",
    "AIStatusTracker",
    "ErrorMonitor",
    "classify_error",
    "error_monitor",
]
