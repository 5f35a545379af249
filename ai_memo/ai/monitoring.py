"""In-memory monitoring of AI processing errors.

Keeps a bounded log of classified errors with per-type and per-action
counters, and derives simple trends and recommendations for the admin API.
"""

import logging
import secrets
import time
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

from ai_memo.ai.errors import AIErrorInfo, AIErrorType

logger = logging.getLogger(__name__)

ErrorTrend = Literal["increasing", "decreasing", "stable"]


class MonitoringConfig(BaseModel):
    """Error monitor limits."""

    max_log_entries: int = Field(default=1000, ge=1)
    stats_retention_days: int = Field(default=30, ge=1)
    enable_detailed_logging: bool = True


class ErrorLogEntry(BaseModel):
    """One recorded error."""

    id: str
    timestamp: datetime
    error_type: str
    action: str
    message: str
    user_message: str
    retryable: bool
    retry_count: int | None = None
    success: bool | None = None
    context: dict[str, Any] | None = None


class ErrorStats(BaseModel):
    """Aggregated error statistics."""

    total_errors: int = 0
    errors_by_type: dict[str, int] = Field(default_factory=dict)
    errors_by_action: dict[str, int] = Field(default_factory=dict)
    recent_errors: list[ErrorLogEntry] = Field(default_factory=list)
    retry_success_rate: float = 0.0
    average_retry_attempts: float = 0.0


class ErrorPatterns(BaseModel):
    """Result of error pattern analysis."""

    most_common_error_type: str
    most_common_action: str
    error_trend: ErrorTrend
    recommendations: list[str] = Field(default_factory=list)


class ErrorMonitor:
    """Collects classified AI errors and computes statistics over them."""

    RECENT_ERRORS = 10

    def __init__(self, config: MonitoringConfig | None = None) -> None:
        self.config = config or MonitoringConfig()
        self._logs: list[ErrorLogEntry] = []
        self._stats = ErrorStats()

    def log_error(self, error_info: AIErrorInfo, context: dict[str, Any]) -> str:
        """Record an error.

        Args:
            error_info: The classified error.
            context: Must contain ``action``; ``retry_count`` and ``success``
                feed the retry statistics.

        Returns:
            ID of the new log entry.
        """
        entry = ErrorLogEntry(
            id=f"error_{int(time.time() * 1000)}_{secrets.token_hex(5)}",
            timestamp=datetime.now(timezone.utc),
            error_type=AIErrorType(error_info.type).value,
            action=str(context.get("action", "unknown")),
            message=error_info.message,
            user_message=error_info.user_message,
            retryable=error_info.retryable,
            retry_count=context.get("retry_count"),
            success=context.get("success"),
            context=context if self.config.enable_detailed_logging else None,
        )

        self._logs.append(entry)
        if len(self._logs) > self.config.max_log_entries:
            del self._logs[: len(self._logs) - self.config.max_log_entries]

        self._update_stats(entry)
        self._cleanup_expired_logs()

        logger.debug(f"Error logged: {entry.id} ({entry.error_type}, action={entry.action})")
        return entry.id

    def _update_stats(self, entry: ErrorLogEntry) -> None:
        stats = self._stats
        stats.total_errors += 1
        stats.errors_by_type[entry.error_type] = stats.errors_by_type.get(entry.error_type, 0) + 1
        stats.errors_by_action[entry.action] = stats.errors_by_action.get(entry.action, 0) + 1

        stats.recent_errors = sorted(
            self._logs[-self.RECENT_ERRORS :],
            key=lambda log: log.timestamp,
            reverse=True,
        )

        retried = [log for log in self._logs if log.retry_count is not None]
        if retried:
            successful = sum(1 for log in retried if log.success is True)
            stats.retry_success_rate = successful / len(retried) * 100
            stats.average_retry_attempts = sum(log.retry_count or 0 for log in retried) / len(
                retried
            )

    def _cleanup_expired_logs(self) -> None:
        cutoff = datetime.now(timezone.utc) - timedelta(days=self.config.stats_retention_days)
        kept = [log for log in self._logs if log.timestamp >= cutoff]
        if len(kept) != len(self._logs):
            logger.info(f"Cleaned up {len(self._logs) - len(kept)} expired error logs")
            self._logs = kept

    def get_stats(self) -> ErrorStats:
        """Return a copy of the current statistics."""
        return self._stats.model_copy(deep=True)

    def get_error_logs(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        error_type: str | None = None,
        action: str | None = None,
    ) -> list[ErrorLogEntry]:
        """Return logged errors matching every given filter, newest first."""
        logs = list(self._logs)
        if start is not None:
            logs = [log for log in logs if log.timestamp >= start]
        if end is not None:
            logs = [log for log in logs if log.timestamp <= end]
        if error_type is not None:
            logs = [log for log in logs if log.error_type == error_type]
        if action is not None:
            logs = [log for log in logs if log.action == action]
        return sorted(logs, key=lambda log: log.timestamp, reverse=True)

    def analyze_error_patterns(self) -> ErrorPatterns:
        """Find the dominant error type/action and compare the last two hours."""
        stats = self._stats
        most_common_type = _most_common(stats.errors_by_type)
        most_common_action = _most_common(stats.errors_by_action)

        now = datetime.now(timezone.utc)
        one_hour_ago = now - timedelta(hours=1)
        recent = len(self.get_error_logs(one_hour_ago, now))
        previous = len(self.get_error_logs(now - timedelta(hours=2), one_hour_ago))

        trend: ErrorTrend = "stable"
        if recent > previous * 1.2:
            trend = "increasing"
        elif recent < previous * 0.8:
            trend = "decreasing"

        recommendations = []
        if stats.retry_success_rate < 50:
            recommendations.append("재시도 성공률이 낮습니다. 재시도 로직을 검토해주세요.")
        if stats.average_retry_attempts > 2:
            recommendations.append("평균 재시도 횟수가 높습니다. 네트워크 안정성을 확인해주세요.")
        if most_common_type == AIErrorType.NETWORK_ERROR.value:
            recommendations.append("네트워크 에러가 빈번합니다. 연결 상태를 확인해주세요.")
        if most_common_type == AIErrorType.TOKEN_LIMIT_EXCEEDED.value:
            recommendations.append("토큰 제한 초과가 빈번합니다. 입력 텍스트 길이를 제한해주세요.")

        return ErrorPatterns(
            most_common_error_type=most_common_type,
            most_common_action=most_common_action,
            error_trend=trend,
            recommendations=recommendations,
        )

    def reset_stats(self) -> None:
        """Drop all logs and statistics."""
        self._logs = []
        self._stats = ErrorStats()


def _most_common(counts: dict[str, int]) -> str:
    if not counts:
        return "UNKNOWN"
    return Counter(counts).most_common(1)[0][0]


# Global error monitor instance
error_monitor = ErrorMonitor()


def get_error_stats() -> ErrorStats:
    """Statistics of the global error monitor."""
    return error_monitor.get_stats()


def get_error_patterns() -> ErrorPatterns:
    return error_monitor.analyze_error_patterns()
