"""AI error taxonomy and classification.

Every failure raised while generating a summary or tags is normalized into one
``AIErrorInfo`` before it reaches a caller. The info carries a message that is
safe to show to the user and a ``retryable`` hint that decides whether a retry
is attempted (server side) or offered (client side).
"""

import logging
from enum import Enum
from typing import Any

import httpx
import psycopg2
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class AIErrorType(str, Enum):
    """Closed set of AI failure kinds."""

    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    AUTHORIZATION_ERROR = "AUTHORIZATION_ERROR"
    TOKEN_LIMIT_EXCEEDED = "TOKEN_LIMIT_EXCEEDED"
    NETWORK_ERROR = "NETWORK_ERROR"
    API_ERROR = "API_ERROR"
    PARSING_ERROR = "PARSING_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class AIErrorInfo(BaseModel):
    """A classified failure."""

    type: AIErrorType = Field(description="에러 종류")
    message: str = Field(description="내부 진단용 메시지")
    user_message: str = Field(description="사용자에게 표시할 메시지")
    retryable: bool = Field(description="같은 작업을 다시 시도해도 되는지")
    details: Any | None = Field(default=None, description="로깅용 부가 정보")


# kind -> (user message, retryable)
ERROR_POLICY: dict[AIErrorType, tuple[str, bool]] = {
    AIErrorType.AUTHENTICATION_ERROR: ("로그인이 필요합니다. 다시 로그인해주세요.", False),
    AIErrorType.AUTHORIZATION_ERROR: ("노트를 찾을 수 없습니다.", False),
    AIErrorType.TOKEN_LIMIT_EXCEEDED: (
        "노트가 너무 깁니다. 내용을 줄이거나 여러 개의 노트로 나누어주세요.",
        False,
    ),
    AIErrorType.NETWORK_ERROR: (
        "네트워크 연결에 문제가 있습니다. 잠시 후 다시 시도해주세요.",
        True,
    ),
    AIErrorType.API_ERROR: ("Gemini API 호출이 실패했습니다. 잠시 후 다시 시도해주세요.", True),
    AIErrorType.PARSING_ERROR: ("AI가 적절한 태그를 생성하지 못했습니다. 다시 시도해주세요.", True),
    AIErrorType.DATABASE_ERROR: (
        "데이터 저장 중 문제가 발생했습니다. 잠시 후 다시 시도해주세요.",
        True,
    ),
    AIErrorType.VALIDATION_ERROR: ("입력 데이터에 문제가 있습니다. 내용을 확인해주세요.", False),
    AIErrorType.UNKNOWN_ERROR: (
        "예상치 못한 오류가 발생했습니다. 잠시 후 다시 시도해주세요.",
        True,
    ),
}


class AIProcessingError(Exception):
    """Base class for AI processing errors."""

    error_type = AIErrorType.UNKNOWN_ERROR


class AIAuthenticationError(AIProcessingError):
    """Raised when no user is logged in."""

    error_type = AIErrorType.AUTHENTICATION_ERROR


class AIAuthorizationError(AIProcessingError):
    """Raised when the note does not exist or belongs to someone else."""

    error_type = AIErrorType.AUTHORIZATION_ERROR


class AITokenLimitError(AIProcessingError):
    """Raised when the note exceeds the model input budget."""

    error_type = AIErrorType.TOKEN_LIMIT_EXCEEDED


class AINetworkError(AIProcessingError):
    """Raised when the AI provider cannot be reached."""

    error_type = AIErrorType.NETWORK_ERROR


class AIProviderError(AIProcessingError):
    """Raised for upstream provider failures."""

    error_type = AIErrorType.API_ERROR


class AIParsingError(AIProcessingError):
    """Raised when the model response cannot be used."""

    error_type = AIErrorType.PARSING_ERROR


class AIDatabaseError(AIProcessingError):
    """Raised when AI results cannot be stored."""

    error_type = AIErrorType.DATABASE_ERROR


class AIValidationError(AIProcessingError):
    """Raised when input data is malformed."""

    error_type = AIErrorType.VALIDATION_ERROR


def error_for_type(error_type: AIErrorType, message: str) -> AIProcessingError:
    """Build the exception whose class carries ``error_type``."""
    for error_class in AIProcessingError.__subclasses__():
        if error_class.error_type == error_type:
            return error_class(message)
    return AIProcessingError(message)


# Checked in order; the first matching rule wins. A rule with ``match_all``
# needs every keyword, otherwise any one of them.
_KEYWORD_RULES: list[tuple[AIErrorType, tuple[str, ...], bool]] = [
    (AIErrorType.AUTHENTICATION_ERROR, ("로그인이 필요", "인증"), False),
    (
        AIErrorType.AUTHORIZATION_ERROR,
        ("권한이 없", "접근 거부", "노트를 찾을 수 없습니다"),
        False,
    ),
    (AIErrorType.TOKEN_LIMIT_EXCEEDED, ("토큰", "너무 깁니다"), True),
    (
        AIErrorType.NETWORK_ERROR,
        ("네트워크", "연결", "timeout", "ECONNREFUSED", "Connection refused"),
        False,
    ),
    (AIErrorType.API_ERROR, ("API", "Gemini", "호출", "응답"), False),
    (
        AIErrorType.PARSING_ERROR,
        ("파싱", "생성된", "텍스트를 찾을 수 없습니다", "AI가 적절한"),
        False,
    ),
    (
        AIErrorType.DATABASE_ERROR,
        ("데이터베이스", "DB", "저장", "조회", "Database error"),
        False,
    ),
    (AIErrorType.VALIDATION_ERROR, ("검증", "입력", "유효하지"), False),
]


def _type_from_exception(error: BaseException) -> AIErrorType | None:
    if isinstance(error, AIProcessingError):
        return error.error_type
    if isinstance(error, (TimeoutError, ConnectionError, httpx.TransportError)):
        return AIErrorType.NETWORK_ERROR
    if isinstance(error, psycopg2.Error):
        return AIErrorType.DATABASE_ERROR
    return None


def _type_from_message(message: str) -> AIErrorType:
    for error_type, keywords, match_all in _KEYWORD_RULES:
        matches = [keyword in message for keyword in keywords]
        if all(matches) if match_all else any(matches):
            return error_type
    return AIErrorType.UNKNOWN_ERROR


def classify_error(error: BaseException | str | None, details: Any | None = None) -> AIErrorInfo:
    """Map a raw failure to exactly one ``AIErrorInfo``.

    Known exception classes decide the kind directly. Anything else is matched
    on its message text, falling back to ``UNKNOWN_ERROR``.

    Args:
        error: The caught exception, or an error message.
        details: Optional payload kept on the info for logging.

    Returns:
        The classified error with user-facing text and retry hint.
    """
    message = str(error) if error is not None else ""
    message = message or "알 수 없는 오류"

    error_type = None
    if isinstance(error, BaseException):
        error_type = _type_from_exception(error)
    if error_type is None:
        error_type = _type_from_message(message)

    user_message, retryable = ERROR_POLICY[error_type]
    return AIErrorInfo(
        type=error_type,
        message=message,
        user_message=user_message,
        retryable=retryable,
        details=details,
    )


def log_ai_error(error_info: AIErrorInfo, context: dict[str, Any] | None = None) -> str:
    """Log a classified error and record it in the error monitor.

    Args:
        error_info: The classified error.
        context: Extra fields such as ``action``, ``note_id`` or ``attempt``.

    Returns:
        The monitor's log entry ID.
    """
    from ai_memo.ai.monitoring import error_monitor

    context = context or {}
    logger.error(
        f"AI error [{error_info.type.value}] {error_info.message} "
        f"(retryable={error_info.retryable}, context={context})"
    )
    return error_monitor.log_error(
        error_info,
        {"action": "unknown", "retry_count": 0, "success": False, **context},
    )
