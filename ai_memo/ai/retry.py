"""Token budget checks and retrying of LLM calls."""

import asyncio
import logging
import math
import random
import re
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from ai_memo.ai.errors import (
    AITokenLimitError,
    classify_error,
    error_for_type,
    log_ai_error,
)
from ai_memo.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_HANGUL_SYLLABLE = re.compile(r"[가-힣]")


def estimate_token_count(text: str) -> int:
    """Roughly estimate the tokens needed for ``text``.

    Hangul syllables count 1.5 tokens each, every other character a quarter.
    """
    korean_chars = len(_HANGUL_SYLLABLE.findall(text))
    other_chars = len(text) - korean_chars
    return math.ceil(korean_chars * 1.5 + other_chars / 4)


def validate_token_limit(text: str, max_tokens: int | None = None) -> None:
    """Reject text whose estimated size exceeds the model input budget.

    Raises:
        AITokenLimitError: If the estimate is above ``max_tokens``.
    """
    max_tokens = max_tokens or settings.ai_max_input_tokens
    token_count = estimate_token_count(text)
    if token_count > max_tokens:
        raise AITokenLimitError(
            f"텍스트가 너무 깁니다. 예상 토큰 수: {token_count}, 최대 허용: {max_tokens}"
        )


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int | None = None,
    base_delay: float | None = None,
    context: dict[str, Any] | None = None,
) -> T:
    """Await ``operation`` until it succeeds, with exponential backoff and jitter.

    Each failure is classified and logged. Non-retryable failures are
    re-raised immediately.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt.
        max_retries: Total attempts (defaults to ``settings.ai_max_retries``).
        base_delay: First backoff delay in seconds, doubled per attempt.
        context: Extra logging context such as ``action`` and ``note_id``.

    Returns:
        The operation's result.

    Raises:
        AIProcessingError: When every attempt failed with a retryable error.
            The subclass matches the kind of the last failure.
        ValueError: If ``max_retries`` is below 1.
    """
    max_retries = settings.ai_max_retries if max_retries is None else max_retries
    if max_retries < 1:
        raise ValueError(f"max_retries must be at least 1, got {max_retries}")
    base_delay = settings.ai_retry_base_delay if base_delay is None else base_delay
    context = context or {}

    for attempt in range(1, max_retries + 1):
        try:
            result = await operation()
            logger.info(f"AI call succeeded (attempt {attempt}/{max_retries})")
            return result
        except Exception as e:
            error_info = classify_error(e)
            log_ai_error(
                error_info,
                {
                    **context,
                    "attempt": attempt,
                    "max_retries": max_retries,
                    "retry_count": attempt - 1,
                },
            )

            if not error_info.retryable:
                raise

            if attempt == max_retries:
                raise error_for_type(
                    error_info.type,
                    f"AI 호출이 {max_retries}번 모두 실패했습니다: {error_info.user_message}",
                ) from e

            delay = base_delay * 2 ** (attempt - 1) + random.random() * base_delay
            logger.info(f"Retrying AI call in {delay:.1f}s (attempt {attempt}/{max_retries})")
            await asyncio.sleep(delay)

    raise RuntimeError("retry loop exited without a result")
