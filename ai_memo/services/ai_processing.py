"""AI processing actions for notes: summaries, tags and manual edits.

Every action returns an ``AIActionResult``. Failures are classified, logged
to the error monitor and reported through the result instead of raised, so
callers can show ``error`` and offer a retry when ``retryable`` is set.
"""

import asyncio
import logging
from functools import lru_cache
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from ai_memo.ai.errors import (
    AIAuthenticationError,
    AIAuthorizationError,
    AIErrorInfo,
    AIErrorType,
    AIValidationError,
    classify_error,
    log_ai_error,
)
from ai_memo.ai.retry import call_with_retry, validate_token_limit
from ai_memo.chains import ConnectionCheckChain, SummaryChain, TagChain
from ai_memo.config import settings
from ai_memo.notes import Note, NoteRepository

logger = logging.getLogger(__name__)

MAX_MANUAL_TAG_LENGTH = 50
PARTIAL_FAILURE_MESSAGE = "AI 처리 중 일부 오류가 발생했습니다."


class AIActionResult(BaseModel):
    """Outcome of an AI action."""

    success: bool = Field(description="성공 여부")
    data: dict[str, Any] | None = Field(default=None, description="결과 데이터")
    error: str | None = Field(default=None, description="사용자 표시용 에러 메시지")
    error_type: AIErrorType | None = Field(default=None, description="에러 종류")
    retryable: bool | None = Field(default=None, description="재시도 가능 여부")
    partial_success: bool = Field(default=False, description="일부만 성공했는지")
    partial_data: dict[str, Any] | None = Field(default=None, description="성공한 결과")

    @classmethod
    def failure(cls, error_info: AIErrorInfo, **kwargs: Any) -> "AIActionResult":
        return cls(
            success=False,
            error=error_info.user_message,
            error_type=error_info.type,
            retryable=error_info.retryable,
            **kwargs,
        )


@lru_cache
def get_summary_chain() -> SummaryChain:
    return SummaryChain()


@lru_cache
def get_tag_chain() -> TagChain:
    return TagChain()


class AIProcessingService:
    """Runs AI actions against a user's notes."""

    def __init__(
        self,
        repository: NoteRepository | None,
        summary_chain: SummaryChain | None = None,
        tag_chain: TagChain | None = None,
        connection_chain: ConnectionCheckChain | None = None,
    ):
        """Initialize the service.

        Args:
            repository: Note repository bound to a database connection. Only
                ``test_connection`` works without one.
            summary_chain: Optional summary chain. Uses a shared one if not provided.
            tag_chain: Optional tag chain. Uses a shared one if not provided.
            connection_chain: Optional chain for ``test_connection``.
        """
        self.repository = repository
        self._summary_chain = summary_chain
        self._tag_chain = tag_chain
        self._connection_chain = connection_chain

    @property
    def summary_chain(self) -> SummaryChain:
        return self._summary_chain or get_summary_chain()

    @property
    def tag_chain(self) -> TagChain:
        return self._tag_chain or get_tag_chain()

    # ========== Generation ==========

    async def generate_summary(self, user_id: str | None, note_id: UUID) -> AIActionResult:
        """Generate and store a bullet point summary for a note."""
        context = {"note_id": str(note_id), "action": "generate_summary"}
        try:
            note = self._load_note(user_id, note_id)
            summary = await self._summarize(note, context)
        except Exception as e:
            return self._failure(e, context)

        logger.info(f"Summary generated: note_id={note_id}, length={len(summary)}")
        return AIActionResult(success=True, data={"summary": summary})

    async def generate_tags(self, user_id: str | None, note_id: UUID) -> AIActionResult:
        """Generate tags for a note, replacing its existing tags."""
        context = {"note_id": str(note_id), "action": "generate_tags"}
        try:
            note = self._load_note(user_id, note_id)
            tags = await self._tag(note, context)
        except Exception as e:
            return self._failure(e, context)

        logger.info(f"Tags generated: note_id={note_id}, count={len(tags)}")
        return AIActionResult(success=True, data={"tags": tags})

    async def generate_all(self, user_id: str | None, note_id: UUID) -> AIActionResult:
        """Generate summary and tags concurrently.

        If only one of them succeeds the result is a partial success: the
        successful half is stored and returned in ``partial_data``.
        """
        context = {"note_id": str(note_id), "action": "generate_ai_processing"}
        try:
            note = self._load_note(user_id, note_id)
        except Exception as e:
            return self._failure(e, context)

        summary, tags = await asyncio.gather(
            self._summarize(note, {**context, "action": "generate_summary"}),
            self._tag(note, {**context, "action": "generate_tags"}),
            return_exceptions=True,
        )
        summary_ok = not isinstance(summary, BaseException)
        tags_ok = not isinstance(tags, BaseException)

        if summary_ok and tags_ok:
            logger.info(
                f"AI processing succeeded: note_id={note_id}, "
                f"summary_length={len(summary)}, tags_count={len(tags)}"
            )
            return AIActionResult(success=True, data={"summary": summary, "tags": tags})

        if summary_ok or tags_ok:
            partial_data: dict[str, Any] = {}
            errors = []
            if summary_ok:
                partial_data["summary"] = summary
            else:
                errors.append(f"요약 생성 실패: {classify_error(summary).user_message}")
            if tags_ok:
                partial_data["tags"] = tags
            else:
                errors.append(f"태그 생성 실패: {classify_error(tags).user_message}")

            partial_info = AIErrorInfo(
                type=AIErrorType.PARSING_ERROR,
                message=f"부분적 성공: {', '.join(errors)}",
                user_message="일부 AI 처리가 완료되었습니다.",
                retryable=True,
            )
            log_ai_error(partial_info, {**context, "partial_data": partial_data, "errors": errors})
            return AIActionResult(
                success=False,
                error=PARTIAL_FAILURE_MESSAGE,
                error_type=AIErrorType.PARSING_ERROR,
                retryable=True,
                partial_success=True,
                partial_data=partial_data,
            )

        return self._failure(summary, context)

    # ========== Manual edits ==========

    async def update_summary(
        self, user_id: str | None, note_id: UUID, content: str
    ) -> AIActionResult:
        """Replace the note's summary with user-written text.

        The length limit applies to the text as sent; the stored summary is trimmed.
        """
        context = {"note_id": str(note_id), "action": "update_summary"}
        try:
            self._require_owned_note(user_id, note_id)
            stripped = content.strip()
            if not stripped:
                raise AIValidationError("요약 내용을 입력해주세요.")
            if len(content) > settings.summary_max_length:
                raise AIValidationError(
                    f"요약이 너무 깁니다. (최대 {settings.summary_max_length}자)"
                )
            summary = self.repository.upsert_summary(note_id, stripped)
        except (AIAuthenticationError, AIAuthorizationError, AIValidationError) as e:
            return self._failure(e, context, user_message=str(e))
        except Exception as e:
            return self._failure(e, context)

        return AIActionResult(success=True, data={"summary": summary.content})

    async def update_tags(
        self, user_id: str | None, note_id: UUID, tags: list[str]
    ) -> AIActionResult:
        """Replace the note's tags with user-entered ones.

        Tags are trimmed; empty ones and ones longer than 50 characters are
        dropped and at most 10 are kept.
        """
        context = {"note_id": str(note_id), "action": "update_tags"}
        try:
            self._require_owned_note(user_id, note_id)
            valid_tags = [tag.strip() for tag in tags]
            valid_tags = [tag for tag in valid_tags if 0 < len(tag) <= MAX_MANUAL_TAG_LENGTH]
            valid_tags = valid_tags[: settings.max_manual_tags]
            if not valid_tags:
                raise AIValidationError("최소 1개의 태그를 입력해주세요.")
            self.repository.replace_tags(note_id, valid_tags)
        except (AIAuthenticationError, AIAuthorizationError, AIValidationError) as e:
            return self._failure(e, context, user_message=str(e))
        except Exception as e:
            return self._failure(e, context)

        return AIActionResult(success=True, data={"tags": valid_tags})

    async def test_connection(self) -> AIActionResult:
        """Send a fixed prompt to the model to verify credentials and reachability."""
        context = {"action": "test_connection"}
        try:
            chain = self._connection_chain or ConnectionCheckChain()
            reply = await call_with_retry(chain.acheck, context=context)
        except Exception as e:
            return self._failure(e, context, user_message=f"API 연결 테스트 실패: {e}")

        return AIActionResult(success=True, data={"message": f"API 연결 성공: {reply}"})

    # ========== Helpers ==========

    def _load_note(self, user_id: str | None, note_id: UUID) -> Note:
        """Load an owned note that fits the model's input budget."""
        note = self._require_owned_note(user_id, note_id)
        validate_token_limit(f"{note.title}\n\n{note.content}")
        return note

    def _require_owned_note(self, user_id: str | None, note_id: UUID) -> Note:
        if not user_id:
            raise AIAuthenticationError("로그인이 필요합니다.")
        note = self.repository.get_note(user_id, note_id)
        if note is None:
            raise AIAuthorizationError("노트를 찾을 수 없거나 권한이 없습니다.")
        return note

    async def _summarize(self, note: Note, context: dict[str, Any]) -> str:
        summary = await call_with_retry(
            lambda: self.summary_chain.asummarize(note.title, note.content),
            context=context,
        )
        self.repository.save_summary(note.id, self.summary_chain.model_name, summary)
        return summary

    async def _tag(self, note: Note, context: dict[str, Any]) -> list[str]:
        response = await call_with_retry(
            lambda: self.tag_chain.arespond(note.title, note.content),
            context=context,
        )
        tags = self.tag_chain.parse(response)
        self.repository.replace_tags(note.id, tags)
        return tags

    @staticmethod
    def _failure(
        error: BaseException,
        context: dict[str, Any],
        user_message: str | None = None,
    ) -> AIActionResult:
        error_info = classify_error(error)
        log_ai_error(error_info, context)
        if user_message:
            error_info = error_info.model_copy(update={"user_message": user_message})
        return AIActionResult.failure(error_info)
