"""Note summary generation chain."""

import logging

from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate

from ai_memo.ai.errors import AIParsingError
from ai_memo.llm import get_llm, get_model_name

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """당신은 메모를 정리하는 어시스턴트입니다.

## 규칙
- 노트를 3-6개의 불릿 포인트로 요약합니다
- 핵심 내용만 간결하게 정리합니다
- 각 줄은 "- "로 시작합니다
- 노트에 없는 내용은 추가하지 않습니다"""

USER_PROMPT = """다음 노트를 3-6개의 불릿 포인트로 요약해주세요. 핵심 내용만 간결하게 정리해주세요.

제목: {title}

내용:
{content}

요약:"""


class SummaryChain:
    """Chain for summarizing a note into bullet points."""

    def __init__(self, llm: BaseChatModel | None = None):
        """Initialize the summary chain.

        Args:
            llm: Optional chat model. Creates a ChatVertexAI if not provided.
        """
        self.llm = llm or get_llm(quality="high", temperature=0.3)
        self.model_name = get_model_name("high")
        self.prompt = ChatPromptTemplate.from_messages(
            [
                ("system", SYSTEM_PROMPT),
                ("human", USER_PROMPT),
            ]
        )
        self.chain = self.prompt | self.llm | StrOutputParser()

    def summarize(self, title: str, content: str) -> str:
        """Summarize a note.

        Args:
            title: Note title.
            content: Note body.

        Returns:
            Bullet point summary.

        Raises:
            AIParsingError: If the model returned no text.
        """
        result = self.chain.invoke({"title": title, "content": content})
        return self._check(result)

    async def asummarize(self, title: str, content: str) -> str:
        """Async version of summarize."""
        result = await self.chain.ainvoke({"title": title, "content": content})
        return self._check(result)

    @staticmethod
    def _check(result: str) -> str:
        summary = result.strip()
        if not summary:
            raise AIParsingError("AI 응답에서 텍스트를 찾을 수 없습니다.")
        return summary
