"""Round-trip check against the configured Gemini model."""

from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate

from ai_memo.ai.errors import AIProviderError
from ai_memo.llm import get_llm

TEST_PROMPT = "안녕하세요. 연결 테스트입니다."


class ConnectionCheckChain:
    """Sends a fixed greeting and returns the model's reply."""

    def __init__(self, llm: BaseChatModel | None = None):
        self.llm = llm or get_llm(quality="lite")
        prompt = ChatPromptTemplate.from_messages([("human", TEST_PROMPT)])
        self.chain = prompt | self.llm | StrOutputParser()

    async def acheck(self) -> str:
        reply = (await self.chain.ainvoke({})).strip()
        if not reply:
            raise AIProviderError("API 응답에서 텍스트를 찾을 수 없습니다.")
        return reply
