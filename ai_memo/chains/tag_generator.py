"""Note tag generation chain."""

import logging

from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate

from ai_memo.ai.errors import AIParsingError
from ai_memo.llm import get_llm

logger = logging.getLogger(__name__)

MAX_TAGS = 6
MAX_TAG_LENGTH = 100

USER_PROMPT = """다음 노트의 내용을 분석하여 관련성 높은 태그를 최대 6개까지 생성해주세요. 각 태그는 한 단어 또는 짧은 구문으로 작성해주세요.

제목: {title}

내용:
{content}

태그 (쉼표로 구분):"""  # noqa: E501


def parse_tags(response: str, max_tags: int = MAX_TAGS) -> list[str]:
    """Split a comma separated model response into tags.

    Blank entries and entries longer than 100 characters are dropped, and at
    most ``max_tags`` are kept in order.
    """
    tags = [tag.strip() for tag in response.split(",")]
    return [tag for tag in tags if 0 < len(tag) <= MAX_TAG_LENGTH][:max_tags]


class TagChain:
    """Chain for generating tags for a note."""

    def __init__(self, llm: BaseChatModel | None = None):
        """Initialize the tag chain.

        Args:
            llm: Optional chat model. Creates a lite ChatVertexAI if not provided.
        """
        # Tag extraction is a lightweight task
        self.llm = llm or get_llm(quality="lite", temperature=0.1)
        self.prompt = ChatPromptTemplate.from_messages([("human", USER_PROMPT)])
        self.chain = self.prompt | self.llm | StrOutputParser()

    def generate(self, title: str, content: str) -> list[str]:
        """Generate tags for a note.

        Raises:
            AIParsingError: If no usable tag was produced.
        """
        response = self.chain.invoke({"title": title, "content": content})
        return self.parse(response)

    async def agenerate(self, title: str, content: str) -> list[str]:
        """Async version of generate."""
        return self.parse(await self.arespond(title, content))

    async def arespond(self, title: str, content: str) -> str:
        """Raw comma separated model response, before parsing."""
        return await self.chain.ainvoke({"title": title, "content": content})

    @staticmethod
    def parse(response: str) -> list[str]:
        """Parse a model response.

        Raises:
            AIParsingError: If no usable tag is in the response.
        """
        tags = parse_tags(response)
        if not tags:
            logger.warning(f"No tags parsed from response: {response[:100]!r}")
            raise AIParsingError("생성된 태그가 없습니다.")
        return tags
