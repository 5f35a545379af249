"""LangChain chains for note summaries and tags."""

from ai_memo.chains.connection_check import ConnectionCheckChain
from ai_memo.chains.summary_generator import SummaryChain
from ai_memo.chains.tag_generator import TagChain, parse_tags

__all__ = [
    "ConnectionCheckChain",
    "SummaryChain",
    "TagChain",
    "parse_tags",
]
