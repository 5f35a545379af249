"""Client for the AI memo API."""

from ai_memo.ui.api_client import APIClient, StreamResult
from ai_memo.ui.utils import (
    create_note_markdown,
    format_process_type_ko,
    format_tags,
    truncate_text,
)

__all__ = [
    "APIClient",
    "StreamResult",
    "create_note_markdown",
    "format_process_type_ko",
    "format_tags",
    "truncate_text",
]
