"""Formatting helpers for displaying and exporting notes."""

from typing import Any

from ai_memo.ai.status import PROCESS_TYPE_LABELS, AIProcessType


def format_process_type_ko(process_type: str | None) -> str:
    """Convert a process type to its Korean label.

    Args:
        process_type: ``summary`` or ``tags``.

    Returns:
        Korean label, or the input unchanged if it is not a known process type.
    """
    if process_type is None:
        return ""
    try:
        return PROCESS_TYPE_LABELS[AIProcessType(process_type)]
    except ValueError:
        return process_type


def truncate_text(text: str, max_length: int = 100) -> str:
    """Truncate text to max length with ellipsis.

    Args:
        text: Text to truncate.
        max_length: Maximum length before truncation.

    Returns:
        Truncated text with ellipsis if needed.
    """
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def format_tags(tags: list[str]) -> str:
    """Render tags as ``#tag`` words separated by spaces."""
    return " ".join(f"#{tag}" for tag in tags)


def create_note_markdown(note: dict[str, Any]) -> str:
    """Create markdown content for exporting a note.

    Args:
        note: Note data as returned by ``GET /api/notes/{id}`` (title, content,
            tags, summary, created_at).

    Returns:
        Formatted markdown string.
    """
    lines = []

    lines.append(f"# {note.get('title', '')}")
    lines.append("")

    tags = note.get("tags") or []
    if tags:
        lines.append(format_tags(tags))
        lines.append("")

    summary = note.get("summary")
    if summary:
        lines.append("## 요약")
        lines.append("")
        lines.append(summary["content"])
        lines.append("")

    lines.append("## 본문")
    lines.append("")
    lines.append(note.get("content", ""))
    lines.append("")

    # Metadata
    lines.append("---")
    lines.append("")
    lines.append(f"작성일: {note.get('created_at', '알 수 없음')}")

    return "\n".join(lines)
