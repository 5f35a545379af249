"""Gemini models on Vertex AI.

Two tiers are configured: ``high`` (``LLM_MODEL``) writes summaries and
``lite`` (``LLM_MODEL_LITE``) extracts tags and answers connection checks.
"""

from typing import Literal

from langchain_google_vertexai import ChatVertexAI

from ai_memo.config import settings

Quality = Literal["high", "lite"]


def get_model_name(quality: Quality = "high") -> str:
    """Model used for ``quality``; also recorded with stored summaries."""
    if quality == "lite" and settings.use_lite_model:
        return settings.llm_model_lite
    return settings.llm_model


def get_llm(quality: Quality = "high", temperature: float | None = None) -> ChatVertexAI:
    """Create a chat model.

    Args:
        quality: Model tier.
        temperature: Sampling temperature, ``settings.llm_temperature`` if None.

    Returns:
        ChatVertexAI instance. Its own retries are disabled because calls go
        through ``ai_memo.ai.retry.call_with_retry``.
    """
    return ChatVertexAI(
        model_name=get_model_name(quality),
        project=settings.google_project_id,
        location=settings.google_location,
        temperature=settings.llm_temperature if temperature is None else temperature,
        max_retries=0,
    )
