"""Prompt enhancement and site code generation against the completion service."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Optional

from openai import OpenAI

from config import settings
from services.catalog import ENHANCE_SYSTEM_PROMPT, GENERATE_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

_FENCE_OPEN_RE = re.compile(r"```[a-z]*\n?", re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"```$")


class TransformError(RuntimeError):
    """The completion service could not be reached or returned an error."""


def get_openai_client(api_key: str) -> Optional[OpenAI]:
    """Get OpenAI-compatible client, handling placeholders."""
    if not api_key or "your_" in api_key or api_key == "test-key":
        return None
    return OpenAI(
        api_key=api_key,
        base_url=settings.OPENAI_BASE_URL or None,
        timeout=settings.AI_REQUEST_TIMEOUT_SECONDS,
    )


def sanitize_markup(raw: Optional[str]) -> str:
    """Strip Markdown code fences and surrounding whitespace from model output."""
    cleaned = _FENCE_OPEN_RE.sub("", raw or "")
    cleaned = _FENCE_CLOSE_RE.sub("", cleaned)
    return cleaned.strip()


def _complete(client: OpenAI, system_prompt: str, user_content: str) -> str:
    response = client.chat.completions.create(
        model=settings.AI_MODEL_NAME,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_content},
        ],
    )
    if not response.choices:
        return ""
    return response.choices[0].message.content or ""


async def enhance_prompt(raw_prompt: str) -> str:
    """
    Expand a short website request into a detailed specification.

    Never fails: any problem falls back to the original prompt.
    """
    client = get_openai_client(settings.OPENAI_API_KEY)
    if client is None:
        logger.warning("AI client unavailable; skipping prompt enhancement.")
        return raw_prompt

    try:
        content = await asyncio.to_thread(_complete, client, ENHANCE_SYSTEM_PROMPT, raw_prompt)
    except Exception as exc:
        logger.warning("Prompt enhancement fallback: %s", exc)
        return raw_prompt

    return content.strip() or raw_prompt


async def generate_site_code(enhanced_prompt: str) -> Optional[str]:
    """
    Generate a complete single-page site for the prompt.

    Returns None when the model produced nothing usable after sanitization.
    Raises TransformError when the service call itself fails.
    """
    client = get_openai_client(settings.OPENAI_API_KEY)
    if client is None:
        raise TransformError("AI completion service is not configured (OPENAI_API_KEY missing).")

    try:
        raw = await asyncio.to_thread(_complete, client, GENERATE_SYSTEM_PROMPT, enhanced_prompt)
    except Exception as exc:
        raise TransformError(f"Code generation request failed: {exc}") from exc

    cleaned = sanitize_markup(raw)
    if not cleaned:
        logger.warning("Code generation returned no usable markup (%s raw chars)", len(raw))
        return None
    return cleaned
