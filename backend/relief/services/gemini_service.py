# relief/services/gemini_service.py
"""
Gemini (Google AI Studio) generation service.

Goals:
- Keep the rest of the app decoupled from the Gemini SDK.
- Fail gracefully when no API key is configured.
- Provide a single async function to generate text.

Notes:
- The underlying google-generativeai client is synchronous.
  We run it in a threadpool via `asyncio.to_thread()` so it doesn't block the event loop.
- SMS classification makes exactly one call per message: no retry loop here.
- Safety filters are disabled: injury, disaster and distress descriptions are
  the expected input, and a blocked response would drop a real emergency.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

from relief.core.config import settings

logger = logging.getLogger(__name__)

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


class GeminiError(RuntimeError):
    """Raised for Gemini-related errors (network, auth, generation, empty output)."""
    pass


def gemini_enabled() -> bool:
    """True if Gemini is configured and should be used."""
    return bool(settings.GEMINI_API_KEY and settings.GEMINI_API_KEY.strip())


def generation_config() -> Dict[str, Any]:
    """Deterministic-leaning settings so the model sticks to the JSON schema."""
    return {
        "temperature": settings.GEMINI_TEMPERATURE,
        "top_k": settings.GEMINI_TOP_K,
        "top_p": settings.GEMINI_TOP_P,
        "max_output_tokens": settings.GEMINI_MAX_OUTPUT_TOKENS,
    }


def safety_settings() -> List[Dict[str, str]]:
    return [{"category": c, "threshold": "BLOCK_NONE"} for c in SAFETY_CATEGORIES]


def _generate_sync(prompt: str) -> str:
    """
    Synchronous Gemini call (runs in a thread when used from async code).
    """
    try:
        import google.generativeai as genai
    except Exception as e:
        raise GeminiError(f"google-generativeai import failed: {e}") from e

    try:
        genai.configure(api_key=settings.GEMINI_API_KEY)
        model = genai.GenerativeModel(
            settings.GEMINI_MODEL,
            generation_config=generation_config(),
            safety_settings=safety_settings(),
        )
        resp = model.generate_content(prompt)
        # `.text` raises ValueError when the response has no text parts
        text = getattr(resp, "text", None) or ""
        return text.strip()
    except Exception as e:
        raise GeminiError(str(e)) from e


async def generate_text(prompt: str, *, timeout_s: float | None = None) -> str:
    """
    Generate text from Gemini for a given prompt.

    Args:
        prompt: prompt text
        timeout_s: max seconds to allow the request (defaults to GEMINI_TIMEOUT_SECONDS)

    Returns:
        Generated text (may be empty if Gemini returns empty text)

    Behavior:
    - If Gemini is not enabled, returns empty string.
    - If a Gemini error occurs, raises GeminiError (caller decides the fallback).
    """
    if not prompt or not prompt.strip():
        return ""

    if not gemini_enabled():
        logger.error("GEMINI_API_KEY not configured")
        return ""

    timeout_s = timeout_s or settings.GEMINI_TIMEOUT_SECONDS
    try:
        coro = asyncio.to_thread(_generate_sync, prompt)
        return await asyncio.wait_for(coro, timeout=timeout_s)
    except asyncio.TimeoutError as e:
        raise GeminiError(f"Gemini timed out after {timeout_s}s") from e
