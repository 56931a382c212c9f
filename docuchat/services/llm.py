import logging
from typing import Dict, List, Tuple

import httpx
import openai

from ..config import settings
from ..errors import ConfigurationError, UpstreamModelError

logger = logging.getLogger(__name__)

PERPLEXITY_BASE_URL = "https://api.perplexity.ai"


async def _pplx_chat(messages: List[Dict[str, str]], temperature: float) -> Tuple[str, str]:
    if not settings.PERPLEXITY_API_KEY:
        raise ConfigurationError(
            "PERPLEXITY_API_KEY is not set. Please configure PERPLEXITY_API_KEY in environment variables."
        )

    headers = {
        "Authorization": f"Bearer {settings.PERPLEXITY_API_KEY}",
        "Content-Type": "application/json",
    }
    payload = {
        "model": settings.PERPLEXITY_MODEL,
        "messages": messages,
        "temperature": temperature,
    }

    async with httpx.AsyncClient(base_url=PERPLEXITY_BASE_URL, timeout=httpx.Timeout(60.0)) as client:
        try:
            resp = await client.post("/chat/completions", json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise UpstreamModelError(f"Perplexity API unreachable: {e}") from e
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            try:
                detail = resp.json()
            except ValueError:
                detail = {"text": resp.text}
            raise UpstreamModelError(f"Perplexity API error {resp.status_code}: {detail}") from e
        data = resp.json()

    content = (data.get("choices", [{}])[0].get("message", {}) or {}).get("content", "") or ""
    return content, data.get("model") or settings.PERPLEXITY_MODEL


_openai_client: openai.AsyncOpenAI | None = None
_openai_key: str | None = None


def get_openai_client() -> openai.AsyncOpenAI:
    """Shared chat client; rebuilt only when the configured key changes."""
    global _openai_client, _openai_key
    key = settings.OPENAI_API_KEY.strip()
    if not key:
        raise ConfigurationError("OPENAI_API_KEY is not configured")
    if _openai_client is None or key != _openai_key:
        _openai_client = openai.AsyncOpenAI(api_key=key)
        _openai_key = key
    return _openai_client


async def _openai_chat(messages: List[Dict[str, str]], temperature: float) -> Tuple[str, str]:
    client = get_openai_client()
    try:
        chat = await client.chat.completions.create(
            model=settings.OPENAI_MODEL,
            messages=messages,
            temperature=temperature,
        )
    except openai.APIStatusError as e:
        logger.error("OpenAI API error: %s %s", e.status_code, e.message)
        raise UpstreamModelError(f"OpenAI API error: {e.status_code}") from e
    except openai.OpenAIError as e:
        raise UpstreamModelError(f"OpenAI API error: {e}") from e
    text = chat.choices[0].message.content or ""
    return text, chat.model or settings.OPENAI_MODEL


async def chat_messages(messages: List[Dict[str, str]], temperature: float | None = None) -> Tuple[str, str]:
    """Send the conversation turns to the configured provider; returns (text, model_used)."""
    if not messages:
        raise ValueError("messages must be a non-empty list")

    temperature = settings.LLM_TEMPERATURE if temperature is None else temperature
    provider = (settings.LLM_PROVIDER or "openai").lower()
    logger.info("Sending %d messages to %s", len(messages), provider)

    if provider == "perplexity":
        return await _pplx_chat(messages, temperature)
    return await _openai_chat(messages, temperature)


def get_chat_model():
    return chat_messages
