import asyncio
import logging
import time
from collections.abc import Mapping
from typing import Any
from uuid import uuid4

import httpx
from openai import APITimeoutError
from openai import AsyncOpenAI
from openai import RateLimitError

from app.core.config import settings
from app.models.document_models import GenerationErrorKind

# Configure module logger
logger = logging.getLogger(__name__)

RESPONSE_PREVIEW_CHARS = 200


# Custom exceptions for better error handling
class LLMError(Exception):
    """Raised when LLM call fails"""


class GenerationError(LLMError):
    """A single generation call failed; ``kind`` classifies the failure."""

    def __init__(self, kind: GenerationErrorKind, detail: str):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}")


# ---------------------------------------------------------------
# OpenAI-compatible client (OpenRouter by default)
# ---------------------------------------------------------------
timeout_config = httpx.Timeout(
    settings.LLM_CONNECT_TIMEOUT,
    read=settings.LLM_READ_TIMEOUT,
)

_client: AsyncOpenAI | None = None


def get_client() -> AsyncOpenAI:
    """Returns the shared async client, creating it on first use."""
    global _client
    if _client is None:
        if not settings.openrouter_api_key:
            raise GenerationError(
                GenerationErrorKind.UNEXPECTED,
                "No API key configured for the generation backend (OPENROUTER_API_KEY).",
            )
        _client = AsyncOpenAI(
            base_url=settings.llm_base_url,
            api_key=settings.openrouter_api_key,
            default_headers={"X-Title": "section-writer"},
            timeout=timeout_config,
            max_retries=0,  # one attempt per call; failures go straight to the caller
        )
    return _client


# ---------------------------------------------------------------
# Response normalization
# ---------------------------------------------------------------


def _content_from_choices(raw: Any) -> Any:
    choices = getattr(raw, "choices", None)
    if not choices:
        return None
    message = getattr(choices[0], "message", None)
    return getattr(message, "content", None) if message is not None else None


def normalize_response(raw: Any) -> str:
    """Reduces the backend's response shapes to a single content string.

    Accepted shapes, tried in order: a plain string, a mapping with a
    ``content`` or ``text`` key, a chat-completion object
    (``choices[0].message.content``), an object with a ``content`` or ``text``
    attribute. Anything else, or blank content, is an INVALID_RESPONSE.
    """
    candidate: Any = None
    if isinstance(raw, str):
        candidate = raw
    elif isinstance(raw, Mapping):
        candidate = raw.get("content") or raw.get("text")
    elif raw is not None:
        candidate = _content_from_choices(raw)
        if not candidate:
            candidate = getattr(raw, "content", None) or getattr(raw, "text", None)

    if not isinstance(candidate, str) or not candidate.strip():
        raise GenerationError(
            GenerationErrorKind.INVALID_RESPONSE,
            f"Unexpected response format: {str(raw)[:RESPONSE_PREVIEW_CHARS]}",
        )
    return candidate.strip()


def classify_exception(exc: BaseException) -> GenerationError:
    """Maps any exception raised during a call onto a GenerationError."""
    if isinstance(exc, GenerationError):
        return exc
    if isinstance(exc, (APITimeoutError, httpx.TimeoutException, asyncio.TimeoutError)):
        return GenerationError(GenerationErrorKind.TIMEOUT, str(exc) or "Request timed out")
    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    if isinstance(exc, RateLimitError) or status == 429:
        return GenerationError(GenerationErrorKind.RATE_LIMITED, str(exc) or "Rate limited")
    return GenerationError(GenerationErrorKind.UNEXPECTED, f"{type(exc).__name__}: {exc}")


# ---------------------------------------------------------------
# Single generation call
# ---------------------------------------------------------------
async def invoke(
    model_id: str,
    temperature: float,
    system_instruction: str,
    human_prompt: str,
) -> str:
    """Runs one chat completion and returns its normalized text.

    No retries: any failure is raised as a GenerationError and the caller
    decides whether it is fatal.
    """
    request_id = str(uuid4())
    logger.info(
        "[%s] Calling model %s (temperature=%.2f, prompt length=%d chars)",
        request_id,
        model_id,
        temperature,
        len(system_instruction) + len(human_prompt),
    )
    logger.debug("[%s] Human prompt: %s", request_id, human_prompt)

    start = time.perf_counter()
    try:
        rsp = await get_client().chat.completions.create(
            model=model_id,
            messages=[
                {"role": "system", "content": system_instruction},
                {"role": "user", "content": human_prompt},
            ],
            max_tokens=settings.max_tokens,
            temperature=temperature,
        )
        content = normalize_response(rsp)
    except Exception as e:
        err = classify_exception(e)
        logger.error(
            "[%s] Generation call to %s failed after %dms (%s): %s",
            request_id,
            model_id,
            int((time.perf_counter() - start) * 1000),
            err.kind.value,
            err.detail,
        )
        if err is e:
            raise
        raise err from e

    logger.info(
        "[%s] Response from %s: %d chars in %dms",
        request_id,
        model_id,
        len(content),
        int((time.perf_counter() - start) * 1000),
    )
    logger.debug("[%s] Response preview: %s...", request_id, content[:RESPONSE_PREVIEW_CHARS])
    return content
