"""Chat-completion client for the OpenAI-compatible AI gateway."""
from __future__ import annotations

import time
from typing import Any

import openai
from openai import AsyncOpenAI

from app.services import logger as log_service
from app.services.errors import QuotaExhaustedError, RateLimitedError, UpstreamAIError


def get_client(api_key: str, base_url: str, *, timeout: float = 90.0) -> AsyncOpenAI:
    """Build a gateway client.

    SDK retries are off: a rate limit goes straight back to the caller.
    """
    return AsyncOpenAI(
        api_key=api_key,
        base_url=base_url.strip() or "https://ai.gateway.lovable.dev/v1",
        timeout=timeout,
        max_retries=0,
    )


def _message_text(response: Any) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    return getattr(message, "content", None) or ""


def _usage(response: Any) -> tuple[int, int]:
    usage = getattr(response, "usage", None)
    return (
        getattr(usage, "prompt_tokens", 0) or 0,
        getattr(usage, "completion_tokens", 0) or 0,
    )


async def invoke(
    system_prompt: str,
    user_prompt: str,
    *,
    api_key: str,
    base_url: str,
    model: str,
    timeout: float = 90.0,
    client: AsyncOpenAI | None = None,
) -> str:
    """Send one system+user exchange and return the raw model text."""
    active_client = client or get_client(api_key, base_url, timeout=timeout)
    t0 = time.monotonic()

    def log_failure(status: str, exc: Exception) -> None:
        log_service.log_llm_call(
            model=model,
            caller="analyze",
            duration_ms=int((time.monotonic() - t0) * 1000),
            status=status,
            error=str(exc),
        )

    try:
        response = await active_client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        )
    except openai.RateLimitError as e:
        log_failure("rate_limited", e)
        raise RateLimitedError(detail=str(e)) from e
    except openai.APIStatusError as e:
        if e.status_code == 402:
            log_failure("quota_exhausted", e)
            raise QuotaExhaustedError(detail=str(e)) from e
        if e.status_code == 429:
            log_failure("rate_limited", e)
            raise RateLimitedError(detail=str(e)) from e
        log_failure("error", e)
        raise UpstreamAIError(detail=f"gateway returned {e.status_code}: {e}") from e
    except openai.APIError as e:
        log_failure("error", e)
        raise UpstreamAIError(detail=str(e)) from e

    input_tokens, output_tokens = _usage(response)
    log_service.log_llm_call(
        model=model,
        caller="analyze",
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        duration_ms=int((time.monotonic() - t0) * 1000),
    )
    return _message_text(response)
