"""OpenRouter LLM client (OpenAI-compatible SDK) and the single-shot JSON call."""
from __future__ import annotations

import time
from typing import Any

from deepscout.config import settings
from deepscout.services import logger as log_service


def _temperature_for_model(model: str) -> int:
    # Some OpenAI GPT-5-compatible gateways reject temperature=0.
    lowered = (model or "").lower()
    if "gpt-5" in lowered:
        return 1
    return 0


def get_client() -> Any:
    """Get an AsyncOpenAI client pointed at OpenRouter."""
    from openai import AsyncOpenAI

    base_url = settings.openrouter_base_url.strip() or "https://openrouter.ai/api/v1"
    return AsyncOpenAI(
        api_key=settings.openrouter_api_key,
        base_url=base_url,
        timeout=settings.llm_timeout_seconds,
    )


def get_model() -> str:
    """Get the active OpenRouter model id."""
    if settings.openrouter_model:
        return settings.openrouter_model
    return settings.default_model


def get_planner_model() -> str:
    override = settings.planner_model.strip() if isinstance(settings.planner_model, str) else ""
    return override or get_model()


_client: Any | None = None


def client() -> Any:
    """Get or create the LLM client."""
    global _client
    if _client is None:
        _client = get_client()
    return _client


async def complete_json(
    system_prompt: str,
    user_prompt: str,
    *,
    model: str | None = None,
    caller: str = "planner",
    max_tokens: int = 1200,
) -> str:
    """One non-streaming completion expected to hold JSON. Returns the raw text.

    The reply may still be fenced or wrapped in prose; parsing is the caller's job.
    """
    used_model = model or get_planner_model()
    t0 = time.monotonic()
    try:
        response = await client().chat.completions.create(
            model=used_model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=max_tokens,
            temperature=_temperature_for_model(used_model),
        )
    except Exception as e:
        log_service.log_llm_call(
            model=used_model,
            caller=caller,
            duration_ms=int((time.monotonic() - t0) * 1000),
            status="error",
            error=str(e),
        )
        raise

    usage = getattr(response, "usage", None)
    log_service.log_llm_call(
        model=used_model,
        caller=caller,
        input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
        output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        duration_ms=int((time.monotonic() - t0) * 1000),
    )
    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    return getattr(choices[0].message, "content", None) or ""
