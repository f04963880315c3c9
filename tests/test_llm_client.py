from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from deepscout import llm_client
from deepscout.config import settings


def _fake_client(content: str | None = '{"follow_up_queries": []}', error: Exception | None = None):
    response = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=5),
    )
    fake = MagicMock()
    fake.chat.completions.create = AsyncMock(return_value=response, side_effect=error)
    return fake


def test_planner_model_override(monkeypatch):
    monkeypatch.setattr(settings, "openrouter_model", "")
    monkeypatch.setattr(settings, "default_model", "openai/gpt-4o-mini")
    monkeypatch.setattr(settings, "planner_model", "")
    assert llm_client.get_planner_model() == "openai/gpt-4o-mini"

    monkeypatch.setattr(settings, "planner_model", " anthropic/claude-haiku ")
    assert llm_client.get_planner_model() == "anthropic/claude-haiku"


@pytest.mark.asyncio
async def test_complete_json_returns_raw_text_and_logs(monkeypatch):
    fake = _fake_client()
    with patch("deepscout.llm_client.client", return_value=fake), patch(
        "deepscout.llm_client.log_service.log_llm_call"
    ) as log_call:
        text = await llm_client.complete_json("system", "user", model="test/model")

    assert text == '{"follow_up_queries": []}'
    kwargs = fake.chat.completions.create.await_args.kwargs
    assert kwargs["model"] == "test/model"
    assert kwargs["messages"][0] == {"role": "system", "content": "system"}
    assert log_call.call_args.kwargs["input_tokens"] == 12
    assert log_call.call_args.kwargs["output_tokens"] == 5


@pytest.mark.asyncio
async def test_complete_json_logs_and_reraises_errors():
    fake = _fake_client(error=RuntimeError("upstream 502"))
    with patch("deepscout.llm_client.client", return_value=fake), patch(
        "deepscout.llm_client.log_service.log_llm_call"
    ) as log_call:
        with pytest.raises(RuntimeError):
            await llm_client.complete_json("system", "user", model="test/model")

    assert log_call.call_args.kwargs["status"] == "error"


@pytest.mark.asyncio
async def test_complete_json_empty_content_is_empty_string():
    fake = _fake_client(content=None)
    with patch("deepscout.llm_client.client", return_value=fake):
        assert await llm_client.complete_json("s", "u", model="test/model") == ""
