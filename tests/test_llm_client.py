# tests/test_llm_client.py

from __future__ import annotations

from types import SimpleNamespace

import pytest

from minimind.llm.client import OpenRouterLLMClient, friendly_llm_error_message
from minimind.llm.offline import OfflineLLMClient


def _chunk(text: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


class FakeCompletions:
    """Per-model scripted answers: a list of chunk texts or an exception to raise."""

    def __init__(self, script: dict[str, object]) -> None:
        self.script = script
        self.models: list[str] = []
        self.last_messages: list[dict] | None = None

    def create(self, *, model: str, messages, **kwargs):
        self.models.append(model)
        self.last_messages = messages
        answer = self.script[model]
        if isinstance(answer, Exception):
            raise answer
        return iter([_chunk(t) for t in answer])  # type: ignore[union-attr]


def _client(settings, script: dict[str, object]) -> tuple[OpenRouterLLMClient, FakeCompletions]:
    client = OpenRouterLLMClient(settings)
    completions = FakeCompletions(script)
    client._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))  # type: ignore[assignment]
    return client, completions


def test_missing_key_raises(settings) -> None:
    with pytest.raises(RuntimeError) as exc:
        OpenRouterLLMClient(settings)
    assert "Voice capture is not configured" in friendly_llm_error_message(exc.value)


def test_streams_from_first_working_model(settings) -> None:
    settings.openrouter_api_key = "sk-test"
    settings.llm_models = ["broken/model", "good/model"]
    client, completions = _client(
        settings,
        {"broken/model": ValueError("boom"), "good/model": ["[", None, "]"]},
    )

    out = "".join(client.stream_chat([{"role": "user", "content": "hi"}], "system"))

    assert out == "[]"
    assert completions.models == ["broken/model", "good/model"]
    assert completions.last_messages is not None
    assert completions.last_messages[0] == {"role": "system", "content": "system"}


def test_all_models_failing_raises(settings) -> None:
    settings.openrouter_api_key = "sk-test"
    settings.llm_models = ["a/model", "b/model"]
    client, _ = _client(settings, {"a/model": [], "b/model": ValueError("boom")})

    with pytest.raises(RuntimeError, match="All LLM models failed"):
        list(client.stream_chat([], "system"))


def test_empty_model_list(settings) -> None:
    settings.openrouter_api_key = "sk-test"
    settings.llm_models = []
    client = OpenRouterLLMClient(settings)

    with pytest.raises(RuntimeError) as exc:
        list(client.stream_chat([], "system"))
    assert "no models" in friendly_llm_error_message(exc.value)


def test_offline_client_yields_nothing() -> None:
    assert list(OfflineLLMClient().stream_chat([], "system")) == []
