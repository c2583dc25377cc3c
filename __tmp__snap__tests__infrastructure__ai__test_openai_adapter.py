"""Tests for the OpenAI adapter and the language model factory."""

import json
from types import SimpleNamespace
from typing import Any, Dict, List

import httpx
import openai
import pytest

from confirmd.domain.errors import ConfigurationError, ModelProviderError
from confirmd.infrastructure.ai.factory import LanguageModelFactory
from confirmd.infrastructure.ai.openai_adapter import OpenAIAdapter, OpenAIConfig


class MockCompletions:
    """Stands in for ``client.chat.completions``."""

    def __init__(self, content: Any = None, error: Exception = None):
        self.content = content
        self.error = error
        self.requests: List[Dict[str, Any]] = []

    async def create(self, **kwargs) -> SimpleNamespace:
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        if self.content is None:
            return SimpleNamespace(choices=[])
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class MockClient:
    """Minimal AsyncOpenAI lookalike."""

    def __init__(self, completions: MockCompletions):
        self.chat = SimpleNamespace(completions=completions)
        self.closed = False

    async def close(self) -> None:
        self.closed = True


async def _adapter(completions: MockCompletions) -> OpenAIAdapter:
    adapter = OpenAIAdapter(OpenAIConfig(api_key="test-key", model="gpt-test"), client=MockClient(completions))
    await adapter.initialize()
    return adapter


@pytest.mark.asyncio
async def test_generate_structured_returns_decoded_object():
    completions = MockCompletions(json.dumps({"claims": [{"claim_text": "x"}]}))
    adapter = await _adapter(completions)

    payload = await adapter.generate_structured("system", "user", "claims")

    assert payload == {"claims": [{"claim_text": "x"}]}
    request = completions.requests[0]
    assert request["model"] == "gpt-test"
    assert request["response_format"] == {"type": "json_object"}
    assert [m["role"] for m in request["messages"]] == ["system", "user"]


@pytest.mark.asyncio
async def test_fenced_json_is_accepted():
    adapter = await _adapter(MockCompletions('```json\n{"verdict_label": "verified"}\n```'))
    assert await adapter.generate_structured("s", "u", "verdict") == {"verdict_label": "verified"}


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["not json", "[1, 2]", None])
async def test_malformed_responses_raise_provider_error(content):
    adapter = await _adapter(MockCompletions(content))
    with pytest.raises(ModelProviderError):
        await adapter.generate_structured("s", "u", "verdict")


@pytest.mark.asyncio
async def test_api_errors_are_wrapped():
    error = openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))
    adapter = await _adapter(MockCompletions(error=error))

    with pytest.raises(ModelProviderError) as exc:
        await adapter.generate_structured("s", "u", "claims")
    assert "claims request failed" in str(exc.value)


@pytest.mark.asyncio
async def test_uninitialized_adapter_raises():
    adapter = OpenAIAdapter(OpenAIConfig(api_key="k"))
    with pytest.raises(ModelProviderError):
        await adapter.generate_structured("s", "u", "claims")
    assert adapter.is_available is False


@pytest.mark.asyncio
async def test_missing_key_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        await OpenAIAdapter(OpenAIConfig(api_key="")).initialize()


@pytest.mark.asyncio
async def test_shutdown_closes_client():
    client = MockClient(MockCompletions("{}"))
    adapter = OpenAIAdapter(OpenAIConfig(api_key="k"), client=client)
    await adapter.initialize()
    assert adapter.is_available is True

    await adapter.shutdown()

    assert client.closed is True
    assert adapter.is_available is False


@pytest.mark.asyncio
async def test_factory_caches_instances_and_rejects_unknown_names(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    factory = LanguageModelFactory()

    with pytest.raises(ValueError):
        await factory.create_provider("unknown")
    with pytest.raises(ConfigurationError):
        await factory.create_provider("openai")
    assert factory.available_providers == {"openai": False}

    provider = await factory.create_provider("openai", api_key="k", model="gpt-test")
    assert await factory.create_provider("openai") is provider
    assert factory.get_provider("openai") is provider
    assert provider.model_name == "gpt-test"

    await factory.shutdown()
    assert factory.get_provider("openai") is None


