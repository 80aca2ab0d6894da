"""
Unit Tests for Chat Backend

Tests provider resolution, availability, status reporting and the
completion call through a fake AsyncOpenAI client.
"""

import pytest
import sys
import os
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "codenavigator_dialogue", "src"))

from codenavigator_dialogue.chat_backend import OpenAIChatBackend
from codenavigator_dialogue.config import AiProvider, ProviderConfig
from codenavigator_dialogue.errors import CollaboratorFailure, UnsupportedProviderError


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def providers():
    return {
        "openai": ProviderConfig(api_key="sk-openai", base_url="https://api.openai.com/v1", model_name="gpt-4o-mini"),
        "deepseek": ProviderConfig(api_key="sk-deepseek", base_url="https://api.deepseek.com", model_name="deepseek-chat", temperature=0.2, max_tokens=500),
        "claude": ProviderConfig(api_key=None, model_name="claude-3-5-haiku-latest"),
        "gemini": ProviderConfig(api_key="sk-gemini", model_name="gemini-1.5-flash", enabled=False),
    }


@pytest.fixture
def client():
    fake = MagicMock()
    fake.chat.completions.create = AsyncMock(return_value=completion("  依赖注入是一种设计模式。 "))
    return fake


@pytest.fixture
def factory(client):
    return MagicMock(return_value=client)


class TestOpenAIChatBackend:
    """Test suite for OpenAIChatBackend."""

    @pytest.mark.asyncio
    async def test_send_message_default_provider(self, providers, client, factory):
        backend = OpenAIChatBackend(providers, client_factory=factory)

        answer = await backend.send_message("什么是依赖注入？")

        assert answer == "依赖注入是一种设计模式。"
        factory.assert_called_once_with(api_key="sk-openai", base_url="https://api.openai.com/v1", timeout=60.0)
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"][-1] == {"role": "user", "content": "什么是依赖注入？"}

    @pytest.mark.asyncio
    async def test_send_message_named_provider(self, providers, client, factory):
        backend = OpenAIChatBackend(providers, client_factory=factory)

        await backend.send_message("hi", "DeepSeek")

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "deepseek-chat"
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 500

    @pytest.mark.asyncio
    async def test_clients_are_reused(self, providers, factory):
        backend = OpenAIChatBackend(providers, client_factory=factory)
        await backend.send_message("one")
        await backend.send_message("two")
        assert factory.call_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("provider_id", ["claude", "gemini", "mistral"])
    async def test_unsupported_provider(self, providers, factory, provider_id):
        backend = OpenAIChatBackend(providers, client_factory=factory)

        with pytest.raises(UnsupportedProviderError) as exc_info:
            await backend.send_message("hi", provider_id)

        assert exc_info.value.provider_id == provider_id
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_unconfigured_default_is_collaborator_failure(self, providers, factory):
        backend = OpenAIChatBackend(providers, default_provider="claude", client_factory=factory)

        with pytest.raises(CollaboratorFailure) as exc_info:
            await backend.send_message("hi")

        assert not isinstance(exc_info.value, UnsupportedProviderError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", [None, "", "   "])
    async def test_empty_completion(self, providers, client, factory, content):
        client.chat.completions.create.return_value = completion(content)
        backend = OpenAIChatBackend(providers, client_factory=factory)

        with pytest.raises(CollaboratorFailure):
            await backend.send_message("hi")

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self, providers, client, factory):
        client.chat.completions.create.side_effect = RuntimeError("rate limited")
        backend = OpenAIChatBackend(providers, client_factory=factory)

        with pytest.raises(CollaboratorFailure) as exc_info:
            await backend.send_message("hi")

        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_available_providers(self, providers, factory):
        backend = OpenAIChatBackend(providers, client_factory=factory)
        assert backend.available_providers() == [AiProvider.OPENAI, AiProvider.DEEPSEEK]

    def test_switch_provider(self, providers, factory):
        backend = OpenAIChatBackend(providers, client_factory=factory)

        backend.switch_provider("deepseek")
        assert backend.current_provider == AiProvider.DEEPSEEK

        with pytest.raises(UnsupportedProviderError):
            backend.switch_provider("claude")
        assert backend.current_provider == AiProvider.DEEPSEEK

    def test_provider_status(self, providers, factory):
        backend = OpenAIChatBackend(providers, client_factory=factory)

        status = backend.provider_status("openai")
        assert status["provider"] == "openai"
        assert status["displayName"] == "OpenAI"
        assert status["available"] is True
        assert status["current"] is True
        assert status["modelName"] == "gpt-4o-mini"
        assert status["hasApiKey"] is True

        assert backend.provider_status("claude")["hasApiKey"] is False
        assert backend.provider_status("gemini")["available"] is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
