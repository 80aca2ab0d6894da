"""
Chat Backend

Pluggable generic Q&A collaborator used during task execution. The bundled
implementation reaches every provider through an OpenAI-compatible chat
completions endpoint with its own base URL, model and sampling settings.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from openai import AsyncOpenAI

from codenavigator_dialogue.config import AiProvider, DialogueSettings, ProviderConfig
from codenavigator_dialogue.errors import CollaboratorFailure, UnsupportedProviderError

logger = logging.getLogger(__name__)


@dataclass
class ChatReply:
    """A backend answer that carries its own confidence."""
    content: str
    confidence: Optional[float] = None


class ChatBackend(ABC):
    """Generic chat completion collaborator."""

    @abstractmethod
    async def send_message(self, text: str, provider_id: Optional[str] = None) -> Union[str, ChatReply]:
        """
        Send a prompt and return the answer.

        Args:
            text: Prompt text
            provider_id: Provider code; None means the current default

        Raises:
            UnsupportedProviderError: if provider_id is unknown or unavailable
            CollaboratorFailure: on any other provider failure
        """
        ...


class OpenAIChatBackend(ChatBackend):
    """
    Multi-provider chat backend on ``openai.AsyncOpenAI``.

    Clients are created lazily, one per provider, and reused.
    """

    SYSTEM_PROMPT = "You are the CodeNavigator learning assistant. Answer concisely with concrete study advice."

    def __init__(
        self,
        providers: Dict[str, ProviderConfig],
        default_provider: str = AiProvider.OPENAI.code,
        client_factory: Callable[..., Any] = AsyncOpenAI,
    ):
        self.providers = providers
        self.client_factory = client_factory
        self._clients: Dict[str, Any] = {}
        self._current = AiProvider.from_code(default_provider)

    @classmethod
    def from_settings(cls, settings: DialogueSettings) -> "OpenAIChatBackend":
        return cls(settings.providers, default_provider=settings.default_provider)

    @property
    def current_provider(self) -> AiProvider:
        return self._current

    def switch_provider(self, code: str):
        provider = self._resolve(code)
        logger.info(f"🤖 [ChatBackend] Switching provider {self._current.display_name} → {provider.display_name}")
        self._current = provider

    def available_providers(self) -> List[AiProvider]:
        return [p for p in AiProvider if self._is_available(p)]

    def provider_status(self, code: str) -> Dict[str, Any]:
        provider = AiProvider.from_code(code)
        config = self.providers.get(provider.code)
        status = {
            "provider": provider.code,
            "displayName": provider.display_name,
            "description": provider.description,
            "available": self._is_available(provider),
            "current": provider == self._current,
        }
        if config:
            status.update({
                "modelName": config.model_name,
                "temperature": config.temperature,
                "maxTokens": config.max_tokens,
                "baseUrl": config.base_url,
                "hasApiKey": bool(config.api_key and config.api_key.strip()),
            })
        return status

    async def send_message(self, text: str, provider_id: Optional[str] = None) -> str:
        provider = self._resolve(provider_id) if provider_id else self._current
        if provider_id is None and not self._is_available(provider):
            raise CollaboratorFailure(f"Default provider {provider.display_name} is not configured")

        config = self.providers[provider.code]
        logger.info(f"🤖 [ChatBackend] Sending message to {provider.display_name}")

        try:
            completion = await self._client(provider, config).chat.completions.create(
                model=config.model_name,
                messages=[
                    {"role": "system", "content": self.SYSTEM_PROMPT},
                    {"role": "user", "content": text},
                ],
                temperature=config.temperature,
                max_tokens=config.max_tokens,
            )
        except Exception as e:
            raise CollaboratorFailure(f"Failed to get response from {provider.display_name}") from e

        content = completion.choices[0].message.content if completion.choices else None
        if not content or not content.strip():
            raise CollaboratorFailure(f"Empty content in {provider.display_name} response")
        return content.strip()

    def _resolve(self, code: str) -> AiProvider:
        provider = AiProvider.from_code(code)
        if not self._is_available(provider):
            raise UnsupportedProviderError(code)
        return provider

    def _is_available(self, provider: AiProvider) -> bool:
        config = self.providers.get(provider.code)
        return config is not None and config.is_available

    def _client(self, provider: AiProvider, config: ProviderConfig):
        if provider.code not in self._clients:
            self._clients[provider.code] = self.client_factory(
                api_key=config.api_key,
                base_url=config.base_url,
                timeout=config.timeout_seconds,
            )
        return self._clients[provider.code]
