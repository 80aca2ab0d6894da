"""
Dialogue Configuration

Environment-driven settings for the session store, chat providers and
collaborator timeouts. Values are read once (``.env`` supported) and handed
to the engine; nothing here is mutated at runtime.
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Dict, List, Optional

from dotenv import load_dotenv

from codenavigator_dialogue.errors import UnsupportedProviderError


class AiProvider(Enum):
    """Chat providers the backend knows how to reach."""
    OPENAI = ("openai", "OpenAI", "GPT series models")
    DEEPSEEK = ("deepseek", "DeepSeek", "DeepSeek chat models")
    CLAUDE = ("claude", "Claude", "Anthropic Claude models")
    GEMINI = ("gemini", "Gemini", "Google Gemini models")

    def __init__(self, code: str, display_name: str, description: str):
        self.code = code
        self.display_name = display_name
        self.description = description

    @classmethod
    def from_code(cls, code: str) -> "AiProvider":
        for provider in cls:
            if provider.code == (code or "").strip().lower():
                return provider
        raise UnsupportedProviderError(code, "is unknown")


# OpenAI-compatible endpoints and default models per provider
PROVIDER_DEFAULTS = {
    AiProvider.OPENAI: ("https://api.openai.com/v1", "gpt-4o-mini"),
    AiProvider.DEEPSEEK: ("https://api.deepseek.com", "deepseek-chat"),
    AiProvider.CLAUDE: ("https://api.anthropic.com/v1/", "claude-3-5-haiku-latest"),
    AiProvider.GEMINI: ("https://generativelanguage.googleapis.com/v1beta/openai/", "gemini-1.5-flash"),
}


@dataclass(frozen=True)
class ProviderConfig:
    """Connection settings for one chat provider."""
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model_name: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 2000
    timeout: str = "60s"
    enabled: bool = True

    @property
    def timeout_seconds(self) -> float:
        """Parse ``"60s"``, ``"2m"`` or ``"45"`` into seconds."""
        if not self.timeout:
            return 60.0
        value = self.timeout.strip().lower()
        if value.endswith("s"):
            return float(value[:-1])
        if value.endswith("m"):
            return float(value[:-1]) * 60
        return float(value)

    @property
    def is_available(self) -> bool:
        return self.enabled and bool(self.api_key and self.api_key.strip())


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _load_provider(provider: AiProvider) -> ProviderConfig:
    prefix = provider.code.upper()
    base_url, model_name = PROVIDER_DEFAULTS[provider]
    return ProviderConfig(
        api_key=os.getenv(f"{prefix}_API_KEY"),
        base_url=os.getenv(f"{prefix}_BASE_URL", base_url),
        model_name=os.getenv(f"{prefix}_MODEL", model_name),
        temperature=float(os.getenv(f"{prefix}_TEMPERATURE", "0.7")),
        max_tokens=int(os.getenv(f"{prefix}_MAX_TOKENS", "2000")),
        timeout=os.getenv(f"{prefix}_TIMEOUT", "60s"),
        enabled=_env_bool(f"{prefix}_ENABLED", True),
    )


@dataclass(frozen=True)
class DialogueSettings:
    """Runtime settings for the dialogue engine and its collaborators."""
    session_ttl_hours: float = 2.0
    redis_url: Optional[str] = None
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    session_table: str = "conversation_states"
    default_provider: str = AiProvider.OPENAI.code
    providers: Dict[str, ProviderConfig] = field(default_factory=dict)
    chat_timeout_seconds: float = 60.0
    path_timeout_seconds: float = 90.0
    log_level: str = "INFO"
    lexicon_path: Optional[str] = None

    @property
    def session_ttl(self) -> timedelta:
        return timedelta(hours=self.session_ttl_hours)

    def provider_config(self, code: str) -> Optional[ProviderConfig]:
        return self.providers.get(code)

    def enabled_providers(self) -> List[str]:
        return [code for code, config in self.providers.items() if config.is_available]

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "DialogueSettings":
        """
        Build settings from environment variables.

        Args:
            env_file: Optional path to a .env file (defaults to dotenv's lookup)

        Returns:
            DialogueSettings instance
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        return cls(
            session_ttl_hours=float(os.getenv("SESSION_TTL_HOURS", "2")),
            redis_url=os.getenv("REDIS_URL") or None,
            supabase_url=os.getenv("SUPABASE_URL") or None,
            supabase_service_key=os.getenv("SUPABASE_SERVICE_KEY") or None,
            session_table=os.getenv("SESSION_TABLE", "conversation_states"),
            default_provider=os.getenv("AI_DEFAULT_PROVIDER", AiProvider.OPENAI.code).lower(),
            providers={provider.code: _load_provider(provider) for provider in AiProvider},
            chat_timeout_seconds=float(os.getenv("CHAT_TIMEOUT_SECONDS", "60")),
            path_timeout_seconds=float(os.getenv("PATH_TIMEOUT_SECONDS", "90")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            lexicon_path=os.getenv("LEXICON_PATH") or None,
        )
