"""OpenRouter provider using openai SDK (OpenAI-compatible API)."""

from openai import AsyncOpenAI

from config.config_loader import ProviderConfig
from dialectic.providers.openai_provider import OpenAIProvider

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

_ATTRIBUTION_HEADERS = {
    "HTTP-Referer": "https://github.com/dialectic/dialectic",
    "X-Title": "Dialectic",
}


class OpenRouterProvider(OpenAIProvider):
    """OpenRouter provider via OpenAI-compatible API, same call-style fallback as OpenAI."""

    def _build_client(self, api_key: str) -> AsyncOpenAI:
        kwargs = {
            "api_key": api_key,
            "base_url": self._config.base_url or OPENROUTER_BASE_URL,
            "default_headers": _ATTRIBUTION_HEADERS,
        }
        if self._config.timeout_sec:
            kwargs["timeout"] = self._config.timeout_sec
        return AsyncOpenAI(**kwargs)
