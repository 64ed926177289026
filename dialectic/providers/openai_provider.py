"""OpenAI provider using openai SDK with native async."""

import logging
import os
import time

from openai import AsyncOpenAI

from config.config_loader import ProviderConfig
from dialectic.errors import ConfigError
from dialectic.providers.base import AIProvider, CompletionRequest, CompletionResponse
from dialectic.providers.fallback import (
    chat_payload,
    complete_with_fallback,
    normalize_chat,
    normalize_responses,
    responses_payload,
)

logger = logging.getLogger(__name__)


class OpenAIProvider(AIProvider):
    """OpenAI provider via openai SDK. Responses API first, Chat Completions as fallback."""

    def __init__(self, config: ProviderConfig, client: AsyncOpenAI | None = None) -> None:
        self._config = config
        if client is not None:
            self._client = client
            return
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ConfigError(f"Missing API key for provider '{config.name}': set {config.api_key_env}")
        self._client = self._build_client(api_key)

    def _build_client(self, api_key: str) -> AsyncOpenAI:
        kwargs = {"api_key": api_key}
        if self._config.base_url:
            kwargs["base_url"] = self._config.base_url
        if self._config.timeout_sec:
            kwargs["timeout"] = self._config.timeout_sec
        return AsyncOpenAI(**kwargs)

    def name(self) -> str:
        return self._config.name

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        start = time.monotonic()

        async def _responses() -> CompletionResponse | None:
            raw = await self._client.responses.create(**responses_payload(request))
            return normalize_responses(raw)

        async def _chat() -> CompletionResponse | None:
            raw = await self._client.chat.completions.create(**chat_payload(request))
            return normalize_chat(raw)

        response = await complete_with_fallback(self.name(), _responses, _chat)

        logger.debug(
            "%s %s: %.2fs, %s tokens",
            self.name(),
            request.model,
            time.monotonic() - start,
            response.usage.total_tokens if response.usage else None,
        )
        return response
