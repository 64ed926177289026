"""Anthropic Claude provider using anthropic SDK with native async."""

import json
import logging
import os
import time
from typing import Any

import anthropic as anthropic_sdk

from config.config_loader import ProviderConfig
from dialectic.errors import ConfigError
from dialectic.models import ToolCall
from dialectic.providers.base import (
    AIProvider,
    CompletionRequest,
    CompletionResponse,
    CompletionUsage,
    ProviderError,
    build_messages,
)

logger = logging.getLogger(__name__)

_DEFAULT_MAX_TOKENS = 4096


def _to_anthropic_messages(messages: list[dict[str, Any]]) -> tuple[str, list[dict[str, Any]]]:
    """Split out the system prompt and convert chat-style tool turns to content blocks."""
    system_parts: list[str] = []
    converted: list[dict[str, Any]] = []
    for msg in messages:
        role = msg["role"]
        if role == "system":
            system_parts.append(msg["content"])
        elif role == "tool":
            block = {"type": "tool_result", "tool_use_id": msg["tool_call_id"], "content": msg["content"]}
            # consecutive tool results share one user turn
            if converted and converted[-1]["role"] == "user" and isinstance(converted[-1]["content"], list):
                converted[-1]["content"].append(block)
            else:
                converted.append({"role": "user", "content": [block]})
        elif role == "assistant" and msg.get("tool_calls"):
            blocks: list[dict[str, Any]] = []
            if msg.get("content"):
                blocks.append({"type": "text", "text": msg["content"]})
            for call in msg["tool_calls"]:
                try:
                    args = json.loads(call["function"]["arguments"] or "{}")
                except json.JSONDecodeError:
                    args = {}
                blocks.append({"type": "tool_use", "id": call["id"], "name": call["function"]["name"], "input": args})
            converted.append({"role": "assistant", "content": blocks})
        else:
            converted.append({"role": role, "content": msg["content"]})
    return "\n\n".join(system_parts), converted


class AnthropicProvider(AIProvider):
    """Anthropic Claude provider via anthropic SDK."""

    def __init__(self, config: ProviderConfig, client: anthropic_sdk.AsyncAnthropic | None = None) -> None:
        self._config = config
        if client is not None:
            self._client = client
            return
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ConfigError(f"Missing API key for provider '{config.name}': set {config.api_key_env}")
        kwargs: dict[str, Any] = {"api_key": api_key}
        if config.timeout_sec:
            kwargs["timeout"] = config.timeout_sec
        self._client = anthropic_sdk.AsyncAnthropic(**kwargs)

    def name(self) -> str:
        return self._config.name

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        system, messages = _to_anthropic_messages(build_messages(request))
        kwargs: dict[str, Any] = {
            "model": request.model,
            "max_tokens": request.max_tokens or self._config.max_tokens or _DEFAULT_MAX_TOKENS,
            "temperature": request.temperature,
            "system": system,
            "messages": messages,
        }
        if request.tools:
            kwargs["tools"] = [
                {"name": t["name"], "description": t.get("description", ""), "input_schema": t["parameters"]}
                for t in request.tools
            ]

        start = time.monotonic()
        try:
            response = await self._client.messages.create(**kwargs)
        except Exception as exc:
            raise ProviderError(self.name(), f"API call failed: {exc}") from exc

        if not response.content:
            raise ProviderError(self.name(), "Empty response content")

        text_blocks = [b.text for b in response.content if b.type == "text"]
        tool_calls = [
            ToolCall(id=b.id, name=b.name, arguments=json.dumps(b.input))
            for b in response.content
            if b.type == "tool_use"
        ]
        if not text_blocks and not tool_calls:
            raise ProviderError(self.name(), "No text blocks in response")

        usage: CompletionUsage | None = None
        if response.usage:
            usage = CompletionUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
                total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            )

        logger.debug(
            "Anthropic %s: %.2fs, %s tokens",
            request.model,
            time.monotonic() - start,
            usage.total_tokens if usage else None,
        )

        return CompletionResponse(text="\n".join(text_blocks), usage=usage, tool_calls=tool_calls)
