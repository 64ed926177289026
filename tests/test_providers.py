"""Tests for dialectic/providers/: fallback combinator, SDK adapters and factory."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from config.config_loader import ProviderConfig
from dialectic.errors import ConfigError
from dialectic.providers.anthropic import AnthropicProvider, _to_anthropic_messages
from dialectic.providers.base import CompletionRequest, CompletionResponse, ProviderError
from dialectic.providers.factory import ProviderPool, create_provider
from dialectic.providers.fallback import chat_payload, complete_with_fallback, normalize_chat, normalize_responses
from dialectic.providers.openai_provider import OpenAIProvider
from dialectic.providers.openrouter import OpenRouterProvider

TOOL_SCHEMA = {
    "name": "context_search",
    "description": "Search history",
    "parameters": {"type": "object", "properties": {"term": {"type": "string"}}, "required": ["term"]},
}


def _request(**kwargs) -> CompletionRequest:
    return CompletionRequest(model="gpt-4o", system_prompt="sys", user_prompt="hello", **kwargs)


def _openai_client(responses=None, chat=None) -> SimpleNamespace:
    return SimpleNamespace(
        responses=SimpleNamespace(create=responses or AsyncMock(side_effect=RuntimeError("no responses"))),
        chat=SimpleNamespace(completions=SimpleNamespace(create=chat or AsyncMock(side_effect=RuntimeError("no chat")))),
    )


def _chat_result(content="chat text", tool_calls=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    usage = SimpleNamespace(prompt_tokens=5, completion_tokens=7, total_tokens=12)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=usage)


async def test_fallback_returns_primary_result():
    primary = AsyncMock(return_value=CompletionResponse(text="primary"))
    fallback = AsyncMock()

    response = await complete_with_fallback("openai", primary, fallback)

    assert response.text == "primary"
    fallback.assert_not_called()


async def test_fallback_used_when_primary_raises_or_is_empty():
    fallback = AsyncMock(return_value=CompletionResponse(text="fallback"))

    raised = await complete_with_fallback("openai", AsyncMock(side_effect=RuntimeError("boom")), fallback)
    empty = await complete_with_fallback("openai", AsyncMock(return_value=None), fallback)

    assert raised.text == "fallback"
    assert empty.text == "fallback"
    assert fallback.await_count == 2


async def test_fallback_failure_is_provider_error():
    with pytest.raises(ProviderError, match=r"\[openai\] API call failed: chat down"):
        await complete_with_fallback(
            "openai", AsyncMock(side_effect=RuntimeError("a")), AsyncMock(side_effect=RuntimeError("chat down"))
        )
    with pytest.raises(ProviderError, match="Empty response content"):
        await complete_with_fallback("openai", AsyncMock(return_value=None), AsyncMock(return_value=None))


def test_normalize_responses_text_and_tool_calls():
    raw = {
        "output_text": "",
        "output": [{"type": "function_call", "call_id": "call_1", "name": "context_search", "arguments": '{"term": "x"}'}],
        "usage": {"input_tokens": 3, "output_tokens": 4, "total_tokens": 7},
    }

    response = normalize_responses(raw)

    assert response.text == ""
    assert [(c.id, c.name, c.arguments) for c in response.tool_calls] == [("call_1", "context_search", '{"term": "x"}')]
    assert response.usage.total_tokens == 7
    assert normalize_responses({"output_text": "", "output": []}) is None


def test_normalize_chat_maps_usage_and_tool_calls():
    call = SimpleNamespace(id="c1", function=SimpleNamespace(name="file_read", arguments={"path": "a.md"}))

    response = normalize_chat(_chat_result(content=None, tool_calls=[call]))

    assert response.text == ""
    assert response.tool_calls[0].name == "file_read"
    assert json.loads(response.tool_calls[0].arguments) == {"path": "a.md"}
    assert (response.usage.input_tokens, response.usage.output_tokens) == (5, 7)
    assert normalize_chat(SimpleNamespace(choices=[])) is None


def test_chat_payload_wraps_tools():
    payload = chat_payload(_request(tools=[TOOL_SCHEMA], max_tokens=100))
    assert payload["max_tokens"] == 100
    assert payload["tools"][0]["type"] == "function"
    assert payload["tools"][0]["function"]["name"] == "context_search"
    assert payload["messages"][0] == {"role": "system", "content": "sys"}


async def test_openai_provider_prefers_responses_api():
    responses = AsyncMock(return_value=SimpleNamespace(output_text="from responses", output=[], usage=None))
    chat = AsyncMock()
    provider = OpenAIProvider(ProviderConfig(name="openai", api_key_env="X"), client=_openai_client(responses, chat))

    response = await provider.complete(_request())

    assert response.text == "from responses"
    chat.assert_not_called()
    assert responses.await_args.kwargs["input"][1]["content"] == "hello"


async def test_openai_provider_falls_back_to_chat():
    chat = AsyncMock(return_value=_chat_result())
    provider = OpenAIProvider(ProviderConfig(name="openai", api_key_env="X"), client=_openai_client(chat=chat))

    response = await provider.complete(_request())

    assert response.text == "chat text"
    assert response.usage.total_tokens == 12


async def test_openai_provider_both_styles_fail():
    provider = OpenAIProvider(ProviderConfig(name="openai", api_key_env="X"), client=_openai_client())
    with pytest.raises(ProviderError) as exc_info:
        await provider.complete(_request())
    assert exc_info.value.provider_name == "openai"
    assert exc_info.value.exit_code == 3


def test_missing_api_key_is_config_error(monkeypatch):
    monkeypatch.delenv("DIALECTIC_TEST_KEY", raising=False)
    config = ProviderConfig(name="openai", api_key_env="DIALECTIC_TEST_KEY")
    with pytest.raises(ConfigError) as exc_info:
        OpenAIProvider(config)
    assert exc_info.value.exit_code == 4


def test_blank_api_key_is_config_error(monkeypatch):
    monkeypatch.setenv("DIALECTIC_TEST_KEY", "   ")
    with pytest.raises(ConfigError):
        AnthropicProvider(ProviderConfig(name="anthropic", api_key_env="DIALECTIC_TEST_KEY"))


def test_openrouter_uses_default_base_url(monkeypatch):
    monkeypatch.setenv("DIALECTIC_TEST_KEY", "sk-or-test")
    provider = OpenRouterProvider(ProviderConfig(name="openrouter", api_key_env="DIALECTIC_TEST_KEY"))
    assert str(provider._client.base_url).startswith("https://openrouter.ai/api/v1")
    assert provider.name() == "openrouter"


def test_anthropic_message_conversion():
    messages = [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "hello"},
        {
            "role": "assistant",
            "content": "Let me look",
            "tool_calls": [{"id": "t1", "type": "function", "function": {"name": "list_files", "arguments": "{}"}}],
        },
        {"role": "tool", "tool_call_id": "t1", "content": '{"status": "success"}'},
        {"role": "tool", "tool_call_id": "t2", "content": '{"status": "error"}'},
    ]

    system, converted = _to_anthropic_messages(messages)

    assert system == "sys"
    assert converted[0] == {"role": "user", "content": "hello"}
    assert converted[1]["content"][0] == {"type": "text", "text": "Let me look"}
    assert converted[1]["content"][1]["type"] == "tool_use"
    assert converted[1]["content"][1]["input"] == {}
    assert len(converted) == 3
    assert [b["tool_use_id"] for b in converted[2]["content"]] == ["t1", "t2"]


async def test_anthropic_provider_maps_blocks():
    content = [
        SimpleNamespace(type="text", text="Thinking"),
        SimpleNamespace(type="tool_use", id="tu1", name="context_search", input={"term": "cache"}),
    ]
    raw = SimpleNamespace(content=content, usage=SimpleNamespace(input_tokens=10, output_tokens=5))
    create = AsyncMock(return_value=raw)
    client = SimpleNamespace(messages=SimpleNamespace(create=create))
    provider = AnthropicProvider(ProviderConfig(name="anthropic", api_key_env="X", max_tokens=2048), client=client)

    response = await provider.complete(_request(tools=[TOOL_SCHEMA]))

    assert response.text == "Thinking"
    assert response.tool_calls[0].arguments == '{"term": "cache"}'
    assert response.usage.total_tokens == 15
    kwargs = create.await_args.kwargs
    assert kwargs["system"] == "sys"
    assert kwargs["max_tokens"] == 2048
    assert kwargs["tools"][0]["input_schema"] == TOOL_SCHEMA["parameters"]


async def test_anthropic_provider_wraps_sdk_errors():
    client = SimpleNamespace(messages=SimpleNamespace(create=AsyncMock(side_effect=RuntimeError("overloaded"))))
    provider = AnthropicProvider(ProviderConfig(name="anthropic", api_key_env="X"), client=client)
    with pytest.raises(ProviderError, match="overloaded"):
        await provider.complete(_request())


def test_create_provider_unknown_type():
    with pytest.raises(ConfigError, match="Unsupported provider 'gemini'"):
        create_provider("gemini")


def test_provider_pool_caches_instances(monkeypatch):
    monkeypatch.setenv("DIALECTIC_TEST_KEY", "sk-test")
    pool = ProviderPool({"openai": ProviderConfig(name="openai", api_key_env="DIALECTIC_TEST_KEY")})
    first = pool.get("openai")
    assert pool.get("openai") is first
    assert isinstance(first, OpenAIProvider)
