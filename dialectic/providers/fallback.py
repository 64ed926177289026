"""Attempt/fallback combinator and response normalization for OpenAI-style APIs.

OpenAI and OpenRouter both expose two call styles: the newer Responses API and
the classic Chat Completions API. Providers try the first and fall back to the
second; both are normalized to a CompletionResponse here.
"""

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from dialectic.models import ToolCall
from dialectic.providers.base import CompletionRequest, CompletionResponse, CompletionUsage, ProviderError, build_messages

logger = logging.getLogger(__name__)

Attempt = Callable[[], Awaitable[CompletionResponse | None]]


async def complete_with_fallback(provider_name: str, primary: Attempt, fallback: Attempt) -> CompletionResponse:
    """Run primary; on exception or an unrecognizable result, run fallback.

    The fallback is the last word: its failure surfaces as ProviderError and
    nothing is retried.
    """
    try:
        response = await primary()
    except Exception as exc:
        logger.debug("%s: primary call style failed, falling back: %s", provider_name, exc)
    else:
        if response is not None:
            return response
        logger.debug("%s: primary call style returned no text, falling back", provider_name)

    try:
        response = await fallback()
    except ProviderError:
        raise
    except Exception as exc:
        raise ProviderError(provider_name, f"API call failed: {exc}") from exc
    if response is None:
        raise ProviderError(provider_name, "Empty response content")
    return response


def _get(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def _arguments_str(arguments: Any) -> str:
    if arguments is None:
        return "{}"
    if isinstance(arguments, str):
        return arguments
    return json.dumps(arguments)


def tools_for_chat(request: CompletionRequest) -> list[dict[str, Any]] | None:
    if not request.tools:
        return None
    return [
        {
            "type": "function",
            "function": {
                "name": t["name"],
                "description": t.get("description", ""),
                "parameters": t["parameters"],
            },
        }
        for t in request.tools
    ]


def tools_for_responses(request: CompletionRequest) -> list[dict[str, Any]] | None:
    if not request.tools:
        return None
    return [
        {
            "type": "function",
            "name": t["name"],
            "description": t.get("description", ""),
            "parameters": t["parameters"],
        }
        for t in request.tools
    ]


def responses_payload(request: CompletionRequest) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "model": request.model,
        "temperature": request.temperature,
        "input": build_messages(request),
    }
    if request.max_tokens is not None:
        payload["max_output_tokens"] = request.max_tokens
    tools = tools_for_responses(request)
    if tools:
        payload["tools"] = tools
    return payload


def chat_payload(request: CompletionRequest) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "model": request.model,
        "temperature": request.temperature,
        "messages": build_messages(request),
    }
    if request.max_tokens is not None:
        payload["max_tokens"] = request.max_tokens
    tools = tools_for_chat(request)
    if tools:
        payload["tools"] = tools
    return payload


def _responses_usage(usage: Any) -> CompletionUsage | None:
    if usage is None:
        return None
    return CompletionUsage(
        input_tokens=_get(usage, "input_tokens"),
        output_tokens=_get(usage, "output_tokens"),
        total_tokens=_get(usage, "total_tokens"),
    )


def _chat_usage(usage: Any) -> CompletionUsage | None:
    if usage is None:
        return None
    input_tokens = _get(usage, "prompt_tokens")
    output_tokens = _get(usage, "completion_tokens")
    return CompletionUsage(
        input_tokens=input_tokens if input_tokens is not None else _get(usage, "input_tokens"),
        output_tokens=output_tokens if output_tokens is not None else _get(usage, "output_tokens"),
        total_tokens=_get(usage, "total_tokens"),
    )


def _responses_tool_calls(response: Any) -> list[ToolCall]:
    calls: list[ToolCall] = []
    for raw in _get(response, "tool_calls") or []:
        fn = _get(raw, "function")
        name = _get(fn, "name") or _get(raw, "name")
        if not name:
            continue
        args = _get(fn, "arguments") if fn is not None else _get(raw, "arguments")
        calls.append(ToolCall(id=_get(raw, "id") or "", name=name, arguments=_arguments_str(args)))
    output = _get(response, "output")
    if isinstance(output, list):
        for item in output:
            if _get(item, "type") != "function_call":
                continue
            calls.append(
                ToolCall(
                    id=_get(item, "call_id") or _get(item, "id") or "",
                    name=_get(item, "name"),
                    arguments=_arguments_str(_get(item, "arguments")),
                )
            )
    return calls


def _responses_text(response: Any) -> str | None:
    text = _get(response, "output_text")
    if text:
        return text
    output = _get(response, "output")
    if isinstance(output, list) and output:
        content = _get(output[0], "content")
        if isinstance(content, list) and content:
            return _get(content[0], "text")
    return None


def normalize_responses(response: Any) -> CompletionResponse | None:
    """Normalize a Responses API result; None when it carries neither text nor tool calls."""
    text = _responses_text(response)
    tool_calls = _responses_tool_calls(response)
    if not text and not tool_calls:
        return None
    return CompletionResponse(text=text or "", usage=_responses_usage(_get(response, "usage")), tool_calls=tool_calls)


def normalize_chat(response: Any) -> CompletionResponse | None:
    """Normalize a Chat Completions result; None when it carries neither text nor tool calls."""
    choices = _get(response, "choices") or []
    message = _get(choices[0], "message") if choices else None
    if message is None:
        return None
    text = _get(message, "content") or ""
    tool_calls = [
        ToolCall(
            id=_get(raw, "id") or "",
            name=_get(_get(raw, "function"), "name"),
            arguments=_arguments_str(_get(_get(raw, "function"), "arguments")),
        )
        for raw in _get(message, "tool_calls") or []
        if _get(_get(raw, "function"), "name")
    ]
    if not text and not tool_calls:
        return None
    return CompletionResponse(text=text, usage=_chat_usage(_get(response, "usage")), tool_calls=tool_calls)
