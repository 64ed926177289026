"""Agent base: provider ownership and the bounded tool-calling execution loop."""

import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from dialectic.console import AgentLogger, stderr_logger
from dialectic.models import (
    DEFAULT_TOOL_CALL_LIMIT,
    AgentConfig,
    Contribution,
    ContributionMetadata,
    ContextPreparationResult,
    DebateContext,
    DebateState,
    ToolCall,
    ToolResult,
)
from dialectic.providers.base import AIProvider, CompletionRequest, CompletionResponse
from dialectic.tools.base import ToolRegistry, tool_error_json

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Final text of one completion plus its tool-activity trace.

    The three tool fields are None when no tool was requested, never empty lists.
    """

    text: str
    latency_ms: int
    tokens_used: int | None = None
    tool_calls: list[ToolCall] | None = None
    tool_results: list[ToolResult] | None = None
    tool_call_iterations: int | None = None


@dataclass
class AgentOutput:
    content: str
    metadata: ContributionMetadata


class Agent(ABC):
    """Base class for every debating agent.

    Owns a provider, an optional tool registry and the tool-iteration cap.
    Subclasses supply the prompts; ``call_llm`` is the single primitive they
    build on.
    """

    def __init__(
        self,
        config: AgentConfig,
        provider: AIProvider,
        tool_registry: ToolRegistry | None = None,
        tool_call_limit: int | None = None,
        logger: AgentLogger | None = None,
    ) -> None:
        self.config = config
        self.provider = provider
        self.tool_registry = tool_registry
        if tool_call_limit is None:
            tool_call_limit = config.tool_call_limit
        self.tool_call_limit = tool_call_limit if tool_call_limit is not None else DEFAULT_TOOL_CALL_LIMIT
        if self.tool_call_limit < 0:
            raise ValueError(f"tool_call_limit must be >= 0, got {self.tool_call_limit}")
        self.log: AgentLogger = logger or stderr_logger

    @abstractmethod
    async def propose(self, problem: str, context: DebateContext, state: DebateState | None = None) -> AgentOutput:
        ...

    @abstractmethod
    async def critique(
        self, proposal: Contribution, context: DebateContext, state: DebateState | None = None
    ) -> AgentOutput:
        ...

    @abstractmethod
    async def refine(
        self,
        original: Contribution,
        critiques: list[Contribution],
        context: DebateContext,
        state: DebateState | None = None,
    ) -> AgentOutput:
        ...

    @abstractmethod
    def should_summarize(self, context: DebateContext) -> bool:
        ...

    @abstractmethod
    async def prepare_context(self, context: DebateContext, round_number: int) -> ContextPreparationResult:
        ...

    @abstractmethod
    async def ask_clarifying_questions(self, problem: str, context: DebateContext) -> list[str]:
        ...

    async def propose_impl(
        self, system_prompt: str, user_prompt: str, context: DebateContext, state: DebateState | None = None
    ) -> AgentOutput:
        return await self._contribute(system_prompt, user_prompt, context, state)

    async def critique_impl(
        self, system_prompt: str, user_prompt: str, context: DebateContext, state: DebateState | None = None
    ) -> AgentOutput:
        return await self._contribute(system_prompt, user_prompt, context, state)

    async def refine_impl(
        self, system_prompt: str, user_prompt: str, context: DebateContext, state: DebateState | None = None
    ) -> AgentOutput:
        return await self._contribute(system_prompt, user_prompt, context, state)

    async def _contribute(
        self, system_prompt: str, user_prompt: str, context: DebateContext, state: DebateState | None
    ) -> AgentOutput:
        response = await self.call_llm(system_prompt, user_prompt, context, state)
        metadata = ContributionMetadata(latency_ms=response.latency_ms, model=self.config.model)
        if response.tokens_used is not None:
            metadata.tokens_used = response.tokens_used
        if response.tool_calls is not None:
            metadata.tool_calls = response.tool_calls
            metadata.tool_results = response.tool_results
            metadata.tool_call_iterations = response.tool_call_iterations
        return AgentOutput(content=response.text, metadata=metadata)

    async def call_llm(
        self,
        system_prompt: str,
        user_prompt: str,
        context: DebateContext | None = None,
        state: DebateState | None = None,
    ) -> LLMResponse:
        """Complete with tools: alternate provider calls and tool executions.

        Stops when the provider requests no more tools or the iteration
        counter reaches ``tool_call_limit``; the limit is a soft stop that
        returns the text of the last response as-is.
        """
        start = time.monotonic()
        if self.tool_registry is None or not self.tool_registry.has_tools():
            response = await self.provider.complete(self._request(system_prompt, user_prompt))
            return LLMResponse(
                text=response.text,
                latency_ms=_elapsed_ms(start),
                tokens_used=_tokens(response),
            )

        schemas = self.tool_registry.schemas()
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        response = await self.provider.complete(self._request(system_prompt, user_prompt, messages, schemas))
        tokens = _tokens(response)

        all_calls: list[ToolCall] = []
        all_results: list[ToolResult] = []
        iterations = 0

        while response.tool_calls and iterations < self.tool_call_limit:
            results = [self._execute_tool_call(call, context, state) for call in response.tool_calls]
            all_calls.extend(response.tool_calls)
            all_results.extend(results)
            messages.append(_assistant_tool_message(response))
            messages.extend(
                {"role": r.role, "tool_call_id": r.tool_call_id, "content": r.content} for r in results
            )
            iterations += 1
            if iterations >= self.tool_call_limit:
                self.log(
                    f"[{self.config.name}] Tool call limit ({self.tool_call_limit}) reached, using last response",
                    True,
                )
                break
            response = await self.provider.complete(self._request(system_prompt, user_prompt, messages, schemas))
            tokens = _add_tokens(tokens, _tokens(response))

        if response.tool_calls and iterations == 0:
            self.log(f"[{self.config.name}] Tool calls disabled (limit 0), using response as-is", True)
        result = LLMResponse(text=response.text, latency_ms=_elapsed_ms(start), tokens_used=tokens)
        if iterations:
            result.tool_calls = all_calls
            result.tool_results = all_results
            result.tool_call_iterations = iterations
        return result

    def _request(
        self,
        system_prompt: str,
        user_prompt: str,
        messages: list[dict[str, Any]] | None = None,
        tools: list[dict[str, Any]] | None = None,
    ) -> CompletionRequest:
        return CompletionRequest(
            model=self.config.model,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=self.config.temperature,
            messages=list(messages) if messages is not None else None,
            tools=tools,
        )

    def _execute_tool_call(
        self, call: ToolCall, context: DebateContext | None, state: DebateState | None
    ) -> ToolResult:
        """Run one requested tool. Every failure becomes an error result for that call id."""
        self.log(f"[{self.config.name}] Executing tool: {call.name} with arguments: {call.arguments}", False)

        try:
            tool = self.tool_registry.get(call.name) if self.tool_registry else None
        except Exception as exc:
            self.log(f"Warning: [{self.config.name}] Tool lookup failed for '{call.name}': {exc}", False)
            return ToolResult(tool_call_id=call.id, content=tool_error_json(f"Tool lookup failed: {exc}"))
        if tool is None:
            self.log(f"Warning: [{self.config.name}] Tool '{call.name}' not found in registry", False)
            return ToolResult(tool_call_id=call.id, content=tool_error_json(f"Tool '{call.name}' not found"))

        try:
            args = json.loads(call.arguments) if call.arguments else {}
        except json.JSONDecodeError as exc:
            self.log(f"Warning: [{self.config.name}] Could not parse arguments for tool {call.name}: {exc}", False)
            return ToolResult(tool_call_id=call.id, content=tool_error_json(f"Invalid arguments: {exc}"))
        if not isinstance(args, dict):
            return ToolResult(
                tool_call_id=call.id, content=tool_error_json("Invalid arguments: expected a JSON object")
            )

        try:
            content = tool.execute(args, context, state)
        except Exception as exc:
            self.log(f"Warning: [{self.config.name}] Tool {call.name} failed: {exc}", False)
            logger.debug("Tool %s raised", call.name, exc_info=True)
            return ToolResult(tool_call_id=call.id, content=tool_error_json(str(exc)))

        self.log(f"[{self.config.name}] Tool {call.name} execution result: {content}", True)
        return ToolResult(tool_call_id=call.id, content=content)


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Parse the first balanced {...} in text, tolerating Markdown code fences."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else ""
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    depth = 0
    start = -1
    for i, ch in enumerate(cleaned):
        if ch == "{":
            if start == -1:
                start = i
            depth += 1
        elif ch == "}" and start != -1:
            depth -= 1
            if depth == 0:
                try:
                    parsed = json.loads(cleaned[start : i + 1])
                except json.JSONDecodeError:
                    return None
                return parsed if isinstance(parsed, dict) else None
    return None


def _assistant_tool_message(response: CompletionResponse) -> dict[str, Any]:
    return {
        "role": "assistant",
        "content": response.text or None,
        "tool_calls": [
            {"id": c.id, "type": "function", "function": {"name": c.name, "arguments": c.arguments}}
            for c in response.tool_calls
        ],
    }


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _tokens(response: CompletionResponse) -> int | None:
    if response.usage is None:
        return None
    return response.usage.total_tokens


def _add_tokens(a: int | None, b: int | None) -> int | None:
    if a is None:
        return b
    if b is None:
        return a
    return a + b
