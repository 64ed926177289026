"""Abstract base for all completion providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from dialectic.errors import EXIT_PROVIDER_ERROR, DialecticError
from dialectic.models import ToolCall


class ProviderError(DialecticError):
    """Raised when a provider call fails."""

    exit_code = EXIT_PROVIDER_ERROR

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


@dataclass
class CompletionRequest:
    model: str
    system_prompt: str
    user_prompt: str
    temperature: float = 0.5
    max_tokens: int | None = None
    # Full message list for tool-calling turns; overrides the two prompts when set.
    messages: list[dict[str, Any]] | None = None
    tools: list[dict[str, Any]] | None = None


@dataclass
class CompletionUsage:
    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None


@dataclass
class CompletionResponse:
    text: str
    usage: CompletionUsage | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)


class AIProvider(ABC):
    """Abstract base for all completion providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'openai', 'openrouter')."""
        ...

    @abstractmethod
    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Run one completion.

        Args:
            request: Model, prompts or message list, and optional tool schemas.

        Returns:
            CompletionResponse with text, usage and any requested tool calls.

        Raises:
            ProviderError: When every available call style fails.
        """
        ...


def build_messages(request: CompletionRequest) -> list[dict[str, Any]]:
    """Return the chat message list for a request."""
    if request.messages is not None:
        return request.messages
    return [
        {"role": "system", "content": request.system_prompt},
        {"role": "user", "content": request.user_prompt},
    ]
