"""Shared pytest fixtures."""

from pathlib import Path

import pytest

from config.config_loader import AppConfig, DefaultsConfig
from dialectic.models import (
    PROPOSAL,
    REFINEMENT,
    ROLE_ARCHITECT,
    ROLE_JUDGE,
    ROLE_PERFORMANCE,
    AgentConfig,
    Contribution,
    ContributionMetadata,
    DebateConfig,
    Round,
    SummarizationConfig,
    ToolCall,
)
from dialectic.providers.base import AIProvider, CompletionRequest, CompletionResponse, CompletionUsage


class MockProvider(AIProvider):
    """Test double AIProvider.

    Replies are taken from a queue in order; a queued exception is raised
    instead of returned. Once the queue is empty every call gets
    ``default_text``. Every request is recorded.
    """

    def __init__(
        self,
        provider_name: str = "mock",
        replies: list[CompletionResponse | str | Exception] | None = None,
        default_text: str = "Mock response",
    ) -> None:
        self._name = provider_name
        self.replies = list(replies or [])
        self.default_text = default_text
        self.requests: list[CompletionRequest] = []

    def name(self) -> str:
        return self._name

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        self.requests.append(request)
        if not self.replies:
            return text_reply(self.default_text)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, str):
            return text_reply(reply)
        return reply


def text_reply(text: str, tokens: int = 10) -> CompletionResponse:
    return CompletionResponse(text=text, usage=CompletionUsage(total_tokens=tokens))


def tool_reply(text: str, *calls: ToolCall, tokens: int = 10) -> CompletionResponse:
    return CompletionResponse(text=text, usage=CompletionUsage(total_tokens=tokens), tool_calls=list(calls))


def make_contribution(agent_id: str, content: str, type_: str = PROPOSAL, role: str = ROLE_ARCHITECT) -> Contribution:
    return Contribution(
        agent_id=agent_id,
        agent_role=role,
        type=type_,
        content=content,
        metadata=ContributionMetadata(latency_ms=5, tokens_used=10, model="mock-model"),
    )


@pytest.fixture
def architect_config() -> AgentConfig:
    return AgentConfig(
        id="agent-architect",
        name="System Architect",
        role=ROLE_ARCHITECT,
        model="mock-model",
        provider="openai",
    )


@pytest.fixture
def performance_config() -> AgentConfig:
    return AgentConfig(
        id="agent-performance",
        name="Performance Engineer",
        role=ROLE_PERFORMANCE,
        model="mock-model",
        provider="openai",
    )


@pytest.fixture
def judge_config() -> AgentConfig:
    return AgentConfig(
        id="judge-main",
        name="Technical Judge",
        role=ROLE_JUDGE,
        model="mock-model",
        provider="openai",
        temperature=0.3,
    )


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def quiet_logger():
    """Agent logger that records (message, only_verbose) pairs instead of printing."""
    messages: list[tuple[str, bool]] = []

    def _log(message: str, only_verbose: bool = False) -> None:
        messages.append((message, only_verbose))

    _log.messages = messages
    return _log


@pytest.fixture
def debate_config() -> DebateConfig:
    return DebateConfig(rounds=1, summarization=SummarizationConfig(enabled=False))


@pytest.fixture
def sample_round() -> Round:
    return Round(
        round_number=1,
        timestamp="2025-01-01T00:00:00+00:00",
        contributions=[
            make_contribution("agent-architect", "Use a layered cache with Redis."),
            make_contribution("agent-architect", "Refined: Redis plus local LRU.", REFINEMENT),
        ],
    )


@pytest.fixture
def sample_app_config(tmp_path: Path, architect_config, performance_config, judge_config) -> AppConfig:
    return AppConfig(
        agents=[architect_config, performance_config],
        judge=judge_config,
        debate=DebateConfig(rounds=1, summarization=SummarizationConfig(enabled=False), timeout_per_round=0),
        defaults=DefaultsConfig(state_dir=tmp_path / "debates", output_dir=tmp_path / "output"),
        config_dir=tmp_path,
    )
