"""Tests for dialectic/agent.py."""

import json

import pytest

from dialectic.agent import extract_json_object
from dialectic.models import DebateContext, ToolCall
from dialectic.role_agent import RoleBasedAgent
from dialectic.tools.base import ToolImplementation, ToolRegistry
from dialectic.tools.context_search import ContextSearchTool
from tests.conftest import MockProvider, text_reply, tool_reply


def _search_call(call_id: str, term: str = "cache") -> ToolCall:
    return ToolCall(id=call_id, name="context_search", arguments=json.dumps({"term": term}))


def _agent(config, provider, logger, registry=None, limit=None) -> RoleBasedAgent:
    return RoleBasedAgent(config, provider, tool_registry=registry, tool_call_limit=limit, logger=logger)


class ExplodingTool(ToolImplementation):
    name = "explode"
    schema = {"name": "explode", "description": "Always fails", "parameters": {"type": "object", "properties": {}}}

    def execute(self, args, context=None, state=None) -> str:
        raise RuntimeError("boom")


async def test_no_registry_makes_single_call(architect_config, quiet_logger):
    provider = MockProvider(replies=["A plain answer"])
    agent = _agent(architect_config, provider, quiet_logger)

    output = await agent.propose("Design a cache", DebateContext(problem="Design a cache"))

    assert output.content == "A plain answer"
    assert len(provider.requests) == 1
    assert provider.requests[0].tools is None
    assert output.metadata.tool_calls is None
    assert output.metadata.tool_results is None
    assert output.metadata.tool_call_iterations is None
    assert output.metadata.tokens_used == 10
    assert output.metadata.model == "mock-model"


async def test_tools_available_but_unused_leave_tool_fields_absent(architect_config, quiet_logger):
    provider = MockProvider(replies=["No tools needed"])
    agent = _agent(architect_config, provider, quiet_logger, ToolRegistry([ContextSearchTool()]))

    output = await agent.propose("Design a cache", DebateContext(problem="Design a cache"))

    assert output.content == "No tools needed"
    assert provider.requests[0].tools[0]["name"] == "context_search"
    assert output.metadata.tool_calls is None
    assert output.metadata.tool_results is None
    assert output.metadata.tool_call_iterations is None


async def test_tool_loop_stops_at_limit_and_keeps_last_text(architect_config, quiet_logger):
    provider = MockProvider(replies=[tool_reply(f"Iter {i}", _search_call(f"call-{i}")) for i in range(1, 5)])
    agent = _agent(architect_config, provider, quiet_logger, ToolRegistry([ContextSearchTool()]), limit=2)

    output = await agent.propose("Design a cache", DebateContext(problem="Design a cache"))

    assert len(provider.requests) == 2
    assert output.content == "Iter 2"
    assert output.metadata.tool_call_iterations == 2
    assert [c.id for c in output.metadata.tool_calls] == ["call-1", "call-2"]
    assert len(output.metadata.tool_results) == 2
    assert output.metadata.tokens_used == 20
    assert any("Tool call limit (2) reached" in m and verbose for m, verbose in quiet_logger.messages)


async def test_tool_loop_with_zero_limit_runs_no_iterations(architect_config, quiet_logger):
    provider = MockProvider(replies=[tool_reply("Wants a tool", _search_call("call-1"))])
    agent = _agent(architect_config, provider, quiet_logger, ToolRegistry([ContextSearchTool()]), limit=0)

    output = await agent.propose("Design a cache", DebateContext(problem="Design a cache"))

    assert len(provider.requests) == 1
    assert output.content == "Wants a tool"
    assert output.metadata.tool_call_iterations is None
    assert output.metadata.tool_calls is None


def test_negative_tool_call_limit_is_rejected(architect_config, mock_provider):
    with pytest.raises(ValueError, match="tool_call_limit"):
        RoleBasedAgent(architect_config, mock_provider, tool_call_limit=-1)


async def test_tool_loop_natural_stop_counts_iterations(architect_config, quiet_logger):
    provider = MockProvider(replies=[tool_reply("Looking", _search_call("call-1")), text_reply("Final answer")])
    agent = _agent(architect_config, provider, quiet_logger, ToolRegistry([ContextSearchTool()]))

    output = await agent.propose("Design a cache", DebateContext(problem="Design a cache"))

    assert len(provider.requests) == 2
    assert output.content == "Final answer"
    assert output.metadata.tool_call_iterations == len(provider.requests) - 1
    assert output.metadata.tool_results[0].tool_call_id == "call-1"
    assert json.loads(output.metadata.tool_results[0].content)["status"] == "success"


async def test_follow_up_request_carries_tool_messages(architect_config, quiet_logger):
    provider = MockProvider(replies=[tool_reply("", _search_call("call-1")), text_reply("Done")])
    agent = _agent(architect_config, provider, quiet_logger, ToolRegistry([ContextSearchTool()]))

    await agent.propose("Design a cache", DebateContext(problem="Design a cache"))

    messages = provider.requests[1].messages
    assert [m["role"] for m in messages] == ["system", "user", "assistant", "tool"]
    assert messages[2]["tool_calls"][0]["id"] == "call-1"
    assert messages[3]["tool_call_id"] == "call-1"


async def test_every_requested_call_gets_a_result(architect_config, quiet_logger):
    calls = [
        _search_call("ok"),
        ToolCall(id="missing", name="nope", arguments="{}"),
        ToolCall(id="bad-json", name="context_search", arguments="{not json"),
        ToolCall(id="list-args", name="context_search", arguments="[1, 2]"),
        ToolCall(id="raises", name="explode", arguments="{}"),
    ]
    provider = MockProvider(replies=[tool_reply("", *calls), text_reply("Done")])
    registry = ToolRegistry([ContextSearchTool(), ExplodingTool()])
    agent = _agent(architect_config, provider, quiet_logger, registry)

    output = await agent.propose("Design a cache", DebateContext(problem="Design a cache"))

    results = output.metadata.tool_results
    assert [r.tool_call_id for r in results] == ["ok", "missing", "bad-json", "list-args", "raises"]
    statuses = [json.loads(r.content)["status"] for r in results]
    assert statuses == ["success", "error", "error", "error", "error"]
    assert json.loads(results[1].content)["error"] == "Tool 'nope' not found"
    assert json.loads(results[4].content)["error"] == "boom"


async def test_tool_execution_is_logged(architect_config, quiet_logger):
    calls = [_search_call("ok"), ToolCall(id="missing", name="nope", arguments="{}")]
    provider = MockProvider(replies=[tool_reply("", *calls), text_reply("Done")])
    agent = _agent(architect_config, provider, quiet_logger, ToolRegistry([ContextSearchTool()]))

    await agent.propose("Design a cache", DebateContext(problem="Design a cache"))

    visible = [m for m, verbose in quiet_logger.messages if not verbose]
    hidden = [m for m, verbose in quiet_logger.messages if verbose]
    assert any("Executing tool: context_search with arguments:" in m for m in visible)
    assert any("Tool 'nope' not found in registry" in m for m in visible)
    assert any("Tool context_search execution result:" in m for m in hidden)


async def test_tool_call_limit_falls_back_to_config(architect_config, mock_provider):
    architect_config.tool_call_limit = 3
    assert RoleBasedAgent(architect_config, mock_provider).tool_call_limit == 3
    assert RoleBasedAgent(architect_config, mock_provider, tool_call_limit=7).tool_call_limit == 7
    architect_config.tool_call_limit = None
    assert RoleBasedAgent(architect_config, mock_provider).tool_call_limit == 10


def test_extract_json_object_handles_fences_and_prose():
    assert extract_json_object('```json\n{"a": 1}\n```') == {"a": 1}
    assert extract_json_object('Here you go: {"a": {"b": 2}} thanks') == {"a": {"b": 2}}
    assert extract_json_object("no json here") is None
    assert extract_json_object("{broken") is None
