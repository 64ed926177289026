"""Tests for dialectic/state_machine/: transition graph, suspension and resume."""

import json

import pytest

from dialectic.errors import DebateStateError
from dialectic.judge import JudgeAgent
from dialectic.models import (
    CRITIQUE,
    PROPOSAL,
    REFINEMENT,
    STATUS_COMPLETED,
    STATUS_SUSPENDED,
    DebateConfig,
    SummarizationConfig,
)
from dialectic.role_agent import RoleBasedAgent
from dialectic.state import StateManager
from dialectic.state_machine import events, graph
from dialectic.state_machine.events import DebateEvent
from dialectic.state_machine.graph import TransitionGraph
from dialectic.state_machine.orchestrator import StateMachineOrchestrator
from tests.conftest import MockProvider

SYNTHESIS_JSON = json.dumps({"solution_markdown": "# Final", "confidence": 77})
QUESTIONS_JSON = json.dumps({"questions": [{"text": "Expected QPS?"}, {"text": "Read/write ratio?"}]})
NO_QUESTIONS_JSON = json.dumps({"questions": []})


@pytest.fixture
def state_manager(tmp_path) -> StateManager:
    return StateManager(tmp_path / "debates")


def _orchestrator(agents_replies, architect_config, performance_config, judge_config, state_manager, logger, **cfg):
    summarization = SummarizationConfig(enabled=False)
    agents = [
        RoleBasedAgent(agent_cfg, MockProvider(agent_cfg.id, replies=replies), summarization=summarization, logger=logger)
        for agent_cfg, replies in zip((architect_config, performance_config), agents_replies)
    ]
    judge = JudgeAgent(judge_config, MockProvider("judge", replies=[SYNTHESIS_JSON]), logger=logger)
    config = DebateConfig(rounds=1, summarization=summarization, **cfg)
    return StateMachineOrchestrator(agents, judge, state_manager, config, logger=logger)


def test_graph_follows_default_rules():
    g = TransitionGraph()
    assert g.next_node(graph.INITIALIZATION, DebateEvent(events.START)) == graph.CLARIFICATION
    assert g.next_node(graph.CLARIFICATION, DebateEvent(events.ALL_CLEAR)) == graph.ROUND_MANAGER
    assert g.next_node(graph.EVALUATION, DebateEvent(events.CONTINUE)) == graph.ROUND_MANAGER
    assert g.next_node(graph.EVALUATION, DebateEvent(events.CONSENSUS_REACHED)) == graph.SYNTHESIS
    assert g.next_node(graph.SYNTHESIS, DebateEvent(events.COMPLETE)) is None
    assert g.has_rule(graph.PROPOSAL, DebateEvent(events.PROPOSALS_COMPLETE))
    assert not g.has_rule(graph.PROPOSAL, DebateEvent(events.COMPLETE))


def test_graph_logs_transitions(quiet_logger):
    g = TransitionGraph(logger=quiet_logger)
    g.next_node(graph.SYNTHESIS, DebateEvent(events.COMPLETE))
    assert quiet_logger.messages == [("Transition: synthesis --[COMPLETE]--> terminal", True)]


async def test_runs_to_completion_without_clarifications(
    architect_config, performance_config, judge_config, state_manager, quiet_logger
):
    orchestrator = _orchestrator(
        [[], []], architect_config, performance_config, judge_config, state_manager, quiet_logger
    )

    execution = await orchestrator.run_debate("Design a cache")

    assert execution.status == STATUS_COMPLETED
    assert execution.result.total_rounds == 1
    assert execution.result.solution.confidence == 77
    types = [c.type for c in execution.result.rounds[0].contributions]
    assert types == [PROPOSAL, PROPOSAL, CRITIQUE, CRITIQUE, REFINEMENT, REFINEMENT]


async def test_suspends_for_questions_then_resumes(
    architect_config, performance_config, judge_config, tmp_path, state_manager, quiet_logger
):
    orchestrator = _orchestrator(
        [[QUESTIONS_JSON], [NO_QUESTIONS_JSON]],
        architect_config,
        performance_config,
        judge_config,
        state_manager,
        quiet_logger,
        interactive_clarifications=True,
    )

    execution = await orchestrator.run_debate("Design a cache", debate_id="deb-sm")

    assert execution.status == STATUS_SUSPENDED
    assert execution.suspend_reason == events.WAITING_FOR_INPUT
    payload = execution.suspend_payload
    assert payload.debate_id == "deb-sm"
    assert payload.iteration == 1
    # agents without questions are left out
    assert [g.agent_id for g in payload.questions] == ["agent-architect"]
    assert [i.question for i in payload.questions[0].items] == ["Expected QPS?", "Read/write ratio?"]

    suspended = StateManager(tmp_path / "debates").get_debate("deb-sm")
    assert suspended.status == STATUS_SUSPENDED
    assert suspended.suspended_at_node == graph.CLARIFICATION_INPUT
    assert suspended.rounds == []

    resumed = await orchestrator.resume("deb-sm", {"agent-architect:q1": "10k"})

    assert resumed.status == STATUS_COMPLETED
    state = state_manager.get_debate("deb-sm")
    assert state.status == STATUS_COMPLETED
    assert state.suspended_at_node is None
    items = state.clarifications[0].items
    assert [(i.id, i.answer) for i in items] == [("q1", "10k"), ("q2", "NA")]
    proposals = [c for c in state.rounds[0].contributions if c.type == PROPOSAL]
    assert len(proposals) == 2
    # answered clarifications reach the agents' prompts
    propose_prompt = orchestrator.agents[0].provider.requests[1].user_prompt
    assert "Expected QPS?" in propose_prompt
    assert "10k" in propose_prompt


async def test_resume_does_not_duplicate_persisted_work(
    architect_config, performance_config, judge_config, state_manager, quiet_logger
):
    orchestrator = _orchestrator(
        [[], []], architect_config, performance_config, judge_config, state_manager, quiet_logger
    )
    state = state_manager.create_debate("Design a cache", debate_id="deb-crash")
    state_manager.begin_round(state.id)
    await orchestrator.proposal_phase(state.id)
    state_manager.set_suspend_state(state.id, graph.PROPOSAL)

    execution = await orchestrator.resume(state.id)

    assert execution.status == STATUS_COMPLETED
    contributions = state_manager.get_debate(state.id).rounds[0].contributions
    assert len([c for c in contributions if c.type == PROPOSAL]) == 2
    assert len([c for c in contributions if c.type == CRITIQUE]) == 2
    assert len([c for c in contributions if c.type == REFINEMENT]) == 2


async def test_resume_requires_suspended_debate(
    architect_config, performance_config, judge_config, state_manager, quiet_logger
):
    orchestrator = _orchestrator(
        [[], []], architect_config, performance_config, judge_config, state_manager, quiet_logger
    )
    state = state_manager.create_debate("Design a cache")

    with pytest.raises(DebateStateError):
        await orchestrator.resume(state.id, {})


async def test_clarifications_skipped_when_not_interactive(
    architect_config, performance_config, judge_config, state_manager, quiet_logger
):
    orchestrator = _orchestrator(
        [[QUESTIONS_JSON], []], architect_config, performance_config, judge_config, state_manager, quiet_logger
    )

    execution = await orchestrator.run_debate("Design a cache")

    assert execution.status == STATUS_COMPLETED
    # QUESTIONS_JSON was consumed as the proposal, not as clarifications
    assert execution.result.rounds[0].contributions[0].content == QUESTIONS_JSON
