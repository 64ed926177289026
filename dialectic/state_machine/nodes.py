"""State-machine nodes. Each runs one step against persisted state and returns an event."""

import logging
from abc import ABC, abstractmethod

from dialectic.clarifications import collect_clarifications, unanswered
from dialectic.models import TERMINATION_FIXED, AgentClarifications
from dialectic.orchestrator import PhaseRunner, fire_hook
from dialectic.state_machine import events, graph
from dialectic.state_machine.events import DebateEvent

logger = logging.getLogger(__name__)


class DebateNode(ABC):
    node_type: str

    @abstractmethod
    async def execute(self, runner: PhaseRunner, debate_id: str) -> DebateEvent:
        ...


class InitializationNode(DebateNode):
    node_type = graph.INITIALIZATION

    async def execute(self, runner: PhaseRunner, debate_id: str) -> DebateEvent:
        return DebateEvent(events.START)


def _merge(existing: list[AgentClarifications], fresh: list[AgentClarifications]) -> list[AgentClarifications]:
    by_agent = {g.agent_id: g for g in existing}
    for group in fresh:
        if group.items:
            by_agent[group.agent_id] = group
    return list(by_agent.values())


class ClarificationNode(DebateNode):
    """Collects questions from agents that have none yet or still have unanswered ones."""

    node_type = graph.CLARIFICATION

    async def execute(self, runner: PhaseRunner, debate_id: str) -> DebateEvent:
        config = runner.config
        if not config.interactive_clarifications:
            return DebateEvent(events.ALL_CLEAR)
        state = runner.load_state(debate_id)
        if state.clarification_iterations >= config.clarifications_max_iterations:
            return DebateEvent(events.ALL_CLEAR)

        existing = state.clarifications or []
        if existing:
            open_agents = {g.agent_id for g in existing if any(not i.answer.strip() for i in g.items)}
            pending = [a for a in runner.agents if a.config.id in open_agents]
            if not pending:
                return DebateEvent(events.ALL_CLEAR)
        else:
            pending = runner.agents

        fresh = await collect_clarifications(
            state.problem, pending, config.clarifications_max_per_agent, runner.log, existing
        )
        if not any(g.items for g in fresh):
            return DebateEvent(events.ALL_CLEAR)

        runner.state_manager.set_clarifications(
            debate_id, _merge(existing, fresh), iteration=state.clarification_iterations + 1
        )
        return DebateEvent(events.QUESTIONS_PENDING)


class ClarificationInputNode(DebateNode):
    """Suspend point: waits until every question has an answer ("NA" counts)."""

    node_type = graph.CLARIFICATION_INPUT

    async def execute(self, runner: PhaseRunner, debate_id: str) -> DebateEvent:
        state = runner.load_state(debate_id)
        if unanswered(state.clarifications):
            return DebateEvent(
                events.WAITING_FOR_INPUT,
                {"questions": state.clarifications, "iteration": state.clarification_iterations or 1},
            )
        return DebateEvent(events.ANSWERS_SUBMITTED)


class RoundManagerNode(DebateNode):
    node_type = graph.ROUND_MANAGER

    async def execute(self, runner: PhaseRunner, debate_id: str) -> DebateEvent:
        state = runner.load_state(debate_id)
        total = max(1, runner.config.rounds)
        if state.current_round >= total:
            return DebateEvent(events.MAX_ROUNDS_REACHED)
        rnd = runner.state_manager.begin_round(debate_id)
        fire_hook(runner.hooks.on_round_start, rnd.round_number, total)
        logger.info("Debate %s: round %d/%d", debate_id, rnd.round_number, total)
        return DebateEvent(events.BEGIN_ROUND, {"round": rnd.round_number})


class SummarizationNode(DebateNode):
    node_type = graph.SUMMARIZATION

    async def execute(self, runner: PhaseRunner, debate_id: str) -> DebateEvent:
        await runner.summarization_phase(debate_id)
        return DebateEvent(events.CONTEXTS_READY)


class ProposalNode(DebateNode):
    node_type = graph.PROPOSAL

    async def execute(self, runner: PhaseRunner, debate_id: str) -> DebateEvent:
        await runner.proposal_phase(debate_id)
        return DebateEvent(events.PROPOSALS_COMPLETE)


class CritiqueNode(DebateNode):
    node_type = graph.CRITIQUE

    async def execute(self, runner: PhaseRunner, debate_id: str) -> DebateEvent:
        await runner.critique_phase(debate_id)
        return DebateEvent(events.CRITIQUES_COMPLETE)


class RefinementNode(DebateNode):
    node_type = graph.REFINEMENT

    async def execute(self, runner: PhaseRunner, debate_id: str) -> DebateEvent:
        await runner.refinement_phase(debate_id)
        fire_hook(runner.hooks.on_round_complete, runner.load_state(debate_id).rounds[-1])
        return DebateEvent(events.REFINEMENTS_COMPLETE)


class EvaluationNode(DebateNode):
    node_type = graph.EVALUATION

    async def execute(self, runner: PhaseRunner, debate_id: str) -> DebateEvent:
        state = runner.load_state(debate_id)
        if state.current_round >= runner.config.rounds:
            return DebateEvent(events.MAX_ROUNDS_REACHED)
        if runner.config.termination_condition.type == TERMINATION_FIXED:
            return DebateEvent(events.CONTINUE)
        if await runner.should_stop(debate_id, state.current_round):
            return DebateEvent(events.CONSENSUS_REACHED)
        return DebateEvent(events.CONTINUE)


class SynthesisNode(DebateNode):
    node_type = graph.SYNTHESIS

    async def execute(self, runner: PhaseRunner, debate_id: str) -> DebateEvent:
        await runner.synthesis_phase(debate_id)
        return DebateEvent(events.COMPLETE)


def default_nodes() -> dict[str, DebateNode]:
    nodes: list[DebateNode] = [
        InitializationNode(),
        ClarificationNode(),
        ClarificationInputNode(),
        RoundManagerNode(),
        SummarizationNode(),
        ProposalNode(),
        CritiqueNode(),
        RefinementNode(),
        EvaluationNode(),
        SynthesisNode(),
    ]
    return {n.node_type: n for n in nodes}
