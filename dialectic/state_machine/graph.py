"""Node names and the transition table of the state-machine orchestrator."""

from dataclasses import dataclass

from dialectic.console import AgentLogger
from dialectic.state_machine import events
from dialectic.state_machine.events import DebateEvent

INITIALIZATION = "initialization"
CLARIFICATION = "clarification"
CLARIFICATION_INPUT = "clarification_input"
ROUND_MANAGER = "round_manager"
SUMMARIZATION = "summarization"
PROPOSAL = "proposal"
CRITIQUE = "critique"
REFINEMENT = "refinement"
EVALUATION = "evaluation"
SYNTHESIS = "synthesis"


@dataclass(frozen=True)
class TransitionRule:
    source: str
    event: str
    target: str | None     # None: stop (terminal or suspend point)


DEFAULT_TRANSITIONS: list[TransitionRule] = [
    TransitionRule(INITIALIZATION, events.START, CLARIFICATION),
    TransitionRule(CLARIFICATION, events.QUESTIONS_PENDING, CLARIFICATION_INPUT),
    TransitionRule(CLARIFICATION_INPUT, events.ANSWERS_SUBMITTED, CLARIFICATION),
    TransitionRule(CLARIFICATION_INPUT, events.WAITING_FOR_INPUT, None),
    TransitionRule(CLARIFICATION, events.ALL_CLEAR, ROUND_MANAGER),
    TransitionRule(ROUND_MANAGER, events.BEGIN_ROUND, SUMMARIZATION),
    TransitionRule(ROUND_MANAGER, events.MAX_ROUNDS_REACHED, SYNTHESIS),
    TransitionRule(SUMMARIZATION, events.CONTEXTS_READY, PROPOSAL),
    TransitionRule(PROPOSAL, events.PROPOSALS_COMPLETE, CRITIQUE),
    TransitionRule(CRITIQUE, events.CRITIQUES_COMPLETE, REFINEMENT),
    TransitionRule(REFINEMENT, events.REFINEMENTS_COMPLETE, EVALUATION),
    TransitionRule(EVALUATION, events.CONTINUE, ROUND_MANAGER),
    TransitionRule(EVALUATION, events.CONSENSUS_REACHED, SYNTHESIS),
    TransitionRule(EVALUATION, events.MAX_ROUNDS_REACHED, SYNTHESIS),
    TransitionRule(SYNTHESIS, events.COMPLETE, None),
]


class TransitionGraph:
    def __init__(self, rules: list[TransitionRule] | None = None, logger: AgentLogger | None = None) -> None:
        self._rules = {(r.source, r.event): r.target for r in (rules or DEFAULT_TRANSITIONS)}
        self._log = logger

    def next_node(self, current: str, event: DebateEvent) -> str | None:
        """Target node for (current, event); None when no rule matches or the rule stops."""
        target = self._rules.get((current, event.type))
        if self._log is not None:
            self._log(f"Transition: {current} --[{event.type}]--> {target or 'terminal'}", True)
        return target

    def has_rule(self, current: str, event: DebateEvent) -> bool:
        return (current, event.type) in self._rules
