"""State-machine orchestrator: phases as resumable nodes, suspending for clarification answers."""

import logging
import time

from dialectic.clarifications import apply_answers
from dialectic.errors import DebateStateError, DialecticError
from dialectic.models import (
    STATUS_COMPLETED,
    STATUS_SUSPENDED,
    AgentClarifications,
    ExecutionResult,
    SuspendPayload,
)
from dialectic.orchestrator import PhaseRunner
from dialectic.state_machine import events, graph
from dialectic.state_machine.graph import TransitionGraph
from dialectic.state_machine.nodes import DebateNode, default_nodes

logger = logging.getLogger(__name__)


class StateMachineOrchestrator(PhaseRunner):
    """Drives the debate through the transition graph.

    ``run_debate`` stops early with a suspended ExecutionResult when agents
    ask questions the user has not answered yet; ``resume`` picks up at the
    node that suspended, possibly in a different process.
    """

    def __init__(self, *args, nodes: dict[str, DebateNode] | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.nodes = nodes or default_nodes()
        self.graph = TransitionGraph(logger=self.log)

    async def run_debate(
        self,
        problem: str,
        context: str | None = None,
        clarifications: list[AgentClarifications] | None = None,
        debate_id: str | None = None,
    ) -> ExecutionResult:
        start = time.monotonic()
        state = self.state_manager.create_debate(problem, context, debate_id)
        try:
            self.state_manager.set_setup(state.id, self.setup())
            self.state_manager.set_prompt_sources(state.id, self.prompt_sources())
            if clarifications:
                self.state_manager.set_clarifications(state.id, clarifications)
        except Exception as exc:
            self.state_manager.fail_debate(state.id, str(exc))
            raise
        return await self._execute(state.id, graph.INITIALIZATION, start)

    async def resume(self, debate_id: str, answers: dict[str, str] | None = None) -> ExecutionResult:
        """Store answers (keyed ``"<agent_id>:<question_id>"``) and continue a suspended debate."""
        start = time.monotonic()
        state = self.load_state(debate_id)
        if state.status != STATUS_SUSPENDED or not state.suspended_at_node:
            raise DebateStateError(f"Debate {debate_id} is {state.status}, not suspended")
        if answers is not None and state.clarifications:
            self.state_manager.set_clarifications(debate_id, apply_answers(state.clarifications, answers))
        node = state.suspended_at_node
        self.state_manager.clear_suspend_state(debate_id)
        logger.info("Resuming debate %s at %s", debate_id, node)
        return await self._execute(debate_id, node, start)

    async def _execute(self, debate_id: str, node_type: str, start: float) -> ExecutionResult:
        current: str | None = node_type
        try:
            while current is not None:
                node = self.nodes[current]
                event = await node.execute(self, debate_id)
                if event.type == events.WAITING_FOR_INPUT:
                    return self._suspend(debate_id, current, event)
                if not self.graph.has_rule(current, event):
                    raise DialecticError(f"No transition from {current} on {event.type}")
                current = self.graph.next_node(current, event)
        except Exception as exc:
            logger.error("Debate %s failed: %s", debate_id, exc)
            self.state_manager.fail_debate(debate_id, str(exc))
            raise

        return ExecutionResult(status=STATUS_COMPLETED, result=self.result(debate_id, time.monotonic() - start))

    def _suspend(self, debate_id: str, node_type: str, event: events.DebateEvent) -> ExecutionResult:
        self.graph.next_node(node_type, event)
        self.state_manager.set_suspend_state(debate_id, node_type)
        payload = event.payload or {}
        self.log(f"Debate {debate_id} suspended at {node_type}, waiting for clarification answers", True)
        return ExecutionResult(
            status=STATUS_SUSPENDED,
            suspend_reason=events.WAITING_FOR_INPUT,
            suspend_payload=SuspendPayload(
                debate_id=debate_id,
                questions=payload.get("questions") or [],
                iteration=payload.get("iteration", 1),
            ),
        )
