"""Pick the orchestrator implementation named in the debate config."""

import logging

from dialectic.agent import Agent
from dialectic.console import AgentLogger
from dialectic.errors import ConfigError
from dialectic.judge import JudgeAgent
from dialectic.models import ORCHESTRATOR_CLASSIC, ORCHESTRATOR_STATE_MACHINE, DebateConfig
from dialectic.orchestrator import DebateOrchestrator, OrchestratorHooks, PhaseRunner
from dialectic.state import StateManager
from dialectic.state_machine.orchestrator import StateMachineOrchestrator

logger = logging.getLogger(__name__)

ORCHESTRATOR_CLASSES: dict[str, type[PhaseRunner]] = {
    ORCHESTRATOR_CLASSIC: DebateOrchestrator,
    ORCHESTRATOR_STATE_MACHINE: StateMachineOrchestrator,
}


def create_orchestrator(
    agents: list[Agent],
    judge: JudgeAgent,
    state_manager: StateManager,
    config: DebateConfig,
    hooks: OrchestratorHooks | None = None,
    logger_fn: AgentLogger | None = None,
) -> DebateOrchestrator | StateMachineOrchestrator:
    kind = config.orchestrator_type or ORCHESTRATOR_CLASSIC
    if kind not in ORCHESTRATOR_CLASSES:
        raise ConfigError(
            f"Unknown orchestrator type '{kind}'. Expected one of: {', '.join(sorted(ORCHESTRATOR_CLASSES))}"
        )
    logger.info("Using %s orchestrator", kind)
    return ORCHESTRATOR_CLASSES[kind](agents, judge, state_manager, config, hooks=hooks, logger=logger_fn)
