"""Debate orchestration: phases shared by both orchestrators, and the classic one-pass driver."""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from dialectic.agent import Agent, AgentOutput
from dialectic.console import AgentLogger, stderr_logger
from dialectic.errors import DebateNotFoundError
from dialectic.judge import JudgeAgent
from dialectic.models import (
    CRITIQUE,
    PROPOSAL,
    REFINEMENT,
    TERMINATION_FIXED,
    AgentClarifications,
    Contribution,
    ContributionMetadata,
    DebateConfig,
    DebateContext,
    DebateResult,
    DebateSetup,
    DebateState,
    PromptSource,
    Round,
    Solution,
)
from dialectic.state import StateManager

logger = logging.getLogger(__name__)

PHASE_SUMMARIZATION = "summarization"
PHASE_PROPOSAL = "proposal"
PHASE_CRITIQUE = "critique"
PHASE_REFINEMENT = "refinement"


@dataclass
class OrchestratorHooks:
    """Optional progress callbacks; every one may be left unset."""

    on_round_start: Callable[[int, int], None] | None = None              # (round, total)
    on_phase_start: Callable[[int, str, int], None] | None = None         # (round, phase, expected tasks)
    on_agent_start: Callable[[str, str], None] | None = None              # (agent name, activity)
    on_agent_complete: Callable[[str, str], None] | None = None
    on_phase_complete: Callable[[int, str], None] | None = None
    on_round_complete: Callable[[Round], None] | None = None
    on_synthesis_start: Callable[[], None] | None = None
    on_synthesis_complete: Callable[[], None] | None = None


def fire_hook(hook: Callable | None, *args) -> None:
    if hook is not None:
        hook(*args)


async def gather_all(*aws) -> list:
    """Await everything before raising the first failure, so no call is left in flight."""
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results


def problem_text(state: DebateState) -> str:
    if state.context:
        return f"{state.problem}\n\nAdditional context:\n{state.context}"
    return state.problem


class PhaseRunner:
    """Runs individual debate phases against persisted state.

    Each phase reloads the debate, skips work already persisted for the
    current round and appends new contributions in agent registration order,
    so a phase can be re-entered after a crash or a suspension.
    """

    def __init__(
        self,
        agents: list[Agent],
        judge: JudgeAgent,
        state_manager: StateManager,
        config: DebateConfig,
        hooks: OrchestratorHooks | None = None,
        logger: AgentLogger | None = None,
    ) -> None:
        if not agents:
            raise ValueError("At least one agent is required")
        self.agents = agents
        self.judge = judge
        self.state_manager = state_manager
        self.config = config
        self.hooks = hooks or OrchestratorHooks()
        self.log: AgentLogger = logger or stderr_logger

    def load_state(self, debate_id: str) -> DebateState:
        state = self.state_manager.get_debate(debate_id)
        if state is None:
            raise DebateNotFoundError(debate_id)
        return state

    def build_context(self, state: DebateState) -> DebateContext:
        return DebateContext(
            problem=state.problem,
            context=state.context,
            history=state.rounds,
            clarifications=state.clarifications or [],
            include_full_history=self.config.include_full_history,
        )

    def setup(self) -> DebateSetup:
        return DebateSetup(
            agents=[a.config for a in self.agents],
            judge=self.judge.config,
            rounds=self.config.rounds,
            termination_condition=self.config.termination_condition,
            include_full_history=self.config.include_full_history,
            interactive_clarifications=self.config.interactive_clarifications,
        )

    def prompt_sources(self) -> dict[str, PromptSource]:
        sources = {a.config.id: getattr(a, "prompt_source", PromptSource(source="built-in")) for a in self.agents}
        sources[self.judge.config.id] = self.judge.prompt_source
        return sources

    async def _run_agent(self, agent: Agent, activity: str, call) -> AgentOutput:
        fire_hook(self.hooks.on_agent_start, agent.config.name, activity)
        output = await call
        fire_hook(self.hooks.on_agent_complete, agent.config.name, activity)
        return output

    # -- phases --------------------------------------------------------------

    async def summarization_phase(self, debate_id: str) -> None:
        state = self.load_state(debate_id)
        rnd = state.rounds[-1]
        pending = [a for a in self.agents if a.config.id not in rnd.summaries]
        fire_hook(self.hooks.on_phase_start, rnd.round_number, PHASE_SUMMARIZATION, len(pending))
        context = self.build_context(state)
        results = await gather_all(*(a.prepare_context(context, rnd.round_number) for a in pending))
        for agent, result in zip(pending, results):
            if result.summary is not None:
                self.state_manager.add_summary(debate_id, result.summary)
                self.log(
                    f"[{agent.config.name}] Summarized context: {result.summary.metadata.before_chars} -> "
                    f"{result.summary.metadata.after_chars} chars",
                    True,
                )
        fire_hook(self.hooks.on_phase_complete, rnd.round_number, PHASE_SUMMARIZATION)

    async def proposal_phase(self, debate_id: str) -> None:
        state = self.load_state(debate_id)
        rnd = state.rounds[-1]
        done = {c.agent_id for c in rnd.contributions if c.type == PROPOSAL}
        pending = [a for a in self.agents if a.config.id not in done]
        fire_hook(self.hooks.on_phase_start, rnd.round_number, PHASE_PROPOSAL, len(pending))
        context = self.build_context(state)
        previous = state.rounds[-2] if len(state.rounds) > 1 else None
        problem = problem_text(state)

        async def propose(agent: Agent) -> AgentOutput:
            if previous is not None:
                carried = next(
                    (
                        c
                        for c in previous.contributions
                        if c.agent_id == agent.config.id and c.type == REFINEMENT
                    ),
                    None,
                )
                if carried is not None:
                    return AgentOutput(
                        content=carried.content,
                        metadata=ContributionMetadata(latency_ms=0, tokens_used=0, model=agent.config.model),
                    )
                self.log(
                    f"Warning: [{agent.config.name}] No refinement found in round {previous.round_number}, "
                    "generating a new proposal",
                    False,
                )
            return await self._run_agent(agent, "proposing", agent.propose(problem, context, state))

        outputs = await gather_all(*(propose(a) for a in pending))
        for agent, output in zip(pending, outputs):
            self.state_manager.add_contribution(
                debate_id,
                Contribution(
                    agent_id=agent.config.id,
                    agent_role=agent.config.role,
                    type=PROPOSAL,
                    content=output.content,
                    metadata=output.metadata,
                ),
            )
        fire_hook(self.hooks.on_phase_complete, rnd.round_number, PHASE_PROPOSAL)

    async def critique_phase(self, debate_id: str) -> None:
        """Every agent critiques every other agent's proposal; failures are skipped."""
        state = self.load_state(debate_id)
        rnd = state.rounds[-1]
        proposals = {c.agent_id: c for c in rnd.contributions if c.type == PROPOSAL}
        done = {(c.agent_id, c.target_agent_id) for c in rnd.contributions if c.type == CRITIQUE}
        pairs = [
            (critic, proposals[target.config.id])
            for critic in self.agents
            for target in self.agents
            if critic is not target
            and target.config.id in proposals
            and (critic.config.id, target.config.id) not in done
        ]
        fire_hook(self.hooks.on_phase_start, rnd.round_number, PHASE_CRITIQUE, len(pairs))
        context = self.build_context(state)
        outputs = await asyncio.gather(
            *(self._run_agent(critic, "critiquing", critic.critique(p, context, state)) for critic, p in pairs),
            return_exceptions=True,
        )
        for (critic, proposal), output in zip(pairs, outputs):
            if isinstance(output, BaseException):
                if not isinstance(output, Exception):
                    raise output
                self.log(
                    f"Warning: [{critic.config.name}] Critique of {proposal.agent_id} failed: {output}",
                    False,
                )
                logger.warning("Critique %s -> %s failed: %s", critic.config.id, proposal.agent_id, output)
                continue
            self.state_manager.add_contribution(
                debate_id,
                Contribution(
                    agent_id=critic.config.id,
                    agent_role=critic.config.role,
                    type=CRITIQUE,
                    content=output.content,
                    metadata=output.metadata,
                    target_agent_id=proposal.agent_id,
                ),
            )
        fire_hook(self.hooks.on_phase_complete, rnd.round_number, PHASE_CRITIQUE)

    async def refinement_phase(self, debate_id: str) -> None:
        state = self.load_state(debate_id)
        rnd = state.rounds[-1]
        done = {c.agent_id for c in rnd.contributions if c.type == REFINEMENT}
        proposals = {c.agent_id: c for c in rnd.contributions if c.type == PROPOSAL}
        pending = [a for a in self.agents if a.config.id not in done and a.config.id in proposals]
        fire_hook(self.hooks.on_phase_start, rnd.round_number, PHASE_REFINEMENT, len(pending))
        context = self.build_context(state)

        def critiques_for(agent_id: str) -> list[Contribution]:
            return [c for c in rnd.contributions if c.type == CRITIQUE and c.target_agent_id == agent_id]

        outputs = await gather_all(
            *(
                self._run_agent(
                    a,
                    "refining",
                    a.refine(proposals[a.config.id], critiques_for(a.config.id), context, state),
                )
                for a in pending
            )
        )
        for agent, output in zip(pending, outputs):
            self.state_manager.add_contribution(
                debate_id,
                Contribution(
                    agent_id=agent.config.id,
                    agent_role=agent.config.role,
                    type=REFINEMENT,
                    content=output.content,
                    metadata=output.metadata,
                ),
            )
        fire_hook(self.hooks.on_phase_complete, rnd.round_number, PHASE_REFINEMENT)

    async def should_stop(self, debate_id: str, round_number: int) -> bool:
        """Fixed: stop after the configured rounds. Otherwise stop early once the judge is confident."""
        if round_number >= self.config.rounds:
            return True
        condition = self.config.termination_condition
        if condition.type == TERMINATION_FIXED:
            return False
        confidence = await self.judge.evaluate_confidence(self.load_state(debate_id))
        self.log(f"Round {round_number} confidence: {confidence}/100 (threshold {condition.threshold})", True)
        return confidence >= condition.threshold

    async def synthesis_phase(self, debate_id: str) -> Solution:
        fire_hook(self.hooks.on_synthesis_start)
        state = self.load_state(debate_id)
        prepared = await self.judge.prepare_context(state.rounds, state.problem)
        if prepared.summary is not None:
            self.state_manager.add_judge_summary(debate_id, prepared.summary)
        solution = await self.judge.synthesize(problem_text(state), state.rounds, prepared.summary)
        self.state_manager.complete_debate(debate_id, solution)
        fire_hook(self.hooks.on_synthesis_complete)
        return solution

    def result(self, debate_id: str, duration_sec: float) -> DebateResult:
        state = self.load_state(debate_id)
        return DebateResult(
            debate_id=debate_id,
            solution=state.final_solution,
            rounds=state.rounds,
            total_rounds=len(state.rounds),
            duration_sec=duration_sec,
        )


class DebateOrchestrator(PhaseRunner):
    """Classic orchestrator: runs every round and the synthesis in one pass."""

    async def run_round(self, debate_id: str) -> Round:
        rnd = self.state_manager.begin_round(debate_id)
        fire_hook(self.hooks.on_round_start, rnd.round_number, self.config.rounds)
        logger.info("Debate %s: round %d/%d", debate_id, rnd.round_number, self.config.rounds)
        await self.summarization_phase(debate_id)
        await self.proposal_phase(debate_id)
        await self.critique_phase(debate_id)
        await self.refinement_phase(debate_id)
        completed = self.load_state(debate_id).rounds[-1]
        fire_hook(self.hooks.on_round_complete, completed)
        return completed

    async def run_debate(
        self,
        problem: str,
        context: str | None = None,
        clarifications: list[AgentClarifications] | None = None,
        debate_id: str | None = None,
    ) -> DebateResult:
        """Run all rounds, then synthesize.

        Clarifications, if any, must already be answered; they are stored
        before round one. Any failure other than a single critique marks the
        debate failed and propagates.
        """
        start = time.monotonic()
        state = self.state_manager.create_debate(problem, context, debate_id)
        debate_id = state.id
        try:
            self.state_manager.set_setup(debate_id, self.setup())
            self.state_manager.set_prompt_sources(debate_id, self.prompt_sources())
            if clarifications:
                self.state_manager.set_clarifications(debate_id, clarifications)
            for round_number in range(1, self.config.rounds + 1):
                await self.run_round(debate_id)
                if await self.should_stop(debate_id, round_number):
                    break
            await self.synthesis_phase(debate_id)
        except Exception as exc:
            logger.error("Debate %s failed: %s", debate_id, exc)
            self.state_manager.fail_debate(debate_id, str(exc))
            raise

        return self.result(debate_id, time.monotonic() - start)
