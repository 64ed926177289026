"""Gather clarifying questions from every agent before round one."""

import asyncio
import logging

from dialectic.agent import Agent
from dialectic.console import AgentLogger, stderr_logger
from dialectic.models import AgentClarifications, ClarificationItem, DebateContext

logger = logging.getLogger(__name__)

NOT_APPLICABLE = "NA"


async def collect_clarifications(
    problem: str,
    agents: list[Agent],
    max_per_agent: int,
    log: AgentLogger | None = None,
    existing: list[AgentClarifications] | None = None,
) -> list[AgentClarifications]:
    """Ask all agents concurrently; groups come back in agent registration order."""
    log = log or stderr_logger
    context = DebateContext(problem=problem, clarifications=list(existing or []))

    async def ask(agent: Agent) -> AgentClarifications:
        questions = await agent.ask_clarifying_questions(problem, context)
        if len(questions) > max_per_agent:
            log(
                f"Warning: Agent {agent.config.name} returned {len(questions)} questions; "
                f"limited to {max_per_agent}.",
                False,
            )
            questions = questions[:max_per_agent]
        return AgentClarifications(
            agent_id=agent.config.id,
            agent_name=agent.config.name,
            role=agent.config.role,
            items=[ClarificationItem(id=f"q{i}", question=q) for i, q in enumerate(questions, start=1)],
        )

    groups = await asyncio.gather(*(ask(a) for a in agents))
    logger.debug("Collected %d clarifying questions", sum(len(g.items) for g in groups))
    return list(groups)


def has_questions(groups: list[AgentClarifications] | None) -> bool:
    return any(g.items for g in groups or [])


def unanswered(groups: list[AgentClarifications] | None) -> list[ClarificationItem]:
    return [item for g in groups or [] for item in g.items if not item.answer.strip()]


def apply_answers(groups: list[AgentClarifications], answers: dict[str, str]) -> list[AgentClarifications]:
    """Fill answers keyed by ``"<agent_id>:<question_id>"``; missing ones become NA."""
    for group in groups:
        for item in group.items:
            answer = answers.get(f"{group.agent_id}:{item.id}", "").strip()
            item.answer = answer or item.answer or NOT_APPLICABLE
    return groups
