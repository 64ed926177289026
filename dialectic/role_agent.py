"""Role-based debating agent: role prompts plus the context summarization policy."""

import logging
from pathlib import Path

from dialectic.agent import Agent, AgentOutput, extract_json_object
from dialectic.console import AgentLogger
from dialectic.models import (
    PROPOSAL,
    REFINEMENT,
    AgentConfig,
    ContextPreparationResult,
    Contribution,
    DebateContext,
    DebateState,
    DebateSummary,
    PromptSource,
    SummarizationConfig,
)
from dialectic.prompts import RolePrompts, prompts_for_role, resolve_prompt
from dialectic.providers.base import AIProvider
from dialectic.summarizer import LengthBasedSummarizer
from dialectic.tools.base import ToolRegistry

logger = logging.getLogger(__name__)

_SUMMARY_SEPARATOR = "\n\n---\n\n"


class RoleBasedAgent(Agent):
    """Debating agent whose prompts come from its role."""

    def __init__(
        self,
        config: AgentConfig,
        provider: AIProvider,
        summarization: SummarizationConfig | None = None,
        tool_registry: ToolRegistry | None = None,
        tool_call_limit: int | None = None,
        logger: AgentLogger | None = None,
        system_prompt: str | None = None,
        prompt_source: PromptSource | None = None,
        summarizer: LengthBasedSummarizer | None = None,
    ) -> None:
        super().__init__(config, provider, tool_registry, tool_call_limit, logger)
        self.prompts: RolePrompts = prompts_for_role(config.role)
        self.system_prompt = system_prompt or self.prompts.system
        self.prompt_source = prompt_source or PromptSource(source="built-in")
        self.summarization = summarization or SummarizationConfig()
        if summarizer is None and self.summarization.enabled:
            summarizer = LengthBasedSummarizer(provider, config.model)
        self.summarizer = summarizer

    @classmethod
    def from_config(
        cls,
        config: AgentConfig,
        provider: AIProvider,
        config_dir: Path,
        summarization: SummarizationConfig | None = None,
        tool_registry: ToolRegistry | None = None,
        logger: AgentLogger | None = None,
    ) -> "RoleBasedAgent":
        """Build an agent, loading a system prompt override from disk when configured."""
        prompts = prompts_for_role(config.role)
        text, source = resolve_prompt(config.name, config_dir, config.system_prompt_path, prompts.system)
        return cls(
            config,
            provider,
            summarization=summarization,
            tool_registry=tool_registry,
            logger=logger,
            system_prompt=text,
            prompt_source=source,
        )

    async def propose(self, problem: str, context: DebateContext, state: DebateState | None = None) -> AgentOutput:
        user = self.prompts.propose(problem, context, self.config.id)
        return await self.propose_impl(self.system_prompt, user, context, state)

    async def critique(
        self, proposal: Contribution, context: DebateContext, state: DebateState | None = None
    ) -> AgentOutput:
        user = self.prompts.critique(proposal.content, context, self.config.id)
        return await self.critique_impl(self.system_prompt, user, context, state)

    async def refine(
        self,
        original: Contribution,
        critiques: list[Contribution],
        context: DebateContext,
        state: DebateState | None = None,
    ) -> AgentOutput:
        critiques_text = "\n\n".join(f"Critique {i}:\n{c.content}" for i, c in enumerate(critiques, start=1))
        user = self.prompts.refine(original.content, critiques_text, context, self.config.id)
        return await self.refine_impl(self.system_prompt, user, context, state)

    def _own_contributions(self, context: DebateContext) -> list[tuple[int, Contribution]]:
        return [
            (rnd.round_number, c)
            for rnd in context.history
            for c in rnd.contributions
            if c.agent_id == self.config.id and c.type in (PROPOSAL, REFINEMENT)
        ]

    def should_summarize(self, context: DebateContext) -> bool:
        """True iff this agent's own proposals and refinements exceed the threshold.

        Critiques, authored or received, never count.
        """
        if not self.summarization.enabled or not context.history:
            return False
        own_chars = sum(len(c.content) for _, c in self._own_contributions(context))
        return own_chars > self.summarization.threshold

    async def prepare_context(self, context: DebateContext, round_number: int) -> ContextPreparationResult:
        if not self.should_summarize(context):
            return ContextPreparationResult(context=context)
        if self.summarizer is None:
            self.log(
                f"Warning: [{self.config.name}] Summarization enabled but no summarizer available, "
                "using full history",
                False,
            )
            return ContextPreparationResult(context=context)

        own = self._own_contributions(context)
        content = _SUMMARY_SEPARATOR.join(f"Round {n} - {c.type}:\n{c.content}" for n, c in own)
        try:
            result = await self.summarizer.summarize(
                content,
                self.summarization,
                self.system_prompt,
                self.prompts.summarize(content, self.summarization.max_length),
                before_chars=sum(len(c.content) for _, c in own),
            )
        except Exception as exc:
            self.log(
                f"Warning: [{self.config.name}] Summarization failed: {exc}. Using full history",
                False,
            )
            logger.debug("Summarization failed for %s in round %d", self.config.id, round_number, exc_info=True)
            return ContextPreparationResult(context=context)

        summary = DebateSummary(
            agent_id=self.config.id,
            agent_role=self.config.role,
            summary=result.summary,
            metadata=result.metadata,
        )
        return ContextPreparationResult(context=context, summary=summary)

    async def ask_clarifying_questions(self, problem: str, context: DebateContext) -> list[str]:
        """Ask the model for clarifying questions; malformed answers yield none."""
        user = self.prompts.clarify(problem, context, self.config.id)
        response = await self.call_llm(self.system_prompt, user, context)
        parsed = extract_json_object(response.text)
        if parsed is None or not isinstance(parsed.get("questions"), list):
            self.log(f"Warning: [{self.config.name}] Could not parse clarifying questions, skipping", False)
            return []
        questions = []
        for q in parsed["questions"]:
            text = q.get("text") if isinstance(q, dict) else q
            if isinstance(text, str) and text.strip():
                questions.append(text.strip())
        return questions
