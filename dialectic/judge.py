"""Judge agent: final synthesis, judge-side summarization and confidence scoring."""

import logging
from pathlib import Path

from dialectic.agent import extract_json_object
from dialectic.console import AgentLogger, stderr_logger
from dialectic.models import (
    PROPOSAL,
    REFINEMENT,
    AgentConfig,
    ContextPreparationResult,
    DebateContext,
    DebateState,
    DebateSummary,
    PromptSource,
    Round,
    Solution,
    SummarizationConfig,
)
from dialectic.prompts import JUDGE_SYSTEM_PROMPT, judge_summary_prompt, resolve_prompt
from dialectic.providers.base import AIProvider, CompletionRequest
from dialectic.summarizer import LengthBasedSummarizer

logger = logging.getLogger(__name__)

DEFAULT_JUDGE_TEMPERATURE = 0.3
CONFIDENCE_CAP_WHEN_MAJORS_UNMET = 40
FALLBACK_CONFIDENCE = 50

_SYNTHESIS_INSTRUCTIONS = """

## Instructions

Respond with ONLY valid JSON (no code fences, no prose) using this schema:

{
  "solution_markdown": "Full solution in Markdown, concrete and specific to this problem.",
  "tradeoffs": ["Each trade-off as a separate string"],
  "recommendations": ["Recommendations that apply to this problem"],
  "unfulfilled_major_requirements": ["Major requirements not fulfilled; empty if all are met"],
  "open_questions": ["Open questions or ambiguities; empty if none"],
  "confidence": 75
}

1. Infer the major requirements from the problem, the clarifications and the proposals'
   Requirements Coverage sections. Strong language ("must", "shall", "required") marks them.
2. Check that the synthesized solution fulfils each one.
3. If any major requirement is unfulfilled, confidence must be at most 40.
4. Always produce solution_markdown, even when confidence is low."""

_CONFIDENCE_INSTRUCTIONS = """

Respond with ONLY valid JSON: {"confidence": <number 0-100>}

- 0-40: no consensus; major conflicts or unmet requirements remain
- 41-70: partial alignment, important gaps
- 71-89: mostly aligned, some non-trivial gaps
- 90-100: fully aligned; no refinement contradicts another, every major requirement is addressed
Be skeptical and prefer lower scores when in doubt."""


def _clamp(n: float) -> int:
    return int(max(0, min(100, n)))


def _str_list(value: object) -> list[str]:
    return [str(v) for v in value] if isinstance(value, list) else []


class JudgeAgent:
    """Synthesizes the final Solution from the debate rounds."""

    def __init__(
        self,
        config: AgentConfig,
        provider: AIProvider,
        summarization: SummarizationConfig | None = None,
        logger: AgentLogger | None = None,
        system_prompt: str | None = None,
        prompt_source: PromptSource | None = None,
        summary_prompt: str | None = None,
        summarizer: LengthBasedSummarizer | None = None,
    ) -> None:
        self.config = config
        self.provider = provider
        self.summarization = summarization or SummarizationConfig()
        self.log: AgentLogger = logger or stderr_logger
        self.system_prompt = system_prompt or JUDGE_SYSTEM_PROMPT
        self.prompt_source = prompt_source or PromptSource(source="built-in")
        self._summary_prompt_override = summary_prompt
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
        logger: AgentLogger | None = None,
    ) -> "JudgeAgent":
        system, source = resolve_prompt(config.name, config_dir, config.system_prompt_path, JUDGE_SYSTEM_PROMPT)
        summary_prompt = None
        if config.summary_prompt_path:
            text, _ = resolve_prompt(f"{config.name} (summary)", config_dir, config.summary_prompt_path, "")
            summary_prompt = text or None
        return cls(
            config,
            provider,
            summarization=summarization,
            logger=logger,
            system_prompt=system,
            prompt_source=source,
            summary_prompt=summary_prompt,
        )

    @property
    def temperature(self) -> float:
        return self.config.temperature if self.config.temperature is not None else DEFAULT_JUDGE_TEMPERATURE

    async def _complete(self, user_prompt: str) -> str:
        response = await self.provider.complete(
            CompletionRequest(
                model=self.config.model,
                system_prompt=self.system_prompt,
                user_prompt=user_prompt,
                temperature=self.temperature,
            )
        )
        return response.text

    # -- summarization -------------------------------------------------------

    @staticmethod
    def final_round_content(rounds: list[Round]) -> str:
        """Proposals and refinements of the last round, labelled by role."""
        if not rounds:
            return ""
        return "\n\n".join(
            f"[{c.agent_role}] {c.type}:\n{c.content}"
            for c in rounds[-1].contributions
            if c.type in (PROPOSAL, REFINEMENT)
        )

    def should_summarize(self, rounds: list[Round]) -> bool:
        if not self.summarization.enabled or not rounds:
            return False
        return len(self.final_round_content(rounds)) > self.summarization.threshold

    def _summary_prompt(self, content: str) -> str:
        max_length = self.summarization.max_length
        if self._summary_prompt_override:
            return (
                f"{self._summary_prompt_override}\n\nDebate history to summarize:\n{content}\n\n"
                f"Maximum {max_length} characters."
            )
        return judge_summary_prompt(content, max_length)

    async def prepare_context(self, rounds: list[Round], problem: str = "") -> ContextPreparationResult:
        """Compress the final round for synthesis when it is above threshold.

        Summarization failures only cost the compression; the full rounds are
        used instead.
        """
        context = DebateContext(problem=problem, history=rounds)
        if not self.should_summarize(rounds):
            return ContextPreparationResult(context=context)
        if self.summarizer is None:
            self.log(
                f"Warning: Judge {self.config.name}: summarization enabled but no summarizer available, "
                "using final round content",
                False,
            )
            return ContextPreparationResult(context=context)

        content = self.final_round_content(rounds)
        try:
            result = await self.summarizer.summarize(
                content, self.summarization, self.system_prompt, self._summary_prompt(content)
            )
        except Exception as exc:
            self.log(
                f"Warning: Judge {self.config.name}: summarization failed: {exc}. Using final round content",
                False,
            )
            return ContextPreparationResult(context=context)

        summary = DebateSummary(
            agent_id=self.config.id,
            agent_role=self.config.role,
            summary=result.summary,
            metadata=result.metadata,
        )
        return ContextPreparationResult(context=context, summary=summary)

    # -- synthesis -----------------------------------------------------------

    def build_synthesis_prompt(
        self, problem: str, rounds: list[Round], judge_summary: DebateSummary | None = None
    ) -> str:
        text = f"Problem: {problem}\n\n"
        if judge_summary is not None:
            text += f"Debate Summary:\n{judge_summary.summary}\n\n"
            final = self.final_round_content(rounds)
            if final:
                text += f"Final Round Key Contributions:\n{final}\n\n"
        else:
            for rnd in rounds:
                text += f"Round {rnd.round_number}\n"
                for c in rnd.contributions:
                    text += f"[{c.agent_role}] {c.type}:\n{c.content}\n\n"
        return text + _SYNTHESIS_INSTRUCTIONS

    async def synthesize(
        self, problem: str, rounds: list[Round], judge_summary: DebateSummary | None = None
    ) -> Solution:
        raw = await self._complete(self.build_synthesis_prompt(problem, rounds, judge_summary))
        return self.solution_from_text(raw)

    def solution_from_text(self, raw: str) -> Solution:
        """Build a Solution from the JSON contract, or from plain Markdown as a fallback."""
        parsed = extract_json_object(raw)
        markdown = parsed.get("solution_markdown") if parsed else None
        if not isinstance(markdown, str) or not markdown.strip():
            self.log(
                f"Warning: Judge {self.config.name}: synthesis was not valid JSON, using it as plain markdown",
                False,
            )
            return Solution(description=raw, synthesized_by=self.config.id, confidence=FALLBACK_CONFIDENCE)

        unfulfilled = _str_list(parsed.get("unfulfilled_major_requirements"))
        confidence = parsed.get("confidence")
        confidence = _clamp(confidence) if isinstance(confidence, (int, float)) else FALLBACK_CONFIDENCE
        if unfulfilled:
            confidence = min(confidence, CONFIDENCE_CAP_WHEN_MAJORS_UNMET)

        solution = Solution(
            description="",
            synthesized_by=self.config.id,
            tradeoffs=_str_list(parsed.get("tradeoffs")),
            recommendations=_str_list(parsed.get("recommendations")),
            confidence=confidence,
            unfulfilled_major_requirements=unfulfilled,
            open_questions=_str_list(parsed.get("open_questions")),
        )
        solution.description = _render_solution_markdown(markdown, solution)
        return solution

    # -- confidence ----------------------------------------------------------

    async def evaluate_confidence(self, state: DebateState) -> int:
        """Score consensus in the latest round's refinements (proposals if none)."""
        if not state.rounds:
            return 0
        latest = state.rounds[-1]
        picked = [c for c in latest.contributions if c.type == REFINEMENT] or [
            c for c in latest.contributions if c.type == PROPOSAL
        ]
        if not picked:
            return 0
        body = "\n\n".join(f"[{c.agent_role}] {c.type}:\n{c.content}" for c in picked)
        prompt = (
            f"Problem: {state.problem}\n\n"
            f"Latest round ({latest.round_number}) contributions:\n\n{body}"
            + _CONFIDENCE_INSTRUCTIONS
        )
        raw = await self._complete(prompt)
        parsed = extract_json_object(raw)
        value = parsed.get("confidence") if parsed else None
        if not isinstance(value, (int, float)):
            self.log(f"Warning: Judge {self.config.name}: no confidence in response, using {FALLBACK_CONFIDENCE}", False)
            return FALLBACK_CONFIDENCE
        return _clamp(value)


def _render_solution_markdown(markdown: str, solution: Solution) -> str:
    out = markdown.strip() + "\n\n---\n\n## Judge Assessment\n\n"
    out += f"**Confidence Score**: {solution.confidence}/100\n\n"
    sections = [
        ("Unfulfilled Major Requirements", solution.unfulfilled_major_requirements),
        ("Open Questions", solution.open_questions),
        ("Recommendations", solution.recommendations),
        ("Trade-offs", solution.tradeoffs),
    ]
    for title, items in sections:
        if items:
            out += f"### {title}\n\n" + "".join(f"- {item}\n" for item in items) + "\n"
    return out.rstrip() + "\n"
