"""Role prompts: one flat map from role to a set of pure prompt builders."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from dialectic.context_formatter import prepend_context
from dialectic.models import (
    ROLE_ARCHITECT,
    ROLE_GENERALIST,
    ROLE_KISS,
    ROLE_PERFORMANCE,
    ROLE_SECURITY,
    ROLE_TESTING,
    DebateContext,
    PromptSource,
)

logger = logging.getLogger(__name__)

PROMPT_SOURCE_BUILT_IN = "built-in"
PROMPT_SOURCE_FILE = "file"

REQUIREMENTS_COVERAGE_TITLE = "Requirements Coverage"

_SHARED_SYSTEM = """
## General Guidelines

- Avoid code snippets unless essential to illustrate a subtle technical point
- Prefer conceptual clarity over implementation detail
- Use clear, direct language; be concise but complete

## Requirements First

Make sure every major requirement of the problem (and of any clarifications) is covered.
- Major requirements use strong language: "must", "shall", "required", "critical"
- Minor requirements are preferences: "should", "ideally", "if possible"
Clarifications given during the debate are authoritative.
"""

_SHARED_PROPOSAL = f"""

## Response Guidelines

- Focus on main components, data flows and key decisions
- Justify choices and name their trade-offs
- Organize content under clear section headers

## {REQUIREMENTS_COVERAGE_TITLE} (required section)

End with a {REQUIREMENTS_COVERAGE_TITLE} section that lists the major requirements, maps each one
to the parts of your proposal that fulfil it, lists your assumptions, and names any requirement
you cannot meet.
"""

_SHARED_CRITIQUE = """

## Critique Guidelines

- Critique from your specialized perspective with evidence-based reasoning
- Identify strengths, weaknesses and concrete improvements

Check the proposal's Requirements Coverage first. Never suggest a change that would leave a
major requirement unfulfilled; reject such simplifications explicitly.
"""

_SHARED_REFINEMENT = """

## Refinement Guidelines

- Address the valid concerns raised in the critiques directly
- State which critiques you accepted, which you rejected, and the reason for each
- Keep your Requirements Coverage section current; major requirements are non-negotiable
"""

_SHARED_SUMMARY = """

## Summary Guidelines

- Keep key decisions, their rationale and recurring insights
- Focus on your specialized perspective and the main component interactions
- Be concise but keep every critical line of reasoning
"""

_SHARED_CLARIFICATION = """

## Clarification Guidelines

Respond with ONLY JSON using this exact schema (no prose):
{"questions":[{"text":"..."}]}

If none are needed, return {"questions":[]}.
Prioritize the questions most likely to improve the overall solution."""


@dataclass(frozen=True)
class RolePrompts:
    system: str
    propose: Callable[[str, DebateContext | None, str | None], str]
    critique: Callable[[str, DebateContext | None, str | None], str]
    refine: Callable[[str, str, DebateContext | None, str | None], str]
    summarize: Callable[[str, int], str]
    clarify: Callable[[str, DebateContext | None, str | None], str]


def _build(expertise: str, focus: str, propose_sections: str, critique_sections: str) -> RolePrompts:
    system = f"You are {expertise}.\n\nYour focus: {focus}.\n{_SHARED_SYSTEM}"

    def propose(problem: str, context: DebateContext | None = None, agent_id: str | None = None) -> str:
        body = (
            f"Problem to solve:\n{problem}\n\n"
            f"Propose a comprehensive solution from your perspective ({focus}).\n\n"
            f"Use this Markdown structure:\n{propose_sections}"
        )
        return prepend_context(body, context, agent_id) + _SHARED_PROPOSAL

    def critique(proposal: str, context: DebateContext | None = None, agent_id: str | None = None) -> str:
        body = (
            "Review this proposal from your perspective.\n\n"
            f"Proposal:\n{proposal}\n\n"
            f"Use this Markdown structure:\n{critique_sections}"
        )
        return prepend_context(body, context, agent_id) + _SHARED_CRITIQUE

    def refine(
        original: str, critiques: str, context: DebateContext | None = None, agent_id: str | None = None
    ) -> str:
        body = (
            f"Original proposal:\n{original}\n\n"
            f"Critiques:\n{critiques}\n\n"
            "Refine your proposal: address valid concerns, incorporate good suggestions and "
            "strengthen the solution.\n\n"
            "Use this Markdown structure:\n"
            "### Updated Overview\n### Changes Made\n### Addressed Issues\n### Remaining Open Questions\n"
            "### Final Summary\n"
        )
        return prepend_context(body, context, agent_id) + _SHARED_REFINEMENT

    def summarize(content: str, max_length: int) -> str:
        return (
            f"Summarize the following debate history from your perspective ({focus}).\n\n"
            f"Debate history to summarize:\n{content}\n\n"
            f"Create a concise summary of at most {max_length} characters."
            + _SHARED_SUMMARY
        )

    def clarify(problem: str, context: DebateContext | None = None, agent_id: str | None = None) -> str:
        body = (
            f"Problem:\n{problem}\n\n"
            f"Before proposing, list the clarifying questions that matter most from your perspective ({focus})."
        )
        return prepend_context(body, context, agent_id) + _SHARED_CLARIFICATION

    return RolePrompts(
        system=system,
        propose=propose,
        critique=critique,
        refine=refine,
        summarize=summarize,
        clarify=clarify,
    )


ROLE_PROMPTS: dict[str, RolePrompts] = {
    ROLE_ARCHITECT: _build(
        "an expert software architect specializing in distributed systems and scalable design",
        "scalability, component boundaries, interfaces, data flow and operational concerns",
        "### Architecture Overview\n### Key Components and Responsibilities\n### Data Flow and Interactions\n"
        "### Architectural Patterns and Rationale\n### Non-Functional Considerations\n"
        "### Key Challenges and Trade-offs\n",
        "### Architectural Strengths\n### Weaknesses and Risks\n### Improvement Suggestions\n"
        "### Critical Issues\n### Overall Assessment\n",
    ),
    ROLE_PERFORMANCE: _build(
        "a performance engineer specializing in latency, throughput and resource efficiency",
        "hot paths, caching, concurrency, capacity and measurable performance targets",
        "### Performance Overview\n### Critical Paths and Bottlenecks\n### Caching and Data Access\n"
        "### Concurrency and Scaling\n### Performance Targets and Measurement\n### Trade-offs\n",
        "### Performance Strengths\n### Bottlenecks and Risks\n### Optimization Suggestions\n"
        "### Critical Issues\n### Overall Assessment\n",
    ),
    ROLE_SECURITY: _build(
        "a security specialist focused on threat modeling and secure system design",
        "authentication, authorization, data protection, threat vectors and compliance",
        "### Security Overview\n### Threat Model\n### Authentication and Authorization\n"
        "### Data Protection\n### Monitoring and Incident Response\n### Trade-offs\n",
        "### Security Strengths\n### Vulnerabilities and Risks\n### Mitigations\n"
        "### Critical Issues\n### Overall Assessment\n",
    ),
    ROLE_TESTING: _build(
        "a quality engineer focused on testability and verification strategy",
        "testability, test strategy, failure modes and observable correctness",
        "### Testing Overview\n### Testability of Components\n### Test Strategy by Level\n"
        "### Failure Modes and Edge Cases\n### Quality Gates\n### Trade-offs\n",
        "### Testability Strengths\n### Gaps and Risks\n### Suggestions\n### Critical Issues\n"
        "### Overall Assessment\n",
    ),
    ROLE_KISS: _build(
        "a pragmatic engineer who champions simplicity",
        "the simplest design that meets every major requirement, avoiding speculative complexity",
        "### Simplest Viable Design\n### Components Kept and Components Avoided\n### Data Flow\n"
        "### When to Add Complexity\n### Trade-offs\n",
        "### What Is Appropriately Simple\n### Unnecessary Complexity\n### Simplifications\n"
        "### Critical Issues\n### Overall Assessment\n",
    ),
    ROLE_GENERALIST: _build(
        "a senior generalist engineer with broad full-stack experience",
        "overall coherence, feasibility, delivery risk and balanced trade-offs",
        "### Solution Overview\n### Key Components\n### Data Flow\n### Risks and Mitigations\n"
        "### Delivery Plan\n### Trade-offs\n",
        "### Strengths\n### Weaknesses and Risks\n### Improvement Suggestions\n### Critical Issues\n"
        "### Overall Assessment\n",
    ),
}


def prompts_for_role(role: str) -> RolePrompts:
    """Prompts for role; unknown roles get the architect prompts."""
    prompts = ROLE_PROMPTS.get(role)
    if prompts is None:
        logger.warning("Unknown agent role '%s', using %s prompts", role, ROLE_ARCHITECT)
        return ROLE_PROMPTS[ROLE_ARCHITECT]
    return prompts


JUDGE_SYSTEM_PROMPT = (
    "You are an expert technical judge. Synthesize the best solution from the debate for this problem. "
    "Be objective and evidence-based. Combine ideas that directly address the problem. Address only "
    "concerns that affect the stated requirements or constraints. Give concrete recommendations that "
    "apply to this problem and a confidence score. Avoid generic architecture advice."
)


def judge_summary_prompt(content: str, max_length: int) -> str:
    return (
        "You are a technical judge preparing to synthesize a final solution from a debate. Summarize the "
        "following debate history, focusing on the decisions, trade-offs and recommendations that will "
        "inform the synthesis.\n\n"
        f"Debate history to summarize:\n{content}\n\n"
        f"Create a concise summary (maximum {max_length} characters) that captures:\n"
        "- Key architectural decisions and their rationale\n"
        "- Trade-offs identified across perspectives\n"
        "- Critical recommendations and concerns raised\n"
        "- How the solution evolved through the rounds"
    )


def resolve_prompt(
    label: str, config_dir: Path, prompt_path: str | None, default_text: str
) -> tuple[str, PromptSource]:
    """Load a prompt override from disk, falling back to default_text when unusable."""
    if not prompt_path or not prompt_path.strip():
        return default_text, PromptSource(source=PROMPT_SOURCE_BUILT_IN)
    path = Path(prompt_path)
    if not path.is_absolute():
        path = config_dir / path
    path = path.resolve()
    try:
        text = path.read_text(encoding="utf-8") if path.is_file() else ""
    except OSError as exc:
        logger.debug("Reading %s failed: %s", path, exc)
        text = ""
    if not text.strip():
        logger.warning("Prompt file not usable for %s at %s, using built-in default", label, path)
        return default_text, PromptSource(source=PROMPT_SOURCE_BUILT_IN)
    return text, PromptSource(source=PROMPT_SOURCE_FILE, path=str(path))
