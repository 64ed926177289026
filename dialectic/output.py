"""Rich console output and markdown report save for debate results."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from dialectic.models import CRITIQUE, AgentClarifications, Contribution, DebateState, Round, Solution

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len] or "debate"


def _preview(content: str, words: int = 50) -> str:
    """Return first N words of a contribution."""
    all_words = content.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def _contribution_title(contribution: Contribution) -> str:
    title = f"{contribution.agent_id} ({contribution.agent_role}) {contribution.type}"
    if contribution.type == CRITIQUE and contribution.target_agent_id:
        title += f" -> {contribution.target_agent_id}"
    return title


def _metadata_line(contribution: Contribution) -> str:
    meta = contribution.metadata
    parts: list[str] = []
    if meta.latency_ms is not None:
        parts.append(f"Latency: {meta.latency_ms / 1000:.2f}s")
    if meta.tokens_used:
        parts.append(f"Tokens: {meta.tokens_used}")
    if meta.tool_call_iterations:
        parts.append(f"Tool iterations: {meta.tool_call_iterations}")
    return " | ".join(parts)


def print_round_summary(rnd: Round, out: Console | None = None) -> None:
    """Print a brief summary of a round's contributions to the console."""
    out = out or console
    out.print(Rule(f"[bold cyan]Round {rnd.round_number} Summary[/bold cyan]"))
    for contribution in rnd.contributions:
        out.print(
            Panel(
                _preview(contribution.content),
                title=f"[bold]{_contribution_title(contribution)}[/bold]",
                subtitle=_metadata_line(contribution) or None,
                border_style="dim",
            )
        )


def print_synthesis(solution: Solution, out: Console | None = None) -> None:
    """Print the judge's solution using Rich markdown."""
    out = out or console
    out.print(Rule("[bold green]Final Solution[/bold green]"))
    out.print(
        Text(
            f"Synthesized by: {solution.synthesized_by} | Confidence: {solution.confidence}/100",
            style="dim",
        )
    )
    out.print(Markdown(solution.description))


def print_debate(state: DebateState, out: Console | None = None) -> None:
    """Print a persisted debate: header table, rounds and the solution if any."""
    out = out or console
    table = Table(show_header=False, box=None)
    table.add_row("ID", state.id)
    table.add_row("Status", state.status)
    table.add_row("Rounds", str(len(state.rounds)))
    table.add_row("Created", state.created_at)
    table.add_row("Updated", state.updated_at)
    if state.user_feedback is not None:
        table.add_row("Feedback", str(state.user_feedback))
    if state.suspended_at_node:
        table.add_row("Suspended at", state.suspended_at_node)
    if state.error:
        table.add_row("Error", state.error)
    out.print(table)
    out.print(Text(state.problem, style="italic"))
    for rnd in state.rounds:
        print_round_summary(rnd, out)
    if state.final_solution is not None:
        print_synthesis(state.final_solution, out)


def _clarification_lines(groups: list[AgentClarifications]) -> list[str]:
    lines = ["## Clarifications", ""]
    for group in groups:
        if not group.items:
            continue
        lines.append(f"### {group.agent_name} ({group.role})")
        lines.append("")
        for item in group.items:
            lines.append(f"- **Q:** {item.question}")
            lines.append(f"  **A:** {item.answer or 'NA'}")
        lines.append("")
    return lines


def _solution_lines(solution: Solution) -> list[str]:
    lines = [
        f"## Final Solution (by {solution.synthesized_by}, confidence {solution.confidence}/100)",
        "",
        solution.description,
        "",
    ]
    for heading, items in (
        ("Tradeoffs", solution.tradeoffs),
        ("Recommendations", solution.recommendations),
    ):
        if items:
            lines += [f"### {heading}", ""] + [f"- {i}" for i in items] + [""]
    return lines


def save_report(state: DebateState, output_dir: Path) -> Path:
    """Save the full debate transcript as a markdown file.

    Args:
        state: The persisted debate, usually completed.
        output_dir: Directory to save the file in.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = output_dir / f"{timestamp}_{_slug(state.problem)}.md"

    lines: list[str] = [
        f"# Debate: {state.problem[:80]}",
        "",
        f"**ID:** {state.id}",
        f"**Date:** {state.created_at}",
        f"**Status:** {state.status}",
        f"**Rounds:** {len(state.rounds)}",
        "",
        "---",
        "",
        "## Problem",
        "",
        state.problem,
        "",
    ]
    if state.context:
        lines += ["## Context", "", state.context, ""]
    if state.clarifications:
        lines += _clarification_lines(state.clarifications)

    for rnd in state.rounds:
        lines.append(f"## Round {rnd.round_number}")
        lines.append("")
        for contribution in rnd.contributions:
            lines.append(f"### {_contribution_title(contribution)}")
            lines.append("")
            lines.append(contribution.content)
            lines.append("")
            meta = _metadata_line(contribution)
            if meta:
                lines.append(f"*{meta}*")
                lines.append("")

    if state.final_solution is not None:
        lines += _solution_lines(state.final_solution)

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Debate saved to: %s", filepath)
    return filepath
