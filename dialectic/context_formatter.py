"""Render debate history, per-agent summaries and clarifications into prompt text."""

from dialectic.models import AgentClarifications, DebateContext, Round

_RULE = "==================================="
_PREVIEW_CHARS = 100


def format_history(history: list[Round]) -> str:
    """One line per contribution: role, type and a preview of its first line."""
    blocks = []
    for rnd in history:
        lines = []
        for c in rnd.contributions:
            first = c.content.split("\n", 1)[0]
            preview = first[:_PREVIEW_CHARS] + "..." if len(first) > _PREVIEW_CHARS else first
            lines.append(f"  [{c.agent_role}] {c.type}: {preview}")
        blocks.append(f"Round {rnd.round_number}:\n" + "\n".join(lines))
    return "\n\n".join(blocks)


def format_context_section(context: DebateContext, agent_id: str) -> str:
    """Latest summary for agent_id, else full history if allowed, else nothing."""
    if not context.history:
        return ""
    for rnd in reversed(context.history):
        summary = rnd.summaries.get(agent_id)
        if summary is not None:
            return (
                "=== Previous Debate Context ===\n\n"
                f"[SUMMARY from Round {rnd.round_number}]\n"
                f"{summary.summary}\n\n"
                f"{_RULE}\n\n"
            )
    if not context.include_full_history:
        return ""
    return f"=== Previous Debate Rounds ===\n\n{format_history(context.history)}\n\n{_RULE}\n\n"


def format_clarifications(groups: list[AgentClarifications]) -> str:
    text = "## Clarifications\n\n"
    for group in groups:
        text += f"### {group.agent_name} ({group.role})\n"
        for item in group.items:
            text += f"Question ({item.id}):\n\n```text\n{item.question}\n```\n\n"
            text += f"Answer:\n\n```text\n{item.answer}\n```\n\n"
    return text + "\n"


def prepend_context(prompt: str, context: DebateContext | None, agent_id: str | None) -> str:
    """Put clarifications, then summary or history, in front of prompt."""
    if context is None or not agent_id:
        return prompt
    clar = format_clarifications(context.clarifications) if context.clarifications else ""
    rest = format_context_section(context, agent_id)
    sep = "\n" if clar else ""
    full = f"{clar}{sep}{rest}".strip()
    if not full:
        return prompt
    return f"{full}\n{prompt}"
