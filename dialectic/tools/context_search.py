"""context_search: keyword lookup across the debate history."""

from typing import Any

from dialectic.models import DebateContext, DebateState
from dialectic.tools.base import ToolImplementation, tool_error_json, tool_success_json

CONTEXT_SEARCH_TOOL_NAME = "context_search"

_SNIPPET_LENGTH = 200


class ContextSearchTool(ToolImplementation):
    name = CONTEXT_SEARCH_TOOL_NAME

    schema = {
        "name": CONTEXT_SEARCH_TOOL_NAME,
        "description": "Search for a term in the debate history. Returns contributions containing the term.",
        "parameters": {
            "type": "object",
            "properties": {
                "term": {"type": "string", "description": "The search term to find in debate history"},
            },
            "required": ["term"],
        },
    }

    def execute(
        self,
        args: dict[str, Any],
        context: DebateContext | None = None,
        state: DebateState | None = None,
    ) -> str:
        if context is None:
            return tool_error_json("Context is required for context search")
        term = args.get("term")
        if not term or not isinstance(term, str):
            return tool_error_json("Search term is required and must be a string")

        # persisted rounds are fresher than the per-call view
        history = state.rounds if state is not None else context.history
        needle = term.lower()
        matches = []
        for rnd in history:
            for c in rnd.contributions:
                if needle not in c.content.lower():
                    continue
                snippet = c.content[:_SNIPPET_LENGTH]
                if len(c.content) > _SNIPPET_LENGTH:
                    snippet += "..."
                matches.append(
                    {
                        "round_number": rnd.round_number,
                        "agent_id": c.agent_id,
                        "agent_role": c.agent_role,
                        "type": c.type,
                        "content_snippet": snippet,
                    }
                )
        return tool_success_json({"matches": matches})
