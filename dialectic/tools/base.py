"""Tool contract, result envelope helpers and the per-agent tool registry."""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from dialectic.models import DebateContext, DebateState

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


def tool_success_json(result: Any) -> str:
    return json.dumps({"status": STATUS_SUCCESS, "result": result})


def tool_error_json(error: str) -> str:
    return json.dumps({"status": STATUS_ERROR, "error": error})


class ToolImplementation(ABC):
    """A tool an agent may call during its execution loop.

    ``schema`` follows the function-calling convention: ``name``,
    ``description`` and a JSON-schema ``parameters`` object.
    """

    name: str
    schema: dict[str, Any]

    @abstractmethod
    def execute(
        self,
        args: dict[str, Any],
        context: DebateContext | None = None,
        state: DebateState | None = None,
    ) -> str:
        """Run the tool and return a status-discriminated JSON string."""
        ...


class ToolRegistry:
    """Name-keyed tool collection; registration order is kept for schema listing."""

    def __init__(self, tools: list[ToolImplementation] | None = None) -> None:
        self._tools: dict[str, ToolImplementation] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: ToolImplementation) -> None:
        if tool.name in self._tools:
            logger.warning("Tool '%s' registered twice, replacing previous implementation", tool.name)
        self._tools[tool.name] = tool

    def get(self, name: str) -> ToolImplementation | None:
        return self._tools.get(name)

    def has_tools(self) -> bool:
        return bool(self._tools)

    def schemas(self) -> list[dict[str, Any]]:
        return [tool.schema for tool in self._tools.values()]

    def names(self) -> list[str]:
        return list(self._tools)
