"""Default tool set handed to every debating agent."""

from pathlib import Path

from dialectic.tools.base import ToolRegistry
from dialectic.tools.context_search import ContextSearchTool
from dialectic.tools.filesystem import FileReadTool, ListFilesTool


def build_default_registry(context_dir: Path | None = None) -> ToolRegistry:
    """context_search always; file tools only when a context directory is given."""
    registry = ToolRegistry([ContextSearchTool()])
    if context_dir is not None:
        registry.register(FileReadTool(context_dir))
        registry.register(ListFilesTool(context_dir))
    return registry
