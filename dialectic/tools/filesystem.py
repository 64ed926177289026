"""file_read and list_files tools, confined to a context directory."""

from pathlib import Path
from typing import Any

from dialectic.models import DebateContext, DebateState
from dialectic.tools.base import ToolImplementation, tool_error_json, tool_success_json

FILE_READ_TOOL_NAME = "file_read"
LIST_FILES_TOOL_NAME = "list_files"

_MAX_FILE_BYTES = 200_000


class _ContextDirTool(ToolImplementation):
    def __init__(self, context_dir: Path) -> None:
        self._root = context_dir.resolve()

    def _resolve(self, raw: str) -> Path | None:
        """Resolve raw under the context directory; None when it escapes it."""
        candidate = Path(raw)
        if not candidate.is_absolute():
            candidate = self._root / candidate
        candidate = candidate.resolve()
        if candidate != self._root and self._root not in candidate.parents:
            return None
        return candidate


class FileReadTool(_ContextDirTool):
    name = FILE_READ_TOOL_NAME

    schema = {
        "name": FILE_READ_TOOL_NAME,
        "description": "Read the contents of a text file in the context directory.",
        "parameters": {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "File path, relative to the context directory"},
            },
            "required": ["path"],
        },
    }

    def execute(
        self,
        args: dict[str, Any],
        context: DebateContext | None = None,
        state: DebateState | None = None,
    ) -> str:
        raw = args.get("path")
        if not raw or not isinstance(raw, str):
            return tool_error_json("path is required and must be a string")
        path = self._resolve(raw)
        if path is None:
            return tool_error_json(f"Access denied: {raw} is outside the context directory")
        if not path.exists():
            return tool_error_json(f"File not found: {raw}")
        if path.is_dir():
            return tool_error_json(f"Path is a directory, not a file: {raw}")
        if path.stat().st_size > _MAX_FILE_BYTES:
            return tool_error_json(f"File too large: {raw} exceeds {_MAX_FILE_BYTES} bytes")
        try:
            return tool_success_json(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as exc:
            return tool_error_json(f"Failed to read {raw}: {exc}")


class ListFilesTool(_ContextDirTool):
    name = LIST_FILES_TOOL_NAME

    schema = {
        "name": LIST_FILES_TOOL_NAME,
        "description": "List files and directories in a directory of the context directory.",
        "parameters": {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Directory path, relative to the context directory (default: root)",
                },
            },
            "required": [],
        },
    }

    def execute(
        self,
        args: dict[str, Any],
        context: DebateContext | None = None,
        state: DebateState | None = None,
    ) -> str:
        raw = args.get("path") or "."
        if not isinstance(raw, str):
            return tool_error_json("path must be a string")
        path = self._resolve(raw)
        if path is None:
            return tool_error_json(f"Access denied: {raw} is outside the context directory")
        if not path.is_dir():
            return tool_error_json(f"Directory not found: {raw}")
        entries = [
            {"name": p.name, "type": "directory" if p.is_dir() else "file"}
            for p in sorted(path.iterdir(), key=lambda p: p.name)
        ]
        return tool_success_json(entries)
