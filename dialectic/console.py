"""User-facing stderr output and the injectable agent logger."""

from collections.abc import Callable

from rich.console import Console

# (message, only_verbose) -> None
AgentLogger = Callable[[str, bool], None]

stderr_console = Console(stderr=True, legacy_windows=False, highlight=False)


def stderr_logger(message: str, only_verbose: bool = False) -> None:
    """Default agent logger: prints everything, verbose or not, to stderr."""
    stderr_console.print(message, style="dim" if only_verbose else None, markup=False)


def make_agent_logger(verbose: bool, console: Console | None = None) -> AgentLogger:
    """Build a logger that hides verbose-only messages unless verbose is set."""
    target = console or stderr_console

    def _log(message: str, only_verbose: bool = False) -> None:
        if only_verbose and not verbose:
            return
        target.print(message, style="dim" if only_verbose else None, markup=False)

    return _log
