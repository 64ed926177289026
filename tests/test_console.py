"""Tests for dialectic/console.py."""

from io import StringIO

from rich.console import Console

from dialectic.console import make_agent_logger


def _console() -> tuple[Console, StringIO]:
    buffer = StringIO()
    return Console(file=buffer, width=200, legacy_windows=False), buffer


def test_verbose_messages_hidden_by_default():
    out, buffer = _console()
    log = make_agent_logger(False, out)

    log("always shown", False)
    log("[tool] details", True)

    assert "always shown" in buffer.getvalue()
    assert "details" not in buffer.getvalue()


def test_verbose_logger_prints_everything():
    out, buffer = _console()
    log = make_agent_logger(True, out)

    log("[tool] details", True)

    # markup is disabled, brackets survive
    assert "[tool] details" in buffer.getvalue()
