"""Durable debate state: one JSON document per debate, rewritten on every mutation.

Disk is the only source of truth. Every mutation loads the document, applies
the change and writes the whole document back, so a fresh StateManager on the
same directory always sees the latest state.
"""

import json
import logging
import os
import secrets
import tempfile
from collections.abc import Callable
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

from dialectic.errors import DebateNotFoundError, DebateStateError, NoActiveRoundError
from dialectic.models import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_RUNNING,
    STATUS_SUSPENDED,
    TERMINAL_STATUSES,
    AgentClarifications,
    AgentConfig,
    ClarificationItem,
    Contribution,
    ContributionMetadata,
    DebateSetup,
    DebateState,
    DebateSummary,
    PromptSource,
    Round,
    Solution,
    SummaryMetadata,
    TerminationCondition,
    ToolCall,
    ToolResult,
)

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = Path("./debates")

T = TypeVar("T")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_debate_id() -> str:
    return f"deb-{datetime.now().strftime('%Y%m%d-%H%M%S')}-{secrets.token_hex(2)}"


# -- (de)serialization -------------------------------------------------------


def _drop_none(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _drop_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_drop_none(v) for v in value]
    return value


def state_to_dict(state: DebateState) -> dict[str, Any]:
    return _drop_none(asdict(state))


def _summary_from_dict(raw: dict[str, Any]) -> DebateSummary:
    return DebateSummary(
        agent_id=raw["agent_id"],
        agent_role=raw["agent_role"],
        summary=raw["summary"],
        metadata=SummaryMetadata(**raw["metadata"]),
    )


def _contribution_from_dict(raw: dict[str, Any]) -> Contribution:
    meta = dict(raw.get("metadata") or {})
    if "tool_calls" in meta:
        meta["tool_calls"] = [ToolCall(**c) for c in meta["tool_calls"]]
    if "tool_results" in meta:
        meta["tool_results"] = [ToolResult(**r) for r in meta["tool_results"]]
    return Contribution(
        agent_id=raw["agent_id"],
        agent_role=raw["agent_role"],
        type=raw["type"],
        content=raw["content"],
        metadata=ContributionMetadata(**meta),
        target_agent_id=raw.get("target_agent_id"),
    )


def _round_from_dict(raw: dict[str, Any]) -> Round:
    return Round(
        round_number=raw["round_number"],
        timestamp=raw["timestamp"],
        contributions=[_contribution_from_dict(c) for c in raw.get("contributions", [])],
        summaries={k: _summary_from_dict(v) for k, v in (raw.get("summaries") or {}).items()},
    )


def _clarifications_from_dict(raw: list[dict[str, Any]]) -> list[AgentClarifications]:
    return [
        AgentClarifications(
            agent_id=g["agent_id"],
            agent_name=g["agent_name"],
            role=g["role"],
            items=[ClarificationItem(**item) for item in g.get("items", [])],
        )
        for g in raw
    ]


def _setup_from_dict(raw: dict[str, Any]) -> DebateSetup:
    return DebateSetup(
        agents=[AgentConfig(**a) for a in raw["agents"]],
        judge=AgentConfig(**raw["judge"]),
        rounds=raw["rounds"],
        termination_condition=TerminationCondition(**raw["termination_condition"]),
        include_full_history=raw.get("include_full_history", True),
        interactive_clarifications=raw.get("interactive_clarifications", False),
    )


def state_from_dict(raw: dict[str, Any]) -> DebateState:
    state = DebateState(
        id=raw["id"],
        problem=raw["problem"],
        created_at=raw["created_at"],
        updated_at=raw["updated_at"],
        status=raw.get("status", STATUS_RUNNING),
        current_round=raw.get("current_round", 0),
        rounds=[_round_from_dict(r) for r in raw.get("rounds", [])],
        context=raw.get("context"),
        user_feedback=raw.get("user_feedback"),
        clarification_iterations=raw.get("clarification_iterations", 0),
        suspended_at_node=raw.get("suspended_at_node"),
        suspended_at=raw.get("suspended_at"),
        error=raw.get("error"),
    )
    if raw.get("final_solution") is not None:
        state.final_solution = Solution(**raw["final_solution"])
    if raw.get("prompt_sources") is not None:
        state.prompt_sources = {k: PromptSource(**v) for k, v in raw["prompt_sources"].items()}
    if raw.get("clarifications") is not None:
        state.clarifications = _clarifications_from_dict(raw["clarifications"])
    if raw.get("judge_summary") is not None:
        state.judge_summary = _summary_from_dict(raw["judge_summary"])
    if raw.get("setup") is not None:
        state.setup = _setup_from_dict(raw["setup"])
    return state


# -- manager -----------------------------------------------------------------


class StateManager:
    """Owns the persisted DebateState documents under ``base_dir``."""

    def __init__(self, base_dir: Path | str = DEFAULT_STATE_DIR) -> None:
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, debate_id: str) -> Path:
        return self.base_dir / f"{debate_id}.json"

    def _write(self, state: DebateState) -> None:
        payload = json.dumps(state_to_dict(state), indent=2, ensure_ascii=False)
        fd, tmp = tempfile.mkstemp(dir=self.base_dir, prefix=f".{state.id}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp, self._path(state.id))
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def _load(self, debate_id: str) -> DebateState:
        state = self.get_debate(debate_id)
        if state is None:
            raise DebateNotFoundError(debate_id)
        return state

    def _mutate(
        self,
        debate_id: str,
        change: Callable[[DebateState], T],
        allow_terminal: bool = False,
    ) -> T:
        state = self._load(debate_id)
        if not allow_terminal and state.status in TERMINAL_STATUSES:
            raise DebateStateError(f"Debate {debate_id} is {state.status} and can no longer be modified")
        result = change(state)
        state.updated_at = _now()
        self._write(state)
        return result

    @staticmethod
    def _current_round(state: DebateState) -> Round:
        if state.current_round == 0 or not state.rounds:
            raise NoActiveRoundError(state.id)
        return state.rounds[-1]

    def create_debate(self, problem: str, context: str | None = None, debate_id: str | None = None) -> DebateState:
        now = _now()
        state = DebateState(
            id=debate_id or new_debate_id(),
            problem=problem,
            context=context,
            created_at=now,
            updated_at=now,
        )
        self._write(state)
        logger.debug("Created debate %s", state.id)
        return state

    def get_debate(self, debate_id: str) -> DebateState | None:
        path = self._path(debate_id)
        if not path.exists():
            return None
        return state_from_dict(json.loads(path.read_text(encoding="utf-8")))

    def list_debates(self) -> list[DebateState]:
        """All persisted debates, newest first."""
        states = [state_from_dict(json.loads(p.read_text(encoding="utf-8"))) for p in self.base_dir.glob("*.json")]
        return sorted(states, key=lambda s: s.created_at, reverse=True)

    def begin_round(self, debate_id: str) -> Round:
        def change(state: DebateState) -> Round:
            rnd = Round(round_number=state.current_round + 1, timestamp=_now())
            state.rounds.append(rnd)
            state.current_round = rnd.round_number
            return rnd

        rnd = self._mutate(debate_id, change)
        logger.debug("Debate %s: began round %d", debate_id, rnd.round_number)
        return rnd

    def add_contribution(self, debate_id: str, contribution: Contribution) -> None:
        self._mutate(debate_id, lambda s: self._current_round(s).contributions.append(contribution))

    def add_summary(self, debate_id: str, summary: DebateSummary) -> None:
        """Store summary on the current round; a later one for the same agent replaces it."""

        def change(state: DebateState) -> None:
            self._current_round(state).summaries[summary.agent_id] = summary

        self._mutate(debate_id, change)

    def add_judge_summary(self, debate_id: str, summary: DebateSummary) -> None:
        def change(state: DebateState) -> None:
            state.judge_summary = summary

        self._mutate(debate_id, change)

    def set_clarifications(
        self, debate_id: str, clarifications: list[AgentClarifications], iteration: int | None = None
    ) -> None:
        def change(state: DebateState) -> None:
            state.clarifications = clarifications
            if iteration is not None:
                state.clarification_iterations = iteration

        self._mutate(debate_id, change)

    def set_prompt_sources(self, debate_id: str, sources: dict[str, PromptSource]) -> None:
        def change(state: DebateState) -> None:
            state.prompt_sources = sources

        self._mutate(debate_id, change)

    def set_setup(self, debate_id: str, setup: DebateSetup) -> None:
        def change(state: DebateState) -> None:
            state.setup = setup

        self._mutate(debate_id, change)

    def set_suspend_state(self, debate_id: str, node: str) -> None:
        def change(state: DebateState) -> None:
            state.status = STATUS_SUSPENDED
            state.suspended_at_node = node
            state.suspended_at = _now()

        self._mutate(debate_id, change)
        logger.debug("Debate %s suspended at %s", debate_id, node)

    def clear_suspend_state(self, debate_id: str) -> None:
        def change(state: DebateState) -> None:
            state.status = STATUS_RUNNING
            state.suspended_at_node = None
            state.suspended_at = None

        self._mutate(debate_id, change)

    def update_user_feedback(self, debate_id: str, feedback: int) -> None:
        if isinstance(feedback, bool) or not isinstance(feedback, int):
            raise DebateStateError(f"User feedback must be an integer, got {feedback!r}")

        def change(state: DebateState) -> None:
            state.user_feedback = feedback

        # feedback arrives after a debate has finished
        self._mutate(debate_id, change, allow_terminal=True)

    def complete_debate(self, debate_id: str, solution: Solution) -> None:
        def change(state: DebateState) -> None:
            state.final_solution = solution
            state.status = STATUS_COMPLETED

        self._mutate(debate_id, change)
        logger.debug("Debate %s completed", debate_id)

    def fail_debate(self, debate_id: str, error: str) -> None:
        def change(state: DebateState) -> None:
            state.status = STATUS_FAILED
            state.error = error

        self._mutate(debate_id, change)
