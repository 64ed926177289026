"""Events emitted by state-machine nodes."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

START = "START"
COMPLETE = "COMPLETE"

QUESTIONS_PENDING = "QUESTIONS_PENDING"
ALL_CLEAR = "ALL_CLEAR"
ANSWERS_SUBMITTED = "ANSWERS_SUBMITTED"
WAITING_FOR_INPUT = "WAITING_FOR_INPUT"

BEGIN_ROUND = "BEGIN_ROUND"
CONTEXTS_READY = "CONTEXTS_READY"
PROPOSALS_COMPLETE = "PROPOSALS_COMPLETE"
CRITIQUES_COMPLETE = "CRITIQUES_COMPLETE"
REFINEMENTS_COMPLETE = "REFINEMENTS_COMPLETE"

CONTINUE = "CONTINUE"
CONSENSUS_REACHED = "CONSENSUS_REACHED"
MAX_ROUNDS_REACHED = "MAX_ROUNDS_REACHED"


@dataclass
class DebateEvent:
    type: str
    payload: dict[str, Any] | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
