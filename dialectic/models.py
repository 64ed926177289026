"""Pure dataclasses for the Dialectic debate engine. No logic, no deps."""

from dataclasses import dataclass, field

# Agent roles
ROLE_ARCHITECT = "architect"
ROLE_SECURITY = "security"
ROLE_PERFORMANCE = "performance"
ROLE_TESTING = "testing"
ROLE_KISS = "kiss"
ROLE_GENERALIST = "generalist"
ROLE_JUDGE = "judge"

# Contribution types
PROPOSAL = "proposal"
CRITIQUE = "critique"
REFINEMENT = "refinement"

# Debate status
STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"
STATUS_SUSPENDED = "suspended"
STATUS_FAILED = "failed"
TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_FAILED})

# Termination conditions
TERMINATION_FIXED = "fixed"
TERMINATION_CONVERGENCE = "convergence"
TERMINATION_QUALITY = "quality"

# Orchestrator types
ORCHESTRATOR_CLASSIC = "classic"
ORCHESTRATOR_STATE_MACHINE = "state-machine"

SUMMARIZATION_LENGTH_BASED = "length-based"

DEFAULT_TOOL_CALL_LIMIT = 10
DEFAULT_SUMMARIZATION_THRESHOLD = 5000
DEFAULT_SUMMARY_MAX_LENGTH = 2500
DEFAULT_CONFIDENCE_THRESHOLD = 80
DEFAULT_CLARIFICATIONS_MAX_PER_AGENT = 5
DEFAULT_CLARIFICATIONS_MAX_ITERATIONS = 3


@dataclass
class AgentConfig:
    id: str
    name: str
    role: str
    model: str
    provider: str              # "openai", "openrouter", "anthropic"
    temperature: float = 0.5
    tool_call_limit: int | None = None
    system_prompt_path: str | None = None
    summary_prompt_path: str | None = None
    enabled: bool = True


@dataclass
class PromptSource:
    source: str                # "built-in" or "file"
    path: str | None = None


@dataclass
class SummarizationConfig:
    enabled: bool = True
    threshold: int = DEFAULT_SUMMARIZATION_THRESHOLD
    max_length: int = DEFAULT_SUMMARY_MAX_LENGTH
    method: str = SUMMARIZATION_LENGTH_BASED


@dataclass
class TerminationCondition:
    type: str = TERMINATION_FIXED
    threshold: int = DEFAULT_CONFIDENCE_THRESHOLD


@dataclass
class DebateConfig:
    rounds: int = 3
    termination_condition: TerminationCondition = field(default_factory=TerminationCondition)
    synthesis_method: str = "judge"
    include_full_history: bool = True
    timeout_per_round: int = 300   # seconds
    summarization: SummarizationConfig = field(default_factory=SummarizationConfig)
    orchestrator_type: str = ORCHESTRATOR_CLASSIC
    interactive_clarifications: bool = False
    clarifications_max_per_agent: int = DEFAULT_CLARIFICATIONS_MAX_PER_AGENT
    clarifications_max_iterations: int = DEFAULT_CLARIFICATIONS_MAX_ITERATIONS


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: str             # JSON-encoded argument object


@dataclass
class ToolResult:
    tool_call_id: str
    content: str               # JSON: {"status": "success"|"error", ...}
    role: str = "tool"


@dataclass
class ContributionMetadata:
    latency_ms: int | None = None
    tokens_used: int | None = None
    model: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_results: list[ToolResult] | None = None
    tool_call_iterations: int | None = None


@dataclass
class Contribution:
    agent_id: str
    agent_role: str
    type: str                  # PROPOSAL, CRITIQUE, REFINEMENT
    content: str
    metadata: ContributionMetadata = field(default_factory=ContributionMetadata)
    target_agent_id: str | None = None


@dataclass
class SummaryMetadata:
    before_chars: int
    after_chars: int
    method: str
    timestamp: str
    latency_ms: int | None = None
    tokens_used: int | None = None
    model: str | None = None


@dataclass
class DebateSummary:
    agent_id: str
    agent_role: str
    summary: str
    metadata: SummaryMetadata


@dataclass
class Round:
    round_number: int
    timestamp: str
    contributions: list[Contribution] = field(default_factory=list)
    summaries: dict[str, DebateSummary] = field(default_factory=dict)


@dataclass
class ClarificationItem:
    id: str
    question: str
    answer: str = ""           # "" = unanswered, "NA" = explicitly not applicable


@dataclass
class AgentClarifications:
    agent_id: str
    agent_name: str
    role: str
    items: list[ClarificationItem] = field(default_factory=list)


@dataclass
class Solution:
    description: str
    synthesized_by: str
    tradeoffs: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    confidence: int = 0
    unfulfilled_major_requirements: list[str] = field(default_factory=list)
    open_questions: list[str] = field(default_factory=list)


@dataclass
class DebateSetup:
    """Participants and round settings a debate was started with, kept for resume."""

    agents: list[AgentConfig]
    judge: AgentConfig
    rounds: int
    termination_condition: TerminationCondition
    include_full_history: bool = True
    interactive_clarifications: bool = False


@dataclass
class DebateState:
    id: str
    problem: str
    created_at: str
    updated_at: str
    status: str = STATUS_RUNNING
    current_round: int = 0     # 0 = no round begun
    rounds: list[Round] = field(default_factory=list)
    context: str | None = None
    final_solution: Solution | None = None
    user_feedback: int | None = None
    prompt_sources: dict[str, PromptSource] | None = None
    clarifications: list[AgentClarifications] | None = None
    clarification_iterations: int = 0
    suspended_at_node: str | None = None
    suspended_at: str | None = None
    judge_summary: DebateSummary | None = None
    error: str | None = None
    setup: DebateSetup | None = None


@dataclass
class DebateContext:
    """Per-call view of a debate handed to agents; never persisted."""

    problem: str
    context: str | None = None
    history: list[Round] = field(default_factory=list)
    clarifications: list[AgentClarifications] = field(default_factory=list)
    include_full_history: bool = True


@dataclass
class ContextPreparationResult:
    context: DebateContext
    summary: DebateSummary | None = None


@dataclass
class DebateResult:
    debate_id: str
    solution: Solution
    rounds: list[Round]
    total_rounds: int
    duration_sec: float


@dataclass
class SuspendPayload:
    debate_id: str
    questions: list[AgentClarifications]
    iteration: int


@dataclass
class ExecutionResult:
    status: str                # STATUS_COMPLETED or STATUS_SUSPENDED
    result: DebateResult | None = None
    suspend_reason: str | None = None
    suspend_payload: SuspendPayload | None = None
