"""Exception hierarchy and process exit codes."""

EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_INVALID_ARGS = 2
EXIT_PROVIDER_ERROR = 3
EXIT_CONFIG_ERROR = 4


class DialecticError(Exception):
    """Base for all errors raised by the debate engine."""

    exit_code = EXIT_GENERAL_ERROR


class ConfigError(DialecticError):
    """Invalid or incomplete configuration, including missing credentials."""

    exit_code = EXIT_CONFIG_ERROR


class StateError(DialecticError):
    """Raised by the state manager when a mutation cannot be applied."""


class DebateNotFoundError(StateError):
    def __init__(self, debate_id: str) -> None:
        self.debate_id = debate_id
        super().__init__(f"Debate {debate_id} not found")


class NoActiveRoundError(StateError):
    def __init__(self, debate_id: str) -> None:
        self.debate_id = debate_id
        super().__init__(f"No active round for debate {debate_id}; call begin_round first")


class DebateStateError(StateError):
    """Mutation not allowed in the debate's current status."""
