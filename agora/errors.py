"""Exception taxonomy for discussion runs.

Only ConfigurationError escapes to callers (from preset loading). Inside a run
the engine turns every failure into an ``error`` event instead of raising.
"""


class AgoraError(Exception):
    """Base for all agora errors."""


class ConfigurationError(AgoraError):
    """Preset or roundtable config is unusable (missing roles, invalid schema, not found)."""


class AgentTimeoutError(AgoraError):
    """A bounded agent call did not finish within its time limit."""

    def __init__(self, label: str, timeout_sec: float) -> None:
        self.label = label
        self.timeout_sec = timeout_sec
        super().__init__(f"{label} timed out after {timeout_sec:g}s")


class AgentTurnError(AgoraError):
    """A single panelist turn failed. Recovered locally by the engine."""

    def __init__(self, agent_id: str, agent_name: str, cause: BaseException) -> None:
        self.agent_id = agent_id
        self.agent_name = agent_name
        self.cause = cause
        super().__init__(f"Agent {agent_name} failed: {cause}")


class SynthesisError(AgoraError):
    """The synthesizer failed. Terminal for the run's outcome."""

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"Synthesizer failed: {cause}")
