"""Role protocol: who speaks, who synthesizes, and how each round is scheduled."""

from config.schema import AgentDefinition


def get_panelists(agents: list[AgentDefinition]) -> list[AgentDefinition]:
    """Panelists in config order. This order is both fan-out and turn order."""
    return [a for a in agents if a.role == "panelist"]


def get_synthesizer(agents: list[AgentDefinition]) -> AgentDefinition | None:
    return next((a for a in agents if a.role == "synthesizer"), None)


def get_moderator(agents: list[AgentDefinition]) -> AgentDefinition | None:
    return next((a for a in agents if a.role == "moderator"), None)


def is_concurrent_round(round_number: int) -> bool:
    """Round 1 has no transcript to depend on, so panelists run in parallel.

    From round 2 each panelist reads the answers given earlier in the same
    round, so turns must be sequential.
    """
    return round_number == 1
