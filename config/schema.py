"""Pydantic schema for roundtable presets. Validated once at load time."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

AgentRole = Literal["panelist", "moderator", "synthesizer"]


class AgentDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    role: AgentRole
    model: str = Field(min_length=1)
    system_prompt: str = Field(min_length=1)  # may reference {{topic}}
    temperature: float | None = Field(default=None, ge=0, le=2)
    max_tokens: int | None = Field(default=None, gt=0)


class RoundtableConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str | None = None
    description: str | None = None
    max_rounds: int = Field(default=2, ge=1, le=10)
    agent_timeout: float | None = Field(default=None, gt=0)  # seconds per agent call
    agents: list[AgentDefinition] = Field(min_length=2)

    @model_validator(mode="after")
    def _require_synthesizer(self) -> "RoundtableConfig":
        if not any(a.role == "synthesizer" for a in self.agents):
            raise ValueError('At least one agent must have role "synthesizer"')
        return self
