"""Abstract base for all AI model providers."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Literal


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


@dataclass(frozen=True)
class ChatMessage:
    role: Literal["system", "user", "assistant"]
    content: str
    cache: bool = False  # prompt-caching hint; providers without caching ignore it


@dataclass(frozen=True)
class ChatOptions:
    temperature: float = 0.7
    max_tokens: int = 1024


class AIProvider(ABC):
    """Abstract base for all AI model providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'anthropic', 'openai')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the model identifier sent to the API."""
        ...

    @abstractmethod
    async def chat(self, messages: list[ChatMessage], options: ChatOptions | None = None) -> str:
        """Send messages and return the complete response text.

        Raises:
            ProviderError: On API failure or empty response.
        """
        ...

    @abstractmethod
    def stream(self, messages: list[ChatMessage], options: ChatOptions | None = None) -> AsyncIterator[str]:
        """Send messages and yield response text fragments as they arrive.

        The iterator is finite and cannot be restarted.

        Raises:
            ProviderError: On API failure.
        """
        ...
