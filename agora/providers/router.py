"""Route model strings to provider instances by name prefix.

Provider instances are cached per model string for the life of the process.
They hold no discussion state, so concurrent discussions share them.
"""

import logging
import os
import threading
from collections.abc import Callable

from agora.providers.anthropic import AnthropicProvider
from agora.providers.base import AIProvider, ProviderError
from agora.providers.gemini import GeminiProvider
from agora.providers.openai_provider import OpenAIProvider
from config.config_loader import ProviderRoute

logger = logging.getLogger(__name__)

ProviderResolver = Callable[[str], AIProvider]

DEFAULT_ROUTES: list[ProviderRoute] = [
    ProviderRoute("claude-", "anthropic", "ANTHROPIC_API_KEY"),
    ProviderRoute("gpt-", "openai", "OPENAI_API_KEY"),
    ProviderRoute("o1-", "openai", "OPENAI_API_KEY"),
    ProviderRoute("o3-", "openai", "OPENAI_API_KEY"),
    ProviderRoute("o4-", "openai", "OPENAI_API_KEY"),
    ProviderRoute("gemini-", "gemini", "GOOGLE_API_KEY"),
    ProviderRoute("grok-", "openai", "XAI_API_KEY", base_url="https://api.x.ai/v1"),
    ProviderRoute("deepseek-", "openai", "DEEPSEEK_API_KEY", base_url="https://api.deepseek.com"),
    ProviderRoute(
        "ollama:",
        "openai",
        None,
        base_url="http://localhost:11434/v1",
        base_url_env="OLLAMA_BASE_URL",
        strip_prefix=True,
    ),
]

_FALLBACK_ROUTE = ProviderRoute("", "openai", "OPENAI_API_KEY")

_HELP = {
    "claude-": "claude-* (Anthropic)",
    "gpt-": "gpt-* (OpenAI)",
    "gemini-": "gemini-* (Google)",
    "grok-": "grok-* (xAI)",
    "deepseek-": "deepseek-* (DeepSeek)",
    "ollama:": "ollama:* (Ollama local)",
}

_routes: list[ProviderRoute] = list(DEFAULT_ROUTES)
_cache: dict[str, AIProvider] = {}
_lock = threading.Lock()


def configure_routes(routes: list[ProviderRoute]) -> None:
    """Replace the routing table (e.g. with routes from settings.yaml).

    Already-cached providers are kept.
    """
    global _routes
    if routes:
        _routes = list(routes)


def _match(model: str) -> ProviderRoute:
    for route in _routes:
        if model.startswith(route.prefix):
            return route
    return _FALLBACK_ROUTE


def _build(route: ProviderRoute, model: str) -> AIProvider:
    model_id = model[len(route.prefix):] if route.strip_prefix else model

    if route.sdk == "anthropic":
        return AnthropicProvider(model_id, route.api_key_env or "ANTHROPIC_API_KEY")
    if route.sdk == "gemini":
        return GeminiProvider(model_id, route.api_key_env or "GOOGLE_API_KEY")
    if route.sdk == "openai":
        base_url = (os.environ.get(route.base_url_env) if route.base_url_env else None) or route.base_url
        provider_name = route.prefix.rstrip("-:") if route.base_url else "openai"
        return OpenAIProvider(model_id, route.api_key_env, base_url, provider_name)
    raise ProviderError(route.sdk, f"Unknown sdk for prefix '{route.prefix}'")


def get_provider(model: str) -> AIProvider:
    """Return the cached provider for model, building it on first use.

    Raises:
        ProviderError: If the provider cannot be built (e.g. missing API key).
    """
    with _lock:
        provider = _cache.get(model)
        if provider is None:
            route = _match(model)
            provider = _build(route, model)
            logger.debug("Provider for %s: %s (%s)", model, provider.name(), provider.model_string())
            _cache[model] = provider
        return provider


def list_providers() -> list[str]:
    """Human-readable model prefixes, for help text."""
    lines = [_HELP.get(r.prefix, f"{r.prefix}* ({r.sdk})") for r in _routes if r.prefix not in ("o1-", "o3-", "o4-")]
    if any(r.prefix in ("o1-", "o3-", "o4-") for r in _routes):
        lines.insert(2, "o1-*/o3-*/o4-* (OpenAI)")
    return lines
