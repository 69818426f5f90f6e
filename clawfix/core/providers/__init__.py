"""Provider detection and registry for the analysis model."""

from __future__ import annotations

from typing import Optional, Type

from clawfix.core.providers.base import BaseLLMProvider

PROVIDERS = ("openai", "anthropic", "google")

# Hosted gateway names accepted for AI_PROVIDER
_ALIASES = {
    "openrouter": "openai",
    "deepseek": "openai",
    "together": "openai",
    "minimax": "openai",
    "gemini": "google",
}


def detect_provider(model: str, provider: Optional[str] = None) -> str:
    """Detect the provider name from a model string.

    An explicit ``provider`` always wins; gateway names such as
    "openrouter" map to the client that speaks their protocol.

    Returns "openai", "anthropic", or "google". Anything unrecognised
    (e.g. ``minimax/minimax-m2.5`` on OpenRouter) goes through the
    OpenAI-compatible client.
    """
    if provider:
        name = provider.lower()
        return _ALIASES.get(name, name)

    model_lower = model.lower()

    if any(model_lower.startswith(p) for p in ("gpt-", "o1-", "o3-", "o4-")):
        return "openai"

    if model_lower.startswith("gemini-"):
        return "google"

    if model_lower.startswith("claude-"):
        return "anthropic"

    # OpenRouter, DeepSeek, Together and friends speak the OpenAI protocol
    return "openai"


def get_provider_class(name: str) -> Type[BaseLLMProvider]:
    """Return the provider class for the given provider name.

    Lazy-imports so SDKs are only loaded when actually needed.

    Raises:
        ImportError: If the required SDK is not installed.
        ValueError: If the provider name is unknown.
    """
    if name == "openai":
        from clawfix.core.providers.openai import OpenAIProvider
        return OpenAIProvider

    if name == "anthropic":
        try:
            from clawfix.core.providers.anthropic import AnthropicProvider
        except ImportError:
            raise ImportError(
                "Anthropic SDK not installed. Install it with: "
                "pip install anthropic"
            )
        return AnthropicProvider

    if name == "google":
        try:
            from clawfix.core.providers.google import GoogleProvider
        except ImportError:
            raise ImportError(
                "Google GenAI SDK not installed. Install it with: "
                "pip install clawfix[google]"
            )
        return GoogleProvider

    raise ValueError(f"Unknown provider: {name!r}")
