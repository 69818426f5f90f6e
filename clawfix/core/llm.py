"""LLM client: provider-agnostic interface for supplementary analysis."""

from __future__ import annotations

import json
import os
from typing import Any, Optional

from clawfix.core.providers import detect_provider, get_provider_class
from clawfix.core.providers.base import DEFAULT_MAX_TOKENS, DEFAULT_TIMEOUT

_PROMPTS_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "prompts")

DEFAULT_MODEL = "minimax/minimax-m2.5"

# Used when AI_BASE_URL is not set
PROVIDER_URLS = {
    "openrouter": "https://openrouter.ai/api/v1",
    "deepseek": "https://api.deepseek.com/v1",
    "together": "https://api.together.xyz/v1",
    "minimax": "https://api.minimax.chat/v1",
}


def _load_prompt(name: str) -> str:
    path = os.path.join(_PROMPTS_DIR, name)
    with open(path) as f:
        return f.read()


class LLMClient:
    """Provider-agnostic LLM client for diagnosis analysis."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        provider: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ):
        self.model = model
        self.provider_name = provider or detect_provider(model)
        if base_url is None and provider:
            base_url = PROVIDER_URLS.get(provider.lower())
        provider_class = get_provider_class(detect_provider(model, provider))
        self.provider = provider_class(
            model,
            api_key=api_key,
            timeout=timeout,
            max_tokens=max_tokens,
            base_url=base_url,
        )

    def analyze(self, diagnostic: dict[str, Any], known_ids: list[str]) -> str:
        """Ask the model for findings beyond ``known_ids``; returns raw text."""
        system_prompt = _load_prompt("system.txt")
        user_message = self.build_user_message(diagnostic, known_ids)
        return self.provider.complete(system_prompt, user_message)

    @staticmethod
    def build_user_message(diagnostic: dict[str, Any], known_ids: list[str]) -> str:
        template = _load_prompt("diagnose.txt")
        message = template.replace("{KNOWN_ISSUES}", ", ".join(known_ids) or "none")
        return message.replace(
            "{DIAGNOSTIC}", json.dumps(diagnostic, indent=2, default=str)
        )
