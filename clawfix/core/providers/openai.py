"""OpenAI-compatible LLM provider (OpenAI, OpenRouter, DeepSeek, ...)."""

from __future__ import annotations

import os
from typing import Optional

import openai

from clawfix.core.providers.base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TIMEOUT,
    BaseLLMProvider,
)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

# OpenRouter attributes traffic by these headers
_OPENROUTER_HEADERS = {
    "HTTP-Referer": "https://clawfix.dev",
    "X-Title": "ClawFix",
}


def _default_headers(base_url: Optional[str]) -> Optional[dict[str, str]]:
    if base_url and "openrouter.ai" in base_url:
        return dict(_OPENROUTER_HEADERS)
    return None


class OpenAIProvider(BaseLLMProvider):
    """Provider for OpenAI chat-completions endpoints."""

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        base_url: Optional[str] = None,
    ):
        super().__init__(model, api_key, timeout, max_tokens, base_url)
        self.client = openai.OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
            default_headers=_default_headers(base_url),
        )

    def complete(self, system_prompt: str, user_message: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
        )

        if not response.choices or not response.choices[0].message.content:
            raise ValueError(
                "OpenAI response did not contain a message. "
                "Response: " + str(response)
            )
        return response.choices[0].message.content

    @staticmethod
    def check_api_key() -> tuple[bool, str]:
        return bool(os.environ.get("OPENAI_API_KEY")), "OPENAI_API_KEY"
