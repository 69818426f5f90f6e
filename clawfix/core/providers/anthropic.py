"""Anthropic (Claude) LLM provider."""

from __future__ import annotations

import os
from typing import Optional

import anthropic

from clawfix.core.providers.base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TIMEOUT,
    BaseLLMProvider,
)


class AnthropicProvider(BaseLLMProvider):
    """Provider for Anthropic Claude models."""

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        base_url: Optional[str] = None,
    ):
        super().__init__(model, api_key, timeout, max_tokens, base_url)
        self.client = anthropic.Anthropic(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    def complete(self, system_prompt: str, user_message: str) -> str:
        response = self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=system_prompt,
            messages=[{"role": "user", "content": user_message}],
        )

        text = "".join(
            block.text for block in response.content if block.type == "text"
        )
        if not text:
            raise ValueError(
                "Anthropic response did not contain text. "
                "Response: " + str(response.content)
            )
        return text

    @staticmethod
    def check_api_key() -> tuple[bool, str]:
        return bool(os.environ.get("ANTHROPIC_API_KEY")), "ANTHROPIC_API_KEY"
