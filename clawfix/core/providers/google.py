"""Google Gemini LLM provider."""

from __future__ import annotations

import os
from typing import Optional

from google import genai
from google.genai import types

from clawfix.core.providers.base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TIMEOUT,
    BaseLLMProvider,
)


class GoogleProvider(BaseLLMProvider):
    """Provider for Google Gemini models."""

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        base_url: Optional[str] = None,
    ):
        super().__init__(model, api_key, timeout, max_tokens, base_url)
        # HttpOptions takes milliseconds
        self.client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(timeout * 1000)),
        )

    def complete(self, system_prompt: str, user_message: str) -> str:
        response = self.client.models.generate_content(
            model=self.model,
            contents=[
                types.Content(
                    role="user",
                    parts=[types.Part.from_text(text=user_message)],
                ),
            ],
            config=types.GenerateContentConfig(
                system_instruction=system_prompt,
                max_output_tokens=self.max_tokens,
            ),
        )

        if not response.text:
            raise ValueError(
                "Gemini response did not contain text. "
                "Response: " + str(response)
            )
        return response.text

    @staticmethod
    def check_api_key() -> tuple[bool, str]:
        return bool(os.environ.get("GOOGLE_API_KEY")), "GOOGLE_API_KEY"
