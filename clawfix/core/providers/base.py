"""Base class for LLM providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_TOKENS = 2000


class BaseLLMProvider(ABC):
    """Abstract base for LLM provider implementations."""

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        base_url: Optional[str] = None,
    ):
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.base_url = base_url

    @abstractmethod
    def complete(self, system_prompt: str, user_message: str) -> str:
        """Send one system + user exchange and return the reply text.

        Raises:
            ValueError: If the response carries no text.
            Any SDK error (timeouts, HTTP status) is left to the caller.
        """

    @staticmethod
    @abstractmethod
    def check_api_key() -> tuple[bool, str]:
        """Check whether the provider's own API key variable is set.

        Returns:
            (is_set, env_var_name), e.g. (True, "OPENAI_API_KEY").
        """
