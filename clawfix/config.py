"""Runtime settings: CLI flag -> environment -> config table -> default."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Optional

from clawfix.core.composer import DEFAULT_PUBLIC_URL
from clawfix.core.llm import DEFAULT_MODEL
from clawfix.core.providers.base import DEFAULT_MAX_TOKENS, DEFAULT_TIMEOUT
from clawfix.data.cache import DEFAULT_CAPACITY
from clawfix.data.store import _DEFAULT_DB_PATH, DataStore

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "openrouter"
DB_DISABLED = "off"

# Config-table keys, mapped to the environment variable that overrides them.
# API keys are never stored here; they come from the environment only.
CONFIG_KEYS = {
    "model": "AI_MODEL",
    "provider": "AI_PROVIDER",
    "base-url": "AI_BASE_URL",
    "timeout": "AI_TIMEOUT",
    "public-url": "CLAWFIX_PUBLIC_URL",
}

_API_KEY_VARS = ("AI_API_KEY", "OPENROUTER_API_KEY", "ANTHROPIC_API_KEY")


@dataclass(frozen=True)
class Settings:
    db_path: Optional[str] = None
    ai_provider: str = DEFAULT_PROVIDER
    ai_model: str = DEFAULT_MODEL
    ai_api_key: Optional[str] = None
    ai_base_url: Optional[str] = None
    ai_timeout: float = DEFAULT_TIMEOUT
    ai_max_tokens: int = DEFAULT_MAX_TOKENS
    public_url: str = DEFAULT_PUBLIC_URL
    cache_capacity: int = DEFAULT_CAPACITY

    @property
    def persistent(self) -> bool:
        return self.db_path is not None

    @property
    def ai_available(self) -> bool:
        return bool(self.ai_api_key)


def resolve_db_path(flag: Optional[str] = None) -> Optional[str]:
    """Database path, or None when persistence is switched off."""
    path = flag or os.environ.get("CLAWFIX_DB_PATH") or _DEFAULT_DB_PATH
    return None if path.lower() == DB_DISABLED else path


def _resolve(key: str, flag: Optional[str], store: Optional[DataStore]) -> Optional[str]:
    if flag:
        return flag
    env_value = os.environ.get(CONFIG_KEYS[key])
    if env_value:
        return env_value
    if store is not None:
        try:
            return store.get_config(key)
        except Exception as e:
            logger.warning("Could not read config %r: %s", key, e)
    return None


def _resolve_timeout(raw: Optional[str]) -> float:
    if raw is None:
        return DEFAULT_TIMEOUT
    try:
        timeout = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid AI timeout %r", raw)
        return DEFAULT_TIMEOUT
    return timeout if timeout > 0 else DEFAULT_TIMEOUT


def load_settings(
    store: Optional[DataStore] = None,
    db_path: Optional[str] = None,
    model: Optional[str] = None,
    provider: Optional[str] = None,
) -> Settings:
    """Build settings from flags, environment and the config table."""
    api_key = next(
        (os.environ[name] for name in _API_KEY_VARS if os.environ.get(name)),
        None,
    )
    settings = Settings(
        db_path=resolve_db_path(db_path),
        ai_provider=_resolve("provider", provider, store) or DEFAULT_PROVIDER,
        ai_model=_resolve("model", model, store) or DEFAULT_MODEL,
        ai_api_key=api_key,
        ai_base_url=_resolve("base-url", None, store),
        ai_timeout=_resolve_timeout(_resolve("timeout", None, store)),
        public_url=_resolve("public-url", None, store) or DEFAULT_PUBLIC_URL,
    )
    logger.debug(
        "Settings: provider=%s model=%s ai=%s db=%s",
        settings.ai_provider,
        settings.ai_model,
        settings.ai_available,
        settings.db_path,
    )
    return settings


def without_ai(settings: Settings) -> Settings:
    return replace(settings, ai_api_key=None)
