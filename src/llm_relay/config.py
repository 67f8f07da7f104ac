"""Relay configuration: defaults, environment overrides and provider credentials."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

DEFAULT_MODEL = "openai:gpt-4.1-nano"
DEFAULT_BACKOFF_BASE_MS = 1000
DEFAULT_BACKOFF_CAP_MS = 10000
DEFAULT_MAX_TOKENS = 32_000


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class RelayConfig:
    """Configuration for model dispatch.

    ``raise_on_stream_error`` decides what happens when a provider reports an error
    frame in the middle of a stream: raise immediately (production default) or log
    it and keep reading whatever the provider still sends.
    """

    default_model: str = DEFAULT_MODEL
    default_retries: int = 0
    backoff_base_ms: int = DEFAULT_BACKOFF_BASE_MS
    backoff_cap_ms: int = DEFAULT_BACKOFF_CAP_MS
    raise_on_stream_error: bool = True
    live_input_check: bool = True
    render_reasoning: bool = True
    max_tokens: int = DEFAULT_MAX_TOKENS
    # Attribution sent to routing providers
    app_referer: str = ""
    app_title: str = ""
    # Credentials
    openai_api_key: str = ""
    openai_base_url: str | None = None
    anthropic_api_key: str = ""
    google_api_key: str = ""
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    ollama_host: str = "http://localhost:11434"

    @classmethod
    def from_env(cls) -> RelayConfig:
        return cls(
            default_model=os.getenv("RELAY_DEFAULT_MODEL", DEFAULT_MODEL),
            default_retries=int(os.getenv("RELAY_DEFAULT_RETRIES", "0")),
            backoff_base_ms=int(os.getenv("RELAY_BACKOFF_BASE_MS", str(DEFAULT_BACKOFF_BASE_MS))),
            backoff_cap_ms=int(os.getenv("RELAY_BACKOFF_CAP_MS", str(DEFAULT_BACKOFF_CAP_MS))),
            raise_on_stream_error=_env_bool("RELAY_RAISE_ON_STREAM_ERROR", True),
            live_input_check=_env_bool("RELAY_LIVE_INPUT_CHECK", True),
            render_reasoning=_env_bool("RELAY_RENDER_REASONING", True),
            max_tokens=int(os.getenv("RELAY_MAX_TOKENS", str(DEFAULT_MAX_TOKENS))),
            app_referer=os.getenv("RELAY_APP_REFERER", ""),
            app_title=os.getenv("RELAY_APP_TITLE", ""),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY", ""),
            google_api_key=os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY", ""),
            openrouter_api_key=os.getenv("OPEN_ROUTER_API_KEY", ""),
            openrouter_base_url=os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"),
            ollama_host=os.getenv("OLLAMA_HOST", "http://localhost:11434"),
        )


DEFAULT_RELAY_CONFIG = RelayConfig()
