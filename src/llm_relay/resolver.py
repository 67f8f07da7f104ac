"""Map logical model identifiers to provider adapters."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from .config import DEFAULT_RELAY_CONFIG, RelayConfig
from .errors import ConfigurationError
from .providers import (
    AnthropicProvider,
    GeminiProvider,
    OllamaProvider,
    OpenAIProvider,
    OpenRouterProvider,
    ProviderAdapter,
)

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[RelayConfig, "str | None"], ProviderAdapter]

# Bare model names accepted without a "provider:" prefix.
KNOWN_MODELS: dict[str, str] = {
    "gpt-4.1": "openai:gpt-4.1",
    "gpt-4.1-mini": "openai:gpt-4.1-mini",
    "gpt-4.1-nano": "openai:gpt-4.1-nano",
    "gpt-4o": "openai:gpt-4o",
    "gpt-4o-mini": "openai:gpt-4o-mini",
    "o3": "openai:o3",
    "o3-mini": "openai:o3-mini",
    "claude-sonnet-4-20250514": "anthropic:claude-sonnet-4-20250514",
    "claude-opus-4-20250514": "anthropic:claude-opus-4-20250514",
    "claude-3-5-haiku-20241022": "anthropic:claude-3-5-haiku-20241022",
    "gemini-2.5-pro": "gemini:gemini-2.5-pro",
    "gemini-2.5-flash": "gemini:gemini-2.5-flash",
    "gemini-2.0-flash-001": "gemini:gemini-2.0-flash-001",
    "llama3.2": "ollama:llama3.2",
    # Short names
    "sonnet": "anthropic:claude-sonnet-4-20250514",
    "opus": "anthropic:claude-opus-4-20250514",
    "haiku": "anthropic:claude-3-5-haiku-20241022",
    "flash": "gemini:gemini-2.5-flash",
    "kimi-k2": "openrouter:moonshotai/kimi-k2",
}

PROVIDER_ALIASES = {"google": "gemini"}

# provider -> (config attribute, environment variable reported when missing)
REQUIRED_CREDENTIALS: dict[str, tuple[str, str]] = {
    "openai": ("openai_api_key", "OPENAI_API_KEY"),
    "anthropic": ("anthropic_api_key", "ANTHROPIC_API_KEY"),
    "gemini": ("google_api_key", "GOOGLE_API_KEY"),
    "openrouter": ("openrouter_api_key", "OPEN_ROUTER_API_KEY"),
}


def _scope_headers(scope: str | None) -> dict[str, str]:
    return {"X-Client-Fingerprint": scope} if scope else {}


DEFAULT_FACTORIES: dict[str, AdapterFactory] = {
    "openai": lambda cfg, scope: OpenAIProvider(
        api_key=cfg.openai_api_key,
        base_url=cfg.openai_base_url,
        default_headers=_scope_headers(scope),
    ),
    "anthropic": lambda cfg, scope: AnthropicProvider(
        api_key=cfg.anthropic_api_key,
        default_max_tokens=cfg.max_tokens,
        default_headers=_scope_headers(scope),
    ),
    "gemini": lambda cfg, scope: GeminiProvider(api_key=cfg.google_api_key),
    "openrouter": lambda cfg, scope: OpenRouterProvider(
        api_key=cfg.openrouter_api_key,
        base_url=cfg.openrouter_base_url,
        referer=cfg.app_referer,
        title=cfg.app_title,
        default_headers=_scope_headers(scope),
    ),
    "ollama": lambda cfg, scope: OllamaProvider(base_url=cfg.ollama_host),
}


@dataclass(frozen=True)
class ResolvedModel:
    """An adapter ready to serve one logical model."""

    model_id: str  # logical identifier as requested
    provider: str
    model: str  # provider-native model name
    adapter: ProviderAdapter

    @property
    def dialect(self) -> str:
        return self.adapter.dialect


class ProviderResolver:
    """
    Resolves ``"provider:model"`` strings (or catalog names) to memoized adapters.

    Adapters are cached per (provider, scope); the scope is the client fingerprint
    that ends up in attribution headers. Construction is idempotent, so two calls
    racing on a cold cache may both build an adapter but only one is kept.
    """

    def __init__(
        self,
        config: RelayConfig | None = None,
        factories: dict[str, AdapterFactory] | None = None,
    ) -> None:
        self._config = config or DEFAULT_RELAY_CONFIG
        self._factories: dict[str, AdapterFactory] = dict(DEFAULT_FACTORIES)
        if factories:
            self._factories.update(factories)
        self._adapters: dict[tuple[str, str | None], ProviderAdapter] = {}

    def register(self, provider: str, factory: AdapterFactory) -> None:
        """Add or replace the adapter factory for a provider name."""
        self._factories[provider] = factory
        for key in [k for k in self._adapters if k[0] == provider]:
            del self._adapters[key]

    def split(self, model: str) -> tuple[str, str]:
        """Return (provider, native model name) for a logical identifier."""
        ident = (model or "").strip()
        if ":" not in ident:
            if ident not in KNOWN_MODELS:
                raise ConfigurationError(
                    f"Unknown model: {ident!r}. Use 'provider:model' or one of: "
                    + ", ".join(sorted(KNOWN_MODELS))
                )
            ident = KNOWN_MODELS[ident]
        provider_name, raw_model = ident.split(":", 1)
        provider_name = provider_name.strip().lower()
        provider_name = PROVIDER_ALIASES.get(provider_name, provider_name)
        model_name = raw_model.strip()
        if provider_name not in self._factories:
            raise ConfigurationError(f"Unknown provider {provider_name!r} for model {model!r}")
        if not model_name:
            raise ConfigurationError(f"Missing model name in {model!r}")
        return provider_name, model_name

    def _preflight(self, provider: str, model: str) -> None:
        required = REQUIRED_CREDENTIALS.get(provider)
        if required is None:
            return
        attr, env_name = required
        if not getattr(self._config, attr, ""):
            raise ConfigurationError(
                f"Provider not configured ({provider}) for model {model!r}: "
                f"missing {env_name} environment variable."
            )

    def validate(self, model: str) -> None:
        """Raise ConfigurationError unless ``model`` could be resolved."""
        provider, _ = self.split(model)
        self._preflight(provider, model)

    def resolve(self, model: str, *, scope: str | None = None) -> ResolvedModel:
        provider, model_name = self.split(model)
        self._preflight(provider, model)

        key = (provider, scope)
        adapter = self._adapters.get(key)
        if adapter is None:
            logger.debug("Creating %s adapter", provider, extra={"scope": scope})
            adapter = self._adapters.setdefault(key, self._factories[provider](self._config, scope))
        return ResolvedModel(model_id=model, provider=provider, model=model_name, adapter=adapter)


__all__ = [
    "KNOWN_MODELS",
    "ProviderResolver",
    "ResolvedModel",
    "AdapterFactory",
]
