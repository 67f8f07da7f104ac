"""OpenRouter adapter: the OpenAI wire format plus routing and cost accounting."""

from __future__ import annotations

from typing import Any

from ..models import ProviderRequest, UsageSummary
from ..usage import from_openrouter
from .openai_provider import OpenAIProvider

# Upstream provider order for models served by several hosts.
# See https://openrouter.ai/docs/features/provider-routing
PROVIDER_ORDER: dict[str, list[str]] = {
    "anthropic/claude-sonnet-4": ["Google", "Anthropic", "Amazon Bedrock"],
    "anthropic/claude-opus-4": ["Google", "Anthropic"],
}

# Models that should be pinned to the fastest available host.
NITRO_MODELS = frozenset({"moonshotai/kimi-k2"})


class OpenRouterProvider(OpenAIProvider):
    """Routes any catalog model through OpenRouter's OpenAI-compatible endpoint."""

    provider = "openrouter"
    dialect = "openrouter-chat"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1",
        referer: str = "",
        title: str = "",
        default_headers: dict[str, str] | None = None,
    ) -> None:
        headers = dict(default_headers or {})
        if referer:
            headers["HTTP-Referer"] = referer
        if title:
            headers["X-Title"] = title
        super().__init__(api_key=api_key, base_url=base_url, default_headers=headers)

    def _request_params(self, request: ProviderRequest) -> dict[str, Any]:
        params = super()._request_params(request)
        # OpenRouter still expects the classic field name
        if "max_completion_tokens" in params:
            params["max_tokens"] = params.pop("max_completion_tokens")

        model = request.model
        extra_body: dict[str, Any] = {
            "usage": {"include": True},
            "include_reasoning": True,
        }
        if model in PROVIDER_ORDER:
            extra_body["provider"] = {
                "order": PROVIDER_ORDER[model],
                "allow_fallbacks": False,
            }
        if model in NITRO_MODELS:
            params["model"] = f"{model}:nitro"
        if request.options.thinking_budget:
            extra_body["reasoning"] = {"max_tokens": request.options.thinking_budget}
        params["extra_body"] = extra_body
        return params

    def _usage(self, usage: Any) -> UsageSummary:
        return from_openrouter(usage)
