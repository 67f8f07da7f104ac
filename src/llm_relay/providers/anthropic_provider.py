"""Anthropic Messages API adapter."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from anthropic import AsyncAnthropic

from ..models import (
    CanonicalEvent,
    Message,
    ProviderRequest,
    ReasoningDelta,
    TextDelta,
    UsageTracker,
)
from ..usage import from_anthropic
from .base import ProviderAdapter


class AnthropicProvider(ProviderAdapter):
    """Claude models over the streaming Messages API, with prompt caching counters."""

    provider = "anthropic"
    dialect = "anthropic-messages"

    def __init__(
        self,
        api_key: str,
        default_max_tokens: int = 32_000,
        default_headers: dict[str, str] | None = None,
    ) -> None:
        self.api_key = api_key
        self.default_max_tokens = default_max_tokens
        self.default_headers = dict(default_headers or {})
        self._client: AsyncAnthropic | None = None

    def _get_client(self) -> AsyncAnthropic:
        if not self._client:
            kwargs: dict[str, Any] = {"api_key": self.api_key}
            if self.default_headers:
                kwargs["default_headers"] = self.default_headers
            self._client = AsyncAnthropic(**kwargs)
        return self._client

    @staticmethod
    def _to_anthropic_messages(messages: list[Message]) -> tuple[list[dict[str, Any]], str | None]:
        """Split out the system prompt; Anthropic only takes user/assistant turns."""
        system_parts: list[str] = []
        out: list[dict[str, Any]] = []
        for m in messages:
            if m.role == "system":
                if m.content.strip():
                    system_parts.append(m.content)
                continue
            role = "assistant" if m.role == "assistant" else "user"
            out.append({"role": role, "content": m.content or ""})
        system = "\n\n".join(system_parts) or None
        return out, system

    def _request_params(self, request: ProviderRequest) -> dict[str, Any]:
        opts = request.options
        messages, system = self._to_anthropic_messages(request.messages)
        params: dict[str, Any] = {
            "model": request.model,
            "messages": messages,
            "max_tokens": opts.max_tokens or self.default_max_tokens,
            "stream": True,
        }
        if system:
            params["system"] = system
        if opts.stop_sequences:
            params["stop_sequences"] = opts.stop_sequences
        if opts.thinking_budget:
            params["thinking"] = {"type": "enabled", "budget_tokens": opts.thinking_budget}
            # Extended thinking requires the default temperature
        elif opts.temperature is not None:
            params["temperature"] = opts.temperature
        if opts.timeout is not None:
            params["timeout"] = opts.timeout
        return params

    async def stream(
        self,
        request: ProviderRequest,
        usage: UsageTracker,
    ) -> AsyncIterator[CanonicalEvent]:
        client = self._get_client()
        stream = await client.messages.create(**self._request_params(request))

        start_usage: Any = None
        async for event in stream:
            kind = getattr(event, "type", None)
            if kind == "message_start":
                message = event.message
                usage.message_id = message.id
                start_usage = message.usage
                usage.apply(from_anthropic(start_usage))
            elif kind == "content_block_delta":
                delta = event.delta
                if delta.type == "text_delta" and delta.text:
                    yield TextDelta(text=delta.text)
                elif delta.type == "thinking_delta" and delta.thinking:
                    yield ReasoningDelta(text=delta.thinking)
            elif kind == "message_delta":
                delta_usage = getattr(event, "usage", None)
                if delta_usage is not None:
                    # message_delta carries the cumulative output count
                    usage.apply(
                        from_anthropic(start_usage, output_tokens=delta_usage.output_tokens)
                    )
