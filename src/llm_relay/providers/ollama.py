"""Ollama adapter for locally served models."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from ollama import AsyncClient

from ..models import (
    CanonicalEvent,
    Message,
    ProviderRequest,
    ReasoningDelta,
    TextDelta,
    UsageTracker,
)
from ..usage import from_ollama
from .base import ProviderAdapter


def _message_to_chat(m: Message) -> dict[str, Any]:
    """Convert our Message to Ollama chat format."""
    out: dict[str, Any] = {"role": m.role, "content": m.content or ""}
    if m.name:
        out["name"] = m.name
    return out


class OllamaProvider(ProviderAdapter):
    """Ollama-backed adapter."""

    provider = "ollama"
    dialect = "ollama-chat"

    def __init__(self, base_url: str = "http://localhost:11434") -> None:
        self.base_url = base_url
        self._client: AsyncClient | None = None

    def _get_client(self) -> AsyncClient:
        if not self._client:
            self._client = AsyncClient(host=self.base_url)
        return self._client

    @staticmethod
    def _options(request: ProviderRequest) -> dict[str, Any]:
        opts = request.options
        out: dict[str, Any] = {}
        if opts.max_tokens is not None:
            out["num_predict"] = opts.max_tokens
        if opts.temperature is not None:
            out["temperature"] = opts.temperature
        if opts.stop_sequences:
            out["stop"] = opts.stop_sequences
        return out

    async def stream(
        self,
        request: ProviderRequest,
        usage: UsageTracker,
    ) -> AsyncIterator[CanonicalEvent]:
        client = self._get_client()
        kwargs: dict[str, Any] = {
            "model": request.model,
            "messages": [_message_to_chat(m) for m in request.messages],
            "stream": True,
        }
        options = self._options(request)
        if options:
            kwargs["options"] = options
        if request.options.thinking_budget:
            kwargs["think"] = True

        stream = await client.chat(**kwargs)
        async for chunk in stream:
            msg = getattr(chunk, "message", None)
            if msg is not None:
                thinking = getattr(msg, "thinking", None)
                if thinking:
                    yield ReasoningDelta(text=thinking)
                content = getattr(msg, "content", None)
                if content:
                    yield TextDelta(text=content)
            if getattr(chunk, "done", False):
                usage.apply(from_ollama(chunk))
