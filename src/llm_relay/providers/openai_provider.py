"""OpenAI Chat Completions adapter."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from ..models import (
    CanonicalEvent,
    ErrorFrame,
    Message,
    ProviderRequest,
    ReasoningDelta,
    TextDelta,
    UsageSummary,
    UsageTracker,
)
from ..usage import from_openai
from .base import ProviderAdapter


class OpenAIProvider(ProviderAdapter):
    """OpenAI-backed adapter using the streaming Chat Completions API."""

    provider = "openai"
    dialect = "openai-chat"

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        default_headers: dict[str, str] | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.default_headers = dict(default_headers or {})
        self._client: AsyncOpenAI | None = None

    def _get_client(self) -> AsyncOpenAI:
        if not self._client:
            kwargs: dict[str, Any] = {"api_key": self.api_key}
            if self.base_url:
                kwargs["base_url"] = self.base_url
            if self.default_headers:
                kwargs["default_headers"] = self.default_headers
            self._client = AsyncOpenAI(**kwargs)
        return self._client

    @staticmethod
    def _to_openai_messages(messages: list[Message]) -> list[dict[str, Any]]:
        """Convert internal Message objects into OpenAI chat message dicts."""
        return [m.to_chat_dict() for m in messages]

    def _request_params(self, request: ProviderRequest) -> dict[str, Any]:
        opts = request.options
        params: dict[str, Any] = {
            "model": request.model,
            "messages": self._to_openai_messages(request.messages),
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if opts.max_tokens is not None:
            params["max_completion_tokens"] = opts.max_tokens
        if opts.temperature is not None:
            params["temperature"] = opts.temperature
        if opts.stop_sequences:
            params["stop"] = opts.stop_sequences
        if opts.timeout is not None:
            params["timeout"] = opts.timeout
        return params

    def _usage(self, usage: Any) -> UsageSummary:
        return from_openai(usage)

    async def stream(
        self,
        request: ProviderRequest,
        usage: UsageTracker,
    ) -> AsyncIterator[CanonicalEvent]:
        client = self._get_client()
        stream = await client.chat.completions.create(**self._request_params(request))

        async for chunk in stream:
            if usage.message_id is None and getattr(chunk, "id", None):
                usage.message_id = chunk.id
            chunk_usage = getattr(chunk, "usage", None)
            if chunk_usage:
                usage.apply(self._usage(chunk_usage))

            # OpenAI-compatible routers report upstream failures inside the stream
            error = getattr(chunk, "error", None)
            if error:
                yield ErrorFrame(cause=error)
                continue

            if not chunk.choices:
                continue
            choice = chunk.choices[0]
            delta = getattr(choice, "delta", None)
            if delta is not None:
                reasoning = getattr(delta, "reasoning", None) or getattr(
                    delta, "reasoning_content", None
                )
                if reasoning:
                    yield ReasoningDelta(text=reasoning)
                if getattr(delta, "content", None):
                    yield TextDelta(text=delta.content)

            if getattr(choice, "finish_reason", None) == "error":
                yield ErrorFrame(cause=f"{self.provider} stream finished with an error")
