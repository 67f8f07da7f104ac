"""Google Gemini adapter built on the google-genai SDK."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from google import genai
from google.genai import types as genai_types

from ..models import (
    CanonicalEvent,
    ErrorFrame,
    Message,
    ProviderRequest,
    ReasoningDelta,
    TextDelta,
    UsageTracker,
)
from ..usage import from_gemini
from .base import ProviderAdapter


class GeminiProvider(ProviderAdapter):
    """Gemini provider using the google-genai SDK."""

    provider = "gemini"
    dialect = "gemini-generate"

    def __init__(self, api_key: str) -> None:
        self.api_key = api_key
        self._client: genai.Client | None = None

    def _get_client(self) -> genai.Client:
        if not self._client:
            self._client = genai.Client(
                api_key=self.api_key,
                http_options={"api_version": "v1beta"},
            )
        return self._client

    @staticmethod
    def _to_gemini_contents(
        messages: list[Message],
    ) -> tuple[list[genai_types.Content], str | None]:
        """Convert internal Message objects into Gemini contents and system instruction."""
        contents: list[genai_types.Content] = []
        system_parts: list[str] = []

        for m in messages:
            if m.role == "system":
                if (m.content or "").strip():
                    system_parts.append(m.content.strip())
                continue
            role = "model" if m.role == "assistant" else "user"
            if m.content:
                contents.append(
                    genai_types.Content(role=role, parts=[genai_types.Part(text=m.content)])
                )

        return contents, "\n\n".join(system_parts) or None

    @staticmethod
    def _generate_config(request: ProviderRequest, system: str | None) -> genai_types.GenerateContentConfig:
        opts = request.options
        config_args: dict[str, Any] = {}
        if system:
            config_args["system_instruction"] = system
        if opts.max_tokens is not None:
            config_args["max_output_tokens"] = opts.max_tokens
        if opts.temperature is not None:
            config_args["temperature"] = opts.temperature
        if opts.stop_sequences:
            config_args["stop_sequences"] = opts.stop_sequences
        if opts.thinking_budget:
            config_args["thinking_config"] = genai_types.ThinkingConfig(
                thinking_budget=opts.thinking_budget,
                include_thoughts=True,
            )
        return genai_types.GenerateContentConfig(**config_args)

    async def stream(
        self,
        request: ProviderRequest,
        usage: UsageTracker,
    ) -> AsyncIterator[CanonicalEvent]:
        client = self._get_client()
        contents, system_instruction = self._to_gemini_contents(request.messages)
        stream = await client.aio.models.generate_content_stream(
            model=request.model,
            contents=contents,
            config=self._generate_config(request, system_instruction),
        )

        async for chunk in stream:
            if usage.message_id is None and getattr(chunk, "response_id", None):
                usage.message_id = chunk.response_id
            metadata = getattr(chunk, "usage_metadata", None)
            if metadata is not None:
                usage.apply(from_gemini(metadata))

            feedback = getattr(chunk, "prompt_feedback", None)
            block_reason = getattr(feedback, "block_reason", None)
            if block_reason:
                yield ErrorFrame(cause=f"prompt blocked: {block_reason}")
                continue

            for cand in getattr(chunk, "candidates", None) or []:
                content = getattr(cand, "content", None)
                for part in getattr(content, "parts", None) or []:
                    text = getattr(part, "text", None)
                    if not text:
                        continue
                    if getattr(part, "thought", False):
                        yield ReasoningDelta(text=text)
                    else:
                        yield TextDelta(text=text)
