"""Relay facade: streaming and non-streaming prompts over an attempt plan."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable

from .config import DEFAULT_RELAY_CONFIG, RelayConfig
from .cost import CostSink, LoggingCostSink
from .executor import RetryExecutor
from .live_inputs import LiveUserInputs
from .models import (
    AttemptConfig,
    CallContext,
    CanonicalEvent,
    Cancelled,
    Completed,
    Message,
    PromptOptions,
    ProviderRequest,
    UsageSummary,
)
from .plan import ModelSpec, normalize_plan
from .resolver import ProviderResolver, ResolvedModel
from .stream import NormalizedStream, ReasoningEnvelope

logger = logging.getLogger(__name__)

STOP_MARKER = "[END]"


class PromptStream:
    """
    Lazy, finite, non-restartable async iterator of text fragments.

    ``outcome`` is ``None`` until the iterator is exhausted, then ``Completed`` or
    ``Cancelled``. Errors propagate out of iteration. ``model`` is the logical id
    of the attempt that is answering, set once the first event has arrived, and
    ``usage`` is filled in when that attempt is recorded.
    """

    def __init__(self, source: Callable[["PromptStream"], AsyncIterator[str]]) -> None:
        self.outcome: Completed | Cancelled | None = None
        self.model: str | None = None
        self.usage: UsageSummary | None = None
        self._iterated = False
        self._fragments = source(self)

    def __aiter__(self) -> "PromptStream":
        if self._iterated:
            raise RuntimeError("PromptStream cannot be restarted")
        self._iterated = True
        return self

    async def __anext__(self) -> str:
        return await self._fragments.__anext__()

    async def aclose(self) -> None:
        await self._fragments.aclose()

    async def collect(self) -> Completed | Cancelled:
        """Drain the stream and return its outcome."""
        async for _ in self:
            pass
        if self.outcome is None:
            raise RuntimeError("PromptStream ended without an outcome")
        return self.outcome


class LLMRelay:
    """Sends prompts through the retry executor and normalizes what comes back."""

    def __init__(
        self,
        config: RelayConfig | None = None,
        *,
        resolver: ProviderResolver | None = None,
        live_inputs: LiveUserInputs | None = None,
        sink: CostSink | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or DEFAULT_RELAY_CONFIG
        self.resolver = resolver or ProviderResolver(self.config)
        self.live_inputs = live_inputs or LiveUserInputs(enabled=self.config.live_input_check)
        self.sink = sink or LoggingCostSink()
        self.executor = RetryExecutor(
            self.resolver,
            self.live_inputs,
            backoff_base_ms=self.config.backoff_base_ms,
            backoff_cap_ms=self.config.backoff_cap_ms,
            sleep=sleep,
        )
        self._clock = clock

    def _plan(self, model: ModelSpec | None) -> list[AttemptConfig]:
        plan = normalize_plan(
            model if model is not None else self.config.default_model,
            default_retries=self.config.default_retries,
        )
        for config in plan:
            self.resolver.validate(config.model)
        return plan

    def _open(
        self,
        resolved: ResolvedModel,
        messages: list[Message],
        context: CallContext,
        options: PromptOptions,
        *,
        replayable: bool,
    ) -> NormalizedStream:
        request = ProviderRequest(
            model=resolved.model,
            messages=messages,
            options=options,
            context=context,
        )
        return NormalizedStream(
            resolved,
            request,
            sink=self.sink,
            raise_on_stream_error=self.config.raise_on_stream_error,
            replayable=replayable,
            clock=self._clock,
        )

    def prompt_stream(
        self,
        messages: Iterable[Message],
        *,
        context: CallContext,
        model: ModelSpec | None = None,
        options: PromptOptions | None = None,
    ) -> PromptStream:
        """Stream text fragments. An invalid plan raises before anything is sent."""
        plan = self._plan(model)
        messages = list(messages)
        options = options or PromptOptions()

        async def attempt(
            resolved: ResolvedModel, config: AttemptConfig, attempt_no: int
        ) -> tuple[NormalizedStream, CanonicalEvent | None]:
            normalized = self._open(resolved, messages, context, options, replayable=False)
            # Pull the first event inside the executor so failures before any
            # content reaches the caller are still retried.
            first = await normalized.prime()
            return normalized, first

        async def fragments(stream: PromptStream) -> AsyncIterator[str]:
            result = await self.executor.run(plan, attempt, context=context)
            if isinstance(result, Cancelled):
                stream.outcome = result
                return

            normalized, first = result
            stream.model = normalized.resolved.model_id
            envelope = ReasoningEnvelope(enabled=self.config.render_reasoning)
            try:
                if first is not None:
                    for piece in envelope.feed(first):
                        if piece:
                            yield piece
                async for event in normalized:
                    for piece in envelope.feed(event):
                        if piece:
                            yield piece
            except GeneratorExit:
                # Consumer hung up; the provider call was still made
                await normalized.abandon()
                stream.usage = normalized.usage
                raise
            finally:
                await normalized.aclose()
            stream.usage = normalized.usage
            tail = envelope.close()
            if tail:
                yield tail
            stream.outcome = Completed(
                text=normalized.text,
                model=normalized.resolved.model_id,
                usage=normalized.usage,
            )

        return PromptStream(fragments)

    async def prompt(
        self,
        messages: Iterable[Message],
        *,
        context: CallContext,
        model: ModelSpec | None = None,
        options: PromptOptions | None = None,
    ) -> Completed | Cancelled:
        """Run a prompt to completion. Text deltas only; reasoning is not included."""
        plan = self._plan(model)
        messages = list(messages)
        options = options or PromptOptions()

        async def attempt(
            resolved: ResolvedModel, config: AttemptConfig, attempt_no: int
        ) -> Completed:
            normalized = self._open(resolved, messages, context, options, replayable=True)
            async for _ in normalized:
                pass
            return Completed(text=normalized.text, model=resolved.model_id, usage=normalized.usage)

        return await self.executor.run(plan, attempt, context=context)

    async def prompt_with_continuation(
        self,
        messages: Iterable[Message],
        *,
        context: CallContext,
        model: ModelSpec | None = None,
        options: PromptOptions | None = None,
        stop_marker: str = STOP_MARKER,
    ) -> Completed | Cancelled:
        """Collect streamed text until ``stop_marker`` shows up, then hang up."""
        stream = self.prompt_stream(messages, context=context, model=model, options=options)
        parts: list[str] = []
        try:
            async for piece in stream:
                parts.append(piece)
                if stop_marker in "".join(parts):
                    break
        finally:
            await stream.aclose()

        if isinstance(stream.outcome, Cancelled):
            return stream.outcome
        text = "".join(parts)
        if isinstance(stream.outcome, Completed):
            return Completed(text=text, model=stream.outcome.model, usage=stream.outcome.usage)
        # Hung up at the marker; the abandoned attempt has already been recorded
        logger.debug(
            "Stop marker reached",
            extra={"user_input_id": context.user_input_id, "model": stream.model},
        )
        return Completed(text=text, model=stream.model or "", usage=stream.usage or UsageSummary())


_default_relay: LLMRelay | None = None


def get_default_relay() -> LLMRelay:
    """Return the process-wide relay, built from the environment on first use."""
    global _default_relay
    if _default_relay is None:
        _default_relay = LLMRelay(RelayConfig.from_env())
    return _default_relay


def set_default_relay(relay: LLMRelay | None) -> None:
    """Replace the process-wide relay (``None`` resets it)."""
    global _default_relay
    _default_relay = relay


__all__ = [
    "STOP_MARKER",
    "PromptStream",
    "LLMRelay",
    "get_default_relay",
    "set_default_relay",
]
