"""Per-attempt stream normalization: error frames, usage and the cost hand-off."""

from __future__ import annotations

import json
import logging
import time
import uuid
from collections.abc import AsyncIterator, Callable
from datetime import datetime, timezone

from tool_protocol.markers import THINK_DEEPLY_TOOL, close_marker, open_marker

from .cost import CostSink, MessageRecord
from .errors import StreamError, build_provider_error_message, classify_error, status_of
from .models import (
    CanonicalEvent,
    ErrorFrame,
    ProviderRequest,
    ReasoningDelta,
    TextDelta,
    UsageSummary,
    UsageTracker,
)
from .resolver import ResolvedModel

logger = logging.getLogger(__name__)


class NormalizedStream:
    """
    Wraps one adapter stream for a single attempt.

    Yields ``TextDelta`` and ``ReasoningDelta`` events. ``ErrorFrame`` events never
    reach the caller: in strict mode they end the stream with an error, otherwise
    they are logged and skipped. Once the adapter stream is exhausted the usage is
    finalized and exactly one ``MessageRecord`` is handed to the sink. A stream
    the consumer stops reading is recorded through ``abandon`` instead.

    Failures before the first emitted event (or at any point when ``replayable``
    is set, i.e. nothing has been forwarded to a live consumer) are classified so
    the executor can retry them. Failures after content has been forwarded raise
    ``StreamError``, which is never retried.
    """

    def __init__(
        self,
        resolved: ResolvedModel,
        request: ProviderRequest,
        *,
        sink: CostSink,
        raise_on_stream_error: bool = True,
        replayable: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.resolved = resolved
        self.request = request
        self.usage_tracker = UsageTracker()
        self.usage: UsageSummary | None = None
        self.record: MessageRecord | None = None
        self._sink = sink
        self._strict = raise_on_stream_error
        self._replayable = replayable
        self._clock = clock
        self._started = clock()
        self._text_parts: list[str] = []
        self._emitted = 0
        self._finished = False
        self._events = self._run()

    @property
    def text(self) -> str:
        return "".join(self._text_parts)

    @property
    def emitted(self) -> int:
        return self._emitted

    @property
    def finished(self) -> bool:
        return self._finished

    def __aiter__(self) -> "NormalizedStream":
        return self

    async def __anext__(self) -> CanonicalEvent:
        return await self._events.__anext__()

    async def prime(self) -> CanonicalEvent | None:
        """Pull the first event, or ``None`` if the stream ended without one."""
        try:
            return await self.__anext__()
        except StopAsyncIteration:
            return None

    async def aclose(self) -> None:
        await self._events.aclose()

    async def abandon(self) -> None:
        """
        Close the stream on behalf of a consumer that stopped reading, and record
        what was produced so far. Usage is whatever the provider reported before
        the hang-up.
        """
        await self.aclose()
        await self._finish(partial=True)

    async def _run(self) -> AsyncIterator[CanonicalEvent]:
        logger.debug(
            "LLM stream start",
            extra={
                "provider": self.resolved.provider,
                "model": self.resolved.model,
                "user_input_id": self.request.context.user_input_id,
            },
        )
        events = self.resolved.adapter.stream(self.request, self.usage_tracker)
        try:
            async for event in events:
                if isinstance(event, ErrorFrame):
                    self._on_error_frame(event)
                    continue
                if isinstance(event, TextDelta):
                    self._text_parts.append(event.text)
                self._emitted += 1
                yield event
        except StreamError:
            raise
        except Exception as exc:
            error = self._wrap(exc)
            if error is exc:
                raise
            raise error from exc
        finally:
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()

        await self._finish()

    def _after_content(self) -> bool:
        return self._emitted > 0 and not self._replayable

    def _wrap(self, cause: object) -> Exception:
        provider, model = self.resolved.provider, self.resolved.model_id
        if self._after_content():
            return StreamError(
                build_provider_error_message(cause, provider, model),
                provider=provider,
                model=model,
                status=status_of(cause),
            )
        return classify_error(cause, provider=provider, model=model)

    def _on_error_frame(self, frame: ErrorFrame) -> None:
        logger.error(
            "Error frame in LLM stream",
            extra={
                "provider": self.resolved.provider,
                "model": self.resolved.model_id,
                "user_input_id": self.request.context.user_input_id,
                "error": str(frame.cause),
            },
        )
        if self._strict:
            raise self._wrap(frame.cause)

    async def _finish(self, partial: bool = False) -> None:
        if self._finished:
            return
        self._finished = True
        self.usage = self.usage_tracker.finalize()
        latency_ms = int((self._clock() - self._started) * 1000)
        ctx = self.request.context
        self.record = MessageRecord(
            message_id=self.usage_tracker.message_id or uuid.uuid4().hex,
            user_id=ctx.user_id,
            client_session_id=ctx.client_session_id,
            fingerprint_id=ctx.fingerprint_id,
            user_input_id=ctx.user_input_id,
            model=self.resolved.model_id,
            provider_model=f"{self.resolved.provider}:{self.resolved.model}",
            request=json.dumps([m.model_dump(exclude_none=True) for m in self.request.messages]),
            response=self.text,
            input_tokens=self.usage.input_tokens,
            output_tokens=self.usage.output_tokens,
            cache_read_tokens=self.usage.cache_read_tokens,
            cache_creation_tokens=self.usage.cache_creation_tokens,
            finished_at=datetime.now(timezone.utc),
            latency_ms=latency_ms,
            charge_user=ctx.charge_user,
            cost_override=self.usage.cost_override,
            partial=partial,
        )
        try:
            await self._sink.record(self.record)
        except Exception:
            logger.exception(
                "Failed to save message",
                extra={"message_id": self.record.message_id, "model": self.record.model},
            )
        logger.debug(
            "LLM stream finished",
            extra={
                "model": self.resolved.model_id,
                "latency_ms": latency_ms,
                "input_tokens": self.usage.input_tokens,
                "output_tokens": self.usage.output_tokens,
                "partial": partial,
            },
        )


class ReasoningEnvelope:
    """
    Renders canonical events as plain text for callers that want one string stream.

    Reasoning is wrapped in a ``think_deeply`` tool envelope whose payload is the
    JSON-escaped thought, so it survives the tag parser as a regular tool call.
    """

    def __init__(self, enabled: bool = True, tool_name: str = THINK_DEEPLY_TOOL) -> None:
        self._enabled = enabled
        self._open_text = f'{open_marker(tool_name)}\n{{"thought": "'
        self._close_text = f'"}}\n{close_marker(tool_name)}\n\n'
        self._in_reasoning = False

    def feed(self, event: CanonicalEvent) -> list[str]:
        out: list[str] = []
        if isinstance(event, ReasoningDelta):
            if not self._enabled:
                return out
            if not self._in_reasoning:
                self._in_reasoning = True
                out.append(self._open_text)
            # json.dumps escapes the thought; strip the surrounding quotes
            out.append(json.dumps(event.text)[1:-1])
        elif isinstance(event, TextDelta):
            if self._in_reasoning:
                self._in_reasoning = False
                out.append(self._close_text)
            out.append(event.text)
        return out

    def close(self) -> str:
        """Close a reasoning envelope left open at end of stream."""
        if self._in_reasoning:
            self._in_reasoning = False
            return self._close_text
        return ""


__all__ = ["NormalizedStream", "ReasoningEnvelope"]
