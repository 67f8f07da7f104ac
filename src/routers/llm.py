"""LLM router: streaming and non-streaming prompt endpoints plus input cancellation."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from llm_relay import (
    AttemptConfig,
    CallContext,
    Cancelled,
    ConfigurationError,
    LLMRelay,
    Message,
    PromptOptions,
    RelayError,
    get_default_relay,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["llm"])


class PromptRequest(BaseModel):
    """Request body for POST /llm/stream and POST /llm/complete."""

    user_id: str = Field(..., description="User identifier")
    user_input_id: str = Field(..., description="Root request id, used for cancellation")
    client_session_id: str = Field(..., description="Client session identifier")
    fingerprint_id: str = Field(..., description="Client fingerprint, used for usage attribution")
    messages: list[Message] = Field(..., min_length=1)
    model: str | list[AttemptConfig] | None = Field(
        None,
        description=(
            "Model in 'provider:model' format (e.g. 'openai:gpt-4o-mini') or an ordered "
            "fallback list of {model, retries}. Defaults to RELAY_DEFAULT_MODEL."
        ),
    )
    max_tokens: int | None = None
    temperature: float | None = None
    stop_sequences: list[str] | None = None
    charge_user: bool = True

    def context(self) -> CallContext:
        return CallContext(
            client_session_id=self.client_session_id,
            fingerprint_id=self.fingerprint_id,
            user_input_id=self.user_input_id,
            user_id=self.user_id,
            charge_user=self.charge_user,
        )

    def options(self) -> PromptOptions:
        return PromptOptions(
            stop_sequences=self.stop_sequences,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )


class CompleteResponse(BaseModel):
    """Response for POST /llm/complete."""

    text: str = ""
    model: str | None = None
    cancelled: bool = False


class CancelRequest(BaseModel):
    user_id: str
    user_input_id: str


class CancelResponse(BaseModel):
    user_id: str
    user_input_id: str
    live_user_input_ids: list[str] = Field(default_factory=list)


@router.post("/llm/stream")
async def stream(request: PromptRequest, relay: LLMRelay = Depends(get_default_relay)) -> StreamingResponse:
    """Stream the response as plain text. The input stays live until the stream ends."""
    try:
        prompt_stream = relay.prompt_stream(
            request.messages,
            context=request.context(),
            model=request.model,
            options=request.options(),
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    async def body() -> AsyncIterator[str]:
        # The input is live only while the body is being sent
        relay.live_inputs.start_user_input(request.user_id, request.user_input_id)
        try:
            async for piece in prompt_stream:
                yield piece
        except RelayError:
            # Status line is already sent; the truncated body is the signal
            logger.exception("Stream failed", extra={"user_input_id": request.user_input_id})
        finally:
            relay.live_inputs.end_user_input(request.user_id, request.user_input_id)
            await prompt_stream.aclose()

    return StreamingResponse(body(), media_type="text/plain; charset=utf-8")


@router.post("/llm/complete", response_model=CompleteResponse)
async def complete(request: PromptRequest, relay: LLMRelay = Depends(get_default_relay)) -> CompleteResponse:
    """Run the prompt to completion and return the text."""
    relay.live_inputs.start_user_input(request.user_id, request.user_input_id)
    try:
        outcome = await relay.prompt(
            request.messages,
            context=request.context(),
            model=request.model,
            options=request.options(),
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except RelayError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    finally:
        relay.live_inputs.end_user_input(request.user_id, request.user_input_id)

    if isinstance(outcome, Cancelled):
        return CompleteResponse(cancelled=True)
    return CompleteResponse(text=outcome.text, model=outcome.model)


@router.post("/inputs/cancel", response_model=CancelResponse)
async def cancel(request: CancelRequest, relay: LLMRelay = Depends(get_default_relay)) -> CancelResponse:
    """End a live user input. Its in-flight calls stop at their next attempt boundary."""
    relay.live_inputs.end_user_input(request.user_id, request.user_input_id)
    return CancelResponse(
        user_id=request.user_id,
        user_input_id=request.user_input_id,
        live_user_input_ids=relay.live_inputs.get_live_user_input_ids(request.user_id) or [],
    )
