"""Retry and fallback across an ordered attempt plan."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from .config import DEFAULT_BACKOFF_BASE_MS, DEFAULT_BACKOFF_CAP_MS
from .errors import RelayError, classify_error
from .live_inputs import LiveUserInputs
from .models import AttemptConfig, CallContext, Cancelled
from .resolver import ProviderResolver, ResolvedModel

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (resolved model, config, attempt number within that config) -> result
AttemptFn = Callable[[ResolvedModel, AttemptConfig, int], Awaitable[T]]


def backoff_delay_ms(
    attempt: int,
    base_ms: int = DEFAULT_BACKOFF_BASE_MS,
    cap_ms: int = DEFAULT_BACKOFF_CAP_MS,
) -> int:
    """Delay before retrying after failed attempt number ``attempt`` (0-based)."""
    return min(base_ms * (2**attempt), cap_ms)


class RetryExecutor:
    """
    Drives an attempt plan.

    Configs are tried strictly in order. Each config gets ``1 + retries`` attempts
    with exponential backoff between them; once those are used up on retryable
    errors the next config is tried. Non-retryable errors surface immediately.
    The live-input gate is consulted before every attempt, so a cancelled request
    stops at the next attempt boundary without any further provider call.
    """

    def __init__(
        self,
        resolver: ProviderResolver,
        live_inputs: LiveUserInputs,
        *,
        backoff_base_ms: int = DEFAULT_BACKOFF_BASE_MS,
        backoff_cap_ms: int = DEFAULT_BACKOFF_CAP_MS,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._resolver = resolver
        self._live_inputs = live_inputs
        self._backoff_base_ms = backoff_base_ms
        self._backoff_cap_ms = backoff_cap_ms
        self._sleep = sleep

    async def run(
        self,
        plan: Sequence[AttemptConfig],
        attempt: AttemptFn[T],
        *,
        context: CallContext,
    ) -> T | Cancelled:
        last_error: RelayError | None = None

        for index, config in enumerate(plan):
            for attempt_no in range(config.retries + 1):
                if not self._live_inputs.check_live_user_input(
                    context.user_id, context.user_input_id
                ):
                    logger.info(
                        "Skipping request due to canceled user input",
                        extra={
                            "user_id": context.user_id,
                            "user_input_id": context.user_input_id,
                            "live_user_input_ids": self._live_inputs.get_live_user_input_ids(
                                context.user_id
                            ),
                        },
                    )
                    return Cancelled(user_id=context.user_id, user_input_id=context.user_input_id)

                resolved = self._resolver.resolve(config.model, scope=context.fingerprint_id)
                try:
                    return await attempt(resolved, config, attempt_no)
                except Exception as exc:
                    error = classify_error(exc, provider=resolved.provider, model=config.model)
                    if error is not exc:
                        error.__cause__ = exc
                    log_extra = {
                        "provider": resolved.provider,
                        "model": config.model,
                        "attempt": attempt_no,
                        "user_input_id": context.user_input_id,
                        "error": str(error),
                    }
                    if not error.retryable:
                        logger.error("LLM request failed", extra=log_extra)
                        raise error

                    last_error = error
                    if attempt_no < config.retries:
                        delay_ms = backoff_delay_ms(
                            attempt_no, self._backoff_base_ms, self._backoff_cap_ms
                        )
                        logger.warning(
                            "Retryable error from %s, retrying in %dms",
                            resolved.provider,
                            delay_ms,
                            extra={**log_extra, "delay_ms": delay_ms},
                        )
                        await self._sleep(delay_ms / 1000)
                    elif index + 1 < len(plan):
                        logger.warning(
                            "Retries exhausted for %s, falling back to %s",
                            config.model,
                            plan[index + 1].model,
                            extra=log_extra,
                        )

        logger.error(
            "All models in the attempt plan failed",
            extra={
                "models": [c.model for c in plan],
                "user_input_id": context.user_input_id,
                "error": str(last_error),
            },
        )
        if last_error is None:
            # Only reachable with an empty plan, which normalize_plan rejects
            raise RuntimeError("attempt plan was empty")
        raise last_error


__all__ = ["AttemptFn", "RetryExecutor", "backoff_delay_ms"]
