"""Cost accounting hand-off: message records, pricing and the sink interface."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from .models import UsageSummary

logger = logging.getLogger(__name__)

# Dollars per million tokens, keyed by provider-native model name.
TOKENS_COST_PER_M: dict[str, dict[str, float]] = {
    "input": {
        "claude-sonnet-4-20250514": 3.0,
        "claude-opus-4-20250514": 15.0,
        "claude-3-5-haiku-20241022": 0.8,
        "gpt-4o": 2.5,
        "gpt-4o-mini": 0.15,
        "gpt-4.1": 2.0,
        "gpt-4.1-nano": 0.1,
        "o3-mini": 1.1,
        "gemini-2.5-flash": 0.3,
        "gemini-2.5-pro": 1.25,
    },
    "output": {
        "claude-sonnet-4-20250514": 15.0,
        "claude-opus-4-20250514": 75.0,
        "claude-3-5-haiku-20241022": 4.0,
        "gpt-4o": 10.0,
        "gpt-4o-mini": 0.6,
        "gpt-4.1": 8.0,
        "gpt-4.1-nano": 0.4,
        "o3-mini": 4.4,
        "gemini-2.5-flash": 2.5,
        "gemini-2.5-pro": 10.0,
    },
    "cache_creation": {
        "claude-sonnet-4-20250514": 3.75,
        "claude-opus-4-20250514": 18.75,
        "claude-3-5-haiku-20241022": 1.0,
    },
    "cache_read": {
        "claude-sonnet-4-20250514": 0.3,
        "claude-opus-4-20250514": 1.5,
        "claude-3-5-haiku-20241022": 0.08,
        "gpt-4o": 1.25,
        "gpt-4o-mini": 0.075,
        "gpt-4.1": 0.5,
        "gpt-4.1-nano": 0.025,
        "o3-mini": 0.55,
        "gemini-2.5-flash": 0.075,
        "gemini-2.5-pro": 0.31,
    },
}


def _per_token(model: str, kind: str) -> float:
    name = model.split(":", 1)[-1]
    return TOKENS_COST_PER_M[kind].get(name, 0.0) / 1_000_000


def calc_cost(model: str, usage: UsageSummary) -> float:
    """Dollar cost of one call. A provider-reported cost always wins."""
    if usage.cost_override is not None:
        return usage.cost_override
    return (
        usage.input_tokens * _per_token(model, "input")
        + usage.output_tokens * _per_token(model, "output")
        + usage.cache_creation_tokens * _per_token(model, "cache_creation")
        + usage.cache_read_tokens * _per_token(model, "cache_read")
    )


@dataclass(frozen=True)
class MessageRecord:
    """Everything the billing side needs to know about one completed attempt."""

    message_id: str
    user_id: str | None
    client_session_id: str
    fingerprint_id: str
    user_input_id: str
    model: str  # logical identifier as requested
    provider_model: str  # "provider:native-name", used for pricing
    request: str  # JSON-serialized messages
    response: str
    input_tokens: int
    output_tokens: int
    cache_read_tokens: int
    cache_creation_tokens: int
    finished_at: datetime
    latency_ms: int
    charge_user: bool = True
    cost_override: float | None = None
    partial: bool = False  # consumer hung up before the provider finished

    @property
    def usage(self) -> UsageSummary:
        return UsageSummary(
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            cache_read_tokens=self.cache_read_tokens,
            cache_creation_tokens=self.cache_creation_tokens,
            cost_override=self.cost_override,
        )


class CostSink(ABC):
    """Receives one record per completed attempt. Failures never reach the caller."""

    @abstractmethod
    async def record(self, record: MessageRecord) -> None:
        ...


class LoggingCostSink(CostSink):
    """Default sink: logs the priced record."""

    async def record(self, record: MessageRecord) -> None:
        cost = calc_cost(record.provider_model, record.usage)
        logger.info(
            "Message usage recorded",
            extra={
                "message_id": record.message_id,
                "user_id": record.user_id,
                "model": record.model,
                "provider_model": record.provider_model,
                "input_tokens": record.input_tokens,
                "output_tokens": record.output_tokens,
                "cache_read_tokens": record.cache_read_tokens,
                "cache_creation_tokens": record.cache_creation_tokens,
                "latency_ms": record.latency_ms,
                "cost_usd": round(cost, 6),
                "charge_user": record.charge_user,
                "partial": record.partial,
            },
        )


__all__ = [
    "TOKENS_COST_PER_M",
    "calc_cost",
    "MessageRecord",
    "CostSink",
    "LoggingCostSink",
]
