"""Data models for messages, attempt plans, stream events and usage."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class Message(BaseModel):
    """A single message in a conversation."""

    role: str  # "system" | "user" | "assistant" | "tool"
    content: str = ""
    tool_call_id: str | None = None
    name: str | None = None

    def to_chat_dict(self) -> dict[str, Any]:
        """Format for OpenAI-style chat APIs."""
        out: dict[str, Any] = {"role": self.role, "content": self.content or ""}
        if self.tool_call_id is not None:
            out["tool_call_id"] = self.tool_call_id
        if self.name is not None:
            out["name"] = self.name
        return out


# ---------------------------------------------------------------------------
# Attempt plan
# ---------------------------------------------------------------------------


class AttemptConfig(BaseModel):
    """One entry of an attempt plan: a model and how often to retry it."""

    model: str = Field(..., min_length=1, description="Logical model identifier")
    retries: int = Field(0, ge=0, description="Retries after the first attempt")


# ---------------------------------------------------------------------------
# Per-call context and options
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CallContext:
    """Identifiers carried by one call, used for cancellation and usage attribution."""

    client_session_id: str
    fingerprint_id: str
    user_input_id: str
    user_id: str | None = None
    charge_user: bool = True


@dataclass
class PromptOptions:
    """Optional per-call overrides."""

    stop_sequences: list[str] | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    timeout: float | None = None
    thinking_budget: int | None = None


@dataclass
class ProviderRequest:
    """Everything an adapter needs to open one stream."""

    model: str  # provider-native model name
    messages: list[Message]
    options: PromptOptions
    context: CallContext


# ---------------------------------------------------------------------------
# Canonical stream events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ReasoningDelta:
    text: str


@dataclass(frozen=True)
class ErrorFrame:
    """An error reported by the provider inside an otherwise open stream."""

    cause: Any


CanonicalEvent = Union[TextDelta, ReasoningDelta, ErrorFrame]


# ---------------------------------------------------------------------------
# Usage
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UsageSummary:
    """Token accounting for one completed attempt.

    ``input_tokens`` never includes cache-read tokens; those are only counted in
    ``cache_read_tokens``. ``cost_override`` is a provider-reported dollar cost and
    takes precedence over token pricing when set.
    """

    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_creation_tokens: int = 0
    cost_override: float | None = None


@dataclass
class UsageTracker:
    """Mutable usage collected by an adapter while its stream is running."""

    message_id: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_creation_tokens: int = 0
    cost_override: float | None = None

    def apply(self, summary: UsageSummary) -> None:
        """Replace the counters with a summary reported by the provider."""
        self.input_tokens = summary.input_tokens
        self.output_tokens = summary.output_tokens
        self.cache_read_tokens = summary.cache_read_tokens
        self.cache_creation_tokens = summary.cache_creation_tokens
        if summary.cost_override is not None:
            self.cost_override = summary.cost_override

    def finalize(self) -> UsageSummary:
        return UsageSummary(
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            cache_read_tokens=self.cache_read_tokens,
            cache_creation_tokens=self.cache_creation_tokens,
            cost_override=self.cost_override,
        )


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Completed:
    """A call that produced a full response."""

    text: str
    model: str
    usage: UsageSummary = field(default_factory=UsageSummary)


@dataclass(frozen=True)
class Cancelled:
    """A call abandoned because its root user input is no longer live."""

    user_id: str | None
    user_input_id: str


__all__ = [
    "Message",
    "AttemptConfig",
    "CallContext",
    "PromptOptions",
    "ProviderRequest",
    "TextDelta",
    "ReasoningDelta",
    "ErrorFrame",
    "CanonicalEvent",
    "UsageSummary",
    "UsageTracker",
    "Completed",
    "Cancelled",
]
