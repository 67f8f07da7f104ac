"""Reliable LLM dispatch: attempt plans, provider adapters, canonical streams and usage."""

from .config import DEFAULT_RELAY_CONFIG, RelayConfig
from .core import LLMRelay, PromptStream, get_default_relay, set_default_relay
from .cost import CostSink, LoggingCostSink, MessageRecord, calc_cost
from .errors import (
    ConfigurationError,
    ProtocolError,
    ProviderError,
    RelayError,
    StreamError,
    TerminalProviderError,
    TransientProviderError,
)
from .live_inputs import LiveUserInputs
from .models import (
    AttemptConfig,
    CallContext,
    Cancelled,
    Completed,
    ErrorFrame,
    Message,
    PromptOptions,
    ReasoningDelta,
    TextDelta,
    UsageSummary,
)
from .plan import normalize_plan

__all__ = [
    "RelayConfig",
    "DEFAULT_RELAY_CONFIG",
    "LLMRelay",
    "PromptStream",
    "get_default_relay",
    "set_default_relay",
    "CostSink",
    "LoggingCostSink",
    "MessageRecord",
    "calc_cost",
    "RelayError",
    "ConfigurationError",
    "ProviderError",
    "TransientProviderError",
    "TerminalProviderError",
    "StreamError",
    "ProtocolError",
    "LiveUserInputs",
    "Message",
    "AttemptConfig",
    "CallContext",
    "PromptOptions",
    "TextDelta",
    "ReasoningDelta",
    "ErrorFrame",
    "UsageSummary",
    "Completed",
    "Cancelled",
    "normalize_plan",
]
