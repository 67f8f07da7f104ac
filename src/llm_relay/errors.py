"""Error taxonomy for model dispatch and classification of provider SDK errors."""

from __future__ import annotations

import asyncio
from typing import Any

import anthropic
import httpx
import openai

# Status codes worth another attempt: request timeout, rate limiting and server errors.
TRANSIENT_STATUS_CODES = frozenset({408, 429})

_CONNECTION_ERRORS: tuple[type[BaseException], ...] = (
    openai.APIConnectionError,
    anthropic.APIConnectionError,
    httpx.TransportError,
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
)


class RelayError(Exception):
    """Base class for every error raised by the relay."""

    retryable = False


class ConfigurationError(RelayError):
    """Unknown model, missing credentials or an invalid attempt plan."""


class ProviderError(RelayError):
    """A provider call failed. Carries dispatch context for diagnosis."""

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        model: str,
        status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.status = status


class TransientProviderError(ProviderError):
    """Connection failures, timeouts and 5xx responses."""

    retryable = True


class TerminalProviderError(ProviderError):
    """Validation, auth and other 4xx failures. Never retried."""


class StreamError(ProviderError):
    """The stream failed after content had already reached the caller."""


class ProtocolError(RelayError):
    """A tool envelope could not be turned into a tool call."""

    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(message)
        self.tool_name = tool_name


def status_of(err: Any) -> int | None:
    """Best-effort HTTP status extraction from the various SDK error types."""
    for attr in ("status_code", "code", "status"):
        if isinstance(err, dict):
            value = err.get(attr)
        else:
            value = getattr(err, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(err, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int):
        return value
    return None


def build_provider_error_message(err: Any, provider: str, model: str) -> str:
    """Concise user-facing message with provider and model context."""
    if isinstance(err, BaseException):
        main = str(err) or type(err).__name__
    elif isinstance(err, str):
        main = err
    else:
        main = repr(err)
    status = status_of(err)
    status_part = f", status={status}" if status else ""
    return f"LLM request failed (provider={provider}, model={model}{status_part}): {main}"


def is_transient(err: Any) -> bool:
    if isinstance(err, _CONNECTION_ERRORS):
        return True
    status = status_of(err)
    if status is None:
        return False
    return status in TRANSIENT_STATUS_CODES or status >= 500


def classify_error(err: Any, *, provider: str, model: str) -> RelayError:
    """Wrap ``err`` in the transient or terminal provider error class.

    Errors that are already part of the taxonomy are returned unchanged.
    """
    if isinstance(err, RelayError):
        return err
    cls = TransientProviderError if is_transient(err) else TerminalProviderError
    return cls(
        build_provider_error_message(err, provider, model),
        provider=provider,
        model=model,
        status=status_of(err),
    )


__all__ = [
    "RelayError",
    "ConfigurationError",
    "ProviderError",
    "TransientProviderError",
    "TerminalProviderError",
    "StreamError",
    "ProtocolError",
    "TRANSIENT_STATUS_CODES",
    "status_of",
    "build_provider_error_message",
    "is_transient",
    "classify_error",
]
