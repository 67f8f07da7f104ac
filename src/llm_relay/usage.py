"""Unify the usage shapes reported by each provider family into one UsageSummary.

Providers disagree on whether cached prompt tokens are part of the prompt count:

- Anthropic reports ``input_tokens`` with cache reads and cache writes already split out.
- OpenAI, OpenRouter and Gemini report a total prompt count plus a cached subset.

Every function here returns ``input_tokens`` with cache reads removed, so cached
tokens are only ever counted once, in ``cache_read_tokens``.
"""

from __future__ import annotations

from typing import Any

from .models import UsageSummary


def _get(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    return 0


def _float(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def from_anthropic(start_usage: Any, output_tokens: int | None = None) -> UsageSummary:
    """``start_usage`` is the usage block of ``message_start``.

    ``output_tokens`` is the cumulative count from the last ``message_delta``.
    """
    out = _int(_get(start_usage, "output_tokens")) if output_tokens is None else output_tokens
    return UsageSummary(
        input_tokens=_int(_get(start_usage, "input_tokens")),
        output_tokens=out,
        cache_read_tokens=_int(_get(start_usage, "cache_read_input_tokens")),
        cache_creation_tokens=_int(_get(start_usage, "cache_creation_input_tokens")),
    )


def from_openai(usage: Any) -> UsageSummary:
    prompt_tokens = _int(_get(usage, "prompt_tokens"))
    cached = _int(_get(_get(usage, "prompt_tokens_details"), "cached_tokens"))
    return UsageSummary(
        input_tokens=max(prompt_tokens - cached, 0),
        output_tokens=_int(_get(usage, "completion_tokens")),
        cache_read_tokens=cached,
    )


def from_openrouter(usage: Any) -> UsageSummary:
    """OpenRouter usage accounting: OpenAI counters plus a dollar cost.

    The upstream inference cost is billed on top of OpenRouter's own cost when the
    request was routed with a user-provided key.
    """
    base = from_openai(usage)
    cost = _float(_get(usage, "cost"))
    upstream = _float(_get(_get(usage, "cost_details"), "upstream_inference_cost"))
    cost_override = None
    if cost is not None or upstream is not None:
        cost_override = (cost or 0.0) + (upstream or 0.0)
    return UsageSummary(
        input_tokens=base.input_tokens,
        output_tokens=base.output_tokens,
        cache_read_tokens=base.cache_read_tokens,
        cost_override=cost_override,
    )


def from_gemini(usage_metadata: Any) -> UsageSummary:
    prompt_tokens = _int(_get(usage_metadata, "prompt_token_count"))
    cached = _int(_get(usage_metadata, "cached_content_token_count"))
    output = _int(_get(usage_metadata, "candidates_token_count")) + _int(
        _get(usage_metadata, "thoughts_token_count")
    )
    return UsageSummary(
        input_tokens=max(prompt_tokens - cached, 0),
        output_tokens=output,
        cache_read_tokens=cached,
    )


def from_ollama(final_chunk: Any) -> UsageSummary:
    return UsageSummary(
        input_tokens=_int(_get(final_chunk, "prompt_eval_count")),
        output_tokens=_int(_get(final_chunk, "eval_count")),
    )


__all__ = [
    "from_anthropic",
    "from_openai",
    "from_openrouter",
    "from_gemini",
    "from_ollama",
]
