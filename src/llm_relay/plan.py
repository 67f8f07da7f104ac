"""Normalize the accepted model specifications into an ordered attempt plan."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Union

from pydantic import ValidationError

from .errors import ConfigurationError
from .models import AttemptConfig

ModelSpec = Union[str, AttemptConfig, Mapping[str, Any], Sequence[Union[str, AttemptConfig, Mapping[str, Any]]]]


def _to_config(item: Any, default_retries: int) -> AttemptConfig:
    if isinstance(item, AttemptConfig):
        return item
    if isinstance(item, str):
        return AttemptConfig(model=item, retries=default_retries)
    if isinstance(item, Mapping):
        data = dict(item)
        if data.get("retries") is None:
            data["retries"] = default_retries
        return AttemptConfig(**data)
    raise ConfigurationError(f"Unsupported model configuration: {item!r}")


def normalize_plan(spec: ModelSpec, *, default_retries: int = 0) -> list[AttemptConfig]:
    """
    Accept a model id, a single ``{model, retries}`` config, or an ordered list of
    either, and return a non-empty list of ``AttemptConfig``.

    A missing ``retries`` falls back to ``default_retries``.
    """
    if isinstance(spec, (str, AttemptConfig, Mapping)):
        items: list[Any] = [spec]
    elif isinstance(spec, Sequence):
        items = list(spec)
    else:
        raise ConfigurationError(f"Unsupported model configuration: {spec!r}")

    if not items:
        raise ConfigurationError("Attempt plan must contain at least one model")

    try:
        return [_to_config(item, default_retries) for item in items]
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid attempt plan: {exc}") from exc


__all__ = ["ModelSpec", "normalize_plan"]
