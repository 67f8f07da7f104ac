"""
Logging setup for the relay service.

- Plain console formatter for local runs
- JSON formatter for log aggregation (RELAY_LOG_FORMAT=json)
- Configurable via RELAY_LOG_LEVEL and RELAY_LOG_FORMAT

Structured fields are passed with ``logger.info(..., extra={...})``; the JSON
formatter lifts the ones listed in ``STRUCTURED_FIELDS`` to the top level.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone

STRUCTURED_FIELDS = (
    "provider",
    "model",
    "provider_model",
    "attempt",
    "delay_ms",
    "latency_ms",
    "user_id",
    "user_input_id",
    "message_id",
    "input_tokens",
    "output_tokens",
    "cache_read_tokens",
    "cache_creation_tokens",
    "cost_usd",
    "partial",
    "error",
)

_NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "openai",
    "openai._base_client",
    "anthropic",
    "anthropic._base_client",
    "google_genai",
    "uvicorn.access",
)


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, with the known extra fields at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in STRUCTURED_FIELDS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure the root logger. Call once at startup.

    Arguments override RELAY_LOG_LEVEL (default INFO) and RELAY_LOG_FORMAT
    (``text`` or ``json``, default ``text``).
    """
    level_name = (level or os.getenv("RELAY_LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    log_format = (fmt or os.getenv("RELAY_LOG_FORMAT", "text")).lower()

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()

    if log_format == "json":
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
            datefmt="%H:%M:%S",
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(formatter)
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("llm_relay").debug(
        "Logging configured (level=%s, format=%s)", level_name, log_format
    )


__all__ = ["STRUCTURED_FIELDS", "StructuredFormatter", "configure_logging"]
