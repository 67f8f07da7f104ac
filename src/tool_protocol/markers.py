"""Marker strings that delimit tool envelopes in model output."""

from __future__ import annotations

# Reasoning streamed by the model is rendered as a call to this tool.
THINK_DEEPLY_TOOL = "think_deeply"


def open_marker(tool_name: str) -> str:
    return f"<{tool_name}>"


def close_marker(tool_name: str) -> str:
    return f"</{tool_name}>"
