"""Data models for tool calls parsed out of a model response."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any


def new_tool_call_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class ToolCall:
    """A validated tool invocation found in the response stream."""

    tool_name: str
    params: dict[str, Any]
    tool_call_id: str = field(default_factory=new_tool_call_id)


@dataclass
class ToolResult:
    """Result of a single tool execution, or the error that prevented it."""

    success: bool
    content: str | None = None
    error: str | None = None
    tool_name: str = ""
    tool_call_id: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return (self.content or "") if self.success else f"Error: {self.error}"


__all__ = ["ToolCall", "ToolResult", "new_tool_call_id"]
