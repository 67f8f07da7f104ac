"""Tag protocol: tool calls embedded in streamed model text as ``<tool>{json}</tool>``."""

from .markers import THINK_DEEPLY_TOOL, close_marker, open_marker
from .parser import ToolCallParser, ToolHandler, process_stream_with_tags

__all__ = [
    "THINK_DEEPLY_TOOL",
    "open_marker",
    "close_marker",
    "ToolHandler",
    "ToolCallParser",
    "process_stream_with_tags",
]
