"""Agent step runtime: tag-protocol tool calls over a relayed LLM stream."""

from .models import ToolCall, ToolResult
from .step import AgentStepResult, render_tool_results, run_agent_step
from .tools import BaseTool, EndTurnTool, ReadFilesTool, ThinkDeeplyTool, get_tools

__all__ = [
    "ToolCall",
    "ToolResult",
    "AgentStepResult",
    "render_tool_results",
    "run_agent_step",
    "BaseTool",
    "EndTurnTool",
    "ReadFilesTool",
    "ThinkDeeplyTool",
    "get_tools",
]
