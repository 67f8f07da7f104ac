"""One agent step: stream a response, pick out tool calls, run them."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, Callable, Iterable, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from pydantic import ValidationError

from llm_relay.errors import ProtocolError
from llm_relay.live_inputs import LiveUserInputs
from llm_relay.models import CallContext, Message
from tool_protocol import ToolHandler, process_stream_with_tags

from .models import ToolCall, ToolResult, new_tool_call_id
from .tools import BaseTool

logger = logging.getLogger(__name__)


def render_tool_results(results: Iterable[ToolResult]) -> str:
    """Format tool results for the next prompt."""
    blocks = []
    for result in results:
        blocks.append(
            f"<tool_result>\n<tool>{result.tool_name}</tool>\n"
            f"<result>{result.text}</result>\n</tool_result>"
        )
    return "\n\n".join(blocks)


@dataclass
class AgentStepResult:
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_results: list[ToolResult] = field(default_factory=list)
    full_response: str = ""
    ends_turn: bool = False
    cancelled: bool = False

    def to_messages(self) -> list[Message]:
        """Assistant reply plus a user message carrying the tool results."""
        messages = [Message(role="assistant", content=self.full_response)]
        if self.tool_results:
            messages.append(Message(role="user", content=render_tool_results(self.tool_results)))
        return messages


async def run_agent_step(
    stream: AsyncIterable[str],
    tools: Sequence[BaseTool],
    *,
    available: Iterable[str] | None = None,
    vocabulary: Iterable[str] | None = None,
    live_inputs: LiveUserInputs | None = None,
    context: CallContext | None = None,
    on_chunk: Callable[[str], Any] | None = None,
) -> AgentStepResult:
    """
    Consume ``stream``, forwarding every chunk to ``on_chunk``, and collect the
    tool calls it contains.

    ``tools`` are the tools with handlers. ``vocabulary`` (default: their names)
    is the set of envelope names the parser recognises; a recognised name with no
    tool is reported as unknown. ``available`` (default: all of ``tools``)
    restricts which tools may actually run in this step.

    Calls are validated while streaming and executed in order once the stream
    has ended. The live-input gate is checked before each execution; a
    cancelled input stops the remaining calls.
    """
    tool_map = {t.name: t for t in tools}
    allowed = set(available) if available is not None else set(tool_map)
    result = AgentStepResult()
    pending: list[tuple[BaseTool, ToolCall, Any]] = []

    def on_error(tool_name: str, message: str) -> None:
        error = ProtocolError(tool_name, message)
        logger.warning("Tool envelope rejected: %s", error, extra={"tool": tool_name})
        result.tool_results.append(
            ToolResult(
                success=False,
                error=str(error),
                tool_name=tool_name,
                tool_call_id=new_tool_call_id(),
            )
        )

    def on_end(tool_name: str, params: dict[str, Any]) -> None:
        tool = tool_map[tool_name]
        call = ToolCall(tool_name=tool_name, params=params)
        try:
            validated = tool.params_model.model_validate(params)
        except ValidationError as exc:
            result.tool_results.append(
                ToolResult(
                    success=False,
                    error=f"Invalid parameters for {tool_name}: {exc}",
                    tool_name=tool_name,
                    tool_call_id=call.tool_call_id,
                )
            )
            return

        logger.debug("%s (%s) tool call detected in stream", tool_name, call.tool_call_id)
        result.tool_calls.append(call)
        if tool_name not in allowed:
            result.tool_results.append(
                ToolResult(
                    success=False,
                    error=(
                        f"Tool `{tool_name}` is not currently available. "
                        "Make sure to only use tools listed in the system instructions."
                    ),
                    tool_name=tool_name,
                    tool_call_id=call.tool_call_id,
                )
            )
            return
        pending.append((tool, call, validated))

    handlers = {name: ToolHandler(on_end=on_end) for name in tool_map}
    names = list(vocabulary) if vocabulary is not None else list(tool_map)

    parts: list[str] = []
    async for chunk in process_stream_with_tags(stream, handlers, on_error, vocabulary=names):
        parts.append(chunk)
        if on_chunk is not None:
            on_chunk(chunk)
    result.full_response = "".join(parts)

    for tool, call, validated in pending:
        if live_inputs is not None and context is not None:
            if not live_inputs.check_live_user_input(context.user_id, context.user_input_id):
                logger.info(
                    "Skipping tool calls due to canceled user input",
                    extra={"user_input_id": context.user_input_id, "tool": tool.name},
                )
                result.cancelled = True
                break
        try:
            tool_result = await tool.execute(validated)
        except Exception as exc:
            logger.exception("Tool %s failed", tool.name)
            tool_result = ToolResult(success=False, error=str(exc))
        result.tool_results.append(
            replace(tool_result, tool_name=call.tool_name, tool_call_id=call.tool_call_id)
        )
        if tool.ends_agent_step:
            result.ends_turn = True

    return result


__all__ = ["AgentStepResult", "render_tool_results", "run_agent_step"]
