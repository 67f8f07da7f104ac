"""
Incremental parser for tool envelopes embedded in a streamed model response.

A tool call is written by the model as ``<name>{...json params...}</name>``.
Text passes through untouched and without delay; the parser only keeps enough of
the recent stream to recognise markers that arrive split across chunks.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterable, AsyncIterator, Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from .markers import close_marker, open_marker

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[str, str], None]


@dataclass(frozen=True)
class ToolHandler:
    """Callbacks for one tool: on_start(name) and on_end(name, params)."""

    on_end: Callable[[str, dict[str, Any]], None]
    on_start: Callable[[str], None] | None = None


@dataclass(frozen=True)
class _Marker:
    text: str
    tool: str
    closing: bool


class ToolCallParser:
    """
    Character-level state machine over the text stream.

    State is ``buffer`` (undecided text since the last resolved boundary) and
    ``open_tool``. Every tool that is opened resolves exactly once, through
    ``on_end`` or ``on_error``, including when the stream ends early.
    """

    def __init__(
        self,
        handlers: Mapping[str, ToolHandler],
        on_error: ErrorCallback,
        *,
        vocabulary: Iterable[str] | None = None,
    ) -> None:
        self._handlers = dict(handlers)
        self._on_error = on_error
        names = list(vocabulary) if vocabulary is not None else list(self._handlers)
        self._markers: list[_Marker] = []
        for name in names:
            self._markers.append(_Marker(open_marker(name), name, closing=False))
            self._markers.append(_Marker(close_marker(name), name, closing=True))
        self.buffer = ""
        self.open_tool: str | None = None

    def feed(self, chunk: str) -> str:
        """Consume one chunk and return it unchanged for pass-through."""
        for ch in chunk:
            self._step(ch)
        return chunk

    def finish(self) -> str:
        """
        End of stream. A still-open tool is closed with a synthesized marker,
        which is returned so callers can emit it; otherwise returns "".
        """
        if self.open_tool is None:
            self.buffer = ""
            return ""
        closing = close_marker(self.open_tool)
        logger.debug("Closing unterminated tool call", extra={"tool": self.open_tool})
        self.buffer += closing
        self._close(self.open_tool)
        return closing

    def _longest_overlap(self) -> tuple[int, _Marker | None]:
        best_len, best = 0, None
        for marker in self._markers:
            limit = min(len(self.buffer), len(marker.text))
            for size in range(limit, best_len - 1, -1):
                if size == 0:
                    break
                if self.buffer.endswith(marker.text[:size]):
                    complete = size == len(marker.text)
                    if size > best_len or (
                        complete and best is not None and len(best.text) != best_len
                    ):
                        best_len, best = size, marker
                    break
        return best_len, best

    def _step(self, ch: str) -> None:
        self.buffer += ch
        size, marker = self._longest_overlap()

        if marker is not None and size == len(marker.text):
            if marker.closing:
                if self.open_tool is not None and marker.tool != self.open_tool:
                    # Another tool's closing tag inside an open payload is content
                    return
                self._close(marker.tool)
            else:
                self._open(marker.tool)
            return

        if self.open_tool is None:
            self.buffer = self.buffer[len(self.buffer) - size:] if size else ""

    def _open(self, name: str) -> None:
        if self.open_tool is not None:
            self._on_error(self.open_tool, f"Tool call interrupted by {open_marker(name)}")
        self.open_tool = name
        handler = self._handlers.get(name)
        if handler is not None and handler.on_start is not None:
            handler.on_start(name)
        self.buffer = open_marker(name)

    def _close(self, name: str) -> None:
        opened, closing = open_marker(name), close_marker(name)
        end = len(self.buffer) - len(closing)
        start = self.buffer.rfind(opened, 0, end)
        self.open_tool = None
        payload = self.buffer[start + len(opened):end] if start != -1 else ""
        self.buffer = ""

        if start == -1:
            self._on_error(name, f"Unexpected closing tag {closing}")
            return

        handler = self._handlers.get(name)
        if handler is None:
            self._on_error(name, f"Unknown tool: {name}")
            return
        try:
            params = json.loads(payload)
        except json.JSONDecodeError as exc:
            self._on_error(name, f"Invalid JSON parameters: {exc}")
            return
        if not isinstance(params, dict):
            self._on_error(name, "Tool parameters must be a JSON object")
            return
        handler.on_end(name, params)


async def process_stream_with_tags(
    stream: AsyncIterable[str],
    handlers: Mapping[str, ToolHandler],
    on_error: ErrorCallback,
    *,
    vocabulary: Iterable[str] | None = None,
) -> AsyncIterator[str]:
    """Yield every chunk of ``stream`` unchanged while firing tool callbacks."""
    parser = ToolCallParser(handlers, on_error, vocabulary=vocabulary)
    async for chunk in stream:
        yield parser.feed(chunk)
    closing = parser.finish()
    if closing:
        yield closing


__all__ = ["ToolHandler", "ToolCallParser", "process_stream_with_tags"]
