"""Tool protocol and the built-in agent tools."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from .models import ToolResult

logger = logging.getLogger(__name__)


class BaseTool(ABC):
    """Base class for tools the model can call with a ``<name>{json}</name>`` envelope."""

    #: Set on tools whose call ends the agent step once the stream is done.
    ends_agent_step: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @property
    @abstractmethod
    def params_model(self) -> type[BaseModel]:
        """Pydantic model the JSON payload is validated against."""
        ...

    @abstractmethod
    async def execute(self, params: Any) -> ToolResult:
        ...

    @property
    def parameters(self) -> dict[str, Any]:
        """JSON Schema for parameters."""
        return self.params_model.model_json_schema()

    def to_instructions(self) -> str:
        """How to call this tool, for inclusion in a system prompt."""
        return (
            f"### {self.name}\n{self.description}\n"
            f"Call it as <{self.name}>{{...params...}}</{self.name}> "
            f"with params matching this JSON schema:\n{self.parameters}"
        )


# ---------------------------------------------------------------------------
# think_deeply: reasoning rendered into the response
# ---------------------------------------------------------------------------


class ThinkDeeplyParams(BaseModel):
    thought: str = Field(..., description="Detailed step-by-step reasoning")


class ThinkDeeplyTool(BaseTool):
    """No-op tool that carries the model's reasoning."""

    @property
    def name(self) -> str:
        return "think_deeply"

    @property
    def description(self) -> str:
        return "Think through a complex change or problem before acting. Has no side effects."

    @property
    def params_model(self) -> type[BaseModel]:
        return ThinkDeeplyParams

    async def execute(self, params: ThinkDeeplyParams) -> ToolResult:
        logger.debug("Thought deeply", extra={"thought_length": len(params.thought)})
        return ToolResult(success=True, content="")


# ---------------------------------------------------------------------------
# end_turn
# ---------------------------------------------------------------------------


class EndTurnParams(BaseModel):
    pass


class EndTurnTool(BaseTool):
    """Ends the agent's turn and hands control back to the user."""

    ends_agent_step = True

    @property
    def name(self) -> str:
        return "end_turn"

    @property
    def description(self) -> str:
        return "End your turn. Use when the task is complete or you need input from the user."

    @property
    def params_model(self) -> type[BaseModel]:
        return EndTurnParams

    async def execute(self, params: EndTurnParams) -> ToolResult:
        return ToolResult(success=True, content="")


# ---------------------------------------------------------------------------
# read_files
# ---------------------------------------------------------------------------

MISSING_FILE = "[FILE_DOES_NOT_EXIST]"
OUTSIDE_PROJECT = "[FILE_OUTSIDE_PROJECT]"


class ReadFilesParams(BaseModel):
    paths: list[str] = Field(..., min_length=1, description="Paths relative to the project root")


class ReadFilesTool(BaseTool):
    """Reads project files. Paths outside the project root are refused."""

    def __init__(self, root: str | Path):
        self._root = Path(root).resolve()

    @property
    def name(self) -> str:
        return "read_files"

    @property
    def description(self) -> str:
        return "Read the contents of one or more files, given paths relative to the project root."

    @property
    def params_model(self) -> type[BaseModel]:
        return ReadFilesParams

    def _read(self, rel_path: str) -> str:
        path = (self._root / rel_path).resolve()
        if not path.is_relative_to(self._root):
            return OUTSIDE_PROJECT
        if not path.is_file():
            return MISSING_FILE
        return path.read_text(encoding="utf-8", errors="replace")

    async def execute(self, params: ReadFilesParams) -> ToolResult:
        blocks = []
        for rel_path in params.paths:
            blocks.append(
                f"<read_file>\n<path>{rel_path}</path>\n"
                f"<content>{self._read(rel_path)}</content>\n</read_file>"
            )
        return ToolResult(success=True, content="\n\n".join(blocks))


def get_tools(root: str | Path = ".") -> list[BaseTool]:
    """Return the built-in tools, with file tools rooted at ``root``."""
    return [
        ThinkDeeplyTool(),
        EndTurnTool(),
        ReadFilesTool(root),
    ]


__all__ = [
    "BaseTool",
    "ThinkDeeplyTool",
    "EndTurnTool",
    "ReadFilesTool",
    "MISSING_FILE",
    "OUTSIDE_PROJECT",
    "get_tools",
]
