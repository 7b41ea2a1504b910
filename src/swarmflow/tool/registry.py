"""Tool registry — a name-keyed tool namespace with dispatch."""

from __future__ import annotations

import logging
from typing import Any, Iterator

from swarmflow.errors import DuplicateToolError, ToolExecutionError, ToolNotFoundError
from swarmflow.llm.message import ToolCall
from swarmflow.tool.base import Tool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry of tools, keyed by unique name.

    Used as an agent's ``tool_map``. Registration order is preserved and
    is the order in which tools are offered to the model.
    """

    def __init__(self, owner: str = "") -> None:
        self._tools: dict[str, Tool] = {}
        self.owner = owner

    def register(self, tool: Tool) -> None:
        """Register a tool. Duplicate names are rejected."""
        if tool.name in self._tools:
            raise DuplicateToolError(tool.name, self.owner)
        self._tools[tool.name] = tool
        logger.debug("Registered tool %s (owner=%s)", tool.name, self.owner or "-")

    def register_many(self, tools: list[Tool]) -> None:
        """Register multiple tools."""
        for tool in tools:
            self.register(tool)

    def get(self, name: str) -> Tool | None:
        """Get a tool by name."""
        return self._tools.get(name)

    def get_specs(self, names: list[str] | None = None) -> list[dict[str, Any]]:
        """Get OpenAI tool specs, optionally filtered by name.

        Args:
            names: If provided, only return specs for these tools.
                   If None, return all.
        """
        tools = self._tools.values()
        if names is not None:
            tools = [t for t in tools if t.name in names]
        return [t.to_openai_spec() for t in tools]

    def names(self) -> list[str]:
        """Get all registered tool names."""
        return list(self._tools.keys())

    def subset(self, names: list[str]) -> list[Tool]:
        """Tools for ``names``, in the given order, without duplicates."""
        tools = []
        for name in dict.fromkeys(names):
            tool = self._tools.get(name)
            if tool:
                tools.append(tool)
            else:
                logger.warning("Tool %s not found in registry", name)
        return tools

    def dispatch(
        self, tool_call: ToolCall, context: dict[str, Any]
    ) -> tuple[Any, bool]:
        """Dispatch a tool call to the appropriate tool.

        Failures never propagate: a missing tool yields a
        ``ToolNotFoundError`` and a raising tool yields a
        ``ToolExecutionError`` wrapping the original exception.

        Returns:
            (output, is_error) tuple. ``output`` is the raw return value.
        """
        tool = self._tools.get(tool_call.name)
        if tool is None:
            logger.warning(
                "Tool %s not found (owner=%s)", tool_call.name, self.owner or "-"
            )
            return ToolNotFoundError(tool_call.name, self.names()), True

        try:
            return tool(tool_call.arguments, context), False
        except Exception as e:
            logger.error("Tool %s execution error: %s", tool.name, e, exc_info=True)
            message = f"Error executing {tool.name}: {type(e).__name__}: {e}"
            return ToolExecutionError(tool.name, message, cause=e), True

    def __getitem__(self, name: str) -> Tool:
        return self._tools[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __repr__(self) -> str:
        return f"ToolRegistry({', '.join(self._tools)})"
