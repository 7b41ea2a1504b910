"""Tool system — tool definition, registry and dispatch."""

from swarmflow.tool.base import Tool, to_display_text
from swarmflow.tool.registry import ToolRegistry

__all__ = [
    "Tool",
    "ToolRegistry",
    "to_display_text",
]
