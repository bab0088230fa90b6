"""Tools for agent integrations."""

from dbrelay.tools.base import ToolDefinition, function_to_tool_definition
from dbrelay.tools.registry import ExportFormat, ToolRegistry

__all__ = [
    "ExportFormat",
    "ToolDefinition",
    "ToolRegistry",
    "function_to_tool_definition",
]
