"""Agent tools backed by the DatabaseOperations handlers."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from pydantic import validate_call
from pydantic.alias_generators import to_snake

from dbrelay.operations import DatabaseOperations
from dbrelay.tools.base import ToolDefinition, function_to_tool_definition

logger = logging.getLogger(__name__)


class ExportFormat(StrEnum):
    """Tool definition formats understood by LLM providers."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    JSON = "json"


# Handler name -> description override (None keeps the docstring summary)
DEFAULT_TOOLS: dict[str, str | None] = {
    "query_data": (
        "Query rows from a table with optional select, where, orderBy, limit and offset. "
        "Where values are matched by equality; null matches IS NULL."
    ),
    "create_record": "Insert a new record into a table.",
    "update_record": "Update records in a table. A non-empty where is required.",
    "delete_record": "Delete records from a table. A non-empty where is required.",
    "execute_raw_sql": (
        "Execute a raw SQL statement with ? placeholders. "
        "The SQL is not validated: always pass values through params."
    ),
    "get_table_schema": None,
    "clear_schema_cache": None,
    "connect_database": None,
    "switch_connection": None,
    "list_connections": None,
    "disconnect_database": None,
    "disconnect_all": None,
    "generate_model": None,
    "generate_controller": None,
    "generate_migration": None,
    "verify_model_schema": None,
    "verify_relations": None,
    "verify_migration_status": None,
    "analyze_controller": None,
    "check_consistency": None,
}


class ToolRegistry:
    """Every DatabaseOperations handler as a named, schema-described tool.

    Arguments may be passed in snake_case or camelCase; they are validated
    against the handler's annotations before the call.
    """

    def __init__(self, ops: DatabaseOperations) -> None:
        self._ops = ops
        self._tools: dict[str, ToolDefinition] = {}
        self._callables: dict[str, Callable[..., Any]] = {}
        for name, description in DEFAULT_TOOLS.items():
            self.register(name, getattr(ops, name), description)

    def register(
        self,
        name: str,
        func: Callable[..., Any],
        description: str | None = None,
    ) -> ToolDefinition:
        """Add a tool, replacing any tool of the same name.

        Args:
            name: Tool name
            func: Async handler to invoke
            description: Description override

        Returns:
            The created ToolDefinition
        """
        tool = function_to_tool_definition(func, name=name, description=description)
        self._tools[name] = tool
        self._callables[name] = validate_call(func)
        return tool

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def list_tools(self) -> list[str]:
        return list(self._tools)

    def get_all(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def export(self, fmt: ExportFormat | str = ExportFormat.JSON) -> list[dict[str, Any]]:
        """Serialize every tool for an LLM provider.

        Args:
            fmt: openai, anthropic or json (name, description, parameters)
        """
        fmt = ExportFormat(fmt)
        if fmt is ExportFormat.OPENAI:
            return [tool.to_openai_format() for tool in self._tools.values()]
        if fmt is ExportFormat.ANTHROPIC:
            return [tool.to_anthropic_format() for tool in self._tools.values()]
        return [tool.to_dict() for tool in self._tools.values()]

    def to_openai_format(self) -> list[dict[str, Any]]:
        return self.export(ExportFormat.OPENAI)

    def to_anthropic_format(self) -> list[dict[str, Any]]:
        return self.export(ExportFormat.ANTHROPIC)

    def to_dict(self) -> list[dict[str, Any]]:
        return self.export(ExportFormat.JSON)

    async def call(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        """Invoke a tool with agent-supplied arguments.

        Args:
            name: Tool name
            arguments: Tool arguments (snake_case or camelCase keys)

        Returns:
            The handler's result envelope, or ``{"success": False, "error": ...}``
            for an unknown tool or invalid arguments
        """
        func = self._callables.get(name)
        if func is None:
            return {
                "success": False,
                "error": f"Unknown tool '{name}'. Available tools: {', '.join(self._tools)}",
            }

        kwargs = {to_snake(key): value for key, value in (arguments or {}).items()}
        try:
            return await func(**kwargs)
        except PydanticValidationError as e:
            logger.warning("Invalid arguments for %s: %s", name, e)
            return {"success": False, "error": f"Invalid arguments for '{name}': {e}"}
