"""Tests for tool generation."""

import pytest

from dbrelay.core.types import QueryOutcome
from dbrelay.operations import DatabaseOperations
from dbrelay.tools import ToolRegistry
from dbrelay.tools.base import (
    ToolDefinition,
    function_to_tool_definition,
    parse_arg_descriptions,
    python_type_to_json_schema,
)

EXPECTED_TOOLS = {
    "query_data",
    "create_record",
    "update_record",
    "delete_record",
    "execute_raw_sql",
    "get_table_schema",
    "clear_schema_cache",
    "connect_database",
    "switch_connection",
    "list_connections",
    "disconnect_database",
    "disconnect_all",
    "generate_model",
    "generate_controller",
    "generate_migration",
    "verify_model_schema",
    "verify_relations",
    "verify_migration_status",
    "analyze_controller",
    "check_consistency",
}


class TestToolDefinition:
    """Tests for ToolDefinition class."""

    def test_to_openai_format(self):
        """Can convert to OpenAI format."""
        tool = ToolDefinition(
            name="test_tool",
            description="A test tool",
            parameters={
                "type": "object",
                "properties": {"name": {"type": "string"}},
                "required": ["name"],
            },
        )

        openai_format = tool.to_openai_format()
        assert openai_format["type"] == "function"
        assert openai_format["function"]["name"] == "test_tool"
        assert openai_format["function"]["parameters"]["required"] == ["name"]

    def test_to_anthropic_format(self):
        """Can convert to Anthropic format."""
        tool = ToolDefinition(name="test_tool", description="A test tool", parameters={"type": "object"})

        anthropic_format = tool.to_anthropic_format()
        assert anthropic_format["name"] == "test_tool"
        assert anthropic_format["input_schema"] == {"type": "object"}

    def test_to_dict(self):
        """Can convert to generic dict."""
        tool = ToolDefinition(name="test_tool", description="A test tool", parameters={})
        assert tool.to_dict() == {"name": "test_tool", "description": "A test tool", "parameters": {}}


class TestTypeConversion:
    """Tests for type hint conversion."""

    def test_optional_unwraps(self):
        """X | None publishes as X."""
        assert python_type_to_json_schema(int | None) == {"type": "integer"}

    def test_typed_list(self):
        """Lists carry their item type."""
        assert python_type_to_json_schema(list[str]) == {"type": "array", "items": {"type": "string"}}

    def test_dict(self):
        """Dicts are objects."""
        assert python_type_to_json_schema(dict[str, int]) == {"type": "object"}

    def test_mixed_union(self):
        """Unions of several types become anyOf."""
        schema = python_type_to_json_schema(str | list[str] | None)
        assert schema == {"anyOf": [{"type": "string"}, {"type": "array", "items": {"type": "string"}}]}


class TestFunctionToToolDefinition:
    """Tests for function_to_tool_definition."""

    def test_simple_function(self):
        """Can convert simple function."""

        def greet(name: str) -> str:
            """Greet a person."""
            return f"Hello, {name}!"

        tool = function_to_tool_definition(greet)
        assert tool.name == "greet"
        assert tool.description == "Greet a person."
        assert tool.parameters["properties"]["name"]["type"] == "string"
        assert tool.parameters["required"] == ["name"]

    def test_camel_case_properties(self):
        """Parameter names are published in camelCase."""

        def lookup(table_name: str, order_by: str | None = None, max_rows: int = 10) -> dict:
            """Look things up.

            Args:
                table_name: Table to read
                order_by: Sort order
            """
            return {}

        tool = function_to_tool_definition(lookup)
        props = tool.parameters["properties"]
        assert set(props) == {"tableName", "orderBy", "maxRows"}
        assert tool.parameters["required"] == ["tableName"]
        assert props["tableName"]["description"] == "Table to read"
        assert props["orderBy"] == {"type": "string", "description": "Sort order"}
        assert props["maxRows"]["default"] == 10
        assert tool.description == "Look things up."

    def test_no_required_key_when_all_optional(self):
        """Functions without required parameters omit the required list."""

        def noop(flag: bool = False) -> None:
            """Do nothing."""

        assert "required" not in function_to_tool_definition(noop).parameters

    def test_custom_name_and_description(self):
        """Can override name and description."""

        def my_func():
            """Original description."""

        tool = function_to_tool_definition(my_func, name="custom_name", description="Custom description")
        assert tool.name == "custom_name"
        assert tool.description == "Custom description"


class TestParseArgDescriptions:
    """Tests for reading Args sections."""

    def test_stops_at_next_section(self):
        """Only the Args section is read."""
        doc = """Summary.

        Args:
            first: The first one
            second: The second one

        Returns:
            value: not an argument
        """
        assert parse_arg_descriptions(doc) == {"first": "The first one", "second": "The second one"}

    def test_empty(self):
        """Missing docstrings give no descriptions."""
        assert parse_arg_descriptions(None) == {}


class TestToolRegistry:
    """Tests for the tool registry."""

    @pytest.fixture
    def registry(self, ops: DatabaseOperations) -> ToolRegistry:
        return ToolRegistry(ops)

    def test_all_tools_registered(self, registry: ToolRegistry):
        """Every handler is exposed as a tool."""
        assert set(registry.list_tools()) == EXPECTED_TOOLS
        assert len(registry.get_all()) == 20

    def test_get_tool(self, registry: ToolRegistry):
        """Can get a specific tool; unknown names give None."""
        tool = registry.get("query_data")
        assert tool is not None
        assert "orderBy" in tool.parameters["properties"]
        assert tool.parameters["required"] == ["table"]
        assert registry.get("nonexistent") is None

    def test_password_is_documented(self, registry: ToolRegistry):
        """Argument descriptions come from handler docstrings."""
        props = registry.get("connect_database").parameters["properties"]
        assert "never echoed" in props["password"]["description"]
        assert props["setAsActive"]["default"] is True

    def test_export_formats(self, registry: ToolRegistry):
        """All tools export in every format."""
        openai = registry.to_openai_format()
        anthropic = registry.to_anthropic_format()
        generic = registry.to_dict()
        assert len(openai) == len(anthropic) == len(generic) == 20
        assert all(t["type"] == "function" for t in openai)
        assert all("input_schema" in t for t in anthropic)


@pytest.mark.anyio
class TestToolRegistryCall:
    """Tests for invoking tools through the registry."""

    async def test_camel_case_arguments(self, ops, fake_factory):
        """camelCase keys reach the snake_case handler parameters."""
        registry = ToolRegistry(ops)
        connected = await registry.call(
            "connect_database",
            {"connectionName": "main", "driver": "sqlite", "database": "main.db"},
        )
        assert connected["success"] is True

        conn = fake_factory.connections["main.db"]
        conn.outcomes.append(QueryOutcome(rows=[{"id": 1}], returns_rows=True))
        result = await registry.call(
            "query_data", {"table": "users", "orderBy": "id DESC", "limit": "5"}
        )

        assert result["success"] is True
        assert result["data"] == [{"id": 1}]
        assert conn.executed[-1] == ("SELECT * FROM users ORDER BY id DESC LIMIT 5", [])

    async def test_unknown_tool(self, ops):
        """Unknown tools return an error envelope listing the available ones."""
        result = await ToolRegistry(ops).call("drop_everything", {})
        assert result["success"] is False
        assert "Unknown tool 'drop_everything'" in result["error"]
        assert "query_data" in result["error"]

    async def test_invalid_arguments(self, ops):
        """Arguments that do not match the handler are reported, not raised."""
        registry = ToolRegistry(ops)
        missing = await registry.call("query_data", {})
        assert missing["success"] is False
        assert "Invalid arguments for 'query_data'" in missing["error"]

        wrong_type = await registry.call("query_data", {"table": "users", "limit": "many"})
        assert wrong_type["success"] is False
