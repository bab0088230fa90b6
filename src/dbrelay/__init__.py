"""DbRelay - Safe SQL database access for AI agents.

Agents read and modify MySQL, PostgreSQL and SQLite databases through a fixed
set of tools. Table and column names are validated against a strict identifier
grammar, values are always bound as parameters and updates or deletes without
a WHERE condition are refused.

Example:
    from dbrelay import DatabaseOperations

    ops = DatabaseOperations()
    await ops.connect_database("main", driver="sqlite", database="app.db")

    await ops.create_record("users", {"name": "Ada", "email": "ada@example.com"})
    # {"success": True, "table": "users", "insertId": 1, "data": {...}}

    await ops.query_data("users", where={"name": "Ada"}, limit=10)
    # {"success": True, "table": "users", "query": "SELECT * FROM users ...", ...}

    # Export the same operations as agent tools
    registry = ToolRegistry(ops)
    tools = registry.to_anthropic_format()
"""

from dbrelay.core import (
    ColumnInfo,
    ConnectionInfo,
    ConnectionManager,
    DatabaseConfig,
    DatabaseConnection,
    DriverType,
    ForeignKeyInfo,
    IndexInfo,
    OperationResult,
    QueryOutcome,
)
from dbrelay.exceptions import (
    CodegenError,
    ConnectionFailureError,
    ConnectionNotFoundError,
    DbRelayError,
    DriverError,
    InvalidIdentifierError,
    NoActiveConnectionError,
    QueryTimeoutError,
    UnsafeOperationError,
    ValidationError,
)
from dbrelay.operations import DatabaseOperations
from dbrelay.query import (
    BuiltQuery,
    build_delete,
    build_insert,
    build_select,
    build_update,
    build_where,
    validate_identifier,
)
from dbrelay.schema import SchemaCache
from dbrelay.tools import ToolDefinition, ToolRegistry

__version__ = "0.1.0"

__all__ = [
    # Main classes
    "DatabaseOperations",
    "ConnectionManager",
    "DatabaseConnection",
    "SchemaCache",
    "ToolRegistry",
    "ToolDefinition",
    # Types
    "BuiltQuery",
    "ColumnInfo",
    "ConnectionInfo",
    "DatabaseConfig",
    "DriverType",
    "ForeignKeyInfo",
    "IndexInfo",
    "OperationResult",
    "QueryOutcome",
    # Query building
    "build_delete",
    "build_insert",
    "build_select",
    "build_update",
    "build_where",
    "validate_identifier",
    # Exceptions
    "CodegenError",
    "ConnectionFailureError",
    "ConnectionNotFoundError",
    "DbRelayError",
    "DriverError",
    "InvalidIdentifierError",
    "NoActiveConnectionError",
    "QueryTimeoutError",
    "UnsafeOperationError",
    "ValidationError",
]
