"""MCP server for DbRelay.

Exposes the database, code generation and verification operations as MCP
tools for AI agents. Every tool returns a JSON string.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP  # type: ignore[import-not-found]

from dbrelay.core.config import DatabaseConfig
from dbrelay.core.types import DriverType
from dbrelay.operations import DatabaseOperations

# Configure logging to stderr (important for stdio transport)
logging.basicConfig(level=logging.INFO, stream=sys.stderr)
logger = logging.getLogger(__name__)

# Create MCP server
mcp = FastMCP("dbrelay")

# Global operations instance (set during server startup)
_ops: DatabaseOperations | None = None


def get_ops() -> DatabaseOperations:
    """Get the operations instance."""
    if _ops is None:
        raise RuntimeError("Operations not initialized. Call create_server() first.")
    return _ops


def _dump(result: dict[str, Any]) -> str:
    return json.dumps(result, default=str)


# === Data Tools ===


@mcp.tool()
async def query_data(
    table: str,
    select: list[str] | None = None,
    where: dict[str, Any] | None = None,
    order_by: str | None = None,
    limit: int | None = None,
    offset: int | None = None,
    connection_name: str | None = None,
    db_config: dict[str, Any] | None = None,
) -> str:
    """Query rows from a table with filters, sorting and pagination.

    Args:
        table: Table name
        select: Columns to return (default: all)
        where: Column -> value equality filters; null matches IS NULL
        order_by: Sort terms, e.g. "created_at DESC, id"
        limit: Maximum rows to return
        offset: Rows to skip (requires limit)
        connection_name: Connection to use (default: active connection)
        db_config: Connection settings (driver, host, port, database, user,
            password) used when no connection is open

    Returns:
        JSON with success, table, query, count and data.
    """
    return _dump(
        await get_ops().query_data(
            table, select, where, order_by, limit, offset, connection_name, db_config
        )
    )


@mcp.tool()
async def create_record(
    table: str,
    data: dict[str, Any],
    connection_name: str | None = None,
    db_config: dict[str, Any] | None = None,
) -> str:
    """Insert a new record into a table.

    Args:
        table: Table name
        data: Column -> value mapping
        connection_name: Connection to use (default: active connection)
        db_config: Connection settings used when no connection is open

    Returns:
        JSON with success, table, insertId and data.
    """
    return _dump(await get_ops().create_record(table, data, connection_name, db_config))


@mcp.tool()
async def update_record(
    table: str,
    data: dict[str, Any],
    where: dict[str, Any],
    connection_name: str | None = None,
    db_config: dict[str, Any] | None = None,
) -> str:
    """Update records in a table. A non-empty where is required.

    Args:
        table: Table name
        data: Column -> new value
        where: Column -> value equality filters (must not be empty)
        connection_name: Connection to use (default: active connection)
        db_config: Connection settings used when no connection is open

    Returns:
        JSON with success, table, affectedRows, data and where.
    """
    return _dump(await get_ops().update_record(table, data, where, connection_name, db_config))


@mcp.tool()
async def delete_record(
    table: str,
    where: dict[str, Any],
    connection_name: str | None = None,
    db_config: dict[str, Any] | None = None,
) -> str:
    """Delete records from a table. A non-empty where is required.

    Args:
        table: Table name
        where: Column -> value equality filters (must not be empty)
        connection_name: Connection to use (default: active connection)
        db_config: Connection settings used when no connection is open

    Returns:
        JSON with success, table, affectedRows and where.
    """
    return _dump(await get_ops().delete_record(table, where, connection_name, db_config))


@mcp.tool()
async def execute_raw_sql(
    sql: str,
    params: list[Any] | None = None,
    connection_name: str | None = None,
    db_config: dict[str, Any] | None = None,
) -> str:
    """Execute a raw SQL statement with ? placeholders.

    The SQL is sent as written. Always pass values through params.

    Args:
        sql: SQL statement
        params: Values for the ? placeholders, in order
        connection_name: Connection to use (default: active connection)
        db_config: Connection settings used when no connection is open

    Returns:
        JSON with success, sql, count and data.
    """
    return _dump(await get_ops().execute_raw_sql(sql, params, connection_name, db_config))


# === Schema Tools ===


@mcp.tool()
async def get_table_schema(
    table: str,
    refresh: bool = False,
    connection_name: str | None = None,
    db_config: dict[str, Any] | None = None,
) -> str:
    """Get a table's columns and indexes (cached for 60 seconds).

    Args:
        table: Table name
        refresh: Bypass the schema cache
        connection_name: Connection to use (default: active connection)
        db_config: Connection settings used when no connection is open

    Returns:
        JSON with success, table, columns and indexes.
    """
    return _dump(await get_ops().get_table_schema(table, refresh, connection_name, db_config))


@mcp.tool()
async def clear_schema_cache(table: str | None = None) -> str:
    """Clear cached schema for one table, or for all tables."""
    return _dump(await get_ops().clear_schema_cache(table))


# === Connection Tools ===


@mcp.tool()
async def connect_database(
    connection_name: str,
    driver: DriverType,
    database: str,
    host: str | None = None,
    port: int | None = None,
    user: str | None = None,
    password: str | None = None,
    set_as_active: bool = True,
) -> str:
    """Open a named database connection.

    Args:
        connection_name: Unique name for this connection
        driver: mysql, postgres or sqlite
        database: Database name (file path or :memory: for sqlite)
        host: Server host (default: localhost)
        port: Server port (default: 3306 mysql, 5432 postgres)
        user: Database user
        password: Database password
        set_as_active: Make this the active connection (default: true)

    Returns:
        JSON with success, connectionName, isActive and totalConnections.
    """
    return _dump(
        await get_ops().connect_database(
            connection_name, driver.value, database, host, port, user, password, set_as_active
        )
    )


@mcp.tool()
async def switch_connection(connection_name: str) -> str:
    """Switch the active connection."""
    return _dump(await get_ops().switch_connection(connection_name))


@mcp.tool()
async def list_connections() -> str:
    """List open connections and the active one."""
    return _dump(await get_ops().list_connections())


@mcp.tool()
async def disconnect_database(connection_name: str | None = None) -> str:
    """Close a connection (default: the active one)."""
    return _dump(await get_ops().disconnect_database(connection_name))


@mcp.tool()
async def disconnect_all() -> str:
    """Close every open connection."""
    return _dump(await get_ops().disconnect_all())


# === Code Generation Tools ===


@mcp.tool()
async def generate_model(
    model_name: str,
    table: str | None = None,
    fillable: list[str] | None = None,
    hidden: list[str] | None = None,
    casts: dict[str, str] | None = None,
    timestamps: bool = True,
    primary_key: str = "id",
    relations: list[dict[str, Any]] | None = None,
    output_path: str = "src/models",
) -> str:
    """Generate an outlet-orm model file.

    Args:
        model_name: Model class name (e.g. "User")
        table: Table name (default: lowercase plural of the model name)
        fillable: Mass-assignable columns
        hidden: Columns hidden from serialization
        casts: Column -> cast type (int, float, boolean, json, date)
        timestamps: Whether the table has created_at/updated_at
        primary_key: Primary key column
        relations: Relations, each with name, type (hasOne, hasMany, belongsTo,
            belongsToMany, hasManyThrough, morphOne, morphMany), model and optional
            foreignKey, localKey, pivotTable, through, morphType
        output_path: Directory under the project root

    Returns:
        JSON with success, message and filePath. Existing files are never overwritten.
    """
    return _dump(
        await get_ops().generate_model(
            model_name,
            table,
            fillable,
            hidden,
            casts,
            timestamps,
            primary_key,
            relations,
            output_path,
        )
    )


@mcp.tool()
async def generate_controller(
    controller_name: str,
    model_name: str,
    output_path: str = "src/controllers",
) -> str:
    """Generate a CRUD controller for a model.

    Args:
        controller_name: Controller class name (e.g. "UserController")
        model_name: Model the controller manages
        output_path: Directory under the project root

    Returns:
        JSON with success, message and filePath.
    """
    return _dump(await get_ops().generate_controller(controller_name, model_name, output_path))


@mcp.tool()
async def generate_migration(
    migration_name: str,
    table: str,
    action: str = "create",
    columns: list[dict[str, Any]] | None = None,
    indexes: list[dict[str, Any]] | None = None,
    foreign_keys: list[dict[str, Any]] | None = None,
    timestamps: bool = True,
    soft_deletes: bool = False,
    output_path: str = "src/database/migrations",
) -> str:
    """Generate a timestamped migration file.

    Args:
        migration_name: Migration name (e.g. "create_users_table")
        table: Table the migration applies to
        action: create, alter or drop
        columns: Columns, each with name, type and optional length, nullable,
            unique, default, unsigned, primary, autoIncrement
        indexes: Indexes, each with columns and optional unique
        foreign_keys: Foreign keys, each with column, references, on and
            optional onDelete, onUpdate
        timestamps: Add created_at/updated_at (create only)
        soft_deletes: Add deleted_at (create only)
        output_path: Directory under the project root

    Returns:
        JSON with success, message, filePath and fileName.
    """
    return _dump(
        await get_ops().generate_migration(
            migration_name,
            table,
            action,
            columns,
            indexes,
            foreign_keys,
            timestamps,
            soft_deletes,
            output_path,
        )
    )


# === Verification Tools ===


@mcp.tool()
async def verify_model_schema(
    model_path: str,
    connection_name: str | None = None,
    db_config: dict[str, Any] | None = None,
) -> str:
    """Check a model's fillable and cast fields against its database table.

    Args:
        model_path: Model file path relative to the project root
        connection_name: Connection to use (default: active connection)
        db_config: Connection settings used when no connection is open

    Returns:
        JSON with tableName, schema, issues and isValid.
    """
    return _dump(await get_ops().verify_model_schema(model_path, connection_name, db_config))


@mcp.tool()
async def verify_relations(
    model_path: str,
    connection_name: str | None = None,
    db_config: dict[str, Any] | None = None,
) -> str:
    """Check a model's belongsTo relations against database foreign keys."""
    return _dump(await get_ops().verify_relations(model_path, connection_name, db_config))


@mcp.tool()
async def verify_migration_status(
    migrations_path: str = "database/migrations",
    connection_name: str | None = None,
    db_config: dict[str, Any] | None = None,
) -> str:
    """Compare migration files with the migrations table (applied, pending, deleted)."""
    return _dump(
        await get_ops().verify_migration_status(migrations_path, connection_name, db_config)
    )


@mcp.tool()
async def analyze_controller(controller_path: str, model_name: str) -> str:
    """Check a controller for model import, CRUD methods and error handling."""
    return _dump(await get_ops().analyze_controller(controller_path, model_name))


@mcp.tool()
async def check_consistency(
    model_path: str | None = None,
    controller_path: str | None = None,
    migrations_path: str = "database/migrations",
    connection_name: str | None = None,
    db_config: dict[str, Any] | None = None,
) -> str:
    """Run model, relation, controller and migration checks together.

    Args:
        model_path: Model file path relative to the project root
        controller_path: Controller file path (checked when model_path is given)
        migrations_path: Migrations directory relative to the project root
        connection_name: Connection to use (default: active connection)
        db_config: Connection settings used when no connection is open

    Returns:
        JSON with model, relations, controller, migrations, overallIssues and isValid.
    """
    return _dump(
        await get_ops().check_consistency(
            model_path, controller_path, migrations_path, connection_name, db_config
        )
    )


def create_server(
    config: DatabaseConfig | None = None,
    project_root: str | Path | None = None,
    timeout: float | None = None,
) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        config: Settings for the ``default`` connection, opened on first use
        project_root: Base directory for generated and verified files
        timeout: Handler timeout in seconds

    Returns:
        Configured FastMCP server instance
    """
    global _ops
    _ops = DatabaseOperations(timeout=timeout, project_root=project_root, default_config=config)
    if config is not None:
        logger.info("DbRelay configured for %s", config.safe_dump())
    else:
        logger.info("DbRelay started without a default connection")
    return mcp


def main() -> None:
    """Entry point for running the MCP server."""
    parser = argparse.ArgumentParser(description="DbRelay MCP Server")
    parser.add_argument("--driver", choices=DriverType.values(), help="Database driver (DB_DRIVER)")
    parser.add_argument("--host", help="Database host (DB_HOST)")
    parser.add_argument("--port", type=int, help="Database port (DB_PORT)")
    parser.add_argument("--database", "-d", help="Database name or sqlite path (DB_DATABASE)")
    parser.add_argument("--user", help="Database user (DB_USER)")
    parser.add_argument("--project-root", help="Base directory for generated files")
    parser.add_argument("--timeout", type=float, help="Handler timeout in seconds")
    args = parser.parse_args()

    config = None
    if args.driver or os.getenv("DB_DRIVER"):
        config = DatabaseConfig.from_env(
            driver=args.driver,
            host=args.host,
            port=args.port,
            database=args.database,
            user=args.user,
        )

    create_server(config, project_root=args.project_root, timeout=args.timeout)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
