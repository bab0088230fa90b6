"""Operation handlers exposed as agent tools.

Each handler resolves a connection, validates its input, builds the
statement and runs it under a client-side timeout. Whatever happens, it
returns a result envelope instead of raising:

    {"success": True, "table": "users", "count": 2, "data": [...]}
    {"success": False, "error": "Invalid table name: ..."}

Verification handlers report failures as ``{"error": ..., "isValid": False}``.

``execute_raw_sql`` is the one escape hatch: its SQL is passed to the driver
as written, without identifier validation. Callers are responsible for it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Mapping, Sequence
from pathlib import Path
from typing import Any, TypeVar

from dbrelay.codegen import templates, verify
from dbrelay.codegen.writer import write_source
from dbrelay.core.config import DatabaseConfig, get_project_root, get_query_timeout
from dbrelay.core.manager import ConnectionHandle, ConnectionManager
from dbrelay.core.types import OperationResult, QueryOutcome
from dbrelay.exceptions import (
    DbRelayError,
    NoActiveConnectionError,
    QueryTimeoutError,
    ValidationError,
)
from dbrelay.query.builder import build_delete, build_insert, build_select, build_update
from dbrelay.query.identifiers import validate_identifier

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CONNECTION_NAME = "default"


def _error_message(error: Exception) -> str:
    if isinstance(error, DbRelayError):
        return error.message
    return str(error) or error.__class__.__name__


def _log_late_result(task: asyncio.Future[Any]) -> None:
    # Retrieve the outcome of a timed-out call so asyncio does not warn about it
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.warning("Timed-out database call later failed: %s", error)
    else:
        logger.info("Timed-out database call completed after the timeout")


class DatabaseOperations:
    """Database actions for agents, backed by one ConnectionManager."""

    def __init__(
        self,
        manager: ConnectionManager | None = None,
        timeout: float | None = None,
        project_root: str | Path | None = None,
        default_config: DatabaseConfig | None = None,
    ) -> None:
        """Initialize the handlers.

        Args:
            manager: Connection manager (a fresh one by default)
            timeout: Seconds before a database call is reported as timed out
                (defaults to DBRELAY_QUERY_TIMEOUT or 30)
            project_root: Base directory for generated and verified files
            default_config: Settings for the connection opened on first use
                when none is open and no db_config is given
        """
        self.manager = manager if manager is not None else ConnectionManager()
        self.default_config = default_config
        self.timeout = timeout if timeout is not None else get_query_timeout()
        self.project_root = get_project_root(project_root)

    # === Plumbing ===

    async def _resolve(
        self, connection_name: str | None, db_config: Mapping[str, Any] | None
    ) -> ConnectionHandle:
        """Resolve the target connection.

        With no name and no active connection, a ``default`` connection is
        opened from ``db_config`` merged over the DB_* environment, or from
        ``default_config``.
        """
        if connection_name or self.manager.active_name:
            return self.manager.resolve(connection_name)
        if db_config:
            config = DatabaseConfig.from_env(**db_config)
        elif self.default_config is not None:
            config = self.default_config
        else:
            raise NoActiveConnectionError()
        return await self.manager.connect(DEFAULT_CONNECTION_NAME, config)

    async def _with_timeout(self, awaitable: Awaitable[T]) -> T:
        """Await a database call, giving up after ``self.timeout`` seconds.

        The timeout is advisory: the call keeps running in the background and
        is not cancelled on the server.
        """
        task = asyncio.ensure_future(awaitable)
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self.timeout)
        except TimeoutError:
            if task.done() and not task.cancelled() and task.exception() is not None:
                # The driver raised TimeoutError itself
                raise task.exception() from None
            task.add_done_callback(_log_late_result)
            timeout_ms = int(self.timeout * 1000)
            logger.warning("Database call exceeded %dms", timeout_ms)
            raise QueryTimeoutError(timeout_ms) from None

    async def _execute(
        self, connection: ConnectionHandle, sql: str, params: Sequence[Any] | None = None
    ) -> QueryOutcome:
        logger.debug("Executing: %s", sql)
        return await self._with_timeout(connection.query(sql, list(params or [])))

    def _fail(self, action: str, error: Exception) -> dict[str, Any]:
        logger.warning("%s failed: %s", action, _error_message(error))
        return OperationResult(success=False, error=_error_message(error)).to_dict()

    def _fail_verification(self, action: str, error: Exception) -> dict[str, Any]:
        logger.warning("%s failed: %s", action, _error_message(error))
        return {"error": _error_message(error), "isValid": False}

    def _path(self, relative: str) -> Path:
        return self.project_root / relative

    # === CRUD ===

    async def query_data(
        self,
        table: str,
        select: str | list[str] | None = None,
        where: dict[str, Any] | None = None,
        order_by: str | list[str] | None = None,
        limit: int | None = None,
        offset: int | None = None,
        connection_name: str | None = None,
        db_config: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Query rows from a table with optional filters, sorting and pagination.

        Args:
            table: Table name
            select: Columns to return (list or comma separated), default all
            where: Column -> value equality filters (null means IS NULL), joined by AND
            order_by: "column [ASC|DESC], ..." or a list of such terms
            limit: Maximum rows to return
            offset: Rows to skip (requires limit)
            connection_name: Connection to use (default: active connection)
            db_config: Connection settings used when no connection is open

        Returns:
            {success, table, query, count, data} or {success: false, error}
        """
        try:
            built = build_select(table, select, where, order_by, limit, offset)
            connection = await self._resolve(connection_name, db_config)
            outcome = await self._execute(connection, built.sql, built.params)
            return OperationResult(
                success=True,
                table=table,
                query=built.sql,
                count=len(outcome.rows),
                data=outcome.rows,
            ).to_dict()
        except Exception as e:
            return self._fail("query_data", e)

    async def create_record(
        self,
        table: str,
        data: dict[str, Any],
        connection_name: str | None = None,
        db_config: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Insert one record and report its generated id.

        Args:
            table: Table name
            data: Column -> value mapping for the new row
            connection_name: Connection to use (default: active connection)
            db_config: Connection settings used when no connection is open

        Returns:
            {success, table, insertId, data} or {success: false, error}
        """
        try:
            build_insert(table, data)
            connection = await self._resolve(connection_name, db_config)
            built = build_insert(table, data, returning=connection.supports_returning)
            outcome = await self._execute(connection, built.sql, built.params)
            return OperationResult(
                success=True, table=table, insert_id=outcome.insert_id, data=data
            ).to_dict()
        except Exception as e:
            return self._fail("create_record", e)

    async def update_record(
        self,
        table: str,
        data: dict[str, Any],
        where: dict[str, Any],
        connection_name: str | None = None,
        db_config: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Update rows matching a non-empty WHERE mapping.

        Args:
            table: Table name
            data: Column -> new value
            where: Column -> value equality filters; required, never empty
            connection_name: Connection to use (default: active connection)
            db_config: Connection settings used when no connection is open

        Returns:
            {success, table, affectedRows, data, where} or {success: false, error}
        """
        try:
            built = build_update(table, data, where)
            connection = await self._resolve(connection_name, db_config)
            outcome = await self._execute(connection, built.sql, built.params)
            return OperationResult(
                success=True,
                table=table,
                affected_rows=outcome.affected_rows,
                data=data,
                where=where,
            ).to_dict()
        except Exception as e:
            return self._fail("update_record", e)

    async def delete_record(
        self,
        table: str,
        where: dict[str, Any],
        connection_name: str | None = None,
        db_config: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Delete rows matching a non-empty WHERE mapping.

        Args:
            table: Table name
            where: Column -> value equality filters; required, never empty
            connection_name: Connection to use (default: active connection)
            db_config: Connection settings used when no connection is open

        Returns:
            {success, table, affectedRows, where} or {success: false, error}
        """
        try:
            built = build_delete(table, where)
            connection = await self._resolve(connection_name, db_config)
            outcome = await self._execute(connection, built.sql, built.params)
            return OperationResult(
                success=True, table=table, affected_rows=outcome.affected_rows, where=where
            ).to_dict()
        except Exception as e:
            return self._fail("delete_record", e)

    async def execute_raw_sql(
        self,
        sql: str,
        params: list[Any] | None = None,
        connection_name: str | None = None,
        db_config: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Execute arbitrary SQL with ``?`` placeholders.

        No identifier validation is applied: the statement runs as written.
        Always pass values through ``params`` rather than into the SQL text.

        Args:
            sql: SQL statement
            params: Values for the ``?`` placeholders, in order
            connection_name: Connection to use (default: active connection)
            db_config: Connection settings used when no connection is open

        Returns:
            {success, sql, count, data, affectedRows} or {success: false, error}
        """
        try:
            if not isinstance(sql, str) or not sql.strip():
                raise ValidationError("SQL query is required.")
            connection = await self._resolve(connection_name, db_config)
            outcome = await self._execute(connection, sql, params)
            return OperationResult(
                success=True,
                sql=sql,
                count=outcome.count,
                data=outcome.rows,
                affected_rows=outcome.affected_rows,
                insert_id=outcome.insert_id,
            ).to_dict()
        except Exception as e:
            return self._fail("execute_raw_sql", e)

    # === Schema ===

    async def get_table_schema(
        self,
        table: str,
        refresh: bool = False,
        connection_name: str | None = None,
        db_config: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Describe a table's columns and indexes.

        Column metadata is cached for 60 seconds; pass ``refresh`` to re-read it.

        Returns:
            {success, table, columns, indexes} or {success: false, error}
        """
        try:
            validate_identifier(table, "table")
            connection = await self._resolve(connection_name, db_config)
            cache = self.manager.schema_cache
            if refresh:
                cache.invalidate(table)
            columns = await self._with_timeout(cache.get_schema(connection, table))
            indexes = await self._with_timeout(connection.indexes(table))
            return OperationResult(
                success=True, table=table, columns=columns, indexes=indexes
            ).to_dict()
        except Exception as e:
            return self._fail("get_table_schema", e)

    async def clear_schema_cache(self, table: str | None = None) -> dict[str, Any]:
        """Drop cached schema for one table, or for all tables."""
        try:
            if table is not None:
                validate_identifier(table, "table")
            self.manager.schema_cache.invalidate(table)
            target = f"table '{table}'" if table else "all tables"
            return OperationResult(success=True, message=f"Schema cache cleared for {target}").to_dict()
        except Exception as e:
            return self._fail("clear_schema_cache", e)

    # === Connections ===

    async def connect_database(
        self,
        connection_name: str,
        driver: str,
        database: str,
        host: str | None = None,
        port: int | None = None,
        user: str | None = None,
        password: str | None = None,
        set_as_active: bool = True,
    ) -> dict[str, Any]:
        """Open a named database connection.

        Args:
            connection_name: Unique name for the connection
            driver: mysql, postgres or sqlite
            database: Database name (file path or :memory: for sqlite)
            host: Server host (default localhost)
            port: Server port (default 3306 for mysql, 5432 for postgres)
            user: Database user
            password: Database password (never echoed back)
            set_as_active: Make this the active connection (default true)

        Returns:
            {success, message, connectionName, database, driver, isActive, totalConnections}
        """
        try:
            try:
                config = DatabaseConfig(
                    driver=driver,
                    database=database,
                    host=host,
                    port=port,
                    user=user,
                    password=password,
                ).with_defaults()
            except ValueError as e:
                raise ValidationError(f"Invalid connection settings: {e}") from e

            await self.manager.connect(connection_name, config)
            if set_as_active:
                self.manager.set_active(connection_name)
            # An existing name keeps its open connection and settings
            opened = self.manager.get_record(connection_name).config
            return {
                "success": True,
                "message": (
                    f"Successfully connected to database '{opened.database}' as '{connection_name}'"
                ),
                "connectionName": connection_name,
                "database": opened.database,
                "driver": opened.driver.value,
                "isActive": self.manager.active_name == connection_name,
                "totalConnections": len(self.manager),
            }
        except Exception as e:
            result = self._fail("connect_database", e)
            result["error"] = f"Failed to connect: {result['error']}"
            return result

    async def switch_connection(self, connection_name: str) -> dict[str, Any]:
        """Make another open connection the active one."""
        try:
            self.manager.set_active(connection_name)
            return {
                "success": True,
                "message": f"Switched to connection '{connection_name}'",
                "activeConnection": connection_name,
            }
        except Exception as e:
            return self._fail("switch_connection", e)

    async def list_connections(self) -> dict[str, Any]:
        """List open connections and which one is active."""
        connections = [info.model_dump() for info in self.manager.list_connections()]
        return {
            "success": True,
            "activeConnection": self.manager.active_name,
            "totalConnections": len(connections),
            "connections": connections,
        }

    async def disconnect_database(self, connection_name: str | None = None) -> dict[str, Any]:
        """Close a connection (default: the active one)."""
        try:
            name = connection_name or self.manager.active_name
            if not name:
                raise ValidationError("No connection to disconnect.")
            await self.manager.disconnect(name)
            return {
                "success": True,
                "message": f"Disconnected from '{name}'",
                "remainingConnections": len(self.manager),
                "activeConnection": self.manager.active_name,
            }
        except Exception as e:
            return self._fail("disconnect_database", e)

    async def disconnect_all(self) -> dict[str, Any]:
        """Close every connection."""
        try:
            await self.manager.disconnect_all()
            return {"success": True, "message": "All database connections have been closed"}
        except Exception as e:
            return self._fail("disconnect_all", e)

    # === Code generation ===

    async def generate_model(
        self,
        model_name: str,
        table: str | None = None,
        fillable: list[str] | None = None,
        hidden: list[str] | None = None,
        casts: dict[str, str] | None = None,
        timestamps: bool = True,
        primary_key: str = "id",
        relations: list[dict[str, Any]] | None = None,
        output_path: str = "src/models",
    ) -> dict[str, Any]:
        """Generate an outlet-orm model file (never overwrites).

        Returns:
            {success, message, filePath} or {success: false, error}
        """
        try:
            content = templates.render_model(
                model_name,
                table=table,
                fillable=fillable or [],
                hidden=hidden or [],
                casts=casts or {},
                timestamps=timestamps,
                primary_key=primary_key,
                relations=relations or [],
            )
            path = write_source(self.project_root, output_path, f"{model_name}.js", content)
            return {
                "success": True,
                "message": f"Model {model_name} generated successfully",
                "filePath": str(path),
            }
        except Exception as e:
            return self._fail("generate_model", e)

    async def generate_controller(
        self,
        controller_name: str,
        model_name: str,
        output_path: str = "src/controllers",
    ) -> dict[str, Any]:
        """Generate a CRUD controller file for a model (never overwrites)."""
        try:
            content = templates.render_controller(controller_name, model_name)
            path = write_source(self.project_root, output_path, f"{controller_name}.js", content)
            return {
                "success": True,
                "message": f"Controller {controller_name} generated successfully",
                "filePath": str(path),
            }
        except Exception as e:
            return self._fail("generate_controller", e)

    async def generate_migration(
        self,
        migration_name: str,
        table: str,
        action: str = "create",
        columns: list[dict[str, Any]] | None = None,
        indexes: list[dict[str, Any]] | None = None,
        foreign_keys: list[dict[str, Any]] | None = None,
        timestamps: bool = True,
        soft_deletes: bool = False,
        output_path: str = "src/database/migrations",
    ) -> dict[str, Any]:
        """Generate a timestamped migration file (never overwrites).

        Returns:
            {success, message, filePath, fileName} or {success: false, error}
        """
        try:
            file_name, content = templates.render_migration(
                migration_name,
                table,
                action=action,
                columns=columns or [],
                indexes=indexes or [],
                foreign_keys=foreign_keys or [],
                timestamps=timestamps,
                soft_deletes=soft_deletes,
            )
            path = write_source(self.project_root, output_path, file_name, content)
            return {
                "success": True,
                "message": f"Migration {migration_name} generated successfully",
                "filePath": str(path),
                "fileName": file_name,
            }
        except Exception as e:
            return self._fail("generate_migration", e)

    # === Verification ===

    async def verify_model_schema(
        self,
        model_path: str,
        connection_name: str | None = None,
        db_config: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Check a model's fillable and cast fields against its table."""
        try:
            connection = await self._resolve(connection_name, db_config)
            return await self._with_timeout(
                verify.verify_model_schema(
                    self._path(model_path), connection, self.manager.schema_cache
                )
            )
        except Exception as e:
            return self._fail_verification("verify_model_schema", e)

    async def verify_relations(
        self,
        model_path: str,
        connection_name: str | None = None,
        db_config: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Check a model's belongsTo relations against database foreign keys."""
        try:
            connection = await self._resolve(connection_name, db_config)
            return await self._with_timeout(
                verify.verify_relations(self._path(model_path), connection)
            )
        except Exception as e:
            return self._fail_verification("verify_relations", e)

    async def verify_migration_status(
        self,
        migrations_path: str = "database/migrations",
        connection_name: str | None = None,
        db_config: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Compare migration files with the migrations table."""
        try:
            connection = await self._resolve(connection_name, db_config)
            return await self._with_timeout(
                verify.verify_migration_status(self._path(migrations_path), connection)
            )
        except Exception as e:
            return self._fail_verification("verify_migration_status", e)

    async def analyze_controller(self, controller_path: str, model_name: str) -> dict[str, Any]:
        """Check a controller for model usage, CRUD methods and error handling."""
        try:
            return verify.analyze_controller(self._path(controller_path), model_name)
        except Exception as e:
            return self._fail_verification("analyze_controller", e)

    async def check_consistency(
        self,
        model_path: str | None = None,
        controller_path: str | None = None,
        migrations_path: str = "database/migrations",
        connection_name: str | None = None,
        db_config: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Run model, relation, controller and migration checks together."""
        results: dict[str, Any] = {
            "model": None,
            "relations": None,
            "controller": None,
            "migrations": None,
            "overallIssues": [],
            "isValid": True,
        }
        try:
            if model_path:
                results["model"] = await self.verify_model_schema(
                    model_path, connection_name, db_config
                )
                results["relations"] = await self.verify_relations(
                    model_path, connection_name, db_config
                )
            if model_path and controller_path:
                results["controller"] = await self.analyze_controller(
                    controller_path, Path(model_path).stem
                )
            results["migrations"] = await self.verify_migration_status(
                migrations_path, connection_name, db_config
            )

            checked = [results[key] for key in ("model", "relations", "controller", "migrations")]
            results["isValid"] = all(r["isValid"] for r in checked if r is not None)

            table = (results["model"] or {}).get("tableName")
            migrations = results["migrations"]
            if table and "pendingMigrations" in migrations:

                def creates_table(name: str) -> bool:
                    return "create" in name and table in name

                if not any(map(creates_table, migrations["appliedMigrations"])) and any(
                    map(creates_table, migrations["pendingMigrations"])
                ):
                    results["overallIssues"].append(
                        {
                            "type": "pending_table_migration",
                            "severity": "warning",
                            "message": f"Table '{table}' migration exists but is not applied",
                        }
                    )
            return results
        except Exception as e:
            return self._fail_verification("check_consistency", e)
