"""Database connection adapter for dbrelay.

Wraps a SQLAlchemy ``AsyncEngine`` and normalizes whatever the driver returns
into :class:`QueryOutcome`, so handlers never branch on driver-specific result
shapes.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Literal

from sqlalchemy import inspect, text
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from dbrelay.core.config import DatabaseConfig
from dbrelay.core.types import ColumnInfo, DriverType, ForeignKeyInfo, IndexInfo, QueryOutcome
from dbrelay.exceptions import ConnectionFailureError, DriverError, ValidationError

logger = logging.getLogger(__name__)

# SQLAlchemy async driver for each supported database
ASYNC_DRIVERS = {
    DriverType.MYSQL: "mysql+aiomysql",
    DriverType.POSTGRES: "postgresql+asyncpg",
    DriverType.SQLITE: "sqlite+aiosqlite",
}

# What sqlalchemy.text() reads as a named bind
_TEXT_BIND = re.compile(r"(?<![:\w\\]):\w+(?![:\w])")


def build_url(config: DatabaseConfig) -> URL:
    """Build the SQLAlchemy URL for a config.

    Args:
        config: Database settings

    Returns:
        URL using the async driver for the configured database
    """
    drivername = ASYNC_DRIVERS[config.driver]
    if config.driver is DriverType.SQLITE:
        return URL.create(drivername, database=config.database)
    return URL.create(
        drivername,
        username=config.user,
        password=config.password.get_secret_value() if config.password else None,
        host=config.host,
        port=config.port,
        database=config.database,
    )


def to_named_params(sql: str, params: list[Any] | tuple[Any, ...] | None) -> tuple[str, dict[str, Any]]:
    """Rewrite ``?`` placeholders into ``:p0, :p1...`` named binds.

    Question marks inside quoted literals or quoted identifiers are left alone.
    Any other ``:name`` in the statement is escaped so SQLAlchemy does not
    read it as a bind parameter; ``::`` casts are kept as written.

    Raises:
        ValidationError: If the number of placeholders and parameters differ
    """
    params = list(params or [])
    out: list[str] = []
    quote: str | None = None
    index = 0
    for pos, char in enumerate(sql):
        if char == ":" and _TEXT_BIND.match(sql, pos):
            out.append("\\:")
            continue
        if quote:
            if char == quote:
                quote = None
        elif char in ("'", '"', "`"):
            quote = char
        elif char == "?":
            out.append(f":p{index}")
            index += 1
            continue
        out.append(char)

    if index != len(params):
        raise ValidationError(
            f"Statement has {index} placeholder(s) but {len(params)} parameter(s) were given.",
            {"placeholders": index, "parameters": len(params)},
        )
    return "".join(out), {f"p{i}": value for i, value in enumerate(params)}


def _is_insert(sql: str) -> bool:
    return sql.lstrip().upper().startswith("INSERT")


def _driver_message(error: SQLAlchemyError) -> str:
    orig = getattr(error, "orig", None)
    return str(orig) if orig is not None else str(error)


class DatabaseConnection:
    """One live database connection.

    Supports MySQL (aiomysql), PostgreSQL (asyncpg) and SQLite (aiosqlite).
    """

    def __init__(self, config: DatabaseConfig, echo: bool = False) -> None:
        """Initialize the adapter.

        The engine is created lazily; use :meth:`open` to create and test it in
        one step.

        Args:
            config: Database settings
            echo: Whether to echo SQL statements (for debugging)
        """
        self.config = config
        self._echo = echo
        self._engine: AsyncEngine | None = None

    @classmethod
    async def open(cls, config: DatabaseConfig, echo: bool = False) -> DatabaseConnection:
        """Create a connection and verify it with a round trip.

        Raises:
            ConnectionFailureError: If the database cannot be reached
        """
        connection = cls(config, echo=echo)
        try:
            await connection.test_connection()
        except ConnectionFailureError:
            await connection.close()
            raise
        return connection

    @property
    def engine(self) -> AsyncEngine:
        """Get or create the SQLAlchemy async engine."""
        if self._engine is None:
            kwargs: dict[str, Any] = {"echo": self._echo}
            if self.config.driver is DriverType.SQLITE:
                # One shared connection, otherwise every checkout is a fresh :memory: db
                if self.config.database in ("", ":memory:"):
                    kwargs["poolclass"] = StaticPool
            else:
                kwargs["pool_pre_ping"] = True
            try:
                self._engine = create_async_engine(build_url(self.config), **kwargs)
            except Exception as e:
                raise ConnectionFailureError(f"Failed to create database engine: {e}") from e
        return self._engine

    @property
    def dialect(self) -> Literal["mysql", "postgresql", "sqlite"]:
        """Get the SQLAlchemy dialect name."""
        return self.engine.dialect.name  # type: ignore[return-value]

    @property
    def supports_returning(self) -> bool:
        """Whether inserts should use RETURNING to report the generated id."""
        return self.config.driver is DriverType.POSTGRES

    async def test_connection(self) -> bool:
        """Test if the database connection works.

        Raises:
            ConnectionFailureError: If the round trip fails
        """
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except ConnectionFailureError:
            raise
        except Exception as e:
            raise ConnectionFailureError(
                f"Failed to connect to {self.config.driver} database "
                f"'{self.config.database}': {e}",
                self.config.safe_dump(),
            ) from e
        return True

    async def query(self, sql: str, params: list[Any] | tuple[Any, ...] | None = None) -> QueryOutcome:
        """Execute one statement in its own transaction.

        Args:
            sql: Statement with ``?`` placeholders
            params: Bound values in placeholder order

        Returns:
            Normalized QueryOutcome

        Raises:
            DriverError: If the driver rejects the statement
        """
        named_sql, bind = to_named_params(sql, params)
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(text(named_sql), bind)
                if result.returns_rows:
                    rows = [dict(row) for row in result.mappings().all()]
                    insert_id = rows[0].get("id") if rows and _is_insert(sql) else None
                    return QueryOutcome(
                        rows=rows, returns_rows=True, affected_rows=len(rows), insert_id=insert_id
                    )
                insert_id = None
                if _is_insert(sql) and not self.supports_returning:
                    insert_id = result.lastrowid or None
                return QueryOutcome(affected_rows=max(result.rowcount, 0), insert_id=insert_id)
        except SQLAlchemyError as e:
            raise DriverError(_driver_message(e), {"sql": sql}) from e

    async def describe(self, table: str) -> list[ColumnInfo]:
        """Introspect the columns of a table.

        Key is ``PRI`` for primary key columns, ``UNI`` for single-column unique
        constraints/indexes and ``MUL`` for the leading column of other indexes.

        Raises:
            DriverError: If the table does not exist or introspection fails
        """

        def _describe(sync_conn: Any) -> list[ColumnInfo]:
            insp = inspect(sync_conn)
            if not insp.has_table(table):
                raise DriverError(f"Table '{table}' does not exist.", {"table": table})

            primary = set(insp.get_pk_constraint(table).get("constrained_columns") or [])
            unique: set[str] = set()
            multiple: set[str] = set()
            for constraint in insp.get_unique_constraints(table):
                if len(constraint["column_names"]) == 1:
                    unique.add(constraint["column_names"][0])
            for index in insp.get_indexes(table):
                names = [n for n in index["column_names"] if n]
                if not names:
                    continue
                if index.get("unique") and len(names) == 1:
                    unique.add(names[0])
                else:
                    multiple.add(names[0])

            columns = []
            for col in insp.get_columns(table):
                name = col["name"]
                if name in primary:
                    key = "PRI"
                elif name in unique:
                    key = "UNI"
                elif name in multiple:
                    key = "MUL"
                else:
                    key = ""
                columns.append(
                    ColumnInfo(
                        field=name,
                        type=str(col["type"]),
                        nullable=bool(col.get("nullable", True)),
                        key=key,
                        default=col.get("default"),
                    )
                )
            return columns

        return await self._run_inspection(_describe, table)

    async def indexes(self, table: str) -> list[IndexInfo]:
        """List indexes of a table, one entry per indexed column."""

        def _indexes(sync_conn: Any) -> list[IndexInfo]:
            insp = inspect(sync_conn)
            result = [
                IndexInfo(name="PRIMARY", column=column, unique=True)
                for column in insp.get_pk_constraint(table).get("constrained_columns") or []
            ]
            for index in insp.get_indexes(table):
                for column in index["column_names"]:
                    result.append(
                        IndexInfo(name=index["name"], column=column, unique=bool(index["unique"]))
                    )
            return result

        return await self._run_inspection(_indexes, table)

    async def foreign_keys(self, table: str) -> list[ForeignKeyInfo]:
        """List foreign keys of a table, one entry per constrained column."""

        def _foreign_keys(sync_conn: Any) -> list[ForeignKeyInfo]:
            result = []
            for fk in inspect(sync_conn).get_foreign_keys(table):
                referred = fk.get("referred_columns") or []
                for i, column in enumerate(fk["constrained_columns"]):
                    result.append(
                        ForeignKeyInfo(
                            column=column,
                            referenced_table=fk["referred_table"],
                            referenced_column=referred[i] if i < len(referred) else None,
                        )
                    )
            return result

        return await self._run_inspection(_foreign_keys, table)

    async def _run_inspection(self, func: Any, table: str) -> Any:
        try:
            async with self.engine.connect() as conn:
                return await conn.run_sync(func)
        except SQLAlchemyError as e:
            raise DriverError(_driver_message(e), {"table": table}) from e

    async def close(self) -> None:
        """Close the connection and dispose of the engine."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None

    async def __aenter__(self) -> DatabaseConnection:
        """Async context manager entry."""
        await self.test_connection()
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        """Async context manager exit."""
        await self.close()
