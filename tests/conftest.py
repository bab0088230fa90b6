"""Shared test fixtures for dbrelay."""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

import pytest

from dbrelay.core.config import DatabaseConfig
from dbrelay.core.connection import DatabaseConnection
from dbrelay.core.manager import ConnectionManager
from dbrelay.core.types import ColumnInfo, ForeignKeyInfo, IndexInfo, QueryOutcome
from dbrelay.operations import DatabaseOperations

USERS_DDL = (
    "CREATE TABLE users ("
    "id INTEGER PRIMARY KEY AUTOINCREMENT, "
    "name TEXT NOT NULL, "
    "email TEXT, "
    "status TEXT DEFAULT 'active', "
    "deleted_at TEXT)"
)

POSTS_DDL = (
    "CREATE TABLE posts ("
    "id INTEGER PRIMARY KEY AUTOINCREMENT, "
    "user_id INTEGER REFERENCES users(id), "
    "title TEXT NOT NULL)"
)


class FakeConnection:
    """In-memory stand-in for DatabaseConnection.

    Records every statement; answers with queued outcomes (or an empty one)
    and with the configured column metadata.
    """

    def __init__(
        self,
        columns: dict[str, list[ColumnInfo]] | None = None,
        supports_returning: bool = False,
        delay: float = 0.0,
    ) -> None:
        self.columns = columns or {}
        self.supports_returning = supports_returning
        self.delay = delay
        self.outcomes: list[QueryOutcome] = []
        self.executed: list[tuple[str, list[Any]]] = []
        self.describe_calls = 0
        self.foreign_key_list: list[ForeignKeyInfo] = []
        self.closed = False

    async def query(self, sql: str, params: list[Any] | None = None) -> QueryOutcome:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.executed.append((sql, list(params or [])))
        return self.outcomes.pop(0) if self.outcomes else QueryOutcome()

    async def describe(self, table: str) -> list[ColumnInfo]:
        self.describe_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.columns.get(table, [])

    async def indexes(self, table: str) -> list[IndexInfo]:
        return [IndexInfo(name="PRIMARY", column="id", unique=True)]

    async def foreign_keys(self, table: str) -> list[ForeignKeyInfo]:
        return self.foreign_key_list

    async def close(self) -> None:
        self.closed = True


class FakeFactory:
    """Connection factory handing out FakeConnections, keyed by database name."""

    def __init__(self) -> None:
        self.connections: dict[str, FakeConnection] = {}
        self.fail_for: set[str] = set()

    async def __call__(self, config: DatabaseConfig) -> FakeConnection:
        if config.database in self.fail_for:
            raise OSError(f"could not reach {config.database}")
        connection = self.connections.setdefault(config.database, FakeConnection())
        return connection


@pytest.fixture
def anyio_backend() -> str:
    """Run async tests on asyncio only."""
    return "asyncio"


@pytest.fixture
def sqlite_config() -> DatabaseConfig:
    """In-memory SQLite settings."""
    return DatabaseConfig(driver="sqlite", database=":memory:")


@pytest.fixture
def users_columns() -> list[ColumnInfo]:
    """Column metadata of a small users table."""
    return [
        ColumnInfo(field="id", type="INTEGER", nullable=False, key="PRI"),
        ColumnInfo(field="name", type="VARCHAR(100)", nullable=False),
        ColumnInfo(field="email", type="VARCHAR(255)", key="UNI"),
        ColumnInfo(field="created_at", type="DATETIME"),
    ]


@pytest.fixture
def fake_connection(users_columns: list[ColumnInfo]) -> FakeConnection:
    """A FakeConnection that knows the users table."""
    return FakeConnection(columns={"users": users_columns})


@pytest.fixture
def fake_factory() -> FakeFactory:
    """Factory producing FakeConnections."""
    return FakeFactory()


@pytest.fixture
def manager(fake_factory: FakeFactory) -> ConnectionManager:
    """Connection manager backed by fakes."""
    return ConnectionManager(connection_factory=fake_factory)


@pytest.fixture
def ops(manager: ConnectionManager, tmp_path: Path) -> DatabaseOperations:
    """Operations over fake connections, writing generated files under tmp_path."""
    operations = DatabaseOperations(manager=manager, timeout=1.0, project_root=tmp_path)
    assert operations.manager is manager
    return operations


@pytest.fixture
async def memory_connection(
    sqlite_config: DatabaseConfig,
) -> AsyncGenerator[DatabaseConnection, None]:
    """Live aiosqlite in-memory connection with users and posts tables."""
    connection = await DatabaseConnection.open(sqlite_config)
    await connection.query(USERS_DDL)
    await connection.query(POSTS_DDL)
    yield connection
    await connection.close()


@pytest.fixture
async def sqlite_ops(tmp_path: Path) -> AsyncGenerator[DatabaseOperations, None]:
    """Operations with a live in-memory SQLite connection named 'main'."""
    operations = DatabaseOperations(timeout=5.0, project_root=tmp_path)
    result = await operations.connect_database("main", driver="sqlite", database=":memory:")
    assert result["success"], result
    connection = operations.manager.resolve("main")
    await connection.query(USERS_DDL)
    await connection.query(POSTS_DDL)
    yield operations
    await operations.manager.disconnect_all()


@pytest.fixture
def postgres_config() -> DatabaseConfig:
    """PostgreSQL settings from the DB_* variables, or skip."""
    pytest.importorskip("asyncpg", reason="asyncpg not installed (pip install dbrelay[postgresql])")
    if os.environ.get("DB_DRIVER") not in ("postgres", "postgresql"):
        pytest.skip("DB_DRIVER=postgres not set")
    return DatabaseConfig.from_env()

