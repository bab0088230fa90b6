"""Named connection registry.

A connection moves through absent -> connecting -> connected -> closed.
At most one registered connection is active; operations that do not name a
connection run against it. The manager also owns the schema cache, since
cached table structure is only meaningful for the databases currently open.

The registry is mutated only by connect/disconnect, which the single asyncio
control flow calls sequentially, so no locking is done here.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

from dbrelay.core.config import DatabaseConfig
from dbrelay.core.connection import DatabaseConnection
from dbrelay.core.types import ColumnInfo, ConnectionInfo, ForeignKeyInfo, IndexInfo, QueryOutcome
from dbrelay.exceptions import (
    ConnectionFailureError,
    ConnectionNotFoundError,
    NoActiveConnectionError,
    ValidationError,
)
from dbrelay.schema.cache import SchemaCache

logger = logging.getLogger(__name__)


class ConnectionHandle(Protocol):
    """Interface of a live connection as used by the handlers."""

    supports_returning: bool

    async def query(self, sql: str, params: list[Any] | None = None) -> QueryOutcome: ...

    async def describe(self, table: str) -> list[ColumnInfo]: ...

    async def indexes(self, table: str) -> list[IndexInfo]: ...

    async def foreign_keys(self, table: str) -> list[ForeignKeyInfo]: ...

    async def close(self) -> None: ...


ConnectionFactory = Callable[[DatabaseConfig], Awaitable[ConnectionHandle]]


@dataclass
class ConnectionRecord:
    """A registered connection."""

    name: str
    connection: ConnectionHandle
    config: DatabaseConfig
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class ConnectionManager:
    """Keeps named live connections and tracks the active one."""

    def __init__(
        self,
        connection_factory: ConnectionFactory | None = None,
        cache: SchemaCache | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            connection_factory: Coroutine opening a connection for a config
                (defaults to :meth:`DatabaseConnection.open`)
            cache: Schema cache to clear on disconnect (a new one by default)
        """
        self._factory: ConnectionFactory = connection_factory or DatabaseConnection.open
        self._records: dict[str, ConnectionRecord] = {}
        self._active: str | None = None
        self.schema_cache = cache if cache is not None else SchemaCache()

    @property
    def active_name(self) -> str | None:
        """Name of the active connection, if any."""
        return self._active

    @property
    def names(self) -> list[str]:
        """Registered connection names in connection order."""
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, name: object) -> bool:
        return name in self._records

    async def connect(self, name: str, config: DatabaseConfig) -> ConnectionHandle:
        """Open and register a connection.

        Reconnecting under an existing name returns the registered handle
        instead of opening a second one. The first connection becomes active.

        Args:
            name: Unique connection name
            config: Database settings

        Returns:
            The live connection handle

        Raises:
            ValidationError: If the name is empty
            ConnectionFailureError: If the driver cannot connect
        """
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Connection name must be a non-empty string.")
        existing = self._records.get(name)
        if existing is not None:
            logger.info("Connection '%s' already open, reusing it", name)
            return existing.connection

        try:
            connection = await self._factory(config)
        except ConnectionFailureError:
            raise
        except Exception as e:
            raise ConnectionFailureError(
                f"Failed to connect to database: {e}", config.safe_dump()
            ) from e

        self._records[name] = ConnectionRecord(name=name, connection=connection, config=config)
        if self._active is None:
            self._active = name
        logger.info(
            "Connected '%s' (%s database '%s')", name, config.driver.value, config.database
        )
        return connection

    def set_active(self, name: str) -> None:
        """Make a registered connection the active one.

        Raises:
            ConnectionNotFoundError: If no connection has that name
        """
        if name not in self._records:
            raise ConnectionNotFoundError(name, self.names)
        self._active = name

    def resolve(self, name: str | None = None) -> ConnectionHandle:
        """Return the named connection, else the active one.

        Raises:
            ConnectionNotFoundError: If a name is given but not registered
            NoActiveConnectionError: If no name is given and none is active
        """
        target = name or self._active
        if target is None:
            raise NoActiveConnectionError()
        record = self._records.get(target)
        if record is None:
            raise ConnectionNotFoundError(target, self.names)
        return record.connection

    def get_record(self, name: str) -> ConnectionRecord:
        """Return the record for a connection name.

        Raises:
            ConnectionNotFoundError: If no connection has that name
        """
        record = self._records.get(name)
        if record is None:
            raise ConnectionNotFoundError(name, self.names)
        return record

    async def disconnect(self, name: str) -> None:
        """Close and unregister a connection.

        Clears the schema cache. If the connection was active, the oldest
        remaining connection becomes active, or none if it was the last.

        Raises:
            ConnectionNotFoundError: If no connection has that name
        """
        record = self._records.pop(name, None)
        if record is None:
            raise ConnectionNotFoundError(name, self.names)
        try:
            await record.connection.close()
        finally:
            if self._active == name:
                self._active = next(iter(self._records), None)
            self.schema_cache.invalidate()
        logger.info("Disconnected '%s'", name)

    async def disconnect_all(self) -> None:
        """Close every connection and clear the schema cache."""
        records = list(self._records.values())
        self._records.clear()
        self._active = None
        self.schema_cache.invalidate()
        errors: list[str] = []
        for record in records:
            try:
                await record.connection.close()
            except Exception as e:
                logger.warning("Error closing connection '%s': %s", record.name, e)
                errors.append(f"{record.name}: {e}")
        if errors:
            raise ConnectionFailureError(
                f"Some connections failed to close cleanly: {'; '.join(errors)}"
            )
        logger.info("Disconnected all connections (%d)", len(records))

    def list_connections(self) -> list[ConnectionInfo]:
        """Describe every registered connection (passwords excluded)."""
        return [
            ConnectionInfo(
                name=record.name,
                driver=record.config.driver.value,
                host=record.config.host,
                database=record.config.database,
                is_active=record.name == self._active,
                created_at=record.created_at.isoformat(),
            )
            for record in self._records.values()
        ]
