"""Time-based cache of table column metadata.

Entries expire logically: staleness is checked when a table is requested,
nothing is evicted in the background. Concurrent misses for the same table
may fetch twice; the last write wins, which is harmless because the fetch is
idempotent.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from dbrelay.core.types import ColumnInfo
from dbrelay.query.identifiers import validate_identifier

logger = logging.getLogger(__name__)

SCHEMA_CACHE_TTL = 60.0  # seconds


class SchemaSource(Protocol):
    """Anything that can describe a table (a DatabaseConnection or a test fake)."""

    async def describe(self, table: str) -> list[ColumnInfo]: ...


@dataclass
class CacheEntry:
    """Column metadata for one table and when it was fetched."""

    columns: list[ColumnInfo]
    fetched_at: float


class SchemaCache:
    """Maps table name to column metadata with a fixed time-to-live."""

    def __init__(self, ttl: float = SCHEMA_CACHE_TTL, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the cache.

        Args:
            ttl: Seconds an entry stays fresh
            clock: Monotonic time source (injectable for tests)
        """
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    @property
    def ttl(self) -> float:
        return self._ttl

    def _is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.fetched_at < self._ttl

    async def get_schema(self, connection: SchemaSource, table: str) -> list[ColumnInfo]:
        """Return column metadata for a table, fetching it on a miss or expiry.

        Args:
            connection: Source used on cache misses
            table: Table name (identifier-validated)

        Returns:
            Ordered column metadata

        Raises:
            InvalidIdentifierError: If the table name is invalid
        """
        validate_identifier(table, "table")

        entry = self._entries.get(table)
        if entry is not None and self._is_fresh(entry):
            return entry.columns

        logger.debug("Schema cache miss for table %s", table)
        columns = await connection.describe(table)
        self._entries[table] = CacheEntry(columns=columns, fetched_at=self._clock())
        return columns

    def invalidate(self, table: str | None = None) -> None:
        """Drop one table's entry, or the whole cache when no table is given."""
        if table is None:
            self._entries.clear()
        else:
            self._entries.pop(table, None)

    def __contains__(self, table: object) -> bool:
        entry = self._entries.get(table) if isinstance(table, str) else None
        return entry is not None and self._is_fresh(entry)

    def __len__(self) -> int:
        return len(self._entries)
