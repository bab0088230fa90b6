"""Core types for dbrelay.

All types are designed to be JSON-serializable for agent consumption.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DriverType(StrEnum):
    """Supported database drivers."""

    MYSQL = "mysql"
    POSTGRES = "postgres"
    SQLITE = "sqlite"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid driver values."""
        return [d.value for d in cls]


class ColumnInfo(BaseModel):
    """Column metadata as returned by schema introspection."""

    field: str = Field(..., description="Column name")
    type: str = Field(..., description="Database type, e.g. VARCHAR(255)")
    nullable: bool = True
    key: str = Field(default="", description="PRI, UNI, MUL or empty")
    default: Any = None


class IndexInfo(BaseModel):
    """One column of an index."""

    name: str | None
    column: str | None
    unique: bool = False


class ForeignKeyInfo(BaseModel):
    """A single-column foreign key."""

    column: str
    referenced_table: str
    referenced_column: str | None = None


class ConnectionInfo(BaseModel):
    """Public view of a connection record (never includes the password)."""

    name: str
    driver: str | None = None
    host: str | None = None
    database: str | None = None
    is_active: bool = False
    created_at: str


class QueryOutcome(BaseModel):
    """Driver-independent result of one statement.

    Rows are returned as dicts; ``affected_rows`` is the driver row count for
    statements that do not return rows and ``insert_id`` the generated key when
    the driver reports one.
    """

    rows: list[dict[str, Any]] = Field(default_factory=list)
    returns_rows: bool = False
    affected_rows: int = 0
    insert_id: Any = None

    @property
    def count(self) -> int:
        """Rows returned, or rows affected for write statements."""
        return len(self.rows) if self.returns_rows else self.affected_rows


class OperationResult(BaseModel):
    """Uniform result envelope returned by every operation handler.

    Serialized with camelCase keys; top-level fields that are None are omitted.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    table: str | None = None
    query: str | None = None
    sql: str | None = None
    message: str | None = None
    count: int | None = None
    data: Any = None
    affected_rows: int | None = None
    insert_id: Any = None
    where: dict[str, Any] | None = None
    columns: list[ColumnInfo] | None = None
    indexes: list[IndexInfo] | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the wire representation."""
        # Only drop top-level Nones; NULLs inside row data must survive
        dumped = self.model_dump(by_alias=True)
        return {key: value for key, value in dumped.items() if value is not None}


__all__ = [
    "ColumnInfo",
    "ConnectionInfo",
    "DriverType",
    "ForeignKeyInfo",
    "IndexInfo",
    "OperationResult",
    "QueryOutcome",
]
