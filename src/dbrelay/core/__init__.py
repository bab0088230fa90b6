"""Core connection handling for dbrelay."""

from dbrelay.core.config import DatabaseConfig
from dbrelay.core.connection import DatabaseConnection
from dbrelay.core.manager import ConnectionManager, ConnectionRecord
from dbrelay.core.types import (
    ColumnInfo,
    ConnectionInfo,
    DriverType,
    ForeignKeyInfo,
    IndexInfo,
    OperationResult,
    QueryOutcome,
)

__all__ = [
    "ColumnInfo",
    "ConnectionInfo",
    "ConnectionManager",
    "ConnectionRecord",
    "DatabaseConfig",
    "DatabaseConnection",
    "DriverType",
    "ForeignKeyInfo",
    "IndexInfo",
    "OperationResult",
    "QueryOutcome",
]
