"""Custom exceptions for dbrelay.

Every exception carries an actionable message (what went wrong and how to fix
it) plus a JSON-serializable context dict, so operation handlers can turn any
failure into a result envelope for the calling agent.
"""

from __future__ import annotations

from typing import Any


class DbRelayError(Exception):
    """Base exception for all dbrelay errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Return error as JSON-serializable dict for agent consumption."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class InvalidIdentifierError(DbRelayError):
    """A table, column or generated name failed identifier validation."""

    def __init__(self, name: object, kind: str = "identifier", reason: str | None = None) -> None:
        if reason is None:
            reason = (
                "must contain only letters, numbers and underscores, and must start "
                "with a letter or underscore"
            )
            if kind == "column":
                reason += " (an optional 'table.' prefix is allowed)"
        message = f"Invalid {kind} name: {name!r}. Names {reason}."
        super().__init__(message, {"name": repr(name), "kind": kind})
        self.name = name
        self.kind = kind


class ValidationError(DbRelayError):
    """Input arguments are missing or malformed."""

    pass


class UnsafeOperationError(DbRelayError):
    """UPDATE or DELETE requested without a WHERE condition."""

    def __init__(self, operation: str, table: str) -> None:
        message = (
            f"Refusing to {operation} '{table}' without a WHERE condition. "
            f"Provide at least one column in 'where' to limit the affected rows."
        )
        super().__init__(message, {"operation": operation, "table": table})
        self.operation = operation
        self.table = table


class NoActiveConnectionError(DbRelayError):
    """No connection name was given and no connection is active."""

    def __init__(self) -> None:
        super().__init__(
            "No active database connection. Connect first using the connect_database tool."
        )


class ConnectionNotFoundError(DbRelayError):
    """Named connection does not exist."""

    def __init__(self, connection_name: str, available: list[str] | None = None) -> None:
        available = available or []
        if available:
            message = (
                f"Connection '{connection_name}' not found. "
                f"Available connections: {', '.join(available)}"
            )
        else:
            message = f"Connection '{connection_name}' not found. No connections are open."
        super().__init__(
            message, {"connection_name": connection_name, "available_connections": available}
        )
        self.connection_name = connection_name
        self.available = available


class ConnectionFailureError(DbRelayError):
    """The database driver failed to open a connection."""

    pass


class QueryTimeoutError(DbRelayError):
    """The client-side timer fired before the driver answered."""

    def __init__(self, timeout_ms: int) -> None:
        super().__init__(f"Query timeout after {timeout_ms}ms", {"timeout_ms": timeout_ms})
        self.timeout_ms = timeout_ms


class DriverError(DbRelayError):
    """Statement execution failed inside the database driver."""

    pass


class CodegenError(DbRelayError):
    """Code generation or verification input is unusable."""

    pass
