"""CLI context: connection settings and the per-command operation runner."""

import asyncio
from dataclasses import dataclass
from functools import partial
from typing import Any

from dbrelay.core.config import DatabaseConfig
from dbrelay.core.connection import DatabaseConnection
from dbrelay.core.manager import ConnectionManager
from dbrelay.operations import DatabaseOperations


@dataclass
class CLIContext:
    """Shared context for CLI commands.

    Holds the connection settings from global options. Each command opens its
    connection, runs one operation and closes it again.
    """

    settings: dict[str, Any]
    echo: bool
    json_output: bool

    def get_config(self) -> DatabaseConfig:
        """Resolve settings over the DB_* environment.

        Raises:
            ValidationError: If no driver or database is configured
        """
        return DatabaseConfig.from_env(**self.settings)

    def create_operations(self) -> DatabaseOperations:
        """Create handlers whose default connection uses the CLI settings."""
        manager = ConnectionManager(connection_factory=partial(DatabaseConnection.open, echo=self.echo))
        return DatabaseOperations(manager=manager, default_config=self.get_config())

    def run(self, operation: str, **kwargs: Any) -> dict[str, Any]:
        """Run one handler to completion and close its connections.

        Args:
            operation: DatabaseOperations method name
            **kwargs: Handler arguments

        Returns:
            The handler's result envelope
        """
        ops = self.create_operations()

        async def _run() -> dict[str, Any]:
            try:
                return await getattr(ops, operation)(**kwargs)
            finally:
                await ops.manager.disconnect_all()

        return asyncio.run(_run())
