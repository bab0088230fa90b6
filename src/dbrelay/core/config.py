"""Configuration resolution for dbrelay.

Database settings come from explicit arguments first and fall back to the
``DB_*`` environment variables:

    DB_DRIVER     mysql | postgres | sqlite
    DB_HOST       default "localhost"
    DB_PORT       default 3306 (mysql) / 5432 (postgres)
    DB_DATABASE   database name, or file path for sqlite
    DB_USER
    DB_PASSWORD

Runtime settings:

    DBRELAY_QUERY_TIMEOUT   handler timeout in seconds (default 30)
    DBRELAY_PROJECT_ROOT    base directory for generated files (default: cwd)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, SecretStr, field_validator

from dbrelay.core.types import DriverType
from dbrelay.exceptions import ValidationError

DEFAULT_QUERY_TIMEOUT = 30.0
DEFAULT_PORTS = {DriverType.MYSQL: 3306, DriverType.POSTGRES: 5432}

_ENV_FIELDS = {
    "driver": "DB_DRIVER",
    "host": "DB_HOST",
    "port": "DB_PORT",
    "database": "DB_DATABASE",
    "user": "DB_USER",
    "password": "DB_PASSWORD",
}


class DatabaseConfig(BaseModel):
    """Connection settings for one database."""

    driver: DriverType = Field(..., description="mysql, postgres or sqlite")
    database: str = Field(..., description="Database name (file path for sqlite)")
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: SecretStr | None = None

    @field_validator("driver", mode="before")
    @classmethod
    def _normalize_driver(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
            if value in ("postgresql", "pg"):
                return DriverType.POSTGRES
        return value

    @classmethod
    def from_env(cls, **overrides: Any) -> DatabaseConfig:
        """Build a config from explicit values over ``DB_*`` environment variables.

        Args:
            **overrides: Explicit settings; None or empty values fall through to
                the environment

        Raises:
            ValidationError: If the driver or database is missing or invalid
        """
        values: dict[str, Any] = {}
        for name, env_var in _ENV_FIELDS.items():
            value = overrides.get(name)
            if value is None or value == "":
                value = os.getenv(env_var) or None
            if value is not None:
                values[name] = value

        if "driver" not in values:
            raise ValidationError(
                f"Database driver is required. Pass 'driver' or set DB_DRIVER "
                f"({', '.join(DriverType.values())}).",
                {"valid_drivers": DriverType.values()},
            )
        if "database" not in values:
            raise ValidationError("Database name is required. Pass 'database' or set DB_DATABASE.")

        try:
            config = cls(**values)
        except ValueError as e:
            raise ValidationError(f"Invalid database configuration: {e}") from e
        return config.with_defaults()

    def with_defaults(self) -> DatabaseConfig:
        """Fill host and port defaults for network drivers."""
        if self.driver is DriverType.SQLITE:
            return self
        return self.model_copy(
            update={
                "host": self.host or "localhost",
                "port": self.port or DEFAULT_PORTS[self.driver],
            }
        )

    def safe_dump(self) -> dict[str, Any]:
        """Return the config without the password."""
        return self.model_dump(mode="json", exclude={"password"})


def get_query_timeout() -> float:
    """Handler timeout in seconds, from DBRELAY_QUERY_TIMEOUT or the default."""
    raw = os.getenv("DBRELAY_QUERY_TIMEOUT")
    if not raw:
        return DEFAULT_QUERY_TIMEOUT
    try:
        return float(raw)
    except ValueError:
        raise ValidationError(
            f"DBRELAY_QUERY_TIMEOUT must be a number of seconds, got {raw!r}."
        ) from None


def get_project_root(root: str | Path | None = None) -> Path:
    """Resolve the base directory for generated and verified files.

    Priority:
    1. Explicit argument
    2. DBRELAY_PROJECT_ROOT environment variable
    3. Current working directory
    """
    if root:
        return Path(root)
    if env_root := os.getenv("DBRELAY_PROJECT_ROOT"):
        return Path(env_root)
    return Path.cwd()
