"""Tests for the named connection manager."""

import pytest

from dbrelay.core.config import DatabaseConfig
from dbrelay.core.manager import ConnectionManager
from dbrelay.exceptions import (
    ConnectionFailureError,
    ConnectionNotFoundError,
    NoActiveConnectionError,
    ValidationError,
)
from dbrelay.schema.cache import SchemaCache


def _config(database: str) -> DatabaseConfig:
    return DatabaseConfig(driver="sqlite", database=database)


@pytest.mark.anyio
class TestConnectionManager:
    """Tests for connect, switch and disconnect."""

    async def test_first_connection_becomes_active(self, manager):
        """The first registered connection is active; later ones are not."""
        await manager.connect("x", _config("x.db"))
        await manager.connect("y", _config("y.db"))
        assert manager.active_name == "x"
        assert manager.names == ["x", "y"]
        assert len(manager) == 2

    async def test_disconnect_promotes_next(self, manager, fake_factory):
        """Disconnecting the active connection promotes the oldest remaining one."""
        await manager.connect("x", _config("x.db"))
        await manager.connect("y", _config("y.db"))

        await manager.disconnect("x")
        assert manager.active_name == "y"
        assert fake_factory.connections["x.db"].closed

        await manager.disconnect("y")
        assert manager.active_name is None
        with pytest.raises(NoActiveConnectionError):
            manager.resolve()

    async def test_resolve_by_name(self, manager, fake_factory):
        """Named resolution ignores the active connection."""
        await manager.connect("x", _config("x.db"))
        await manager.connect("y", _config("y.db"))
        assert manager.resolve("y") is fake_factory.connections["y.db"]
        assert manager.resolve() is fake_factory.connections["x.db"]

    async def test_resolve_unknown_name(self, manager):
        """Unknown names list the available connections."""
        await manager.connect("x", _config("x.db"))
        with pytest.raises(ConnectionNotFoundError) as exc_info:
            manager.resolve("nope")
        assert exc_info.value.available == ["x"]

    async def test_set_active(self, manager):
        """Switching requires a registered name."""
        await manager.connect("x", _config("x.db"))
        await manager.connect("y", _config("y.db"))
        manager.set_active("y")
        assert manager.active_name == "y"
        with pytest.raises(ConnectionNotFoundError):
            manager.set_active("z")

    async def test_reconnect_same_name_reuses(self, manager, fake_factory):
        """Connecting an existing name returns the registered handle."""
        first = await manager.connect("x", _config("x.db"))
        second = await manager.connect("x", _config("other.db"))
        assert first is second
        assert "other.db" not in fake_factory.connections

    async def test_empty_name_rejected(self, manager):
        """Connection names must be non-empty."""
        with pytest.raises(ValidationError):
            await manager.connect("  ", _config("x.db"))

    async def test_factory_failure_wrapped(self, manager, fake_factory):
        """Driver failures become ConnectionFailureError and nothing is registered."""
        fake_factory.fail_for.add("down.db")
        with pytest.raises(ConnectionFailureError):
            await manager.connect("down", _config("down.db"))
        assert "down" not in manager
        assert manager.active_name is None

    async def test_disconnect_unknown(self, manager):
        """Disconnecting an unknown name fails."""
        with pytest.raises(ConnectionNotFoundError):
            await manager.disconnect("ghost")

    async def test_disconnect_clears_schema_cache(self, manager):
        """Cached schema does not outlive a disconnect."""
        connection = await manager.connect("x", _config("x.db"))
        await manager.schema_cache.get_schema(connection, "users")
        assert len(manager.schema_cache) == 1
        await manager.disconnect("x")
        assert len(manager.schema_cache) == 0

    async def test_injected_empty_cache_is_kept(self, fake_factory):
        """An empty schema cache passed in is the one the manager fills."""
        cache = SchemaCache()
        manager = ConnectionManager(connection_factory=fake_factory, cache=cache)
        assert manager.schema_cache is cache

        connection = await manager.connect("x", _config("x.db"))
        await manager.schema_cache.get_schema(connection, "users")
        assert len(cache) == 1

    async def test_disconnect_all(self, manager, fake_factory):
        """Every connection is closed and none stays active."""
        await manager.connect("x", _config("x.db"))
        await manager.connect("y", _config("y.db"))
        await manager.disconnect_all()
        assert len(manager) == 0
        assert manager.active_name is None
        assert all(conn.closed for conn in fake_factory.connections.values())

    async def test_list_connections(self, manager):
        """Listing marks the active connection and never shows passwords."""
        await manager.connect(
            "x", DatabaseConfig(driver="mysql", database="shop", password="s3cret").with_defaults()
        )
        await manager.connect("y", _config("y.db"))
        infos = manager.list_connections()
        assert [info.name for info in infos] == ["x", "y"]
        assert infos[0].is_active and not infos[1].is_active
        assert infos[0].host == "localhost"
        assert "s3cret" not in str([info.model_dump() for info in infos])
