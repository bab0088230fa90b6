"""Unit tests for the DbRelay MCP server integration.

FastMCP tools are plain async functions; they are called directly here and
their JSON string results parsed.
"""

from __future__ import annotations

import json
from collections.abc import Generator

import pytest

# Skip entire module if mcp is not installed (optional dependency)
pytest.importorskip("mcp", reason="mcp not installed (install with: pip install dbrelay[mcp])")

from dbrelay.core.config import DatabaseConfig  # noqa: E402
from dbrelay.core.types import DriverType, QueryOutcome  # noqa: E402
from dbrelay.integrations.mcp import server as mcp_server  # noqa: E402
from dbrelay.operations import DatabaseOperations  # noqa: E402

pytestmark = pytest.mark.anyio


@pytest.fixture(autouse=True)
def set_mcp_ops(ops: DatabaseOperations) -> Generator[None, None, None]:
    """Inject fake-backed operations into the MCP server global before each test."""
    mcp_server._ops = ops
    yield
    mcp_server._ops = None


# === Helpers ===


def _ok(result: str) -> dict:
    """Parse result and assert success."""
    data = json.loads(result)
    assert data.get("success", True) is True, f"Unexpected error: {data.get('error')}"
    return data


def _err(result: str) -> dict:
    """Parse result and assert an error is present."""
    data = json.loads(result)
    assert data.get("error"), f"Expected error, got: {data}"
    return data


async def _connect(name: str = "main", database: str = "main.db") -> dict:
    return _ok(await mcp_server.connect_database(name, DriverType.SQLITE, database))


# === Server setup ===


class TestServerSetup:
    async def test_get_ops_requires_create_server(self) -> None:
        mcp_server._ops = None
        with pytest.raises(RuntimeError, match="create_server"):
            mcp_server.get_ops()

    async def test_create_server_with_default_connection(self, tmp_path) -> None:
        server = mcp_server.create_server(
            DatabaseConfig(driver="sqlite", database=":memory:"), project_root=tmp_path
        )
        assert server is mcp_server.mcp
        try:
            data = _ok(await mcp_server.execute_raw_sql("SELECT 1 AS one"))
            assert data["data"] == [{"one": 1}]
            listed = _ok(await mcp_server.list_connections())
            assert listed["activeConnection"] == "default"
        finally:
            await mcp_server.get_ops().disconnect_all()

    async def test_no_connection_is_an_error(self) -> None:
        data = _err(await mcp_server.query_data("users"))
        assert data["success"] is False


# === Connection Tools ===


class TestConnectionTools:
    async def test_connect_and_list(self) -> None:
        data = await _connect()
        assert data["connectionName"] == "main"
        assert data["driver"] == "sqlite"
        assert data["isActive"] is True

        listed = _ok(await mcp_server.list_connections())
        assert listed["totalConnections"] == 1
        assert listed["connections"][0]["name"] == "main"

    async def test_password_not_echoed(self) -> None:
        result = await mcp_server.connect_database(
            "main", DriverType.SQLITE, "main.db", password="hunter2"
        )
        assert "hunter2" not in result
        assert "hunter2" not in await mcp_server.list_connections()

    async def test_switch_and_disconnect(self) -> None:
        await _connect("a", "a.db")
        await _connect("b", "b.db")

        switched = _ok(await mcp_server.switch_connection("a"))
        assert switched["activeConnection"] == "a"

        _err(await mcp_server.switch_connection("missing"))

        disconnected = _ok(await mcp_server.disconnect_database())
        assert disconnected["remainingConnections"] == 1

        _ok(await mcp_server.disconnect_all())
        listed = _ok(await mcp_server.list_connections())
        assert listed["totalConnections"] == 0


# === Data Tools ===


class TestDataTools:
    async def test_query_data(self, fake_factory) -> None:
        await _connect()
        fake_factory.connections["main.db"].outcomes.append(
            QueryOutcome(rows=[{"id": 1, "name": "Ada"}], returns_rows=True)
        )

        data = _ok(
            await mcp_server.query_data(
                "users", select=["id", "name"], where={"deleted_at": None}, limit=1
            )
        )

        assert data["count"] == 1
        assert data["query"] == "SELECT id, name FROM users WHERE deleted_at IS NULL LIMIT 1"

    async def test_create_record(self, fake_factory) -> None:
        await _connect()
        fake_factory.connections["main.db"].outcomes.append(QueryOutcome(affected_rows=1, insert_id=7))

        data = _ok(await mcp_server.create_record("users", {"name": "Ada"}))

        assert data["insertId"] == 7

    async def test_update_requires_where(self) -> None:
        await _connect()
        data = _err(await mcp_server.update_record("users", {"name": "x"}, {}))
        assert data["success"] is False

    async def test_delete_record(self, fake_factory) -> None:
        await _connect()
        fake_factory.connections["main.db"].outcomes.append(QueryOutcome(affected_rows=2))

        data = _ok(await mcp_server.delete_record("users", {"status": "banned"}))

        assert data["affectedRows"] == 2

    async def test_injection_rejected(self, fake_factory) -> None:
        await _connect()
        _err(await mcp_server.query_data("users; DROP TABLE users"))
        assert fake_factory.connections["main.db"].executed == []

    async def test_execute_raw_sql(self, fake_factory) -> None:
        await _connect()
        data = _ok(await mcp_server.execute_raw_sql("UPDATE users SET name = ?", ["x"]))
        assert data["sql"] == "UPDATE users SET name = ?"
        assert fake_factory.connections["main.db"].executed[-1] == ("UPDATE users SET name = ?", ["x"])


# === Schema Tools ===


class TestSchemaTools:
    async def test_get_table_schema(self, fake_factory, users_columns) -> None:
        await _connect()
        fake_factory.connections["main.db"].columns = {"users": users_columns}

        data = _ok(await mcp_server.get_table_schema("users"))

        assert [c["field"] for c in data["columns"]] == ["id", "name", "email", "created_at"]
        assert data["indexes"][0]["name"] == "PRIMARY"

    async def test_clear_schema_cache(self) -> None:
        data = _ok(await mcp_server.clear_schema_cache("users"))
        assert "users" in data["message"]


# === Code Generation and Verification Tools ===


class TestCodegenTools:
    async def test_generate_and_analyze(self, tmp_path) -> None:
        model = _ok(await mcp_server.generate_model("User", fillable=["name", "email"]))
        assert model["filePath"].endswith("User.js")

        controller = _ok(await mcp_server.generate_controller("UserController", "User"))
        assert (tmp_path / "src" / "controllers" / "UserController.js").exists()
        assert controller["success"] is True

        analysis = json.loads(
            await mcp_server.analyze_controller("src/controllers/UserController.js", "User")
        )
        assert analysis["isValid"] is True

    async def test_generate_migration(self) -> None:
        data = _ok(
            await mcp_server.generate_migration(
                "create_posts_table", "posts", columns=[{"name": "title", "type": "string"}]
            )
        )
        assert data["fileName"].endswith("_create_posts_table.js")

    async def test_verify_missing_model(self) -> None:
        await _connect()
        data = json.loads(await mcp_server.verify_model_schema("src/models/Nope.js"))
        assert data["isValid"] is False
        assert "not found" in data["error"]

    async def test_check_consistency_without_migrations(self) -> None:
        await _connect()
        data = json.loads(await mcp_server.check_consistency())
        assert data["migrations"]["isValid"] is False
        assert data["isValid"] is False
