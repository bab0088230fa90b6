"""CLI command tests for DbRelay."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from dbrelay.cli.main import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep DB_* variables from the environment out of the CLI."""
    for var in ("DB_DRIVER", "DB_HOST", "DB_PORT", "DB_DATABASE", "DB_USER", "DB_PASSWORD"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def temp_db(tmp_path: Path) -> str:
    """A SQLite database file with a users table."""
    db_path = str(tmp_path / "app.db")
    result = runner.invoke(
        app,
        [
            "--driver",
            "sqlite",
            "-d",
            db_path,
            "data",
            "sql",
            "CREATE TABLE users (id INTEGER PRIMARY KEY AUTOINCREMENT, "
            "name TEXT NOT NULL, email TEXT, status TEXT DEFAULT 'active')",
        ],
    )
    assert result.exit_code == 0, result.stdout
    return db_path


def _invoke(db_path: str, *args: str):
    return runner.invoke(app, ["--driver", "sqlite", "-d", db_path, "--json", *args])


class TestVersionCommand:
    """Test the version command."""

    def test_version_output(self) -> None:
        """Version command shows version info."""
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "DbRelay v" in result.stdout


class TestToolsCommand:
    """Test the tools export command."""

    def test_default_json(self) -> None:
        """Tools are exported as a JSON array."""
        result = runner.invoke(app, ["tools"])
        assert result.exit_code == 0
        tools = json.loads(result.stdout)
        assert len(tools) == 20
        assert {"name", "description", "parameters"} <= set(tools[0])

    def test_anthropic_format(self) -> None:
        """Anthropic format uses input_schema."""
        result = runner.invoke(app, ["tools", "--format", "anthropic"])
        assert result.exit_code == 0
        assert all("input_schema" in t for t in json.loads(result.stdout))

    def test_openai_format(self) -> None:
        """OpenAI format wraps function definitions."""
        result = runner.invoke(app, ["tools", "-f", "openai"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)[0]["type"] == "function"


class TestDataCommands:
    """Test data CRUD commands against a SQLite file."""

    def test_insert_and_query(self, temp_db: str) -> None:
        """Inserted rows can be queried back."""
        result = _invoke(temp_db, "data", "insert", "users", '{"name": "Ada", "email": "ada@example.com"}')
        assert result.exit_code == 0, result.stdout
        assert json.loads(result.stdout)["insertId"] == 1

        result = _invoke(temp_db, "data", "query", "users", "-s", "id", "-s", "name")
        assert result.exit_code == 0, result.stdout
        assert json.loads(result.stdout) == [{"id": 1, "name": "Ada"}]

    def test_query_with_where_and_limit(self, temp_db: str) -> None:
        """Where filters and limits are applied."""
        for name in ("Ada", "Grace", "Linus"):
            _invoke(temp_db, "data", "insert", "users", json.dumps({"name": name}))
        _invoke(temp_db, "data", "update", "users", '{"status": "inactive"}', "--where", '{"name": "Linus"}')

        result = _invoke(
            temp_db,
            "data",
            "query",
            "users",
            "--where",
            '{"status": "active"}',
            "--order-by",
            "id DESC",
            "--limit",
            "1",
        )

        assert result.exit_code == 0, result.stdout
        rows = json.loads(result.stdout)
        assert [row["name"] for row in rows] == ["Grace"]

    def test_update_and_delete(self, temp_db: str) -> None:
        """Update and delete report affected rows."""
        _invoke(temp_db, "data", "insert", "users", '{"name": "Ada"}')

        result = _invoke(temp_db, "data", "update", "users", '{"name": "Ada L."}', "--where", '{"id": 1}')
        assert result.exit_code == 0, result.stdout
        assert json.loads(result.stdout)["affectedRows"] == 1

        result = _invoke(temp_db, "data", "delete", "users", "--where", '{"id": 1}')
        assert result.exit_code == 0, result.stdout
        assert json.loads(result.stdout)["affectedRows"] == 1

    def test_update_requires_where(self, temp_db: str) -> None:
        """--where is mandatory for update."""
        result = _invoke(temp_db, "data", "update", "users", '{"name": "x"}')
        assert result.exit_code != 0

    def test_empty_where_is_refused(self, temp_db: str) -> None:
        """An empty where is refused and nothing changes."""
        _invoke(temp_db, "data", "insert", "users", '{"name": "Ada"}')

        result = _invoke(temp_db, "data", "delete", "users", "--where", "{}")

        assert result.exit_code == 1
        assert "where" in json.loads(result.stdout)["error"].lower()
        rows = json.loads(_invoke(temp_db, "data", "query", "users").stdout)
        assert len(rows) == 1

    def test_invalid_json(self, temp_db: str) -> None:
        """Malformed JSON is a usage error."""
        result = _invoke(temp_db, "data", "insert", "users", "{not json}")
        assert result.exit_code != 0

    def test_invalid_table_name(self, temp_db: str) -> None:
        """Injection attempts in names fail with exit code 1."""
        result = _invoke(temp_db, "data", "query", "users; DROP TABLE users")
        assert result.exit_code == 1
        assert json.loads(result.stdout)["success"] is False

    def test_sql_with_params(self, temp_db: str) -> None:
        """Raw SQL binds --param values, decoding JSON literals."""
        _invoke(temp_db, "data", "insert", "users", '{"name": "Ada"}')

        result = _invoke(temp_db, "data", "sql", "SELECT name FROM users WHERE id = ?", "-p", "1")

        assert result.exit_code == 0, result.stdout
        assert json.loads(result.stdout) == [{"name": "Ada"}]


class TestSchemaCommands:
    """Test schema inspection commands."""

    def test_describe_json(self, temp_db: str) -> None:
        """Columns and indexes are described."""
        result = _invoke(temp_db, "schema", "describe", "users")
        assert result.exit_code == 0, result.stdout
        data = json.loads(result.stdout)
        assert [c["field"] for c in data["columns"]] == ["id", "name", "email", "status"]
        assert data["indexes"][0]["name"] == "PRIMARY"

    def test_describe_rich(self, temp_db: str) -> None:
        """Terminal output shows the table name."""
        result = runner.invoke(app, ["--driver", "sqlite", "-d", temp_db, "schema", "describe", "users"])
        assert result.exit_code == 0
        assert "users" in result.stdout

    def test_describe_missing_table(self, temp_db: str) -> None:
        """Unknown tables fail with exit code 1."""
        result = _invoke(temp_db, "schema", "describe", "ghosts")
        assert result.exit_code == 1


class TestConfiguration:
    """Test connection settings handling."""

    def test_missing_driver(self, tmp_path: Path) -> None:
        """Commands fail cleanly without a configured driver."""
        result = runner.invoke(app, ["-d", str(tmp_path / "x.db"), "data", "query", "users"])
        assert result.exit_code == 1

    def test_driver_from_environment(self, temp_db: str, monkeypatch: pytest.MonkeyPatch) -> None:
        """DB_* variables configure the connection."""
        monkeypatch.setenv("DB_DRIVER", "sqlite")
        monkeypatch.setenv("DB_DATABASE", temp_db)
        result = runner.invoke(app, ["--json", "data", "query", "users"])
        assert result.exit_code == 0, result.stdout
        assert json.loads(result.stdout) == []
