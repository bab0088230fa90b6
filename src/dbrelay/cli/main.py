"""DbRelay CLI - Main entry point."""

import json
from typing import Annotated

import typer

import dbrelay
from dbrelay.cli.context import CLIContext
from dbrelay.core.types import DriverType
from dbrelay.operations import DatabaseOperations
from dbrelay.tools.registry import ExportFormat, ToolRegistry

app = typer.Typer(
    name="dbrelay",
    help="DbRelay CLI - Safe SQL database access for AI agents",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    driver: Annotated[
        DriverType | None,
        typer.Option("--driver", envvar="DB_DRIVER", help="Database driver"),
    ] = None,
    host: Annotated[str | None, typer.Option("--host", envvar="DB_HOST", help="Database host")] = None,
    port: Annotated[int | None, typer.Option("--port", envvar="DB_PORT", help="Database port")] = None,
    database: Annotated[
        str | None,
        typer.Option(
            "--database",
            "-d",
            envvar="DB_DATABASE",
            help="Database name (file path for sqlite)",
        ),
    ] = None,
    user: Annotated[str | None, typer.Option("--user", envvar="DB_USER", help="Database user")] = None,
    password: Annotated[
        str | None,
        typer.Option("--password", envvar="DB_PASSWORD", help="Database password"),
    ] = None,
    echo: Annotated[bool, typer.Option("--echo", "-e", help="Log SQL emitted by SQLAlchemy")] = False,
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Print results as JSON on stdout")
    ] = False,
) -> None:
    """Collect connection settings for the subcommands."""
    cli_ctx = CLIContext(
        settings={
            "driver": driver.value if driver else None,
            "host": host,
            "port": port,
            "database": database,
            "user": user,
            "password": password,
        },
        echo=echo,
        json_output=json_output,
    )

    ctx.obj = cli_ctx


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"DbRelay v{dbrelay.__version__}")


@app.command()
def tools(
    output_format: Annotated[
        ExportFormat,
        typer.Option("--format", "-f", help="Export format"),
    ] = ExportFormat.JSON,
) -> None:
    """Print the agent tool definitions."""
    registry = ToolRegistry(DatabaseOperations())
    typer.echo(json.dumps(registry.export(output_format), default=str, indent=2))


@app.command()
def serve(
    ctx: typer.Context,
    project_root: Annotated[
        str | None,
        typer.Option("--project-root", envvar="DBRELAY_PROJECT_ROOT", help="Base directory for generated files"),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", help="Handler timeout in seconds"),
    ] = None,
) -> None:
    """Run the MCP server on stdio (requires the mcp extra)."""
    from dbrelay.integrations.mcp.server import create_server

    cli_ctx: CLIContext = ctx.obj
    config = cli_ctx.get_config() if cli_ctx.settings.get("driver") else None
    server = create_server(config, project_root=project_root, timeout=timeout)
    server.run(transport="stdio")


# Register command groups
from dbrelay.cli.commands import data, schema  # noqa: E402

app.add_typer(data.app, name="data")
app.add_typer(schema.app, name="schema")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
