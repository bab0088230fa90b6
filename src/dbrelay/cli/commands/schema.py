"""Schema inspection commands."""

from typing import Annotated

import typer

from dbrelay.cli.context import CLIContext
from dbrelay.cli.output import OutputFormatter

# Create schema subcommand group
app = typer.Typer(help="Inspect table schemas")


@app.command("describe")
def schema_describe(
    ctx: typer.Context,
    table: Annotated[str, typer.Argument(help="Table name")],
) -> None:
    """Show a table's columns and indexes."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)

    try:
        result = cli_ctx.run("get_table_schema", table=table)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)

    if not result["success"]:
        formatter.print_error(result["error"])
        raise typer.Exit(code=1)
    formatter.print_schema(result)
