"""Data CRUD commands."""

from typing import Annotated

import typer

from dbrelay.cli.context import CLIContext
from dbrelay.cli.output import OutputFormatter
from dbrelay.cli.parsing import parse_json_object, parse_param

# Create data subcommand group
app = typer.Typer(help="Query and modify table rows")


def _run(ctx: typer.Context, operation: str, **kwargs: object) -> tuple[OutputFormatter, dict]:
    """Run an operation, exiting with code 1 on an error envelope."""
    cli_ctx: CLIContext = ctx.obj
    formatter = OutputFormatter(cli_ctx.json_output)
    try:
        result = cli_ctx.run(operation, **kwargs)
    except Exception as e:
        formatter.print_error(e)
        raise typer.Exit(code=1)
    if not result.get("success"):
        formatter.print_error(result.get("error", "Unknown error"))
        raise typer.Exit(code=1)
    return formatter, result


@app.command("query")
def data_query(
    ctx: typer.Context,
    table: Annotated[str, typer.Argument(help="Table name")],
    select: Annotated[
        list[str] | None,
        typer.Option("--select", "-s", help="Column to return (repeatable)"),
    ] = None,
    where: Annotated[
        str | None,
        typer.Option("--where", "-w", help='Equality filters as JSON, e.g. \'{"status": "active"}\''),
    ] = None,
    order_by: Annotated[
        str | None,
        typer.Option("--order-by", "-o", help='Sort terms, e.g. "created_at DESC, id"'),
    ] = None,
    limit: Annotated[int | None, typer.Option("--limit", "-l", help="Maximum rows")] = None,
    offset: Annotated[int | None, typer.Option("--offset", help="Rows to skip")] = None,
) -> None:
    """Query rows from a table.

    Examples:

        dbrelay data query users --where '{"status": "active"}' --limit 10

        dbrelay data query users -s id -s email --order-by "id DESC"
    """
    where_filter = parse_json_object(where, "--where")
    formatter, result = _run(
        ctx,
        "query_data",
        table=table,
        select=select or None,
        where=where_filter,
        order_by=order_by,
        limit=limit,
        offset=offset,
    )
    formatter.print_rows(f"{table} ({result['count']} rows)", result["data"], select or None)


@app.command("insert")
def data_insert(
    ctx: typer.Context,
    table: Annotated[str, typer.Argument(help="Table name")],
    data_json: Annotated[str, typer.Argument(help="Record data as JSON object")],
) -> None:
    """Insert a record into a table.

    Examples:

        dbrelay data insert users '{"name": "Ada", "email": "ada@example.com"}'
    """
    data = parse_json_object(data_json, "DATA")
    formatter, result = _run(ctx, "create_record", table=table, data=data)
    formatter.print_write("Inserted record", {"insertId": result.get("insertId")})


@app.command("update")
def data_update(
    ctx: typer.Context,
    table: Annotated[str, typer.Argument(help="Table name")],
    data_json: Annotated[str, typer.Argument(help="New values as JSON object")],
    where: Annotated[
        str,
        typer.Option("--where", "-w", help="Equality filters as JSON (required, non-empty)"),
    ],
) -> None:
    """Update records matching --where.

    Examples:

        dbrelay data update users '{"status": "inactive"}' --where '{"id": 3}'
    """
    data = parse_json_object(data_json, "DATA")
    where_filter = parse_json_object(where, "--where")
    formatter, result = _run(ctx, "update_record", table=table, data=data, where=where_filter)
    formatter.print_write("Updated records", {"affectedRows": result["affectedRows"]})


@app.command("delete")
def data_delete(
    ctx: typer.Context,
    table: Annotated[str, typer.Argument(help="Table name")],
    where: Annotated[
        str,
        typer.Option("--where", "-w", help="Equality filters as JSON (required, non-empty)"),
    ],
) -> None:
    """Delete records matching --where.

    Examples:

        dbrelay data delete users --where '{"id": 3}'
    """
    where_filter = parse_json_object(where, "--where")
    formatter, result = _run(ctx, "delete_record", table=table, where=where_filter)
    formatter.print_write("Deleted records", {"affectedRows": result["affectedRows"]})


@app.command("sql")
def data_sql(
    ctx: typer.Context,
    sql: Annotated[str, typer.Argument(help="SQL statement with ? placeholders")],
    params: Annotated[
        list[str] | None,
        typer.Option("--param", "-p", help="Placeholder value (repeatable, JSON literals decoded)"),
    ] = None,
) -> None:
    """Execute raw SQL. The statement is sent as written.

    Examples:

        dbrelay data sql "SELECT * FROM users WHERE id = ?" -p 1
    """
    formatter, result = _run(
        ctx, "execute_raw_sql", sql=sql, params=[parse_param(p) for p in params or []]
    )
    if result.get("data"):
        formatter.print_rows(f"{result['count']} rows", result["data"])
    else:
        formatter.print_write(
            "Statement executed",
            {"affectedRows": result.get("affectedRows", 0), "insertId": result.get("insertId")},
        )
