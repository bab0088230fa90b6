"""Terminal and JSON rendering of operation envelopes."""

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from dbrelay.exceptions import DbRelayError

console = Console()


def _cell(value: Any) -> Text:
    if value is None:
        return Text("NULL", style="dim italic")
    return Text(str(value))


class OutputFormatter:
    """Renders results with Rich, or as JSON on stdout when ``--json`` is set."""

    def __init__(self, json_mode: bool = False) -> None:
        self.json_mode = json_mode

    def _emit_json(self, payload: Any) -> None:
        print(json.dumps(payload, default=str, indent=2))

    def print_rows(
        self,
        title: str,
        rows: list[dict[str, Any]],
        columns: list[str] | None = None,
    ) -> None:
        """Print result rows.

        JSON mode prints the bare list of rows so it can be piped into jq.

        Args:
            title: Caption above the table
            rows: Row dicts as returned by the handlers
            columns: Column order (default: keys of the first row)
        """
        if self.json_mode:
            self._emit_json(rows)
            return

        if not rows:
            console.print(f"[yellow]{title}: no rows[/yellow]")
            return

        table = Table(title=title, show_header=True, header_style="bold magenta")
        headers = columns or list(rows[0])
        for header in headers:
            table.add_column(header)
        for row in rows:
            table.add_row(*(_cell(row.get(header)) for header in headers))
        console.print(table)

    def print_schema(self, result: dict[str, Any]) -> None:
        """Print a get_table_schema envelope as column and index tables."""
        if self.json_mode:
            self._emit_json(result)
            return

        console.print(f"\n[bold]Table:[/bold] {result['table']}")
        columns_table = Table(show_header=True, header_style="bold cyan")
        for heading in ("Field", "Type", "Nullable", "Key", "Default"):
            columns_table.add_column(heading)
        for col in result.get("columns", []):
            columns_table.add_row(
                col["field"],
                col["type"],
                "yes" if col["nullable"] else "no",
                col["key"],
                "" if col["default"] is None else str(col["default"]),
            )
        console.print(columns_table)

        indexes = result.get("indexes", [])
        if indexes:
            console.print(f"\n[bold]Indexes ({len(indexes)}):[/bold]")
            index_table = Table(show_header=True, header_style="bold cyan")
            for heading in ("Name", "Column", "Unique"):
                index_table.add_column(heading)
            for index in indexes:
                index_table.add_row(
                    index["name"] or "", index["column"], "yes" if index["unique"] else "no"
                )
            console.print(index_table)

    def print_write(self, message: str, counts: dict[str, Any]) -> None:
        """Print the outcome of a write statement.

        Args:
            message: Short summary, e.g. "Inserted record"
            counts: affectedRows / insertId values to report
        """
        reported = {key: value for key, value in counts.items() if value is not None}
        if self.json_mode:
            self._emit_json({"success": True, "message": message, **reported})
            return
        summary = ", ".join(f"{key}={value}" for key, value in reported.items())
        console.print(f"[green]✓ {message}[/green]" + (f" [dim]({summary})[/dim]" if summary else ""))

    def print_error(self, error: Exception | str) -> None:
        """Print a raised exception or the error text of a failed envelope."""
        if isinstance(error, DbRelayError):
            payload = error.to_dict()
            details = "\n".join(f"{key}: {value}" for key, value in error.context.items())
        else:
            payload = {"success": False, "error": str(error)}
            details = ""

        if self.json_mode:
            self._emit_json(payload)
            return

        body = str(error) if not details else f"{error}\n\n{details}"
        console.print(Panel(body, title="[red]Error[/red]", border_style="red"))
