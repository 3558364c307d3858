"""Engine commands: sheets, objects, layout, data, eval, select."""

from __future__ import annotations

from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from qixclient.cli.shared.engine_utils import print_json, run_engine_command
from qixclient.config.schema import Config
from qixclient.qix.document import open_document


def _parse_value(raw: str, numeric: bool) -> Any:
    if not numeric:
        return raw
    try:
        number = float(raw)
    except ValueError:
        raise typer.BadParameter(f"not a number: {raw}", param_hint="VALUES")
    return int(number) if number.is_integer() else number


def register_engine_commands(app: typer.Typer, console: Console) -> None:
    """Register the commands that talk to a document."""

    @app.command("sheets")
    def sheets(
        ctx: typer.Context,
        app_id: str = typer.Argument(..., help="Document (app) id"),
        as_json: bool = typer.Option(False, "--json", help="Print raw JSON instead of a table"),
    ) -> None:
        """List the sheets of a document."""

        async def _action(config: Config) -> list[dict[str, Any]]:
            async with open_document(app_id, config) as doc:
                return await doc.list_sheets()

        found = run_engine_command(ctx, console, "sheets", _action)
        if as_json:
            print_json(console, [{"id": s["id"], "title": s["title"]} for s in found])
            return
        table = Table(title=f"Sheets in {escape(app_id)}")
        table.add_column("ID", style="cyan")
        table.add_column("Title")
        for sheet in found:
            table.add_row(escape(str(sheet["id"] or "")), escape(str(sheet["title"])))
        console.print(table)
        console.print(f"[dim]{len(found)} sheet(s)[/dim]")

    @app.command("objects")
    def objects(
        ctx: typer.Context,
        app_id: str = typer.Argument(..., help="Document (app) id"),
        sheet_id: str = typer.Argument(..., help="Sheet object id"),
        as_json: bool = typer.Option(False, "--json", help="Print raw JSON instead of a table"),
    ) -> None:
        """List the child objects placed on a sheet."""

        async def _action(config: Config) -> list[dict[str, Any]]:
            async with open_document(app_id, config) as doc:
                return await doc.list_objects(sheet_id)

        found = run_engine_command(ctx, console, "objects", _action)
        if as_json:
            print_json(console, [{"id": o["id"], "type": o["type"]} for o in found])
            return
        table = Table(title=f"Objects on {escape(sheet_id)}")
        table.add_column("ID", style="cyan")
        table.add_column("Type")
        for child in found:
            table.add_row(escape(str(child["id"] or "")), escape(str(child["type"] or "")))
        console.print(table)
        console.print(f"[dim]{len(found)} object(s)[/dim]")

    @app.command("layout")
    def layout(
        ctx: typer.Context,
        app_id: str = typer.Argument(..., help="Document (app) id"),
        object_id: str = typer.Argument(..., help="Object id"),
    ) -> None:
        """Print an object's layout as JSON."""

        async def _action(config: Config) -> dict[str, Any]:
            async with open_document(app_id, config) as doc:
                return await doc.describe_object(object_id)

        view = run_engine_command(ctx, console, "layout", _action)
        console.print(
            f"[bold]{escape(str(view['object_id'] or object_id))}[/bold] "
            f"[dim]({escape(str(view['object_type'] or 'unknown'))})[/dim]"
        )
        print_json(console, view["raw"])

    @app.command("data")
    def data(
        ctx: typer.Context,
        app_id: str = typer.Argument(..., help="Document (app) id"),
        object_id: str = typer.Argument(..., help="Object id holding a hypercube"),
        max_rows: int | None = typer.Option(None, "--max-rows", min=1, help="Stop after this many rows"),
        page_size: int | None = typer.Option(None, "--page-size", min=1, help="Rows per GetHyperCubeData request"),
        raw: bool = typer.Option(False, "--raw", help="Print the engine's cell matrix as JSON"),
    ) -> None:
        """Fetch an object's hypercube data."""

        async def _action(config: Config) -> Any:
            async with open_document(app_id, config) as doc:
                return await doc.get_hypercube_data(
                    object_id, page_size=page_size, max_rows=max_rows, raw=raw
                )

        result = run_engine_command(ctx, console, "data", _action)
        if raw:
            print_json(console, result)
            return
        table = Table(title=f"Data of {escape(object_id)}")
        for header in result["headers"]:
            table.add_column(escape(header) or "-")
        for row in result["rows"]:
            table.add_row(*(escape(text) for text in row["text"]))
        console.print(table)
        suffix = " [yellow](truncated)[/yellow]" if result["truncated"] else ""
        console.print(f"[dim]{result['total_rows']} row(s)[/dim]{suffix}")

    @app.command("eval")
    def evaluate(
        ctx: typer.Context,
        app_id: str = typer.Argument(..., help="Document (app) id"),
        expression: str = typer.Argument(..., help="Expression, e.g. \"Sum(Sales)\""),
    ) -> None:
        """Evaluate an expression in the document's current selection state."""

        async def _action(config: Config) -> Any:
            async with open_document(app_id, config) as doc:
                return await doc.evaluate(expression)

        value = run_engine_command(ctx, console, "eval", _action)
        console.print(escape(str(value)), highlight=False)

    @app.command("select")
    def select(
        ctx: typer.Context,
        app_id: str = typer.Argument(..., help="Document (app) id"),
        field: str = typer.Argument(..., help="Field name"),
        values: list[str] = typer.Argument(..., help="Values to select"),
        numeric: bool = typer.Option(False, "--numeric", help="Send values as numbers"),
        toggle: bool = typer.Option(False, "--toggle", help="Toggle instead of replacing the selection"),
    ) -> None:
        """Select values in a field (the selection lasts for this session only)."""
        parsed = [_parse_value(v, numeric) for v in values]

        async def _action(config: Config) -> bool:
            async with open_document(app_id, config) as doc:
                return await doc.select_values(field, parsed, toggle=toggle)

        changed = run_engine_command(ctx, console, "select", _action)
        if changed:
            console.print(f"[green]✓[/green] Selected {len(parsed)} value(s) in {escape(field)}")
        else:
            console.print(f"[yellow]Engine reported no change for {escape(field)}[/yellow]")
