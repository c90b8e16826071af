"""Rich-based output formatting for CLI."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

import lakeshelf.schema as schema_mod
import lakeshelf.settings as settings_mod

# Global console instance
console = Console()


def render_schema(schema: schema_mod.ColumnarSchema) -> None:
    """Render a columnar schema as a table of name, type and nullability."""
    table = Table(show_header=True, header_style="bold", box=None)
    table.add_column("#", style="dim")
    table.add_column("Column")
    table.add_column("Type")
    table.add_column("Nullable")

    for index, column in enumerate(schema.columns):
        table.add_row(
            str(index),
            column.name,
            f"{column.storage_type.value} [dim]({column.arrow_type})[/dim]",
            "[green]yes[/green]" if column.nullable else "[dim]no[/dim]",
        )

    console.print(table)


def render_rows(rows: list[dict[str, object]], names: list[str]) -> None:
    """Render row mappings with one column per name."""
    if not rows:
        console.print("[dim]No rows.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    for name in names:
        table.add_column(name)
    for row in rows:
        table.add_row(*("[dim]null[/dim]" if row.get(n) is None else str(row[n]) for n in names))

    console.print(table)


def render_settings(settings: settings_mod.LakeshelfSettings) -> None:
    """Render resolved settings, hiding storage option values."""
    console.print(f"[bold]Connection:[/bold] {settings.connection_string or '[red](not set)[/red]'}")
    console.print(f"[bold]File system:[/bold] {settings.file_system}")
    if settings.storage_options:
        console.print(f"[bold]Storage options:[/bold] {', '.join(sorted(settings.storage_options))}")
    console.print(
        f"[bold]Upload:[/bold] overwrite={settings.upload.overwrite} "
        f"retry_delay={settings.upload.retry_delay}s"
    )
    console.print(
        f"[bold]Formats:[/bold] json_indent={settings.formats.json_indent} "
        f"parquet_compression={settings.formats.parquet_compression}"
    )
