"""lakeshelf CLI: store typed records as JSON or Parquet.

Runs a sample against the configured store and inspects local Parquet files.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Annotated

import cyclopts
from loguru import logger
from rich.console import Console

import lakeshelf.errors as errors
import lakeshelf.output as output
import lakeshelf.rowgroup as rowgroup
import lakeshelf.settings as settings
from lakeshelf.storage import DataLakeContext

# Version is defined here and in pyproject.toml
__version__ = "0.1.0"

console = Console()

app = cyclopts.App(
    name="lakeshelf",
    help="Store typed records in an object store as JSON or single-row-group Parquet.",
    version=__version__,
)


@dataclass
class SampleData:
    """Record written by the sample command."""

    id: int
    name: str | None
    timestamp: datetime
    value: float
    is_active: bool
    metadata: dict[str, str] | None = field(default=None)


def _handle_error(e: errors.LakeshelfError) -> None:
    """Display a structured error message."""
    console.print(f"[bold red]Error:[/bold red] {e.context}\n")
    console.print(f"[yellow]Cause:[/yellow] {e.cause}\n")
    console.print(f"[green]Fix:[/green] {e.fix}")


def _load(config: Path | None) -> settings.LakeshelfSettings:
    return settings.load_settings(config)


def sample_items(count: int, now: datetime) -> list[SampleData]:
    """Sample records with ids 1..count, one hour apart."""
    return [
        SampleData(
            id=i,
            name=f"Item {i}",
            timestamp=now - timedelta(hours=i),
            value=100.0 * i,
            is_active=i % 2 == 0,
            metadata={"Category": f"Category {i % 3}", "Batch": now.strftime("%Y%m%d")},
        )
        for i in range(1, count + 1)
    ]


async def _run_sample(context: DataLakeContext, file_system: str | None) -> None:
    now = datetime.now(timezone.utc).replace(tzinfo=None)

    console.print("[bold]Example 1:[/bold] storing a single item as JSON...")
    single = SampleData(
        id=1,
        name="Test Item",
        timestamp=now,
        value=123.45,
        is_active=True,
        metadata={"Category": "Test", "Priority": "High"},
    )
    json_path = await context.store_item_as_json(
        single, "samples/json", file_system=file_system, file_name="sample-data.json"
    )
    console.print(f"  Stored JSON file at: {json_path}")

    console.print("[bold]Example 2:[/bold] storing multiple items as Parquet...")
    parquet_path = await context.store_items_as_parquet(
        sample_items(10, now), "samples/parquet", file_system=file_system, file_name="sample-data"
    )
    console.print(f"  Stored Parquet file at: {parquet_path}")

    console.print("[bold]Example 3:[/bold] checking if files exist...")
    for path in (json_path, parquet_path):
        exists = await context.file_exists(path, file_system=file_system)
        marker = "[green]✓[/green]" if exists else "[red]✗[/red]"
        console.print(f"  {marker} {path}")

    console.print("[bold]Example 4:[/bold] listing files in 'samples'...")
    for path in await context.list_files("samples", file_system=file_system, recursive=True):
        console.print(f"  - {path}")


@app.command
def sample(
    config: Annotated[
        Path | None,
        cyclopts.Parameter(name="--config", help="Path to lakeshelf.yaml"),
    ] = None,
    file_system: Annotated[
        str | None,
        cyclopts.Parameter(name="--file-system", help="File system (container) to write to"),
    ] = None,
):
    """Store sample records as JSON and Parquet, then list them."""
    try:
        context = DataLakeContext(_load(config))
        t_start = time.perf_counter()
        asyncio.run(_run_sample(context, file_system))
        logger.debug(f"Sample: {(time.perf_counter() - t_start) * 1000:.1f}ms")
    except errors.LakeshelfError as e:
        _handle_error(e)
        raise SystemExit(1)


@app.command
def inspect(
    path: Annotated[Path, cyclopts.Parameter(help="Local Parquet file")],
    limit: Annotated[
        int,
        cyclopts.Parameter(name="--limit", help="Maximum rows to show"),
    ] = 10,
):
    """Show the columnar schema and first rows of a Parquet file."""
    try:
        if not path.exists():
            raise errors.StorageError(
                context=f"Inspecting '{path}'",
                cause="File not found",
                fix="Pass the path of an existing .parquet file",
            )
        data = path.read_bytes()
        schema = rowgroup.read_schema(data)
        console.print(f"[bold]{path}[/bold]")
        output.render_schema(schema)
        console.print()

        rows = rowgroup.pivot(rowgroup.read_row_group(data))
        output.render_rows(rows[:limit], schema.names)
        console.print(f"[dim]Total: {len(rows)} row(s) in row group 0[/dim]")
    except errors.LakeshelfError as e:
        _handle_error(e)
        raise SystemExit(1)


@app.command
def config(
    path: Annotated[
        Path | None,
        cyclopts.Parameter(name="--config", help="Path to lakeshelf.yaml"),
    ] = None,
):
    """Show the resolved configuration."""
    try:
        output.render_settings(_load(path))
    except errors.LakeshelfError as e:
        _handle_error(e)
        raise SystemExit(1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
