"""``index``: chunk, embed and store a directory."""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Optional
import json

import typer
from rich.console import Console

from chopper_core.errors import ChopperError
from chopper_core.store import open_store
from chopper_ops.indexing import index_directory

from ..util import load_config

console = Console()
err_console = Console(stderr=True)


def index(
    directory: Path = typer.Argument(Path("."), help="Directory to index"),
    db: Optional[Path] = typer.Option(None, "--db", help="Database path (overrides config)"),
    as_json: bool = typer.Option(False, "--json", help="Print a JSON summary"),
):
    """Index every eligible source file under DIRECTORY."""
    try:
        config = load_config(db=db)
        if not as_json:
            console.print(f"Indexing directory: [cyan]{directory.resolve()}[/cyan]")
        with open_store(
            config.store.path,
            config.store.dimension,
            busy_timeout_ms=config.store.busy_timeout_ms,
        ) as store:
            result = index_directory(directory, config, store=store)
    except (ChopperError, FileNotFoundError, ValueError) as e:
        err_console.print(f"[red]❌ Indexing failed:[/red] {e}")
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps(asdict(result), indent=2))
        return

    if result.chunks_indexed == 0:
        console.print("[yellow]No code chunks found to index.[/yellow]")
        return

    console.print(
        f"[green]✓[/green] Indexed {result.chunks_indexed} code chunk(s) "
        f"from {result.files_processed} file(s) into {result.db_path}"
    )
    if result.chunks_skipped or result.chunks_zero_filled:
        console.print(
            f"[yellow]⚠ {result.chunks_skipped} skipped, "
            f"{result.chunks_zero_filled} stored with zero vectors[/yellow]"
        )
    console.print(f"[dim]Completed in {result.duration_ms:.1f}ms[/dim]")
