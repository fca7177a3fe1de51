"""``query``: k-nearest-neighbor search by text."""

from __future__ import annotations

from pathlib import Path
from typing import Optional
import json

import typer
from rich.console import Console
from rich.table import Table

from chopper_core.errors import ChopperError
from chopper_core.store import open_store
from chopper_ops.query import query_text

from ..util import load_config

console = Console()
err_console = Console(stderr=True)


def _preview(text: str, limit: int = 100) -> str:
    flat = " ".join(text.split())
    return flat[:limit] + "..." if len(flat) > limit else flat


def query(
    text: str = typer.Argument(..., help="Query text to search for"),
    k: int = typer.Option(5, "--top-k", "-k", help="Number of results to return"),
    db: Optional[Path] = typer.Option(None, "--db", help="Database path (overrides config)"),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON"),
):
    """Search indexed chunks similar to TEXT."""
    try:
        config = load_config(db=db)
        with open_store(
            config.store.path,
            config.store.dimension,
            busy_timeout_ms=config.store.busy_timeout_ms,
        ) as store:
            outcome = query_text(text, config, store=store, k=k)
    except (ChopperError, ValueError) as e:
        err_console.print(f"[red]❌ Search failed:[/red] {e}")
        raise typer.Exit(1)

    if as_json:
        payload = {
            "query": outcome.query,
            "k": outcome.k,
            "results": [r.to_dict() for r in outcome.results],
        }
        typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    if not outcome.results:
        console.print(f"[yellow]No results found for query \"{text}\".[/yellow]")
        return

    table = Table(title=f"Top {k} results for \"{_preview(text, 50)}\"")
    table.add_column("Rank", style="cyan", width=6)
    table.add_column("Distance", style="green", width=10)
    table.add_column("File", style="magenta")
    table.add_column("Entity", style="cyan")
    table.add_column("Snippet", style="white", width=60)

    for i, result in enumerate(outcome.results, 1):
        entity = ".".join(p for p in (result.parent_path, result.entity_name) if p) or "-"
        table.add_row(
            str(i),
            f"{result.distance:.4f}",
            result.file_path,
            entity,
            _preview(result.chunk_text),
        )

    console.print(table)
    console.print(f"\n[dim]Search completed in {outcome.duration_ms:.1f}ms[/dim]")
