from __future__ import annotations

from pathlib import Path
from typing import Optional
import typer

from .util import configure_logging, configure_stdio, set_global_config_file

app = typer.Typer(help="chopper-grep: semantic search over source code chunks")


@app.callback()
def _init(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config-file",
        help="Path to config file (default: ./chopper.toml if present)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    configure_stdio()
    configure_logging(verbose)
    set_global_config_file(config_file)


from .commands.index import index as index_fn  # noqa: E402
from .commands.query import query as query_fn  # noqa: E402

app.command(name="index")(index_fn)
app.command(name="query")(query_fn)


def main():
    app()
