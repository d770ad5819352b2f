"""Reset command for msyn CLI."""

import typer
from rich.console import Console

from msyn.cli.app import app, get_settings
from msyn.config import ConfigError
from msyn.file_utils import FileError
from msyn.sync import SyncService

console = Console()


@app.command()
def reset(
    ctx: typer.Context,
    cache: bool = typer.Option(
        False, "--cache", help="Also delete every optimized SVG directory."
    ),
) -> None:
    """Forget what was synced, so the next sync starts from scratch."""
    settings = get_settings(ctx)

    try:
        removed = SyncService(settings).reset(clear_cache=cache)
    except (ConfigError, FileError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if not removed:
        console.print("[green]Nothing to reset[/green]")
        return
    for path in removed:
        console.print(f"Removed [bold]{path}[/bold]")
