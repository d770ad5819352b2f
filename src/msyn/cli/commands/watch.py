"""Watch command for msyn CLI."""

import asyncio
import signal
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape

from msyn.cli.app import app, get_settings
from msyn.cli.commands.sync import build_options
from msyn.config import ConfigError
from msyn.sync import SyncService, WatchService
from msyn.sync.watch_service import WatchError, WatchServiceState

console = Console()


def display_watch_summary(state: WatchServiceState):
    """Print the counters of a finished watch session."""
    console.print(
        f"[green]Watch stopped[/green] after {state.sync_count} syncs, {state.error_count} errors"
    )
    console.print(f"  pid {state.pid}, started {state.start_time:%Y-%m-%d %H:%M:%S}")
    if state.last_sync:
        console.print(f"  last sync: {state.last_sync:%Y-%m-%d %H:%M:%S}")
    if state.last_error:
        last = next((e.error for e in state.recent_events if e.status == "error"), None) or ""
        console.print(
            f"  [red]last error:[/red] {state.last_error:%Y-%m-%d %H:%M:%S} {escape(last)}"
        )


async def run_watch(watch_service: WatchService):
    """Run the watcher until SIGINT or SIGTERM."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:  # pragma: no cover
            # Windows: Ctrl-C surfaces as KeyboardInterrupt instead
            logger.debug(f"Signal handlers not supported for {sig.name}")

    await watch_service.run(stop_event)


@app.command()
def watch(
    ctx: typer.Context,
    force: bool = typer.Option(
        False, "--force", "-f", help="Copy every file on each sync, even when unchanged."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log every file operation."
    ),
    modules: Optional[str] = typer.Option(
        None, "--modules", "-m", help="Comma separated target names to watch."
    ),
    optimize: bool = typer.Option(
        True, "--optimize/--no-optimize", help="Optimize SVG files on their way to targets."
    ),
) -> None:
    """Sync once, then re-sync whenever source assets change."""
    settings = get_settings(ctx, verbose)
    options = build_options(verbose=verbose, force=force, optimize=optimize, modules=modules)

    try:
        watch_service = WatchService.from_config(SyncService(settings), options)
    except (ConfigError, WatchError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(
        f"[bold]Watch mode[/bold] (delay {int(watch_service.delay * 1000)}ms), "
        "press Ctrl+C to stop"
    )
    try:
        asyncio.run(run_watch(watch_service))
    except KeyboardInterrupt:  # pragma: no cover
        console.print("[yellow]Interrupted[/yellow]")

    display_watch_summary(watch_service.state)
