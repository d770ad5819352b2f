"""Optimize command for msyn CLI."""

from typing import Dict

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from msyn.cli.app import app, get_settings
from msyn.config import ConfigError
from msyn.sync import SyncService
from msyn.sync.optimized_cache import OptimizeReport

console = Console()


def display_optimize_results(reports: Dict[str, OptimizeReport], verbose: bool = False):
    table = Table(title="SVG Optimization")
    table.add_column("Directory", style="cyan")
    table.add_column("Optimized", justify="right", style="green")
    table.add_column("Skipped", justify="right", style="yellow")
    table.add_column("Failed", justify="right", style="red")

    for directory, report in reports.items():
        table.add_row(
            directory,
            str(len(report.optimized)),
            str(len(report.skipped)),
            str(len(report.failed)),
        )
    console.print(table)

    for report in reports.values():
        if verbose:
            for path in report.optimized:
                console.print(f"  [green]✓[/green] {path}")
        for path in report.failed:
            console.print(f"  [red]✗[/red] {path}")

    if any(r.skipped for r in reports.values()) and not verbose:
        console.print("[dim]Up to date files were skipped, use --force to overwrite[/dim]")

    for directory in reports:
        console.print(f"Output directory: [bold]{directory}[/bold]")


@app.command()
def optimize(
    ctx: typer.Context,
    force: bool = typer.Option(
        False, "--force", "-f", help="Re-optimize files that are already up to date."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show every optimized file."),
) -> None:
    """Optimize every source SVG into its optimized directory."""
    settings = get_settings(ctx, verbose)

    try:
        reports = SyncService(settings).optimize_all(force=force, verbose=verbose)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except Exception as e:
        logger.exception("Optimization failed")
        typer.echo(f"Error during optimization: {e}", err=True)
        raise typer.Exit(1)

    if not reports:
        console.print("[yellow]Nothing to optimize[/yellow]")
        return

    display_optimize_results(reports, verbose)
