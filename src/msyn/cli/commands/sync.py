"""Command module for msyn sync operations."""

from typing import Dict, Optional

import typer
from loguru import logger
from rich.console import Console
from rich.padding import Padding
from rich.panel import Panel
from rich.text import Text
from rich.tree import Tree

from msyn.cli.app import app, get_settings
from msyn.config import ConfigError
from msyn.sync import SyncOptions, SyncReport, SyncService
from msyn.utils import parse_csv

console = Console()


def build_options(
    dry_run: bool = False,
    verbose: bool = False,
    force: bool = False,
    optimize: bool = True,
    modules: Optional[str] = None,
) -> SyncOptions:
    names = parse_csv(modules)
    return SyncOptions(
        dry_run=dry_run,
        verbose=verbose,
        force=force,
        optimize=optimize,
        targets=frozenset(names) if names else None,
    )


def display_sync_errors(reports: Dict[str, SyncReport]):
    """Show files that were skipped this run, grouped by target."""
    failed = {target_id: r.errors for target_id, r in reports.items() if r.errors}
    if not failed:
        return

    tree = Tree("[bold]Skipped files[/bold]")
    for target_id, errors in sorted(failed.items()):
        branch = tree.add(
            f"[bold blue]{target_id}[/bold blue] ([yellow]{len(errors)} files[/yellow])"
        )
        for path, error in sorted(errors.items()):
            branch.add(Text.assemble(("└─ ", "dim"), (path, "yellow"), ": ", (error, "red")))

    console.print()
    console.print(Padding(tree, (1, 2)))
    console.print(
        Panel(
            Text.assemble(
                ("These files were not synced.", "bold"),
                " Fix the errors above and run ",
                ("msyn sync", "bold cyan"),
                " again.",
            ),
            expand=False,
        )
    )


def display_sync_summary(reports: Dict[str, SyncReport], dry_run: bool = False):
    """Display a one-line summary of sync changes per target."""
    if not any(r.total_changes for r in reports.values()):
        console.print("[green]Everything up to date[/green]")
        return

    verb = "Would sync" if dry_run else "Synced"
    for target_id, report in reports.items():
        if not report.total_changes:
            console.print(f"{target_id}: [green]up to date[/green]")
            continue

        # Format as: "Synced X files (A added, B updated, C deleted)"
        changes = []
        if report.added:
            changes.append(f"[green]{len(report.added)} added[/green]")
        if report.updated:
            changes.append(f"[yellow]{len(report.updated)} updated[/yellow]")
        if report.deleted:
            changes.append(f"[red]{len(report.deleted)} deleted[/red]")
        if report.optimized:
            changes.append(f"[cyan]{len(report.optimized)} optimized[/cyan]")

        console.print(f"{target_id}: {verb} {report.total_changes} files ({', '.join(changes)})")


def display_detailed_sync_results(reports: Dict[str, SyncReport], dry_run: bool = False):
    """Display detailed sync results with trees."""
    if not any(r.total_changes for r in reports.values()):
        console.print("\n[green]Everything up to date[/green]")
        return

    console.print("\n[bold]Pending Changes[/bold]" if dry_run else "\n[bold]Sync Results[/bold]")

    for target_id, report in reports.items():
        if report.total_changes == 0:
            continue
        target_tree = Tree(f"[bold]{target_id}[/bold]")
        if report.added:
            added = target_tree.add("[green]Added[/green]")
            for path in sorted(report.added):
                checksum = report.checksums.get(path, "")
                added.add(f"[green]{path}[/green] ({checksum[:8]})")
        if report.updated:
            updated = target_tree.add("[yellow]Updated[/yellow]")
            for path in sorted(report.updated):
                checksum = report.checksums.get(path, "")
                updated.add(f"[yellow]{path}[/yellow] ({checksum[:8]})")
        if report.deleted:
            deleted = target_tree.add("[red]Deleted[/red]")
            for path in sorted(report.deleted):
                deleted.add(f"[red]{path}[/red]")
        console.print(target_tree)


@app.command()
def sync(
    ctx: typer.Context,
    force: bool = typer.Option(
        False, "--force", "-f", help="Copy every file, even when unchanged."
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show detailed sync information.",
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-d", help="Show what would change without touching any file."
    ),
    modules: Optional[str] = typer.Option(
        None, "--modules", "-m", help="Comma separated target names to sync."
    ),
    optimize: bool = typer.Option(
        True, "--optimize/--no-optimize", help="Optimize SVG files on their way to targets."
    ),
) -> None:
    """Sync source assets into every enabled target."""
    settings = get_settings(ctx, verbose)
    options = build_options(dry_run, verbose, force, optimize, modules)

    try:
        reports = SyncService(settings).sync_all(options)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except Exception as e:
        logger.exception("Sync failed")
        typer.echo(f"Error during sync: {e}", err=True)
        raise typer.Exit(1)

    if not reports:
        console.print("[yellow]No targets to sync[/yellow]")
        return

    if dry_run:
        console.print("[yellow]Dry run: no files were changed[/yellow]")

    if verbose or dry_run:
        display_detailed_sync_results(reports, dry_run)
    else:
        display_sync_summary(reports, dry_run)
    display_sync_errors(reports)
