"""Status command for msyn CLI."""

from typing import Dict, Optional, Set

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.tree import Tree

from msyn.cli.app import app, get_settings
from msyn.cli.commands.sync import build_options
from msyn.config import ConfigError
from msyn.sync import SyncReport, SyncService

# Create rich console
console = Console()


def add_files_to_tree(
    tree: Tree, paths: Set[str], style: str, checksums: Optional[Dict[str, str]] = None
):
    """Add files to tree, grouped by directory."""
    # Group by directory
    by_dir: Dict[str, list] = {}
    for path in sorted(paths):
        parts = path.rsplit("/", 1)
        dir_name = parts[0] if len(parts) > 1 else ""
        file_name = parts[-1]
        by_dir.setdefault(dir_name, []).append((file_name, path))

    for dir_name, files in sorted(by_dir.items()):
        branch = tree.add(f"[bold]{dir_name}/[/bold]") if dir_name else tree
        for file_name, full_path in files:
            if checksums and full_path in checksums:
                branch.add(f"[{style}]{file_name}[/{style}] ({checksums[full_path][:8]})")
            else:
                branch.add(f"[{style}]{file_name}[/{style}]")


def display_changes(title: str, changes: SyncReport, verbose: bool = False):
    """Display pending changes of one target."""
    tree = Tree(title)

    if changes.total_changes == 0:
        tree.add("No changes")
        console.print(Panel(tree, expand=False))
        return

    if not verbose:
        # Compact display: counts per top level directory
        by_dir: Dict[str, Dict[str, int]] = {}
        for change_type, paths in [
            ("added", changes.added),
            ("updated", changes.updated),
            ("deleted", changes.deleted),
        ]:
            for path in paths:
                dir_name = path.split("/", 1)[0] if "/" in path else "."
                by_dir.setdefault(dir_name, {"added": 0, "updated": 0, "deleted": 0})
                by_dir[dir_name][change_type] += 1

        for dir_name, counts in sorted(by_dir.items()):
            summary_parts = []
            if counts["added"]:
                summary_parts.append(f"[green]+{counts['added']} added[/green]")
            if counts["updated"]:
                summary_parts.append(f"[yellow]~{counts['updated']} updated[/yellow]")
            if counts["deleted"]:
                summary_parts.append(f"[red]-{counts['deleted']} deleted[/red]")
            tree.add(f"[bold]{dir_name}/[/bold] {' '.join(summary_parts)}")
    else:
        summary = []
        if changes.added:
            summary.append(f"[green]{len(changes.added)} added[/green]")
        if changes.updated:
            summary.append(f"[yellow]{len(changes.updated)} updated[/yellow]")
        if changes.deleted:
            summary.append(f"[red]{len(changes.deleted)} deleted[/red]")
        if changes.optimized:
            summary.append(f"[cyan]{len(changes.optimized)} to optimize[/cyan]")
        tree.add(f"Found {', '.join(summary)}")

        if changes.added:
            add_files_to_tree(
                tree.add("[green]New Files[/green]"), changes.added, "green", changes.checksums
            )
        if changes.updated:
            add_files_to_tree(
                tree.add("[yellow]Updated[/yellow]"), changes.updated, "yellow", changes.checksums
            )
        if changes.deleted:
            add_files_to_tree(tree.add("[red]Deleted[/red]"), changes.deleted, "red")

    console.print(Panel(tree, expand=False))


@app.command()
def status(
    ctx: typer.Context,
    modules: Optional[str] = typer.Option(
        None, "--modules", "-m", help="Comma separated target names to check."
    ),
    optimize: bool = typer.Option(
        True, "--optimize/--no-optimize", help="Account for SVG optimization."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show every pending file."),
) -> None:
    """Show what a sync would change, without changing anything."""
    settings = get_settings(ctx)
    options = build_options(dry_run=True, optimize=optimize, modules=modules)

    try:
        reports = SyncService(settings).sync_all(options)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except Exception as e:
        logger.exception("Error checking status")
        typer.echo(f"Error checking status: {e}", err=True)
        raise typer.Exit(1)

    if not reports:
        console.print("[yellow]No targets to check[/yellow]")
        return

    for target_id, report in reports.items():
        display_changes(f"Status of {target_id}", report, verbose)
