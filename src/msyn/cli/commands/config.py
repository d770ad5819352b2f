"""Config command for msyn CLI."""

import typer
from rich.console import Console
from rich.table import Table

from msyn.cli.app import app, get_settings
from msyn.config import ConfigError, ConfigManager, MsynConfig

console = Console()


def display_config(config: MsynConfig, manager: ConfigManager):
    """Show the effective configuration as tables."""
    source = "file" if manager.config_file.exists() else "built-in defaults"
    console.print(f"[bold]Configuration[/bold] ({source}): {manager.config_file}")

    sources = Table(title="Asset Directories")
    sources.add_column("Type", style="cyan")
    sources.add_column("Source")
    sources.add_column("Optimized")
    for asset_type, directory in config.assets.items():
        sources.add_row(asset_type, directory.source, directory.optimized or "-")
    if config.source_dir:
        sources.add_row("(default)", config.source_dir, config.optimized_dir or "-")
    console.print(sources)

    targets = Table(title="Targets")
    targets.add_column("Target", style="cyan")
    targets.add_column("Destination")
    targets.add_column("Asset Type")
    targets.add_column("Formats")
    targets.add_column("Enabled", justify="center")
    for target in config.targets:
        targets.add_row(
            target.target_id,
            target.destination,
            target.asset_type or "-",
            ", ".join(target.formats) if target.formats else "all",
            "[green]yes[/green]" if target.enabled else "[red]no[/red]",
        )
    console.print(targets)

    console.print(f"Optimize SVG: {'on' if config.optimize else 'off'}")
    console.print(f"Watch: {'on' if config.watch else 'off'} (delay {config.watch_delay}ms)")


@app.command("config")
def config_command(
    ctx: typer.Context,
    list_config: bool = typer.Option(
        False, "--list", "-l", help="Show the effective configuration."
    ),
    reset: bool = typer.Option(False, "--reset", help="Write the default configuration."),
) -> None:
    """Show or reset the project configuration."""
    settings = get_settings(ctx)
    manager = ConfigManager(settings)

    if reset:
        try:
            config = manager.reset_config()
        except ConfigError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)
        console.print(f"[green]Configuration reset to defaults:[/green] {manager.config_file}")
        if list_config:
            display_config(config, manager)
        return

    display_config(manager.load_config(), manager)
