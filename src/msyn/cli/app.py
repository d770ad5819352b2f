from pathlib import Path
from typing import Optional

import typer

from msyn.config import MsynSettings
from msyn.utils import setup_logging


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        import msyn

        typer.echo(f"msyn version: {msyn.__version__}")
        raise typer.Exit()


app = typer.Typer(name="msyn", no_args_is_help=True)


@app.callback()
def app_callback(
    ctx: typer.Context,
    project_root: Optional[Path] = typer.Option(
        None,
        "--project-root",
        "-p",
        help="Project directory holding .msyn.json (defaults to the current directory).",
        envvar="MSYN_PROJECT_ROOT",
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """msyn - Sync shared assets into framework directories."""
    settings = MsynSettings(project_root=project_root) if project_root else MsynSettings()
    ctx.obj = settings
    setup_logging(log_level=settings.log_level, log_file=settings.log_file)


def get_settings(ctx: typer.Context, verbose: bool = False) -> MsynSettings:
    """Settings of this invocation; verbose commands log at DEBUG."""
    settings = ctx.obj if isinstance(ctx.obj, MsynSettings) else MsynSettings()
    if verbose:
        setup_logging(log_level="DEBUG", log_file=settings.log_file)
    return settings
