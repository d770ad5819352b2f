"""Main CLI entry point for msyn."""  # pragma: no cover

from msyn.cli.app import app  # pragma: no cover

# Register commands
from msyn.cli.commands import config, optimize, reset, status, sync, watch  # pragma: no cover

__all__ = ["app", "config", "optimize", "reset", "status", "sync", "watch"]  # pragma: no cover

if __name__ == "__main__":  # pragma: no cover
    app()
