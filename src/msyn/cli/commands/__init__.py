"""CLI commands for msyn."""

from . import config, optimize, reset, status, sync, watch

__all__ = ["config", "optimize", "reset", "status", "sync", "watch"]
