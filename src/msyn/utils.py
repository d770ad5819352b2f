"""Utility functions for msyn."""

import sys
from pathlib import Path
from typing import Optional, Set, Union

from loguru import logger


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    console: bool = True,
) -> None:
    """
    Configure loguru sinks for the CLI.

    Args:
        log_level: Minimum level for every sink
        log_file: Optional path of a rotating log file
        console: Whether to log to stderr
    """
    logger.remove()

    if console:
        logger.add(
            sys.stderr,
            level=log_level,
            format="<level>{level: <8}</level> | <level>{message}</level>",
            colorize=True,
            backtrace=False,
            diagnose=False,
        )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_path),
            level=log_level,
            rotation="10 MB",
            retention="10 days",
            backtrace=True,
            diagnose=True,
            enqueue=True,
            colorize=False,
        )


def parse_csv(value: Optional[str]) -> Optional[Set[str]]:
    """Split a comma separated option into a set of names, None when empty."""
    if not value:
        return None
    names = {part.strip() for part in value.split(",") if part.strip()}
    return names or None
