"""Scan asset trees into relative path -> checksum snapshots."""

import os
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Callable, Dict, Iterable, Optional

from loguru import logger

from msyn.file_utils import FileError, compute_checksum

FileFilter = Callable[[str], bool]


@dataclass
class ScanResult:
    """Result of scanning a directory."""

    # relative posix path -> checksum
    files: Dict[str, str] = field(default_factory=dict)
    # relative posix path (file or directory) -> error message
    errors: Dict[str, str] = field(default_factory=dict)

    def is_uncertain(self, path: str) -> bool:
        """True if the path, or a directory above it, could not be read."""
        if path in self.errors or "." in self.errors:
            return True
        return any(path.startswith(f"{error_path}/") for error_path in self.errors)


def format_filter(formats: Optional[Iterable[str]]) -> Optional[FileFilter]:
    """
    Build a file name filter from a list of formats.

    Formats are matched against the file suffix case-insensitively, with or
    without a leading dot ("webp" and ".WEBP" are the same format).

    Returns:
        None when no formats are given, meaning every file passes
    """
    if not formats:
        return None
    suffixes = {f".{f.strip().lstrip('.').lower()}" for f in formats if f.strip().lstrip(".")}
    if not suffixes:
        return None

    def accepts(name: str) -> bool:
        return PurePath(name).suffix.lower() in suffixes

    return accepts


def is_svg(path: str) -> bool:
    return path.lower().endswith(".svg")


def scan_directory(
    directory: Path,
    relative_prefix: str = "",
    type_filter: Optional[FileFilter] = None,
    exclude: Iterable[Path] = (),
) -> ScanResult:
    """
    Scan a directory tree for files and their checksums.

    Only regular files are recorded; symlinks to files are followed, symlinked
    directories are not descended into. A missing directory yields an empty
    result.

    Args:
        directory: Root the relative paths are computed against
        relative_prefix: Sub directory of the root to start from
        type_filter: Optional predicate on the file name
        exclude: Directories to skip entirely, such as an optimized cache
            living inside the source tree

    Returns:
        ScanResult with posix relative paths
    """
    root = Path(os.path.abspath(directory))
    start = root / relative_prefix if relative_prefix else root
    result = ScanResult()

    if not start.is_dir():
        logger.debug(f"Directory does not exist: {start}")
        return result

    excluded = {os.path.abspath(p) for p in exclude}

    def on_error(error: OSError) -> None:
        failed = Path(error.filename) if error.filename else start
        rel_path = failed.relative_to(root).as_posix()
        result.errors[rel_path] = str(error)
        logger.error(f"Failed to read directory: {rel_path}: {error}")

    for dirpath, dirnames, filenames in os.walk(start, onerror=on_error):
        dirnames[:] = sorted(d for d in dirnames if os.path.join(dirpath, d) not in excluded)

        for name in sorted(filenames):
            path = Path(dirpath, name)
            rel_path = path.relative_to(root).as_posix()

            if not path.is_file():
                logger.debug(f"Skipping non regular file: {rel_path}")
                continue
            if type_filter and not type_filter(name):
                continue

            try:
                result.files[rel_path] = compute_checksum(path)
            except FileError as e:
                result.errors[rel_path] = str(e)
                logger.error(f"Failed to read {rel_path}: {e}")

    logger.debug(f"Found {len(result.files)} files in {start}")
    if result.errors:
        logger.warning(f"Encountered {len(result.errors)} errors while scanning {start}")

    return result
