"""Utilities for file operations."""

import hashlib
import os
import shutil
from pathlib import Path

from loguru import logger

CHUNK_SIZE = 64 * 1024


class FileError(Exception):
    """Base exception for file operations."""

    pass


class FileWriteError(FileError):
    """Raised when file operations fail."""

    pass


def compute_checksum(path: Path) -> str:
    """
    Compute the MD5 digest of a file's raw bytes.

    Args:
        path: File to hash

    Returns:
        32 character hex digest

    Raises:
        FileError: If the file cannot be read
    """
    digest = hashlib.md5()
    try:
        with path.open("rb") as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                digest.update(chunk)
    except OSError as e:
        raise FileError(f"Failed to compute checksum of {path}: {e}") from e
    return digest.hexdigest()


def compute_content_checksum(content: bytes) -> str:
    """MD5 digest of in-memory content, matches compute_checksum for the same bytes."""
    return hashlib.md5(content).hexdigest()


def ensure_directory(path: Path) -> None:
    """
    Ensure directory exists, creating if necessary.

    Raises:
        FileWriteError: If directory creation fails
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Failed to create directory: {path}: {e}")
        raise FileWriteError(f"Failed to create directory {path}: {e}") from e


def write_file_atomic(path: Path, content: str) -> None:
    """
    Write file with atomic operation using temporary file.

    The previous version of the file stays intact if writing fails.

    Raises:
        FileWriteError: If write operation fails
    """
    temp_path = path.with_name(f".{path.name}.tmp")
    try:
        temp_path.write_text(content, encoding="utf-8")
        os.replace(temp_path, path)
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        logger.error(f"Failed to write file: {path}: {e}")
        raise FileWriteError(f"Failed to write file {path}: {e}") from e


def copy_file(source: Path, destination: Path) -> None:
    """
    Copy file contents, creating parent directories of the destination.

    Raises:
        FileWriteError: If the copy fails
    """
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, destination)
    except OSError as e:
        raise FileWriteError(f"Failed to copy {source} to {destination}: {e}") from e


def delete_file(path: Path) -> None:
    """
    Delete file if it exists.

    Raises:
        FileWriteError: If deletion fails
    """
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        raise FileWriteError(f"Failed to delete {path}: {e}") from e
