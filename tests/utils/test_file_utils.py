"""Tests for file utilities."""

from pathlib import Path

import pytest

from msyn.file_utils import (
    FileError,
    FileWriteError,
    compute_checksum,
    compute_content_checksum,
    copy_file,
    delete_file,
    ensure_directory,
    write_file_atomic,
)


def test_compute_checksum(tmp_path: Path):
    """Test checksum computation."""
    test_file = tmp_path / "image.png"
    test_file.write_bytes(b"\x89PNG test content")

    checksum = compute_checksum(test_file)
    assert isinstance(checksum, str)
    assert len(checksum) == 32  # MD5 produces 32 char hex string
    assert checksum == compute_content_checksum(b"\x89PNG test content")


def test_compute_checksum_ignores_timestamps(tmp_path: Path):
    a = tmp_path / "a.bin"
    b = tmp_path / "nested" / "b.bin"
    b.parent.mkdir()
    a.write_bytes(b"same")
    b.write_bytes(b"same")
    assert compute_checksum(a) == compute_checksum(b)


def test_compute_checksum_error(tmp_path: Path):
    """Test checksum error handling."""
    with pytest.raises(FileError):
        compute_checksum(tmp_path / "missing.png")


def test_ensure_directory(tmp_path: Path):
    """Test directory creation."""
    test_dir = tmp_path / "a" / "b"
    ensure_directory(test_dir)
    assert test_dir.is_dir()

    # existing directory is fine
    ensure_directory(test_dir)


def test_ensure_directory_error(tmp_path: Path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    with pytest.raises(FileWriteError):
        ensure_directory(blocker / "sub")


def test_write_file_atomic(tmp_path: Path):
    """Test atomic file writing."""
    test_file = tmp_path / "test.json"
    write_file_atomic(test_file, "first")
    write_file_atomic(test_file, "second")

    assert test_file.read_text() == "second"
    # no temp file left behind
    assert [p.name for p in tmp_path.iterdir()] == ["test.json"]


def test_write_file_atomic_error(tmp_path: Path):
    """Test atomic write error handling."""
    test_file = tmp_path / "missing-dir" / "test.json"
    with pytest.raises(FileWriteError):
        write_file_atomic(test_file, "content")


def test_copy_file_creates_parents(tmp_path: Path):
    source = tmp_path / "src.svg"
    source.write_text("<svg/>")
    destination = tmp_path / "out" / "icons" / "src.svg"

    copy_file(source, destination)
    assert destination.read_text() == "<svg/>"


def test_copy_file_error(tmp_path: Path):
    with pytest.raises(FileWriteError):
        copy_file(tmp_path / "missing.svg", tmp_path / "out.svg")


def test_delete_file(tmp_path: Path):
    target = tmp_path / "old.png"
    target.write_bytes(b"old")
    delete_file(target)
    assert not target.exists()

    # deleting twice is not an error
    delete_file(target)
