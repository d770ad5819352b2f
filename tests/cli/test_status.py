"""Test status command functionality."""

from io import StringIO

import pytest
from rich.console import Console

from msyn.cli.commands import status as status_module
from msyn.cli.commands.status import display_changes
from msyn.sync import SyncReport


@pytest.fixture
def output(monkeypatch) -> StringIO:
    """Capture what the status command prints."""
    buffer = StringIO()
    monkeypatch.setattr(status_module, "console", Console(file=buffer, width=120))
    return buffer


def test_display_no_changes(output):
    display_changes("Status of web", SyncReport(target_id="web"), verbose=False)

    assert "Status of web" in output.getvalue()
    assert "No changes" in output.getvalue()


def test_display_compact_changes(output):
    changes = SyncReport(
        target_id="web",
        added={"icons/new.svg", "icons/other.svg"},
        updated={"icons/changed.svg"},
        deleted={"fonts/old.woff2", "top.png"},
    )

    display_changes("Status of web", changes, verbose=False)
    text = " ".join(output.getvalue().split())

    assert "icons/ +2 added ~1 updated" in text
    assert "fonts/ -1 deleted" in text
    assert "./ -1 deleted" in text
    # file names only show up in verbose mode
    assert "new.svg" not in text


def test_display_verbose_changes(output):
    changes = SyncReport(
        target_id="web",
        added={"icons/new.svg"},
        updated={"logo.png"},
        deleted={"fonts/old.woff2"},
        optimized={"icons/new.svg"},
        checksums={"icons/new.svg": "abcdef0123456789", "logo.png": "0123456789abcdef"},
    )

    display_changes("Status of web", changes, verbose=True)
    text = output.getvalue()

    assert "Found 1 added, 1 updated, 1 deleted, 1 to optimize" in text
    assert "New Files" in text
    assert "new.svg (abcdef01)" in text
    assert "logo.png (01234567)" in text
    assert "Deleted" in text
    assert "old.woff2" in text
