"""Test watch command output."""

from datetime import datetime
from io import StringIO

import pytest
from rich.console import Console

from msyn.cli.commands import watch as watch_module
from msyn.cli.commands.watch import display_watch_summary
from msyn.sync.watch_service import WatchServiceState


@pytest.fixture
def output(monkeypatch) -> StringIO:
    buffer = StringIO()
    monkeypatch.setattr(watch_module, "console", Console(file=buffer, width=120))
    return buffer


def test_summary_of_quiet_session(output):
    state = WatchServiceState(pid=4242, start_time=datetime(2024, 5, 1, 9, 30))

    display_watch_summary(state)
    text = output.getvalue()

    assert "Watch stopped after 0 syncs, 0 errors" in text
    assert "pid 4242, started 2024-05-01 09:30:00" in text
    assert "last sync" not in text
    assert "last error" not in text


def test_summary_with_syncs_and_errors(output):
    state = WatchServiceState(sync_count=3, last_sync=datetime(2024, 5, 1, 10, 0))
    state.record_error("[Errno 13] Permission denied")

    display_watch_summary(state)
    text = output.getvalue()

    assert "after 3 syncs, 1 errors" in text
    assert "last sync: 2024-05-01 10:00:00" in text
    assert "last error:" in text
    assert "[Errno 13] Permission denied" in text
