# tests/test_cli.py

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from taskmaster_sync.cli.main import main
from taskmaster_sync.config import get_settings
from taskmaster_sync.logging_setup import _ConsoleNoiseFilter


@pytest.fixture(autouse=True)
def local_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Point the data dir at tmp_path and undo main()'s logging setup afterwards."""
    monkeypatch.setenv("TASKMASTER_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("TASKMASTER_CALENDAR_SYNC_ENABLED", raising=False)
    get_settings.cache_clear()

    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield tmp_path
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    for h in handlers:
        if h not in root.handlers:
            root.addHandler(h)
    root.setLevel(level)
    get_settings.cache_clear()


@pytest.mark.parametrize(
    ("argv", "label"),
    [
        (["--type", "none"], "Never"),
        (["--type", "weekly"], "Weekly"),
        (["--type", "daily", "--interval", "3"], "Every 3 days"),
        (["--type", "custom", "--days", "5,1,3"], "Mon, Wed, Fri"),
    ],
)
def test_describe(capsys, argv: list[str], label: str) -> None:
    assert main(["describe", *argv]) == 0
    assert capsys.readouterr().out.strip() == label


def test_invalid_rule_exits_with_2(capsys) -> None:
    assert main(["describe", "--type", "custom"]) == 2
    assert "weekday" in capsys.readouterr().err


def test_next_clamps_month_end(capsys) -> None:
    code = main(["next", "--type", "monthly", "--due", "2024-01-31T09:00:00", "--count", "3"])

    lines = capsys.readouterr().out.splitlines()
    assert code == 0
    assert lines[0] == "Monthly from 2024-01-31T09:00:00+00:00:"
    assert [line.strip() for line in lines[1:]] == [
        "2024-02-29T09:00:00+00:00",
        "2024-03-31T09:00:00+00:00",
        "2024-04-30T09:00:00+00:00",
    ]


def test_next_stops_at_end_date(capsys) -> None:
    code = main(
        ["next", "--type", "weekly", "--due", "2024-01-01T09:00", "--end", "2024-01-08", "--count", "5"]
    )
    out = capsys.readouterr().out
    assert code == 0
    assert "2024-01-08T09:00:00+00:00" in out
    assert "2024-01-15" not in out


def test_sync_disabled_by_default(capsys) -> None:
    assert main(["sync"]) == 0
    assert "disabled" in capsys.readouterr().out


def test_sync_runs_one_pass(capsys, local_env: Path) -> None:
    (local_env / "tasks.json").write_text(
        json.dumps([{"id": "a", "title": "Pay rent", "dueDate": "2099-01-01T09:00:00Z"}]), "utf-8"
    )

    assert main(["sync", "--enable"]) == 0

    assert "created=1" in capsys.readouterr().out
    calendar = json.loads((local_env / "calendar.json").read_text("utf-8"))
    assert [e["title"] for e in calendar["events"].values()] == ["Pay rent"]
    assert (local_env / "sync.log").exists()


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_console_filter() -> None:
    f = _ConsoleNoiseFilter()
    assert f.filter(_record("taskmaster_sync.sync.reconciler", logging.INFO))
    assert not f.filter(_record("taskmaster_sync.connectors.json_task_source", logging.INFO))
    assert f.filter(_record("taskmaster_sync.connectors.json_task_source", logging.WARNING))
    assert not f.filter(_record("taskmaster_sync.sync.mapping_store", logging.INFO))
    assert not f.filter(_record("asyncio", logging.WARNING))
    assert f.filter(_record("py.warnings", logging.ERROR))
