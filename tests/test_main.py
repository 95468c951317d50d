"""Tests for the command-line inspector."""

import asyncio
import json

import pytest

from conftest import make_event
from error_sentinel.sqlite_store import SQLiteErrorStore
from main import main


def _seed(path, events):
    async def _put_all():
        store = SQLiteErrorStore(path)
        await store.open()
        try:
            for event in events:
                await store.put(event)
        finally:
            store.close()

    asyncio.run(_put_all())


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    for var in (
        "SENTINEL_MODE", "SENTINEL_CONFIG", "SENTINEL_DB_PATH", "SENTINEL_TEAMS_CHANNEL_URL",
    ):
        monkeypatch.delenv(var, raising=False)
    path = str(tmp_path / "sentinel.db")
    _seed(path, [
        make_event(0, timestamp=1000),
        make_event(1, timestamp=2000, team="commerce"),
        make_event(2, timestamp=3000),
    ])
    return path


def test_list(db_path, capsys):
    assert main(["--db-path", db_path, "list"]) == 0
    out = capsys.readouterr().out
    assert "/api/users/0" in out
    assert "[commerce] /api/users/1" in out


def test_report(db_path, capsys):
    assert main(["--db-path", db_path, "report"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("@platform @commerce")


def test_report_teams_link(db_path, monkeypatch, capsys):
    monkeypatch.setenv("SENTINEL_TEAMS_CHANNEL_URL", "https://teams.example.com/c?groupId=1")
    assert main(["--db-path", db_path, "report", "--teams"]) == 0
    out = capsys.readouterr().out.strip()
    assert out.startswith("https://teams.example.com/c?groupId=1&message=%40platform%20%40commerce")


def test_report_teams_without_url(db_path, capsys):
    assert main(["--db-path", db_path, "report", "--teams"]) == 1
    assert capsys.readouterr().out == ""


def test_export_stdout(db_path, capsys):
    assert main(["--db-path", db_path, "export"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert [e["timestamp"] for e in data] == [1000, 2000, 3000]


def test_export_to_file(db_path, tmp_path, capsys):
    output = tmp_path / "out.json"
    assert main(["--db-path", db_path, "export", "--output", str(output)]) == 0
    assert "Exported 3 error(s)" in capsys.readouterr().out
    assert len(json.loads(output.read_text(encoding="utf-8"))) == 3


def test_range(db_path, capsys):
    assert main(["--db-path", db_path, "range", "--start", "1500", "--end", "3000"]) == 0
    out = capsys.readouterr().out
    assert "/api/users/0" not in out
    assert "/api/users/1" in out
    assert "/api/users/2" in out


def test_clear(db_path, capsys):
    assert main(["--db-path", db_path, "clear"]) == 0
    capsys.readouterr()
    assert main(["--db-path", db_path, "list"]) == 0
    assert "No errors recorded." in capsys.readouterr().out


def test_invalid_config_exits_2(tmp_path, monkeypatch):
    monkeypatch.setenv("SENTINEL_MODE", "remote")
    monkeypatch.delenv("SENTINEL_BACKEND_URL", raising=False)
    monkeypatch.delenv("SENTINEL_API_KEY", raising=False)
    assert main(["--db-path", str(tmp_path / "x.db"), "list"]) == 2


def test_subcommand_required():
    with pytest.raises(SystemExit):
        main([])
