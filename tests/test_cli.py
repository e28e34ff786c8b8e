from __future__ import annotations

import asyncio
import json

from typer.testing import CliRunner

from conftest import NOW, make_edge, page_stream
from github_stars.cli import app
from github_stars.db import StarsDatabase
from github_stars.models import ImportConfig
from github_stars.sqlite import SqliteDatabase
from github_stars.sync import StarsSynchronizer
from github_stars.vault import FileSystemVault

runner = CliRunner()


def _seed(tmp_path, *edges):
    database = StarsDatabase(SqliteDatabase(FileSystemVault(tmp_path)))
    database.init("GitHub/db", "stars.db")
    synchronizer = StarsSynchronizer(database, clock=lambda: NOW)
    asyncio.run(synchronizer.import_repositories(page_stream(list(edges)), ImportConfig()))
    database.close()


def test_init_db_creates_database(tmp_path):
    result = runner.invoke(app, ["init-db", "--vault", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert (tmp_path / "GitHub" / "db" / "stars.db").is_file()


def test_stats_prints_counts(tmp_path):
    _seed(tmp_path, make_edge("A"), make_edge("B"))

    result = runner.invoke(app, ["stats", "--vault", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "Starred: 2" in result.output
    assert "Unstarred: 0" in result.output


def test_dump_writes_json(tmp_path):
    _seed(tmp_path, make_edge("A", topics=[("cli", 3)]))
    output = tmp_path / "stars.json"

    result = runner.invoke(app, ["dump", "--vault", str(tmp_path), "--output", str(output), "--format", "json"])

    assert result.exit_code == 0, result.output
    rows = json.loads(output.read_text())
    assert rows[0]["id"] == "A"
    assert rows[0]["topics"] == "cli"
    assert rows[0]["license"] == "MIT"


def test_sync_requires_token(tmp_path, monkeypatch):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("GH_TOKEN", raising=False)

    result = runner.invoke(app, ["sync", "--vault", str(tmp_path)])

    assert result.exit_code != 0


def test_failure_exits_with_error(tmp_path):
    (tmp_path / "GitHub" / "db").mkdir(parents=True)
    (tmp_path / "GitHub" / "db" / "stars.db").write_bytes(b"garbage" * 200)

    result = runner.invoke(app, ["stats", "--vault", str(tmp_path)])

    assert result.exit_code == 1
