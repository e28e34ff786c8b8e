from __future__ import annotations

import sqlite3

import pytest

from github_stars.errors import ErrorCode
from github_stars.sqlite import SqliteDatabase
from github_stars.vault import FileSystemVault


def test_init_creates_file_and_schema(tmp_path):
    sqlite = SqliteDatabase(FileSystemVault(tmp_path))

    conn = sqlite.init("GitHub/db", "stars.db").unwrap()

    assert (tmp_path / "GitHub" / "db" / "stars.db").is_file()
    tables = {row["name"] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    assert {"licenses", "owners", "topics", "repositories", "repositories_topics"} <= tables
    assert conn.execute("PRAGMA foreign_keys").fetchone()["foreign_keys"] == 1
    sqlite.close()


def test_operations_before_init_report_not_initialized(tmp_path):
    sqlite = SqliteDatabase(FileSystemVault(tmp_path))

    assert sqlite.instance.error.code is ErrorCode.DATABASE_IS_NOT_INITIALIZED
    assert sqlite.save().error.code is ErrorCode.DATABASE_IS_NOT_INITIALIZED
    assert sqlite.close().is_ok()


def test_init_is_idempotent_for_the_same_file(tmp_path):
    sqlite = SqliteDatabase(FileSystemVault(tmp_path))
    first = sqlite.init("db", "stars.db").unwrap()

    assert sqlite.init("db", "stars.db").unwrap() is first
    assert sqlite.init("other", "stars.db").error.code is ErrorCode.INITIALIZATION_FAILED
    sqlite.close()


def test_init_with_trailing_slash_is_idempotent(tmp_path):
    sqlite = SqliteDatabase(FileSystemVault(tmp_path))
    first = sqlite.init("GitHub/db/", "stars.db").unwrap()

    assert sqlite.init("GitHub/db/", "stars.db").unwrap() is first
    assert sqlite.init("GitHub/db", "stars.db").unwrap() is first
    assert sqlite.db_file_path == "GitHub/db/stars.db"
    sqlite.close()


def test_saved_data_survives_reopen(tmp_path):
    vault = FileSystemVault(tmp_path)
    sqlite = SqliteDatabase(vault)
    sqlite.init("db", "stars.db")
    with sqlite.transaction() as conn:
        conn.execute("INSERT INTO owners (login, url, isOrganization) VALUES ('octocat', 'https://github.com/octocat', 0)")
    assert sqlite.save().is_ok()
    sqlite.close()

    reopened = SqliteDatabase(vault)
    conn = reopened.init("db", "stars.db").unwrap()

    assert [row["login"] for row in conn.execute("SELECT login FROM owners")] == ["octocat"]
    reopened.close()


def test_unsaved_changes_are_lost_on_close(tmp_path):
    vault = FileSystemVault(tmp_path)
    sqlite = SqliteDatabase(vault)
    sqlite.init("db", "stars.db")
    with sqlite.transaction() as conn:
        conn.execute("INSERT INTO topics (name, stargazerCount) VALUES ('python', 1)")
    sqlite.close()

    reopened = SqliteDatabase(vault)
    conn = reopened.init("db", "stars.db").unwrap()

    assert conn.execute("SELECT COUNT(*) AS total FROM topics").fetchone()["total"] == 0
    reopened.close()


def test_transaction_rolls_back_on_error(tmp_path):
    sqlite = SqliteDatabase(FileSystemVault(tmp_path))
    conn = sqlite.init("db", "stars.db").unwrap()

    with pytest.raises(sqlite3.IntegrityError):
        with sqlite.transaction() as tx:
            tx.execute("INSERT INTO topics (name, stargazerCount) VALUES ('python', 1)")
            tx.execute("INSERT INTO topics (name, stargazerCount) VALUES ('python', 2)")

    assert not conn.in_transaction
    assert conn.execute("SELECT COUNT(*) AS total FROM topics").fetchone()["total"] == 0
    sqlite.close()


def test_save_refuses_open_transaction(tmp_path):
    sqlite = SqliteDatabase(FileSystemVault(tmp_path))
    sqlite.init("db", "stars.db")

    with sqlite.transaction():
        assert sqlite.save().error.code is ErrorCode.DATABASE_SAVE_FAILED
    sqlite.close()


def test_corrupt_file_fails_initialization(tmp_path):
    (tmp_path / "db").mkdir()
    (tmp_path / "db" / "stars.db").write_bytes(b"definitely not a database" * 100)
    sqlite = SqliteDatabase(FileSystemVault(tmp_path))

    result = sqlite.init("db", "stars.db")

    assert result.is_err()
    assert result.error.code in {ErrorCode.INITIALIZATION_FAILED, ErrorCode.SCHEMA_CREATION_FAILED}
    assert not sqlite.is_initialized
