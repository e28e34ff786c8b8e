"""Tests for the import transaction."""

from __future__ import annotations

import asyncio
from datetime import timedelta

from conftest import NOW, make_edge, page_stream
from github_stars.db import StarsDatabase
from github_stars.errors import ErrorCode
from github_stars.models import ImportConfig
from github_stars.results import Ok, failure
from github_stars.sqlite import SqliteDatabase
from github_stars.sync import StarsSynchronizer

FULL = ImportConfig(full_sync=True)


def _import(database, *pages, config=FULL, clock=lambda: NOW, progress=None):
    synchronizer = StarsSynchronizer(database, clock=clock)
    return asyncio.run(synchronizer.import_repositories(page_stream(*pages), config, progress))


def _topics(database):
    return {
        repository.id: [(topic.name, topic.stargazer_count) for topic in repository.repository_topics]
        for repository in database.get_repositories().unwrap()
    }


def test_single_repository_full_sync(database):
    edge = make_edge("r1", owner="alice", topics=[("tool", 2), ("cli", 5)])

    summary = _import(database, [edge]).unwrap()

    assert (summary.imported, summary.unstarred, summary.stopped_early) == (1, 0, False)
    stats = database.get_stats().unwrap()
    assert (stats.starred_count, stats.unstarred_count) == (1, 0)
    assert _topics(database) == {"r1": [("cli", 5), ("tool", 2)]}


def test_reimport_is_idempotent_and_last_values_win(database):
    first = make_edge("R1")
    second = make_edge("R1", description="Updated")
    second["node"]["stargazerCount"] = 99

    _import(database, [first])
    _import(database, [second])

    repositories = database.get_repositories().unwrap()
    assert len(repositories) == 1
    assert repositories[0].description == "Updated"
    assert repositories[0].stargazer_count == 99
    assert repositories[0].unstarred_at is None


def test_unstar_and_restar(database):
    later = NOW + timedelta(days=1)
    _import(database, [make_edge("A"), make_edge("B")])

    summary = _import(database, [make_edge("B")], clock=lambda: later).unwrap()

    assert summary.unstarred == 1
    unstarred = {repository.id: repository.unstarred_at for repository in database.get_repositories().unwrap()}
    assert unstarred == {"A": later, "B": None}

    _import(database, [make_edge("A"), make_edge("B")])

    assert all(repository.is_starred for repository in database.get_repositories().unwrap())


def test_incremental_import_stops_at_last_seen_repository(database):
    edges = [make_edge(repo_id) for repo_id in ("A", "B", "R", "C", "D")]
    _import(database, [make_edge("R"), make_edge("Z")])
    before = database.get_repositories().unwrap()

    summary = _import(
        database,
        edges[:2],
        edges[2:],
        config=ImportConfig(full_sync=False, last_repo_id="R"),
    ).unwrap()

    assert summary.imported == 2
    assert summary.stopped_early is True
    assert summary.unstarred == 0
    ids = {repository.id for repository in database.get_repositories().unwrap()}
    assert ids == {"A", "B", "R", "Z"}
    assert all(repository.is_starred for repository in database.get_repositories().unwrap())
    assert [r for r in database.get_repositories().unwrap() if r.id == "R"] == [r for r in before if r.id == "R"]


def test_incremental_import_does_not_request_pages_after_stop(database):
    requested: list[int] = []

    async def pages():
        requested.append(1)
        yield Ok([make_edge("A"), make_edge("R")])
        requested.append(2)
        yield failure(ErrorCode.REQUEST_FAILED)

    synchronizer = StarsSynchronizer(database, clock=lambda: NOW)
    result = asyncio.run(synchronizer.import_repositories(pages(), ImportConfig(full_sync=False, last_repo_id="R")))

    assert result.unwrap().imported == 1
    assert requested == [1]


def test_topics_are_replaced_on_reimport(database):
    _import(database, [make_edge("R1", topics=[("x", 1), ("y", 1)])])
    _import(database, [make_edge("R1", topics=[("y", 1), ("z", 1)])])

    assert sorted(name for name, _ in _topics(database)["R1"]) == ["y", "z"]

    database.remove_unstarred_repositories()
    topics = {row["name"] for row in database.instance.unwrap().execute("SELECT name FROM topics")}
    assert topics == {"y", "z"}


def test_deserialization_failure_rolls_back_the_whole_import(database):
    _import(database, [make_edge("OLD")])
    edges = [make_edge(f"N{index}") for index in range(10)]
    edges[4]["node"].pop("name")

    result = _import(database, edges)

    assert result.is_err()
    assert result.error.code is ErrorCode.DESERIALIZATION_FAILED
    repositories = database.get_repositories().unwrap()
    assert [repository.id for repository in repositories] == ["OLD"]
    assert repositories[0].is_starred


def test_request_failure_mid_stream_rolls_back(database):
    result = _import(database, [make_edge("A")], failure(ErrorCode.REQUEST_FAILED, "boom"))

    assert result.error.code is ErrorCode.REQUEST_FAILED
    assert database.get_stats().unwrap().starred_count == 0


def test_failed_import_keeps_previously_saved_state(vault, database):
    _import(database, [make_edge("A")])

    _import(database, [make_edge("B")], failure(ErrorCode.REQUEST_FAILED))
    database.close()

    reopened = StarsDatabase(SqliteDatabase(vault))
    reopened.init("GitHub/db", "stars.db")
    assert [repository.id for repository in reopened.get_repositories().unwrap()] == ["A"]
    reopened.close()


def test_progress_reports_running_count(database):
    counts: list[int] = []

    _import(database, [make_edge("A"), make_edge("B")], [make_edge("C")], progress=counts.append)

    assert counts == [1, 2, 3]


def test_import_requires_initialized_database(vault):
    result = _import(StarsDatabase(SqliteDatabase(vault)), [make_edge("A")])

    assert result.error.code is ErrorCode.DATABASE_IS_NOT_INITIALIZED
