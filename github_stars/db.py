"""Persistence layer for starred repositories."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime

from .errors import ErrorCode, SyncFailure
from .models import RemovedRepository, Repository, Stats, Topic
from .results import Ok, Result, failure
from .serialization import from_stored_row, to_stored_row
from .sqlite import SqliteDatabase

LOGGER = logging.getLogger(__name__)

# SQLite limits the number of bound parameters per statement.
MAX_PARAMETERS = 500

INSERT_LICENSE_SQL = """
    INSERT INTO licenses (spdxId, name, nickname, url)
    VALUES (:spdxId, :name, :nickname, :url)
    ON CONFLICT (spdxId) DO UPDATE SET
        name = excluded.name,
        nickname = excluded.nickname,
        url = excluded.url
"""

INSERT_OWNER_SQL = """
    INSERT INTO owners (login, url, isOrganization)
    VALUES (:login, :url, :isOrganization)
    ON CONFLICT (login) DO UPDATE SET
        url = excluded.url,
        isOrganization = excluded.isOrganization
"""

INSERT_REPOSITORY_SQL = """
    INSERT INTO repositories (
        id,
        name,
        description,
        url,
        homepageUrl,
        owner,
        isArchived,
        isFork,
        isPrivate,
        isTemplate,
        latestRelease,
        license,
        stargazerCount,
        forkCount,
        createdAt,
        pushedAt,
        starredAt,
        updatedAt,
        importedAt,
        languages,
        fundingLinks
    ) VALUES (
        :id,
        :name,
        :description,
        :url,
        :homepageUrl,
        :owner,
        :isArchived,
        :isFork,
        :isPrivate,
        :isTemplate,
        :latestRelease,
        :license,
        :stargazerCount,
        :forkCount,
        :createdAt,
        :pushedAt,
        :starredAt,
        :updatedAt,
        :importedAt,
        :languages,
        :fundingLinks
    )
    ON CONFLICT (id) DO UPDATE SET
        name = excluded.name,
        description = excluded.description,
        url = excluded.url,
        homepageUrl = excluded.homepageUrl,
        owner = excluded.owner,
        isArchived = excluded.isArchived,
        isFork = excluded.isFork,
        isPrivate = excluded.isPrivate,
        isTemplate = excluded.isTemplate,
        latestRelease = excluded.latestRelease,
        license = excluded.license,
        stargazerCount = excluded.stargazerCount,
        forkCount = excluded.forkCount,
        createdAt = excluded.createdAt,
        pushedAt = excluded.pushedAt,
        starredAt = excluded.starredAt,
        updatedAt = excluded.updatedAt,
        unstarredAt = NULL,
        languages = excluded.languages,
        fundingLinks = excluded.fundingLinks
"""

INSERT_TOPIC_SQL = """
    INSERT INTO topics (name, stargazerCount)
    VALUES (:name, :stargazerCount)
    ON CONFLICT (name) DO UPDATE SET stargazerCount = excluded.stargazerCount
"""

INSERT_REPOSITORY_TOPIC_SQL = """
    INSERT INTO repositories_topics (repoPk, topicPk)
    VALUES (:repoPk, :topicPk)
    ON CONFLICT (repoPk, topicPk) DO NOTHING
"""

SELECT_REPOSITORIES_SQL = """
    SELECT r.*,
           l.name           AS licenseName,
           l.nickname       AS licenseNickname,
           l.url            AS licenseUrl,
           o.login          AS ownerLogin,
           o.url            AS ownerUrl,
           o.isOrganization AS ownerIsOrganization
    FROM repositories AS r
             LEFT JOIN licenses AS l ON l.spdxId = r.license
             JOIN owners AS o ON o.login = r.owner
    ORDER BY r.starredAt DESC, r.id
"""

SELECT_REPOSITORY_TOPICS_SQL = """
    SELECT t.name, t.stargazerCount
    FROM repositories_topics AS rt
             JOIN topics AS t ON t.name = rt.topicPk
    WHERE rt.repoPk = ?
    ORDER BY t.stargazerCount DESC, t.name
"""

STATS_SQL = """
    SELECT (SELECT COUNT(*) FROM repositories WHERE unstarredAt IS NULL)     AS starredCount,
           (SELECT COUNT(*) FROM repositories WHERE unstarredAt IS NOT NULL) AS unstarredCount,
           (SELECT id
            FROM repositories
            WHERE unstarredAt IS NULL
            ORDER BY starredAt DESC, id
            LIMIT 1)                                                         AS lastRepoId,
           (SELECT MAX(starredAt) FROM repositories)                         AS lastStarDate,
           (SELECT MAX(importedAt) FROM repositories)                        AS lastImportDate
"""

MAIN_LANGUAGES_SQL = """
    SELECT DISTINCT COALESCE(JSON_EXTRACT(languages, '$[0]'), 'Other') AS mainLanguage
    FROM repositories
    ORDER BY mainLanguage
"""

REMOVE_UNSTARRED_SQL = """
    DELETE FROM repositories
    WHERE unstarredAt IS NOT NULL
    RETURNING owner, name
"""

REMOVE_DANGLING_LINKS_SQL = """
    DELETE FROM repositories_topics
    WHERE repoPk NOT IN (SELECT id FROM repositories)
"""

REMOVE_ORPHANED_OWNERS_SQL = """
    DELETE FROM owners
    WHERE login NOT IN (SELECT DISTINCT owner FROM repositories)
    RETURNING login
"""

REMOVE_ORPHANED_LICENSES_SQL = """
    DELETE FROM licenses
    WHERE spdxId NOT IN (SELECT DISTINCT license FROM repositories WHERE license IS NOT NULL)
    RETURNING spdxId
"""

REMOVE_ORPHANED_TOPICS_SQL = """
    DELETE FROM topics
    WHERE name NOT IN (SELECT DISTINCT topicPk FROM repositories_topics)
    RETURNING name
"""


class StarsDatabase:
    """Read and write access to the starred repositories tables."""

    def __init__(self, sqlite: SqliteDatabase) -> None:
        self._sqlite = sqlite

    @property
    def is_initialized(self) -> bool:
        return self._sqlite.is_initialized

    @property
    def instance(self) -> Result[sqlite3.Connection, SyncFailure]:
        return self._sqlite.instance

    def init(self, db_folder: str, db_file: str) -> Result["StarsDatabase", SyncFailure]:
        opened = self._sqlite.init(db_folder, db_file)
        if opened.is_err():
            LOGGER.error("Storage initialization failed: %s", opened.error)
            if opened.error.code is ErrorCode.INITIALIZATION_FAILED:
                return opened
            return failure(ErrorCode.INITIALIZATION_FAILED, opened.error)
        return Ok(self)

    def close(self) -> Result[None, SyncFailure]:
        return self._sqlite.close()

    def save(self) -> Result[None, SyncFailure]:
        return self._sqlite.save()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self._sqlite.transaction() as conn:
            yield conn

    # Write primitives, always called inside ``transaction()``.

    def upsert_repository(self, conn: sqlite3.Connection, repository: Repository, imported_at: datetime) -> None:
        """Write license, owner, repository and topic links, in that order."""

        license_info = repository.license_info
        if license_info is not None and license_info.spdx_id:
            conn.execute(
                INSERT_LICENSE_SQL,
                {
                    "spdxId": license_info.spdx_id,
                    "name": license_info.name,
                    "nickname": license_info.nickname,
                    "url": license_info.url,
                },
            )

        conn.execute(
            INSERT_OWNER_SQL,
            {
                "login": repository.owner.login,
                "url": repository.owner.url,
                "isOrganization": int(repository.owner.is_organization),
            },
        )

        conn.execute(INSERT_REPOSITORY_SQL, to_stored_row(repository, imported_at))
        self.replace_topics(conn, repository.id, repository.repository_topics)

    def replace_topics(self, conn: sqlite3.Connection, repo_id: str, topics: Sequence[Topic]) -> None:
        conn.execute("DELETE FROM repositories_topics WHERE repoPk = ?", (repo_id,))
        conn.executemany(
            INSERT_TOPIC_SQL,
            [{"name": topic.name, "stargazerCount": topic.stargazer_count} for topic in topics],
        )
        conn.executemany(
            INSERT_REPOSITORY_TOPIC_SQL,
            [{"repoPk": repo_id, "topicPk": topic.name} for topic in topics],
        )

    def repository_ids(self, conn: sqlite3.Connection) -> set[str]:
        return {row["id"] for row in conn.execute("SELECT id FROM repositories")}

    def mark_unstarred(self, conn: sqlite3.Connection, repo_ids: Iterable[str], unstarred_at: datetime) -> int:
        marked = 0
        timestamp = unstarred_at.isoformat()
        for chunk in _chunks(sorted(repo_ids), MAX_PARAMETERS):
            placeholders = ",".join("?" * len(chunk))
            cursor = conn.execute(
                f"UPDATE repositories SET unstarredAt = ? WHERE id IN ({placeholders})",
                (timestamp, *chunk),
            )
            marked += cursor.rowcount
        return marked

    # Query facade.

    def get_stats(self) -> Result[Stats, SyncFailure]:
        instance = self.instance
        if instance.is_err():
            return instance
        row = instance.value.execute(STATS_SQL).fetchone() or {}
        return Ok(
            Stats(
                starred_count=row.get("starredCount") or 0,
                unstarred_count=row.get("unstarredCount") or 0,
                last_repo_id=row.get("lastRepoId") or None,
                last_star_date=_parse_timestamp(row.get("lastStarDate")),
                last_import_date=_parse_timestamp(row.get("lastImportDate")),
            )
        )

    def get_repositories(self) -> Result[list[Repository], SyncFailure]:
        """Every stored repository, most recently starred first.

        A single malformed row fails the whole read.
        """

        instance = self.instance
        if instance.is_err():
            return instance
        conn = instance.value

        repositories: list[Repository] = []
        for row in conn.execute(SELECT_REPOSITORIES_SQL).fetchall():
            topics = [
                Topic(name=topic["name"], stargazer_count=topic["stargazerCount"])
                for topic in conn.execute(SELECT_REPOSITORY_TOPICS_SQL, (row["id"],))
            ]
            result = from_stored_row(row, topics)
            if result.is_err():
                LOGGER.error("Stored repository %s is malformed", row.get("id"))
                return result
            repositories.append(result.value)
        return Ok(repositories)

    def get_main_languages(self) -> Result[list[str], SyncFailure]:
        instance = self.instance
        if instance.is_err():
            return instance
        return Ok([row["mainLanguage"] for row in instance.value.execute(MAIN_LANGUAGES_SQL)])

    def remove_unstarred_repositories(self) -> Result[list[RemovedRepository], SyncFailure]:
        """Purge soft-deleted repositories, then orphaned owners, licenses and topics."""

        instance = self.instance
        if instance.is_err():
            return instance

        try:
            with self.transaction() as conn:
                removed = [
                    RemovedRepository(owner=row["owner"], name=row["name"])
                    for row in conn.execute(REMOVE_UNSTARRED_SQL).fetchall()
                ]
                if removed:
                    LOGGER.debug("Removed unstarred repositories: %s", removed)
                conn.execute(REMOVE_DANGLING_LINKS_SQL)
                for label, statement in (
                    ("owners", REMOVE_ORPHANED_OWNERS_SQL),
                    ("licenses", REMOVE_ORPHANED_LICENSES_SQL),
                    ("topics", REMOVE_ORPHANED_TOPICS_SQL),
                ):
                    orphans = conn.execute(statement).fetchall()
                    if orphans:
                        LOGGER.debug("Removed orphaned %s: %s", label, [next(iter(o.values())) for o in orphans])
        except sqlite3.Error as exc:
            LOGGER.error("Remove unstarred repositories failed: %s", exc)
            return failure(ErrorCode.REMOVE_UNSTARRED_FAILED, exc)

        saved = self.save()
        if saved.is_err():
            return saved
        LOGGER.info("Removed %s unstarred repositories", len(removed))
        return Ok(removed)


def _chunks(items: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


__all__ = ["StarsDatabase"]
