"""SQLite schema for the starred repositories database.

Tables:
- licenses: shared license metadata keyed by SPDX identifier
- owners: users and organizations keyed by login
- topics: global topic names with their own stargazer count
- repositories: one row per starred repository, soft-deleted via unstarredAt
- repositories_topics: many-to-many links between repositories and topics
"""

from __future__ import annotations

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS licenses
(
    spdxId          TEXT PRIMARY KEY NOT NULL,
    name            TEXT NULL,
    nickname        TEXT NULL,
    url             TEXT NULL
);

CREATE TABLE IF NOT EXISTS owners
(
    login           TEXT PRIMARY KEY NOT NULL,
    url             TEXT NOT NULL,
    isOrganization  BOOLEAN NOT NULL DEFAULT FALSE
);

CREATE TABLE IF NOT EXISTS topics
(
    name            TEXT PRIMARY KEY NOT NULL,
    stargazerCount  INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS repositories
(
    id              TEXT PRIMARY KEY NOT NULL,
    name            TEXT NOT NULL,
    description     TEXT NULL,
    url             TEXT NOT NULL,
    homepageUrl     TEXT NULL,
    owner           TEXT NOT NULL REFERENCES owners (login) ON DELETE CASCADE ON UPDATE CASCADE,
    isArchived      BOOLEAN NOT NULL,
    isFork          BOOLEAN NOT NULL,
    isPrivate       BOOLEAN NOT NULL,
    isTemplate      BOOLEAN NOT NULL,
    latestRelease   TEXT NULL,
    license         TEXT NULL REFERENCES licenses (spdxId) ON DELETE SET NULL ON UPDATE CASCADE,
    stargazerCount  INTEGER NOT NULL,
    forkCount       INTEGER NOT NULL,
    createdAt       DATETIME NOT NULL,
    pushedAt        DATETIME NULL,
    starredAt       DATETIME NOT NULL,
    updatedAt       DATETIME NOT NULL,
    importedAt      DATETIME NOT NULL,
    unstarredAt     DATETIME NULL,
    languages       TEXT NULL,
    fundingLinks    TEXT NULL
);

CREATE INDEX IF NOT EXISTS idx__repositoriesNames ON repositories (name);
CREATE INDEX IF NOT EXISTS idx__repositoriesOwners ON repositories (owner);
CREATE INDEX IF NOT EXISTS idx__repositoriesLicenses ON repositories (license);
CREATE INDEX IF NOT EXISTS idx__repositoriesStarredAt ON repositories (starredAt);
CREATE INDEX IF NOT EXISTS idx__repositoriesImportedAt ON repositories (importedAt);

CREATE TABLE IF NOT EXISTS repositories_topics
(
    repoPk          TEXT NOT NULL REFERENCES repositories (id) ON DELETE CASCADE ON UPDATE CASCADE,
    topicPk         TEXT NOT NULL REFERENCES topics (name) ON DELETE CASCADE ON UPDATE CASCADE
);

CREATE UNIQUE INDEX IF NOT EXISTS uidx__repositories_topics ON repositories_topics (repoPk, topicPk);
"""


def load_statements(script: str = SCHEMA_SQL) -> list[str]:
    statements: list[str] = []
    for part in script.split(";"):
        statement = part.strip()
        if statement:
            statements.append(statement)
    return statements


__all__ = ["SCHEMA_SQL", "load_statements"]
