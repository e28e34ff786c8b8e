from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from github_stars.db import StarsDatabase
from github_stars.results import Ok
from github_stars.sqlite import SqliteDatabase
from github_stars.vault import FileSystemVault

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_edge(
    repo_id: str,
    *,
    owner: str = "octocat",
    name: str | None = None,
    starred_at: str = "2024-05-01T10:00:00Z",
    license_id: str | None = "MIT",
    topics: list[tuple[str, int]] | None = None,
    languages: list[str] | None = None,
    funding: list[tuple[str, str]] | None = None,
    description: str | None = "A repository",
) -> dict[str, Any]:
    name = name or repo_id.lower()
    return {
        "starredAt": starred_at,
        "node": {
            "id": repo_id,
            "name": name,
            "owner": {"__typename": "User", "login": owner, "url": f"https://github.com/{owner}"},
            "description": description,
            "url": f"https://github.com/{owner}/{name}",
            "homepageUrl": None,
            "isArchived": False,
            "isFork": False,
            "isPrivate": False,
            "isTemplate": False,
            "latestRelease": None,
            "licenseInfo": (
                {
                    "name": f"{license_id} License",
                    "nickname": None,
                    "spdxId": license_id,
                    "url": f"https://choosealicense.com/licenses/{license_id.lower()}/",
                }
                if license_id
                else None
            ),
            "stargazerCount": 10,
            "forkCount": 2,
            "createdAt": "2020-01-01T00:00:00Z",
            "pushedAt": "2024-04-01T00:00:00Z",
            "updatedAt": "2024-04-02T00:00:00Z",
            "languages": {"edges": [{"node": {"name": language}} for language in (languages or ["Python"])]},
            "repositoryTopics": {
                "nodes": [
                    {"topic": {"name": topic, "stargazerCount": count}} for topic, count in (topics or [])
                ]
            },
            "fundingLinks": [{"url": url, "platform": platform} for platform, url in (funding or [])],
        },
    }


async def page_stream(*pages):
    """Yield each batch of edges as ``Ok``; ``Err`` values are passed through."""

    for page in pages:
        if isinstance(page, list):
            yield Ok(page)
        else:
            yield page


@pytest.fixture
def vault(tmp_path) -> FileSystemVault:
    return FileSystemVault(tmp_path)


@pytest.fixture
def database(vault):
    stars = StarsDatabase(SqliteDatabase(vault))
    assert stars.init("GitHub/db", "stars.db").is_ok()
    yield stars
    stars.close()
