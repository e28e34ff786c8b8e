"""Conversions between GraphQL edges, stored rows and :class:`Repository`.

Every public function here is pure. The ``from_*`` functions never raise:
malformed input is reported as ``Err(SyncFailure(DeserializationFailed))``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from pydantic import ValidationError

from .config import UTC
from .errors import ErrorCode, SyncFailure
from .models import FundingLink, FundingPlatform, LicenseInfo, Owner, Release, Repository, Topic
from .results import Ok, Result, failure
from .schemas import StarredRepositoryEdge, StoredRepositoryRow

LOGGER = logging.getLogger(__name__)


def normalize_url(value: str, default_scheme: str = "https") -> str:
    """Return ``value`` with a scheme, lowercase host and no bare trailing slash."""

    text = value.strip()
    if not text:
        raise ValueError("URL is empty")
    if text.startswith("//"):
        text = f"{default_scheme}:{text}"
    elif "://" not in text:
        text = f"{default_scheme}://{text}"
    parts = urlsplit(text)
    if not parts.netloc:
        raise ValueError(f"URL has no host: {value!r}")
    path = "" if parts.path == "/" else parts.path
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, parts.query, parts.fragment))


def sort_topics(topics: Iterable[Topic]) -> list[Topic]:
    """Most popular topics first; ties keep a stable alphabetical order."""

    return sorted(topics, key=lambda topic: (-topic.stargazer_count, topic.name))


def from_wire_format(edge: Any) -> Result[Repository, SyncFailure]:
    """Convert one ``starredRepositories`` edge into a :class:`Repository`."""

    try:
        parsed = StarredRepositoryEdge.model_validate(edge)
        node = parsed.node

        license_info = None
        # Only licenses with an SPDX id are persisted.
        if node.license_info is not None and node.license_info.spdx_id:
            license_info = LicenseInfo(
                spdx_id=node.license_info.spdx_id,
                name=node.license_info.name or None,
                nickname=node.license_info.nickname or None,
                url=normalize_url(node.license_info.url) if node.license_info.url else None,
            )

        latest_release = None
        if node.latest_release is not None:
            latest_release = Release(
                url=normalize_url(node.latest_release.url),
                name=node.latest_release.name or None,
                published_at=_utc(node.latest_release.published_at),
            )

        languages = [language.node.name for language in (node.languages.edges or [])] if node.languages else []
        topics = sort_topics(
            Topic(name=item.topic.name, stargazer_count=item.topic.stargazer_count)
            for item in node.repository_topics.nodes or []
        )
        funding_links = [
            FundingLink(url=normalize_url(link.url), platform=FundingPlatform.resolve(link.platform))
            for link in node.funding_links
        ]

        repository = Repository(
            id=node.id,
            name=node.name,
            description=_clean_description(node.description),
            url=normalize_url(node.url),
            homepage_url=normalize_url(node.homepage_url) if node.homepage_url else None,
            owner=Owner(
                login=node.owner.login,
                url=normalize_url(node.owner.url),
                is_organization=node.owner.typename == "Organization",
            ),
            is_archived=node.is_archived,
            is_fork=node.is_fork,
            is_private=node.is_private,
            is_template=node.is_template,
            latest_release=latest_release,
            license_info=license_info,
            stargazer_count=node.stargazer_count,
            fork_count=node.fork_count,
            created_at=_utc(node.created_at),
            pushed_at=_utc(node.pushed_at),
            starred_at=_utc(parsed.starred_at),
            updated_at=_utc(node.updated_at),
            languages=languages,
            repository_topics=topics,
            funding_links=funding_links,
        )
    except (ValidationError, ValueError, TypeError) as exc:
        LOGGER.error("Unable to deserialize GraphQL edge: %s", exc)
        return failure(ErrorCode.DESERIALIZATION_FAILED, exc)
    return Ok(repository)


def to_stored_row(repository: Repository, imported_at: datetime) -> dict[str, Any]:
    """Flatten a repository into named parameters for the ``repositories`` table.

    The owner and license columns produced by the read-side join are included
    so the result can be fed straight back into :func:`from_stored_row`.
    """

    license_info = repository.license_info
    release = repository.latest_release
    return {
        "id": repository.id,
        "name": repository.name,
        "description": repository.description,
        "url": repository.url,
        "homepageUrl": repository.homepage_url,
        "owner": repository.owner.login,
        "isArchived": int(repository.is_archived),
        "isFork": int(repository.is_fork),
        "isPrivate": int(repository.is_private),
        "isTemplate": int(repository.is_template),
        "latestRelease": (
            json.dumps(
                {
                    "name": release.name,
                    "publishedAt": _isoformat(release.published_at),
                    "url": release.url,
                }
            )
            if release is not None
            else None
        ),
        "license": license_info.spdx_id if license_info and license_info.spdx_id else None,
        "licenseName": license_info.name if license_info else None,
        "licenseNickname": license_info.nickname if license_info else None,
        "licenseUrl": license_info.url if license_info else None,
        "ownerLogin": repository.owner.login,
        "ownerUrl": repository.owner.url,
        "ownerIsOrganization": int(repository.owner.is_organization),
        "stargazerCount": repository.stargazer_count,
        "forkCount": repository.fork_count,
        "createdAt": _isoformat(repository.created_at),
        "pushedAt": _isoformat(repository.pushed_at),
        "starredAt": _isoformat(repository.starred_at),
        "updatedAt": _isoformat(repository.updated_at),
        "importedAt": _isoformat(imported_at),
        "unstarredAt": _isoformat(repository.unstarred_at),
        "languages": json.dumps(repository.languages),
        "fundingLinks": json.dumps(
            [{"url": link.url, "platform": link.platform_name} for link in repository.funding_links]
        ),
    }


def from_stored_row(row: Mapping[str, Any], topics: Iterable[Topic] = ()) -> Result[Repository, SyncFailure]:
    """Convert a joined ``repositories`` row back into a :class:`Repository`."""

    try:
        parsed = StoredRepositoryRow.model_validate(dict(row))

        license_info = None
        if parsed.license:
            license_info = LicenseInfo(
                spdx_id=parsed.license,
                name=parsed.license_name or None,
                nickname=parsed.license_nickname or None,
                url=normalize_url(parsed.license_url) if parsed.license_url else None,
            )

        latest_release = None
        if parsed.latest_release is not None:
            latest_release = Release(
                url=normalize_url(parsed.latest_release.url),
                name=parsed.latest_release.name or None,
                published_at=_utc(parsed.latest_release.published_at),
            )

        repository = Repository(
            id=parsed.id,
            name=parsed.name,
            description=_clean_description(parsed.description),
            url=normalize_url(parsed.url),
            homepage_url=normalize_url(parsed.homepage_url) if parsed.homepage_url else None,
            owner=Owner(
                login=parsed.owner_login,
                url=normalize_url(parsed.owner_url),
                is_organization=parsed.owner_is_organization,
            ),
            is_archived=parsed.is_archived,
            is_fork=parsed.is_fork,
            is_private=parsed.is_private,
            is_template=parsed.is_template,
            latest_release=latest_release,
            license_info=license_info,
            stargazer_count=parsed.stargazer_count,
            fork_count=parsed.fork_count,
            created_at=_utc(parsed.created_at),
            pushed_at=_utc(parsed.pushed_at),
            starred_at=_utc(parsed.starred_at),
            updated_at=_utc(parsed.updated_at),
            imported_at=_utc(parsed.imported_at),
            unstarred_at=_utc(parsed.unstarred_at),
            languages=list(parsed.languages),
            repository_topics=list(topics),
            funding_links=[
                FundingLink(url=normalize_url(link.url), platform=FundingPlatform.resolve(link.platform))
                for link in parsed.funding_links
            ],
        )
    except (ValidationError, ValueError, TypeError) as exc:
        LOGGER.error("Unable to deserialize stored repository row: %s", exc)
        return failure(ErrorCode.DESERIALIZATION_FAILED, exc)
    return Ok(repository)


def _clean_description(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def _utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(UTC).isoformat()


__all__ = [
    "from_stored_row",
    "from_wire_format",
    "normalize_url",
    "sort_topics",
    "to_stored_row",
]
