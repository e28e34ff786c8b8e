"""Validation schemas for GraphQL payloads and stored database rows."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class OwnerNode(_Payload):
    typename: str = Field(default="User", alias="__typename")
    login: str = Field(min_length=1)
    url: str


class ReleaseNode(_Payload):
    name: str | None = None
    published_at: datetime | None = Field(default=None, alias="publishedAt")
    url: str


class LicenseNode(_Payload):
    name: str | None = None
    nickname: str | None = None
    spdx_id: str | None = Field(default=None, alias="spdxId")
    url: str | None = None


class LanguageNode(_Payload):
    name: str


class LanguageEdge(_Payload):
    node: LanguageNode


class LanguageConnection(_Payload):
    edges: list[LanguageEdge] | None = None


class TopicNode(_Payload):
    name: str = Field(min_length=1)
    stargazer_count: int = Field(alias="stargazerCount")


class RepositoryTopicNode(_Payload):
    topic: TopicNode


class RepositoryTopicConnection(_Payload):
    nodes: list[RepositoryTopicNode] | None = None


class FundingLinkNode(_Payload):
    url: str
    platform: str


class RepositoryNode(_Payload):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    owner: OwnerNode
    description: str | None = None
    url: str
    homepage_url: str | None = Field(default=None, alias="homepageUrl")
    is_archived: bool = Field(alias="isArchived")
    is_fork: bool = Field(alias="isFork")
    is_private: bool = Field(alias="isPrivate")
    is_template: bool = Field(alias="isTemplate")
    latest_release: ReleaseNode | None = Field(default=None, alias="latestRelease")
    license_info: LicenseNode | None = Field(default=None, alias="licenseInfo")
    stargazer_count: int = Field(alias="stargazerCount")
    fork_count: int = Field(alias="forkCount")
    created_at: datetime = Field(alias="createdAt")
    pushed_at: datetime | None = Field(default=None, alias="pushedAt")
    updated_at: datetime = Field(alias="updatedAt")
    languages: LanguageConnection | None = None
    repository_topics: RepositoryTopicConnection = Field(
        default_factory=RepositoryTopicConnection, alias="repositoryTopics"
    )
    funding_links: list[FundingLinkNode] = Field(default_factory=list, alias="fundingLinks")


class StarredRepositoryEdge(_Payload):
    """One edge of ``viewer.starredRepositories``."""

    starred_at: datetime = Field(alias="starredAt")
    node: RepositoryNode


class StoredRelease(_Payload):
    name: str | None = None
    published_at: datetime | None = Field(default=None, alias="publishedAt")
    url: str


class StoredFundingLink(_Payload):
    url: str
    platform: str


class StoredRepositoryRow(_Payload):
    """A ``repositories`` row joined with its owner and license."""

    id: str = Field(min_length=1)
    name: str
    description: str | None = None
    url: str
    homepage_url: str | None = Field(default=None, alias="homepageUrl")
    is_archived: bool = Field(alias="isArchived")
    is_fork: bool = Field(alias="isFork")
    is_private: bool = Field(alias="isPrivate")
    is_template: bool = Field(alias="isTemplate")
    latest_release: StoredRelease | None = Field(default=None, alias="latestRelease")
    license: str | None = None
    license_name: str | None = Field(default=None, alias="licenseName")
    license_nickname: str | None = Field(default=None, alias="licenseNickname")
    license_url: str | None = Field(default=None, alias="licenseUrl")
    owner_login: str = Field(alias="ownerLogin", min_length=1)
    owner_url: str = Field(alias="ownerUrl")
    owner_is_organization: bool = Field(default=False, alias="ownerIsOrganization")
    stargazer_count: int = Field(alias="stargazerCount")
    fork_count: int = Field(alias="forkCount")
    created_at: datetime = Field(alias="createdAt")
    pushed_at: datetime | None = Field(default=None, alias="pushedAt")
    starred_at: datetime = Field(alias="starredAt")
    updated_at: datetime = Field(alias="updatedAt")
    imported_at: datetime = Field(alias="importedAt")
    unstarred_at: datetime | None = Field(default=None, alias="unstarredAt")
    languages: list[str] = Field(default_factory=list)
    funding_links: list[StoredFundingLink] = Field(default_factory=list, alias="fundingLinks")

    @field_validator("latest_release", mode="before")
    @classmethod
    def _decode_release(cls, value: Any) -> Any:
        return _decode_json(value)

    @field_validator("languages", "funding_links", mode="before")
    @classmethod
    def _decode_list(cls, value: Any) -> Any:
        value = _decode_json(value)
        return [] if value is None else value


def _decode_json(value: Any) -> Any:
    # JSON-encoded sub-objects live in TEXT columns.
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


__all__ = [
    "LicenseNode",
    "OwnerNode",
    "ReleaseNode",
    "RepositoryNode",
    "StarredRepositoryEdge",
    "StoredFundingLink",
    "StoredRelease",
    "StoredRepositoryRow",
    "TopicNode",
]
