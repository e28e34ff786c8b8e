"""Domain models for starred repositories."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from urllib.parse import urlsplit


class FundingPlatform(str, Enum):
    """Funding platforms known to GitHub, keyed by their GraphQL enum name."""

    GITHUB = "GitHub"
    PATREON = "Patreon"
    OPEN_COLLECTIVE = "Open Collective Foundation"
    KO_FI = "Ko-fi"
    TIDELIFT = "Tidelift"
    COMMUNITY_BRIDGE = "Community Bridge"
    LIBERAPAY = "Liberapay"
    ISSUEHUNT = "IssueHunt"
    LFX_CROWDFUNDING = "LFX Crowdfunding"
    POLAR = "Polar"
    BUY_ME_A_COFFEE = "Buy Me a Coffee"
    THANKS_DEV = "thanks.dev"
    CUSTOM = "Custom"

    @classmethod
    def resolve(cls, raw: str) -> "FundingPlatform | str":
        """Map a GraphQL platform name to a member; unknown names pass through."""

        member = cls.__members__.get(raw)
        if member is not None:
            return member
        return raw


@dataclass(slots=True)
class Owner:
    login: str
    url: str
    is_organization: bool = False


@dataclass(slots=True)
class LicenseInfo:
    spdx_id: str | None = None
    name: str | None = None
    nickname: str | None = None
    url: str | None = None


@dataclass(slots=True)
class Release:
    url: str
    name: str | None = None
    published_at: datetime | None = None


@dataclass(slots=True)
class Topic:
    name: str
    stargazer_count: int


@dataclass(slots=True)
class FundingLink:
    url: str
    platform: FundingPlatform | str

    @property
    def platform_name(self) -> str:
        """GraphQL name of the platform, as stored on disk."""

        if isinstance(self.platform, FundingPlatform):
            return self.platform.name
        return self.platform


@dataclass(slots=True)
class Repository:
    """Normalized representation of a starred GitHub repository."""

    id: str
    name: str
    url: str
    owner: Owner
    description: str | None = None
    homepage_url: str | None = None
    is_archived: bool = False
    is_fork: bool = False
    is_private: bool = False
    is_template: bool = False
    latest_release: Release | None = None
    license_info: LicenseInfo | None = None
    stargazer_count: int = 0
    fork_count: int = 0
    created_at: datetime | None = None
    pushed_at: datetime | None = None
    starred_at: datetime | None = None
    updated_at: datetime | None = None
    imported_at: datetime | None = None
    unstarred_at: datetime | None = None
    languages: list[str] = field(default_factory=list)
    repository_topics: list[Topic] = field(default_factory=list)
    funding_links: list[FundingLink] = field(default_factory=list)

    @property
    def full_name(self) -> str:
        return f"{self.owner.login}/{self.name}"

    @property
    def main_language(self) -> str:
        return self.languages[0] if self.languages else "Other"

    @property
    def is_starred(self) -> bool:
        return self.unstarred_at is None

    @property
    def latest_release_name(self) -> str | None:
        """Release name, falling back to the tag at the end of the release URL."""

        if self.latest_release is None:
            return None
        if self.latest_release.name:
            return self.latest_release.name
        segments = [part for part in urlsplit(self.latest_release.url).path.split("/") if part]
        return segments[-1] if segments else None


@dataclass(slots=True)
class Stats:
    starred_count: int = 0
    unstarred_count: int = 0
    last_repo_id: str | None = None
    last_star_date: datetime | None = None
    last_import_date: datetime | None = None


@dataclass(frozen=True, slots=True)
class RemovedRepository:
    owner: str
    name: str


@dataclass(frozen=True, slots=True)
class ImportConfig:
    """Parameters of one synchronization pass.

    ``last_repo_id`` is the most recently starred repository seen by the
    previous pass; incremental passes stop as soon as they reach it.
    """

    full_sync: bool = True
    remove_unstarred: bool = False
    last_repo_id: str | None = None


__all__ = [
    "FundingLink",
    "FundingPlatform",
    "ImportConfig",
    "LicenseInfo",
    "Owner",
    "Release",
    "RemovedRepository",
    "Repository",
    "Stats",
    "Topic",
]
