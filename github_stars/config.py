"""Application configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, PositiveInt, model_validator


UTC = timezone.utc

DEFAULT_GRAPHQL_URL = "https://api.github.com/graphql"


class GitHubSettings(BaseModel):
    """Configuration options for the GitHub GraphQL API."""

    token: str | None = Field(default=None, description="Personal access token used as bearer credentials.")
    graphql_url: str = Field(default=DEFAULT_GRAPHQL_URL)
    page_size: PositiveInt = Field(default=50, le=100, description="Number of starred repositories fetched per request.")
    max_retries: PositiveInt = Field(default=2, le=10, description="Attempts per GraphQL request, including the first one.")
    initial_backoff: float = Field(default=1.0, ge=0.0, description="Initial exponential backoff in seconds.")
    max_backoff: float = Field(default=10.0, ge=0.0, description="Maximum delay for exponential backoff in seconds.")
    request_timeout: float = Field(default=40.0, ge=1.0, description="Timeout for a single HTTP request in seconds.")


class StorageSettings(BaseModel):
    """Where the database file and the repository documents live."""

    destination_folder: str = Field(default="GitHub", description="Root folder for everything the tool writes.")
    db_folder: str | None = Field(default=None, description="Folder holding the database file.")
    db_file_name: str = Field(default="stars.db", min_length=1)
    repositories_folder: str | None = Field(default=None, description="Folder holding per-repository documents.")

    @model_validator(mode="after")
    def _fill_folders(self) -> "StorageSettings":
        destination = self.destination_folder.rstrip("/") or "."
        if not self.db_folder:
            self.db_folder = f"{destination}/db"
        if not self.repositories_folder:
            self.repositories_folder = f"{destination}/repositories"
        return self


class SyncSettings(BaseModel):
    """Tunable parameters for the synchronization pass."""

    full_sync: bool = Field(default=True, description="Consume every page and mark removed stars.")
    remove_unstarred: bool = Field(default=False, description="Purge unstarred repositories after a sync.")
    lock_timeout: float | None = Field(
        default=None, ge=0.0, description="Seconds to wait for a running operation before giving up."
    )


class AppConfig(BaseModel):
    """Root configuration container."""

    github: GitHubSettings = Field(default_factory=GitHubSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None, overrides: dict[str, Any] | None = None) -> "AppConfig":
        """Construct a configuration object from environment variables."""

        env = env if env is not None else os.environ
        overrides = overrides or {}

        github = GitHubSettings(
            token=overrides.get("github_token") or env.get("GITHUB_TOKEN") or env.get("GH_TOKEN"),
            graphql_url=overrides.get("github_graphql_url") or env.get("GITHUB_GRAPHQL_URL") or DEFAULT_GRAPHQL_URL,
            page_size=int(overrides.get("github_page_size") or env.get("GITHUB_PAGE_SIZE", 50)),
            max_retries=int(overrides.get("github_max_retries") or env.get("GITHUB_MAX_RETRIES", 2)),
            initial_backoff=float(overrides.get("github_initial_backoff") or env.get("GITHUB_INITIAL_BACKOFF", 1.0)),
            max_backoff=float(overrides.get("github_max_backoff") or env.get("GITHUB_MAX_BACKOFF", 10.0)),
            request_timeout=float(overrides.get("github_request_timeout") or env.get("GITHUB_REQUEST_TIMEOUT", 40.0)),
        )

        storage = StorageSettings(
            destination_folder=overrides.get("destination_folder") or env.get("STARS_DESTINATION_FOLDER") or "GitHub",
            db_folder=overrides.get("db_folder") or env.get("STARS_DB_FOLDER"),
            db_file_name=overrides.get("db_file_name") or env.get("STARS_DB_FILE_NAME") or "stars.db",
            repositories_folder=overrides.get("repositories_folder") or env.get("STARS_REPOSITORIES_FOLDER"),
        )

        sync = SyncSettings(
            full_sync=_pick_bool(overrides.get("full_sync"), env.get("STARS_FULL_SYNC"), default=True),
            remove_unstarred=_pick_bool(
                overrides.get("remove_unstarred"), env.get("STARS_REMOVE_UNSTARRED"), default=False
            ),
            lock_timeout=_pick_float(overrides.get("lock_timeout"), env.get("STARS_LOCK_TIMEOUT")),
        )

        return cls(github=github, storage=storage, sync=sync)


@dataclass(slots=True)
class RateLimitInfo:
    """Snapshot of GitHub's rate limit state."""

    cost: int
    remaining: int
    reset_at: datetime


def _pick_bool(override: Any, value: str | None, *, default: bool) -> bool:
    if override is not None:
        return bool(override)
    if value is None or value == "":
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value: {value}")


def _pick_float(override: Any, value: str | None) -> float | None:
    if override is not None:
        return float(override)
    if value is None or value == "":
        return None
    return float(value)


__all__ = [
    "AppConfig",
    "GitHubSettings",
    "RateLimitInfo",
    "StorageSettings",
    "SyncSettings",
    "UTC",
]
