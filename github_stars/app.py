"""Top level orchestration of sync, page recreation and cleanup."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime

from .config import AppConfig
from .db import StarsDatabase
from .errors import ErrorCode, SyncFailure
from .github_client import GitHubStarsService
from .locking import OperationLock
from .models import ImportConfig, RemovedRepository, Repository, Stats
from .results import Ok, Result, failure
from .sqlite import SqliteDatabase
from .sync import ProgressCallback, StarsSynchronizer
from .vault import VaultAdapter

LOGGER = logging.getLogger(__name__)

Renderer = Callable[[list[Repository]], Awaitable[None] | None]


@dataclass(slots=True)
class SyncReport:
    imported: int
    unstarred: int
    stopped_early: bool
    total_count: int | None
    finished_at: datetime
    removed: list[RemovedRepository] = field(default_factory=list)


class StarsApp:
    """Owns the database, the sync engine and the operation lock."""

    def __init__(
        self,
        config: AppConfig,
        service: GitHubStarsService,
        vault: VaultAdapter,
        *,
        lock: OperationLock | None = None,
        database: StarsDatabase | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._service = service
        self._vault = vault
        self._lock = lock or OperationLock()
        self._database = database or StarsDatabase(SqliteDatabase(vault))
        self._synchronizer = StarsSynchronizer(self._database, clock=clock)

    @property
    def database(self) -> StarsDatabase:
        return self._database

    @property
    def lock(self) -> OperationLock:
        return self._lock

    async def __aenter__(self) -> "StarsApp":
        opened = self.open()
        if opened.is_err():
            raise RuntimeError(str(opened.error))
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    def open(self) -> Result[StarsDatabase, SyncFailure]:
        storage = self._config.storage
        return self._database.init(storage.db_folder or ".", storage.db_file_name)

    def close(self) -> None:
        self._database.close()

    def stats(self) -> Result[Stats, SyncFailure]:
        return self._database.get_stats()

    async def sync(
        self,
        full_sync: bool | None = None,
        remove_unstarred: bool | None = None,
        progress: ProgressCallback | None = None,
    ) -> Result[SyncReport, SyncFailure]:
        settings = self._config.sync
        full = settings.full_sync if full_sync is None else full_sync
        purge = settings.remove_unstarred if remove_unstarred is None else remove_unstarred

        async def operation() -> Result[SyncReport, SyncFailure]:
            last_repo_id = None
            if not full:
                stats = self._database.get_stats()
                if stats.is_err():
                    return stats
                last_repo_id = stats.value.last_repo_id

            config = ImportConfig(full_sync=full, remove_unstarred=purge, last_repo_id=last_repo_id)
            pages = self._service.starred_repositories(self._config.github.page_size)
            imported = await self._synchronizer.import_repositories(pages, config, progress)
            if imported.is_err():
                return imported

            summary = imported.value
            report = SyncReport(
                imported=summary.imported,
                unstarred=summary.unstarred,
                stopped_early=summary.stopped_early,
                total_count=pages.total_count,
                finished_at=summary.finished_at,
            )
            if config.remove_unstarred:
                removed = self._remove_unstarred()
                if removed.is_err():
                    return removed
                report.removed = removed.value
            return Ok(report)

        return await self._lock.run(operation, settings.lock_timeout)

    async def recreate_pages(self, renderer: Renderer) -> Result[int, SyncFailure]:
        """Hand the current snapshot to ``renderer``; returns the repository count."""

        async def operation() -> Result[int, SyncFailure]:
            repositories = self._database.get_repositories()
            if repositories.is_err():
                return repositories
            try:
                rendered = renderer(repositories.value)
                if inspect.isawaitable(rendered):
                    await rendered
            except Exception as exc:
                LOGGER.exception("Renderer failed")
                return failure(ErrorCode.RENDER_FAILED, exc)
            return Ok(len(repositories.value))

        return await self._lock.run(operation, self._config.sync.lock_timeout)

    async def remove_unstarred(self) -> Result[list[RemovedRepository], SyncFailure]:
        async def operation() -> Result[list[RemovedRepository], SyncFailure]:
            return self._remove_unstarred()

        return await self._lock.run(operation, self._config.sync.lock_timeout)

    def repository_document_path(self, owner: str, name: str) -> str:
        return f"{self._config.storage.repositories_folder}/{owner}/{name}.md"

    def _remove_unstarred(self) -> Result[list[RemovedRepository], SyncFailure]:
        removed = self._database.remove_unstarred_repositories()
        if removed.is_err():
            return removed

        for repository in removed.value:
            path = self.repository_document_path(repository.owner, repository.name)
            try:
                if self._vault.remove_file(path):
                    LOGGER.debug("Removed %s", path)
            except (OSError, ValueError) as exc:
                LOGGER.error("Unable to remove %s: %s", path, exc)
                return failure(ErrorCode.FILE_CAN_NOT_BE_REMOVED, f"{path}: {exc}")
        return removed


__all__ = ["Renderer", "StarsApp", "SyncReport"]
