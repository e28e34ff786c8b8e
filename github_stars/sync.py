"""Incremental synchronization of starred repositories into the database."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .config import UTC
from .db import StarsDatabase
from .errors import ErrorCode, SyncFailure
from .models import ImportConfig
from .results import Err, Ok, Result, failure
from .serialization import from_wire_format

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]
PageStream = AsyncIterable[Result[list[Any], SyncFailure]]


@dataclass(slots=True)
class ImportSummary:
    imported: int
    unstarred: int
    stopped_early: bool
    finished_at: datetime


class _ImportAborted(Exception):
    """Unwinds the import transaction with an expected failure."""

    def __init__(self, failure: SyncFailure) -> None:
        super().__init__(str(failure))
        self.failure = failure


class StarsSynchronizer:
    """Applies a stream of starred repository pages to the database.

    One call is one transaction: every page, every upsert and the unstarred
    reconciliation commit together or not at all. The database image is saved
    afterwards on both paths.
    """

    def __init__(self, database: StarsDatabase, clock: Callable[[], datetime] | None = None) -> None:
        self._database = database
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    async def import_repositories(
        self,
        pages: PageStream,
        config: ImportConfig,
        progress: ProgressCallback | None = None,
    ) -> Result[ImportSummary, SyncFailure]:
        instance = self._database.instance
        if instance.is_err():
            return instance

        now = self._clock()
        seen: set[str] = set()
        stopped_early = False
        unstarred = 0
        LOGGER.info(
            "Starting %s import%s",
            "full" if config.full_sync else "incremental",
            f" (stop at {config.last_repo_id})" if not config.full_sync and config.last_repo_id else "",
        )

        outcome: Result[ImportSummary, SyncFailure]
        try:
            with self._database.transaction() as conn:
                async for page in pages:
                    if page.is_err():
                        raise _ImportAborted(page.error)

                    for edge in page.value:
                        parsed = from_wire_format(edge)
                        if parsed.is_err():
                            raise _ImportAborted(parsed.error)
                        repository = parsed.value

                        if not config.full_sync and config.last_repo_id and repository.id == config.last_repo_id:
                            LOGGER.info("Reached previously imported repository %s, stopping", repository.id)
                            stopped_early = True
                            break

                        self._database.upsert_repository(conn, repository, now)
                        seen.add(repository.id)
                        if progress is not None:
                            progress(len(seen))

                    if stopped_early:
                        break

                if config.full_sync:
                    removed = self._database.repository_ids(conn) - seen
                    if removed:
                        unstarred = self._database.mark_unstarred(conn, removed, now)
                        LOGGER.info("Marked %s repositories as unstarred", unstarred)
        except _ImportAborted as exc:
            LOGGER.error("Import aborted and rolled back: %s", exc.failure)
            outcome = Err(exc.failure)
        except Exception as exc:
            LOGGER.exception("Import transaction failed")
            outcome = failure(ErrorCode.IMPORT_FAILED, exc)
        else:
            outcome = Ok(
                ImportSummary(
                    imported=len(seen),
                    unstarred=unstarred,
                    stopped_early=stopped_early,
                    finished_at=self._clock(),
                )
            )
            LOGGER.info("Imported %s repositories", len(seen))
        finally:
            await _close_stream(pages)

        saved = self._database.save()
        if outcome.is_err():
            return outcome
        if saved.is_err():
            return saved
        return outcome


async def _close_stream(pages: PageStream) -> None:
    close = getattr(pages, "aclose", None)
    if close is not None:
        await close()


__all__ = ["ImportSummary", "ProgressCallback", "StarsSynchronizer"]
