"""Command line interface for mirroring starred repositories."""

from __future__ import annotations

import asyncio
import csv
import json
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Optional, TypeVar

import typer

from .app import StarsApp
from .config import AppConfig
from .errors import SyncFailure
from .github_client import GitHubGraphQLClient, GitHubStarsService
from .models import Repository
from .results import Result
from .vault import FileSystemVault

app = typer.Typer(add_completion=False)

T = TypeVar("T")

CSV_FIELDS = [
    "id",
    "owner",
    "name",
    "url",
    "homepage_url",
    "description",
    "main_language",
    "license",
    "stargazer_count",
    "fork_count",
    "topics",
    "starred_at",
    "unstarred_at",
]


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _load_config(vault_root: Path, **overrides: Any) -> tuple[AppConfig, FileSystemVault]:
    config = AppConfig.from_env(overrides={key: value for key, value in overrides.items() if value is not None})
    return config, FileSystemVault(vault_root)


def _run(config: AppConfig, vault: FileSystemVault, action: Callable[[StarsApp], Awaitable[Result[T, SyncFailure]]]) -> T:
    async def runner() -> Result[T, SyncFailure]:
        async with GitHubGraphQLClient(config.github) as client:
            stars = StarsApp(config, GitHubStarsService(client), vault)
            opened = stars.open()
            if opened.is_err():
                return opened
            try:
                return await action(stars)
            finally:
                stars.close()

    result = asyncio.run(runner())
    if result.is_err():
        typer.echo(f"ERROR. {result.error}", err=True)
        raise typer.Exit(code=1)
    return result.value


@app.command("init-db")
def init_db(
    vault: Path = typer.Option(Path("."), help="Vault root directory"),
    destination: Optional[str] = typer.Option(None, help="Destination folder inside the vault"),
    log_level: str = typer.Option("INFO", help="Logging level"),
) -> None:
    """Create the database file and its schema."""

    configure_logging(log_level)
    config, files = _load_config(vault, destination_folder=destination)

    async def action(stars: StarsApp) -> Result[Any, SyncFailure]:
        return stars.stats()

    _run(config, files, action)
    typer.echo(f"Database ready at {config.storage.db_folder}/{config.storage.db_file_name}")


@app.command("sync")
def sync(
    full: bool = typer.Option(True, "--full/--incremental", help="Full resynchronization or stop at the last seen star"),
    remove_unstarred: Optional[bool] = typer.Option(
        None, "--remove-unstarred/--keep-unstarred", help="Purge unstarred repositories afterwards"
    ),
    page_size: Optional[int] = typer.Option(None, min=1, max=100, help="GraphQL page size"),
    github_token: Optional[str] = typer.Option(None, envvar="GITHUB_TOKEN", help="GitHub token"),
    vault: Path = typer.Option(Path("."), help="Vault root directory"),
    destination: Optional[str] = typer.Option(None, help="Destination folder inside the vault"),
    log_level: str = typer.Option("INFO", help="Logging level"),
) -> None:
    """Import starred repositories into the database."""

    configure_logging(log_level)
    config, files = _load_config(
        vault,
        github_token=github_token,
        github_page_size=page_size,
        destination_folder=destination,
    )
    if not config.github.token:
        raise typer.BadParameter("A GitHub token is required")

    logger = logging.getLogger(__name__)

    def progress(count: int) -> None:
        if count % 100 == 0:
            logger.info("Processed %s repositories", count)

    async def action(stars: StarsApp) -> Result[Any, SyncFailure]:
        return await stars.sync(full_sync=full, remove_unstarred=remove_unstarred, progress=progress)

    report = _run(config, files, action)
    typer.echo(
        f"Imported {report.imported} of {report.total_count} starred repositories, "
        f"marked {report.unstarred} as unstarred, removed {len(report.removed)}."
    )


@app.command("stats")
def stats(
    vault: Path = typer.Option(Path("."), help="Vault root directory"),
    destination: Optional[str] = typer.Option(None, help="Destination folder inside the vault"),
    log_level: str = typer.Option("WARNING", help="Logging level"),
) -> None:
    """Show how many repositories are starred and unstarred."""

    configure_logging(log_level)
    config, files = _load_config(vault, destination_folder=destination)

    async def action(stars: StarsApp) -> Result[Any, SyncFailure]:
        return stars.stats()

    result = _run(config, files, action)
    typer.echo(f"Starred: {result.starred_count}")
    typer.echo(f"Unstarred: {result.unstarred_count}")
    typer.echo(f"Last repository: {result.last_repo_id or '-'}")


@app.command("dump")
def dump(
    output: Path = typer.Option(..., exists=False, dir_okay=False, help="Destination file"),
    format: str = typer.Option("csv", help="Export format: csv or json"),
    vault: Path = typer.Option(Path("."), help="Vault root directory"),
    destination: Optional[str] = typer.Option(None, help="Destination folder inside the vault"),
    log_level: str = typer.Option("INFO", help="Logging level"),
) -> None:
    """Dump the stored repositories into a file."""

    configure_logging(log_level)
    config, files = _load_config(vault, destination_folder=destination)

    writers = {"csv": _write_csv, "json": _write_json}
    writer = writers.get(format.lower())
    if writer is None:
        raise typer.BadParameter("Only csv and json formats are supported")

    async def action(stars: StarsApp) -> Result[Any, SyncFailure]:
        return await stars.recreate_pages(lambda repositories: writer(repositories, output))

    count = _run(config, files, action)
    typer.echo(f"Wrote {count} repositories to {output}")


@app.command("remove-unstarred")
def remove_unstarred(
    vault: Path = typer.Option(Path("."), help="Vault root directory"),
    destination: Optional[str] = typer.Option(None, help="Destination folder inside the vault"),
    log_level: str = typer.Option("INFO", help="Logging level"),
) -> None:
    """Delete unstarred repositories and their documents."""

    configure_logging(log_level)
    config, files = _load_config(vault, destination_folder=destination)

    async def action(stars: StarsApp) -> Result[Any, SyncFailure]:
        return await stars.remove_unstarred()

    removed = _run(config, files, action)
    for repository in removed:
        typer.echo(f"{repository.owner}/{repository.name}")
    typer.echo(f"Removed {len(removed)} unstarred repositories")


def _repository_row(repository: Repository) -> dict[str, Any]:
    return {
        "id": repository.id,
        "owner": repository.owner.login,
        "name": repository.name,
        "url": repository.url,
        "homepage_url": repository.homepage_url or "",
        "description": repository.description or "",
        "main_language": repository.main_language,
        "license": repository.license_info.spdx_id if repository.license_info else "",
        "stargazer_count": repository.stargazer_count,
        "fork_count": repository.fork_count,
        "topics": " ".join(topic.name for topic in repository.repository_topics),
        "starred_at": repository.starred_at.isoformat() if repository.starred_at else "",
        "unstarred_at": repository.unstarred_at.isoformat() if repository.unstarred_at else "",
    }


def _write_csv(repositories: list[Repository], path: Path) -> None:
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for repository in repositories:
            writer.writerow(_repository_row(repository))


def _write_json(repositories: list[Repository], path: Path) -> None:
    with path.open("w", encoding="utf-8") as handle:
        json.dump([_repository_row(repository) for repository in repositories], handle, indent=2)


__all__ = ["app"]
