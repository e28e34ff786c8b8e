"""HTTP client for reading starred repositories from GitHub's GraphQL API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Iterable

import httpx

from . import __version__
from .config import GitHubSettings, RateLimitInfo
from .errors import ErrorCode, SyncFailure
from .graphql_queries import STARRED_REPOSITORIES_QUERY, TOTAL_STARRED_COUNT_QUERY
from .results import Ok, Result, failure

LOGGER = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class GraphQLClientError(RuntimeError):
    """Raised when a GraphQL request fails permanently."""


@dataclass(slots=True)
class GraphQLResponse:
    data: dict[str, Any]
    rate_limit: RateLimitInfo | None


class GitHubGraphQLClient:
    """Light-weight GraphQL client with bounded retries."""

    def __init__(self, settings: GitHubSettings, client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._endpoint = settings.graphql_url.rstrip("/")
        headers = {
            "Accept": "application/vnd.github+json",
            "Content-Type": "application/json",
            "User-Agent": f"github-stars-sync/{__version__}",
        }
        if settings.token:
            headers["Authorization"] = f"bearer {settings.token}"
        self._headers = headers
        self._client = client or httpx.AsyncClient(
            headers=headers,
            timeout=settings.request_timeout,
        )
        self._owns_client = client is None

    async def __aenter__(self) -> "GitHubGraphQLClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def execute(self, query: str, variables: dict[str, Any] | None = None) -> GraphQLResponse:
        """Execute a read-only GraphQL query, retrying transient failures with backoff."""

        backoff = self._settings.initial_backoff
        attempt = 0

        while True:
            attempt += 1
            try:
                response = await self._client.post(
                    self._endpoint,
                    json={"query": query, "variables": variables or {}},
                    headers=self._headers,
                )
            except httpx.RequestError as exc:
                LOGGER.warning("GraphQL request error: %s", exc)
                if attempt >= self._settings.max_retries:
                    raise GraphQLClientError("Maximum retries exceeded") from exc
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, self._settings.max_backoff)
                continue

            if response.status_code in {500, 502, 503, 504}:
                LOGGER.info("GitHub transient HTTP %s", response.status_code)
                if attempt >= self._settings.max_retries:
                    raise GraphQLClientError(
                        f"GitHub GraphQL service unavailable after {self._settings.max_retries} attempts"
                    )
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, self._settings.max_backoff)
                continue

            try:
                payload = response.json()
            except ValueError as exc:
                raise GraphQLClientError(f"GitHub returned a non-JSON body (HTTP {response.status_code})") from exc
            if not isinstance(payload, dict):
                raise GraphQLClientError("GitHub returned an unexpected payload")

            message = payload.get("message")
            if message and response.status_code in {403, 429}:
                message_text = str(message)
                if "rate limit" in message_text.lower() and attempt < self._settings.max_retries:
                    delay = _retry_after_seconds(response) or backoff
                    LOGGER.warning("GitHub GraphQL rate limited: %s", message_text)
                    await asyncio.sleep(min(delay, self._settings.max_backoff))
                    backoff = min(max(backoff * 2, delay), self._settings.max_backoff)
                    continue
                raise GraphQLClientError(message_text)

            if response.status_code >= 400:
                raise GraphQLClientError(str(message or f"GitHub GraphQL request failed with HTTP {response.status_code}"))

            errors = payload.get("errors")
            if errors:
                if _is_retryable(errors) and attempt < self._settings.max_retries:
                    delay = _retry_delay(errors) or backoff
                    LOGGER.info("Retrying GraphQL call after error: %s", errors)
                    await asyncio.sleep(min(delay, self._settings.max_backoff))
                    backoff = min(backoff * 2, self._settings.max_backoff)
                    continue
                raise GraphQLClientError(str(errors))

            data = payload.get("data")
            if data is None:
                raise GraphQLClientError("Response payload missing 'data'")

            rate_limit = None
            if rate := data.get("rateLimit"):
                rate_limit = RateLimitInfo(
                    cost=rate.get("cost", 0),
                    remaining=rate.get("remaining", 0),
                    reset_at=_parse_datetime(rate.get("resetAt")),
                )
            return GraphQLResponse(data=data, rate_limit=rate_limit)


@dataclass(slots=True)
class StarredPage:
    """One page of ``viewer.starredRepositories``."""

    edges: list[Any]
    total_count: int
    has_next_page: bool
    end_cursor: str | None
    rate_limit: RateLimitInfo | None = None


class GitHubStarsService:
    """Reads the authenticated user's starred repositories."""

    def __init__(self, client: GitHubGraphQLClient) -> None:
        self._client = client

    async def get_total_starred_count(self) -> Result[int, SyncFailure]:
        try:
            response = await self._client.execute(TOTAL_STARRED_COUNT_QUERY)
        except GraphQLClientError as exc:
            LOGGER.error("Unable to count starred repositories: %s", exc)
            return failure(ErrorCode.REQUEST_FAILED, exc)
        try:
            return Ok(int(response.data["viewer"]["starredRepositories"]["totalCount"]))
        except (KeyError, TypeError, ValueError) as exc:
            return failure(ErrorCode.DESERIALIZATION_FAILED, f"unexpected response shape: {exc!r}")

    async def fetch_page(self, after: str, page_size: int) -> Result[StarredPage, SyncFailure]:
        variables = {"after": after or None, "pageSize": page_size}
        try:
            response = await self._client.execute(STARRED_REPOSITORIES_QUERY, variables)
        except GraphQLClientError as exc:
            LOGGER.error("Starred repositories request failed: %s", exc)
            return failure(ErrorCode.REQUEST_FAILED, exc)

        try:
            connection = response.data["viewer"]["starredRepositories"]
            page_info = connection["pageInfo"]
            page = StarredPage(
                edges=list(connection.get("edges") or []),
                total_count=int(connection["totalCount"]),
                has_next_page=bool(page_info.get("hasNextPage")),
                end_cursor=page_info.get("endCursor") or None,
                rate_limit=response.rate_limit,
            )
        except (KeyError, TypeError, ValueError) as exc:
            return failure(ErrorCode.DESERIALIZATION_FAILED, f"unexpected response shape: {exc!r}")
        return Ok(page)

    def starred_repositories(self, page_size: int, after: str = "") -> "StarredRepositoriesPaginator":
        return StarredRepositoriesPaginator(self, page_size, after)


@dataclass(slots=True)
class StarredRepositoriesPaginator:
    """Lazy, forward-only sequence of starred repository edge batches.

    Each item is ``Ok(edges)`` or a single terminal ``Err``. The consumer may
    ``break`` at any point; no further page is requested after that.
    ``total_count`` is known once the first page has arrived.
    """

    service: GitHubStarsService
    page_size: int
    after: str = ""
    total_count: int | None = None
    end_cursor: str | None = None
    has_next_page: bool = True
    fetched_count: int = 0
    pages_fetched: int = 0
    _iterator: AsyncIterator[Result[list[Any], SyncFailure]] | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not 1 <= self.page_size <= MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be between 1 and {MAX_PAGE_SIZE}, got {self.page_size}")
        self.end_cursor = self.after or None

    def __aiter__(self) -> AsyncIterator[Result[list[Any], SyncFailure]]:
        if self._iterator is not None:
            raise RuntimeError("Starred repositories can only be iterated once")
        self._iterator = self._pages()
        return self._iterator

    async def aclose(self) -> None:
        if self._iterator is not None:
            await self._iterator.aclose()  # type: ignore[attr-defined]

    async def _pages(self) -> AsyncIterator[Result[list[Any], SyncFailure]]:
        after = self.after
        while True:
            result = await self.service.fetch_page(after, self.page_size)
            if result.is_err():
                self.has_next_page = False
                yield result
                return

            page = result.value
            self.pages_fetched += 1
            self.total_count = page.total_count
            self.has_next_page = page.has_next_page
            self.end_cursor = page.end_cursor
            self.fetched_count += len(page.edges)
            if page.rate_limit is not None:
                LOGGER.debug("Rate limit remaining: %s (resets at %s)", page.rate_limit.remaining, page.rate_limit.reset_at)
            LOGGER.debug("Fetched %s of %s starred repositories", self.fetched_count, self.total_count)

            yield Ok(page.edges)

            if not page.has_next_page:
                return
            if not page.end_cursor:
                self.has_next_page = False
                yield failure(ErrorCode.REQUEST_FAILED, "next page announced without a cursor")
                return
            after = page.end_cursor


def _is_retryable(errors: Iterable[dict[str, Any]]) -> bool:
    for error in errors:
        error_type = error.get("type") or ""
        message = (error.get("message") or "").lower()
        if error_type in {"RATE_LIMITED", "ABUSE_DETECTED"}:
            return True
        if "timeout" in message or "try again" in message or "temporary" in message:
            return True
    return False


def _retry_delay(errors: Iterable[dict[str, Any]]) -> float | None:
    for error in errors:
        if "retryAfter" in error:
            try:
                return float(error["retryAfter"])
            except (TypeError, ValueError):
                continue
    return None


def _retry_after_seconds(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except (TypeError, ValueError):
        pass

    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    delta = (retry_at - datetime.now(timezone.utc)).total_seconds()
    return max(delta, 0.0)


def _parse_datetime(value: str | None) -> datetime:
    if not value:
        raise GraphQLClientError("Rate limit missing resetAt timestamp")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


__all__ = [
    "GitHubGraphQLClient",
    "GitHubStarsService",
    "GraphQLClientError",
    "GraphQLResponse",
    "StarredPage",
    "StarredRepositoriesPaginator",
]
