"""Per-pass memoization of expensive per-merge-request lookups.

A fresh :class:`EntityLookupCache` is created for every poll cycle. The first
consumer of a ``(resource, entity)`` pair starts the request; every later
consumer, concurrent or not, awaits the same task. Failures are tolerated and
remembered as ``None`` for the rest of the pass.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from logging import getLogger
from typing import Any, TypeVar

import httpx
from pydantic import ValidationError

from .client import GitLabAPIClient, RemoteApiError
from .models import (
    EntityKey,
    MergeRequest,
    MergeRequestApprovals,
    MergeRequestCommit,
    MergeRequestDetails,
    MergeRequestNote,
)

logger = getLogger(__name__)

T = TypeVar("T")

APPROVALS = "approvals"
DETAILS = "details"
NOTES = "notes"
COMMITS = "commits"


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a GitLab ISO-8601 timestamp, returning None when absent or malformed."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    # If the parsed datetime is naive, assume UTC
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class EntityLookupCache:
    """Memoizes in-flight or completed lookups keyed by (resource kind, entity key)."""

    def __init__(self) -> None:
        self._tasks: dict[tuple[str, EntityKey], asyncio.Task[Any]] = {}
        self.requests_started = 0

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, item: tuple[str, EntityKey]) -> bool:
        return item in self._tasks

    async def get_or_fetch(self, kind: str, key: EntityKey, fetch: Callable[[], Awaitable[T]]) -> T | None:
        """Return the shared result for ``(kind, key)``, starting ``fetch`` on first use."""
        task = self._tasks.get((kind, key))
        if task is None:
            self.requests_started += 1
            task = asyncio.ensure_future(self._tolerant(kind, key, fetch))
            self._tasks[(kind, key)] = task
        else:
            logger.debug(f"Cache hit for {kind} of {key}")
        result: T | None = await task
        return result

    @staticmethod
    async def _tolerant(kind: str, key: EntityKey, fetch: Callable[[], Awaitable[T]]) -> T | None:
        try:
            return await fetch()
        except RemoteApiError as e:
            logger.warning(f"Failed to fetch {kind} for {key}: {e}")
        except httpx.HTTPError as e:
            logger.warning(f"Network error fetching {kind} for {key}: {e}")
        except ValidationError as e:
            logger.warning(f"Unexpected {kind} payload for {key}: {e.error_count()} validation errors")
        return None


class MergeRequestLookups:
    """Cached per-merge-request resources for one derivation pass."""

    def __init__(self, client: GitLabAPIClient, cache: EntityLookupCache | None = None) -> None:
        self.client = client
        self.cache = cache if cache is not None else EntityLookupCache()

    async def approvals(self, merge_request: MergeRequest) -> MergeRequestApprovals | None:
        key = merge_request.key
        return await self.cache.get_or_fetch(
            APPROVALS, key, lambda: self.client.get_merge_request_approvals(key.project_id, key.iid)
        )

    async def details(self, merge_request: MergeRequest) -> MergeRequestDetails | None:
        key = merge_request.key
        return await self.cache.get_or_fetch(
            DETAILS, key, lambda: self.client.get_merge_request_details(key.project_id, key.iid)
        )

    async def notes(self, merge_request: MergeRequest) -> list[MergeRequestNote] | None:
        key = merge_request.key
        return await self.cache.get_or_fetch(
            NOTES, key, lambda: self.client.get_merge_request_notes(key.project_id, key.iid)
        )

    async def commits(self, merge_request: MergeRequest) -> list[MergeRequestCommit] | None:
        key = merge_request.key
        return await self.cache.get_or_fetch(
            COMMITS, key, lambda: self.client.get_merge_request_commits(key.project_id, key.iid)
        )

    async def latest_commit_at(self, merge_request: MergeRequest) -> str | None:
        """Return the raw ``created_at`` of the newest commit, or None if unknown.

        Commits with a missing or unparseable timestamp are skipped.
        """
        commits = await self.commits(merge_request)
        if not commits:
            return None

        latest_commit_at: str | None = None
        latest: datetime | None = None
        for commit in commits:
            created_at = parse_timestamp(commit.created_at)
            if created_at is None:
                continue
            if latest is None or created_at > latest:
                latest = created_at
                latest_commit_at = commit.created_at

        return latest_commit_at
