"""Build per-merge-request health records for one poll cycle."""

import asyncio
import time
from logging import getLogger

from .checks import build_own_checks
from .ci_status import classify_ci_status
from .lookups import MergeRequestLookups
from .models import MergeRequest, MergeRequestDetails, MergeRequestHealth, OwnMergeRequestChecks
from .review_status import build_reviewer_checks

logger = getLogger(__name__)

CANNOT_BE_MERGED = "cannot_be_merged"


def has_merge_conflict(merge_request: MergeRequest, details: MergeRequestDetails | None) -> bool:
    """Conflict if the details payload says so; the list record only counts without usable details."""
    if details is not None and (details.has_conflicts is not None or details.merge_status):
        return details.has_conflicts is True or details.merge_status == CANNOT_BE_MERGED
    return merge_request.has_conflicts or merge_request.merge_status == CANNOT_BE_MERGED


def has_pending_approvals(merge_request: MergeRequest) -> bool:
    approvals_required = merge_request.approvals_required or 0
    approved_count = len(merge_request.approved_by or [])
    return approvals_required > approved_count


async def build_health(
    merge_request: MergeRequest,
    current_user_id: int,
    lookups: MergeRequestLookups,
    include_reviewer_checks: bool = False,
    include_latest_commit_at: bool = False,
) -> MergeRequestHealth:
    """Build the health record of a single merge request."""
    is_created_by_me = merge_request.author is not None and merge_request.author.id == current_user_id
    should_include_latest_commit_at = include_latest_commit_at or include_reviewer_checks

    async def own_checks() -> OwnMergeRequestChecks | None:
        return await build_own_checks(merge_request, lookups) if is_created_by_me else None

    async def latest_commit_at() -> str | None:
        return await lookups.latest_commit_at(merge_request) if should_include_latest_commit_at else None

    details, own_mr_checks, latest_commit = await asyncio.gather(
        lookups.details(merge_request),
        own_checks(),
        latest_commit_at(),
    )

    reviewer_checks = None
    if include_reviewer_checks:
        reviewer_checks = await build_reviewer_checks(merge_request, current_user_id, lookups, latest_commit)

    ci_status = own_mr_checks.ci_status if own_mr_checks else classify_ci_status(merge_request, details)

    return MergeRequestHealth(
        merge_request=merge_request,
        ci_status=ci_status,
        has_conflicts=has_merge_conflict(merge_request, details),
        has_pending_approvals=has_pending_approvals(merge_request),
        is_created_by_me=is_created_by_me,
        latest_commit_at=latest_commit,
        own_checks=own_mr_checks,
        reviewer_checks=reviewer_checks,
    )


async def build_health_signals(
    merge_requests: list[MergeRequest],
    current_user_id: int,
    lookups: MergeRequestLookups,
    include_reviewer_checks: bool = False,
    include_latest_commit_at: bool = False,
) -> list[MergeRequestHealth]:
    """Build health records for all merge requests concurrently, preserving input order.

    Args:
        merge_requests: Relevance-resolved merge requests
        current_user_id: Id of the current user
        lookups: Per-pass lookup cache (shared across both relevant sets)
        include_reviewer_checks: Derive the reviewer workflow status
        include_latest_commit_at: Fetch the latest commit timestamp

    Returns:
        One health record per input merge request
    """
    start_time = time.time()
    results = await asyncio.gather(
        *[
            build_health(
                merge_request,
                current_user_id,
                lookups,
                include_reviewer_checks=include_reviewer_checks,
                include_latest_commit_at=include_latest_commit_at,
            )
            for merge_request in merge_requests
        ]
    )
    logger.debug(f"Built {len(results)} health records in {time.time() - start_time:.2f}s")
    return list(results)
