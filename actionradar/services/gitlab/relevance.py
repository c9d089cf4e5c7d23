"""Resolve which open merge requests are relevant to the current user."""

import asyncio
from logging import getLogger

from .client import GitLabAPIClient
from .lookups import MergeRequestLookups
from .models import GitLabUser, MergeRequest, RelevantMergeRequests

logger = getLogger(__name__)

# Reviewer states meaning the user has already looked at the merge request
REVIEWED_STATES = frozenset({"reviewed", "approved", "requested_changes", "commented"})


def normalize_status_value(value: object) -> str:
    """Lower-case and trim a raw status field; anything but a string becomes empty."""
    return value.strip().lower() if isinstance(value, str) else ""


def dedupe_by_id(merge_requests: list[MergeRequest]) -> list[MergeRequest]:
    """Drop duplicate ids, keeping the last-seen record at the first-seen position."""
    deduped: dict[int, MergeRequest] = {}
    for merge_request in merge_requests:
        deduped[merge_request.id] = merge_request
    return list(deduped.values())


def has_reviewer_marked_reviewed(merge_request: MergeRequest, user_id: int) -> bool:
    """Check whether the user's reviewer entry carries a terminal review state."""
    for reviewer in merge_request.reviewers or []:
        if reviewer.id == user_id:
            return normalize_status_value(reviewer.state) in REVIEWED_STATES
    return False


async def is_reviewed_by_user(merge_request: MergeRequest, user_id: int, lookups: MergeRequestLookups) -> bool:
    """Decide whether the user has effectively reviewed the merge request already.

    The cheap embedded signals are checked first; the approvals endpoint is only
    consulted when neither of them settles it.
    """
    if has_reviewer_marked_reviewed(merge_request, user_id):
        return True

    if any(approval.user.id == user_id for approval in merge_request.approved_by or []):
        return True

    approvals = await lookups.approvals(merge_request)
    if approvals is None:
        return False
    return any(approval.user.id == user_id for approval in approvals.approved_by or [])


async def resolve_relevant_merge_requests(
    client: GitLabAPIClient,
    lookups: MergeRequestLookups,
    current_user: GitLabUser | None = None,
) -> RelevantMergeRequests:
    """Fetch the assigned and review-requested merge requests for the current user.

    Args:
        client: Authenticated GitLab API client
        lookups: Per-pass lookup cache shared with the health builder
        current_user: Already-resolved identity, fetched when omitted

    Returns:
        Deduplicated assigned merge requests and the review-requested merge
        requests that are neither drafts nor already reviewed by the user

    Raises:
        RemoteApiError: If the identity or either list request fails
        httpx.HTTPError: If a request could not be completed
    """
    if current_user is None:
        current_user = await client.get_current_user()
    logger.debug(f"Resolving relevant merge requests for user {current_user.id}")

    assigned, review_requested = await asyncio.gather(
        client.list_merge_requests(assignee_id=current_user.id),
        client.list_merge_requests(reviewer_id=current_user.id),
    )

    candidates = [mr for mr in dedupe_by_id(review_requested) if not mr.is_draft]
    reviewed = await asyncio.gather(*[is_reviewed_by_user(mr, current_user.id, lookups) for mr in candidates])

    relevant = RelevantMergeRequests(
        current_user_id=current_user.id,
        assigned=dedupe_by_id(assigned),
        review_requested=[mr for mr, reviewed_by_me in zip(candidates, reviewed) if not reviewed_by_me],
    )
    logger.info(
        f"Found {len(relevant.assigned)} assigned and {len(relevant.review_requested)} review-requested merge requests"
    )
    return relevant
