"""Checks for merge requests authored by the current user."""

import asyncio

from .ci_status import classify_ci_status
from .lookups import MergeRequestLookups
from .models import MergeRequest, MergeRequestApprovals, MergeRequestDetails, OwnMergeRequestChecks


def is_approved(approvals: MergeRequestApprovals | None) -> bool:
    if approvals is None:
        return False
    return approvals.approved is True or approvals.approvals_left == 0 or bool(approvals.approved_by)


def has_unresolved_comments(details: MergeRequestDetails | None) -> bool:
    if details is None:
        return False
    unresolved_count = details.unresolved_discussions_count
    return (unresolved_count is not None and unresolved_count > 0) or details.blocking_discussions_resolved is False


async def build_own_checks(merge_request: MergeRequest, lookups: MergeRequestLookups) -> OwnMergeRequestChecks:
    """Derive approval, discussion and CI state from the cached payloads."""
    approvals, details = await asyncio.gather(lookups.approvals(merge_request), lookups.details(merge_request))
    return OwnMergeRequestChecks(
        is_approved=is_approved(approvals),
        has_unresolved_comments=has_unresolved_comments(details),
        ci_status=classify_ci_status(merge_request, details),
    )
