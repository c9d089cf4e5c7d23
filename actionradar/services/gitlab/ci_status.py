"""Normalize raw GitLab pipeline fields into a canonical CI status."""

from .models import CiStatus, MergeRequest, MergeRequestDetails
from .relevance import normalize_status_value

# Detailed merge statuses under which a "failed" pipeline is a stale echo
HEALTHY_DETAILED_MERGE_STATUSES = frozenset({"can_be_merged", "mergeable"})

_CI_STATUS_BY_RAW = {status.value: status for status in CiStatus}


def resolve_raw_ci_status(merge_request: MergeRequest, details: MergeRequestDetails | None) -> str:
    """Pick the raw pipeline status to classify.

    The details payload wins whenever it was fetched, even if it carries no
    pipeline status: the list-level pipeline field goes stale.
    """
    if details is not None:
        head_pipeline_status = normalize_status_value(details.head_pipeline.status if details.head_pipeline else None)
        if head_pipeline_status:
            return head_pipeline_status
        return normalize_status_value(details.pipeline.status if details.pipeline else None)

    return normalize_status_value(merge_request.pipeline.status if merge_request.pipeline else None)


def is_failure_confirmed(details: MergeRequestDetails | None) -> bool:
    """Return False when GitLab itself reports the merge request as mergeable."""
    if details is None:
        return True
    detailed_merge_status = normalize_status_value(details.detailed_merge_status)
    return detailed_merge_status not in HEALTHY_DETAILED_MERGE_STATUSES


def classify_ci_status(merge_request: MergeRequest, details: MergeRequestDetails | None) -> CiStatus:
    """Classify the merge request's CI status.

    Args:
        merge_request: Merge request as returned by the list endpoint
        details: Details payload, or None if it could not be fetched

    Returns:
        Canonical status; unrecognized or empty values map to ``unknown``
    """
    raw_status = resolve_raw_ci_status(merge_request, details)
    status = _CI_STATUS_BY_RAW.get(raw_status, CiStatus.UNKNOWN)
    if status == CiStatus.FAILED and not is_failure_confirmed(details):
        return CiStatus.UNKNOWN
    return status
