"""Reviewer workflow status derived from note and commit timestamps."""

from .lookups import MergeRequestLookups, parse_timestamp
from .models import MergeRequest, MergeRequestNote, ReviewerMergeRequestChecks, ReviewStatus


def is_later_than(left: str | None, right: str | None) -> bool:
    """Strict ``left > right`` on timestamps; missing or unparseable values compare as not later."""
    left_at = parse_timestamp(left)
    right_at = parse_timestamp(right)
    if left_at is None or right_at is None:
        return False
    return left_at > right_at


def find_last_comments(
    notes: list[MergeRequestNote],
    current_user_id: int,
    author_id: int | None,
) -> tuple[str | None, str | None]:
    """Scan newest-first notes for the latest reviewer and author comments.

    Returns:
        Tuple of (reviewer_last_commented_at, author_last_commented_at)
    """
    reviewer_last_commented_at: str | None = None
    author_last_commented_at: str | None = None

    for note in notes:
        if note.system:
            continue

        note_author_id = note.author.id if note.author else None
        if note_author_id == current_user_id:
            if reviewer_last_commented_at is None:
                reviewer_last_commented_at = note.created_at
        elif author_id is not None and note_author_id == author_id and author_last_commented_at is None:
            author_last_commented_at = note.created_at

        if reviewer_last_commented_at and author_last_commented_at:
            break

    return reviewer_last_commented_at, author_last_commented_at


def resolve_review_status(
    reviewer_last_commented_at: str | None,
    latest_commit_at: str | None,
    author_last_commented_at: str | None,
) -> ReviewStatus:
    if not reviewer_last_commented_at:
        return ReviewStatus.NEW

    if is_later_than(latest_commit_at, reviewer_last_commented_at) or is_later_than(
        author_last_commented_at, reviewer_last_commented_at
    ):
        return ReviewStatus.NEEDS_REVIEW
    return ReviewStatus.WAITING_FOR_AUTHOR


async def build_reviewer_checks(
    merge_request: MergeRequest,
    current_user_id: int,
    lookups: MergeRequestLookups,
    latest_commit_at: str | None = None,
) -> ReviewerMergeRequestChecks:
    """Classify the reviewer status of a review-requested merge request.

    Args:
        merge_request: Merge request to classify
        current_user_id: The reviewer (current user)
        lookups: Per-pass lookup cache
        latest_commit_at: Already-known latest commit timestamp, fetched when omitted
    """
    notes = await lookups.notes(merge_request)
    author_id = merge_request.author.id if merge_request.author else None
    reviewer_last_commented_at, author_last_commented_at = find_last_comments(notes or [], current_user_id, author_id)

    if latest_commit_at is None:
        latest_commit_at = await lookups.latest_commit_at(merge_request)

    return ReviewerMergeRequestChecks(
        review_status=resolve_review_status(reviewer_last_commented_at, latest_commit_at, author_last_commented_at),
        reviewer_last_commented_at=reviewer_last_commented_at,
        latest_commit_at=latest_commit_at,
        author_last_commented_at=author_last_commented_at,
    )
