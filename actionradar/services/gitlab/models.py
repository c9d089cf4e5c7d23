"""Typed records for GitLab payloads and the health records derived from them."""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict


class GitLabPayload(BaseModel):
    """Base for remote records; unknown fields are dropped and instances are immutable."""

    model_config = ConfigDict(extra="ignore", frozen=True)


class GitLabUser(GitLabPayload):
    id: int
    username: str | None = None
    name: str | None = None


class ReviewerRef(GitLabUser):
    state: str | None = None


class ApprovalRef(GitLabPayload):
    user: GitLabUser


class PipelineRef(GitLabPayload):
    status: str | None = None


class References(GitLabPayload):
    full: str | None = None


@dataclass(frozen=True)
class EntityKey:
    """Stable identity of a merge request: (project id, project-scoped iid)."""

    project_id: int
    iid: int

    def __str__(self) -> str:
        return f"{self.project_id}:{self.iid}"

    @classmethod
    def parse(cls, value: str) -> "EntityKey":
        """Parse the ``"<project_id>:<iid>"`` form produced by ``str()``."""
        project_id, _, iid = value.partition(":")
        if not iid:
            raise ValueError(f"Invalid entity key: {value!r}")
        return cls(project_id=int(project_id), iid=int(iid))


class MergeRequest(GitLabPayload):
    """A merge request as returned by the list endpoints."""

    id: int
    iid: int
    project_id: int
    title: str
    web_url: str
    state: str
    updated_at: str | None = None
    author: GitLabUser | None = None
    draft: bool | None = None
    work_in_progress: bool | None = None
    has_conflicts: bool = False
    merge_status: str | None = None
    references: References | None = None
    pipeline: PipelineRef | None = None
    approvals_required: int | None = None
    approved_by: list[ApprovalRef] | None = None
    assignees: list[GitLabUser] | None = None
    reviewers: list[ReviewerRef] | None = None

    @property
    def key(self) -> EntityKey:
        return EntityKey(project_id=self.project_id, iid=self.iid)

    @property
    def is_draft(self) -> bool:
        return self.draft is True or self.work_in_progress is True


class MergeRequestApprovals(GitLabPayload):
    approved_by: list[ApprovalRef] | None = None
    approved: bool | None = None
    approvals_left: int | None = None


class MergeRequestDetails(GitLabPayload):
    """Single merge request payload; authoritative over the list-level fields."""

    blocking_discussions_resolved: bool | None = None
    unresolved_discussions_count: int | None = None
    has_conflicts: bool | None = None
    merge_status: str | None = None
    detailed_merge_status: str | None = None
    head_pipeline: PipelineRef | None = None
    pipeline: PipelineRef | None = None


class MergeRequestNote(GitLabPayload):
    id: int | None = None
    created_at: str | None = None
    system: bool | None = None
    author: GitLabUser | None = None


class MergeRequestCommit(GitLabPayload):
    id: str | None = None
    created_at: str | None = None


class CiStatus(str, Enum):
    """Canonical pipeline status."""

    SUCCESS = "success"
    FAILED = "failed"
    RUNNING = "running"
    PENDING = "pending"
    CANCELED = "canceled"
    SKIPPED = "skipped"
    MANUAL = "manual"
    SCHEDULED = "scheduled"
    CREATED = "created"
    PREPARING = "preparing"
    WAITING_FOR_RESOURCE = "waiting_for_resource"
    UNKNOWN = "unknown"


class ReviewStatus(str, Enum):
    """Reviewer workflow state for a review-requested merge request."""

    NEEDS_REVIEW = "needs_review"
    WAITING_FOR_AUTHOR = "waiting_for_author"
    NEW = "new"


@dataclass(frozen=True)
class RelevantMergeRequests:
    current_user_id: int
    assigned: list[MergeRequest]
    review_requested: list[MergeRequest]


@dataclass(frozen=True)
class OwnMergeRequestChecks:
    is_approved: bool
    has_unresolved_comments: bool
    ci_status: CiStatus


@dataclass(frozen=True)
class ReviewerMergeRequestChecks:
    review_status: ReviewStatus
    reviewer_last_commented_at: str | None = None
    latest_commit_at: str | None = None
    author_last_commented_at: str | None = None


@dataclass(frozen=True)
class MergeRequestHealth:
    """Derived health of one merge request for one poll cycle."""

    merge_request: MergeRequest
    ci_status: CiStatus
    has_conflicts: bool
    has_pending_approvals: bool
    is_created_by_me: bool
    latest_commit_at: str | None = None
    own_checks: OwnMergeRequestChecks | None = None
    reviewer_checks: ReviewerMergeRequestChecks | None = None

    @property
    def key(self) -> EntityKey:
        return self.merge_request.key

    @property
    def has_failed_ci(self) -> bool:
        return self.ci_status == CiStatus.FAILED

    @property
    def is_at_risk(self) -> bool:
        return self.has_failed_ci or self.has_conflicts or self.has_pending_approvals
