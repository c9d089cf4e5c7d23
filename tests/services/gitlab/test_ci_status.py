import pytest

from actionradar.services.gitlab.ci_status import classify_ci_status, is_failure_confirmed, resolve_raw_ci_status
from actionradar.services.gitlab.models import CiStatus, MergeRequestDetails


def details(**fields) -> MergeRequestDetails:
    return MergeRequestDetails.model_validate(fields)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("success", CiStatus.SUCCESS),
        ("RUNNING", CiStatus.RUNNING),
        (" pending ", CiStatus.PENDING),
        ("canceled", CiStatus.CANCELED),
        ("skipped", CiStatus.SKIPPED),
        ("manual", CiStatus.MANUAL),
        ("scheduled", CiStatus.SCHEDULED),
        ("created", CiStatus.CREATED),
        ("preparing", CiStatus.PREPARING),
        ("waiting_for_resource", CiStatus.WAITING_FOR_RESOURCE),
        ("something_new", CiStatus.UNKNOWN),
        (None, CiStatus.UNKNOWN),
    ],
)
def test_classify_list_pipeline_status(make_merge_request, raw, expected) -> None:
    """Test classification of the list-level pipeline when details are unavailable."""
    merge_request = make_merge_request(pipeline={"status": raw} if raw is not None else None)
    assert classify_ci_status(merge_request, None) is expected


def test_head_pipeline_wins_over_pipeline(make_merge_request) -> None:
    merge_request = make_merge_request(pipeline={"status": "failed"})
    payload = details(head_pipeline={"status": "running"}, pipeline={"status": "success"})
    assert resolve_raw_ci_status(merge_request, payload) == "running"


def test_details_pipeline_used_without_head_pipeline(make_merge_request) -> None:
    merge_request = make_merge_request(pipeline={"status": "failed"})
    assert resolve_raw_ci_status(merge_request, details(pipeline={"status": "success"})) == "success"


def test_details_without_pipeline_ignore_list_status(make_merge_request) -> None:
    """Test that fetched details never fall back to the stale list pipeline."""
    merge_request = make_merge_request(pipeline={"status": "failed"})
    assert classify_ci_status(merge_request, details()) is CiStatus.UNKNOWN


def test_failed_without_details_is_failed(make_merge_request) -> None:
    merge_request = make_merge_request(pipeline={"status": "failed"})
    assert classify_ci_status(merge_request, None) is CiStatus.FAILED


@pytest.mark.parametrize("detailed_merge_status", ["can_be_merged", "mergeable", " Mergeable "])
def test_failed_suppressed_when_mergeable(make_merge_request, detailed_merge_status: str) -> None:
    """Test that a failure is treated as stale when GitLab reports the MR mergeable."""
    payload = details(head_pipeline={"status": "failed"}, detailed_merge_status=detailed_merge_status)
    assert is_failure_confirmed(payload) is False
    assert classify_ci_status(make_merge_request(), payload) is CiStatus.UNKNOWN


@pytest.mark.parametrize("detailed_merge_status", [None, "not_approved", "ci_must_pass", "conflict"])
def test_failed_confirmed(make_merge_request, detailed_merge_status) -> None:
    payload = details(head_pipeline={"status": "failed"}, detailed_merge_status=detailed_merge_status)
    assert classify_ci_status(make_merge_request(), payload) is CiStatus.FAILED


def test_non_failed_status_not_suppressed(make_merge_request) -> None:
    payload = details(head_pipeline={"status": "success"}, detailed_merge_status="mergeable")
    assert classify_ci_status(make_merge_request(), payload) is CiStatus.SUCCESS
