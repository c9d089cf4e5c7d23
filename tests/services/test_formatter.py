from io import StringIO

import pytest
from rich.console import Console

from actionradar.services.formatter import (
    format_ignored_signals,
    format_merge_request_tables,
    format_own_checks,
    format_signal_badges,
    get_project_label,
    show_progress,
)
from actionradar.services.gitlab.models import (
    CiStatus,
    EntityKey,
    OwnMergeRequestChecks,
    ReviewerMergeRequestChecks,
    ReviewStatus,
)
from actionradar.services.ignored_alerts import ActiveIgnoredSignals
from actionradar.services.notifications import build_tray_indicator


@pytest.fixture
def console_output() -> tuple[Console, StringIO]:
    output = StringIO()
    return Console(file=output, force_terminal=False, width=200), output


def test_project_label_from_references(make_merge_request) -> None:
    merge_request = make_merge_request(references={"full": "group/sub/project!12"})
    assert get_project_label(merge_request) == "group/sub/project"


def test_project_label_from_web_url(make_merge_request) -> None:
    merge_request = make_merge_request(web_url="https://gitlab.example.com/team/api/-/merge_requests/4")
    assert get_project_label(merge_request) == "team/api"


def test_project_label_falls_back_to_id(make_merge_request) -> None:
    merge_request = make_merge_request(project_id=77, web_url="https://gitlab.example.com/")
    assert get_project_label(merge_request) == "Project #77"


def test_format_signal_badges(make_health) -> None:
    assert "Healthy" in format_signal_badges(make_health())
    badges = format_signal_badges(make_health(has_conflicts=True, has_failed_ci=True, has_pending_approvals=True))
    assert "CI failure" in badges
    assert "Conflicts" in badges
    assert "Pending approvals" in badges


def test_format_own_checks(make_health) -> None:
    assert format_own_checks(make_health()) == "-"
    item = make_health(
        is_created_by_me=True,
        own_checks=OwnMergeRequestChecks(is_approved=True, has_unresolved_comments=True, ci_status=CiStatus.SUCCESS),
    )
    text = format_own_checks(item)
    assert "Approved" in text
    assert "Unresolved comments" in text


def test_format_ignored_signals() -> None:
    assert format_ignored_signals(ActiveIgnoredSignals(True, True)) == "conflicts, failed CI"
    assert format_ignored_signals(ActiveIgnoredSignals(False, True)) == "failed CI"


def test_format_tables_with_no_merge_requests(console_output) -> None:
    console, output = console_output
    format_merge_request_tables([], [], tray=build_tray_indicator([], []), console=console)

    text = output.getvalue()
    assert "No opened merge requests." in text
    assert "no merge requests need attention" in text


def test_format_tables(console_output, make_health) -> None:
    """Test that both sections, review status and ignored notes are rendered."""
    console, output = console_output
    assigned = [make_health(iid=1, has_conflicts=True)]
    review_requested = [
        make_health(
            iid=2,
            reviewer_checks=ReviewerMergeRequestChecks(review_status=ReviewStatus.WAITING_FOR_AUTHOR),
        )
    ]

    format_merge_request_tables(
        assigned,
        review_requested,
        active_ignored_signals={EntityKey(10, 3): ActiveIgnoredSignals(ignore_conflicts=True, ignore_failed_ci=False)},
        show_urls=True,
        console=console,
    )

    text = output.getvalue()
    assert "Assigned (1)" in text
    assert "Review requested (1)" in text
    assert "!1" in text
    assert "waiting for author" in text
    assert "https://gitlab.example.com/group/project/-/merge_requests/2" in text
    assert "Ignoring conflicts on 10:3 until a new commit" in text


def test_show_progress() -> None:
    progress = show_progress("Checking...")
    assert len(progress.tasks) == 1
    assert progress.tasks[0].description == "Checking..."
