"""Tests for FastAPI web application."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from actionradar.services.gitlab.models import EntityKey, ReviewerMergeRequestChecks, ReviewStatus
from actionradar.services.ignored_alerts import ActiveIgnoredSignals
from actionradar.services.poller import CycleResult
from actionradar.www import app, get_poller, poll_forever


def test_app_exists():
    """Test that the FastAPI app is properly instantiated."""
    assert app is not None
    routes = [route.path for route in app.routes]
    assert "/api/merge-requests" in routes
    assert "/api/tray" in routes


@pytest.fixture
def cycle_result(make_health) -> CycleResult:
    conflicted = make_health(iid=1, has_conflicts=True)
    review = make_health(
        iid=5,
        project_id=20,
        reviewer_checks=ReviewerMergeRequestChecks(review_status=ReviewStatus.NEEDS_REVIEW),
    )
    return CycleResult(
        current_user_id=42,
        all_assigned=[conflicted],
        assigned=[conflicted],
        review_requested=[review],
        active_ignored_signals={},
        ignored_state={},
        snapshot={},
    )


@pytest.fixture
def poller(cycle_result: CycleResult) -> MagicMock:
    poller = MagicMock()
    poller.last_result = cycle_result
    poller.last_error = None
    poller.is_loading = False
    poller.is_running = False
    poller.run_cycle = AsyncMock(return_value=cycle_result)
    app.dependency_overrides[get_poller] = lambda: poller
    return poller


def test_poller_unavailable_without_token(fastapi_client):
    response = fastapi_client.get("/api/merge-requests")
    assert response.status_code == 503


def test_get_merge_requests(fastapi_client, poller):
    response = fastapi_client.get("/api/merge-requests")

    assert response.status_code == 200
    data = response.json()
    assert data["error"] is None
    assert data["loading"] is False
    assert data["current_user_id"] == 42
    assert data["assigned"][0]["key"] == "10:1"
    assert data["assigned"][0]["has_conflicts"] is True
    assert data["assigned"][0]["project"] == "group/project"
    assert data["review_requested"][0]["reviewer_checks"]["review_status"] == "needs_review"
    assert data["ignored"] == {}


def test_get_merge_requests_before_first_cycle(fastapi_client, poller):
    poller.last_result = None
    poller.last_error = "GitLab API error: 401 Unauthorized"

    data = fastapi_client.get("/api/merge-requests").json()

    assert data["assigned"] == []
    assert data["error"] == "GitLab API error: 401 Unauthorized"


def test_tray(fastapi_client, poller):
    data = fastapi_client.get("/api/tray").json()

    assert data["conflict_count"] == 1
    assert data["review_pending_count"] == 1
    assert data["actionable_total_count"] == 2
    assert data["title"] == "2"


def test_tray_before_first_cycle(fastapi_client, poller):
    poller.last_result = None

    data = fastapi_client.get("/api/tray").json()

    assert data["actionable_total_count"] == 0
    assert data["title"] is None


def test_refresh(fastapi_client, poller):
    response = fastapi_client.post("/api/refresh")

    assert response.status_code == 200
    poller.run_cycle.assert_awaited_once_with(interactive=True)


def test_refresh_while_running(fastapi_client, poller):
    """Test that a refresh during a running cycle is rejected."""
    poller.is_running = True

    response = fastapi_client.post("/api/refresh")

    assert response.status_code == 409
    poller.run_cycle.assert_not_awaited()


def test_ignore_merge_request(fastapi_client, poller, cycle_result):
    key = EntityKey(10, 1)
    poller.ignore_alert = AsyncMock(return_value=cycle_result)
    poller.last_result = CycleResult(
        current_user_id=42,
        all_assigned=cycle_result.all_assigned,
        assigned=[],
        review_requested=[],
        active_ignored_signals={key: ActiveIgnoredSignals(ignore_conflicts=True, ignore_failed_ci=False)},
        ignored_state={},
        snapshot={},
    )

    response = fastapi_client.post("/api/merge-requests/10/1/ignore", json={"ignore_conflicts": True})

    assert response.status_code == 200
    poller.ignore_alert.assert_awaited_once_with(key, ignore_conflicts=True, ignore_failed_ci=False)
    assert response.json()["ignored"] == {"10:1": {"ignore_conflicts": True, "ignore_failed_ci": False}}


def test_ignore_unknown_merge_request(fastapi_client, poller):
    poller.ignore_alert = AsyncMock(side_effect=KeyError("Merge request 10:9 is not in the assigned list"))

    response = fastapi_client.post("/api/merge-requests/10/9/ignore", json={"ignore_failed_ci": True})

    assert response.status_code == 404
    assert "not in the assigned list" in response.json()["detail"]


def test_ignore_without_signal(fastapi_client, poller):
    poller.ignore_alert = AsyncMock(side_effect=ValueError("Select at least one signal to ignore"))

    response = fastapi_client.post("/api/merge-requests/10/1/ignore", json={})

    assert response.status_code == 422


def test_unignore_merge_request(fastapi_client, poller, cycle_result):
    poller.clear_ignored_alert = AsyncMock(return_value=cycle_result)

    response = fastapi_client.delete("/api/merge-requests/10/1/ignore")

    assert response.status_code == 200
    poller.clear_ignored_alert.assert_awaited_once_with(EntityKey(10, 1))


@pytest.mark.asyncio
async def test_background_polling_survives_failed_cycle(cycle_result):
    """Test that an unexpected error in one cycle does not stop background polling."""
    poller = MagicMock()
    poller.run_cycle = AsyncMock(
        side_effect=[ConnectionError("Redis unavailable"), cycle_result, asyncio.CancelledError()]
    )

    with pytest.raises(asyncio.CancelledError):
        await poll_forever(poller, interval=0)

    assert poller.run_cycle.await_count == 3
