"""Local HTTP bridge between the desktop shell and the radar.

The shell's webview renders the lists and tray from these JSON endpoints while
the lifespan task keeps polling GitLab in the background.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from logging import getLogger
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request, status
from pydantic import BaseModel

from actionradar.services.cache import configure_caches
from actionradar.services.formatter import get_project_label
from actionradar.services.gitlab.auth import GitLabClient
from actionradar.services.gitlab.models import EntityKey, MergeRequestHealth
from actionradar.services.ignored_alerts import ActiveIgnoredSignals
from actionradar.services.notifications import build_tray_indicator
from actionradar.services.poller import RadarPoller
from actionradar.settings import settings

logger = getLogger(__name__)


async def poll_forever(poller: RadarPoller, interval: int) -> None:
    """Run background cycles on a fixed interval until cancelled."""
    while True:
        try:
            await poller.run_cycle()
        except Exception as e:
            logger.exception(f"Background poll cycle failed: {e}")
        await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Configure caches and start background polling when a token is configured."""
    configure_caches()
    app.state.poller = None

    try:
        client = GitLabClient().get_authenticated_client()
    except ValueError as e:
        logger.warning(f"Background polling disabled: {e}")
        yield
        return

    async with client:
        app.state.poller = RadarPoller(
            client,
            notifications_enabled=settings.notifications_enabled,
            include_latest_commit_at=settings.include_latest_commit_at_for_assigned,
        )
        task = asyncio.create_task(poll_forever(app.state.poller, settings.poll_interval_seconds))
        try:
            yield
        finally:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                logger.debug("Background polling stopped")


app = FastAPI(lifespan=lifespan)


def get_poller(request: Request) -> RadarPoller:
    poller: RadarPoller | None = getattr(request.app.state, "poller", None)
    if poller is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="GitLab token not configured",
        )
    return poller


class IgnoreRequest(BaseModel):
    ignore_conflicts: bool = False
    ignore_failed_ci: bool = False


def serialize_health(item: MergeRequestHealth) -> dict[str, Any]:
    merge_request = item.merge_request
    data: dict[str, Any] = {
        "key": str(item.key),
        "id": merge_request.id,
        "iid": merge_request.iid,
        "project_id": merge_request.project_id,
        "project": get_project_label(merge_request),
        "title": merge_request.title,
        "web_url": merge_request.web_url,
        "updated_at": merge_request.updated_at,
        "ci_status": item.ci_status.value,
        "has_failed_ci": item.has_failed_ci,
        "has_conflicts": item.has_conflicts,
        "has_pending_approvals": item.has_pending_approvals,
        "is_created_by_me": item.is_created_by_me,
        "latest_commit_at": item.latest_commit_at,
        "own_checks": None,
        "reviewer_checks": None,
    }
    if item.own_checks is not None:
        data["own_checks"] = {
            "is_approved": item.own_checks.is_approved,
            "has_unresolved_comments": item.own_checks.has_unresolved_comments,
            "ci_status": item.own_checks.ci_status.value,
        }
    if item.reviewer_checks is not None:
        data["reviewer_checks"] = {
            "review_status": item.reviewer_checks.review_status.value,
            "reviewer_last_commented_at": item.reviewer_checks.reviewer_last_commented_at,
            "latest_commit_at": item.reviewer_checks.latest_commit_at,
            "author_last_commented_at": item.reviewer_checks.author_last_commented_at,
        }
    return data


def serialize_ignored(signals: dict[EntityKey, ActiveIgnoredSignals]) -> dict[str, dict[str, bool]]:
    return {
        str(key): {"ignore_conflicts": value.ignore_conflicts, "ignore_failed_ci": value.ignore_failed_ci}
        for key, value in signals.items()
    }


def serialize_state(poller: RadarPoller) -> dict[str, Any]:
    result = poller.last_result
    return {
        "loading": poller.is_loading,
        "error": poller.last_error,
        "current_user_id": result.current_user_id if result else None,
        "completed_at": result.completed_at.isoformat() if result else None,
        "assigned": [serialize_health(item) for item in result.assigned] if result else [],
        "review_requested": [serialize_health(item) for item in result.review_requested] if result else [],
        "ignored": serialize_ignored(result.active_ignored_signals) if result else {},
    }


@app.get("/api/merge-requests")
async def merge_requests(poller: RadarPoller = Depends(get_poller)) -> dict[str, Any]:
    """Last successfully computed lists plus the current error and loading state."""
    return serialize_state(poller)


@app.post("/api/refresh")
async def refresh(poller: RadarPoller = Depends(get_poller)) -> dict[str, Any]:
    """Run a foreground cycle; 409 when one is already running."""
    if poller.is_running:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A poll cycle is already running")
    await poller.run_cycle(interactive=True)
    return serialize_state(poller)


@app.get("/api/tray")
async def tray(poller: RadarPoller = Depends(get_poller)) -> dict[str, Any]:
    result = poller.last_result
    indicator = result.tray_indicator if result is not None else build_tray_indicator([], [])
    return {
        "conflict_count": indicator.conflict_count,
        "failed_ci_count": indicator.failed_ci_count,
        "review_pending_count": indicator.review_pending_count,
        "actionable_total_count": indicator.actionable_total_count,
        "title": indicator.title,
        "tooltip": indicator.tooltip,
    }


@app.post("/api/merge-requests/{project_id}/{iid}/ignore")
async def ignore_merge_request(
    project_id: int,
    iid: int,
    body: IgnoreRequest,
    poller: RadarPoller = Depends(get_poller),
) -> dict[str, Any]:
    """Ignore the selected signals on an assigned merge request until its next commit."""
    key = EntityKey(project_id=project_id, iid=iid)
    try:
        await poller.ignore_alert(key, ignore_conflicts=body.ignore_conflicts, ignore_failed_ci=body.ignore_failed_ci)
    except KeyError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e.args[0]) if e.args else str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return serialize_state(poller)


@app.delete("/api/merge-requests/{project_id}/{iid}/ignore")
async def unignore_merge_request(
    project_id: int,
    iid: int,
    poller: RadarPoller = Depends(get_poller),
) -> dict[str, Any]:
    key = EntityKey(project_id=project_id, iid=iid)
    try:
        await poller.clear_ignored_alert(key)
    except KeyError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e.args[0]) if e.args else str(e))
    return serialize_state(poller)
