import os

# Keep test runs independent of a developer's local GitLab/Redis configuration
os.environ.pop("GITLAB_TOKEN", None)
os.environ.pop("CACHE_REDIS_HOST", None)

from typing import Any, Callable

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from pydantic import SecretStr

from actionradar.services.cache import configure_caches, get_cache
from actionradar.services.gitlab.client import GitLabAPIClient
from actionradar.services.gitlab.models import CiStatus, MergeRequest, MergeRequestHealth
from actionradar.www import app


@pytest.fixture
def fastapi_client():
    """Fixture to create a FastAPI test client."""
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def mock_client() -> GitLabAPIClient:
    """Create a test GitLab API client for mocking."""
    return GitLabAPIClient(token=SecretStr("test_token"))


@pytest_asyncio.fixture
async def persistent_cache():
    """Configure caches and start each test with an empty persistent cache."""
    configure_caches()
    cache = get_cache("persistent")
    await cache.clear()
    yield cache
    await cache.clear()


@pytest.fixture
def make_merge_request() -> Callable[..., MergeRequest]:
    """Factory for list-endpoint merge request records."""

    def factory(iid: int = 1, project_id: int = 10, **overrides: Any) -> MergeRequest:
        data: dict[str, Any] = {
            "id": project_id * 1000 + iid,
            "iid": iid,
            "project_id": project_id,
            "title": f"Merge request {iid}",
            "web_url": f"https://gitlab.example.com/group/project/-/merge_requests/{iid}",
            "state": "opened",
            "author": {"id": 7, "username": "someone"},
        }
        data.update(overrides)
        return MergeRequest.model_validate(data)

    return factory


@pytest.fixture
def make_health(make_merge_request: Callable[..., MergeRequest]) -> Callable[..., MergeRequestHealth]:
    """Factory for health records with explicit risk flags."""

    def factory(
        iid: int = 1,
        project_id: int = 10,
        has_conflicts: bool = False,
        has_failed_ci: bool = False,
        latest_commit_at: str | None = "2024-05-01T10:00:00Z",
        **overrides: Any,
    ) -> MergeRequestHealth:
        return MergeRequestHealth(
            merge_request=make_merge_request(iid=iid, project_id=project_id),
            ci_status=CiStatus.FAILED if has_failed_ci else CiStatus.SUCCESS,
            has_conflicts=has_conflicts,
            has_pending_approvals=overrides.pop("has_pending_approvals", False),
            is_created_by_me=overrides.pop("is_created_by_me", False),
            latest_commit_at=latest_commit_at,
            **overrides,
        )

    return factory
