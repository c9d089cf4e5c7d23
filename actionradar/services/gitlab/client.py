"""Async GitLab API client using httpx."""

from logging import getLogger
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import SecretStr, TypeAdapter

from .models import (
    GitLabUser,
    MergeRequest,
    MergeRequestApprovals,
    MergeRequestCommit,
    MergeRequestDetails,
    MergeRequestNote,
)

logger = getLogger(__name__)

LIST_PAGE_SIZE = 100

_merge_request_list = TypeAdapter(list[MergeRequest])
_note_list = TypeAdapter(list[MergeRequestNote])
_commit_list = TypeAdapter(list[MergeRequestCommit])


class RemoteApiError(Exception):
    """Raised when GitLab answers with a non-2xx status."""

    def __init__(self, status_code: int, status_text: str) -> None:
        self.status_code = status_code
        self.status_text = status_text
        super().__init__(f"GitLab API error: {status_code} {status_text}")


class GitLabAPIClient:
    """Async GitLab API client for making API requests.

    Each public method issues exactly one request; there is no retry. Callers
    decide whether a failure is fatal.
    """

    def __init__(self, token: SecretStr, base_url: str = "https://gitlab.com", timeout: float = 30.0) -> None:
        """Initialize GitLab API client.

        Args:
            token: GitLab Personal Access Token
            base_url: Base URL of the GitLab instance (default: https://gitlab.com)
            timeout: Request timeout in seconds
        """
        self.token = token.get_secret_value()
        self.base_url = base_url.rstrip("/")
        self.api_url = f"{self.base_url}/api/v4"
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "GitLabAPIClient":
        """Enter async context manager."""
        self._client = httpx.AsyncClient(
            headers={
                "PRIVATE-TOKEN": self.token,
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(self.timeout, connect=10.0),
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, path: str, params: dict[str, str | int] | None = None) -> Any:
        """GET ``path`` under the API root and return the decoded JSON body.

        Raises:
            RemoteApiError: If GitLab answers with a non-2xx status or a body that is not JSON
            httpx.HTTPError: If the request could not be completed
        """
        if not self._client:
            raise RuntimeError("Client not initialized - use async with context manager")

        url = f"{self.api_url}{path}"
        response = await self._client.request("GET", url, params=params)
        if not response.is_success:
            logger.debug(f"GET {url} failed with {response.status_code}")
            raise RemoteApiError(response.status_code, response.reason_phrase)

        try:
            return response.json()
        except ValueError as e:
            # SSO and proxy pages answer 200 with HTML
            logger.debug(f"GET {url} returned a non-JSON body: {e}")
            raise RemoteApiError(response.status_code, "Invalid JSON response") from e

    @staticmethod
    def _merge_request_path(project_id: int, iid: int) -> str:
        return f"/projects/{quote(str(project_id), safe='')}/merge_requests/{quote(str(iid), safe='')}"

    async def get_current_user(self) -> GitLabUser:
        """Get the authenticated user's identity.

        Raises:
            RemoteApiError: If the request fails
        """
        return GitLabUser.model_validate(await self._request("/user"))

    async def list_merge_requests(
        self,
        assignee_id: int | None = None,
        reviewer_id: int | None = None,
    ) -> list[MergeRequest]:
        """List open merge requests across all projects scoped to an assignee or reviewer.

        Args:
            assignee_id: Only merge requests assigned to this user
            reviewer_id: Only merge requests where this user is a reviewer

        Returns:
            First page (up to 100) of matching merge requests
        """
        params: dict[str, str | int] = {"scope": "all", "state": "opened"}
        if assignee_id is not None:
            params["assignee_id"] = assignee_id
        if reviewer_id is not None:
            params["reviewer_id"] = reviewer_id
        params["per_page"] = LIST_PAGE_SIZE

        return _merge_request_list.validate_python(await self._request("/merge_requests", params=params))

    async def get_merge_request_approvals(self, project_id: int, iid: int) -> MergeRequestApprovals:
        path = f"{self._merge_request_path(project_id, iid)}/approvals"
        return MergeRequestApprovals.model_validate(await self._request(path))

    async def get_merge_request_details(self, project_id: int, iid: int) -> MergeRequestDetails:
        return MergeRequestDetails.model_validate(await self._request(self._merge_request_path(project_id, iid)))

    async def get_merge_request_notes(self, project_id: int, iid: int) -> list[MergeRequestNote]:
        """Get discussion notes, newest first."""
        path = f"{self._merge_request_path(project_id, iid)}/notes"
        params: dict[str, str | int] = {"per_page": LIST_PAGE_SIZE, "order_by": "created_at", "sort": "desc"}
        return _note_list.validate_python(await self._request(path, params=params))

    async def get_merge_request_commits(self, project_id: int, iid: int) -> list[MergeRequestCommit]:
        path = f"{self._merge_request_path(project_id, iid)}/commits"
        return _commit_list.validate_python(await self._request(path, params={"per_page": LIST_PAGE_SIZE}))
