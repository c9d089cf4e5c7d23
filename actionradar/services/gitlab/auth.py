"""GitLab authentication and client factory."""

from logging import getLogger

from pydantic import SecretStr

from actionradar.conf.gitlab import GitLabSettings

from .client import GitLabAPIClient

logger = getLogger(__name__)


class GitLabClient:
    """Factory for creating authenticated GitLab API clients."""

    def __init__(self, settings: GitLabSettings | None = None, token_override: str | None = None) -> None:
        """Initialize with settings.

        Args:
            settings: GitLab settings (defaults to global settings)
            token_override: Optional PAT to override settings
        """
        if settings is None:
            from actionradar.settings import settings as global_settings

            settings = global_settings

        self.settings = settings
        self.token_override = token_override

    def get_authenticated_client(self) -> GitLabAPIClient:
        """Return an authenticated GitLab API client.

        Raises:
            ValueError: If no token is configured
        """
        if self.token_override and self.token_override.strip():
            logger.info("Using token override for authentication")
            token = SecretStr(self.token_override.strip())
        elif self.settings.gitlab_token and self.settings.gitlab_token.get_secret_value().strip():
            logger.info("Using configured PAT for authentication")
            token = self.settings.gitlab_token
        else:
            raise ValueError("GitLab token not configured. Set GITLAB_TOKEN or pass --token.")

        return GitLabAPIClient(
            token,
            base_url=self.settings.gitlab_base_url,
            timeout=self.settings.gitlab_request_timeout,
        )
