from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings


class GitLabSettings(BaseSettings):
    """GitLab API configuration and authentication settings."""

    gitlab_base_url: str = Field(
        default="https://gitlab.com",
        description="Base URL of the GitLab instance (without /api/v4)",
    )

    # Personal Access Token authentication
    gitlab_token: SecretStr | None = Field(
        default=None,
        description="GitLab Personal Access Token for API authentication",
    )

    gitlab_request_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for a single GitLab API request",
    )

    # Disable validation by default - only validate when actually talking to GitLab
    gitlab_validate_on_init: bool = Field(
        default=False,
        description="Whether to require a token on initialization",
    )

    @field_validator("gitlab_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL so paths can be appended directly."""
        return v.rstrip("/")

    @field_validator("gitlab_request_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("gitlab_request_timeout must be positive")
        return v

    @model_validator(mode="after")
    def validate_auth_config(self) -> "GitLabSettings":
        """Validate that a token is present when validation is requested."""
        if self.gitlab_validate_on_init and self.gitlab_token is None:
            raise ValueError("gitlab_token is required when gitlab_validate_on_init is enabled")
        return self
