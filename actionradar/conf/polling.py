from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

MINIMUM_POLL_INTERVAL_SECONDS = 30


class PollingSettings(BaseSettings):
    """Background polling and notification settings."""

    poll_interval_seconds: int = Field(
        default=300,
        description="Seconds between background poll cycles",
    )

    notifications_enabled: bool = Field(
        default=True,
        description="Emit alert events for newly conflicted or newly failed merge requests",
    )

    include_latest_commit_at_for_assigned: bool = Field(
        default=True,
        description="Fetch commits for assigned merge requests (needed to expire ignored alerts on new commits)",
    )

    @field_validator("poll_interval_seconds")
    @classmethod
    def validate_poll_interval(cls, v: int) -> int:
        """Keep the poll interval from hammering the GitLab API."""
        if v < MINIMUM_POLL_INTERVAL_SECONDS:
            raise ValueError(f"poll_interval_seconds must be at least {MINIMUM_POLL_INTERVAL_SECONDS}")
        return v
