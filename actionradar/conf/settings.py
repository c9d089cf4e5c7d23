from pydantic_settings import SettingsConfigDict

from .cache import CacheSettings
from .gitlab import GitLabSettings
from .polling import PollingSettings


class Settings(CacheSettings, GitLabSettings, PollingSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    project_name: str = "actionradar"
    debug: bool = False
