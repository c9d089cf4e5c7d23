from pydantic_settings import BaseSettings, SettingsConfigDict


class CacheSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Redis configuration (in-process memory cache when no host is set)
    cache_redis_host: str | None = None
    cache_redis_port: int = 6379

    # TTL (in seconds) for persisted alert snapshot and ignore state
    cache_state_ttl: int = 30 * 86400  # 30 days
