"""Cache configuration for persisted radar state.

The ``persistent`` cache backs the alert snapshot and ignore state so they
survive across poll cycles (and, with Redis, across restarts).
"""

from logging import getLogger
from typing import Any

from aiocache import caches
from aiocache.base import BaseCache

from actionradar.settings import settings

logger = getLogger(__name__)


def configure_caches() -> None:
    """Register the cache aliases used by the application."""
    memory_cache: dict[str, Any] = {
        "cache": "aiocache.SimpleMemoryCache",
        "serializer": {"class": "aiocache.serializers.PickleSerializer"},
    }

    if settings.cache_redis_host:
        logger.info(f"Using Redis cache at {settings.cache_redis_host}:{settings.cache_redis_port}")
        persistent_cache: dict[str, Any] = {
            "cache": "aiocache.RedisCache",
            "endpoint": settings.cache_redis_host,
            "port": settings.cache_redis_port,
            "serializer": {"class": "aiocache.serializers.PickleSerializer"},
        }
    else:
        logger.debug("No Redis host configured, persisted state will live in memory")
        persistent_cache = memory_cache

    caches.set_config(
        {
            "default": memory_cache,
            "persistent": persistent_cache,
        }
    )


def get_cache(alias: str = "default") -> BaseCache:
    """Return the cache registered under ``alias``."""
    cache: BaseCache = caches.get(alias)
    return cache
