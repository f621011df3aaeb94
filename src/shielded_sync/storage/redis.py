"""Redis storage backend."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shielded_sync.config.settings import StorageConfig


class RedisStore:
    """Redis-based durable store using redis-py with hiredis parser."""

    def __init__(self, config: StorageConfig) -> None:
        """Initialize Redis store.

        Args:
            config: Storage configuration with Redis connection details.
        """
        self._config = config
        self._namespace = config.key_namespace
        self._redis = None

    async def connect(self) -> None:
        """Connect to Redis.

        Raises:
            ImportError: If redis package not installed.
            ConnectionError: If Redis connection fails.
        """
        try:
            from redis.asyncio import Redis
        except ImportError as e:
            msg = "redis package not installed. Install with: pip install redis[hiredis]"
            raise ImportError(msg) from e

        self._redis = Redis.from_url(
            self._config.url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=self._config.max_connections,
        )

        try:
            await self._redis.ping()
        except Exception as e:
            msg = f"Failed to connect to Redis at {self._config.url}"
            raise ConnectionError(msg) from e

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def get(self, key: str) -> str | None:
        assert self._redis is not None
        return await self._redis.get(self._namespace + key)

    async def set(self, key: str, value: str) -> None:
        assert self._redis is not None
        await self._redis.set(self._namespace + key, value)

    async def remove(self, keys: list[str]) -> None:
        """Delete a batch of keys in one round trip."""
        assert self._redis is not None
        if keys:
            await self._redis.delete(*(self._namespace + key for key in keys))
