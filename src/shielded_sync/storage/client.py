"""Storage client — one read path over a memory cache layered on a durable backend."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterable

    from shielded_sync.config.settings import StorageConfig

logger = logging.getLogger(__name__)

# Front cache capacity when layered over a durable backend
_FRONT_CACHE_SIZE = 1024


class StorageBackend(Protocol):
    """Protocol for durable key-value backends."""

    async def connect(self) -> None: ...
    async def close(self) -> None: ...
    async def get(self, key: str) -> str | None: ...
    async def set(self, key: str, value: str) -> None: ...
    async def remove(self, keys: list[str]) -> None: ...


class StorageClient:
    """Persistent key-value store used by the sync engine.

    Reads hit an in-process :class:`MemoryStore` first and fall through to
    the durable backend (SQL or Redis) on a miss. Writes and removals go to
    both layers, backend first, so the front cache never holds a value the
    backend rejected. With the ``memory`` engine the front cache *is* the
    store.

    Usage::

        storage = StorageClient(config.storage)
        await storage.connect()
        try:
            await storage.set("fetch_offset...", "100")
        finally:
            await storage.close()
    """

    def __init__(self, config: StorageConfig, *, backend: StorageBackend | None = None) -> None:
        """Initialize storage client with configuration.

        Args:
            config: Storage configuration with engine type and connection params.
            backend: Explicit durable backend, overriding ``config.engine``.
        """
        self._config = config
        self._explicit_backend = backend
        self._front: StorageBackend | None = None
        self._backend: StorageBackend | None = None
        self._connected = False

    async def connect(self) -> None:
        """Connect the front cache and the durable backend.

        Raises:
            ValueError: If the storage engine type is invalid.
        """
        from shielded_sync.storage.memory import MemoryStore

        if self._explicit_backend is not None:
            self._backend = self._explicit_backend
            self._front = MemoryStore(max_size=_FRONT_CACHE_SIZE)
        else:
            engine = self._config.engine.lower()
            if engine == "memory":
                self._front = MemoryStore()
                self._backend = None
            elif engine == "sql":
                from shielded_sync.storage.sql import SqlStore

                self._backend = SqlStore(self._config)
                self._front = MemoryStore(max_size=_FRONT_CACHE_SIZE)
            elif engine == "redis":
                from shielded_sync.storage.redis import RedisStore

                self._backend = RedisStore(self._config)
                self._front = MemoryStore(max_size=_FRONT_CACHE_SIZE)
            else:
                msg = f"Unsupported storage engine: {engine}"
                raise ValueError(msg)

        await self._front.connect()
        if self._backend is not None:
            await self._backend.connect()
        self._connected = True

    async def close(self) -> None:
        """Close both layers (idempotent)."""
        if self._backend is not None:
            await self._backend.close()
            self._backend = None
        if self._front is not None:
            await self._front.close()
            self._front = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        """Check if the storage is connected."""
        return self._connected and self._front is not None

    async def get(self, key: str) -> str | None:
        """Get a value, consulting the front cache before the backend.

        Raises:
            RuntimeError: If not connected.
        """
        front = self._ensure_connected()
        value = await front.get(key)
        if value is not None or self._backend is None:
            return value
        value = await self._backend.get(key)
        if value is not None:
            await front.set(key, value)
        return value

    async def set(self, key: str, value: str) -> None:
        """Store *value* under *key* in both layers.

        Raises:
            RuntimeError: If not connected.
        """
        front = self._ensure_connected()
        if self._backend is not None:
            await self._backend.set(key, value)
        await front.set(key, value)

    async def remove(self, keys: str | Iterable[str]) -> None:
        """Remove one key or a batch of keys. Missing keys are ignored.

        Raises:
            RuntimeError: If not connected.
        """
        front = self._ensure_connected()
        batch = [keys] if isinstance(keys, str) else list(keys)
        if not batch:
            return
        # Drop the cached copies first so a failed backend delete never
        # leaves the front cache serving a stale value.
        await front.remove(batch)
        if self._backend is not None:
            await self._backend.remove(batch)
        logger.debug("Removed %d storage keys", len(batch))

    def _ensure_connected(self) -> StorageBackend:
        """Return the front cache, raising if not connected."""
        if not self._connected or self._front is None:
            msg = "Storage not connected. Call connect() first."
            raise RuntimeError(msg)
        return self._front
