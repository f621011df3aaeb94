"""SQL storage backend on top of the async datastore."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import delete, select

from shielded_sync.datastore.client import Datastore
from shielded_sync.datastore.models import StorageEntry

if TYPE_CHECKING:
    from shielded_sync.config.settings import StorageConfig


class SqlStore:
    """Durable key-value store backed by the ``storage_entries`` table."""

    def __init__(self, config: StorageConfig, *, datastore: Datastore | None = None) -> None:
        self._namespace = config.key_namespace
        self._datastore = datastore or Datastore(config)

    async def connect(self) -> None:
        if not self._datastore.is_open:
            await self._datastore.open()

    async def close(self) -> None:
        await self._datastore.close()

    async def get(self, key: str) -> str | None:
        async with self._datastore.session() as session:
            result = await session.execute(
                select(StorageEntry.value).where(StorageEntry.key == self._namespace + key)
            )
            return result.scalar_one_or_none()

    async def set(self, key: str, value: str) -> None:
        """Insert or overwrite *key*."""
        async with self._datastore.session() as session:
            await session.merge(StorageEntry(key=self._namespace + key, value=value))
            await session.commit()

    async def remove(self, keys: list[str]) -> None:
        """Delete a batch of keys in one statement."""
        if not keys:
            return
        async with self._datastore.session() as session:
            await session.execute(
                delete(StorageEntry).where(
                    StorageEntry.key.in_([self._namespace + key for key in keys])
                )
            )
            await session.commit()
