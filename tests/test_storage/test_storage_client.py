"""Tests for the layered storage client (memory front cache over a durable backend)."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from shielded_sync.config.settings import StorageConfig, StorageEngine
from shielded_sync.storage.client import StorageClient
from shielded_sync.storage.memory import MemoryStore
from shielded_sync.storage.sql import SqlStore

if TYPE_CHECKING:
    from pathlib import Path


class RecordingBackend(MemoryStore):
    """Durable backend double that counts reads and can fail deletes."""

    def __init__(self) -> None:
        super().__init__()
        self.reads = 0
        self.fail_remove = False

    async def get(self, key: str) -> str | None:
        self.reads += 1
        return await super().get(key)

    async def remove(self, keys: list[str]) -> None:
        if self.fail_remove:
            msg = "backend unavailable"
            raise ConnectionError(msg)
        await super().remove(keys)


def _sqlite_config(tmp_path: Path) -> StorageConfig:
    return StorageConfig(engine=StorageEngine.SQL, dsn=f"sqlite+aiosqlite:///{tmp_path}/store.db")


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestStorageClientLifecycle:
    async def test_not_connected_by_default(self) -> None:
        client = StorageClient(StorageConfig(engine=StorageEngine.MEMORY))
        assert client.is_connected is False

    async def test_not_connected_raises(self) -> None:
        client = StorageClient(StorageConfig(engine=StorageEngine.MEMORY))
        with pytest.raises(RuntimeError, match="not connected"):
            await client.get("k")

    async def test_connect_and_close(self) -> None:
        client = StorageClient(StorageConfig(engine=StorageEngine.MEMORY))
        await client.connect()
        assert client.is_connected is True
        await client.close()
        assert client.is_connected is False

    async def test_close_idempotent(self) -> None:
        client = StorageClient(StorageConfig(engine=StorageEngine.MEMORY))
        await client.close()
        await client.close()
        assert client.is_connected is False


# ---------------------------------------------------------------------------
# Memory engine
# ---------------------------------------------------------------------------


class TestMemoryEngine:
    async def test_set_get_remove(self, storage) -> None:
        await storage.set("fetch_offsetabc", "100")
        assert await storage.get("fetch_offsetabc") == "100"
        await storage.remove("fetch_offsetabc")
        assert await storage.get("fetch_offsetabc") is None

    async def test_remove_batch(self, storage) -> None:
        await storage.set("a", "1")
        await storage.set("b", "2")
        await storage.remove(["a", "b", "c"])
        assert await storage.get("a") is None
        assert await storage.get("b") is None

    async def test_remove_empty_batch(self, storage) -> None:
        await storage.remove([])


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


class TestLayering:
    async def test_read_through_populates_front(self) -> None:
        backend = RecordingBackend()
        await backend.set("k", "v")
        client = StorageClient(StorageConfig(), backend=backend)
        await client.connect()

        assert await client.get("k") == "v"
        assert await client.get("k") == "v"
        assert backend.reads == 1

    async def test_write_reaches_backend(self) -> None:
        backend = RecordingBackend()
        client = StorageClient(StorageConfig(), backend=backend)
        await client.connect()

        await client.set("k", "v")
        assert backend.snapshot() == {"k": "v"}

    async def test_miss_consults_backend_each_time(self) -> None:
        backend = RecordingBackend()
        client = StorageClient(StorageConfig(), backend=backend)
        await client.connect()

        assert await client.get("k") is None
        assert await client.get("k") is None
        assert backend.reads == 2

    async def test_failed_backend_remove_drops_front_copy(self) -> None:
        backend = RecordingBackend()
        client = StorageClient(StorageConfig(), backend=backend)
        await client.connect()
        await client.set("k", "v")
        backend.fail_remove = True

        with pytest.raises(ConnectionError):
            await client.remove("k")
        # The durable copy survives and is served again on the next read.
        assert await client.get("k") == "v"
        assert backend.reads == 1

    async def test_unsupported_engine(self) -> None:
        config = StorageConfig.model_construct(engine="mongo")
        client = StorageClient(config)
        with pytest.raises(ValueError, match="Unsupported storage engine"):
            await client.connect()


# ---------------------------------------------------------------------------
# SQL engine
# ---------------------------------------------------------------------------


class TestSqlEngine:
    async def test_persists_across_clients(self, tmp_path) -> None:
        config = _sqlite_config(tmp_path)

        first = StorageClient(config)
        await first.connect()
        await first.set("fetch_offsetabc", "250")
        await first.close()

        second = StorageClient(config)
        await second.connect()
        try:
            assert await second.get("fetch_offsetabc") == "250"
        finally:
            await second.close()

    async def test_overwrite_and_remove(self, tmp_path) -> None:
        client = StorageClient(_sqlite_config(tmp_path))
        await client.connect()
        try:
            await client.set("k", "1")
            await client.set("k", "2")
            assert await client.get("k") == "2"
            await client.remove(["k", "missing"])
            assert await client.get("k") is None
        finally:
            await client.close()

    async def test_namespace(self, tmp_path) -> None:
        config = _sqlite_config(tmp_path)
        config.key_namespace = "wallet-a:"
        store = SqlStore(config)
        await store.connect()
        try:
            await store.set("k", "v")
            other = SqlStore(_sqlite_config(tmp_path))
            await other.connect()
            try:
                assert await other.get("k") is None
                assert await other.get("wallet-a:k") == "v"
            finally:
                await other.close()
        finally:
            await store.close()
