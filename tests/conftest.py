"""Shared test fixtures for the shielded-sync test suite."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import httpx
import pytest

from shielded_sync.chain.indexer import IndexerClient
from shielded_sync.chain.rpc import LedgerRPCClient
from shielded_sync.engine.models import Note
from shielded_sync.ledger.keys import PublicKey

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from shielded_sync.storage.client import StorageClient

PROGRAM_ID = "9fhQBbumKEFuXtMBDw8AaQyAjCorLGJQiS3skWZdQyQD"

# base64 of 32 zero-free bytes, a valid AES-256 session key
SESSION_KEY = "AQIDBAUGBwgJCgsMDQ4PEBESExQVFhcYGRobHB0eHyA="
OTHER_SESSION_KEY = "ICEiIyQlJicoKSorLC0uLzAxMjM0NTY3ODk6Ozw9Pj8="


def make_ciphertext(amount: int, nullifier: int, index: int | None = None) -> str:
    """Ciphertext that :class:`FakeEncryptionService` decrypts to a note."""
    return f"note:{amount}:{nullifier}:{'' if index is None else index}"


class FakeHasher:
    """Stand-in for the field-hash primitive."""


class FakeEncryptionService:
    """Decrypts ``note:<amount>:<nullifier>:<index>`` strings; anything else fails."""

    def __init__(self) -> None:
        self.key_derivations = 0
        self.attempts: list[str] = []

    def derive_note_key(self) -> bytes:
        self.key_derivations += 1
        return b"\x01" * 32

    def decrypt(self, ciphertext: str, hasher: FakeHasher) -> Note:
        self.attempts.append(ciphertext)
        prefix, amount, nullifier, index = ciphertext.split(":")
        if prefix != "note":
            msg = "not addressed to this wallet"
            raise ValueError(msg)
        return Note(
            amount=int(amount),
            nullifier=int(nullifier),
            index=int(index) if index else None,
        )


@pytest.fixture
def wallet() -> PublicKey:
    """A deterministic wallet identity."""
    return PublicKey(bytes(range(1, 33)))


@pytest.fixture
def other_wallet() -> PublicKey:
    return PublicKey(bytes(range(33, 65)))


@pytest.fixture
def encryption_service() -> FakeEncryptionService:
    return FakeEncryptionService()


@pytest.fixture
def hasher() -> FakeHasher:
    return FakeHasher()


@pytest.fixture
def app_config():
    """Provide a test AppConfig with in-memory storage and no pacing."""
    from shielded_sync.config.settings import (
        AppConfig,
        IndexerConfig,
        RetryConfig,
        StorageConfig,
        StorageEngine,
    )

    return AppConfig(
        indexer=IndexerConfig(url="https://indexer.test", page_size=100, page_delay=0.0),
        storage=StorageConfig(engine=StorageEngine.MEMORY),
        retry=RetryConfig(max_attempts=3, delay=0.0),
    )


@pytest.fixture
async def storage(app_config) -> AsyncIterator[StorageClient]:
    """A connected in-memory storage client."""
    from shielded_sync.storage.client import StorageClient

    client = StorageClient(app_config.storage)
    await client.connect()
    yield client
    await client.close()


@pytest.fixture
def key_directory():
    from shielded_sync.keys.directory import StorageKeyDirectory

    return StorageKeyDirectory(PROGRAM_ID)


@pytest.fixture
def session_key() -> str:
    return SESSION_KEY


@pytest.fixture
def other_session_key() -> str:
    return OTHER_SESSION_KEY


@pytest.fixture
def ciphertext():
    """Factory for ciphertexts the fake encryption service accepts."""
    return make_ciphertext


# ---------------------------------------------------------------------------
# Remote service doubles (httpx mock transports)
# ---------------------------------------------------------------------------

_ACCOUNT = {"lamports": 890880, "owner": PROGRAM_ID, "data": ["", "base64"]}


class FakeFeed:
    """Indexer double serving a linear ciphertext feed.

    Positions in ``feed`` are the ledger indices returned by index resolution.
    """

    def __init__(self, feed: list[str] | None = None) -> None:
        self.feed = list(feed or [])
        self.ranges: list[tuple[int, int]] = []
        self.resolutions: list[list[str]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/utxos/range":
            start = int(request.url.params["start"])
            end = int(request.url.params["end"])
            self.ranges.append((start, end))
            return httpx.Response(
                200,
                json={
                    "encrypted_outputs": self.feed[start:end],
                    "hasMore": end < len(self.feed),
                    "total": len(self.feed),
                },
            )
        requested = json.loads(request.content)["encrypted_outputs"]
        self.resolutions.append(requested)
        return httpx.Response(200, json={"indices": [self.feed.index(c) for c in requested]})

    def client(self, config=None) -> IndexerClient:
        from shielded_sync.config.settings import IndexerConfig

        indexer = IndexerClient(config or IndexerConfig(url="https://indexer.test"))
        indexer._client = httpx.AsyncClient(
            transport=httpx.MockTransport(self.handler),
            base_url="https://indexer.test",
        )
        return indexer


class FakeLedger:
    """JSON-RPC node double holding a set of existing account addresses."""

    def __init__(self, existing: set[str] | None = None, *, failures: int = 0) -> None:
        self.existing = set(existing or ())
        self.failures = failures
        self.methods: list[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.methods.append(body["method"])
        if self.failures:
            self.failures -= 1
            return httpx.Response(503, text="unavailable")
        if body["method"] == "getMultipleAccounts":
            value = [_ACCOUNT if a in self.existing else None for a in body["params"][0]]
        else:
            value = _ACCOUNT if body["params"][0] in self.existing else None
        return httpx.Response(
            200, json={"jsonrpc": "2.0", "id": body["id"], "result": {"value": value}}
        )

    def spend(self, nullifier: int, slot: int = 0) -> None:
        """Create the marker account of *nullifier* in the given slot."""
        from shielded_sync.ledger.address import nullifier_marker_addresses

        program = PublicKey.from_string(PROGRAM_ID)
        self.existing.add(str(nullifier_marker_addresses(nullifier, program)[slot]))

    def client(self) -> LedgerRPCClient:
        from shielded_sync.config.settings import LedgerConfig

        rpc = LedgerRPCClient(LedgerConfig(rpc_url="https://rpc.test"))
        rpc._client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return rpc


@pytest.fixture
def feed() -> FakeFeed:
    return FakeFeed()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()
