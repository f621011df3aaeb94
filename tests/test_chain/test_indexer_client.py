"""Tests for the indexer HTTP client — uses httpx mock transport."""

from __future__ import annotations

import json

import httpx
import pytest

from shielded_sync.chain.indexer import IndexerClient
from shielded_sync.config.settings import IndexerConfig
from shielded_sync.errors.chain_errors import IndexerError
from shielded_sync.errors.sync_errors import IndexResolutionError, ProtocolError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_BASE_URL = "https://indexer.test"


def _make_client(handler) -> IndexerClient:
    """Indexer client whose HTTP client uses a mock transport."""
    client = IndexerClient(IndexerConfig(url=_BASE_URL))
    client._client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url=_BASE_URL,
    )
    return client


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestIndexerClientLifecycle:
    async def test_not_connected_by_default(self) -> None:
        assert IndexerClient(IndexerConfig()).is_connected is False

    async def test_connect_and_close(self) -> None:
        client = IndexerClient(IndexerConfig())
        await client.connect()
        assert client.is_connected is True
        await client.close()
        assert client.is_connected is False

    async def test_close_idempotent(self) -> None:
        client = IndexerClient(IndexerConfig())
        await client.close()
        assert client.is_connected is False

    async def test_not_connected_raises(self) -> None:
        client = IndexerClient(IndexerConfig())
        with pytest.raises(IndexerError, match="not connected"):
            await client.fetch_range(0, 10)


# ---------------------------------------------------------------------------
# Range fetch
# ---------------------------------------------------------------------------


class TestFetchRange:
    async def test_query_parameters(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json={"encrypted_outputs": ["a"], "hasMore": True, "total": 5}
            )

        client = _make_client(handler)
        page = await client.fetch_range(100, 200)

        assert seen[0].url.path == "/utxos/range"
        assert seen[0].url.params["start"] == "100"
        assert seen[0].url.params["end"] == "200"
        assert page.ciphertexts == ["a"]
        assert page.has_more is True

    async def test_http_error(self) -> None:
        client = _make_client(lambda request: httpx.Response(503, text="overloaded"))
        with pytest.raises(IndexerError, match="503") as exc_info:
            await client.fetch_range(0, 10)
        assert exc_info.value.status_code == 503

    async def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _make_client(handler)
        with pytest.raises(IndexerError, match="connection refused"):
            await client.fetch_range(0, 10)

    async def test_invalid_json(self) -> None:
        client = _make_client(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(ProtocolError):
            await client.fetch_range(0, 10)

    async def test_unexpected_shape(self) -> None:
        client = _make_client(lambda request: httpx.Response(200, json={"nope": 1}))
        with pytest.raises(ProtocolError, match="unexpected"):
            await client.fetch_range(0, 10)


# ---------------------------------------------------------------------------
# Index resolution
# ---------------------------------------------------------------------------


class TestResolveIndices:
    async def test_posts_ciphertexts(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert request.url.path == "/utxos/indices"
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"indices": [7, 3]})

        client = _make_client(handler)
        assert await client.resolve_indices(["x", "y"]) == [7, 3]
        assert bodies == [{"encrypted_outputs": ["x", "y"]}]

    async def test_length_mismatch(self) -> None:
        client = _make_client(lambda request: httpx.Response(200, json={"indices": [1]}))
        with pytest.raises(IndexResolutionError) as exc_info:
            await client.resolve_indices(["x", "y"])
        assert exc_info.value.requested == 2
        assert exc_info.value.received == 1

    async def test_missing_indices(self) -> None:
        client = _make_client(lambda request: httpx.Response(200, json={"error": "nope"}))
        with pytest.raises(ProtocolError, match="no indices"):
            await client.resolve_indices(["x"])

    async def test_http_error(self) -> None:
        client = _make_client(lambda request: httpx.Response(500))
        with pytest.raises(IndexerError):
            await client.resolve_indices(["x"])
