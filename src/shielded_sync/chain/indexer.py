"""Indexer HTTP client — paginated ciphertext feed and index resolution.

Provides an async HTTP client for the ledger indexer API:
- GET  /utxos/range?start=&end= — One page of the encrypted-output feed
- POST /utxos/indices — Resolve ciphertexts to their ledger positions
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from shielded_sync.chain.models import IndexerPage
from shielded_sync.errors.chain_errors import IndexerError
from shielded_sync.errors.sync_errors import IndexResolutionError, ProtocolError

if TYPE_CHECKING:
    from shielded_sync.config.settings import IndexerConfig

logger = logging.getLogger(__name__)


class IndexerClient:
    """Async HTTP client for the ledger indexer.

    Usage::

        indexer = IndexerClient(config)
        await indexer.connect()
        try:
            page = await indexer.fetch_range(0, 20000)
        finally:
            await indexer.close()
    """

    def __init__(self, config: IndexerConfig) -> None:
        """Initialize the indexer client.

        Args:
            config: Indexer configuration (url, timeout, paging).
        """
        self._config = config
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:  # noqa: ASYNC910
        """Create the underlying HTTP client."""
        self._client = httpx.AsyncClient(
            base_url=self._config.url.rstrip("/"),
            headers={"Accept": "application/json"},
            timeout=self._config.timeout,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        """Check if the HTTP client is active."""
        return self._client is not None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch_range(self, start: int, end: int) -> IndexerPage:
        """Fetch feed items ``[start, end)``.

        Raises:
            IndexerError: On transport or HTTP errors.
            ProtocolError: If the payload has an unexpected shape.
        """
        client = self._ensure_connected()
        logger.debug("Fetching indexer range [%d, %d)", start, end)

        try:
            response = await client.get("/utxos/range", params={"start": start, "end": end})
        except httpx.HTTPError as exc:
            raise IndexerError(f"Indexer range fetch failed: {exc}") from exc

        page = IndexerPage.from_json(self._json_or_raise(response, "fetch_range"))
        logger.debug(
            "Indexer range [%d, %d) returned %d items (has_more=%s)",
            start,
            end,
            page.length,
            page.has_more,
        )
        return page

    async def resolve_indices(self, ciphertexts: list[str]) -> list[int]:
        """Resolve each ciphertext to its ledger position, in request order.

        Raises:
            IndexerError: On transport or HTTP errors.
            IndexResolutionError: If the response length differs from the request.
            ProtocolError: If the payload has no ``indices`` list.
        """
        client = self._ensure_connected()

        try:
            response = await client.post(
                "/utxos/indices",
                json={"encrypted_outputs": ciphertexts},
            )
        except httpx.HTTPError as exc:
            raise IndexerError(f"Indexer index resolution failed: {exc}") from exc

        data = self._json_or_raise(response, "resolve_indices")
        indices = data.get("indices") if isinstance(data, dict) else None
        if not isinstance(indices, list):
            msg = "Indexer index resolution returned no indices list"
            raise ProtocolError(msg)
        if len(indices) != len(ciphertexts):
            raise IndexResolutionError(len(ciphertexts), len(indices))
        return indices

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_connected(self) -> httpx.AsyncClient:
        """Return the HTTP client, raising if not connected."""
        if self._client is None:
            msg = "Indexer client not connected. Call connect() first."
            raise IndexerError(msg)
        return self._client

    def _json_or_raise(self, response: httpx.Response, operation: str) -> Any:
        """Decode a 2xx JSON body or raise the matching error."""
        if not response.is_success:
            message = f"Indexer {operation} failed ({response.status_code}): {response.text[:200]}"
            raise IndexerError(message, status_code=response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            msg = f"Indexer {operation} returned invalid JSON"
            raise ProtocolError(msg) from exc
