"""Ledger JSON-RPC client — account existence reads.

Async HTTP client for the ledger node's JSON-RPC API:
- getAccountInfo      — one account, ``null`` when it does not exist
- getMultipleAccounts — batched form, chunked to the node's per-request limit
"""

from __future__ import annotations

import itertools
from typing import TYPE_CHECKING, Any

import httpx

from shielded_sync.chain.models import AccountInfo
from shielded_sync.errors.chain_errors import LedgerRPCError
from shielded_sync.errors.sync_errors import ProtocolError

if TYPE_CHECKING:
    from shielded_sync.config.settings import LedgerConfig
    from shielded_sync.ledger.keys import PublicKey


class LedgerRPCClient:
    """Async JSON-RPC client for ledger account reads.

    Usage::

        rpc = LedgerRPCClient(config)
        await rpc.connect()
        try:
            accounts = await rpc.get_accounts([addr_a, addr_b])
        finally:
            await rpc.close()
    """

    def __init__(self, config: LedgerConfig) -> None:
        self._config = config
        self._client: httpx.AsyncClient | None = None
        self._request_ids = itertools.count(1)

    async def connect(self) -> None:  # noqa: ASYNC910
        """Create the underlying HTTP client."""
        self._client = httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
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

    async def get_account(self, address: PublicKey) -> AccountInfo | None:
        """Read one account; ``None`` if it does not exist.

        Raises:
            LedgerRPCError: On transport, HTTP or JSON-RPC errors.
        """
        result = await self._call("getAccountInfo", [str(address), self._read_options()])
        value = result.get("value") if isinstance(result, dict) else None
        return AccountInfo.from_rpc(value) if value is not None else None

    async def get_accounts(self, addresses: list[PublicKey]) -> list[AccountInfo | None]:
        """Read many accounts, preserving order; missing accounts are ``None``.

        Raises:
            LedgerRPCError: On transport, HTTP or JSON-RPC errors.
            ProtocolError: If the node returns the wrong number of entries.
        """
        limit = self._config.max_accounts_per_request
        accounts: list[AccountInfo | None] = []
        for start in range(0, len(addresses), limit):
            chunk = [str(a) for a in addresses[start : start + limit]]
            result = await self._call("getMultipleAccounts", [chunk, self._read_options()])
            values = result.get("value") if isinstance(result, dict) else None
            if not isinstance(values, list) or len(values) != len(chunk):
                msg = "getMultipleAccounts returned a malformed value list"
                raise ProtocolError(msg)
            accounts.extend(AccountInfo.from_rpc(v) if v is not None else None for v in values)
        return accounts

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read_options(self) -> dict[str, str]:
        return {"encoding": "base64", "commitment": str(self._config.commitment)}

    async def _call(self, method: str, params: list[Any]) -> Any:
        """Issue one JSON-RPC request and return its ``result``."""
        client = self._ensure_connected()
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": method,
            "params": params,
        }
        try:
            response = await client.post(self._config.rpc_url, json=payload)
        except httpx.HTTPError as exc:
            raise LedgerRPCError(f"{method} failed: {exc}") from exc

        if not response.is_success:
            msg = f"{method} failed ({response.status_code}): {response.text[:200]}"
            raise LedgerRPCError(msg)
        try:
            body = response.json()
        except ValueError as exc:
            msg = f"{method} returned invalid JSON"
            raise LedgerRPCError(msg) from exc

        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            raise LedgerRPCError(
                f"{method} error: {error.get('message', error)}",
                rpc_code=error.get("code"),
            )
        if error:
            raise LedgerRPCError(f"{method} error: {error}")
        return body.get("result") if isinstance(body, dict) else None

    def _ensure_connected(self) -> httpx.AsyncClient:
        if self._client is None:
            msg = "Ledger RPC client not connected. Call connect() first."
            raise LedgerRPCError(msg)
        return self._client
