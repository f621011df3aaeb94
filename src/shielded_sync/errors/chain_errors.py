"""Indexer & ledger RPC errors."""

from __future__ import annotations

from shielded_sync.errors.sync_errors import SyncError


class IndexerError(SyncError):
    """Transport or HTTP failure talking to the ledger indexer."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message, code="indexer-error")
        self.status_code = status_code


class LedgerRPCError(SyncError):
    """Failure reading accounts from the ledger RPC node."""

    def __init__(self, message: str, *, rpc_code: int | None = None) -> None:
        super().__init__(message, code="ledger-rpc-error")
        self.rpc_code = rpc_code
