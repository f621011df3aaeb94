"""Remote chain access — ledger indexer and RPC node clients."""

from shielded_sync.chain.indexer import IndexerClient
from shielded_sync.chain.rpc import LedgerRPCClient

__all__ = ["IndexerClient", "LedgerRPCClient"]
