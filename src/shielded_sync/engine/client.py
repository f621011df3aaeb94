"""ShieldedWalletEngine — central client owning storage, remote clients and the sync engine."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from shielded_sync.engine.balance import Balance, get_balance
from shielded_sync.keys.kinds import DataKind

if TYPE_CHECKING:
    from collections.abc import Iterable

    from shielded_sync.chain.indexer import IndexerClient
    from shielded_sync.chain.rpc import LedgerRPCClient
    from shielded_sync.config.settings import AppConfig
    from shielded_sync.engine.migration import MigrationEngine
    from shielded_sync.engine.models import Note
    from shielded_sync.engine.protocols import EncryptionService, NoteHasher
    from shielded_sync.engine.sync import ProgressCallback, SyncEngine
    from shielded_sync.keys.directory import StorageKeyDirectory
    from shielded_sync.ledger.keys import WalletIdentity
    from shielded_sync.metrics.collector import SyncMetrics
    from shielded_sync.storage.client import StorageClient

logger = logging.getLogger(__name__)

# Error messages
_ERR_NOT_INITIALIZED = "Engine not initialized. Call initialize() first."


class ShieldedWalletEngine:
    """Public entry point for shielded-balance synchronization.

    Storage, indexer and RPC clients passed in are used as-is and must be
    connected by the caller; the ones the engine creates itself are
    connected by :meth:`initialize` and closed by :meth:`close`.

    Usage::

        engine = ShieldedWalletEngine(AppConfig(), encryption_service, hasher)
        await engine.initialize()
        try:
            balance = await engine.get_private_balance(wallet)
        finally:
            await engine.close()
    """

    def __init__(
        self,
        config: AppConfig,
        encryption_service: EncryptionService,
        hasher: NoteHasher,
        *,
        storage: StorageClient | None = None,
        indexer: IndexerClient | None = None,
        rpc: LedgerRPCClient | None = None,
        metrics: SyncMetrics | None = None,
    ) -> None:
        """Initialize the engine with configuration and collaborators.

        Args:
            config: Application configuration.
            encryption_service: Wallet-specific note decryption.
            hasher: Field-hash primitive passed through to decryption.
            storage: Pre-connected storage client (optional).
            indexer: Pre-connected indexer client (optional).
            rpc: Pre-connected ledger RPC client (optional).
            metrics: Metrics sink; created from ``config.metrics`` if omitted.
        """
        self._config = config
        self._encryption = encryption_service
        self._hasher = hasher
        self._initialized = False

        # Infrastructure components
        self._storage = storage
        self._indexer = indexer
        self._rpc = rpc
        self._metrics = metrics
        self._owned: list[StorageClient | IndexerClient | LedgerRPCClient] = []

        # Services
        self._keys: StorageKeyDirectory | None = None
        self._migration: MigrationEngine | None = None
        self._sync: SyncEngine | None = None

    async def initialize(self) -> None:
        """Connect infrastructure and wire the sync services.

        Raises:
            RuntimeError: If already initialized.
        """
        if self._initialized:
            msg = "Engine already initialized"
            raise RuntimeError(msg)

        # Import here to avoid circular deps
        from shielded_sync.chain.indexer import IndexerClient
        from shielded_sync.chain.rpc import LedgerRPCClient
        from shielded_sync.storage.client import StorageClient

        if self._storage is None:
            self._storage = StorageClient(self._config.storage)
            await self._storage.connect()
            self._owned.append(self._storage)
        if self._indexer is None:
            self._indexer = IndexerClient(self._config.indexer)
            await self._indexer.connect()
            self._owned.append(self._indexer)
        if self._rpc is None:
            self._rpc = LedgerRPCClient(self._config.ledger)
            await self._rpc.connect()
            self._owned.append(self._rpc)

        if self._metrics is None and self._config.metrics.enabled:
            from shielded_sync.metrics.collector import SyncMetrics

            self._metrics = SyncMetrics()

        from shielded_sync.engine.decryption import DecryptionPipeline
        from shielded_sync.engine.migration import MigrationEngine
        from shielded_sync.engine.retry import RetryPolicy
        from shielded_sync.engine.spent import SpentChecker
        from shielded_sync.engine.sync import SyncEngine
        from shielded_sync.keys.directory import StorageKeyDirectory
        from shielded_sync.ledger.keys import PublicKey

        program_id = self._config.ledger.program_id
        self._keys = StorageKeyDirectory(program_id)
        self._migration = MigrationEngine(self._storage, self._keys)
        self._sync = SyncEngine(
            self._config.indexer,
            storage=self._storage,
            keys=self._keys,
            indexer=self._indexer,
            encryption_service=self._encryption,
            migration=self._migration,
            pipeline=DecryptionPipeline(self._encryption, self._hasher, self._indexer),
            spent=SpentChecker(
                self._rpc,
                PublicKey.from_string(program_id),
                retry=RetryPolicy.from_config(self._config.retry),
                metrics=self._metrics,
            ),
            metrics=self._metrics,
        )

        self._initialized = True
        logger.info("Shielded wallet engine initialized (program %s)", program_id)

    async def close(self) -> None:
        """Close the components this engine created.

        Can be called multiple times (idempotent).
        """
        if not self._initialized:
            return

        self._sync = None
        self._migration = None
        self._keys = None

        for component in reversed(self._owned):
            await component.close()
        if self._storage in self._owned:
            self._storage = None
        if self._indexer in self._owned:
            self._indexer = None
        if self._rpc in self._owned:
            self._rpc = None
        self._owned.clear()

        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        """Check if the engine is initialized."""
        return self._initialized

    @property
    def config(self) -> AppConfig:
        """Get the application configuration."""
        return self._config

    @property
    def metrics(self) -> SyncMetrics | None:
        """Get the metrics sink, if metrics are enabled."""
        return self._metrics

    @property
    def storage(self) -> StorageClient:
        """Get the storage client.

        Raises:
            RuntimeError: If engine not initialized.
        """
        if self._storage is None or not self._initialized:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._storage

    @property
    def keys(self) -> StorageKeyDirectory:
        """Get the storage-key directory."""
        if self._keys is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._keys

    @property
    def sync_engine(self) -> SyncEngine:
        """Get the sync engine."""
        if self._sync is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._sync

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_unspent_notes(
        self,
        wallet: WalletIdentity,
        session_key: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> list[Note]:
        """Synchronize and return the wallet's unspent notes.

        See :meth:`SyncEngine.get_unspent_notes`. May block indefinitely
        while the ledger is unreachable under the default retry policy.
        """
        return await self.sync_engine.get_unspent_notes(wallet, session_key, on_progress)

    def get_balance(self, notes: Iterable[Note]) -> Balance:
        """Sum the amounts of *notes*."""
        return get_balance(notes)

    async def get_private_balance(
        self,
        wallet: WalletIdentity,
        session_key: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> Balance:
        """Synchronize the wallet and return its shielded balance."""
        notes = await self.get_unspent_notes(wallet, session_key, on_progress)
        return get_balance(notes)

    async def migrate_storage_keys(
        self,
        wallet: WalletIdentity,
        session_key: str | None = None,
    ) -> None:
        """Move the wallet's persisted data into its current storage keys.

        Raises:
            RuntimeError: If engine not initialized.
            EncryptionError: If *session_key* is malformed.
        """
        if self._migration is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        await self._migration.migrate(wallet, session_key)

    async def clear_cache(self, wallet: WalletIdentity, session_key: str | None = None) -> None:
        """Forget the wallet's sync progress so the next sync rescans the feed.

        Removes the fetch offset and ciphertext cache under the current and
        hashed keys, and every legacy-format key. Recent activity under the
        current keys is kept.

        Raises:
            RuntimeError: If engine not initialized.
            EncryptionError: If *session_key* is malformed.
        """
        keys = self.keys
        suffixes = {keys.current_suffix(wallet, session_key), keys.hashed_suffix(wallet)}
        targets = [
            kind.key(suffix)
            for suffix in sorted(suffixes)
            for kind in (DataKind.FETCH_OFFSET, DataKind.CIPHERTEXT_CACHE)
        ]
        legacy = keys.legacy_suffix(wallet)
        targets.extend(kind.key(legacy) for kind in DataKind)

        await self.storage.remove(targets)
        logger.info("Cleared sync cache for %s", wallet)
