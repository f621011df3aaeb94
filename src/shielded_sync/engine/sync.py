"""Sync engine — incremental, single-flight note synchronization.

One synchronization per wallet runs at a time. Callers arriving while a sync
is in flight attach to it and observe the same result or the same error.

Per sync:

1. migrate the wallet's storage keys (once);
2. page through the indexer feed from the persisted offset, decrypting each
   page and spent-checking the notes found;
3. persist the new offset after every page, before deciding whether to
   continue;
4. on success, persist the recent-activity index set and the cache of
   unspent ciphertexts.

The final page also re-decrypts the cached ciphertexts from earlier syncs,
so notes discovered long ago are still reported.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from shielded_sync.engine.models import SyncProgress
from shielded_sync.keys.kinds import (
    DataKind,
    dump_ciphertexts,
    dump_index_set,
    parse_ciphertexts,
    parse_index_set,
    parse_offset,
    top_indices,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterator

    from shielded_sync.chain.indexer import IndexerClient
    from shielded_sync.config.settings import IndexerConfig
    from shielded_sync.engine.decryption import DecryptionPipeline
    from shielded_sync.engine.migration import MigrationEngine
    from shielded_sync.engine.models import Note
    from shielded_sync.engine.protocols import EncryptionService
    from shielded_sync.engine.spent import SpentChecker
    from shielded_sync.keys.directory import StorageKeyDirectory
    from shielded_sync.ledger.keys import WalletIdentity
    from shielded_sync.metrics.collector import SyncMetrics
    from shielded_sync.storage.client import StorageClient

    ProgressCallback = Callable[[SyncProgress], None]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# In-flight registry
# ---------------------------------------------------------------------------


class SyncRegistry:
    """At most one outstanding sync task per wallet.

    The handle is released when its task finishes, whatever the outcome. A
    handle that was discarded and replaced is not released by the old task.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._inflight: dict[str, asyncio.Task[list[Note]]] = {}

    def outstanding(self, wallet: str) -> bool:
        """Whether a sync for *wallet* is in flight."""
        return wallet in self._inflight

    async def run(self, wallet: str, factory: Callable[[], Awaitable[list[Note]]]) -> list[Note]:
        """Attach to the wallet's in-flight sync, starting one if there is none.

        Cancelling the caller does not cancel the shared sync.
        """
        async with self._lock:
            task = self._inflight.get(wallet)
            if task is None:
                task = asyncio.ensure_future(factory())
                self._inflight[wallet] = task
                task.add_done_callback(lambda t: self._release(wallet, t))
            else:
                logger.debug("Attaching to in-flight sync for %s", wallet)
        return await asyncio.shield(task)

    async def discard(self, wallet: str) -> None:
        """Forget the wallet's handle so the next caller starts a fresh sync.

        The discarded sync keeps running for the callers already attached.
        """
        async with self._lock:
            if self._inflight.pop(wallet, None) is not None:
                logger.info("Discarded in-flight sync handle for %s", wallet)

    def _release(self, wallet: str, task: asyncio.Task[list[Note]]) -> None:
        if self._inflight.get(wallet) is task:
            del self._inflight[wallet]


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class SyncEngine:
    """Drives incremental synchronization of a wallet's unspent notes."""

    def __init__(
        self,
        config: IndexerConfig,
        *,
        storage: StorageClient,
        keys: StorageKeyDirectory,
        indexer: IndexerClient,
        encryption_service: EncryptionService,
        migration: MigrationEngine,
        pipeline: DecryptionPipeline,
        spent: SpentChecker,
        metrics: SyncMetrics | None = None,
        registry: SyncRegistry | None = None,
    ) -> None:
        self._config = config
        self._storage = storage
        self._keys = keys
        self._indexer = indexer
        self._encryption = encryption_service
        self._migration = migration
        self._pipeline = pipeline
        self._spent = spent
        self._metrics = metrics
        self._registry = registry or SyncRegistry()

    @property
    def registry(self) -> SyncRegistry:
        return self._registry

    async def get_unspent_notes(
        self,
        wallet: WalletIdentity,
        session_key: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> list[Note]:
        """Synchronize and return the wallet's unspent notes.

        Concurrent calls for the same wallet share one sync; only the caller
        that started it receives progress events.

        With the default unbounded retry policy this only returns once the
        ledger answers every spent check, which can take arbitrarily long
        during an outage.

        Args:
            wallet: Wallet to synchronize.
            session_key: Optional base64 AES key selecting encrypted storage keys.
            on_progress: Called with a :class:`SyncProgress` after each page.

        Raises:
            IndexerError: If a page fetch or index resolution fails.
            ProtocolError: If the indexer returns a malformed response.
            EncryptionError: If *session_key* is malformed.
            RetryExhaustedError: If a bounded retry policy runs out.
        """
        wallet_str = str(wallet)
        if (
            session_key
            and self._registry.outstanding(wallet_str)
            and await self._migration.pending_encryption(wallet, session_key)
        ):
            # The running sync writes under the hashed keys; start over so
            # the data gets migrated to the encrypted ones.
            await self._registry.discard(wallet_str)

        return await self._registry.run(
            wallet_str,
            lambda: self._synchronize(wallet, session_key, on_progress),
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _synchronize(
        self,
        wallet: WalletIdentity,
        session_key: str | None,
        on_progress: ProgressCallback | None,
    ) -> list[Note]:
        """Run one full sync round for *wallet*.

        The note key is derived before anything else, and the result is
        discarded: a misconfigured encryption service must fail here, before
        migration or any page fetch touches storage or the network.

        Each page's unspent ciphertexts are merged into the persisted cache
        before the page's offset is written, so a failure on a later page
        never leaves notes behind an advanced offset.
        """
        wallet_str = str(wallet)
        with self._track_sync():
            logger.info("Starting note sync for %s", wallet_str)
            self._encryption.derive_note_key()
            await self._migration.migrate(wallet, session_key)

            suffix = self._keys.current_suffix(wallet, session_key)
            offset_key = DataKind.FETCH_OFFSET.key(suffix)
            cache_key = DataKind.CIPHERTEXT_CACHE.key(suffix)
            offset = await self._read_offset(offset_key)
            cached = await self._read_cache(cache_key)
            persisted = list(cached)
            round_start = offset

            notes: list[Note] = []
            unspent_ciphertexts: list[str] = []
            history: list[int] = []
            fetched: set[str] = set()
            attempted = 0

            while True:
                page = await self._indexer.fetch_range(offset, offset + self._config.page_size)
                if self._metrics is not None:
                    self._metrics.record_page()

                batch = list(page.ciphertexts)
                fetched.update(batch)
                if not page.has_more:
                    batch.extend(c for c in cached if c not in fetched)

                results = await self._pipeline.decrypt(batch)
                attempted += len(batch)
                if self._metrics is not None:
                    self._metrics.record_decrypted(len(results))

                owned = [r for r in results if r.note is not None]
                history.extend(r.note.index for r in owned if r.note.index is not None)

                positive = [r for r in owned if r.note.amount > 0]
                flags = await self._spent.check_spent([r.note for r in positive])
                page_unspent: list[str] = []
                for result, spent in zip(positive, flags, strict=True):
                    if not spent:
                        logger.debug("Found unspent note at index %s", result.note.index)
                        notes.append(result.note)
                        page_unspent.append(result.ciphertext)
                unspent_ciphertexts.extend(page_unspent)

                if page_unspent:
                    persisted = [*persisted, *page_unspent]
                    await self._storage.set(cache_key, dump_ciphertexts(persisted))

                offset += page.length
                await self._storage.set(offset_key, str(offset))

                total = page.total + len(cached) - round_start if page.total else 0
                logger.info("Decrypted %d/%d ciphertexts for %s", attempted, total, wallet_str)
                self._emit(
                    on_progress,
                    SyncProgress(
                        wallet=wallet_str,
                        offset=offset,
                        decrypted=attempted,
                        total=total,
                        notes_found=len(notes),
                        done=False,
                    ),
                )

                if not page.has_more:
                    break
                await asyncio.sleep(self._config.page_delay)

            await self._save_history(DataKind.RECENT_ACTIVITY.key(suffix), history)
            await self._storage.set(cache_key, dump_ciphertexts(unspent_ciphertexts))

        if self._metrics is not None:
            self._metrics.set_unspent_count(len(notes))
        logger.info("Note sync for %s finished: %d unspent notes", wallet_str, len(notes))
        self._emit(
            on_progress,
            SyncProgress(
                wallet=wallet_str,
                offset=offset,
                decrypted=attempted,
                total=attempted,
                notes_found=len(notes),
                done=True,
            ),
        )
        return notes

    async def _read_offset(self, key: str) -> int:
        raw = await self._storage.get(key)
        try:
            return parse_offset(raw)
        except ValueError:
            logger.warning("Corrupt fetch offset %r; rescanning from 0", raw)
            return 0

    async def _read_cache(self, key: str) -> list[str]:
        try:
            return parse_ciphertexts(await self._storage.get(key))
        except ValueError:
            logger.warning("Corrupt ciphertext cache; ignoring it")
            return []

    async def _save_history(self, key: str, history: list[int]) -> None:
        """Merge this sync's indices into the persisted recent-activity set."""
        raw = await self._storage.get(key)
        try:
            persisted = parse_index_set(raw)
        except ValueError:
            logger.warning("Corrupt recent-activity set; replacing it")
            persisted = []
        top = top_indices([*history, *persisted])
        if top:
            await self._storage.set(key, dump_index_set(top))

    def _emit(self, callback: ProgressCallback | None, progress: SyncProgress) -> None:
        if callback is None:
            return
        try:
            callback(progress)
        except Exception:
            logger.exception("Progress callback failed")

    @contextlib.contextmanager
    def _track_sync(self) -> Iterator[None]:
        if self._metrics is None:
            yield
            return
        with self._metrics.track_sync():
            yield
