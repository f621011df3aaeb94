"""Storage-key migration — move data forward across suffix generations.

Two legs run for every data kind:

1. Legacy → current. Always attempted; the legacy key is deleted afterwards
   whether or not it held a value.
2. Hashed → encrypted. Only when a session key is supplied and actually
   changes the suffix. This leg does not depend on legacy data existing, so
   a wallet whose session key appears long after its hashed cache was
   written still gets moved.

When the destination already holds a value the two are merged, never
overwritten. A value that cannot be parsed leaves the destination untouched.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

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
    from shielded_sync.keys.directory import StorageKeyDirectory
    from shielded_sync.ledger.keys import WalletIdentity
    from shielded_sync.storage.client import StorageClient

logger = logging.getLogger(__name__)


def merge_values(kind: DataKind, source: str, destination: str) -> str:
    """Merge a migrated *source* value into an existing *destination* value.

    - offsets: the larger one (source kept verbatim if it wins)
    - ciphertext caches: set union
    - recent activity: set union truncated to the largest entries

    Raises:
        ValueError: If either value cannot be parsed.
    """
    if kind == DataKind.FETCH_OFFSET:
        return source if parse_offset(source) > parse_offset(destination) else destination
    if kind == DataKind.CIPHERTEXT_CACHE:
        return dump_ciphertexts([*parse_ciphertexts(source), *parse_ciphertexts(destination)])
    merged = top_indices([*parse_index_set(source), *parse_index_set(destination)])
    return dump_index_set(merged)


class MigrationEngine:
    """Moves a wallet's persisted data into its current-generation keys.

    Idempotent: running it again on already-migrated storage changes nothing.
    """

    def __init__(self, storage: StorageClient, keys: StorageKeyDirectory) -> None:
        self._storage = storage
        self._keys = keys

    async def migrate(self, wallet: WalletIdentity, session_key: str | None = None) -> None:
        """Migrate all data kinds for *wallet*.

        Raises:
            EncryptionError: If *session_key* is malformed.
        """
        legacy = self._keys.legacy_suffix(wallet)
        hashed = self._keys.hashed_suffix(wallet)
        current = self._keys.current_suffix(wallet, session_key)

        encrypt_leg = bool(session_key) and current != hashed
        if session_key and not encrypt_leg:
            logger.warning("Encrypted storage suffix equals hashed suffix; skipping hashed migration")

        obsolete: list[str] = []
        for kind in DataKind:
            await self._move(kind, kind.key(legacy), kind.key(current), "legacy")
            # Legacy keys may linger in the durable layer even when unread here.
            obsolete.append(kind.key(legacy))

            if encrypt_leg and await self._move(kind, kind.key(hashed), kind.key(current), "hashed"):
                obsolete.append(kind.key(hashed))

        try:
            await self._storage.remove(obsolete)
        except Exception:
            logger.exception("Failed to delete %d obsolete storage keys", len(obsolete))
        else:
            logger.debug("Deleted %d obsolete storage keys", len(obsolete))

    async def pending_encryption(self, wallet: WalletIdentity, session_key: str) -> bool:
        """True if some kind has hashed-format data but no encrypted counterpart."""
        hashed = self._keys.hashed_suffix(wallet)
        encrypted = self._keys.current_suffix(wallet, session_key)
        if encrypted == hashed:
            return False
        for kind in DataKind:
            if (
                await self._storage.get(kind.key(hashed)) is not None
                and await self._storage.get(kind.key(encrypted)) is None
            ):
                return True
        return False

    async def _move(self, kind: DataKind, source_key: str, dest_key: str, label: str) -> bool:
        """Move or merge one value. Returns True if *source_key* held a value."""
        source = await self._storage.get(source_key)
        if source is None:
            return False

        logger.debug("Migrating %s from %s key", kind.name.lower(), label)
        destination = await self._storage.get(dest_key)
        if destination is None:
            await self._storage.set(dest_key, source)
            logger.debug("Migrated %s data to new key", kind.name.lower())
            return True

        try:
            merged = merge_values(kind, source, destination)
        except ValueError:
            logger.warning(
                "Unparsable %s while merging from %s key; keeping current value",
                kind.name.lower(),
                label,
            )
            return True

        if merged != destination:
            await self._storage.set(dest_key, merged)
            logger.debug("Merged %s data from %s and current keys", kind.name.lower(), label)
        return True
