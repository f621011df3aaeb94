"""Decryption pipeline — trial-decrypt ciphertexts and resolve note positions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from shielded_sync.engine.models import DecryptResult, DecryptStatus

if TYPE_CHECKING:
    from shielded_sync.chain.indexer import IndexerClient
    from shielded_sync.engine.protocols import EncryptionService, NoteHasher

logger = logging.getLogger(__name__)


class DecryptionPipeline:
    """Turns raw ciphertexts into this wallet's notes.

    Every ciphertext is tried on its own; one failure never affects the
    others. Survivors get their ledger index from the indexer in a single
    batched call, and the indexer's answer overrides whatever index the
    decrypted payload carried.
    """

    def __init__(
        self,
        encryption_service: EncryptionService,
        hasher: NoteHasher,
        indexer: IndexerClient,
    ) -> None:
        self._encryption = encryption_service
        self._hasher = hasher
        self._indexer = indexer

    def try_decrypt(self, ciphertext: str) -> DecryptResult:
        """Attempt one ciphertext."""
        if not ciphertext:
            return DecryptResult.skipped()
        try:
            note = self._encryption.decrypt(ciphertext, self._hasher)
        except Exception:  # noqa: BLE001 - any failure means "not addressed to us"
            return DecryptResult.undecryptable()
        return DecryptResult.decrypted(note, ciphertext)

    async def decrypt(self, ciphertexts: list[str]) -> list[DecryptResult]:
        """Decrypt *ciphertexts* and resolve the ledger index of each hit.

        Returns:
            Only the ``DECRYPTED`` results, in input order.

        Raises:
            IndexerError: If the index lookup fails in transport.
            IndexResolutionError: If the lookup returns the wrong number of indices.
        """
        results = [self.try_decrypt(c) for c in ciphertexts]
        decrypted = [r for r in results if r.status == DecryptStatus.DECRYPTED]
        logger.debug("Decrypted %d of %d ciphertexts", len(decrypted), len(ciphertexts))
        if not decrypted:
            return []

        indices = await self._indexer.resolve_indices([r.ciphertext for r in decrypted])
        for result, index in zip(decrypted, indices, strict=True):
            note = result.note
            if note is None or not isinstance(index, int) or isinstance(index, bool):
                continue
            if note.index != index:
                logger.debug("Updated note index from %s to %d", note.index, index)
                note.index = index
        return decrypted
