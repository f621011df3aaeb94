"""Engine data models — notes, decryption results, sync progress."""

from __future__ import annotations

import enum
from dataclasses import dataclass


@dataclass
class Note:
    """A decrypted shielded note (UTXO) owned by the wallet.

    Attributes:
        amount: Value in lamports.
        index: Ledger position; ``None`` until resolved by the indexer.
        nullifier: Field element that marks the note spent once published.
    """

    amount: int
    nullifier: int
    index: int | None = None


class DecryptStatus(enum.StrEnum):
    """Outcome of one decryption attempt."""

    DECRYPTED = "decrypted"
    SKIPPED = "skipped"
    UNDECRYPTABLE = "undecryptable"


@dataclass
class DecryptResult:
    """Result of decrypting one ciphertext.

    ``note`` and ``ciphertext`` are set only when ``status`` is ``DECRYPTED``.
    """

    status: DecryptStatus
    note: Note | None = None
    ciphertext: str | None = None

    @classmethod
    def decrypted(cls, note: Note, ciphertext: str) -> DecryptResult:
        return cls(DecryptStatus.DECRYPTED, note, ciphertext)

    @classmethod
    def skipped(cls) -> DecryptResult:
        return cls(DecryptStatus.SKIPPED)

    @classmethod
    def undecryptable(cls) -> DecryptResult:
        return cls(DecryptStatus.UNDECRYPTABLE)


@dataclass(frozen=True)
class SyncProgress:
    """Progress event emitted after each decrypted batch.

    Attributes:
        wallet: Base58 wallet identity being synchronized.
        offset: Feed offset persisted after the batch.
        decrypted: Ciphertexts attempted so far in this sync.
        total: Estimated ciphertexts to attempt (remote feed remainder plus
            cached ciphertexts); 0 when the indexer did not report a total.
        notes_found: Unspent notes accumulated so far.
        done: True on the last event of a successful sync.
    """

    wallet: str
    offset: int
    decrypted: int
    total: int
    notes_found: int
    done: bool = False
