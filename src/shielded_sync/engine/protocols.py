"""Collaborator protocols — note decryption is supplied by the wallet application."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from shielded_sync.engine.models import Note


class NoteHasher(Protocol):
    """Opaque field-hash primitive handed through to note decryption."""


class EncryptionService(Protocol):
    """Wallet-specific note encryption.

    ``decrypt`` raises any exception when the ciphertext is not addressed to
    this wallet; the pipeline treats every failure as "not ours".
    """

    def derive_note_key(self) -> bytes: ...

    def decrypt(self, ciphertext: str, hasher: NoteHasher) -> Note: ...
